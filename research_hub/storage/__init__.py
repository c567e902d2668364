"""
Storage abstractions.

- MetadataStorage → document database (MongoDB, PostgreSQL JSONB, ...)
- InMemoryMetadataStorage → local development and tests
- GuardedMetadataStorage → timeout / fail-closed wrapper for any backend
"""

from research_hub.storage.base import (
    MetadataStorage,
    Collections,
)
from research_hub.storage.guarded import GuardedMetadataStorage
from research_hub.storage.local import InMemoryMetadataStorage, create_local_storage

__all__ = [
    "MetadataStorage",
    "Collections",
    "GuardedMetadataStorage",
    "InMemoryMetadataStorage",
    "create_local_storage",
]

"""
Storage abstraction layer.

All persistence goes through this interface. The authorization core treats
the store as a black box: CRUD by id, simple equality/membership queries,
and an atomic add-to-set primitive for team membership.

Implementations:
- InMemoryMetadataStorage (storage/local.py) for development and tests
- GuardedMetadataStorage (storage/guarded.py) wraps any implementation
  with timeouts so store failures fail closed
- A document database (e.g. MongoDB) in production
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


# =============================================================================
# Storage Interface
# =============================================================================


class MetadataStorage(ABC):
    """
    Storage for structured records (users, projects, tasks, comments).

    Query semantics:
    - A scalar filter value matches a scalar field by equality.
    - A scalar filter value matches a list field when the list contains it
      (e.g. {"team_members": user_id}).
    - A set/tuple/frozenset filter value matches when the field equals any
      of its members (e.g. {"project": {"p1", "p2"}}).
    """

    @abstractmethod
    async def save(self, collection: str, id: str, data: dict[str, Any]) -> None:
        """Save a document to a collection."""
        pass

    @abstractmethod
    async def get(self, collection: str, id: str) -> dict[str, Any] | None:
        """Get a document by ID."""
        pass

    @abstractmethod
    async def delete(self, collection: str, id: str) -> bool:
        """Delete a document."""
        pass

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        limit: int | None = 100,
        offset: int = 0,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        """Query documents with optional filters, ordering and pagination."""
        pass

    @abstractmethod
    async def count(self, collection: str, filters: dict[str, Any] | None = None) -> int:
        """Count documents matching filters."""
        pass

    @abstractmethod
    async def update(self, collection: str, id: str, updates: dict[str, Any]) -> bool:
        """Partial update of a document."""
        pass

    @abstractmethod
    async def add_to_set(self, collection: str, id: str, field: str, value: Any) -> bool:
        """
        Atomically append value to a list field if absent.

        Returns True if added, False if already present.
        Raises KeyError if the document does not exist.
        """
        pass

    @abstractmethod
    async def remove_from_set(self, collection: str, id: str, field: str, value: Any) -> bool:
        """
        Atomically remove value from a list field.

        Returns True if removed, False if it was not present.
        Raises KeyError if the document does not exist.
        """
        pass


# =============================================================================
# Collection Names
# =============================================================================


class Collections:
    """Standard collection/table names."""

    USERS = "users"
    PROJECTS = "projects"
    TASKS = "tasks"
    COMMENTS = "comments"

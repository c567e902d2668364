"""
Local storage implementation for development and tests.

An in-memory document store that works without any external services.
Documents are copied on the way in and out, so callers never share
mutable state with the store.
"""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Any

from research_hub.storage.base import MetadataStorage


_SET_TYPES = (set, frozenset, tuple)


def _matches(doc: dict[str, Any], filters: dict[str, Any]) -> bool:
    for key, value in filters.items():
        field = doc.get(key)
        if isinstance(value, _SET_TYPES):
            if field not in value:
                return False
        elif isinstance(field, list):
            if value not in field:
                return False
        elif field != value:
            return False
    return True


# =============================================================================
# In-Memory Metadata Storage
# =============================================================================


class InMemoryMetadataStorage(MetadataStorage):
    """
    In-memory document storage for development.

    No method awaits between reading and writing its data, so every call
    (including add_to_set/remove_from_set) is atomic on the event loop.
    """

    def __init__(self):
        self._data: dict[str, dict[str, dict[str, Any]]] = {}

    async def save(self, collection: str, id: str, data: dict[str, Any]) -> None:
        if collection not in self._data:
            self._data[collection] = {}
        self._data[collection][id] = {
            **copy.deepcopy(data),
            "id": id,
            "_updated_at": datetime.now(timezone.utc).isoformat(),
        }

    async def get(self, collection: str, id: str) -> dict[str, Any] | None:
        doc = self._data.get(collection, {}).get(id)
        return copy.deepcopy(doc) if doc is not None else None

    async def delete(self, collection: str, id: str) -> bool:
        if collection in self._data and id in self._data[collection]:
            del self._data[collection][id]
            return True
        return False

    async def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        limit: int | None = 100,
        offset: int = 0,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        if collection not in self._data:
            return []

        results = list(self._data[collection].values())

        # Apply filters
        if filters:
            results = [doc for doc in results if _matches(doc, filters)]

        # Missing sort keys go last
        if order_by:
            present = [doc for doc in results if doc.get(order_by) is not None]
            missing = [doc for doc in results if doc.get(order_by) is None]
            present.sort(key=lambda doc: doc[order_by], reverse=descending)
            results = present + missing

        # Apply pagination
        end = None if limit is None else offset + limit
        return [copy.deepcopy(doc) for doc in results[offset:end]]

    async def count(self, collection: str, filters: dict[str, Any] | None = None) -> int:
        docs = self._data.get(collection, {}).values()
        if not filters:
            return len(docs)
        return sum(1 for doc in docs if _matches(doc, filters))

    async def update(self, collection: str, id: str, updates: dict[str, Any]) -> bool:
        if collection in self._data and id in self._data[collection]:
            self._data[collection][id].update(copy.deepcopy(updates))
            self._data[collection][id]["_updated_at"] = datetime.now(timezone.utc).isoformat()
            return True
        return False

    async def add_to_set(self, collection: str, id: str, field: str, value: Any) -> bool:
        doc = self._data.get(collection, {}).get(id)
        if doc is None:
            raise KeyError(f"{collection}/{id}")

        members = doc.setdefault(field, [])
        if value in members:
            return False
        members.append(value)
        doc["_updated_at"] = datetime.now(timezone.utc).isoformat()
        return True

    async def remove_from_set(self, collection: str, id: str, field: str, value: Any) -> bool:
        doc = self._data.get(collection, {}).get(id)
        if doc is None:
            raise KeyError(f"{collection}/{id}")

        members = doc.get(field) or []
        if value not in members:
            return False
        doc[field] = [m for m in members if m != value]
        doc["_updated_at"] = datetime.now(timezone.utc).isoformat()
        return True


# =============================================================================
# Factory
# =============================================================================


def create_local_storage() -> MetadataStorage:
    """Create an in-memory store for development."""
    return InMemoryMetadataStorage()

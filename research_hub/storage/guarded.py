"""
Fail-closed store wrapper.

Wraps any MetadataStorage so that a slow or failing backend surfaces as
StoreUnavailable instead of hanging a request or leaking driver errors.
Callers above this layer never see a partial answer they could mistake
for an Allow.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, TypeVar

from research_hub.core.errors import StoreUnavailable
from research_hub.storage.base import MetadataStorage

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GuardedMetadataStorage(MetadataStorage):
    """Apply a per-call timeout and normalize I/O failures."""

    def __init__(self, inner: MetadataStorage, timeout: float = 5.0):
        self.inner = inner
        self.timeout = timeout

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Store %s timed out after %.2fs", operation, self.timeout)
            raise StoreUnavailable(f"Store {operation} timed out")
        except (ConnectionError, OSError) as e:
            logger.error("Store %s failed: %s", operation, e)
            raise StoreUnavailable(f"Store {operation} failed") from e

    async def save(self, collection: str, id: str, data: dict[str, Any]) -> None:
        await self._call("save", self.inner.save(collection, id, data))

    async def get(self, collection: str, id: str) -> dict[str, Any] | None:
        return await self._call("get", self.inner.get(collection, id))

    async def delete(self, collection: str, id: str) -> bool:
        return await self._call("delete", self.inner.delete(collection, id))

    async def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        limit: int | None = 100,
        offset: int = 0,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        return await self._call(
            "query",
            self.inner.query(
                collection,
                filters,
                limit=limit,
                offset=offset,
                order_by=order_by,
                descending=descending,
            ),
        )

    async def count(self, collection: str, filters: dict[str, Any] | None = None) -> int:
        return await self._call("count", self.inner.count(collection, filters))

    async def update(self, collection: str, id: str, updates: dict[str, Any]) -> bool:
        return await self._call("update", self.inner.update(collection, id, updates))

    async def add_to_set(self, collection: str, id: str, field: str, value: Any) -> bool:
        return await self._call(
            "add_to_set", self.inner.add_to_set(collection, id, field, value)
        )

    async def remove_from_set(self, collection: str, id: str, field: str, value: Any) -> bool:
        return await self._call(
            "remove_from_set", self.inner.remove_from_set(collection, id, field, value)
        )

# newsletter_access/services/permission_cache.py
"""
Per-actor cache for resolved roles and class sets.

Owned by one request/render context and passed explicitly to the role
resolver; never a module-level global. Entries are written at most once per
actor and namespace. Concurrent first resolutions for the same key share a
single in-flight load (single-flight), so the directory store is called once.

Failed loads are not cached: the in-flight entry is dropped and the next
caller retries.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Cache namespaces
ROLE = "role"
TAUGHT_CLASSES = "taught_classes"
VIEWER_CLASSES = "viewer_classes"

CacheKey = Tuple[str, str]


class PermissionCache:

    def __init__(self):
        self._entries: Dict[CacheKey, Any] = {}
        self._in_flight: Dict[CacheKey, asyncio.Task] = {}
        self._actor_id: Optional[str] = None
        # Bumped on every clear so loads started before a clear cannot repopulate it
        self._generation = 0
        # Bumped per actor by invalidate; other actors' loads are unaffected
        self._actor_generations: Dict[str, int] = {}
        self._hits = 0
        self._misses = 0

    async def get_or_load(self, namespace: str, actor_id: str, loader: Callable[[], Awaitable[T]]) -> T:
        """
        Return the cached value for (namespace, actor_id), loading it once if absent.

        Args:
            namespace: One of ROLE, TAUGHT_CLASSES, VIEWER_CLASSES.
            actor_id: The actor the value belongs to.
            loader: Zero-argument coroutine factory performing the directory lookup.

        Raises:
            Whatever the loader raises; nothing is cached in that case.
        """
        key = (namespace, actor_id)
        if key in self._entries:
            self._hits += 1
            logger.debug(f"Permission cache hit for {namespace}:{actor_id}")
            return self._entries[key]

        task = self._in_flight.get(key)
        if task is None:
            self._misses += 1
            logger.debug(f"Permission cache miss for {namespace}:{actor_id}, loading.")
            task = asyncio.ensure_future(self._load(key, loader, self._snapshot(actor_id)))
            task.add_done_callback(_retrieve_exception)
            self._in_flight[key] = task
        else:
            logger.debug(f"Joining in-flight load for {namespace}:{actor_id}")

        # A cancelled caller must not cancel the load other callers are waiting on
        return await asyncio.shield(task)

    async def _load(self, key: CacheKey, loader: Callable[[], Awaitable[T]], generation: Tuple[int, int]) -> T:
        try:
            value = await loader()
            if generation == self._snapshot(key[1]):
                self._entries[key] = value
            return value
        finally:
            if self._in_flight.get(key) is asyncio.current_task():
                del self._in_flight[key]

    def _snapshot(self, actor_id: str) -> Tuple[int, int]:
        return (self._generation, self._actor_generations.get(actor_id, 0))

    def peek(self, namespace: str, actor_id: str) -> Optional[Any]:
        """Cached value without loading, or None."""
        return self._entries.get((namespace, actor_id))

    def bind_actor(self, actor_id: str) -> None:
        """Record the acting identity; switching to a different identity clears the cache."""
        if self._actor_id is not None and self._actor_id != actor_id:
            logger.info(f"Acting identity changed from {self._actor_id} to {actor_id}; clearing permission cache.")
            self.clear()
        self._actor_id = actor_id

    def invalidate(self, actor_id: str) -> None:
        """Drop every cached value for one actor (e.g. after a role change)."""
        stale = [key for key in self._entries if key[1] == actor_id]
        for key in stale:
            del self._entries[key]
        for key in [key for key in self._in_flight if key[1] == actor_id]:
            del self._in_flight[key]
        # In-flight loads for this actor must not land after invalidation
        self._actor_generations[actor_id] = self._actor_generations.get(actor_id, 0) + 1
        logger.info(f"Invalidated {len(stale)} permission cache entries for actor {actor_id}")

    def clear(self) -> None:
        self._entries.clear()
        self._in_flight.clear()
        self._generation += 1
        self._actor_id = None
        logger.info("Permission cache cleared")

    def cache_info(self) -> Dict[str, Any]:
        return {
            "hits": self._hits,
            "misses": self._misses,
            "entries": len(self._entries),
            "in_flight": len(self._in_flight),
            "actor_id": self._actor_id,
        }

    def __len__(self) -> int:
        return len(self._entries)


def _retrieve_exception(task: asyncio.Task) -> None:
    # Marks a failed load's exception as retrieved when every waiter was cancelled
    if not task.cancelled():
        task.exception()

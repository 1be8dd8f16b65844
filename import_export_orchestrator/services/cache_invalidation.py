"""
Cache invalidation after imports

An import changes the stored records of one entity type for one
organization, so cached list, dropdown and statistics entries for that pair
are removed once the import completes.
"""

import fnmatch
from abc import ABC, abstractmethod
from typing import Callable, Dict, Iterable, List, Optional

from ..utils.aio import maybe_await
from ..utils.logger import get_logger, set_log_context


InvalidationHook = Callable[[str, str], object]

# Entity types whose cached collections are also keyed by a plural name.
PLURAL_CACHE_PATTERNS = {
    "user": ["users:list:{org}:*", "users:dropdown:{org}", "users:stats:{org}"],
    "role": ["roles:list:{org}:*", "roles:dropdown:{org}", "roles:stats:{org}", "roles:hierarchy:{org}"],
    "department": ["departments:list:{org}:*", "departments:list:{org}",
                   "departments:dropdown:{org}", "departments:stats:{org}"],
    "position": ["positions:list:{org}:*", "positions:list:{org}",
                 "positions:dropdown:{org}", "positions:stats:{org}"],
    "menu": ["menus:list:{org}:*", "menus:list:{org}", "menus:dropdown:{org}", "menus:stats:{org}",
             "user_menus_*_{org}", "menu:detail:*"],
}


def cache_patterns(entity_type: str, organization_id: str) -> List[str]:
    """Key patterns to drop after an import of ``entity_type`` for one organization."""
    entity = entity_type.lower()
    patterns = [
        f"{entity}:list:{organization_id}:*",
        f"{entity}:dropdown:{organization_id}",
        f"{entity}:stats:{organization_id}",
    ]
    patterns.extend(p.format(org=organization_id) for p in PLURAL_CACHE_PATTERNS.get(entity, []))
    return patterns


class CacheBackend(ABC):
    """Key/value cache that supports removal by glob pattern."""

    @abstractmethod
    async def remove_by_pattern(self, pattern: str) -> int:
        """Delete every key matching ``pattern``; returns the number removed."""


class InMemoryCacheBackend(CacheBackend):
    """Dictionary cache for single-process deployments and tests."""

    def __init__(self, entries: Optional[Dict[str, object]] = None):
        self.entries: Dict[str, object] = dict(entries or {})

    async def set(self, key: str, value: object) -> None:
        self.entries[key] = value

    async def get(self, key: str) -> Optional[object]:
        return self.entries.get(key)

    async def remove_by_pattern(self, pattern: str) -> int:
        matched = [key for key in self.entries if fnmatch.fnmatchcase(key, pattern)]
        for key in matched:
            del self.entries[key]
        return len(matched)


class RedisCacheBackend(CacheBackend):
    """Redis cache; pattern removal walks the keyspace with SCAN."""

    def __init__(self, url: str = "redis://localhost:6379/0", client=None, batch_size: int = 500):
        if client is None:
            import redis.asyncio as redis
            client = redis.from_url(url)
        self.client = client
        self.batch_size = batch_size

    async def remove_by_pattern(self, pattern: str) -> int:
        removed = 0
        batch: List[bytes] = []
        async for key in self.client.scan_iter(match=pattern, count=self.batch_size):
            batch.append(key)
            if len(batch) >= self.batch_size:
                removed += await self.client.delete(*batch)
                batch = []
        if batch:
            removed += await self.client.delete(*batch)
        return removed

    async def close(self) -> None:
        await self.client.aclose()


class CacheInvalidator:
    """
    Runs cache invalidation for an entity type and organization.

    Pattern removal runs against the configured backend (if any); hooks
    registered for the entity type run afterwards.
    """

    def __init__(self, backend: Optional[CacheBackend] = None):
        self.backend = backend
        self._hooks: Dict[str, List[InvalidationHook]] = {}

        self.logger = get_logger(__name__)
        set_log_context(self.logger, component="cache_invalidation")

    def register(self, entity_type: str, hook: InvalidationHook) -> None:
        """Add a hook called as ``hook(entity_type, organization_id)``."""
        self._hooks.setdefault(entity_type.lower(), []).append(hook)

    def hooks_for(self, entity_type: str) -> Iterable[InvalidationHook]:
        return list(self._hooks.get(entity_type.lower(), []))

    async def invalidate(self, entity_type: str, organization_id: str) -> int:
        """
        Invalidate cached data for one entity type and organization.

        Returns:
            Number of cache keys removed by the backend
        """
        removed = 0
        if self.backend is not None:
            for pattern in cache_patterns(entity_type, organization_id):
                removed += await self.backend.remove_by_pattern(pattern)

        for hook in self.hooks_for(entity_type):
            await maybe_await(hook(entity_type, organization_id))

        self.logger.info("Cache invalidated", extra={
            "entity_type": entity_type,
            "organization_id": organization_id,
            "keys_removed": removed
        })
        return removed

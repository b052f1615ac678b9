# apps/api/capacity/cache.py

import logging
from collections import OrderedDict
from datetime import datetime
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

logger = logging.getLogger(__name__)

_MISSING = object()


class AvailabilityCache:
    """
    Read-through cache for availability views (pool counters, unit lists).

    Entries expire after ``ttl_seconds`` and are dropped explicitly by the
    post-commit hook of every mutating capacity transition, so a reader never
    sees a view older than the last committed change it could have observed.
    The cache is advisory only; allocation always goes to the database.

    Readers that build a view from the database take a :meth:`generation`
    token first and pass it to :meth:`set`. Every invalidation bumps the
    key's generation, so a view read before a concurrent commit is never
    stored after that commit has invalidated the key.
    """

    def __init__(
        self,
        ttl_seconds: int = 300,
        max_entries: int = 1000,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[Hashable, Tuple[float, Any]]" = OrderedDict()
        self._generations: Dict[Hashable, int] = {}
        self._epoch = 0

    def _now(self) -> float:
        if self._clock is None:
            return datetime.now().timestamp()
        return self._clock().timestamp()

    def get(self, key: Hashable, default: Any = None) -> Any:
        entry = self._entries.get(key, _MISSING)
        if entry is _MISSING:
            return default
        expires_at, value = entry
        if expires_at <= self._now():
            self._entries.pop(key, None)
            return default
        self._entries.move_to_end(key)
        return value

    def generation(self, key: Hashable) -> Tuple[int, int]:
        return self._epoch, self._generations.get(key, 0)

    def set(self, key: Hashable, value: Any, generation: Optional[Tuple[int, int]] = None) -> bool:
        """Store ``value``; refused when ``key`` was invalidated since ``generation``."""
        if generation is not None and generation != self.generation(key):
            logger.debug(f"Availability cache skipped stale view for {key}")
            return False
        self._entries[key] = (self._now() + self.ttl_seconds, value)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
        return True

    def invalidate(self, *keys: Hashable) -> None:
        for key in keys:
            self._generations[key] = self._generations.get(key, 0) + 1
            if self._entries.pop(key, None) is not None:
                logger.debug(f"Availability cache invalidated {key}")

    def clear(self) -> None:
        self._epoch += 1
        self._generations.clear()
        self._entries.clear()

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def __len__(self) -> int:
        return len(self._entries)


def pool_key(pool_id) -> tuple:
    return ("pool", str(pool_id))


def section_key(section: str) -> tuple:
    return ("section", section)


def unit_key(unit_id) -> tuple:
    return ("unit", str(unit_id))

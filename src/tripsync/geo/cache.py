"""
In-memory TTL cache whose entries go stale instead of disappearing.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Optional, TypeVar

from loguru import logger

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """A cached lookup result."""
    key: str
    value: T
    fetched_at: float
    is_stale: bool = False

    def age(self, now: float) -> float:
        return now - self.fetched_at


class StaleableCache(Generic[T]):
    """
    One entry per key; a new ``set`` overwrites in place.

    Expiry never deletes. ``get_fresh`` ignores entries older than the TTL,
    ``get`` returns them regardless so callers can fall back to stale data.
    A TTL of ``None`` means entries never expire.
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.time,
        name: str = "cache",
    ):
        self.ttl = ttl_seconds
        self.name = name
        self._clock = clock
        self._entries: Dict[str, CacheEntry[T]] = {}

    def is_fresh(self, entry: CacheEntry[T]) -> bool:
        if self.ttl is None:
            return True
        return entry.age(self._clock()) < self.ttl

    def get(self, key: str) -> Optional[CacheEntry[T]]:
        """Entry for ``key`` regardless of age."""
        return self._entries.get(key)

    def get_fresh(self, key: str) -> Optional[CacheEntry[T]]:
        """Entry for ``key`` if within the TTL."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not self.is_fresh(entry):
            logger.debug(f"{self.name} entry expired for {key}")
            return None
        logger.debug(f"{self.name} hit for {key}")
        return entry

    def set(self, key: str, value: T) -> CacheEntry[T]:
        entry = CacheEntry(key=key, value=value, fetched_at=self._clock())
        self._entries[key] = entry
        logger.debug(f"{self.name} stored {key}")
        return entry

    def mark_stale(self, key: str) -> Optional[CacheEntry[T]]:
        entry = self._entries.get(key)
        if entry is not None:
            entry.is_stale = True
        return entry

    def clear(self) -> int:
        """Drop all entries. Returns how many were removed."""
        count = len(self._entries)
        self._entries.clear()
        return count

    @property
    def size(self) -> int:
        return len(self._entries)

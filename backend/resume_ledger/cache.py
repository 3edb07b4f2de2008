"""Explicit expiring cache used for privilege lookups."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

K = TypeVar("K")
V = TypeVar("V")


@dataclass(slots=True)
class _CacheEntry(Generic[V]):
    value: V
    expires_at: float


@dataclass(slots=True)
class TTLCache(Generic[K, V]):
    """Key -> value map where every entry carries its own expiry.

    The clock is injectable so expiry can be driven deterministically in tests.
    """

    ttl_seconds: float
    clock: Callable[[], float] = time.monotonic
    _entries: dict[K, _CacheEntry[V]] = field(default_factory=dict)

    def get(self, key: K) -> V | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self.clock():
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: K, value: V, *, ttl_seconds: float | None = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        self._entries[key] = _CacheEntry(value=value, expires_at=self.clock() + ttl)

    def invalidate(self, key: K) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

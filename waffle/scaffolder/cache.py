"""Time-to-live memoisation for registry reads.

A ``RegistryCache`` is owned by one ``ScaffoldPipeline`` run.  Entries are
never evicted eagerly: an expired entry is simply refetched the next time it
is requested.  ``clear()`` is meant to be called once when the run ends.
"""

from __future__ import annotations

import inspect
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")

DEFAULT_TTL_MS = 60 * 60 * 1000


def _now_ms() -> float:
    return time.monotonic() * 1000


@dataclass(slots=True)
class CacheEntry(Generic[T]):
    """A cached value and the instant (in milliseconds) it was stored."""

    data: T
    timestamp: float

    def is_fresh(self, now: float, ttl: float) -> bool:
        return now - self.timestamp < ttl


class RegistryCache:
    """Key -> value cache with a per-call time-to-live.

    Args:
        default_ttl: Validity window in milliseconds used when ``get`` is
            called without an explicit ``ttl``.
        clock: Zero-argument callable returning the current time in
            milliseconds.  Defaults to a monotonic clock.
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_MS,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.default_ttl = default_ttl
        self._clock = clock or _now_ms
        self._entries: dict[str, CacheEntry[Any]] = {}

    async def get(
        self,
        key: str,
        fetch: Callable[[], T | Awaitable[T]],
        ttl: float | None = None,
    ) -> T:
        """Return the cached value for *key*, calling *fetch* on a miss.

        *fetch* may be a plain or an async callable.  If it raises, the
        exception propagates and nothing is stored under *key*.
        """
        window = self.default_ttl if ttl is None else ttl
        entry = self._entries.get(key)
        if entry is not None and entry.is_fresh(self._clock(), window):
            return entry.data

        result = fetch()
        if inspect.isawaitable(result):
            result = await result

        self._entries[key] = CacheEntry(data=result, timestamp=self._clock())
        return result

    def clear(self) -> None:
        """Drop every entry, fresh or not."""
        self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

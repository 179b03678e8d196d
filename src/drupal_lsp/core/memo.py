"""Finite-TTL memo cache for derived data, plus its periodic sweeper.

Keys follow a ``"<category>:<detail>"`` convention (``class:Drupal\\foo\\Bar``,
``phpcs:file:///x.php@3``) so related entries can be dropped together with
:meth:`MemoCache.clear_matching`.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

_MISSING = object()


def matches_pattern(key: str, pattern: str) -> bool:
    """Match *key* against an exact, ``prefix*`` or ``*substring*`` pattern."""
    if pattern.startswith("*") and pattern.endswith("*") and len(pattern) > 1:
        return pattern[1:-1] in key
    if pattern.endswith("*"):
        return key.startswith(pattern[:-1])
    return key == pattern


@dataclass
class _Entry:
    value: Any
    expires_at: float


class MemoCache:
    """Key/value memo with a per-entry time-to-live.

    Expired entries are invisible to :meth:`get` immediately and are removed
    physically by :meth:`sweep`.
    """

    def __init__(
        self,
        default_ttl: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: dict[str, _Entry] = {}
        self._default_ttl = default_ttl
        self._clock = clock

    def get(self, key: str, default: Any = None) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return default
        if entry.expires_at <= self._clock():
            del self._entries[key]
            return default
        return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        lifetime = self._default_ttl if ttl is None else ttl
        self._entries[key] = _Entry(value=value, expires_at=self._clock() + lifetime)

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def clear_matching(self, pattern: str) -> int:
        keys = [k for k in self._entries if matches_pattern(k, pattern)]
        for key in keys:
            del self._entries[key]
        return len(keys)

    def sweep(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def get_or_compute(self, key: str, compute: Callable[[], Any], ttl: float | None = None) -> Any:
        """Return the cached value for *key*, computing and storing it on a miss.

        ``None`` results are cached too so repeated misses stay cheap.
        """
        value = self.get(key, _MISSING)
        if value is _MISSING:
            value = compute()
            self.set(key, value, ttl)
        return value

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key, _MISSING) is not _MISSING


class CacheSweeper:
    """Run :meth:`MemoCache.sweep` on a fixed interval as an asyncio task."""

    def __init__(self, cache: MemoCache, interval: float = 300.0) -> None:
        self._cache = cache
        self._interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            removed = self._cache.sweep()
            if removed:
                logger.debug("Memo sweep removed %d expired entries", removed)

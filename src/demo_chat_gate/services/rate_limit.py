"""Fixed-window in-memory rate limiter."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RateLimitRule:
    max_requests: int
    window_seconds: float

    def __post_init__(self) -> None:
        if self.max_requests <= 0:
            raise ValueError("max_requests must be positive")
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be positive")


@dataclass(slots=True)
class RateLimitEntry:
    count: int
    reset_at: float


@dataclass(frozen=True, slots=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: float


class RateLimiter:
    """Counts requests per identifier inside fixed, non-overlapping windows.

    A client may get up to ``2 * max_requests`` through around a window
    boundary. Expired entries are treated as absent by :meth:`check`, so the
    periodic sweep only bounds memory.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()
        self._sweeper: asyncio.Task[None] | None = None

    def check(self, identifier: str, rule: RateLimitRule) -> RateLimitResult:
        with self._lock:
            now = self._clock()
            entry = self._entries.get(identifier)
            if entry is None or now >= entry.reset_at:
                entry = RateLimitEntry(count=1, reset_at=now + rule.window_seconds)
                self._entries[identifier] = entry
                return RateLimitResult(True, rule.max_requests - 1, entry.reset_at)
            if entry.count < rule.max_requests:
                entry.count += 1
                return RateLimitResult(True, rule.max_requests - entry.count, entry.reset_at)
            return RateLimitResult(False, 0, entry.reset_at)

    def sweep(self, now: float | None = None) -> int:
        """Drop entries whose window has elapsed; return how many were removed."""

        with self._lock:
            if now is None:
                now = self._clock()
            stale = [key for key, entry in self._entries.items() if entry.reset_at <= now]
            for key in stale:
                del self._entries[key]
        if stale:
            logger.debug("Swept %d expired rate limit entries", len(stale))
        return len(stale)

    def get(self, identifier: str) -> RateLimitEntry | None:
        with self._lock:
            entry = self._entries.get(identifier)
            return replace(entry) if entry else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def sweeping(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    def start_sweeper(self, interval: float) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        if self.sweeping:
            return
        self._sweeper = asyncio.get_running_loop().create_task(self._sweep_forever(interval))

    async def stop_sweeper(self) -> None:
        task, self._sweeper = self._sweeper, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _sweep_forever(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.sweep()


__all__ = ["RateLimiter", "RateLimitRule", "RateLimitEntry", "RateLimitResult"]

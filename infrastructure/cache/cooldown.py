"""Resend cooldown tracking.

acquire() claims a key for a number of seconds and returns 0, or returns the
seconds left on an existing claim. The claim is atomic relative to concurrent
sends for the same key, so exactly one of two racing requests wins:

- Redis: a single ``SET key 1 NX EX seconds`` round trip.
- In memory: check and set happen without an await in between, which is
  atomic on the event loop.

The Redis tracker falls back to its in-memory twin when Redis errors or does
not answer within its timeout, so a Redis outage degrades the window to
per-process rather than disabling it or stalling the send.
"""

import asyncio
import math
import time
from typing import Any, Awaitable, Callable, Optional, Protocol

import redis.asyncio as aioredis

from shared.logging import get_logger

log = get_logger(__name__)

# TTL reply for a key that no longer exists
_KEY_GONE = -2


class CooldownTracker(Protocol):
    async def acquire(self, key: str, seconds: int) -> int: ...

    async def release(self, key: str) -> None: ...

    async def remaining(self, key: str) -> int: ...


class InMemoryCooldownTracker:
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._deadlines: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._deadlines)

    def _left(self, key: str) -> float:
        deadline = self._deadlines.get(key)
        if deadline is None:
            return 0.0
        left = deadline - self._clock()
        if left <= 0:
            del self._deadlines[key]
            return 0.0
        return left

    def _prune(self, now: float) -> None:
        lapsed = [key for key, deadline in self._deadlines.items() if deadline <= now]
        for key in lapsed:
            del self._deadlines[key]

    async def acquire(self, key: str, seconds: int) -> int:
        if seconds <= 0:
            return 0
        left = self._left(key)
        if left > 0:
            return math.ceil(left)
        now = self._clock()
        self._prune(now)
        self._deadlines[key] = now + seconds
        return 0

    async def release(self, key: str) -> None:
        self._deadlines.pop(key, None)

    async def remaining(self, key: str) -> int:
        return math.ceil(self._left(key))


class RedisCooldownTracker:
    def __init__(
        self,
        redis_client: aioredis.Redis,
        fallback: Optional[InMemoryCooldownTracker] = None,
        prefix: str = "otp_cooldown",
        timeout_seconds: float = 1.0,
    ) -> None:
        self._redis = redis_client
        self._fallback = fallback or InMemoryCooldownTracker()
        self._prefix = prefix
        self._timeout = timeout_seconds

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    async def _call(self, awaitable: Awaitable[Any]) -> Any:
        return await asyncio.wait_for(awaitable, timeout=self._timeout)

    def _log_error(self, operation: str, e: Exception) -> None:
        log.warning(
            "cooldown_redis_error",
            operation=operation,
            error=str(e) or "timeout",
            error_type=type(e).__name__,
        )

    async def _claim(self, key: str, seconds: int) -> bool:
        return bool(await self._call(self._redis.set(key, "1", nx=True, ex=seconds)))

    async def acquire(self, key: str, seconds: int) -> int:
        if seconds <= 0:
            return 0
        rkey = self._key(key)
        try:
            if await self._claim(rkey, seconds):
                return 0
            ttl = int(await self._call(self._redis.ttl(rkey)))
            # The holder expired between SET and TTL; the slot is free again
            if ttl == _KEY_GONE and await self._claim(rkey, seconds):
                return 0
            return max(ttl, 1)
        except Exception as e:
            self._log_error("acquire", e)
            return await self._fallback.acquire(key, seconds)

    async def release(self, key: str) -> None:
        await self._fallback.release(key)
        try:
            await self._call(self._redis.delete(self._key(key)))
        except Exception as e:
            self._log_error("release", e)

    async def remaining(self, key: str) -> int:
        try:
            ttl = int(await self._call(self._redis.ttl(self._key(key))))
            return max(ttl, 0)
        except Exception as e:
            self._log_error("remaining", e)
            return await self._fallback.remaining(key)

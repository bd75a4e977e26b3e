import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol

import structlog
from redis.asyncio import Redis

logger = structlog.get_logger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_time: int  # epoch milliseconds at which the current window ends

    def retry_after_seconds(self, now_ms: Optional[int] = None) -> int:
        now_ms = _now_ms() if now_ms is None else now_ms
        return max(1, -(-(self.reset_time - now_ms) // 1000))


@dataclass
class RateLimitEntry:
    count: int
    reset_time: int


class RateLimiter(Protocol):
    """Fixed-window limiter interface shared by the in-process and Redis backends."""
    async def check(self, identifier: str, limit: int, window_ms: int) -> RateLimitResult: ...
    async def sweep(self) -> int: ...
    async def close(self) -> None: ...


class InMemoryRateLimiter:
    """
    Fixed-window counter held in process memory.

    Each identifier gets a window that starts on its first request and lasts
    ``window_ms``. Requests past ``limit`` inside the window are refused
    without moving the window. ``check`` never awaits, so on a single event
    loop each call is atomic. State is per process and lost on restart.
    """

    def __init__(self, clock: Callable[[], int] = _now_ms):
        self._clock = clock
        self._entries: Dict[str, RateLimitEntry] = {}

    async def check(self, identifier: str, limit: int, window_ms: int) -> RateLimitResult:
        now = self._clock()
        entry = self._entries.get(identifier)

        if entry is None or now > entry.reset_time:
            entry = RateLimitEntry(count=1, reset_time=now + window_ms)
            self._entries[identifier] = entry
            return RateLimitResult(allowed=True, remaining=limit - 1, reset_time=entry.reset_time)

        if entry.count >= limit:
            return RateLimitResult(allowed=False, remaining=0, reset_time=entry.reset_time)

        entry.count += 1
        return RateLimitResult(allowed=True, remaining=limit - entry.count, reset_time=entry.reset_time)

    async def sweep(self) -> int:
        """Drop expired windows. Returns how many entries were reclaimed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now > entry.reset_time]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("rate_limit_sweep", reclaimed=len(expired), live=len(self._entries))
        return len(expired)

    async def close(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RedisRateLimiter:
    """
    Fixed-window limiter backed by Redis so several instances share counters.
    A Lua script makes check-and-consume atomic; keys expire with their window.
    """

    SCRIPT = """
    local key = KEYS[1]
    local limit = tonumber(ARGV[1])
    local window = tonumber(ARGV[2])
    local current = redis.call('GET', key)
    if current == false then
      redis.call('SET', key, 1, 'PX', window)
      return {1, limit - 1, window}
    end
    local ttl = redis.call('PTTL', key)
    local count = tonumber(current)
    if count >= limit then
      return {0, 0, ttl}
    end
    count = redis.call('INCR', key)
    return {1, limit - count, ttl}
    """

    def __init__(self, redis_client: Redis, prefix: str = "rate_limit", clock: Callable[[], int] = _now_ms):
        self.redis_client = redis_client
        self.prefix = prefix
        self._clock = clock

    async def check(self, identifier: str, limit: int, window_ms: int) -> RateLimitResult:
        key = f"{self.prefix}:{identifier}"
        try:
            result = await self.redis_client.eval(self.SCRIPT, 1, key, limit, window_ms)
        except Exception as e:
            logger.error("rate_limit_redis_error", error=str(e), key=key)
            raise RuntimeError("redis_unavailable") from e
        allowed, remaining, ttl = (int(v) for v in result)
        if ttl < 0:
            ttl = window_ms
        return RateLimitResult(allowed=allowed == 1, remaining=remaining, reset_time=self._clock() + ttl)

    async def sweep(self) -> int:
        # Redis expires window keys itself.
        return 0

    async def close(self) -> None:
        await self.redis_client.aclose()

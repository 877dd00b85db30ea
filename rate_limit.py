"""Sliding-window rate limiting backed by Redis.

Each identifier gets a sorted set whose members are accepted calls scored by
their timestamp in milliseconds. A call is admitted when, after dropping
entries older than the window, the set holds at most ``limit`` entries
including the new one. The state lives in Redis so every API instance sees the
same window.

Key pattern:
    ratelimit:{identifier}   e.g. ratelimit:resume:42
"""
from __future__ import annotations

import math
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Optional

import redis.asyncio as redis
import structlog

logger = structlog.get_logger(__name__)

KEY_PREFIX = "ratelimit"


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    retry_after: int = 0  # seconds until a slot frees up, 0 when allowed


class SlidingWindowRateLimiter:
    """
    Sliding-window limiter over a shared Redis client.

    Attributes:
        client: Async Redis client, or None to admit everything (local dev)
        limit: Accepted calls per window
        window_seconds: Window length
    """

    def __init__(
        self,
        client: Optional[redis.Redis],
        limit: int,
        window_seconds: int,
        clock: Callable[[], float] = time.time,
    ):
        self.client = client
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock

    @property
    def enabled(self) -> bool:
        return self.client is not None

    async def hit(self, identifier: str) -> RateLimitResult:
        """Record a call for ``identifier`` and say whether it is admitted."""
        if self.client is None:
            return RateLimitResult(allowed=True, limit=self.limit, remaining=self.limit)

        key = f"{KEY_PREFIX}:{identifier}"
        window_ms = self.window_seconds * 1000
        now_ms = int(self._clock() * 1000)
        member = f"{now_ms}:{uuid.uuid4().hex}"

        async with self.client.pipeline(transaction=True) as pipe:
            pipe.zremrangebyscore(key, "-inf", now_ms - window_ms)
            pipe.zadd(key, {member: now_ms})
            pipe.zcard(key)
            pipe.pexpire(key, window_ms)
            _, _, count, _ = await pipe.execute()

        if count <= self.limit:
            return RateLimitResult(allowed=True, limit=self.limit, remaining=self.limit - count)

        # Rejected calls must not occupy a slot
        await self.client.zrem(key, member)
        oldest = await self.client.zrange(key, 0, 0, withscores=True)
        if oldest:
            _, oldest_ms = oldest[0]
            wait_ms = oldest_ms + window_ms - now_ms
        else:
            wait_ms = window_ms
        retry_after = max(1, math.ceil(wait_ms / 1000))
        logger.info("Rate limit exceeded", identifier=identifier, count=count, retry_after=retry_after)
        return RateLimitResult(allowed=False, limit=self.limit, remaining=0, retry_after=retry_after)


def create_redis_client(redis_url: Optional[str]) -> Optional[redis.Redis]:
    if not redis_url:
        logger.warning("REDIS_URL not set; resume upload rate limiting is disabled")
        return None
    return redis.from_url(redis_url, encoding="utf-8", decode_responses=True)

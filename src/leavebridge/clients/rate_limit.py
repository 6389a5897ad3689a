"""Client-side rate limiting for upstream APIs.

The HR API allows a fixed number of requests per minute. Clients acquire a
token from a token bucket before every request and wait when the bucket
is empty, so a full sync stays under the limit instead of failing with 429.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable

from pydantic import BaseModel, Field

from leavebridge.core.logging import get_logger

logger = get_logger(__name__)


class RateLimitConfig(BaseModel):
    """Token bucket parameters.

    - tokens_per_second: Refill rate (sustained throughput)
    - max_tokens: Bucket capacity (burst allowance)
    """

    tokens_per_second: float = Field(default=1.0, gt=0)
    max_tokens: float = Field(default=60.0, gt=0)

    @classmethod
    def per_minute(cls, requests_per_minute: int) -> "RateLimitConfig":
        return cls(
            tokens_per_second=requests_per_minute / 60.0,
            max_tokens=float(requests_per_minute),
        )


class TokenBucket:
    """Token bucket shared by all requests of one client.

    Tokens are added at a constant rate up to the bucket capacity; each
    request consumes one.
    """

    def __init__(
        self,
        name: str,
        config: RateLimitConfig,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.name = name
        self.config = config
        self._clock = clock
        self._sleep = sleep
        self._tokens = config.max_tokens
        self._last_refill = clock()
        self._lock = asyncio.Lock()

    @property
    def available_tokens(self) -> float:
        return self._tokens

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._last_refill
        if elapsed > 0:
            self._tokens = min(
                self.config.max_tokens,
                self._tokens + elapsed * self.config.tokens_per_second,
            )
            self._last_refill = now

    def _wait_time(self, tokens: float) -> float:
        if self._tokens >= tokens:
            return 0.0
        return (tokens - self._tokens) / self.config.tokens_per_second

    async def acquire(self, tokens: float = 1.0) -> float:
        """Take tokens, waiting until they are available.

        Returns:
            Seconds spent waiting
        """
        waited = 0.0
        async with self._lock:
            self._refill()
            wait_time = self._wait_time(tokens)
            while wait_time > 0:
                logger.debug(
                    "rate_limit_wait",
                    bucket=self.name,
                    wait_time_seconds=round(wait_time, 3),
                )
                await self._sleep(wait_time)
                waited += wait_time
                self._refill()
                wait_time = self._wait_time(tokens)
            self._tokens -= tokens
        return waited

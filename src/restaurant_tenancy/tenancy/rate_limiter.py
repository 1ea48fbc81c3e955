"""Redis-backed fixed window rate limiter, keyed by tenant."""

from __future__ import annotations

import math
import time
from collections.abc import Callable

from redis.asyncio import Redis


class TenantRateLimiter:
    """Fixed window counter per tenant.

    Each window gets its own key ``rate_limit:tenant:{tenant_id}:{bucket}``
    with ``bucket = floor(now / window)``. The key expires after one window,
    so Redis cleans up old buckets. The ``INCR`` and the ``EXPIRE NX`` that
    arms the TTL go out as one MULTI/EXEC transaction, so a cancelled request
    cannot leave a counter without an expiry, and concurrent requests from
    many workers never lose an increment.

    Redis errors propagate: when the counter store is unavailable the
    request is not admitted.
    """

    KEY_PREFIX = "rate_limit:tenant"

    def __init__(
        self,
        redis: Redis,
        *,
        window_seconds: int = 60,
        max_requests: int = 100,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._redis = redis
        self._window = window_seconds
        self._max = max_requests
        self._clock = clock

    def _window_for(self, window_seconds: int | None) -> int:
        window = self._window if window_seconds is None else window_seconds
        if window <= 0:
            raise ValueError(f"Rate limit window must be positive, got {window}")
        return window

    def bucket(self, window_seconds: int | None = None) -> int:
        window = self._window_for(window_seconds)
        return math.floor(self._clock() / window)

    def key(self, tenant_id: int, bucket: int) -> str:
        return f"{self.KEY_PREFIX}:{tenant_id}:{bucket}"

    async def check_and_increment(
        self,
        tenant_id: int | None,
        window_seconds: int | None = None,
        max_requests: int | None = None,
    ) -> bool:
        """Count one request for ``tenant_id`` and report whether it fits.

        Args:
            tenant_id: Tenant to charge. None bypasses the limiter.
            window_seconds: Override of the configured window.
            max_requests: Override of the configured budget.

        Returns:
            True while the count in the current window is within budget.
        """
        if tenant_id is None:
            return True
        window = self._window_for(window_seconds)
        limit = self._max if max_requests is None else max_requests

        key = self.key(tenant_id, self.bucket(window))
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.expire(key, window, nx=True)
            count, _ = await pipe.execute()
        return count <= limit

    def seconds_until_reset(self, window_seconds: int | None = None) -> int:
        window = self._window_for(window_seconds)
        elapsed = self._clock() % window
        return max(math.ceil(window - elapsed), 1)

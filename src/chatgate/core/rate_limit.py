"""Rate limiting and plan quota enforcement over the cache store.

The rate limiter is a fixed-window counter: requests are counted per
tenant in windows aligned to multiples of the window length, and the count
resets when the next window starts. Bursts of up to twice the limit across
a window boundary are accepted.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from chatgate.config.plans import get_plan_config

from .errors import QuotaExceededError, RateLimitError
from .interfaces import CacheStore, DurableStore

logger = structlog.get_logger()

# Monthly counters outlive the longest month
QUOTA_COUNTER_TTL = 32 * 24 * 3600


class FixedWindowRateLimiter:
    """Per-tenant fixed-window request counter."""

    def __init__(
        self,
        cache: CacheStore,
        limit: int = 100,
        window: int = 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize rate limiter.

        Args:
            cache: Cache store holding the counters
            limit: Requests allowed per window
            window: Window length in seconds
            clock: Epoch seconds source
        """
        self.cache = cache
        self.limit = limit
        self.window = window
        self._clock = clock

    def _key(self, tenant_id: str, window_index: int) -> str:
        return f"ratelimit:{tenant_id}:{window_index}"

    async def check(self, tenant_id: str) -> int:
        """Count a request against the tenant's current window.

        Args:
            tenant_id: Tenant identifier

        Returns:
            Requests remaining in the window

        Raises:
            RateLimitError: If the window is exhausted
        """
        now = self._clock()
        window_index = int(now // self.window)
        key = self._key(tenant_id, window_index)

        current = await self.cache.get(key)
        count = int(current) if current else 0

        if count >= self.limit:
            reset_at = (window_index + 1) * self.window
            logger.warning(
                "rate_limit_exceeded",
                tenant_id=tenant_id,
                limit=self.limit,
                reset_at=reset_at,
            )
            raise RateLimitError(
                reset_at=reset_at,
                retry_after=max(1, reset_at - int(now)),
                limit=self.limit,
            )

        # get-then-put is not atomic; concurrent requests may undercount
        await self.cache.put(key, str(count + 1), ttl_seconds=self.window)
        return self.limit - count - 1


def current_period(now: datetime | None = None) -> str:
    """Billing period label, e.g. `2025-01`."""
    return (now or datetime.now(UTC)).strftime("%Y-%m")


def next_period_start(now: datetime | None = None) -> int:
    """Epoch seconds at which the next billing period begins."""
    now = now or datetime.now(UTC)
    if now.month == 12:
        start = datetime(now.year + 1, 1, 1, tzinfo=UTC)
    else:
        start = datetime(now.year, now.month + 1, 1, tzinfo=UTC)
    return int(start.timestamp())


class PlanQuotaGate:
    """Monthly message quota per tenant plan."""

    def __init__(
        self,
        cache: CacheStore,
        durable: DurableStore,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        """Initialize quota gate.

        Args:
            cache: Cache store holding the monthly counters
            durable: Durable store resolving tenant tiers
            clock: Current time source
        """
        self.cache = cache
        self.durable = durable
        self._clock = clock

    def _key(self, tenant_id: str) -> str:
        return f"quota:{tenant_id}:{current_period(self._clock())}"

    async def usage(self, tenant_id: str) -> int:
        """Messages counted for the current period."""
        current = await self.cache.get(self._key(tenant_id))
        return int(current) if current else 0

    async def within_quota(self, tenant_id: str) -> bool:
        """Check whether the tenant may make another chargeable call.

        Unknown tenants pass; the caller rejects them when loading the tenant.
        """
        tenant = await self.durable.get_tenant(tenant_id)
        if tenant is None:
            return True

        plan = get_plan_config(tenant.resolved_tier)
        limit = tenant.quotas.get("monthly_messages", plan.monthly_messages)
        if limit < 0 or plan.overages_allowed:
            return True
        return await self.usage(tenant_id) < limit

    async def record(self, tenant_id: str, messages: int = 1) -> None:
        """Count completed messages against the current period."""
        count = await self.usage(tenant_id)
        await self.cache.put(
            self._key(tenant_id), str(count + messages), ttl_seconds=QUOTA_COUNTER_TTL
        )


def quota_exceeded(now: datetime | None = None) -> QuotaExceededError:
    """Build the error for a tenant over its monthly quota."""
    now = now or datetime.now(UTC)
    reset_at = next_period_start(now)
    return QuotaExceededError(
        reset_at=reset_at,
        retry_after=max(1, reset_at - int(now.timestamp())),
    )

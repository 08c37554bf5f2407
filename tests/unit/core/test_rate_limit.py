"""Tests for the fixed-window rate limiter and the plan quota gate."""

from datetime import UTC, datetime

import pytest
from helpers import InMemoryCacheStore, InMemoryDurableStore

from chatgate.core.errors import QuotaExceededError, RateLimitError
from chatgate.core.interfaces import TenantRecord
from chatgate.core.rate_limit import (
    QUOTA_COUNTER_TTL,
    FixedWindowRateLimiter,
    PlanQuotaGate,
    current_period,
    next_period_start,
    quota_exceeded,
)
from chatgate.llm.models import TenantTier


class FakeClock:
    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestFixedWindowRateLimiter:
    """Tests for FixedWindowRateLimiter."""

    @pytest.mark.asyncio
    async def test_counts_down_remaining(self):
        cache = InMemoryCacheStore()
        limiter = FixedWindowRateLimiter(cache, limit=3, window=60, clock=FakeClock(125.0))

        assert await limiter.check("t1") == 2
        assert await limiter.check("t1") == 1
        assert cache.values["ratelimit:t1:2"] == "2"
        assert cache.ttls["ratelimit:t1:2"] == 60

    @pytest.mark.asyncio
    async def test_rejects_when_window_exhausted(self):
        limiter = FixedWindowRateLimiter(
            InMemoryCacheStore(), limit=2, window=60, clock=FakeClock(125.0)
        )
        await limiter.check("t1")
        await limiter.check("t1")

        with pytest.raises(RateLimitError) as exc_info:
            await limiter.check("t1")

        assert exc_info.value.reset_at == 180
        assert exc_info.value.retry_after == 55
        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_next_window_resets_count(self):
        clock = FakeClock(125.0)
        limiter = FixedWindowRateLimiter(InMemoryCacheStore(), limit=1, window=60, clock=clock)
        await limiter.check("t1")

        clock.now = 180.0

        assert await limiter.check("t1") == 0

    @pytest.mark.asyncio
    async def test_tenants_are_counted_separately(self):
        limiter = FixedWindowRateLimiter(
            InMemoryCacheStore(), limit=1, window=60, clock=FakeClock(0.0)
        )
        await limiter.check("t1")

        assert await limiter.check("t2") == 0


class TestPlanQuotaGate:
    """Tests for PlanQuotaGate."""

    @pytest.fixture
    def now(self) -> datetime:
        return datetime(2025, 1, 15, 12, 0, tzinfo=UTC)

    @pytest.fixture
    def durable(self) -> InMemoryDurableStore:
        store = InMemoryDurableStore()
        store.add_tenant(TenantRecord(id="starter", tier=TenantTier.STARTER))
        store.add_tenant(TenantRecord(id="pro", tier=TenantTier.PRO))
        store.add_tenant(
            TenantRecord(id="custom", tier=TenantTier.STARTER, quotas={"monthly_messages": 2})
        )
        store.add_tenant(TenantRecord(id="inferred", quotas={"monthly_messages": 20_000}))
        return store

    @pytest.fixture
    def cache(self) -> InMemoryCacheStore:
        return InMemoryCacheStore()

    @pytest.fixture
    def gate(self, cache, durable, now) -> PlanQuotaGate:
        return PlanQuotaGate(cache, durable, clock=lambda: now)

    @pytest.mark.asyncio
    async def test_record_counts_per_period(self, gate, cache):
        await gate.record("starter")
        await gate.record("starter", messages=2)

        assert await gate.usage("starter") == 3
        assert cache.values["quota:starter:2025-01"] == "3"
        assert cache.ttls["quota:starter:2025-01"] == QUOTA_COUNTER_TTL

    @pytest.mark.asyncio
    async def test_tenant_quota_overrides_plan(self, gate):
        assert await gate.within_quota("custom")
        await gate.record("custom", messages=2)

        assert not await gate.within_quota("custom")

    @pytest.mark.asyncio
    async def test_starter_plan_limit(self, gate, cache):
        cache.values["quota:starter:2025-01"] = "1000"

        assert not await gate.within_quota("starter")

    @pytest.mark.asyncio
    async def test_overages_allowed(self, gate, cache):
        cache.values["quota:pro:2025-01"] = "999999"

        assert await gate.within_quota("pro")

    @pytest.mark.asyncio
    async def test_plan_follows_inferred_tier(self, gate, cache):
        cache.values["quota:inferred:2025-01"] = "999999"

        # 20k messages a month implies pro, which allows overages
        assert await gate.within_quota("inferred")

    @pytest.mark.asyncio
    async def test_unknown_tenant_passes(self, gate):
        assert await gate.within_quota("nobody")


class TestPeriods:
    def test_current_period(self):
        assert current_period(datetime(2025, 3, 31, tzinfo=UTC)) == "2025-03"

    def test_next_period_start_rolls_over_year(self):
        start = next_period_start(datetime(2024, 12, 31, 23, 59, tzinfo=UTC))

        assert start == int(datetime(2025, 1, 1, tzinfo=UTC).timestamp())

    def test_quota_exceeded_error(self):
        now = datetime(2025, 1, 31, 23, 0, tzinfo=UTC)

        error = quota_exceeded(now)

        assert isinstance(error, QuotaExceededError)
        assert error.reset_at == int(datetime(2025, 2, 1, tzinfo=UTC).timestamp())
        assert error.retry_after == 3600
        assert error.to_payload()["error"]["type"] == "quota_exceeded"

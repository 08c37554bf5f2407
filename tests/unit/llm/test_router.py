"""Tests for LLMRouter."""

import itertools

import pytest

from chatgate.llm.models import (
    PROVIDER_CAPABILITIES,
    QualityPreference,
    TenantTier,
    is_provider_allowed,
)
from chatgate.llm.router import LLMRouter, RoutingOptions, RoutingReason
from chatgate.llm.schemas import ProviderName

ALL_AVAILABLE = {p: True for p in ProviderName}
NONE_AVAILABLE = {ProviderName.EDGE: True, ProviderName.PREMIUM_A: False, ProviderName.PREMIUM_B: False}


@pytest.fixture
def router() -> LLMRouter:
    return LLMRouter()


class TestRequestedProvider:
    """Tests for explicit provider overrides."""

    def test_requested_and_allowed(self, router):
        decision = router.decide(
            RoutingOptions(tenant_tier=TenantTier.PRO, requested_provider=ProviderName.PREMIUM_B),
            ALL_AVAILABLE,
        )

        assert decision.provider == ProviderName.PREMIUM_B
        assert decision.reason == RoutingReason.REQUESTED
        assert decision.model == "gpt-4o-mini"

    def test_requested_without_credentials(self, router):
        decision = router.decide(
            RoutingOptions(tenant_tier=TenantTier.PRO, requested_provider=ProviderName.PREMIUM_A),
            NONE_AVAILABLE,
        )

        assert decision.provider == ProviderName.EDGE
        assert decision.reason == RoutingReason.REQUESTED_UNAVAILABLE

    def test_requested_premium_on_starter(self, router):
        decision = router.decide(
            RoutingOptions(
                tenant_tier=TenantTier.STARTER,
                requested_provider=ProviderName.PREMIUM_B,
            ),
            ALL_AVAILABLE,
        )

        assert decision.provider == ProviderName.EDGE
        assert decision.reason == RoutingReason.TIER_RESTRICTED

    def test_requested_but_excluded(self, router):
        options = RoutingOptions(
            tenant_tier=TenantTier.PRO,
            requested_provider=ProviderName.PREMIUM_A,
        ).excluding(ProviderName.PREMIUM_A)

        decision = router.decide(options, ALL_AVAILABLE)

        assert decision.provider == ProviderName.EDGE
        assert decision.reason == RoutingReason.REQUESTED_UNAVAILABLE

    def test_requested_edge_on_starter(self, router):
        decision = router.decide(
            RoutingOptions(tenant_tier=TenantTier.STARTER, requested_provider=ProviderName.EDGE),
            NONE_AVAILABLE,
        )

        assert decision.provider == ProviderName.EDGE
        assert decision.reason == RoutingReason.REQUESTED


class TestAutomaticSelection:
    """Tests for filtering and ranking."""

    def test_starter_gets_edge(self, router):
        decision = router.decide(RoutingOptions(tenant_tier=TenantTier.STARTER), ALL_AVAILABLE)

        assert decision.provider == ProviderName.EDGE
        assert decision.model == "@cf/meta/llama-3.1-8b-instruct"
        assert decision.reason == RoutingReason.AUTO_BALANCED

    def test_balanced_prefers_tier_default(self, router):
        decision = router.decide(RoutingOptions(tenant_tier=TenantTier.PRO), ALL_AVAILABLE)

        assert decision.provider == ProviderName.PREMIUM_A

    def test_balanced_without_tier_default_prefers_weighted_value(self, router):
        availability = {**ALL_AVAILABLE, ProviderName.PREMIUM_A: False}

        decision = router.decide(RoutingOptions(tenant_tier=TenantTier.PRO), availability)

        assert decision.provider == ProviderName.PREMIUM_B

    def test_cost_preference(self, router):
        decision = router.decide(
            RoutingOptions(tenant_tier=TenantTier.PRO, quality_preference=QualityPreference.COST),
            ALL_AVAILABLE,
        )

        assert decision.provider == ProviderName.EDGE
        assert decision.reason == RoutingReason.AUTO_COST

    def test_quality_preference_breaks_ties_by_declaration_order(self, router):
        decision = router.decide(
            RoutingOptions(
                tenant_tier=TenantTier.BUSINESS,
                quality_preference=QualityPreference.QUALITY,
            ),
            ALL_AVAILABLE,
        )

        # premium-a and premium-b share the top quality tier
        assert decision.provider == ProviderName.PREMIUM_A
        assert decision.reason == RoutingReason.AUTO_QUALITY

    def test_tools_required_on_starter_has_no_candidates(self, router):
        decision = router.decide(
            RoutingOptions(tenant_tier=TenantTier.STARTER, requires_tools=True),
            ALL_AVAILABLE,
        )

        assert decision.provider == ProviderName.EDGE
        assert decision.reason == RoutingReason.NO_CANDIDATES

    def test_tools_required_picks_tool_capable_provider(self, router):
        decision = router.decide(
            RoutingOptions(
                tenant_tier=TenantTier.PRO,
                requires_tools=True,
                quality_preference=QualityPreference.COST,
            ),
            ALL_AVAILABLE,
        )

        assert decision.provider == ProviderName.PREMIUM_B

    def test_max_tokens_filters_small_providers(self, router):
        decision = router.decide(
            RoutingOptions(
                tenant_tier=TenantTier.ENTERPRISE,
                max_tokens=10_000,
                quality_preference=QualityPreference.COST,
            ),
            ALL_AVAILABLE,
        )

        assert decision.provider == ProviderName.PREMIUM_B

    def test_tier_inferred_from_quota(self, router):
        options = RoutingOptions(monthly_messages=250_000)

        assert options.resolved_tier == TenantTier.BUSINESS
        assert router.decide(options, ALL_AVAILABLE).provider == ProviderName.PREMIUM_A

    def test_excluded_provider_is_skipped(self, router):
        options = RoutingOptions(tenant_tier=TenantTier.PRO).excluding(ProviderName.PREMIUM_A)

        decision = router.decide(options, ALL_AVAILABLE)

        assert decision.provider == ProviderName.PREMIUM_B


class TestSessionBinding:
    """Tests for sessions bound to a provider."""

    def test_bound_provider_is_kept_while_it_qualifies(self, router):
        decision = router.decide(
            RoutingOptions(
                tenant_tier=TenantTier.PRO,
                bound_provider=ProviderName.PREMIUM_B,
                bound_model="gpt-4o",
            ),
            ALL_AVAILABLE,
        )

        assert decision.provider == ProviderName.PREMIUM_B
        assert decision.model == "gpt-4o"
        assert decision.reason == RoutingReason.AUTO_BALANCED

    def test_edge_binding_released_when_tools_are_required(self, router):
        decision = router.decide(
            RoutingOptions(
                tenant_tier=TenantTier.PRO,
                bound_provider=ProviderName.EDGE,
                bound_model="@cf/meta/llama-3.1-8b-instruct",
                requires_tools=True,
            ),
            ALL_AVAILABLE,
        )

        assert decision.provider == ProviderName.PREMIUM_A
        assert decision.model == "claude-3-5-haiku-20241022"
        assert decision.reason == RoutingReason.AUTO_BALANCED

    def test_binding_released_when_max_tokens_exceed_ceiling(self, router):
        decision = router.decide(
            RoutingOptions(
                tenant_tier=TenantTier.ENTERPRISE,
                bound_provider=ProviderName.EDGE,
                max_tokens=10_000,
            ),
            ALL_AVAILABLE,
        )

        assert decision.provider != ProviderName.EDGE

    def test_excluded_bound_provider_is_not_reused(self, router):
        options = RoutingOptions(
            tenant_tier=TenantTier.PRO,
            bound_provider=ProviderName.PREMIUM_A,
        ).excluding(ProviderName.PREMIUM_A)

        assert router.decide(options, ALL_AVAILABLE).provider == ProviderName.PREMIUM_B

    def test_explicit_request_beats_binding(self, router):
        decision = router.decide(
            RoutingOptions(
                tenant_tier=TenantTier.PRO,
                requested_provider=ProviderName.PREMIUM_B,
                bound_provider=ProviderName.EDGE,
            ),
            ALL_AVAILABLE,
        )

        assert decision.provider == ProviderName.PREMIUM_B
        assert decision.reason == RoutingReason.REQUESTED


class TestModelOverride:
    """Tests for model resolution."""

    def test_override_for_same_provider(self, router):
        decision = router.decide(
            RoutingOptions(tenant_tier=TenantTier.PRO, model="claude-3-5-sonnet-20241022"),
            ALL_AVAILABLE,
        )

        assert decision.model == "claude-3-5-sonnet-20241022"

    def test_override_for_other_provider_is_ignored(self, router):
        decision = router.decide(
            RoutingOptions(tenant_tier=TenantTier.STARTER, model="gpt-4o"),
            ALL_AVAILABLE,
        )

        assert decision.provider == ProviderName.EDGE
        assert decision.model == "@cf/meta/llama-3.1-8b-instruct"

    def test_unknown_model_is_passed_through(self, router):
        decision = router.decide(
            RoutingOptions(tenant_tier=TenantTier.PRO, model="my-finetune"),
            ALL_AVAILABLE,
        )

        assert decision.model == "my-finetune"


class TestDecisionProperties:
    """Every decision names an available provider permitted for the tier."""

    @pytest.mark.parametrize(
        "tier,preference,requires_tools,requested,premium_a,premium_b",
        list(
            itertools.product(
                list(TenantTier),
                list(QualityPreference),
                [False, True],
                [None, *ProviderName],
                [False, True],
                [False, True],
            )
        ),
    )
    def test_decision_is_available_and_allowed(
        self, router, tier, preference, requires_tools, requested, premium_a, premium_b
    ):
        availability = {
            ProviderName.EDGE: True,
            ProviderName.PREMIUM_A: premium_a,
            ProviderName.PREMIUM_B: premium_b,
        }
        options = RoutingOptions(
            tenant_tier=tier,
            quality_preference=preference,
            requires_tools=requires_tools,
            requested_provider=requested,
        )

        decision = router.decide(options, availability)

        assert is_provider_allowed(decision.provider, tier, availability)
        if requires_tools and requested is None:
            capability = PROVIDER_CAPABILITIES[decision.provider]
            assert capability.supports_tools or decision.reason == RoutingReason.NO_CANDIDATES

"""Tests for the provider catalogue, tier tables and plans."""

import pytest

from chatgate.config.plans import get_model_provider, get_plan_config
from chatgate.llm.models import (
    PROVIDER_CAPABILITIES,
    TenantTier,
    estimate_cost,
    get_default_model,
    infer_tier_from_quotas,
    is_provider_allowed,
)
from chatgate.llm.schemas import ProviderName


class TestCatalogue:
    """Tests for the static capability table."""

    def test_declaration_order(self):
        assert list(PROVIDER_CAPABILITIES) == [
            ProviderName.EDGE,
            ProviderName.PREMIUM_A,
            ProviderName.PREMIUM_B,
        ]

    def test_edge_is_free_and_keyless(self):
        edge = PROVIDER_CAPABILITIES[ProviderName.EDGE]

        assert edge.cost_per_1k_tokens == 0
        assert not edge.requires_api_key
        assert not edge.supports_tools

    def test_default_models(self):
        assert get_default_model(ProviderName.PREMIUM_A) == "claude-3-5-haiku-20241022"
        assert get_default_model(ProviderName.PREMIUM_B) == "gpt-4o-mini"

    def test_estimate_cost(self):
        assert estimate_cost(ProviderName.PREMIUM_B, 600, 400) == pytest.approx(0.15)
        assert estimate_cost(ProviderName.EDGE, 600, 400) == 0


class TestTiers:
    """Tests for tier inference and permissions."""

    @pytest.mark.parametrize(
        "monthly_messages,expected",
        [
            (None, TenantTier.STARTER),
            (1_000, TenantTier.STARTER),
            (10_000, TenantTier.PRO),
            (100_000, TenantTier.BUSINESS),
            (1_000_000, TenantTier.ENTERPRISE),
            (-1, TenantTier.ENTERPRISE),
        ],
    )
    def test_infer_tier_from_quotas(self, monthly_messages, expected):
        assert infer_tier_from_quotas(monthly_messages) == expected

    def test_starter_may_not_use_premium(self):
        availability = {p: True for p in ProviderName}

        assert is_provider_allowed(ProviderName.EDGE, TenantTier.STARTER, availability)
        assert not is_provider_allowed(ProviderName.PREMIUM_A, TenantTier.STARTER, availability)

    def test_missing_credentials_disallow(self):
        availability = {ProviderName.PREMIUM_A: False}

        assert not is_provider_allowed(ProviderName.PREMIUM_A, TenantTier.PRO, availability)


class TestPlans:
    """Tests for plan configuration."""

    def test_starter_plan_has_hard_limit(self):
        plan = get_plan_config(TenantTier.STARTER)

        assert plan.monthly_messages == 1_000
        assert not plan.overages_allowed

    def test_enterprise_is_unlimited(self):
        assert get_plan_config(TenantTier.ENTERPRISE).monthly_messages == -1

    def test_model_provider_lookup(self):
        assert get_model_provider("gpt-4o") == ProviderName.PREMIUM_B
        assert get_model_provider("@cf/qwen/some-new-model") == ProviderName.EDGE
        assert get_model_provider("unknown") is None

"""Plan configurations and model ownership."""

from __future__ import annotations

from dataclasses import dataclass

from chatgate.llm.models import TenantTier
from chatgate.llm.schemas import ProviderName


@dataclass(frozen=True)
class PlanConfig:
    """Quotas and pricing for a tier. -1 means unlimited."""

    tier: TenantTier
    monthly_messages: int
    monthly_tokens: int
    overages_allowed: bool
    overage_price_per_message: float


PLANS: dict[TenantTier, PlanConfig] = {
    TenantTier.STARTER: PlanConfig(
        tier=TenantTier.STARTER,
        monthly_messages=1_000,
        monthly_tokens=100_000,
        overages_allowed=False,
        overage_price_per_message=0.03,
    ),
    TenantTier.PRO: PlanConfig(
        tier=TenantTier.PRO,
        monthly_messages=10_000,
        monthly_tokens=1_000_000,
        overages_allowed=True,
        overage_price_per_message=0.02,
    ),
    TenantTier.BUSINESS: PlanConfig(
        tier=TenantTier.BUSINESS,
        monthly_messages=50_000,
        monthly_tokens=5_000_000,
        overages_allowed=True,
        overage_price_per_message=0.01,
    ),
    TenantTier.ENTERPRISE: PlanConfig(
        tier=TenantTier.ENTERPRISE,
        monthly_messages=-1,
        monthly_tokens=-1,
        overages_allowed=True,
        overage_price_per_message=0.0,
    ),
}

MODEL_PROVIDERS: dict[str, ProviderName] = {
    # Edge models
    "@cf/meta/llama-3.1-8b-instruct": ProviderName.EDGE,
    "@cf/meta/llama-3.1-70b-instruct": ProviderName.EDGE,
    "@cf/meta/llama-3.1-8b-instruct-fp8-fast": ProviderName.EDGE,
    "@cf/meta/llama-3.3-70b-instruct-fp8-fast": ProviderName.EDGE,
    "@cf/mistral/mistral-7b-instruct-v0.1": ProviderName.EDGE,
    # Premium A
    "claude-3-5-haiku-20241022": ProviderName.PREMIUM_A,
    "claude-3-5-sonnet-20241022": ProviderName.PREMIUM_A,
    "claude-3-opus-20240229": ProviderName.PREMIUM_A,
    # Premium B
    "gpt-4o-mini": ProviderName.PREMIUM_B,
    "gpt-4o": ProviderName.PREMIUM_B,
    "gpt-4-turbo": ProviderName.PREMIUM_B,
}


def get_plan_config(tier: TenantTier) -> PlanConfig:
    """Get plan configuration for a tier."""
    return PLANS[tier]


def get_model_provider(model: str) -> ProviderName | None:
    """Get the provider serving a model.

    Edge model ids are recognised by their `@cf/` prefix even when not listed.
    """
    if model in MODEL_PROVIDERS:
        return MODEL_PROVIDERS[model]
    if model.startswith("@cf/"):
        return ProviderName.EDGE
    return None

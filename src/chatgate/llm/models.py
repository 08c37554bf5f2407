"""Provider catalogue and tier tables.

Static tables consumed by the routing engine. Declaration order of
PROVIDER_CAPABILITIES is significant: it breaks ranking ties.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from .schemas import ProviderName


class TenantTier(str, Enum):
    """Tenant subscription level."""

    STARTER = "starter"
    PRO = "pro"
    BUSINESS = "business"
    ENTERPRISE = "enterprise"


class QualityPreference(str, Enum):
    """Ranking mode for automatic provider selection."""

    COST = "cost"
    BALANCED = "balanced"
    QUALITY = "quality"


@dataclass(frozen=True)
class ProviderCapability:
    """What a provider can do and what it costs."""

    provider: ProviderName
    quality: str  # low, medium, high
    cost_per_1k_tokens: float  # USD
    max_tokens: int
    supports_tools: bool
    supports_streaming: bool
    requires_api_key: bool

    @property
    def quality_rank(self) -> int:
        return QUALITY_RANK[self.quality]


@dataclass(frozen=True)
class TierConfig:
    """Routing defaults for a tenant tier."""

    default_provider: ProviderName
    allow_premium: bool


QUALITY_RANK: dict[str, int] = {"high": 3, "medium": 2, "low": 1}

PROVIDER_CAPABILITIES: dict[ProviderName, ProviderCapability] = {
    ProviderName.EDGE: ProviderCapability(
        provider=ProviderName.EDGE,
        quality="low",
        cost_per_1k_tokens=0.0,
        max_tokens=4096,
        supports_tools=False,
        supports_streaming=True,
        requires_api_key=False,
    ),
    ProviderName.PREMIUM_A: ProviderCapability(
        provider=ProviderName.PREMIUM_A,
        quality="high",
        cost_per_1k_tokens=0.25,
        max_tokens=8192,
        supports_tools=True,
        supports_streaming=True,
        requires_api_key=True,
    ),
    ProviderName.PREMIUM_B: ProviderCapability(
        provider=ProviderName.PREMIUM_B,
        quality="high",
        cost_per_1k_tokens=0.15,
        max_tokens=16384,
        supports_tools=True,
        supports_streaming=True,
        requires_api_key=True,
    ),
}

TIER_DEFAULTS: dict[TenantTier, TierConfig] = {
    TenantTier.STARTER: TierConfig(default_provider=ProviderName.EDGE, allow_premium=False),
    TenantTier.PRO: TierConfig(default_provider=ProviderName.PREMIUM_A, allow_premium=True),
    TenantTier.BUSINESS: TierConfig(default_provider=ProviderName.PREMIUM_A, allow_premium=True),
    TenantTier.ENTERPRISE: TierConfig(default_provider=ProviderName.PREMIUM_A, allow_premium=True),
}

DEFAULT_MODELS: dict[ProviderName, str] = {
    ProviderName.EDGE: "@cf/meta/llama-3.1-8b-instruct",
    ProviderName.PREMIUM_A: "claude-3-5-haiku-20241022",
    ProviderName.PREMIUM_B: "gpt-4o-mini",
}

# Always available, free, allowed on every tier
FALLBACK_PROVIDER = ProviderName.EDGE


def get_default_model(provider: ProviderName) -> str:
    """Get the default model for a provider."""
    return DEFAULT_MODELS[provider]


def infer_tier_from_quotas(monthly_messages: int | None) -> TenantTier:
    """Infer a tenant tier from its monthly message quota.

    Args:
        monthly_messages: Monthly message quota, None when unknown

    Returns:
        Inferred tier (starter when unknown)
    """
    if monthly_messages is None:
        return TenantTier.STARTER
    if monthly_messages < 0 or monthly_messages >= 1_000_000:
        return TenantTier.ENTERPRISE
    if monthly_messages >= 100_000:
        return TenantTier.BUSINESS
    if monthly_messages >= 10_000:
        return TenantTier.PRO
    return TenantTier.STARTER


def is_premium(provider: ProviderName) -> bool:
    """Check whether a provider is billed per token."""
    return PROVIDER_CAPABILITIES[provider].cost_per_1k_tokens > 0


def is_provider_allowed(
    provider: ProviderName,
    tier: TenantTier,
    availability: Mapping[ProviderName, bool],
) -> bool:
    """Check whether a provider is reachable for a tenant tier.

    Args:
        provider: Provider to check
        tier: Tenant tier
        availability: Credential availability per provider

    Returns:
        True if the tier allows it and its credentials are present
    """
    capability = PROVIDER_CAPABILITIES[provider]
    if not TIER_DEFAULTS[tier].allow_premium and is_premium(provider):
        return False
    if capability.requires_api_key and not availability.get(provider, False):
        return False
    return True


def estimate_cost(provider: ProviderName, prompt_tokens: int, completion_tokens: int) -> float:
    """Estimate the USD cost of a completion.

    Args:
        provider: Provider that served the completion
        prompt_tokens: Number of input tokens
        completion_tokens: Number of output tokens

    Returns:
        Estimated cost in USD
    """
    total_tokens = prompt_tokens + completion_tokens
    return (total_tokens / 1000) * PROVIDER_CAPABILITIES[provider].cost_per_1k_tokens

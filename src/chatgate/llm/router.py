"""Routing engine for provider selection.

Picks a provider and model from tenant tier, request features and explicit
overrides. The decision is a pure function of its inputs and never raises;
when nothing better qualifies it resolves to the always-available edge
provider.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum

import structlog

from chatgate.config.plans import get_model_provider

from .models import (
    FALLBACK_PROVIDER,
    PROVIDER_CAPABILITIES,
    TIER_DEFAULTS,
    ProviderCapability,
    QualityPreference,
    TenantTier,
    TierConfig,
    get_default_model,
    infer_tier_from_quotas,
    is_premium,
)
from .schemas import ProviderName

logger = structlog.get_logger()


class RoutingReason(str, Enum):
    """Machine-readable routing reason tags."""

    REQUESTED = "requested"
    REQUESTED_UNAVAILABLE = "requested_unavailable"
    TIER_RESTRICTED = "tier_restricted"
    AUTO_COST = "auto_cost"
    AUTO_QUALITY = "auto_quality"
    AUTO_BALANCED = "auto_balanced"
    NO_CANDIDATES = "no_candidates"


AUTO_REASONS: dict[QualityPreference, RoutingReason] = {
    QualityPreference.COST: RoutingReason.AUTO_COST,
    QualityPreference.QUALITY: RoutingReason.AUTO_QUALITY,
    QualityPreference.BALANCED: RoutingReason.AUTO_BALANCED,
}


@dataclass(frozen=True)
class RoutingOptions:
    """Request features consumed by the routing engine.

    Attributes:
        tenant_tier: Tenant tier; inferred from monthly_messages when None
        monthly_messages: Tenant monthly message quota (tier inference only)
        requested_provider: Explicit provider override
        model: Explicit model override
        bound_provider: Provider an existing session is bound to; kept only
            while it qualifies for the request
        bound_model: Model of the bound session, used with bound_provider
        requires_tools: Request declares tools
        requires_streaming: Request asks for a stream
        quality_preference: Ranking mode for automatic selection
        max_tokens: Requested completion ceiling
        excluded_providers: Providers that already failed for this request
    """

    tenant_tier: TenantTier | None = None
    monthly_messages: int | None = None
    requested_provider: ProviderName | None = None
    model: str | None = None
    bound_provider: ProviderName | None = None
    bound_model: str | None = None
    requires_tools: bool = False
    requires_streaming: bool = False
    quality_preference: QualityPreference = QualityPreference.BALANCED
    max_tokens: int | None = None
    excluded_providers: frozenset[ProviderName] = field(default_factory=frozenset)

    def excluding(self, provider: ProviderName) -> RoutingOptions:
        """Copy of these options with one more provider excluded."""
        return replace(self, excluded_providers=self.excluded_providers | {provider})

    @property
    def resolved_tier(self) -> TenantTier:
        return self.tenant_tier or infer_tier_from_quotas(self.monthly_messages)


@dataclass(frozen=True)
class RoutingDecision:
    """Routing result. Not persisted."""

    provider: ProviderName
    model: str
    reason: RoutingReason


class LLMRouter:
    """Decides which provider and model serve a request."""

    def decide(
        self,
        options: RoutingOptions,
        availability: Mapping[ProviderName, bool],
    ) -> RoutingDecision:
        """Route a request.

        Args:
            options: Request features and overrides
            availability: Credential availability per provider

        Returns:
            Decision naming an available provider permitted for the tier
        """
        tier = options.resolved_tier
        tier_config = TIER_DEFAULTS[tier]

        if options.requested_provider is not None:
            provider, reason = self._honour_request(
                options.requested_provider, options, tier_config, availability
            )
        elif self._keeps_binding(options, tier_config, availability):
            provider = options.bound_provider
            reason = AUTO_REASONS[options.quality_preference]
        else:
            provider, reason = self._select_best(options, tier_config, availability)

        model = options.model
        if model is None and provider == options.bound_provider:
            model = options.bound_model

        decision = RoutingDecision(
            provider=provider,
            model=self._resolve_model(provider, model),
            reason=reason,
        )
        logger.info(
            "routing_decided",
            provider=decision.provider.value,
            model=decision.model,
            reason=decision.reason.value,
            tier=tier.value,
        )
        return decision

    def _honour_request(
        self,
        requested: ProviderName,
        options: RoutingOptions,
        tier_config: TierConfig,
        availability: Mapping[ProviderName, bool],
    ) -> tuple[ProviderName, RoutingReason]:
        capability = PROVIDER_CAPABILITIES[requested]

        if requested in options.excluded_providers or (
            capability.requires_api_key and not availability.get(requested, False)
        ):
            return FALLBACK_PROVIDER, RoutingReason.REQUESTED_UNAVAILABLE
        if not tier_config.allow_premium and is_premium(requested):
            return FALLBACK_PROVIDER, RoutingReason.TIER_RESTRICTED
        return requested, RoutingReason.REQUESTED

    def _keeps_binding(
        self,
        options: RoutingOptions,
        tier_config: TierConfig,
        availability: Mapping[ProviderName, bool],
    ) -> bool:
        if options.bound_provider is None:
            return False
        capability = PROVIDER_CAPABILITIES[options.bound_provider]
        if self._qualifies(capability, options, tier_config, availability):
            return True
        logger.info(
            "session_binding_released",
            provider=options.bound_provider.value,
            requires_tools=options.requires_tools,
            max_tokens=options.max_tokens,
        )
        return False

    def _select_best(
        self,
        options: RoutingOptions,
        tier_config: TierConfig,
        availability: Mapping[ProviderName, bool],
    ) -> tuple[ProviderName, RoutingReason]:
        candidates = [
            capability
            for capability in PROVIDER_CAPABILITIES.values()
            if self._qualifies(capability, options, tier_config, availability)
        ]
        if not candidates:
            return FALLBACK_PROVIDER, RoutingReason.NO_CANDIDATES

        preference = options.quality_preference
        # list.sort is stable: ties keep catalogue declaration order
        if preference == QualityPreference.COST:
            candidates.sort(key=lambda c: c.cost_per_1k_tokens)
        elif preference == QualityPreference.QUALITY:
            candidates.sort(key=lambda c: -c.quality_rank)
        else:
            candidates.sort(key=lambda c: _balanced_key(c, tier_config))

        return candidates[0].provider, AUTO_REASONS[preference]

    @staticmethod
    def _qualifies(
        capability: ProviderCapability,
        options: RoutingOptions,
        tier_config: TierConfig,
        availability: Mapping[ProviderName, bool],
    ) -> bool:
        if capability.provider in options.excluded_providers:
            return False
        if not tier_config.allow_premium and capability.cost_per_1k_tokens > 0:
            return False
        if capability.requires_api_key and not availability.get(capability.provider, False):
            return False
        if options.requires_tools and not capability.supports_tools:
            return False
        if options.requires_streaming and not capability.supports_streaming:
            return False
        if options.max_tokens and options.max_tokens > capability.max_tokens:
            return False
        return True

    @staticmethod
    def _resolve_model(provider: ProviderName, model: str | None) -> str:
        if not model:
            return get_default_model(provider)
        owner = get_model_provider(model)
        if owner is not None and owner != provider:
            logger.warning(
                "model_override_ignored",
                model=model,
                model_provider=owner.value,
                provider=provider.value,
            )
            return get_default_model(provider)
        return model


def _balanced_key(capability: ProviderCapability, tier_config: TierConfig) -> tuple[int, float]:
    # Tier default first, then the higher weighted cost x quality
    score = 2 if capability.quality == "high" else 1
    is_default = capability.provider == tier_config.default_provider
    return (0 if is_default else 1, -(capability.cost_per_1k_tokens * score))

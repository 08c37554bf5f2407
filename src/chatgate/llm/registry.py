"""Provider registry.

Constructed once at process start and passed into request handlers; there
is no module-level provider state.
"""

from __future__ import annotations

import httpx
import structlog

from chatgate.api.config import GatewaySettings, ProviderSettings

from .providers import AnthropicAdapter, EdgeAdapter, OpenAIAdapter, ProviderAdapter
from .schemas import ProviderName

logger = structlog.get_logger()


class ProviderRegistry:
    """Adapters keyed by provider name."""

    def __init__(
        self,
        adapters: dict[ProviderName, ProviderAdapter] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize registry.

        Args:
            adapters: Initial adapters keyed by provider
            client: HTTP client shared by the adapters, closed by aclose()
        """
        self._adapters: dict[ProviderName, ProviderAdapter] = dict(adapters or {})
        self._client = client

    @classmethod
    def from_settings(
        cls,
        provider_settings: ProviderSettings,
        gateway_settings: GatewaySettings,
        client: httpx.AsyncClient | None = None,
    ) -> ProviderRegistry:
        """Build the registry with every built-in adapter.

        Args:
            provider_settings: Credentials and endpoints
            gateway_settings: Orchestration settings (synthetic fallback)
            client: Optional HTTP client; one is created when omitted

        Returns:
            Registry holding edge, premium-a and premium-b adapters
        """
        http = client or httpx.AsyncClient(timeout=provider_settings.request_timeout)
        registry = cls(client=http)
        registry.register(
            ProviderName.EDGE,
            EdgeAdapter(
                provider_settings,
                http,
                synthetic_fallback=gateway_settings.synthetic_fallback_enabled,
            ),
        )
        registry.register(ProviderName.PREMIUM_A, AnthropicAdapter(provider_settings, http))
        registry.register(ProviderName.PREMIUM_B, OpenAIAdapter(provider_settings, http))

        logger.info(
            "provider_registry_initialized",
            available=[p.value for p, ok in registry.availability().items() if ok],
        )
        return registry

    def register(self, provider: ProviderName, adapter: ProviderAdapter) -> None:
        """Register or replace the adapter for a provider."""
        self._adapters[provider] = adapter

    def get(self, provider: ProviderName) -> ProviderAdapter:
        """Get adapter by provider.

        Raises:
            KeyError: If no adapter is registered for the provider
        """
        return self._adapters[provider]

    def availability(self) -> dict[ProviderName, bool]:
        """Credential availability for every provider in declaration order."""
        return {
            provider: provider in self._adapters and self._adapters[provider].is_available()
            for provider in ProviderName
        }

    async def aclose(self) -> None:
        """Close the shared HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

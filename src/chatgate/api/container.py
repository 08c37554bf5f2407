"""Process-wide component wiring.

Everything a request handler needs is constructed once at start-up and
reached through `app.state.container`; there are no module-level singletons.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import httpx
import structlog

from chatgate.cache import RedisCacheStore, RedisClient, SessionCache
from chatgate.core.interfaces import Authenticator, CacheStore, DurableStore
from chatgate.core.rate_limit import FixedWindowRateLimiter, PlanQuotaGate
from chatgate.db import DatabaseSessionManager, SqlDurableStore
from chatgate.llm.fallback import FallbackExecutor
from chatgate.llm.registry import ProviderRegistry
from chatgate.llm.router import LLMRouter
from chatgate.orchestrator import ChatService, ProviderSummarizer, StreamingOrchestrator
from chatgate.tools.executor import ToolExecutor

from .auth import ApiKeyAuthenticator
from .config import (
    CacheSettings,
    GatewaySettings,
    get_cache_settings,
    get_database_settings,
    get_gateway_settings,
    get_provider_settings,
)

logger = structlog.get_logger()


@dataclass
class GatewayContainer:
    """Components shared by every request."""

    registry: ProviderRegistry
    cache_store: CacheStore
    durable: DurableStore
    session_cache: SessionCache
    service: ChatService
    authenticator: Authenticator
    settings: GatewaySettings
    _closers: list[Callable[[], Awaitable[None]]] = field(default_factory=list)

    @classmethod
    def build(
        cls,
        registry: ProviderRegistry,
        cache_store: CacheStore,
        durable: DurableStore,
        authenticator: Authenticator,
        http_client: httpx.AsyncClient,
        gateway_settings: GatewaySettings | None = None,
        cache_settings: CacheSettings | None = None,
    ) -> GatewayContainer:
        """Wire the orchestration components around the given backends.

        Args:
            registry: Provider registry
            cache_store: Volatile key/value store
            durable: Durable store
            authenticator: API key authenticator
            http_client: HTTP client for custom tool endpoints
            gateway_settings: Orchestration settings
            cache_settings: Cache TTL settings

        Returns:
            Wired container
        """
        gateway_settings = gateway_settings or get_gateway_settings()
        cache_settings = cache_settings or get_cache_settings()

        session_cache = SessionCache(
            cache_store,
            durable,
            session_ttl=cache_settings.session_ttl,
            message_ttl=cache_settings.message_ttl,
            history_limit=gateway_settings.history_limit,
        )
        router = LLMRouter()
        orchestrator = StreamingOrchestrator(
            registry,
            FallbackExecutor(router, registry),
            ToolExecutor(session_cache, http_client),
            max_tool_rounds=gateway_settings.max_tool_rounds,
        )
        service = ChatService(
            orchestrator=orchestrator,
            session_cache=session_cache,
            durable=durable,
            rate_limiter=FixedWindowRateLimiter(
                cache_store,
                limit=gateway_settings.rate_limit_requests,
                window=gateway_settings.rate_limit_window,
            ),
            quota_gate=PlanQuotaGate(cache_store, durable),
            settings=gateway_settings,
            summarizer=ProviderSummarizer(registry),
        )
        return cls(
            registry=registry,
            cache_store=cache_store,
            durable=durable,
            session_cache=session_cache,
            service=service,
            authenticator=authenticator,
            settings=gateway_settings,
        )

    @classmethod
    async def from_settings(cls) -> GatewayContainer:
        """Connect Redis and the database and wire every component."""
        provider_settings = get_provider_settings()
        cache_settings = get_cache_settings()
        database_settings = get_database_settings()
        gateway_settings = get_gateway_settings()

        redis_client = RedisClient(
            cache_settings.redis_url,
            max_connections=cache_settings.redis_max_connections,
        )
        await redis_client.connect()

        manager = DatabaseSessionManager(
            database_settings.url,
            pool_size=database_settings.pool_size,
            max_overflow=database_settings.max_overflow,
        )
        durable = SqlDurableStore(manager)

        http_client = httpx.AsyncClient(timeout=provider_settings.request_timeout)
        registry = ProviderRegistry.from_settings(
            provider_settings, gateway_settings, client=http_client
        )

        container = cls.build(
            registry=registry,
            cache_store=RedisCacheStore(redis_client),
            durable=durable,
            authenticator=ApiKeyAuthenticator(durable),
            http_client=http_client,
            gateway_settings=gateway_settings,
            cache_settings=cache_settings,
        )
        container._closers.extend([registry.aclose, manager.close, redis_client.close])
        logger.info("gateway_container_ready", environment=gateway_settings.environment)
        return container

    async def aclose(self) -> None:
        """Release connections in reverse order of acquisition."""
        for close in self._closers:
            await close()
        self._closers.clear()

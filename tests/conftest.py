"""
Pytest configuration and fixtures
"""

from collections.abc import AsyncIterator

import httpx
import pytest
from helpers import InMemoryCacheStore, InMemoryDurableStore

from chatgate.api.config import GatewaySettings, ProviderSettings
from chatgate.cache.session_cache import SessionCache
from chatgate.core.interfaces import TenantRecord
from chatgate.llm.models import TenantTier
from chatgate.llm.providers.edge import EdgeAdapter
from chatgate.tools.executor import ToolExecutor


@pytest.fixture
def cache_store() -> InMemoryCacheStore:
    """In-memory volatile tier."""
    return InMemoryCacheStore()


@pytest.fixture
def durable_store() -> InMemoryDurableStore:
    """In-memory durable tier."""
    return InMemoryDurableStore()


@pytest.fixture
def tenant(durable_store: InMemoryDurableStore) -> TenantRecord:
    """Starter tenant allowed to use the built-in tools."""
    return durable_store.add_tenant(
        TenantRecord(
            id="tenant-1",
            name="Acme",
            tier=TenantTier.STARTER,
            allowed_tools=["sessions_list", "sessions_send"],
        )
    )


@pytest.fixture
def session_cache(
    cache_store: InMemoryCacheStore,
    durable_store: InMemoryDurableStore,
) -> SessionCache:
    return SessionCache(cache_store, durable_store)


@pytest.fixture
def provider_settings() -> ProviderSettings:
    """Provider settings without any credentials."""
    return ProviderSettings(
        _env_file=None,
        anthropic_api_key=None,
        openai_api_key=None,
        edge_account_id=None,
        edge_api_token=None,
    )


@pytest.fixture
def gateway_settings() -> GatewaySettings:
    return GatewaySettings(_env_file=None, environment="development")


@pytest.fixture
async def http_client() -> AsyncIterator[httpx.AsyncClient]:
    """HTTP client answering 404 to everything."""
    async with httpx.AsyncClient(
        transport=httpx.MockTransport(lambda request: httpx.Response(404))
    ) as client:
        yield client


@pytest.fixture
def tool_executor(session_cache: SessionCache, http_client: httpx.AsyncClient) -> ToolExecutor:
    return ToolExecutor(session_cache, http_client)


@pytest.fixture
def edge_adapter(
    provider_settings: ProviderSettings,
    http_client: httpx.AsyncClient,
) -> EdgeAdapter:
    """Edge adapter serving synthetic development answers."""
    return EdgeAdapter(provider_settings, http_client, synthetic_fallback=True)

"""Gateway configuration settings.

Provides settings for provider credentials, caching, orchestration limits,
the durable store and the HTTP edge.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from chatgate.llm.models import QualityPreference


class ProviderSettings(BaseSettings):
    """Backend credentials and endpoints.

    A provider whose credentials are absent reports itself unavailable.
    """

    anthropic_api_key: str | None = Field(default=None, description="Premium-A API key")
    anthropic_base_url: str = Field(
        default="https://api.anthropic.com/v1/messages",
        description="Premium-A messages endpoint",
    )
    anthropic_version: str = Field(default="2023-06-01", description="anthropic-version header")

    openai_api_key: str | None = Field(default=None, description="Premium-B API key")
    openai_base_url: str = Field(
        default="https://api.openai.com/v1/chat/completions",
        description="Premium-B chat completions endpoint",
    )

    edge_account_id: str | None = Field(default=None, description="Edge account ID")
    edge_api_token: str | None = Field(default=None, description="Edge API token")
    edge_base_url: str = Field(
        default="https://api.cloudflare.com/client/v4/accounts",
        description="Edge REST API base URL",
    )

    request_timeout: float = Field(default=60.0, description="Backend request timeout (s)")

    model_config = SettingsConfigDict(
        env_prefix="PROVIDER_",
        env_file=".env",
        extra="ignore",
    )


class CacheSettings(BaseSettings):
    """Redis cache settings."""

    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )
    redis_max_connections: int = Field(
        default=20,
        description="Maximum number of Redis connections",
    )

    # TTL settings (in seconds)
    session_ttl: int = Field(default=300, description="Volatile session metadata TTL")
    message_ttl: int = Field(default=3600, description="Cached message history TTL")

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        env_file=".env",
        extra="ignore",
    )


class GatewaySettings(BaseSettings):
    """Orchestration behaviour."""

    environment: str = Field(default="development", description="development or production")
    edge_dev_fallback: bool = Field(
        default=True,
        description="Serve synthetic edge responses without credentials (never in production)",
    )
    max_tool_rounds: int = Field(default=5, ge=1, description="Tool execution rounds per turn")
    rate_limit_requests: int = Field(default=100, description="Requests per window")
    rate_limit_window: int = Field(default=60, description="Rate limit window (s)")
    default_quality_preference: QualityPreference = Field(
        default=QualityPreference.BALANCED,
        description="Ranking mode when the caller expresses none",
    )
    history_limit: int = Field(default=100, description="Messages loaded from the durable tier")
    heartbeat_interval: float = Field(
        default=15.0, description="Idle seconds before an SSE keep-alive comment"
    )

    model_config = SettingsConfigDict(
        env_prefix="GATEWAY_",
        env_file=".env",
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def synthetic_fallback_enabled(self) -> bool:
        return self.edge_dev_fallback and not self.is_production


class DatabaseSettings(BaseSettings):
    """Durable store settings."""

    url: str = Field(
        default="postgresql+asyncpg://localhost:5432/chatgate",
        description="SQLAlchemy async database URL",
    )
    pool_size: int = Field(default=10, description="Persistent pool connections")
    max_overflow: int = Field(default=20, description="Additional connections beyond pool")

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        env_file=".env",
        extra="ignore",
    )


class APISettings(BaseSettings):
    """General API settings."""

    title: str = Field(default="chatgate", description="API title")
    description: str = Field(
        default="Multi-tenant LLM orchestration gateway",
        description="API description",
    )
    version: str = Field(default="0.1.0", description="API version")
    debug: bool = Field(default=False, description="Enable debug mode")
    api_prefix: str = Field(default="/v1", description="API route prefix")

    model_config = SettingsConfigDict(
        env_prefix="API_",
        env_file=".env",
        extra="ignore",
    )


@lru_cache
def get_provider_settings() -> ProviderSettings:
    """Get cached provider settings."""
    return ProviderSettings()


@lru_cache
def get_cache_settings() -> CacheSettings:
    """Get cached cache settings."""
    return CacheSettings()


@lru_cache
def get_gateway_settings() -> GatewaySettings:
    """Get cached gateway settings."""
    return GatewaySettings()


@lru_cache
def get_database_settings() -> DatabaseSettings:
    """Get cached database settings."""
    return DatabaseSettings()


@lru_cache
def get_api_settings() -> APISettings:
    """Get cached API settings."""
    return APISettings()

"""Collaborator interfaces consumed by the orchestration core.

Storage, caching, authentication and quota enforcement live behind these
protocols. Every durable call is keyed by tenant id so that one tenant can
never address another tenant's rows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

from pydantic import BaseModel, Field

from chatgate.llm.models import TenantTier, infer_tier_from_quotas
from chatgate.llm.schemas import ChatMessage, CustomTool, ProviderName


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class AuthContext:
    """Identity resolved for a request."""

    tenant_id: str
    scopes: frozenset[str] = field(default_factory=frozenset)

    def has_scope(self, scope: str) -> bool:
        return "*" in self.scopes or scope in self.scopes


class TenantRecord(BaseModel):
    """Tenant as seen by the core: tier, allowed tools and quotas."""

    id: str
    name: str = ""
    tier: TenantTier | None = None
    allowed_tools: list[str] = Field(default_factory=list)
    custom_tools: list[CustomTool] = Field(default_factory=list)
    quotas: dict[str, int] = Field(default_factory=dict)
    system_prompt: str | None = None

    @property
    def monthly_messages(self) -> int | None:
        return self.quotas.get("monthly_messages")

    @property
    def resolved_tier(self) -> TenantTier:
        """Explicit tier, else the tier implied by the monthly message quota."""
        return self.tier or infer_tier_from_quotas(self.monthly_messages)


class CachedSession(BaseModel):
    """Session metadata plus message history.

    The volatile copy is TTL-bound; the durable copy is authoritative.
    """

    id: str
    tenant_id: str
    model: str
    provider: ProviderName
    messages: list[ChatMessage] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class DurableStore(Protocol):
    """Authoritative storage of tenants, sessions and messages."""

    async def get_tenant(self, tenant_id: str) -> TenantRecord | None: ...

    async def get_session(self, tenant_id: str, session_id: str) -> CachedSession | None:
        """Get session metadata. The returned session carries no messages."""
        ...

    async def put_session(self, session: CachedSession) -> None:
        """Create or update session metadata."""
        ...

    async def append_messages(
        self,
        tenant_id: str,
        session_id: str,
        messages: list[ChatMessage],
    ) -> None: ...

    async def list_messages(
        self,
        tenant_id: str,
        session_id: str,
        before: datetime | None = None,
        limit: int | None = None,
    ) -> list[ChatMessage]:
        """List messages in chronological order.

        With a limit, the most recent `limit` messages are returned.
        """
        ...

    async def delete_messages(self, tenant_id: str, session_id: str) -> None: ...

    async def replace_messages(
        self,
        tenant_id: str,
        session_id: str,
        messages: list[ChatMessage],
    ) -> None: ...

    async def list_sessions(
        self,
        tenant_id: str,
        limit: int = 10,
        offset: int = 0,
    ) -> tuple[list[CachedSession], int]:
        """List sessions, most recently updated first, with the total count."""
        ...


class CacheStore(Protocol):
    """Key/value store with TTL. Single-key operations only."""

    async def get(self, key: str) -> str | None: ...

    async def put(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, key: str) -> None: ...


class QuotaGate(Protocol):
    """Checked before any chargeable provider call."""

    async def within_quota(self, tenant_id: str) -> bool: ...

    async def record(self, tenant_id: str, messages: int = 1) -> None:
        """Count completed messages against the tenant's quota."""
        ...


class Authenticator(Protocol):
    """Resolves a bearer API key to a tenant identity."""

    async def authenticate(self, api_key: str) -> AuthContext:
        """Authenticate an API key.

        Raises:
            AuthenticationError: If the key is unknown or revoked
        """
        ...


class Summarizer(Protocol):
    """Condenses a message history into a single summary text."""

    async def summarize(self, messages: list[ChatMessage]) -> str: ...

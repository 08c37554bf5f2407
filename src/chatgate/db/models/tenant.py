"""Tenant and API key models."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, TEXT, VARCHAR, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, utcnow


class Tenant(Base):
    """Isolated customer account.

    Attributes:
        id: Primary key
        name: Display name
        tier: Subscription tier; inferred from quotas when null
        status: active, suspended or deleted
        allowed_tools: Tool names the tenant may execute
        custom_tools: Tenant-defined tool declarations
        quotas: Quota overrides (monthly_messages, monthly_tokens)
        system_prompt: Prepended to conversations without a system message
    """

    __tablename__ = "tenants"

    id: Mapped[str] = mapped_column(VARCHAR(64), primary_key=True)
    name: Mapped[str] = mapped_column(VARCHAR(255), default="")
    tier: Mapped[str | None] = mapped_column(VARCHAR(20), index=True)
    status: Mapped[str] = mapped_column(VARCHAR(20), default="active", index=True)
    allowed_tools: Mapped[list[str]] = mapped_column(JSON, default=list)
    custom_tools: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    quotas: Mapped[dict[str, int]] = mapped_column(JSON, default=dict)
    system_prompt: Mapped[str | None] = mapped_column(TEXT)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, tier={self.tier})>"


class ApiKey(Base):
    """Hashed API key resolving to a tenant.

    Attributes:
        id: Primary key
        tenant_id: Owning tenant
        key_hash: SHA-256 hex digest of the key
        scopes: Granted permission scopes
        status: active or revoked
    """

    __tablename__ = "api_keys"

    id: Mapped[str] = mapped_column(VARCHAR(64), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"), index=True
    )
    key_hash: Mapped[str] = mapped_column(VARCHAR(64), unique=True, index=True)
    scopes: Mapped[list[str]] = mapped_column(JSON, default=list)
    status: Mapped[str] = mapped_column(VARCHAR(20), default="active")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"<ApiKey(id={self.id}, tenant_id={self.tenant_id})>"

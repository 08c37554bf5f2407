"""Session and message models."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, TEXT, VARCHAR, DateTime, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, utcnow


class Session(Base):
    """Conversation thread owned by one tenant.

    Attributes:
        id: Primary key (`sess_<hex>`)
        tenant_id: Owning tenant
        model: Model bound to the session
        provider: Provider bound to the session
        session_metadata: Thinking level and other per-session options
        status: active, archived or deleted
    """

    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(VARCHAR(64), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"), index=True
    )
    model: Mapped[str] = mapped_column(VARCHAR(255))
    provider: Mapped[str] = mapped_column(VARCHAR(20))
    session_metadata: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, default=dict)
    status: Mapped[str] = mapped_column(VARCHAR(20), default="active", index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        return f"<Session(id={self.id}, tenant_id={self.tenant_id})>"


class Message(Base):
    """Chat message within a session. Ordered by id."""

    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(VARCHAR(64), index=True)
    session_id: Mapped[str] = mapped_column(
        ForeignKey("sessions.id", ondelete="CASCADE"), index=True
    )
    role: Mapped[str] = mapped_column(VARCHAR(20))
    content: Mapped[str] = mapped_column(TEXT, default="")
    tool_calls: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON(none_as_null=True))
    tool_call_id: Mapped[str | None] = mapped_column(VARCHAR(255))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )

    def __repr__(self) -> str:
        return f"<Message(id={self.id}, session_id={self.session_id}, role={self.role})>"

"""Session and message repositories.

Every query is filtered by tenant id.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.session import Message, Session
from .base import BaseRepository


class SessionRepository(BaseRepository[Session]):
    """Repository for Session model operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize session repository.

        Args:
            session: Database session
        """
        super().__init__(Session, session)

    async def upsert(self, tenant_id: str, session_id: str, **values: Any) -> Session:
        """Create the session or update its fields.

        A session id already owned by another tenant is never touched.

        Raises:
            ValueError: If the id belongs to another tenant
        """
        existing = await self.get_for_tenant(tenant_id, session_id)
        if existing is None:
            if await self.is_claimed_elsewhere(tenant_id, session_id):
                raise ValueError(f"Session {session_id} belongs to another tenant")
            return await self.create(id=session_id, tenant_id=tenant_id, **values)

        for key, value in values.items():
            setattr(existing, key, value)
        await self.session.flush()
        return existing

    async def list_for_tenant(
        self, tenant_id: str, limit: int = 10, offset: int = 0
    ) -> tuple[list[Session], int]:
        """List active sessions, most recently updated first.

        Returns:
            Tuple of (sessions page, total active sessions)
        """
        active = Session.status == "active"
        stmt = (
            self.scoped(tenant_id, active)
            .order_by(Session.updated_at.desc(), Session.id)
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        total = await self.session.scalar(
            select(func.count()).select_from(Session).where(Session.tenant_id == tenant_id, active)
        )
        return list(result.scalars().all()), total or 0


class MessageRepository(BaseRepository[Message]):
    """Repository for Message model operations."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(Message, session)

    async def add_many(self, rows: list[dict[str, Any]]) -> None:
        self.session.add_all([Message(**row) for row in rows])
        await self.session.flush()

    async def list_for_session(
        self,
        tenant_id: str,
        session_id: str,
        before: datetime | None = None,
        limit: int | None = None,
    ) -> list[Message]:
        """List messages in chronological order.

        Args:
            tenant_id: Owning tenant
            session_id: Session ID
            before: Only messages created before this instant
            limit: Keep only the most recent `limit` messages

        Returns:
            Messages, oldest first
        """
        stmt = self.scoped(tenant_id, Message.session_id == session_id)
        if before is not None:
            stmt = stmt.where(Message.created_at < before)
        stmt = stmt.order_by(Message.id.desc())
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await self.session.execute(stmt)
        return list(reversed(result.scalars().all()))

    async def delete_for_session(self, tenant_id: str, session_id: str) -> int:
        """Delete a session's messages.

        Returns:
            Number of deleted messages
        """
        result = await self.session.execute(
            delete(Message).where(
                Message.tenant_id == tenant_id, Message.session_id == session_id
            )
        )
        return result.rowcount or 0

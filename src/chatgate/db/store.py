"""Durable store over SQLAlchemy.

Implements the durable-store interface of the orchestration core. Each call
runs in its own transaction and every query carries the tenant id.
"""

from __future__ import annotations

from datetime import datetime
from uuid import uuid4

import structlog

from chatgate.core.errors import NotFoundError
from chatgate.core.interfaces import CachedSession, TenantRecord
from chatgate.llm.models import TenantTier
from chatgate.llm.schemas import ChatMessage, CustomTool, ProviderName, Role, ToolCall

from .models.session import Message, Session
from .models.tenant import Tenant
from .repository import ApiKeyRepository, MessageRepository, SessionRepository, TenantRepository
from .session import DatabaseSessionManager

logger = structlog.get_logger()


class SqlDurableStore:
    """Authoritative tier for tenants, sessions and messages."""

    def __init__(self, manager: DatabaseSessionManager) -> None:
        """Initialize store.

        Args:
            manager: Database session manager
        """
        self.manager = manager

    # Tenants

    async def get_tenant(self, tenant_id: str) -> TenantRecord | None:
        async with self.manager.transaction() as db:
            tenant = await TenantRepository(db).get_active(tenant_id)
            return _to_tenant_record(tenant) if tenant else None

    async def add_tenant(self, record: TenantRecord) -> None:
        """Insert a tenant."""
        async with self.manager.transaction() as db:
            await TenantRepository(db).create(
                id=record.id,
                name=record.name,
                tier=record.tier.value if record.tier else None,
                allowed_tools=list(record.allowed_tools),
                custom_tools=[tool.model_dump(mode="json") for tool in record.custom_tools],
                quotas=dict(record.quotas),
                system_prompt=record.system_prompt,
            )

    async def add_api_key(self, tenant_id: str, key_hash: str, scopes: list[str]) -> str:
        """Register a hashed API key.

        Returns:
            Key record ID
        """
        key_id = f"key_{uuid4().hex}"
        async with self.manager.transaction() as db:
            await ApiKeyRepository(db).create(
                id=key_id, tenant_id=tenant_id, key_hash=key_hash, scopes=scopes
            )
        return key_id

    async def resolve_api_key(self, key_hash: str) -> tuple[str, list[str]] | None:
        """Resolve a hashed key to (tenant_id, scopes) and record its use."""
        async with self.manager.transaction() as db:
            repo = ApiKeyRepository(db)
            key = await repo.get_active_by_hash(key_hash)
            if key is None:
                return None
            await repo.touch(key.id)
            return key.tenant_id, list(key.scopes or [])

    # Sessions

    async def get_session(self, tenant_id: str, session_id: str) -> CachedSession | None:
        async with self.manager.transaction() as db:
            row = await SessionRepository(db).get_for_tenant(tenant_id, session_id)
            return _to_cached_session(row) if row else None

    async def put_session(self, session: CachedSession) -> None:
        async with self.manager.transaction() as db:
            try:
                await SessionRepository(db).upsert(
                    session.tenant_id,
                    session.id,
                    model=session.model,
                    provider=session.provider.value,
                    session_metadata=dict(session.metadata),
                    updated_at=session.updated_at,
                )
            except ValueError as e:
                # Do not reveal that the id exists for another tenant
                raise NotFoundError("Session", session.id) from e

    async def list_sessions(
        self,
        tenant_id: str,
        limit: int = 10,
        offset: int = 0,
    ) -> tuple[list[CachedSession], int]:
        async with self.manager.transaction() as db:
            rows, total = await SessionRepository(db).list_for_tenant(tenant_id, limit, offset)
            return [_to_cached_session(row) for row in rows], total

    # Messages

    async def append_messages(
        self,
        tenant_id: str,
        session_id: str,
        messages: list[ChatMessage],
    ) -> None:
        if not messages:
            return
        async with self.manager.transaction() as db:
            if await SessionRepository(db).get_for_tenant(tenant_id, session_id) is None:
                raise NotFoundError("Session", session_id)
            await MessageRepository(db).add_many(
                [_message_row(tenant_id, session_id, m) for m in messages]
            )

    async def list_messages(
        self,
        tenant_id: str,
        session_id: str,
        before: datetime | None = None,
        limit: int | None = None,
    ) -> list[ChatMessage]:
        async with self.manager.transaction() as db:
            rows = await MessageRepository(db).list_for_session(
                tenant_id, session_id, before=before, limit=limit
            )
            return [_to_chat_message(row) for row in rows]

    async def delete_messages(self, tenant_id: str, session_id: str) -> None:
        async with self.manager.transaction() as db:
            deleted = await MessageRepository(db).delete_for_session(tenant_id, session_id)
        logger.info(
            "session_messages_deleted",
            tenant_id=tenant_id,
            session_id=session_id,
            count=deleted,
        )

    async def replace_messages(
        self,
        tenant_id: str,
        session_id: str,
        messages: list[ChatMessage],
    ) -> None:
        async with self.manager.transaction() as db:
            repo = MessageRepository(db)
            await repo.delete_for_session(tenant_id, session_id)
            if messages:
                await repo.add_many([_message_row(tenant_id, session_id, m) for m in messages])


def _to_tenant_record(tenant: Tenant) -> TenantRecord:
    return TenantRecord(
        id=tenant.id,
        name=tenant.name,
        tier=TenantTier(tenant.tier) if tenant.tier else None,
        allowed_tools=list(tenant.allowed_tools or []),
        custom_tools=[CustomTool.model_validate(t) for t in tenant.custom_tools or []],
        quotas=dict(tenant.quotas or {}),
        system_prompt=tenant.system_prompt,
    )


def _to_cached_session(row: Session) -> CachedSession:
    return CachedSession(
        id=row.id,
        tenant_id=row.tenant_id,
        model=row.model,
        provider=ProviderName(row.provider),
        metadata=dict(row.session_metadata or {}),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _message_row(tenant_id: str, session_id: str, message: ChatMessage) -> dict[str, object]:
    return {
        "tenant_id": tenant_id,
        "session_id": session_id,
        "role": message.role.value,
        "content": message.content,
        "tool_calls": (
            [tc.model_dump(mode="json") for tc in message.tool_calls]
            if message.tool_calls
            else None
        ),
        "tool_call_id": message.tool_call_id,
    }


def _to_chat_message(row: Message) -> ChatMessage:
    return ChatMessage(
        role=Role(row.role),
        content=row.content,
        tool_calls=[ToolCall.model_validate(tc) for tc in row.tool_calls] if row.tool_calls else None,
        tool_call_id=row.tool_call_id,
    )

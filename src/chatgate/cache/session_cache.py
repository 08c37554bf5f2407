"""Two-tier session cache.

Volatile tier: the cache store, holding session metadata and message
history under TTLs. Durable tier: the durable store, authoritative and
without TTL. Writes go through to the durable tier synchronously and to the
volatile tier opportunistically. Reads consult the volatile tier first and
repopulate it from the durable tier on a miss.

Concurrent updates to one session are last-writer-wins in both tiers.
"""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import TypeAdapter

from chatgate.core.errors import NotFoundError
from chatgate.core.interfaces import (
    CachedSession,
    CacheStore,
    DurableStore,
    Summarizer,
    utcnow,
)
from chatgate.llm.schemas import ChatMessage, Role

logger = structlog.get_logger()

_messages_adapter = TypeAdapter(list[ChatMessage])

SUMMARY_PREFIX = "Summary of the previous conversation:"


def trim_history(messages: list[ChatMessage], limit: int | None) -> list[ChatMessage]:
    """Keep the most recent messages without orphaning tool results.

    A tool message whose assistant tool call fell outside the window is
    dropped, so the history never opens on a dangling tool result.

    Args:
        messages: History, oldest first
        limit: Most recent messages to keep, None for all

    Returns:
        Trimmed history
    """
    window = messages[-limit:] if limit is not None else messages
    known_calls: set[str] = set()
    kept: list[ChatMessage] = []
    for message in window:
        if message.role == Role.TOOL and message.tool_call_id not in known_calls:
            continue
        known_calls.update(call.id for call in message.tool_calls or [])
        kept.append(message)
    return kept


class SessionCache:
    """Sole owner of session state reads and writes during a request."""

    def __init__(
        self,
        cache: CacheStore,
        durable: DurableStore,
        session_ttl: int = 300,
        message_ttl: int = 3600,
        history_limit: int | None = 100,
    ) -> None:
        """Initialize session cache.

        Args:
            cache: Volatile key/value tier
            durable: Authoritative tier
            session_ttl: TTL of cached session metadata in seconds
            message_ttl: TTL of cached message history in seconds
            history_limit: Most recent messages loaded from the durable tier
        """
        self.cache = cache
        self.durable = durable
        self.session_ttl = session_ttl
        self.message_ttl = message_ttl
        self.history_limit = history_limit

    @staticmethod
    def _session_key(tenant_id: str, session_id: str) -> str:
        return f"session:{tenant_id}:{session_id}"

    @classmethod
    def _messages_key(cls, tenant_id: str, session_id: str) -> str:
        return f"{cls._session_key(tenant_id, session_id)}:messages"

    # Volatile tier

    async def get(self, tenant_id: str, session_id: str) -> CachedSession | None:
        """Get a session from the volatile tier only.

        Returns:
            Cached session, or None on a miss
        """
        try:
            meta = await self.cache.get(self._session_key(tenant_id, session_id))
            if meta is None:
                return None
            raw_messages = await self.cache.get(self._messages_key(tenant_id, session_id))
        except Exception as e:
            logger.warning(
                "session_cache_read_failed",
                tenant_id=tenant_id,
                session_id=session_id,
                error=str(e),
            )
            return None

        if raw_messages is None:
            return None

        session = CachedSession.model_validate_json(meta)
        session.messages = _messages_adapter.validate_json(raw_messages)
        return session

    async def _write_volatile(self, session: CachedSession) -> None:
        meta = session.model_dump_json(exclude={"messages"})
        messages = _messages_adapter.dump_json(session.messages).decode()
        try:
            await self.cache.put(
                self._session_key(session.tenant_id, session.id),
                meta,
                ttl_seconds=self.session_ttl,
            )
            await self.cache.put(
                self._messages_key(session.tenant_id, session.id),
                messages,
                ttl_seconds=self.message_ttl,
            )
        except Exception as e:
            # Durable tier stays authoritative; the next read repopulates
            logger.warning(
                "session_cache_write_failed",
                tenant_id=session.tenant_id,
                session_id=session.id,
                error=str(e),
            )

    async def invalidate(self, tenant_id: str, session_id: str) -> None:
        """Drop the volatile entry so the next read goes to the durable tier."""
        await self.cache.delete(self._session_key(tenant_id, session_id))
        await self.cache.delete(self._messages_key(tenant_id, session_id))
        logger.debug("session_cache_invalidated", tenant_id=tenant_id, session_id=session_id)

    # Read-through

    async def load(self, tenant_id: str, session_id: str) -> CachedSession | None:
        """Get a session, reading through to the durable tier on a miss.

        Returns:
            Session with its recent history, or None if it does not exist
        """
        cached = await self.get(tenant_id, session_id)
        if cached is not None:
            logger.debug("session_cache_hit", tenant_id=tenant_id, session_id=session_id)
            return cached

        session = await self.durable.get_session(tenant_id, session_id)
        if session is None:
            return None

        session.messages = trim_history(
            await self.durable.list_messages(tenant_id, session_id, limit=self.history_limit),
            self.history_limit,
        )
        await self._write_volatile(session)
        logger.debug(
            "session_cache_warmed",
            tenant_id=tenant_id,
            session_id=session_id,
            message_count=len(session.messages),
        )
        return session

    async def warm(self, tenant_id: str, session_id: str) -> bool:
        """Populate the volatile tier from the durable tier if absent.

        Idempotent and read-only towards the durable tier.

        Returns:
            True if the session exists
        """
        return await self.load(tenant_id, session_id) is not None

    # Write-through

    async def put(self, session: CachedSession) -> None:
        """Store session metadata durably and refresh the volatile copy."""
        session.updated_at = utcnow()
        await self.durable.put_session(session)
        await self._write_volatile(session)

    async def record_turn(self, session: CachedSession, new_messages: list[ChatMessage]) -> None:
        """Persist the messages of a completed turn.

        Args:
            session: Session as loaded at the start of the turn
            new_messages: Messages the turn added, in order
        """
        session.updated_at = utcnow()
        await self.durable.put_session(session)
        await self.durable.append_messages(session.tenant_id, session.id, new_messages)

        session.messages = trim_history([*session.messages, *new_messages], self.history_limit)
        await self._write_volatile(session)
        logger.info(
            "session_turn_recorded",
            tenant_id=session.tenant_id,
            session_id=session.id,
            message_count=len(new_messages),
        )

    async def append_messages(
        self,
        tenant_id: str,
        session_id: str,
        messages: list[ChatMessage],
    ) -> None:
        """Append messages to a session other than the one being served.

        Raises:
            NotFoundError: If the session does not belong to the tenant
        """
        session = await self.durable.get_session(tenant_id, session_id)
        if session is None:
            raise NotFoundError("Session", session_id)

        session.updated_at = utcnow()
        await self.durable.append_messages(tenant_id, session_id, messages)
        await self.durable.put_session(session)
        await self.invalidate(tenant_id, session_id)

    async def list_sessions(
        self,
        tenant_id: str,
        limit: int = 10,
        offset: int = 0,
    ) -> tuple[list[CachedSession], int]:
        """List the tenant's sessions from the durable tier."""
        return await self.durable.list_sessions(tenant_id, limit=limit, offset=offset)

    async def reset(
        self,
        tenant_id: str,
        session_id: str,
        summarizer: Summarizer | None = None,
    ) -> dict[str, Any]:
        """Reset a session's history.

        Clears the volatile entry, then deletes the durable history, or
        truncates it to a single summary message when a summarizer is given.

        Raises:
            NotFoundError: If the session does not belong to the tenant
        """
        session = await self.durable.get_session(tenant_id, session_id)
        if session is None:
            raise NotFoundError("Session", session_id)

        await self.invalidate(tenant_id, session_id)

        summary: str | None = None
        if summarizer is not None:
            history = await self.durable.list_messages(tenant_id, session_id)
            summary = await summarizer.summarize(history)
            await self.durable.replace_messages(
                tenant_id,
                session_id,
                [ChatMessage(role=Role.SYSTEM, content=f"{SUMMARY_PREFIX} {summary}")],
            )
        else:
            await self.durable.delete_messages(tenant_id, session_id)

        session.updated_at = utcnow()
        await self.durable.put_session(session)
        logger.info(
            "session_reset",
            tenant_id=tenant_id,
            session_id=session_id,
            summarized=summary is not None,
        )
        return {"sessionId": session_id, "summarized": summary is not None}

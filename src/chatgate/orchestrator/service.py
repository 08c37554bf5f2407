"""Chat service.

End-to-end handling of one chat request: admission (scope, rate limit,
quota), tenant and session loading, routing options, conversation assembly
and persistence of the completed turn.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from uuid import uuid4

import structlog

from chatgate.api.config import GatewaySettings
from chatgate.cache.session_cache import SessionCache
from chatgate.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from chatgate.core.interfaces import (
    AuthContext,
    CachedSession,
    DurableStore,
    QuotaGate,
    Summarizer,
    TenantRecord,
)
from chatgate.core.rate_limit import FixedWindowRateLimiter, quota_exceeded
from chatgate.llm.models import get_default_model
from chatgate.llm.router import RoutingOptions
from chatgate.llm.schemas import ChatMessage, CompletionRequest, ProviderName, Role
from chatgate.tools.executor import ToolContext, get_available_tools

from .sse import validate_accept
from .streaming import StreamingOrchestrator, Turn, TurnOutcome

logger = structlog.get_logger()

CHAT_SCOPE = "chat"


def new_session_id() -> str:
    return f"sess_{uuid4().hex}"


def new_response_id() -> str:
    return f"chatcmpl_{uuid4().hex}"


@dataclass
class PreparedTurn:
    """A turn admitted for execution."""

    tenant: TenantRecord
    session: CachedSession
    turn: Turn


class ChatService:
    """Serves chat completions for authenticated tenants."""

    def __init__(
        self,
        orchestrator: StreamingOrchestrator,
        session_cache: SessionCache,
        durable: DurableStore,
        rate_limiter: FixedWindowRateLimiter,
        quota_gate: QuotaGate,
        settings: GatewaySettings,
        summarizer: Summarizer | None = None,
    ) -> None:
        """Initialize chat service.

        Args:
            orchestrator: Runs provider rounds and the tool loop
            session_cache: Two-tier session cache
            durable: Durable store (tenants)
            rate_limiter: Per-tenant request limiter
            quota_gate: Monthly quota gate
            settings: Gateway settings
            summarizer: Optional hook for summary-preserving resets
        """
        self.orchestrator = orchestrator
        self.session_cache = session_cache
        self.durable = durable
        self.rate_limiter = rate_limiter
        self.quota_gate = quota_gate
        self.settings = settings
        self.summarizer = summarizer

    async def prepare(
        self,
        auth: AuthContext,
        request: CompletionRequest,
        accept: str | None = None,
    ) -> PreparedTurn:
        """Admit a request and build its turn.

        Every check runs before any provider call, so a rejected request
        produces no partial output.

        Args:
            auth: Authenticated identity
            request: Chat completion request; its messages are the new input
            accept: Client Accept header, checked for streaming requests

        Returns:
            Prepared turn

        Raises:
            PermissionDeniedError: If the key lacks the chat scope
            ValidationError: If a stream was requested the client cannot accept
            RateLimitError: If the tenant exceeded its request rate
            QuotaExceededError: If the tenant exhausted its monthly quota
            NotFoundError: If the tenant or the requested session is unknown
        """
        if not auth.has_scope(CHAT_SCOPE):
            raise PermissionDeniedError(f"API key lacks the '{CHAT_SCOPE}' scope")
        if request.stream:
            validate_accept(accept)

        tenant_id = auth.tenant_id
        await self.rate_limiter.check(tenant_id)
        if not await self.quota_gate.within_quota(tenant_id):
            logger.warning("quota_exceeded", tenant_id=tenant_id)
            raise quota_exceeded()

        tenant = await self.durable.get_tenant(tenant_id)
        if tenant is None:
            raise NotFoundError("Tenant", tenant_id)

        session = await self._load_session(tenant, request)
        structlog.contextvars.bind_contextvars(tenant_id=tenant_id, session_id=session.id)
        request = self._offer_permitted_tools(tenant, request)

        is_new = request.session_id is None
        options = RoutingOptions(
            tenant_tier=tenant.tier,
            monthly_messages=tenant.monthly_messages,
            requested_provider=request.provider,
            model=request.model,
            bound_provider=None if is_new else session.provider,
            bound_model=None if is_new else session.model,
            requires_tools=request.requires_tools,
            requires_streaming=request.stream,
            quality_preference=self.settings.default_quality_preference,
            max_tokens=request.max_tokens,
        )

        conversation = self._conversation(tenant, session, request.messages)
        tool_context = ToolContext(
            tenant_id=tenant_id,
            session_id=session.id,
            allowed_tools=frozenset(tenant.allowed_tools),
            custom_tools=tuple(tenant.custom_tools),
        )

        async def on_done(outcome: TurnOutcome) -> None:
            session.provider = outcome.provider
            session.model = outcome.model
            if request.thinking_level is not None:
                session.metadata["thinkingLevel"] = request.thinking_level.value
            await self.session_cache.record_turn(
                session, [*request.messages, *outcome.messages]
            )
            await self.quota_gate.record(tenant_id)

        turn = Turn(
            request=request.model_copy(update={"messages": conversation}),
            options=options,
            tool_context=tool_context,
            on_done=on_done,
        )
        return PreparedTurn(tenant=tenant, session=session, turn=turn)

    async def complete(self, auth: AuthContext, request: CompletionRequest) -> dict:
        """Serve a non-streaming request.

        Returns:
            Wire response `{id, tenantId, sessionId, provider, ...result}`
        """
        prepared = await self.prepare(auth, request)
        outcome = await self.orchestrator.complete(prepared.turn)
        return outcome.to_result().to_response(
            new_response_id(),
            prepared.tenant.id,
            prepared.session.id,
            outcome.provider,
        )

    async def stream(
        self,
        auth: AuthContext,
        request: CompletionRequest,
        accept: str | None = None,
    ) -> tuple[str, AsyncIterator[str]]:
        """Admit a streaming request.

        Returns:
            Session id and the SSE event iterator of the turn
        """
        prepared = await self.prepare(auth, request, accept)
        return prepared.session.id, self.orchestrator.stream(prepared.turn)

    async def reset_session(
        self,
        auth: AuthContext,
        session_id: str,
        summarize: bool = False,
    ) -> dict:
        """Reset a session's history, optionally keeping a summary.

        Raises:
            PermissionDeniedError: If the key lacks the chat scope
            ValidationError: If a summary was requested but no summarizer is set
            NotFoundError: If the session does not belong to the tenant
        """
        if not auth.has_scope(CHAT_SCOPE):
            raise PermissionDeniedError(f"API key lacks the '{CHAT_SCOPE}' scope")
        if summarize and self.summarizer is None:
            raise ValidationError("Summarizing reset is not available")

        return await self.session_cache.reset(
            auth.tenant_id,
            session_id,
            summarizer=self.summarizer if summarize else None,
        )

    async def _load_session(
        self,
        tenant: TenantRecord,
        request: CompletionRequest,
    ) -> CachedSession:
        if request.session_id is not None:
            session = await self.session_cache.load(tenant.id, request.session_id)
            if session is None:
                raise NotFoundError("Session", request.session_id)
            return session

        # Persisted only once the first turn completes
        provider = request.provider or ProviderName.EDGE
        return CachedSession(
            id=new_session_id(),
            tenant_id=tenant.id,
            provider=provider,
            model=request.model or get_default_model(provider),
        )

    @staticmethod
    def _offer_permitted_tools(
        tenant: TenantRecord,
        request: CompletionRequest,
    ) -> CompletionRequest:
        # Only tools the tenant may execute are offered to the model
        if not request.tools:
            return request
        permitted = {
            tool.name for tool in get_available_tools(tenant.allowed_tools, tenant.custom_tools)
        }
        offered = [tool for tool in request.tools if tool.name in permitted]
        if len(offered) < len(request.tools):
            logger.info(
                "tools_not_offered",
                tools=[tool.name for tool in request.tools if tool.name not in permitted],
            )
        return request.model_copy(update={"tools": offered or None})

    @staticmethod
    def _conversation(
        tenant: TenantRecord,
        session: CachedSession,
        new_messages: list[ChatMessage],
    ) -> list[ChatMessage]:
        conversation = [*session.messages, *new_messages]
        if tenant.system_prompt and not any(m.role == Role.SYSTEM for m in conversation):
            conversation.insert(0, ChatMessage(role=Role.SYSTEM, content=tenant.system_prompt))
        return conversation

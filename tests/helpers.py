"""In-memory fakes shared by the test suite."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from datetime import datetime

from chatgate.api.config import ProviderSettings
from chatgate.core.interfaces import CachedSession, TenantRecord
from chatgate.llm.fallback import FallbackExecutor
from chatgate.llm.registry import ProviderRegistry
from chatgate.llm.router import LLMRouter
from chatgate.llm.schemas import (
    ChatMessage,
    CompletionRequest,
    CompletionResult,
    FinishReason,
    ProviderName,
    StreamChunk,
    StreamDelta,
    ToolCallChunk,
    UsageInfo,
)
from chatgate.orchestrator.streaming import StreamingOrchestrator
from chatgate.tools.executor import ToolExecutor


class InMemoryCacheStore:
    """Cache store keeping values in a dict; TTLs are recorded, not enforced."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.fail_writes = False

    async def get(self, key: str) -> str | None:
        return self.values.get(key)

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        if self.fail_writes:
            raise ConnectionError("cache unavailable")
        self.values[key] = value
        self.ttls[key] = ttl_seconds

    async def delete(self, key: str) -> None:
        self.values.pop(key, None)
        self.ttls.pop(key, None)


class InMemoryDurableStore:
    """Durable store over dicts, keyed by tenant id like the SQL store."""

    def __init__(self) -> None:
        self.tenants: dict[str, TenantRecord] = {}
        self.sessions: dict[tuple[str, str], CachedSession] = {}
        self.messages: dict[tuple[str, str], list[ChatMessage]] = {}
        self.append_calls = 0

    def add_tenant(self, tenant: TenantRecord) -> TenantRecord:
        self.tenants[tenant.id] = tenant
        return tenant

    async def get_tenant(self, tenant_id: str) -> TenantRecord | None:
        return self.tenants.get(tenant_id)

    async def get_session(self, tenant_id: str, session_id: str) -> CachedSession | None:
        session = self.sessions.get((tenant_id, session_id))
        return session.model_copy(update={"messages": []}, deep=True) if session else None

    async def put_session(self, session: CachedSession) -> None:
        self.sessions[(session.tenant_id, session.id)] = session.model_copy(
            update={"messages": []}, deep=True
        )

    async def append_messages(
        self, tenant_id: str, session_id: str, messages: list[ChatMessage]
    ) -> None:
        self.append_calls += 1
        self.messages.setdefault((tenant_id, session_id), []).extend(messages)

    async def list_messages(
        self,
        tenant_id: str,
        session_id: str,
        before: datetime | None = None,
        limit: int | None = None,
    ) -> list[ChatMessage]:
        messages = list(self.messages.get((tenant_id, session_id), []))
        return messages[-limit:] if limit else messages

    async def delete_messages(self, tenant_id: str, session_id: str) -> None:
        self.messages.pop((tenant_id, session_id), None)

    async def replace_messages(
        self, tenant_id: str, session_id: str, messages: list[ChatMessage]
    ) -> None:
        self.messages[(tenant_id, session_id)] = list(messages)

    async def list_sessions(
        self, tenant_id: str, limit: int = 10, offset: int = 0
    ) -> tuple[list[CachedSession], int]:
        owned = sorted(
            (s for (t, _), s in self.sessions.items() if t == tenant_id),
            key=lambda s: s.updated_at,
            reverse=True,
        )
        return owned[offset : offset + limit], len(owned)


class ScriptedAdapter:
    """Provider adapter replaying scripted results.

    Each complete() or stream() call consumes the next scripted item. A
    scripted exception is raised instead of answering; with `fail_after`
    set, stream() first emits that many content chunks.
    """

    def __init__(
        self,
        name: ProviderName,
        results: list[CompletionResult | Exception],
        available: bool = True,
        chunk_size: int = 4,
        fail_after: int | None = None,
    ) -> None:
        self.name = name.value
        self.native_streaming = True
        self.results = list(results)
        self.available = available
        self.chunk_size = chunk_size
        self.fail_after = fail_after
        self.requests: list[CompletionRequest] = []
        self.closed_streams = 0

    def is_available(self, settings: ProviderSettings | None = None) -> bool:
        return self.available

    def _next(self, request: CompletionRequest) -> CompletionResult | Exception:
        self.requests.append(request)
        return self.results.pop(0)

    async def complete(self, request: CompletionRequest) -> CompletionResult:
        result = self._next(request)
        if isinstance(result, Exception):
            raise result
        return result

    async def stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        result = self._next(request)
        try:
            if isinstance(result, Exception):
                for index in range(self.fail_after or 0):
                    yield StreamChunk(delta=StreamDelta(content=f"part{index} "))
                raise result

            for start in range(0, len(result.content), self.chunk_size):
                yield StreamChunk(
                    delta=StreamDelta(content=result.content[start : start + self.chunk_size])
                )
            if result.tool_calls:
                yield StreamChunk(
                    delta=StreamDelta(
                        tool_calls=[
                            ToolCallChunk(
                                index=i,
                                id=tc.id,
                                type="function",
                                name=tc.name,
                                arguments=json.dumps(tc.arguments),
                            )
                            for i, tc in enumerate(result.tool_calls)
                        ]
                    )
                )
            yield StreamChunk(finish_reason=result.finish_reason, usage=result.usage)
        finally:
            self.closed_streams += 1


def make_result(
    content: str = "Hello there!",
    prompt_tokens: int = 5,
    completion_tokens: int = 3,
    finish_reason: FinishReason = FinishReason.STOP,
    model: str = "test-model",
    **kwargs,
) -> CompletionResult:
    return CompletionResult(
        content=content,
        finish_reason=finish_reason,
        usage=UsageInfo(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
        ),
        model=model,
        **kwargs,
    )


def build_orchestrator(
    registry: ProviderRegistry,
    tool_executor: ToolExecutor,
    max_tool_rounds: int = 5,
) -> StreamingOrchestrator:
    return StreamingOrchestrator(
        registry,
        FallbackExecutor(LLMRouter(), registry),
        tool_executor,
        max_tool_rounds=max_tool_rounds,
    )


async def collect(events: AsyncIterator[str]) -> list[str]:
    return [event async for event in events]


def parse_events(events: list[str]) -> list[dict | str]:
    """Decode `data:` events; the sentinel stays a string, comments are dropped."""
    parsed: list[dict | str] = []
    for event in events:
        if not event.startswith("data: "):
            continue
        data = event[len("data: ") :].strip()
        parsed.append(data if data == "[DONE]" else json.loads(data))
    return parsed

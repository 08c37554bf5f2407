"""Streaming orchestrator.

Runs one conversation turn against the routed provider: pulls the adapter
stream one chunk at a time, forwards every chunk as an SSE event, collects
content and tool calls, runs the tool loop between rounds and persists the
turn once it completed. The non-streaming path runs the same loop over
`complete()` and yields no intermediate events.

Per request state: START -> STREAMING -> DONE, or ERROR / CANCELLED. Nothing
is persisted unless DONE is reached.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from uuid import uuid4

import structlog

from chatgate.core.errors import GatewayError, InternalError, ProviderError
from chatgate.llm.fallback import FallbackExecutor
from chatgate.llm.providers.base import ProviderAdapter, parse_tool_arguments
from chatgate.llm.registry import ProviderRegistry
from chatgate.llm.router import RoutingDecision, RoutingOptions
from chatgate.llm.schemas import (
    ChatMessage,
    CompletionRequest,
    CompletionResult,
    FinishReason,
    ProviderName,
    Role,
    StreamChunk,
    ToolCall,
    ToolCallChunk,
    UsageInfo,
)
from chatgate.tools.executor import (
    ToolContext,
    ToolExecutor,
    parse_tool_calls_from_text,
    strip_tool_call_markup,
    tool_results_to_messages,
)

from .sse import DONE_EVENT, format_chunk, format_error

logger = structlog.get_logger()


class StreamState(str, Enum):
    START = "start"
    STREAMING = "streaming"
    DONE = "done"
    ERROR = "error"
    CANCELLED = "cancelled"


@dataclass
class TurnOutcome:
    """Result of a completed turn.

    Attributes:
        provider: Provider that served the turn
        model: Model reported for the last round
        content: Concatenated assistant text of every round
        messages: Assistant and tool messages the turn produced, in order
        tool_calls: Tool calls of the last round left unexecuted
        finish_reason: Finish reason of the last round
        usage: Usage summed over all rounds
        synthetic: True if any round was a development placeholder
    """

    provider: ProviderName
    model: str
    content: str = ""
    messages: list[ChatMessage] = field(default_factory=list)
    tool_calls: list[ToolCall] | None = None
    finish_reason: FinishReason = FinishReason.STOP
    usage: UsageInfo = field(default_factory=UsageInfo)
    synthetic: bool = False

    def to_result(self) -> CompletionResult:
        return CompletionResult(
            content=self.content,
            tool_calls=self.tool_calls,
            finish_reason=self.finish_reason,
            usage=self.usage,
            model=self.model,
            synthetic=self.synthetic,
        )


@dataclass
class Turn:
    """Everything the orchestrator needs for one request.

    Attributes:
        request: Request carrying the full conversation sent to the provider
        options: Routing options for the first provider call
        tool_context: Tenant scope for tool execution
        on_done: Persists the completed turn
    """

    request: CompletionRequest
    options: RoutingOptions
    tool_context: ToolContext
    on_done: Callable[[TurnOutcome], Awaitable[None]]


class ToolCallAccumulator:
    """Assembles streamed tool call fragments by index."""

    def __init__(self) -> None:
        self._calls: dict[int, dict[str, str]] = {}

    def add(self, chunk: ToolCallChunk) -> None:
        call = self._calls.setdefault(chunk.index, {"id": "", "name": "", "arguments": ""})
        if chunk.id:
            call["id"] = chunk.id
        if chunk.name:
            call["name"] = chunk.name
        if chunk.arguments:
            call["arguments"] += chunk.arguments

    def build(self) -> list[ToolCall]:
        return [
            ToolCall(
                id=call["id"] or f"call_{uuid4().hex[:12]}",
                name=call["name"],
                arguments=parse_tool_arguments(call["arguments"]),
            )
            for _, call in sorted(self._calls.items())
            if call["name"]
        ]


class StreamingOrchestrator:
    """Drives provider rounds and the tool loop for a turn."""

    def __init__(
        self,
        registry: ProviderRegistry,
        fallback: FallbackExecutor,
        tool_executor: ToolExecutor,
        max_tool_rounds: int = 5,
    ) -> None:
        """Initialize orchestrator.

        Args:
            registry: Provider registry
            fallback: Fallback chain used for the first provider call
            tool_executor: Tool execution loop
            max_tool_rounds: Tool rounds before a final call without tools
        """
        self.registry = registry
        self.fallback = fallback
        self.tool_executor = tool_executor
        self.max_tool_rounds = max_tool_rounds

    def _round_request(
        self,
        turn: Turn,
        decision: RoutingDecision,
        conversation: list[ChatMessage],
        forced_final: bool,
    ) -> CompletionRequest:
        return turn.request.model_copy(
            update={
                "messages": list(conversation),
                "model": decision.model,
                "provider": decision.provider,
                "tools": None if forced_final else turn.request.tools,
            }
        )

    def _pending_tool_calls(
        self,
        turn: Turn,
        content: str,
        tool_calls: list[ToolCall],
        forced_final: bool,
    ) -> list[ToolCall]:
        if forced_final or not turn.request.requires_tools:
            return []
        if tool_calls:
            return tool_calls
        # Best-effort fallback for models that write tool calls as text
        return parse_tool_calls_from_text(content)

    async def _run_tools(
        self,
        turn: Turn,
        conversation: list[ChatMessage],
        produced: list[ChatMessage],
        content: str,
        tool_calls: list[ToolCall],
        round_index: int,
    ) -> None:
        logger.info(
            "tool_round_start",
            round=round_index + 1,
            tool_call_count=len(tool_calls),
        )
        assistant = ChatMessage(
            role=Role.ASSISTANT,
            content=strip_tool_call_markup(content),
            tool_calls=tool_calls,
        )
        results = await self.tool_executor.execute_all(tool_calls, turn.tool_context)
        tool_messages = tool_results_to_messages(results)
        conversation.extend([assistant, *tool_messages])
        produced.extend([assistant, *tool_messages])

    # Non-streaming

    async def complete(self, turn: Turn) -> TurnOutcome:
        """Run a turn over `complete()`.

        Returns:
            Completed turn, already persisted

        Raises:
            GatewayError: If a provider call fails; nothing is persisted
        """

        async def first_call(decision: RoutingDecision) -> CompletionResult:
            adapter = self.registry.get(decision.provider)
            return await adapter.complete(
                self._round_request(turn, decision, turn.request.messages, self.max_tool_rounds == 0)
            )

        decision, result = await self.fallback.run(turn.options, first_call)
        adapter = self.registry.get(decision.provider)

        conversation = list(turn.request.messages)
        outcome = TurnOutcome(provider=decision.provider, model=decision.model)
        contents: list[str] = []

        for round_index in range(self.max_tool_rounds + 1):
            forced_final = round_index == self.max_tool_rounds
            if round_index > 0:
                result = await adapter.complete(
                    self._round_request(turn, decision, conversation, forced_final)
                )

            contents.append(result.content)
            outcome.usage = outcome.usage + result.usage
            outcome.model = result.model or decision.model
            outcome.synthetic = outcome.synthetic or result.synthetic

            pending = self._pending_tool_calls(
                turn, result.content, result.tool_calls or [], forced_final
            )
            if not pending:
                outcome.finish_reason = result.finish_reason
                outcome.tool_calls = result.tool_calls
                outcome.messages.append(
                    ChatMessage(
                        role=Role.ASSISTANT,
                        content=result.content,
                        tool_calls=result.tool_calls,
                    )
                )
                break
            await self._run_tools(
                turn, conversation, outcome.messages, result.content, pending, round_index
            )

        outcome.content = "".join(contents)
        await turn.on_done(outcome)
        logger.info(
            "turn_completed",
            provider=outcome.provider.value,
            model=outcome.model,
            finish_reason=outcome.finish_reason.value,
            total_tokens=outcome.usage.total_tokens,
            streamed=False,
        )
        return outcome

    # Streaming

    async def stream(self, turn: Turn) -> AsyncIterator[str]:
        """Run a turn over `stream()`, yielding SSE events.

        The last event is always the `[DONE]` sentinel, preceded by an error
        event when the turn failed. Closing the iterator early (client
        disconnect) stops pulling from the provider and persists nothing.
        """
        state = StreamState.START
        sent = False
        source: AsyncIterator[StreamChunk] | None = None

        async def open_first(
            decision: RoutingDecision,
        ) -> tuple[AsyncIterator[StreamChunk], StreamChunk]:
            adapter = self.registry.get(decision.provider)
            return await self._open(
                adapter,
                self._round_request(turn, decision, turn.request.messages, self.max_tool_rounds == 0),
            )

        try:
            decision, (source, first) = await self.fallback.run(
                turn.options, open_first, output_sent=lambda: sent
            )
            adapter = self.registry.get(decision.provider)
            state = StreamState.STREAMING

            conversation = list(turn.request.messages)
            outcome = TurnOutcome(provider=decision.provider, model=decision.model)
            contents: list[str] = []
            pending_first: StreamChunk | None = first

            for round_index in range(self.max_tool_rounds + 1):
                forced_final = round_index == self.max_tool_rounds
                if round_index > 0:
                    source, pending_first = await self._open(
                        adapter, self._round_request(turn, decision, conversation, forced_final)
                    )

                parts: list[str] = []
                accumulator = ToolCallAccumulator()
                terminal: StreamChunk | None = None

                chunk: StreamChunk | None = pending_first
                while chunk is not None:
                    if chunk.delta.content:
                        parts.append(chunk.delta.content)
                    for tool_chunk in chunk.delta.tool_calls or []:
                        accumulator.add(tool_chunk)
                    if chunk.finish_reason is not None:
                        terminal = chunk
                        # The turn's own terminal event follows the last round
                        if chunk.delta.content or chunk.delta.tool_calls:
                            yield format_chunk(StreamChunk(delta=chunk.delta))
                            sent = True
                        break
                    yield format_chunk(chunk)
                    sent = True
                    chunk = await anext(source, None)

                await _close(source)
                source = None
                if terminal is None:
                    raise ProviderError(
                        decision.provider.value,
                        f"{decision.provider.value} stream ended without a finish reason",
                    )

                content = "".join(parts)
                tool_calls = accumulator.build()
                contents.append(content)
                if terminal.usage is not None:
                    outcome.usage = outcome.usage + terminal.usage
                outcome.synthetic = outcome.synthetic or terminal.synthetic

                pending = self._pending_tool_calls(turn, content, tool_calls, forced_final)
                if not pending:
                    outcome.finish_reason = terminal.finish_reason
                    outcome.tool_calls = tool_calls or None
                    outcome.messages.append(
                        ChatMessage(
                            role=Role.ASSISTANT,
                            content=content,
                            tool_calls=tool_calls or None,
                        )
                    )
                    break
                await self._run_tools(
                    turn, conversation, outcome.messages, content, pending, round_index
                )

            outcome.content = "".join(contents)
            yield format_chunk(
                StreamChunk(
                    finish_reason=outcome.finish_reason,
                    usage=outcome.usage,
                    synthetic=outcome.synthetic,
                )
            )
            sent = True
            state = StreamState.DONE
            await turn.on_done(outcome)
            logger.info(
                "turn_completed",
                provider=outcome.provider.value,
                model=outcome.model,
                finish_reason=outcome.finish_reason.value,
                total_tokens=outcome.usage.total_tokens,
                streamed=True,
            )
            yield DONE_EVENT
        except GatewayError as e:
            state = StreamState.ERROR
            logger.warning("stream_failed", error_type=e.type, error=e.message, sent=sent)
            yield format_error(e)
            yield DONE_EVENT
        except Exception:
            state = StreamState.ERROR
            logger.exception("stream_failed_unexpectedly", sent=sent)
            yield format_error(InternalError())
            yield DONE_EVENT
        finally:
            if source is not None:
                await _close(source)
            if state in (StreamState.START, StreamState.STREAMING):
                logger.info("stream_cancelled", state=state.value, sent=sent)
                state = StreamState.CANCELLED

    async def _open(
        self,
        adapter: ProviderAdapter,
        request: CompletionRequest,
    ) -> tuple[AsyncIterator[StreamChunk], StreamChunk]:
        """Start an adapter stream and pull its first chunk."""
        stream = adapter.stream(request)
        try:
            first = await anext(stream, None)
        except BaseException:
            await _close(stream)
            raise
        if first is None:
            await _close(stream)
            raise ProviderError(adapter.name, f"{adapter.name} returned an empty stream")
        return stream, first


async def _close(stream: AsyncIterator[StreamChunk]) -> None:
    aclose = getattr(stream, "aclose", None)
    if aclose is not None:
        await aclose()


"""Canonical request/response schemas.

Type-safe Pydantic models shared by every provider adapter. Field names are
snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class Role(str, Enum):
    """Chat message role."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


class ProviderName(str, Enum):
    """LLM backends, in declaration order."""

    EDGE = "edge"
    PREMIUM_A = "premium-a"
    PREMIUM_B = "premium-b"


class FinishReason(str, Enum):
    """Why a completion stopped."""

    STOP = "stop"
    TOOL_CALL = "tool_call"
    LENGTH = "length"
    ERROR = "error"


class ThinkingLevel(str, Enum):
    """Extended reasoning level stored with the session."""

    OFF = "off"
    MINIMAL = "minimal"
    LOW = "low"
    HIGH = "high"


class CamelModel(BaseModel):
    """Base model serialised with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Dump with wire aliases, dropping unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ToolCall(CamelModel):
    """Structured request, emitted by the model, to invoke a named tool."""

    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolParameters(CamelModel):
    """JSON-schema object shape of a tool's parameters."""

    type: Literal["object"] = "object"
    properties: dict[str, Any] = Field(default_factory=dict)
    required: list[str] = Field(default_factory=list)


class Tool(CamelModel):
    """Tool the model may invoke."""

    name: str = Field(min_length=1)
    description: str = ""
    parameters: ToolParameters = Field(default_factory=ToolParameters)


class CustomTool(Tool):
    """Tenant-defined tool, executed by POSTing to its endpoint."""

    endpoint: str | None = None


class ChatMessage(CamelModel):
    """Individual chat message."""

    role: Role
    content: str = ""
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None

    @model_validator(mode="after")
    def _tool_message_has_call_id(self) -> ChatMessage:
        if self.role == Role.TOOL and not self.tool_call_id:
            raise ValueError("tool messages must carry tool_call_id")
        return self


class UsageInfo(CamelModel):
    """Token usage information."""

    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)

    def __add__(self, other: UsageInfo) -> UsageInfo:
        return UsageInfo(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


class CompletionRequest(CamelModel):
    """Chat completion request."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    messages: list[ChatMessage] = Field(min_length=1)
    model: str | None = None
    provider: ProviderName | None = None
    tools: list[Tool] | None = None
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, gt=0)
    thinking_level: ThinkingLevel | None = None
    stream: bool = False
    session_id: str | None = None

    @property
    def requires_tools(self) -> bool:
        return bool(self.tools)


class CompletionResult(CamelModel):
    """Chat completion result.

    `synthetic` is only ever True for the development fallback of the edge
    adapter, so a placeholder can never pass for a genuine answer.
    """

    content: str = ""
    role: Literal["assistant"] = "assistant"
    tool_calls: list[ToolCall] | None = None
    finish_reason: FinishReason = FinishReason.STOP
    usage: UsageInfo = Field(default_factory=UsageInfo)
    model: str
    synthetic: bool = False

    def to_response(
        self,
        response_id: str,
        tenant_id: str,
        session_id: str,
        provider: ProviderName,
    ) -> dict[str, Any]:
        """Build the non-streaming wire response."""
        body = self.to_wire()
        if not self.synthetic:
            body.pop("synthetic", None)
        return {
            "id": response_id,
            "tenantId": tenant_id,
            "sessionId": session_id,
            "provider": provider.value,
            **body,
        }


class ToolCallChunk(CamelModel):
    """Partial tool call carried by a stream delta."""

    index: int = 0
    id: str | None = None
    type: str | None = None
    name: str | None = None
    arguments: str | None = None


class StreamDelta(CamelModel):
    """Incremental part of a stream chunk."""

    role: str | None = None
    content: str | None = None
    tool_calls: list[ToolCallChunk] | None = None


class StreamChunk(CamelModel):
    """One increment of a streamed response.

    A stream is terminated by the first chunk with a non-null finish_reason.
    """

    delta: StreamDelta = Field(default_factory=StreamDelta)
    finish_reason: FinishReason | None = None
    usage: UsageInfo | None = None
    synthetic: bool = False

    def to_wire(self) -> dict[str, Any]:
        body = super().to_wire()
        body["finishReason"] = self.finish_reason.value if self.finish_reason else None
        if not self.synthetic:
            body.pop("synthetic", None)
        return body


_FINISH_REASONS: dict[str, FinishReason] = {
    "stop": FinishReason.STOP,
    "end_turn": FinishReason.STOP,
    "stop_sequence": FinishReason.STOP,
    "tool_use": FinishReason.TOOL_CALL,
    "tool_calls": FinishReason.TOOL_CALL,
    "tool_call": FinishReason.TOOL_CALL,
    "function_call": FinishReason.TOOL_CALL,
    "max_tokens": FinishReason.LENGTH,
    "length": FinishReason.LENGTH,
}


def normalize_finish_reason(raw: str | None) -> FinishReason:
    """Map a backend finish reason onto the canonical enum.

    Unknown values count as a normal stop.
    """
    if raw is None:
        return FinishReason.STOP
    return _FINISH_REASONS.get(raw, FinishReason.ERROR if raw == "error" else FinishReason.STOP)

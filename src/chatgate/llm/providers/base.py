"""Provider adapter interface and shared wire helpers.

Adapters are duck-typed against ProviderAdapter and selected at runtime
through ProviderRegistry, never through inheritance.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from typing import Any, Protocol, runtime_checkable

import httpx
import structlog

from chatgate.api.config import ProviderSettings
from chatgate.core.errors import ProviderError

from ..schemas import ChatMessage, CompletionRequest, CompletionResult, StreamChunk, Tool

logger = structlog.get_logger()

SSE_DONE = "[DONE]"


@runtime_checkable
class ProviderAdapter(Protocol):
    """Translates canonical requests to one backend and back.

    Attributes:
        name: Provider identifier (ProviderName value)
        native_streaming: False when stream() slices a complete response
    """

    name: str
    native_streaming: bool

    async def complete(self, request: CompletionRequest) -> CompletionResult:
        """Run a non-streaming completion."""
        ...

    def stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        """Stream a completion.

        The iterator is finite, forward-only and not restartable. Its last
        item carries a non-null finish_reason.
        """
        ...

    def is_available(self, settings: ProviderSettings | None = None) -> bool:
        """Check that required credentials are present."""
        ...


def to_standard_messages(messages: list[ChatMessage]) -> list[dict[str, Any]]:
    """Convert canonical messages to the OpenAI-style wire format.

    Args:
        messages: Canonical chat messages

    Returns:
        Messages with snake_case tool fields and JSON-encoded arguments
    """
    standard: list[dict[str, Any]] = []
    for msg in messages:
        item: dict[str, Any] = {"role": msg.role.value, "content": msg.content}
        if msg.tool_calls:
            item["tool_calls"] = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {"name": tc.name, "arguments": json.dumps(tc.arguments)},
                }
                for tc in msg.tool_calls
            ]
        if msg.tool_call_id:
            item["tool_call_id"] = msg.tool_call_id
        standard.append(item)
    return standard


def to_openai_tools(tools: list[Tool] | None) -> list[dict[str, Any]]:
    """Convert tools to OpenAI function calling format."""
    if not tools:
        return []
    return [
        {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.parameters.model_dump(),
            },
        }
        for tool in tools
    ]


def parse_tool_arguments(raw: str | dict[str, Any] | None) -> dict[str, Any]:
    """Parse tool call arguments from a JSON string.

    Invalid or non-object JSON yields an empty mapping, so that required
    parameter validation reports what is missing.
    """
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


async def raise_for_backend(response: httpx.Response, provider: str) -> None:
    """Raise ProviderError for a non-success backend status.

    Works for both buffered and streamed responses.

    Args:
        response: Backend response
        provider: Provider identifier

    Raises:
        ProviderError: With backend status and raw error body
    """
    if response.is_success:
        return
    body = (await response.aread()).decode("utf-8", errors="replace")
    logger.warning(
        "provider_http_error",
        provider=provider,
        status=response.status_code,
        body_length=len(body),
    )
    raise ProviderError(
        provider,
        f"{provider} API error: {response.status_code}",
        status=response.status_code,
        body=body,
    )


def decode_json(response: httpx.Response, provider: str) -> dict[str, Any]:
    """Decode a buffered JSON body, raising ProviderError when malformed."""
    try:
        data = response.json()
    except ValueError as e:
        raise ProviderError(
            provider,
            f"{provider} returned malformed JSON",
            status=response.status_code,
            body=response.text,
        ) from e
    if not isinstance(data, dict):
        raise ProviderError(
            provider,
            f"{provider} returned unexpected payload",
            status=response.status_code,
            body=response.text,
        )
    return data


async def iter_sse_data(response: httpx.Response, provider: str) -> AsyncIterator[str | dict[str, Any]]:
    """Yield decoded `data:` payloads of a server-sent event stream.

    The `[DONE]` sentinel is yielded as the raw string; every other payload
    must be a JSON object.

    Raises:
        ProviderError: If a data line is not valid JSON
    """
    async for line in response.aiter_lines():
        if not line.startswith("data:"):
            continue
        data = line[5:].strip()
        if not data:
            continue
        if data == SSE_DONE:
            yield SSE_DONE
            continue
        try:
            yield json.loads(data)
        except json.JSONDecodeError as e:
            raise ProviderError(
                provider,
                f"{provider} stream carried malformed JSON",
                status=response.status_code,
                body=data,
            ) from e


def transport_error(provider: str, exc: httpx.HTTPError) -> ProviderError:
    """Wrap an httpx transport failure."""
    return ProviderError(provider, f"{provider} request failed: {exc}")

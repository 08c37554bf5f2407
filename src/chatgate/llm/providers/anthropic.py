"""Premium-A adapter (Anthropic Messages API).

The Messages API keeps the system prompt outside the conversation, uses
content blocks for tool use and tool results, and requires user/assistant
alternation, so translation is more involved than for premium-B.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from typing import Any

import httpx
import structlog

from chatgate.api.config import ProviderSettings
from chatgate.core.errors import ProviderError

from ..models import get_default_model
from ..schemas import (
    ChatMessage,
    CompletionRequest,
    CompletionResult,
    FinishReason,
    ProviderName,
    Role,
    StreamChunk,
    StreamDelta,
    Tool,
    ToolCall,
    ToolCallChunk,
    UsageInfo,
    normalize_finish_reason,
)
from .base import SSE_DONE, decode_json, iter_sse_data, raise_for_backend, transport_error

logger = structlog.get_logger()

DEFAULT_MAX_TOKENS = 4096


class AnthropicAdapter:
    """Premium-A provider speaking the Anthropic messages format."""

    name = ProviderName.PREMIUM_A.value
    native_streaming = True

    def __init__(self, settings: ProviderSettings, client: httpx.AsyncClient) -> None:
        """Initialize adapter.

        Args:
            settings: Provider credentials and endpoints
            client: Shared HTTP client
        """
        self.settings = settings
        self._client = client

    def is_available(self, settings: ProviderSettings | None = None) -> bool:
        return bool((settings or self.settings).anthropic_api_key)

    def _headers(self) -> dict[str, str]:
        if not self.settings.anthropic_api_key:
            raise ProviderError(self.name, "ANTHROPIC_API_KEY not configured")
        return {
            "Content-Type": "application/json",
            "x-api-key": self.settings.anthropic_api_key,
            "anthropic-version": self.settings.anthropic_version,
        }

    def _build_payload(self, request: CompletionRequest, stream: bool) -> dict[str, Any]:
        system, messages = convert_messages(request.messages)
        payload: dict[str, Any] = {
            "model": request.model or get_default_model(ProviderName.PREMIUM_A),
            "messages": messages,
            "max_tokens": request.max_tokens or DEFAULT_MAX_TOKENS,
        }
        if system:
            payload["system"] = system
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        if request.tools:
            payload["tools"] = convert_tools(request.tools)
        if stream:
            payload["stream"] = True
        return payload

    async def complete(self, request: CompletionRequest) -> CompletionResult:
        payload = self._build_payload(request, stream=False)
        logger.info(
            "provider_complete_start",
            provider=self.name,
            model=payload["model"],
            message_count=len(payload["messages"]),
        )
        try:
            response = await self._client.post(
                self.settings.anthropic_base_url,
                json=payload,
                headers=self._headers(),
            )
        except httpx.HTTPError as e:
            raise transport_error(self.name, e) from e

        await raise_for_backend(response, self.name)
        return self._parse_response(decode_json(response, self.name), response)

    def _parse_response(self, data: dict[str, Any], response: httpx.Response) -> CompletionResult:
        try:
            blocks = data["content"]
            text = "".join(b.get("text", "") for b in blocks if b.get("type") == "text")
            tool_calls = [
                ToolCall(id=b["id"], name=b["name"], arguments=b.get("input") or {})
                for b in blocks
                if b.get("type") == "tool_use"
            ]
            usage = data.get("usage") or {}
            input_tokens = usage.get("input_tokens", 0)
            output_tokens = usage.get("output_tokens", 0)
            return CompletionResult(
                content=text,
                tool_calls=tool_calls or None,
                finish_reason=normalize_finish_reason(data.get("stop_reason")),
                usage=UsageInfo(
                    prompt_tokens=input_tokens,
                    completion_tokens=output_tokens,
                    total_tokens=input_tokens + output_tokens,
                ),
                model=data.get("model") or "",
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise ProviderError(
                self.name,
                f"{self.name} returned unexpected payload",
                status=response.status_code,
                body=response.text,
            ) from e

    async def stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        payload = self._build_payload(request, stream=True)
        logger.info("provider_stream_start", provider=self.name, model=payload["model"])

        input_tokens = 0
        output_tokens = 0
        finish: FinishReason | None = None
        try:
            async with self._client.stream(
                "POST",
                self.settings.anthropic_base_url,
                json=payload,
                headers=self._headers(),
            ) as response:
                await raise_for_backend(response, self.name)
                async for event in iter_sse_data(response, self.name):
                    if event == SSE_DONE or not isinstance(event, dict):
                        continue
                    event_type = event.get("type")

                    if event_type == "error":
                        error = event.get("error") or {}
                        raise ProviderError(
                            self.name,
                            f"{self.name} stream error: {error.get('message', 'unknown')}",
                            status=response.status_code,
                            body=json.dumps(event),
                        )
                    if event_type == "message_start":
                        usage = (event.get("message") or {}).get("usage") or {}
                        input_tokens = usage.get("input_tokens", 0)
                        output_tokens = usage.get("output_tokens", 0)
                        yield StreamChunk(delta=StreamDelta(role="assistant"))
                    elif event_type == "content_block_start":
                        block = event.get("content_block") or {}
                        if block.get("type") == "tool_use":
                            yield StreamChunk(
                                delta=StreamDelta(
                                    tool_calls=[
                                        ToolCallChunk(
                                            index=event.get("index", 0),
                                            id=block.get("id"),
                                            type="function",
                                            name=block.get("name"),
                                        )
                                    ]
                                )
                            )
                    elif event_type == "content_block_delta":
                        delta = event.get("delta") or {}
                        if delta.get("type") == "text_delta":
                            yield StreamChunk(delta=StreamDelta(content=delta.get("text", "")))
                        elif delta.get("type") == "input_json_delta":
                            yield StreamChunk(
                                delta=StreamDelta(
                                    tool_calls=[
                                        ToolCallChunk(
                                            index=event.get("index", 0),
                                            arguments=delta.get("partial_json", ""),
                                        )
                                    ]
                                )
                            )
                    elif event_type == "message_delta":
                        stop_reason = (event.get("delta") or {}).get("stop_reason")
                        if stop_reason:
                            finish = normalize_finish_reason(stop_reason)
                        output_tokens = (event.get("usage") or {}).get(
                            "output_tokens", output_tokens
                        )
                    elif event_type == "message_stop":
                        break
                    elif event_type == "ping":
                        # keep-alive
                        yield StreamChunk()
        except httpx.HTTPError as e:
            raise transport_error(self.name, e) from e

        yield StreamChunk(
            finish_reason=finish or FinishReason.STOP,
            usage=UsageInfo(
                prompt_tokens=input_tokens,
                completion_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            ),
        )


def convert_messages(messages: list[ChatMessage]) -> tuple[str, list[dict[str, Any]]]:
    """Convert canonical messages to the messages API shape.

    System messages are joined into the separate system prompt. Tool results
    become `tool_result` blocks on a user turn, merged with adjacent tool
    results so roles keep alternating.

    Returns:
        Tuple of (system prompt, converted messages)
    """
    system_parts: list[str] = []
    converted: list[dict[str, Any]] = []

    for msg in messages:
        if msg.role == Role.SYSTEM:
            system_parts.append(msg.content)
            continue

        if msg.role == Role.TOOL:
            block = {
                "type": "tool_result",
                "tool_use_id": msg.tool_call_id,
                "content": msg.content,
            }
            previous = converted[-1] if converted else None
            if (
                previous is not None
                and previous["role"] == "user"
                and isinstance(previous["content"], list)
                and all(b.get("type") == "tool_result" for b in previous["content"])
            ):
                previous["content"].append(block)
            else:
                converted.append({"role": "user", "content": [block]})
            continue

        if msg.role == Role.ASSISTANT and msg.tool_calls:
            blocks: list[dict[str, Any]] = []
            if msg.content:
                blocks.append({"type": "text", "text": msg.content})
            blocks.extend(
                {"type": "tool_use", "id": tc.id, "name": tc.name, "input": tc.arguments}
                for tc in msg.tool_calls
            )
            converted.append({"role": "assistant", "content": blocks})
            continue

        converted.append({"role": msg.role.value, "content": msg.content})

    return "\n\n".join(system_parts), converted


def convert_tools(tools: list[Tool]) -> list[dict[str, Any]]:
    """Convert tools to the messages API `input_schema` shape."""
    return [
        {
            "name": tool.name,
            "description": tool.description,
            "input_schema": tool.parameters.model_dump(),
        }
        for tool in tools
    ]

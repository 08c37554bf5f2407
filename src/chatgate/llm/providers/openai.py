"""Premium-B adapter (OpenAI Chat Completions API)."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import httpx
import structlog

from chatgate.api.config import ProviderSettings
from chatgate.core.errors import ProviderError

from ..models import get_default_model
from ..schemas import (
    CompletionRequest,
    CompletionResult,
    FinishReason,
    ProviderName,
    StreamChunk,
    StreamDelta,
    ToolCall,
    ToolCallChunk,
    UsageInfo,
    normalize_finish_reason,
)
from .base import (
    SSE_DONE,
    decode_json,
    iter_sse_data,
    parse_tool_arguments,
    raise_for_backend,
    to_openai_tools,
    to_standard_messages,
    transport_error,
)

logger = structlog.get_logger()


class OpenAIAdapter:
    """Premium-B provider speaking the OpenAI chat completions format."""

    name = ProviderName.PREMIUM_B.value
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
        return bool((settings or self.settings).openai_api_key)

    def _headers(self) -> dict[str, str]:
        if not self.settings.openai_api_key:
            raise ProviderError(self.name, "OPENAI_API_KEY not configured")
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.settings.openai_api_key}",
        }

    def _build_payload(self, request: CompletionRequest, stream: bool) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": request.model or get_default_model(ProviderName.PREMIUM_B),
            "messages": to_standard_messages(request.messages),
        }
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        if request.max_tokens:
            payload["max_tokens"] = request.max_tokens
        if request.tools:
            payload["tools"] = to_openai_tools(request.tools)
        if stream:
            payload["stream"] = True
            payload["stream_options"] = {"include_usage": True}
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
                self.settings.openai_base_url,
                json=payload,
                headers=self._headers(),
            )
        except httpx.HTTPError as e:
            raise transport_error(self.name, e) from e

        await raise_for_backend(response, self.name)
        return self._parse_response(decode_json(response, self.name), response)

    def _parse_response(self, data: dict[str, Any], response: httpx.Response) -> CompletionResult:
        try:
            choice = data["choices"][0]
            message = choice["message"]
            usage = data.get("usage") or {}
            tool_calls = [
                ToolCall(
                    id=tc["id"],
                    name=tc["function"]["name"],
                    arguments=parse_tool_arguments(tc["function"].get("arguments")),
                )
                for tc in message.get("tool_calls") or []
            ]
            return CompletionResult(
                content=message.get("content") or "",
                tool_calls=tool_calls or None,
                finish_reason=normalize_finish_reason(choice.get("finish_reason")),
                usage=UsageInfo(
                    prompt_tokens=usage.get("prompt_tokens", 0),
                    completion_tokens=usage.get("completion_tokens", 0),
                    total_tokens=usage.get("total_tokens", 0),
                ),
                model=data.get("model") or "",
            )
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(
                self.name,
                f"{self.name} returned unexpected payload",
                status=response.status_code,
                body=response.text,
            ) from e

    async def stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        payload = self._build_payload(request, stream=True)
        logger.info("provider_stream_start", provider=self.name, model=payload["model"])

        finish: FinishReason | None = None
        usage: UsageInfo | None = None
        try:
            async with self._client.stream(
                "POST",
                self.settings.openai_base_url,
                json=payload,
                headers=self._headers(),
            ) as response:
                await raise_for_backend(response, self.name)
                async for data in iter_sse_data(response, self.name):
                    if data == SSE_DONE:
                        break
                    if not isinstance(data, dict):
                        continue
                    if data.get("usage"):
                        usage = UsageInfo(
                            prompt_tokens=data["usage"].get("prompt_tokens", 0),
                            completion_tokens=data["usage"].get("completion_tokens", 0),
                            total_tokens=data["usage"].get("total_tokens", 0),
                        )
                    choices = data.get("choices") or []
                    if not choices:
                        continue
                    choice = choices[0]
                    if choice.get("finish_reason"):
                        finish = normalize_finish_reason(choice["finish_reason"])
                    yield StreamChunk(delta=self._parse_delta(choice.get("delta") or {}))
        except httpx.HTTPError as e:
            raise transport_error(self.name, e) from e

        # Terminal chunk is deferred so the trailing usage chunk can be merged
        yield StreamChunk(finish_reason=finish or FinishReason.STOP, usage=usage)

    @staticmethod
    def _parse_delta(delta: dict[str, Any]) -> StreamDelta:
        tool_calls = None
        if delta.get("tool_calls"):
            tool_calls = [
                ToolCallChunk(
                    index=tc.get("index", 0),
                    id=tc.get("id"),
                    type=tc.get("type"),
                    name=(tc.get("function") or {}).get("name"),
                    arguments=(tc.get("function") or {}).get("arguments"),
                )
                for tc in delta["tool_calls"]
            ]
        return StreamDelta(
            role=delta.get("role"),
            content=delta.get("content"),
            tool_calls=tool_calls,
        )

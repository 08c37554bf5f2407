"""Edge adapter (Cloudflare Workers AI REST API).

The edge backend has no usable streaming endpoint for tool-capable
requests, so stream() runs a complete call and slices the text. The
adapter advertises this with `native_streaming = False`.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from typing import Any
from uuid import uuid4

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
)
from .base import (
    decode_json,
    parse_tool_arguments,
    raise_for_backend,
    to_openai_tools,
    to_standard_messages,
    transport_error,
)

logger = structlog.get_logger()

SIMULATED_CHUNK_SIZE = 10
SYNTHETIC_TAG = "[Edge AI Simulation]"


def estimate_tokens(text: str) -> int:
    """Rough token estimate (1 token ≈ 4 characters)."""
    return len(text) // 4


class EdgeAdapter:
    """Edge-hosted model service. Always available; the default provider."""

    name = ProviderName.EDGE.value
    native_streaming = False

    def __init__(
        self,
        settings: ProviderSettings,
        client: httpx.AsyncClient,
        synthetic_fallback: bool = False,
        chunk_size: int = SIMULATED_CHUNK_SIZE,
    ) -> None:
        """Initialize adapter.

        Args:
            settings: Provider credentials and endpoints
            client: Shared HTTP client
            synthetic_fallback: Serve tagged placeholder answers when no
                credentials are configured (development only)
            chunk_size: Characters per simulated stream chunk
        """
        self.settings = settings
        self._client = client
        self.synthetic_fallback = synthetic_fallback
        self.chunk_size = chunk_size

    def is_available(self, settings: ProviderSettings | None = None) -> bool:
        # No per-tenant key is required; the gateway's own account serves it
        return True

    @property
    def has_credentials(self) -> bool:
        return bool(self.settings.edge_account_id and self.settings.edge_api_token)

    def _url(self, model: str) -> str:
        return f"{self.settings.edge_base_url}/{self.settings.edge_account_id}/ai/run/{model}"

    async def complete(self, request: CompletionRequest) -> CompletionResult:
        model = request.model or get_default_model(ProviderName.EDGE)

        if not self.has_credentials:
            if self.synthetic_fallback:
                logger.warning("edge_synthetic_response", model=model)
                return self._simulate_response(request, model)
            raise ProviderError(self.name, "Edge account credentials not configured")

        payload: dict[str, Any] = {"messages": to_standard_messages(request.messages)}
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        if request.max_tokens:
            payload["max_tokens"] = request.max_tokens
        if request.tools:
            payload["tools"] = to_openai_tools(request.tools)

        logger.info(
            "provider_complete_start",
            provider=self.name,
            model=model,
            message_count=len(payload["messages"]),
        )
        try:
            response = await self._client.post(
                self._url(model),
                json=payload,
                headers={"Authorization": f"Bearer {self.settings.edge_api_token}"},
            )
        except httpx.HTTPError as e:
            raise transport_error(self.name, e) from e

        await raise_for_backend(response, self.name)
        return self._parse_response(decode_json(response, self.name), response, model)

    def _parse_response(
        self,
        data: dict[str, Any],
        response: httpx.Response,
        model: str,
    ) -> CompletionResult:
        result = data.get("result")
        if data.get("success") is False or not isinstance(result, dict):
            raise ProviderError(
                self.name,
                f"{self.name} returned unexpected payload",
                status=response.status_code,
                body=response.text,
            )

        content = result.get("response") or ""
        tool_calls = [
            ToolCall(
                id=tc.get("id") or f"call_{uuid4().hex[:12]}",
                name=tc["name"],
                arguments=parse_tool_arguments(tc.get("arguments")),
            )
            for tc in result.get("tool_calls") or []
            if tc.get("name")
        ]
        usage = result.get("usage") or {}
        prompt_tokens = usage.get("prompt_tokens", 0)
        completion_tokens = usage.get("completion_tokens", 0)
        return CompletionResult(
            content=content if isinstance(content, str) else str(content),
            tool_calls=tool_calls or None,
            finish_reason=FinishReason.TOOL_CALL if tool_calls else FinishReason.STOP,
            usage=UsageInfo(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=usage.get("total_tokens", prompt_tokens + completion_tokens),
            ),
            model=model,
        )

    def _simulate_response(self, request: CompletionRequest, model: str) -> CompletionResult:
        last = request.messages[-1].content if request.messages else "your message"
        content = (
            f'{SYNTHETIC_TAG} This is a simulated response to: "{last}". '
            f"Configure edge credentials to call model {model}."
        )
        prompt_tokens = sum(estimate_tokens(m.content) for m in request.messages)
        completion_tokens = estimate_tokens(content)
        return CompletionResult(
            content=content,
            finish_reason=FinishReason.STOP,
            usage=UsageInfo(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
            model=model,
            synthetic=True,
        )

    async def stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        result = await self.complete(request)

        for start in range(0, len(result.content), self.chunk_size):
            yield StreamChunk(
                delta=StreamDelta(content=result.content[start : start + self.chunk_size]),
                synthetic=result.synthetic,
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

        yield StreamChunk(
            finish_reason=result.finish_reason,
            usage=result.usage,
            synthetic=result.synthetic,
        )

"""Tool execution loop.

Validates and runs the tool calls of one provider response concurrently.
Failures are contained per call and surface as error results; they never
cancel sibling calls or abort the request.
"""

from __future__ import annotations

import asyncio
import json
import re
import time
from dataclasses import dataclass, field
from uuid import uuid4

import httpx
import structlog

from chatgate.cache.session_cache import SessionCache
from chatgate.core.errors import GatewayError
from chatgate.llm.schemas import ChatMessage, CustomTool, Role, Tool, ToolCall

from .builtin import BUILTIN_TOOL_NAMES, BUILTIN_TOOLS, BuiltinToolExecutor

logger = structlog.get_logger()

DEFAULT_CUSTOM_TOOL_TIMEOUT = 30.0

_TOOL_CALL_PATTERN = re.compile(r"<tool_call>(.*?)</tool_call>", re.DOTALL)


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one tool call."""

    tool_call_id: str
    name: str
    output: str = ""
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class ToolContext:
    """Tenant scope of a tool execution."""

    tenant_id: str
    session_id: str
    allowed_tools: frozenset[str] = field(default_factory=frozenset)
    custom_tools: tuple[CustomTool, ...] = ()

    def custom_tool(self, name: str) -> CustomTool | None:
        return next((t for t in self.custom_tools if t.name == name), None)


class ToolExecutor:
    """Runs built-in and tenant custom tools."""

    def __init__(
        self,
        session_cache: SessionCache,
        http_client: httpx.AsyncClient,
        custom_tool_timeout: float = DEFAULT_CUSTOM_TOOL_TIMEOUT,
    ) -> None:
        """Initialize tool executor.

        Args:
            session_cache: Session cache used by the built-in tools
            http_client: HTTP client for custom tool endpoints
            custom_tool_timeout: Timeout for one custom tool call in seconds
        """
        self.session_cache = session_cache
        self.http_client = http_client
        self.custom_tool_timeout = custom_tool_timeout

    async def execute(self, tool_call: ToolCall, context: ToolContext) -> ToolResult:
        """Execute a single tool call.

        Args:
            tool_call: Tool call emitted by the model
            context: Tenant scope

        Returns:
            Tool result; errors are reported in `error`, never raised
        """
        started = time.perf_counter()
        result = await self._execute(tool_call, context)
        logger.info(
            "tool_executed",
            tool_name=tool_call.name,
            tool_call_id=tool_call.id,
            tenant_id=context.tenant_id,
            success=result.succeeded,
            error=result.error,
            duration_ms=int((time.perf_counter() - started) * 1000),
        )
        return result

    async def execute_all(
        self,
        tool_calls: list[ToolCall],
        context: ToolContext,
    ) -> list[ToolResult]:
        """Execute tool calls concurrently, waiting for all of them.

        Returns:
            One result per call, in the order of `tool_calls`
        """
        return list(await asyncio.gather(*(self.execute(tc, context) for tc in tool_calls)))

    async def _execute(self, tool_call: ToolCall, context: ToolContext) -> ToolResult:
        name = tool_call.name

        tool: Tool | None
        if name in BUILTIN_TOOL_NAMES:
            tool = next(t for t in BUILTIN_TOOLS if t.name == name)
        else:
            tool = context.custom_tool(name)
        if tool is None:
            return _error(tool_call, f"Unknown tool: {name}")

        if name not in context.allowed_tools:
            return _error(tool_call, f"Permission denied for tool: {name}")

        missing = [p for p in tool.parameters.required if p not in tool_call.arguments]
        if missing:
            return _error(tool_call, f"Missing required parameter: {', '.join(missing)}")

        try:
            if isinstance(tool, CustomTool):
                output = await self._call_endpoint(tool, tool_call, context)
            else:
                output = await BuiltinToolExecutor(
                    self.session_cache, context.tenant_id, context.session_id
                ).execute(name, tool_call.arguments)
        except GatewayError as e:
            return _error(tool_call, e.message)
        except httpx.HTTPError as e:
            return _error(tool_call, f"Tool endpoint request failed: {e}")
        except Exception as e:
            # Contained per call so sibling tool calls still complete
            logger.exception("tool_execution_failed", tool_name=name)
            return _error(tool_call, str(e) or type(e).__name__)

        return ToolResult(tool_call_id=tool_call.id, name=name, output=output)

    async def _call_endpoint(
        self,
        tool: CustomTool,
        tool_call: ToolCall,
        context: ToolContext,
    ) -> str:
        if not tool.endpoint:
            raise GatewayError(f"Custom tool has no endpoint: {tool.name}")

        response = await self.http_client.post(
            tool.endpoint,
            json={
                "name": tool.name,
                "arguments": tool_call.arguments,
                "tenantId": context.tenant_id,
                "sessionId": context.session_id,
            },
            timeout=self.custom_tool_timeout,
        )
        response.raise_for_status()
        return response.text


def _error(tool_call: ToolCall, message: str) -> ToolResult:
    return ToolResult(tool_call_id=tool_call.id, name=tool_call.name, error=message)


def get_available_tools(
    allowed_tools: list[str],
    custom_tools: list[CustomTool] | None = None,
) -> list[Tool]:
    """Tools the tenant may expose to the model.

    Args:
        allowed_tools: Tenant allow-list
        custom_tools: Tenant-defined tools

    Returns:
        Allowed built-in tools followed by allowed custom tools
    """
    allowed = set(allowed_tools)
    tools: list[Tool] = [tool for tool in BUILTIN_TOOLS if tool.name in allowed]
    tools.extend(tool for tool in custom_tools or [] if tool.name in allowed)
    return tools


def tool_results_to_messages(results: list[ToolResult]) -> list[ChatMessage]:
    """Convert tool results to tool-role messages."""
    return [
        ChatMessage(
            role=Role.TOOL,
            content=result.output if result.succeeded else f"Error: {result.error}",
            tool_call_id=result.tool_call_id,
        )
        for result in results
    ]


def parse_tool_calls_from_text(content: str) -> list[ToolCall]:
    """Extract `<tool_call>{json}</tool_call>` blocks from model text.

    Best-effort fallback for models without structured tool calling;
    malformed blocks are skipped.
    """
    calls: list[ToolCall] = []
    for match in _TOOL_CALL_PATTERN.finditer(content):
        try:
            parsed = json.loads(match.group(1).strip())
        except json.JSONDecodeError:
            continue
        if not isinstance(parsed, dict):
            continue
        name = parsed.get("name") or parsed.get("tool")
        arguments = parsed.get("arguments") or parsed.get("input") or {}
        if not name or not isinstance(arguments, dict):
            continue
        calls.append(ToolCall(id=f"call_{uuid4().hex[:12]}", name=str(name), arguments=arguments))
    return calls


def strip_tool_call_markup(content: str) -> str:
    """Remove `<tool_call>` blocks from model text."""
    return _TOOL_CALL_PATTERN.sub("", content).strip()

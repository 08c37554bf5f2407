"""Built-in tools.

These tools are always executable by tenants that allow them; they operate
on the tenant's own sessions through the session cache.
"""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from chatgate.cache.session_cache import SessionCache
from chatgate.core.errors import ValidationError
from chatgate.llm.schemas import ChatMessage, Role, Tool, ToolParameters

logger = structlog.get_logger()

DEFAULT_LIST_LIMIT = 10
MAX_LIST_LIMIT = 100

BUILTIN_TOOLS: list[Tool] = [
    Tool(
        name="sessions_list",
        description="List all chat sessions for the current tenant",
        parameters=ToolParameters(
            properties={
                "limit": {
                    "type": "number",
                    "description": "Maximum number of sessions to return (default: 10)",
                },
                "offset": {
                    "type": "number",
                    "description": "Number of sessions to skip (for pagination)",
                },
            },
        ),
    ),
    Tool(
        name="sessions_send",
        description="Send a message to a specific session",
        parameters=ToolParameters(
            properties={
                "sessionId": {
                    "type": "string",
                    "description": "The ID of the session to send the message to",
                },
                "message": {
                    "type": "string",
                    "description": "The message content to send",
                },
            },
            required=["sessionId", "message"],
        ),
    ),
]

BUILTIN_TOOL_NAMES = {tool.name for tool in BUILTIN_TOOLS}


class BuiltinToolExecutor:
    """Executor for built-in tools scoped to one tenant."""

    def __init__(self, session_cache: SessionCache, tenant_id: str, session_id: str) -> None:
        """Initialize built-in tool executor.

        Args:
            session_cache: Session cache owning session state
            tenant_id: Current tenant ID
            session_id: Current session ID
        """
        self.session_cache = session_cache
        self.tenant_id = tenant_id
        self.session_id = session_id
        self._handlers: dict[str, Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]] = {
            "sessions_list": self._sessions_list,
            "sessions_send": self._sessions_send,
        }

    async def execute(self, tool_name: str, arguments: dict[str, Any]) -> str:
        """Execute a built-in tool.

        Args:
            tool_name: Name of the built-in tool
            arguments: Tool arguments

        Returns:
            JSON-encoded tool output

        Raises:
            KeyError: If the tool is not built in
            GatewayError: If the tool fails
        """
        handler = self._handlers[tool_name]
        logger.info(
            "builtin_tool_execution",
            tool_name=tool_name,
            tenant_id=self.tenant_id,
            session_id=self.session_id,
        )
        return json.dumps(await handler(arguments))

    async def _sessions_list(self, arguments: dict[str, Any]) -> dict[str, Any]:
        limit = _as_int(arguments.get("limit"), DEFAULT_LIST_LIMIT, "limit")
        offset = _as_int(arguments.get("offset"), 0, "offset")
        limit = max(1, min(limit, MAX_LIST_LIMIT))

        sessions, total = await self.session_cache.list_sessions(
            self.tenant_id, limit=limit, offset=max(0, offset)
        )
        return {
            "sessions": [
                {
                    "id": s.id,
                    "model": s.model,
                    "provider": s.provider.value,
                    "createdAt": s.created_at.isoformat(),
                    "updatedAt": s.updated_at.isoformat(),
                }
                for s in sessions
            ],
            "total": total,
            "limit": limit,
            "offset": offset,
        }

    async def _sessions_send(self, arguments: dict[str, Any]) -> dict[str, Any]:
        target = str(arguments["sessionId"])
        message = str(arguments["message"])

        await self.session_cache.append_messages(
            self.tenant_id,
            target,
            [ChatMessage(role=Role.USER, content=message)],
        )
        return {"success": True, "sessionId": target, "message": "Message sent successfully"}


def _as_int(value: Any, default: int, name: str) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{name} must be a number") from e

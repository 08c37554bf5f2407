"""Tool definitions and the tool execution loop."""

from .builtin import BUILTIN_TOOL_NAMES, BUILTIN_TOOLS, BuiltinToolExecutor
from .executor import (
    ToolContext,
    ToolExecutor,
    ToolResult,
    get_available_tools,
    parse_tool_calls_from_text,
    strip_tool_call_markup,
    tool_results_to_messages,
)

__all__ = [
    "BUILTIN_TOOLS",
    "BUILTIN_TOOL_NAMES",
    "BuiltinToolExecutor",
    "ToolContext",
    "ToolExecutor",
    "ToolResult",
    "get_available_tools",
    "parse_tool_calls_from_text",
    "strip_tool_call_markup",
    "tool_results_to_messages",
]

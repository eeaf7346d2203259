"""Tool bindings, activity events and the tool-call executor."""

from parley.tools.activity import ToolCallInfo, ToolCallIssued, ToolResult, UserEcho
from parley.tools.base import Tool, ToolParameter, ToolSchema
from parley.tools.executor import ToolExecutor

__all__ = [
    "Tool",
    "ToolCallInfo",
    "ToolCallIssued",
    "ToolExecutor",
    "ToolParameter",
    "ToolResult",
    "ToolSchema",
    "UserEcho",
]

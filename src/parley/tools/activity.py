"""Tool-activity events emitted while tools run during a generation.

Tool execution reports what it is doing through a caller-supplied sink, on a
channel separate from the content deltas. Events are plain pydantic models so
their transcript form is stable JSON.
"""

from datetime import datetime
from typing import Any, Literal, Protocol, Union

from pydantic import BaseModel, Field


class UserEcho(BaseModel):
    """The user prompt that triggered the tool round."""

    role: Literal["user"] = "user"
    content: str


class ToolCallInfo(BaseModel):
    """A single tool invocation issued by the model."""

    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolCallIssued(BaseModel):
    """The model asked for one or more tool invocations."""

    role: Literal["assistant"] = "assistant"
    tool_calls: list[ToolCallInfo]


class ToolResult(BaseModel):
    """A tool returned. This is the final event of a tool round."""

    role: Literal["tool"] = "tool"
    name: str
    id: str
    response_data: Any = None


ToolActivityEvent = Union[UserEcho, ToolCallIssued, ToolResult, str]


class ActivitySink(Protocol):
    """Receives tool-activity events. Implementations must be thread-safe."""

    def accept(self, event: ToolActivityEvent) -> None:
        ...


def is_final_result(event: ToolActivityEvent) -> bool:
    """Whether the event closes a tool round (and collapses its display)."""
    return isinstance(event, ToolResult)


def render_event(event: ToolActivityEvent) -> str:
    """Render an event as transcript text."""
    if isinstance(event, BaseModel):
        return event.model_dump_json()
    return str(event)


def format_activity_entry(
    event: ToolActivityEvent,
    timestamp_ms: int,
    time_format: str = "%Y-%m-%dT%H:%M:%S",
) -> str:
    """Format one transcript entry as ``"<local time> : <event>\\n\\n"``."""
    local_time = datetime.fromtimestamp(timestamp_ms / 1000).strftime(time_format)
    return f"{local_time} : {render_event(event)}\n\n"

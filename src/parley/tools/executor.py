"""Tool-call execution with activity reporting."""

import logging

from parley.llm.client import Message, ToolCall
from parley.tools.activity import (
    ActivitySink,
    ToolActivityEvent,
    ToolCallInfo,
    ToolCallIssued,
    ToolResult,
    UserEcho,
)
from parley.tools.base import Tool

logger = logging.getLogger(__name__)


def describe_tool_result(message: Message | None) -> ToolActivityEvent:
    """Turn the tool response message into a result event.

    Anything other than a tool response yields a descriptive error string
    instead, so the transcript records the mismatch and the stream goes on.
    """
    if message is not None and message.role == "tool":
        return ToolResult(
            name=message.name or "",
            id=message.tool_call_id or "",
            response_data=message.content,
        )
    actual = message.role if message is not None else "None"
    return (
        "Tool processing error: last history message is not a tool response. "
        f"Actual role: {actual}"
    )


def describe_round(history: list[Message], responses: int) -> list[ToolActivityEvent]:
    """Result events for the tool responses closing a round.

    The last history message decides: when it is a tool response, each of the
    trailing ``responses`` messages becomes a result event. Otherwise the round
    yields a single error event naming the role found there.
    """
    last = history[-1] if history else None
    if responses <= 0 or last is None or last.role != "tool":
        return [describe_tool_result(last)]
    return [describe_tool_result(message) for message in history[-responses:]]


class ToolExecutor:
    """Executes the tool calls of one round and reports them to a sink."""

    async def execute_tool_calls(
        self,
        messages: list[Message],
        tool_calls: list[ToolCall],
        bindings: list[Tool],
        sink: ActivitySink | None = None,
    ) -> list[Message]:
        """Run a round of tool calls.

        Emits, in order: an echo of the last user prompt, the issued calls,
        then one result event per call.

        Args:
            messages: History the model answered to
            tool_calls: Calls requested by the model
            bindings: Tools available to this generation
            sink: Receiver of activity events

        Returns:
            History fragment: the assistant tool-call message followed by one
            tool message per call
        """
        tools = {tool.name: tool for tool in bindings}

        if sink is not None:
            last_user = next((m for m in reversed(messages) if m.role == "user"), None)
            if last_user is not None:
                sink.accept(UserEcho(content=last_user.content))
            for tool_call in tool_calls:
                sink.accept(
                    ToolCallIssued(
                        tool_calls=[
                            ToolCallInfo(
                                id=tool_call.id,
                                name=tool_call.name,
                                arguments=tool_call.arguments,
                            )
                        ]
                    )
                )

        history = [*messages, Message(role="assistant", content="", tool_calls=tool_calls)]
        for tool_call in tool_calls:
            result = await self._execute_tool_call(tool_call, tools)
            history.append(
                Message(
                    role="tool",
                    content=result,
                    tool_call_id=tool_call.id,
                    name=tool_call.name,
                )
            )

        fragment = history[len(messages):]
        if sink is not None:
            for event in describe_round(history, len(fragment) - 1):
                sink.accept(event)

        return fragment

    async def _execute_tool_call(self, tool_call: ToolCall, tools: dict[str, Tool]) -> str:
        """Execute a single tool call.

        Args:
            tool_call: The tool call to execute
            tools: Bound tools by name

        Returns:
            Tool execution result or an error description
        """
        tool = tools.get(tool_call.name)
        if tool is None:
            return f"Error: Unknown tool '{tool_call.name}'"

        try:
            return await tool.execute(**tool_call.arguments)
        except TypeError as e:
            return f"Error: Invalid arguments for tool '{tool_call.name}': {e}"
        except Exception as e:
            logger.warning("Tool '%s' failed: %s", tool_call.name, e)
            return f"Error executing tool '{tool_call.name}': {e}"

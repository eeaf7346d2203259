"""Tool bindings passed to a generation."""

import asyncio
import inspect
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any


@dataclass
class ToolParameter:
    """Definition of a tool parameter."""

    name: str
    type: str  # JSON Schema type
    description: str
    required: bool = True
    enum: list[str] | None = None


@dataclass
class ToolSchema:
    """JSON Schema representation of a tool for LLM function calling."""

    name: str
    description: str
    parameters: list[ToolParameter]

    def to_openai_format(self) -> dict[str, Any]:
        """Convert to OpenAI function calling format.

        Returns:
            Dictionary matching OpenAI's function schema format
        """
        properties = {}
        required = []

        for param in self.parameters:
            param_schema: dict[str, Any] = {
                "type": param.type,
                "description": param.description,
            }
            if param.enum:
                param_schema["enum"] = param.enum

            properties[param.name] = param_schema

            if param.required:
                required.append(param.name)

        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": properties,
                    "required": required,
                },
            },
        }


# Tool functions may be coroutines or plain callables; results are stringified
ToolFunction = Callable[..., Any]


@dataclass
class Tool:
    """A tool bound to a generation.

    ``source`` names the connection the tool came from (a server name, a
    plugin) and is only informational.
    """

    schema: ToolSchema
    fn: ToolFunction
    source: str | None = None

    @property
    def name(self) -> str:
        return self.schema.name

    async def execute(self, **kwargs: Any) -> str:
        """Execute the tool with given arguments.

        Synchronous functions run in a worker thread so a slow tool does not
        stall the token stream.

        Args:
            **kwargs: Tool arguments

        Returns:
            Tool execution result as string
        """
        if inspect.iscoroutinefunction(self.fn):
            result = await self.fn(**kwargs)
        else:
            result = await asyncio.to_thread(self.fn, **kwargs)
            if inspect.isawaitable(result):
                result = await result
        return result if isinstance(result, str) else str(result)

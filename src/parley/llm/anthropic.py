"""Anthropic Claude LLM client using httpx.

Implements the LLMClient protocol for the Anthropic Messages API.
Uses httpx directly to avoid adding the anthropic SDK as a dependency.
Extended-thinking blocks are surfaced as ``<think>`` ... ``</think>``
deltas so they classify the same way as inline reasoning from local models.
"""

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from parley.errors import ProviderError
from parley.llm.client import (
    ChatOptions,
    CompletionResponse,
    Message,
    StreamChunk,
    ToolCall,
    Usage,
)

logger = logging.getLogger(__name__)

ANTHROPIC_API_URL = "https://api.anthropic.com"
ANTHROPIC_API_VERSION = "2023-06-01"


class AnthropicClient:
    """LLM client for the Anthropic Messages API."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        max_tokens: int = 4096,
        timeout: int = 120,
        temperature: float = 0.7,
        base_url: str = ANTHROPIC_API_URL,
        reasoning_markers: tuple[str, str] = ("<think>", "</think>"),
    ):
        """Initialize Anthropic client.

        Args:
            api_key: Anthropic API key
            model: Default model name
            max_tokens: Default max tokens for responses (required by the API)
            timeout: Request timeout in seconds
            temperature: Default sampling temperature
            base_url: API base URL
            reasoning_markers: Open/close markers wrapped around thinking blocks
        """
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.reasoning_open, self.reasoning_close = reasoning_markers

        self.client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "x-api-key": api_key,
                "anthropic-version": ANTHROPIC_API_VERSION,
                "content-type": "application/json",
            },
            timeout=httpx.Timeout(timeout),
        )

    def _convert_messages(self, messages: list[Message]) -> tuple[str | None, list[dict[str, Any]]]:
        """Convert internal Message format to Anthropic format.

        Anthropic requires the system message to be separate from the
        messages array, so we extract it.

        Args:
            messages: List of Message objects

        Returns:
            Tuple of (system_prompt, anthropic_messages)
        """
        system_prompt = None
        anthropic_messages: list[dict[str, Any]] = []

        for msg in messages:
            if msg.role == "system":
                system_prompt = msg.content
                continue

            if msg.role == "assistant" and msg.tool_calls:
                content_blocks: list[dict[str, Any]] = []
                if msg.content:
                    content_blocks.append({"type": "text", "text": msg.content})
                for tc in msg.tool_calls:
                    content_blocks.append(
                        {
                            "type": "tool_use",
                            "id": tc.id,
                            "name": tc.name,
                            "input": tc.arguments,
                        }
                    )
                anthropic_messages.append({"role": "assistant", "content": content_blocks})

            elif msg.role == "tool":
                anthropic_messages.append(
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "tool_result",
                                "tool_use_id": msg.tool_call_id,
                                "content": msg.content,
                            }
                        ],
                    }
                )

            else:
                anthropic_messages.append({"role": msg.role, "content": msg.content})

        return system_prompt, anthropic_messages

    def _convert_tools(self, tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Convert OpenAI function format to Anthropic tool format."""
        anthropic_tools = []
        for tool in tools:
            func = tool.get("function", tool)
            anthropic_tools.append(
                {
                    "name": func["name"],
                    "description": func.get("description", ""),
                    "input_schema": func.get("parameters", {"type": "object", "properties": {}}),
                }
            )
        return anthropic_tools

    def _build_payload(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None,
        options: ChatOptions | None,
    ) -> dict[str, Any]:
        options = options or ChatOptions()
        system_prompt, anthropic_messages = self._convert_messages(messages)

        payload: dict[str, Any] = {
            "model": options.model or self.model,
            "messages": anthropic_messages,
            "max_tokens": options.max_tokens or self.max_tokens,
            "temperature": (
                options.temperature if options.temperature is not None else self.temperature
            ),
        }
        if options.top_p is not None:
            payload["top_p"] = options.top_p
        if options.top_k is not None:
            payload["top_k"] = options.top_k

        if system_prompt:
            payload["system"] = system_prompt

        if tools:
            payload["tools"] = self._convert_tools(tools)

        return payload

    def _parse_content(self, content_blocks: list[dict[str, Any]]) -> tuple[str, list[ToolCall]]:
        """Parse Anthropic response content blocks into text + tool calls.

        Thinking blocks are wrapped in the reasoning markers and kept inline
        ahead of the answer text.
        """
        text_parts: list[str] = []
        tool_calls: list[ToolCall] = []

        for block in content_blocks:
            if block["type"] == "text":
                text_parts.append(block["text"])
            elif block["type"] == "thinking":
                text_parts.append(f"{self.reasoning_open}{block['thinking']}{self.reasoning_close}")
            elif block["type"] == "tool_use":
                tool_calls.append(
                    ToolCall(
                        id=block["id"],
                        name=block["name"],
                        arguments=block["input"],
                    )
                )

        return "".join(text_parts), tool_calls

    @staticmethod
    def _finish_reason(stop_reason: str | None) -> str:
        return "tool_calls" if stop_reason == "tool_use" else "stop"

    async def complete(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        options: ChatOptions | None = None,
    ) -> CompletionResponse:
        """Generate a completion from Anthropic Claude.

        Args:
            messages: Conversation history
            tools: Available tools in OpenAI function format
            options: Sampling options

        Returns:
            CompletionResponse with content, optional tool calls, model and usage
        """
        payload = self._build_payload(messages, tools, options)

        response = await self.client.post("/v1/messages", json=payload)
        response.raise_for_status()
        data = response.json()

        content_text, tool_calls = self._parse_content(data["content"])
        usage = data.get("usage", {})
        input_tokens = usage.get("input_tokens", 0)
        output_tokens = usage.get("output_tokens", 0)

        return CompletionResponse(
            content=content_text,
            tool_calls=tool_calls if tool_calls else None,
            finish_reason=self._finish_reason(data.get("stop_reason")),
            model=data.get("model"),
            usage=Usage(
                prompt_tokens=input_tokens,
                completion_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            ),
        )

    async def stream_complete(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        options: ChatOptions | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a completion from Anthropic Claude.

        Args:
            messages: Conversation history
            tools: Available tools in OpenAI function format
            options: Sampling options

        Yields:
            StreamChunk objects; the last one carries model, usage and tool calls
        """
        payload = self._build_payload(messages, tools, options)
        payload["stream"] = True

        model: str | None = None
        input_tokens = 0
        output_tokens = 0
        stop_reason: str | None = None
        blocks: dict[int, dict[str, Any]] = {}
        tool_calls: list[ToolCall] = []

        async with self.client.stream("POST", "/v1/messages", json=payload) as response:
            response.raise_for_status()
            async for line in response.aiter_lines():
                if not line.startswith("data: "):
                    continue
                data = json.loads(line[6:])
                event_type = data["type"]

                if event_type == "message_start":
                    message = data.get("message", {})
                    model = message.get("model")
                    input_tokens = message.get("usage", {}).get("input_tokens", 0)

                elif event_type == "content_block_start":
                    block = dict(data["content_block"])
                    block["partial_json"] = ""
                    blocks[data["index"]] = block
                    if block["type"] == "thinking":
                        yield StreamChunk(content=self.reasoning_open, model=model)

                elif event_type == "content_block_delta":
                    delta = data.get("delta", {})
                    if delta.get("type") == "text_delta":
                        yield StreamChunk(content=delta["text"], model=model)
                    elif delta.get("type") == "thinking_delta":
                        yield StreamChunk(content=delta["thinking"], model=model)
                    elif delta.get("type") == "input_json_delta":
                        blocks[data["index"]]["partial_json"] += delta.get("partial_json", "")

                elif event_type == "content_block_stop":
                    block = blocks.pop(data["index"], None)
                    if block is None:
                        continue
                    if block["type"] == "thinking":
                        yield StreamChunk(content=self.reasoning_close, model=model)
                    elif block["type"] == "tool_use":
                        tool_calls.append(
                            ToolCall(
                                id=block["id"],
                                name=block["name"],
                                arguments=json.loads(block["partial_json"] or "{}"),
                            )
                        )

                elif event_type == "message_delta":
                    stop_reason = data.get("delta", {}).get("stop_reason", stop_reason)
                    output_tokens = data.get("usage", {}).get("output_tokens", output_tokens)

                elif event_type == "error":
                    error = data.get("error", {})
                    logger.error("Anthropic stream error: %s", error)
                    raise ProviderError(error.get("message", "Anthropic stream error"))

        yield StreamChunk(
            tool_calls=tool_calls or None,
            finish_reason=self._finish_reason(stop_reason),
            model=model,
            usage=Usage(
                prompt_tokens=input_tokens,
                completion_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            ),
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()

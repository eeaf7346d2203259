"""Base client for OpenAI-compatible inference servers."""

import json
from collections.abc import AsyncIterator
from typing import Any

from openai import AsyncOpenAI

from parley.llm.client import (
    ChatOptions,
    CompletionResponse,
    Message,
    StreamChunk,
    ToolCall,
    Usage,
)


class OpenAICompatibleClient:
    """LLM client for OpenAI and any OpenAI-compatible inference server.

    Ollama, vLLM and llama.cpp all expose OpenAI-compatible
    ``/v1/chat/completions`` endpoints.  This base class encapsulates the
    shared request/response logic so that backend-specific subclasses only
    need to supply config defaults.
    """

    def __init__(
        self,
        model: str,
        base_url: str = "https://api.openai.com/v1",
        api_key: str = "none",
        timeout: int = 120,
        temperature: float = 0.7,
        include_usage: bool = True,
    ) -> None:
        """Initialise the client.

        Args:
            model: Default model name; a conversation's options may override it.
            base_url: OpenAI-compatible endpoint (must include ``/v1``).
            api_key: API key (many backends ignore this but the SDK requires one).
            timeout: Request timeout in seconds.
            temperature: Default sampling temperature.
            include_usage: Ask for a trailing usage chunk when streaming.
        """
        self.model = model
        self.temperature = temperature
        self.include_usage = include_usage
        self.client = AsyncOpenAI(base_url=base_url, api_key=api_key, timeout=timeout)

    def _convert_messages(self, messages: list[Message]) -> list[dict[str, Any]]:
        """Convert internal Message format to OpenAI format."""
        openai_messages: list[dict[str, Any]] = []

        for msg in messages:
            message_dict: dict[str, Any] = {
                "role": msg.role,
                "content": msg.content,
            }

            if msg.tool_calls:
                message_dict["tool_calls"] = [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {
                            "name": tc.name,
                            "arguments": json.dumps(tc.arguments),
                        },
                    }
                    for tc in msg.tool_calls
                ]

            if msg.tool_call_id:
                message_dict["tool_call_id"] = msg.tool_call_id
            if msg.name:
                message_dict["name"] = msg.name

            openai_messages.append(message_dict)

        return openai_messages

    def _build_params(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None,
        options: ChatOptions | None,
    ) -> dict[str, Any]:
        """Build request parameters, copying only the options that are set."""
        options = options or ChatOptions()

        params: dict[str, Any] = {
            "model": options.model or self.model,
            "messages": self._convert_messages(messages),
            "temperature": (
                options.temperature if options.temperature is not None else self.temperature
            ),
        }

        if options.top_p is not None:
            params["top_p"] = options.top_p
        if options.frequency_penalty is not None:
            params["frequency_penalty"] = options.frequency_penalty
        if options.presence_penalty is not None:
            params["presence_penalty"] = options.presence_penalty
        if options.max_tokens is not None:
            params["max_tokens"] = options.max_tokens
        if options.top_k is not None:
            # Not part of the OpenAI schema; compatible servers read it from the body
            params["extra_body"] = {"top_k": options.top_k}

        if tools:
            params["tools"] = tools
            params["tool_choice"] = "auto"

        return params

    def _parse_tool_calls(self, tool_calls: Any) -> list[ToolCall]:
        """Parse tool calls from an OpenAI-compatible response."""
        if not tool_calls:
            return []

        parsed: list[ToolCall] = []
        for tc in tool_calls:
            args = json.loads(tc.function.arguments or "{}")
            parsed.append(
                ToolCall(
                    id=tc.id,
                    name=tc.function.name,
                    arguments=args,
                )
            )
        return parsed

    @staticmethod
    def _parse_usage(usage: Any) -> Usage | None:
        if usage is None:
            return None
        return Usage(
            prompt_tokens=usage.prompt_tokens or 0,
            completion_tokens=usage.completion_tokens or 0,
            total_tokens=usage.total_tokens or 0,
        )

    async def complete(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        options: ChatOptions | None = None,
    ) -> CompletionResponse:
        """Generate a completion.

        Args:
            messages: Conversation history.
            tools: Available tools in OpenAI function format.
            options: Sampling options.

        Returns:
            CompletionResponse with content, optional tool calls, model and usage.
        """
        params = self._build_params(messages, tools, options)

        response = await self.client.chat.completions.create(**params)

        choice = response.choices[0]
        message = choice.message

        tool_calls = self._parse_tool_calls(message.tool_calls)

        return CompletionResponse(
            content=message.content or "",
            tool_calls=tool_calls if tool_calls else None,
            finish_reason=choice.finish_reason or "stop",
            model=response.model,
            usage=self._parse_usage(response.usage),
        )

    async def stream_complete(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        options: ChatOptions | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a completion.

        Tool call fragments are accumulated by index and emitted as one chunk
        once the provider reports the end of the round.

        Args:
            messages: Conversation history.
            tools: Available tools in OpenAI function format.
            options: Sampling options.

        Yields:
            StreamChunk objects.
        """
        params = self._build_params(messages, tools, options)
        params["stream"] = True
        if self.include_usage:
            params["stream_options"] = {"include_usage": True}

        stream = await self.client.chat.completions.create(**params)

        partial_calls: dict[int, dict[str, Any]] = {}
        async for chunk in stream:
            usage = self._parse_usage(getattr(chunk, "usage", None))

            if not chunk.choices:
                if usage is not None:
                    yield StreamChunk(model=chunk.model, usage=usage)
                continue

            choice = chunk.choices[0]
            delta = choice.delta

            for fragment in delta.tool_calls or []:
                entry = partial_calls.setdefault(
                    fragment.index, {"id": None, "name": None, "arguments": ""}
                )
                if fragment.id:
                    entry["id"] = fragment.id
                if fragment.function is not None:
                    if fragment.function.name:
                        entry["name"] = fragment.function.name
                    if fragment.function.arguments:
                        entry["arguments"] += fragment.function.arguments

            tool_calls = None
            if choice.finish_reason and partial_calls:
                tool_calls = [
                    ToolCall(
                        id=entry["id"] or f"call_{index}",
                        name=entry["name"] or "",
                        arguments=json.loads(entry["arguments"] or "{}"),
                    )
                    for index, entry in sorted(partial_calls.items())
                ]
                partial_calls = {}

            yield StreamChunk(
                content=delta.content,
                tool_calls=tool_calls,
                finish_reason=choice.finish_reason,
                model=chunk.model,
                usage=usage,
            )

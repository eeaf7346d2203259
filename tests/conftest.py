"""Pytest configuration and shared fixtures."""

import asyncio
from collections.abc import AsyncIterator
from typing import Any

import pytest

from parley.chat.dispatcher import StreamDispatcher
from parley.chat.engine import ChatEngine
from parley.chat.store import ConversationService, InMemoryConversationStore
from parley.config.schema import ParleyConfig
from parley.llm.client import (
    ChatOptions,
    CompletionResponse,
    Message,
    StreamChunk,
    ToolCall,
    Usage,
)


class CounterClock:
    """Deterministic epoch-millisecond clock advancing by one per call."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        self.now += 1
        return self.now


def text_round(*deltas: str, model: str = "test-model", usage: Usage | None = None) -> list[StreamChunk]:
    """Chunks of one streamed round: one chunk per delta, then a usage chunk."""
    chunks = [StreamChunk(content=delta, model=model) for delta in deltas]
    chunks.append(
        StreamChunk(
            finish_reason="stop",
            model=model,
            usage=usage or Usage(prompt_tokens=10, completion_tokens=len(deltas), total_tokens=10 + len(deltas)),
        )
    )
    return chunks


def tool_round(*tool_calls: ToolCall, model: str = "test-model") -> list[StreamChunk]:
    """Chunks of a round that ends by requesting tool calls."""
    return [
        StreamChunk(
            tool_calls=list(tool_calls),
            finish_reason="tool_calls",
            model=model,
            usage=Usage(prompt_tokens=5, completion_tokens=1, total_tokens=6),
        )
    ]


class ScriptedLLM:
    """LLM client replaying scripted rounds.

    Each call to ``stream_complete`` consumes the next round. ``hang_after``
    blocks the stream after that many chunks until the task is cancelled;
    ``fail_after`` raises ``error`` after that many chunks.
    """

    def __init__(
        self,
        rounds: list[list[StreamChunk]] | None = None,
        responses: list[CompletionResponse] | None = None,
        hang_after: int | None = None,
        fail_after: int | None = None,
        error: Exception | None = None,
    ):
        self.rounds = list(rounds or [])
        self.responses = list(responses or [])
        self.hang_after = hang_after
        self.fail_after = fail_after
        self.error = error or RuntimeError("connection reset")
        self.calls: list[dict[str, Any]] = []

    def _record(self, messages: list[Message], tools: Any, options: Any) -> None:
        self.calls.append(
            {
                "messages": [Message(role=m.role, content=m.content) for m in messages],
                "roles": [m.role for m in messages],
                "tools": tools,
                "options": options,
            }
        )

    async def complete(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        options: ChatOptions | None = None,
    ) -> CompletionResponse:
        self._record(messages, tools, options)
        if self.fail_after is not None:
            raise self.error
        return self.responses.pop(0)

    async def stream_complete(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        options: ChatOptions | None = None,
    ) -> AsyncIterator[StreamChunk]:
        self._record(messages, tools, options)
        chunks = self.rounds.pop(0) if self.rounds else []
        for i, chunk in enumerate(chunks):
            if self.hang_after is not None and i == self.hang_after:
                await asyncio.Event().wait()
            if self.fail_after is not None and i == self.fail_after:
                raise self.error
            yield chunk


@pytest.fixture
def default_config() -> ParleyConfig:
    """Provide a default configuration for tests."""
    return ParleyConfig()


@pytest.fixture
def clock() -> CounterClock:
    return CounterClock()


@pytest.fixture
def service(clock: CounterClock) -> ConversationService:
    return ConversationService(InMemoryConversationStore(), clock=clock)


@pytest.fixture
def make_engine(service: ConversationService, clock: CounterClock):
    """Build an engine around a scripted LLM."""

    def _make(llm: ScriptedLLM, max_tool_rounds: int = 5, advisor=None) -> ChatEngine:
        dispatcher = StreamDispatcher(llm, advisor=advisor, max_tool_rounds=max_tool_rounds)
        return ChatEngine(dispatcher, service, clock=clock)

    return _make

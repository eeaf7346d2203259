"""Tests for the chat engine."""

import asyncio

import pytest
from conftest import ScriptedLLM, text_round, tool_round

from parley.chat.schema import (
    CHAT_META,
    CONVERSATION_ID,
    THINK_TEXT,
    THINK_TIMESTAMP,
    TIMESTAMP,
    TOOL_ACTIVITY_MESSAGES,
    TOOL_ACTIVITY_TIMESTAMP,
)
from parley.chat.segments import SegmentKind
from parley.errors import ProviderError
from parley.llm.client import CompletionResponse, ToolCall, Usage
from parley.tools.base import Tool, ToolParameter, ToolSchema


async def _collect(stream):
    return [update async for update in stream.updates()]


def _lookup_tool() -> Tool:
    return Tool(
        schema=ToolSchema(
            name="lookup",
            description="Look up a fact",
            parameters=[ToolParameter(name="q", type="string", description="Query")],
        ),
        fn=lambda q: "42",
    )


@pytest.mark.asyncio
async def test_reasoning_and_answer_stream(make_engine, service):
    llm = ScriptedLLM([text_round("<think>", "considering...", "</think>", "Hello", " world")])
    engine = make_engine(llm)
    conversation = service.create_conversation("Be brief.")

    stream = engine.stream(conversation, "Say hello")
    updates = await _collect(stream)
    result = await stream.wait()

    assert [(u.kind, u.text) for u in updates] == [
        (SegmentKind.REASONING, "considering..."),
        (SegmentKind.ANSWER, "Hello"),
        (SegmentKind.ANSWER, " world"),
    ]
    assert result.answer == "Hello world"
    assert result.cancelled is False
    assert result.error is None
    assert result.metadata.model == "test-model"

    user, assistant = conversation.messages
    session = stream.session
    assert assistant.content == "Hello world"
    assert assistant.metadata[THINK_TEXT] == "considering..."
    assert assistant.metadata[THINK_TIMESTAMP] == session.reasoning_opened_at
    assert assistant.metadata[TIMESTAMP] == session.reasoning_closed_at
    assert user.metadata[TIMESTAMP] == session.start_timestamp
    assert user.metadata[CONVERSATION_ID] == conversation.id
    assert user.metadata[CHAT_META]["model"] == "test-model"

    # Completed conversations are titled and stored
    assert conversation.title == "Say hello"
    assert service.get_conversation(conversation.id) is conversation


@pytest.mark.asyncio
async def test_request_carries_history_and_system_prompt(make_engine, service):
    llm = ScriptedLLM([text_round("One"), text_round("Two")])
    engine = make_engine(llm)
    conversation = service.create_conversation("System rules")

    first = engine.stream(conversation, "first")
    await first.wait()
    second = engine.stream(conversation, "second")
    await second.wait()

    assert llm.calls[1]["roles"] == ["system", "user", "assistant", "user"]
    assert [m.content for m in llm.calls[1]["messages"]] == ["System rules", "first", "One", "second"]
    assert len(conversation.messages) == 4


@pytest.mark.asyncio
async def test_interleaved_tool_activity(make_engine, service):
    llm = ScriptedLLM(
        [
            tool_round(ToolCall(id="call_1", name="lookup", arguments={"q": "answer"})),
            text_round("The answer is ", "42"),
        ]
    )
    engine = make_engine(llm)
    conversation = service.create_conversation()

    stream = engine.stream(conversation, "What is the answer?", tool_bindings=[_lookup_tool()])
    updates = await _collect(stream)
    result = await stream.wait()

    tool_updates = [u for u in updates if u.kind is SegmentKind.TOOL_ACTIVITY]
    answer_updates = [u for u in updates if u.kind is SegmentKind.ANSWER]
    assert len(tool_updates) == 3
    assert [u.collapse for u in tool_updates] == [False, False, True]
    assert '"role":"user"' in tool_updates[0].text
    assert '"name":"lookup"' in tool_updates[1].text
    assert '"response_data":"42"' in tool_updates[2].text
    assert [u.text for u in answer_updates] == ["The answer is ", "42"]

    assert llm.calls[0]["tools"][0]["function"]["name"] == "lookup"
    assert llm.calls[1]["roles"][-2:] == ["assistant", "tool"]

    assistant = conversation.messages[-1]
    assert assistant.content == "The answer is 42"
    assert assistant.metadata[TOOL_ACTIVITY_TIMESTAMP] == stream.session.tool_activity_opened_at
    assert assistant.metadata[TOOL_ACTIVITY_MESSAGES].count("\n\n") == 3
    # Usage is summed across tool rounds
    assert result.metadata.usage == Usage(prompt_tokens=15, completion_tokens=3, total_tokens=18)


@pytest.mark.asyncio
async def test_cancel_keeps_received_deltas(make_engine, service):
    llm = ScriptedLLM([text_round("Hello", " wor", "ld")], hang_after=2)
    engine = make_engine(llm)
    conversation = service.create_conversation()

    stream = engine.stream(conversation, "Greet me")
    received = []
    async for update in stream.updates():
        received.append(update)
        if len(received) == 2:
            assert stream.cancel() is True
    result = await stream.wait()

    assert [u.text for u in received] == ["Hello", " wor"]
    assert result.cancelled is True
    assert result.metadata is None
    assert result.answer == "Hello wor"

    user, assistant = conversation.messages
    assert assistant.content == "Hello wor"
    assert assistant.metadata[TIMESTAMP] == stream.session.response_timestamp
    assert CHAT_META not in user.metadata
    assert stream.cancel() is False


@pytest.mark.asyncio
async def test_cancel_before_first_delta(make_engine, service):
    llm = ScriptedLLM([text_round("never")], hang_after=0)
    engine = make_engine(llm)
    conversation = service.create_conversation()

    stream = engine.stream(conversation, "Wait")
    await asyncio.sleep(0)
    stream.cancel()
    result = await stream.wait()

    assert result.cancelled is True
    assert result.answer == ""
    assistant = conversation.messages[-1]
    assert assistant.content == ""
    assert TIMESTAMP in assistant.metadata


@pytest.mark.asyncio
async def test_provider_error_finalizes_partial_answer(make_engine, service):
    llm = ScriptedLLM([text_round("Partial", " answer")], fail_after=1)
    engine = make_engine(llm)
    conversation = service.create_conversation()

    stream = engine.stream(conversation, "Explain")
    updates = await _collect(stream)
    result = await stream.wait()

    assert [u.text for u in updates] == ["Partial"]
    assert isinstance(result.error, ProviderError)
    assert isinstance(result.error.__cause__, RuntimeError)
    assert result.cancelled is False
    assert result.metadata is None

    user, assistant = conversation.messages
    assert assistant.content == "Partial"
    assert CONVERSATION_ID in assistant.metadata
    assert CHAT_META not in user.metadata
    assert stream.session.finalized is True


@pytest.mark.asyncio
async def test_call_splits_inline_reasoning(make_engine, service):
    llm = ScriptedLLM(
        responses=[
            CompletionResponse(
                content="<think>short plan</think>Final answer",
                model="test-model",
                usage=Usage(prompt_tokens=4, completion_tokens=6, total_tokens=10),
            )
        ]
    )
    engine = make_engine(llm)
    conversation = service.create_conversation()

    answer = await engine.call(conversation, "Question")

    assert answer == "Final answer"
    user, assistant = conversation.messages
    assert assistant.content == "Final answer"
    assert assistant.metadata[THINK_TEXT] == "short plan"
    assert user.metadata[CHAT_META]["usage"]["totalTokens"] == 10
    assert conversation.title == "Question"


@pytest.mark.asyncio
async def test_call_provider_error_is_raised_after_finalizing(make_engine, service):
    llm = ScriptedLLM(fail_after=0)
    engine = make_engine(llm)
    conversation = service.create_conversation()

    with pytest.raises(ProviderError):
        await engine.call(conversation, "Question")

    assistant = conversation.messages[-1]
    assert assistant.content == ""
    assert CONVERSATION_ID in assistant.metadata
    assert service.get_conversation(conversation.id) is conversation

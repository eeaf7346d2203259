"""Tests for conversation persistence and replay."""

import json

import pytest

from parley.chat.persistence import ConversationPersistence
from parley.chat.replay import replay, split_reasoning
from parley.chat.schema import (
    CHAT_META,
    CONVERSATION_ID,
    THINK_TEXT,
    THINK_TIMESTAMP,
    TIMESTAMP,
    TOOL_ACTIVITY_MESSAGES,
    TOOL_ACTIVITY_TIMESTAMP,
    Conversation,
)
from parley.chat.segments import SegmentKind
from parley.chat.store import ConversationService
from parley.errors import PersistenceError
from parley.llm.client import ChatOptions, Message


@pytest.fixture
def persistence(tmp_path) -> ConversationPersistence:
    return ConversationPersistence(tmp_path)


def _finalized_conversation() -> Conversation:
    messages = [
        Message(
            role="user",
            content="What is 6*7?",
            metadata={
                TIMESTAMP: 1000,
                CONVERSATION_ID: "Chat-1",
                CHAT_META: {
                    "model": "qwen3:8b",
                    "usage": {"promptTokens": 3, "completionTokens": 2, "totalTokens": 5},
                    "retrievedDocumentCount": 0,
                    "retrievedDocumentIds": [],
                },
            },
        ),
        Message(
            role="assistant",
            content="42",
            metadata={
                TIMESTAMP: 1030,
                CONVERSATION_ID: "Chat-1",
                THINK_TIMESTAMP: 1010,
                THINK_TEXT: "multiply",
                TOOL_ACTIVITY_TIMESTAMP: 1005,
                TOOL_ACTIVITY_MESSAGES: '2024-01-01T00:00:00 : {"role":"user","content":"What is 6*7?"}\n\n',
            },
        ),
    ]
    return Conversation(
        id="Chat-1",
        create_timestamp=900,
        update_timestamp=1040,
        title="What is 6*7?",
        system_prompt="Be exact.",
        options=ChatOptions(model="qwen3:8b", temperature=0.1),
        messages_loader=lambda: messages,
    )


def test_save_writes_camel_case_file(persistence, tmp_path):
    path = persistence.save(_finalized_conversation())

    assert path == tmp_path / "chat" / "save" / "Chat-1.json"
    data = json.loads(path.read_text())
    assert set(data) == {
        "conversationId",
        "title",
        "createTimestamp",
        "updateTimestamp",
        "systemPrompt",
        "chatOptions",
        "messageList",
    }
    assert data["chatOptions"]["model"] == "qwen3:8b"
    assert data["messageList"][1]["messageType"] == "assistant"
    assert data["messageList"][1]["metadata"][THINK_TEXT] == "multiply"


def test_round_trip_preserves_metadata(persistence):
    original = _finalized_conversation()
    persistence.save(original)

    (loaded,) = persistence.loads()

    assert loaded.id == original.id
    assert loaded.title == original.title
    assert loaded.create_timestamp == 900
    assert loaded.update_timestamp == 1040
    assert loaded.system_prompt == "Be exact."
    assert loaded.options == original.options
    assert [(m.role, m.content, m.metadata) for m in loaded.messages] == [
        (m.role, m.content, m.metadata) for m in original.messages
    ]


def test_replay_after_round_trip(persistence):
    persistence.save(_finalized_conversation())
    (loaded,) = persistence.loads()

    segments = replay(loaded.messages[1])

    assert [(s.kind, s.opened_at) for s in segments] == [
        (SegmentKind.TOOL_ACTIVITY, 1005),
        (SegmentKind.REASONING, 1010),
        (SegmentKind.ANSWER, 1030),
    ]
    assert segments[1].text == "multiply"
    assert segments[2].text == "42"


def test_loads_skips_hidden_files(persistence):
    persistence.save(_finalized_conversation())
    (persistence.save_dir / ".DS_Store").write_text("junk")

    assert [c.id for c in persistence.loads()] == ["Chat-1"]


def test_loads_rejects_corrupt_file(persistence):
    (persistence.save_dir / "Chat-bad.json").write_text("{not json")

    with pytest.raises(PersistenceError):
        persistence.loads()


def test_delete_removes_file(persistence):
    conversation = _finalized_conversation()
    path = persistence.save(conversation)

    persistence.delete(conversation)
    persistence.delete(conversation)

    assert not path.exists()


def test_start_and_shutdown(persistence, tmp_path):
    persistence.save(_finalized_conversation())
    service = ConversationService(persistence=persistence)

    assert persistence.on_start(service) == 1
    conversation = service.get_conversation("Chat-1")
    service.store.append_messages(
        conversation.id,
        [Message(role="user", content="and 7*8?"), Message(role="assistant", content="56")],
    )
    assert persistence.on_shutdown(service) == 1

    restarted = ConversationService(persistence=ConversationPersistence(tmp_path))
    restarted.persistence.on_start(restarted)
    assert [m.content for m in restarted.get_conversation("Chat-1").messages][-2:] == ["and 7*8?", "56"]


def test_replay_legacy_inline_reasoning():
    message = Message(
        role="assistant",
        content="<think>old style</think>Answer text",
        metadata={THINK_TIMESTAMP: 10, TIMESTAMP: 20},
    )

    segments = replay(message)

    assert [(s.kind, s.text) for s in segments] == [
        (SegmentKind.REASONING, "old style"),
        (SegmentKind.ANSWER, "Answer text"),
    ]


def test_replay_plain_message():
    message = Message(role="assistant", content="Just text", metadata={TIMESTAMP: "77"})

    segments = replay(message)

    assert len(segments) == 1
    assert segments[0].kind is SegmentKind.ANSWER
    assert segments[0].opened_at == 77


def test_split_reasoning_joins_spans():
    assert split_reasoning("<think>a</think>x<think>b</think>y") == ("ab", "xy")

"""Conversation model, metadata keys and persisted record shapes."""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from parley.llm.client import ChatOptions, Message

CONVERSATION_ID_PREFIX = "Chat-"

# Message metadata keys; persisted files depend on these names
TIMESTAMP = "timestamp"
CONVERSATION_ID = "conversationId"
THINK_TIMESTAMP = "thinkTimestamp"
THINK_TEXT = "thinkText"
TOOL_ACTIVITY_TIMESTAMP = "toolActivityTimestamp"
TOOL_ACTIVITY_MESSAGES = "toolActivityMessages"
CHAT_META = "chatMeta"

_clock_lock = threading.Lock()
_last_millis = 0


def current_millis() -> int:
    """Wall-clock epoch milliseconds that never go backwards within a process."""
    global _last_millis
    with _clock_lock:
        _last_millis = max(time.time_ns() // 1_000_000, _last_millis)
        return _last_millis


@dataclass
class Conversation:
    """A conversation and its sampling options.

    Messages are fetched lazily through ``messages_loader`` so the store stays
    the single owner of the message list.
    """

    id: str
    create_timestamp: int
    update_timestamp: int
    title: str | None = None
    system_prompt: str | None = None
    options: ChatOptions = field(default_factory=ChatOptions)
    messages_loader: Callable[[], list[Message]] = field(default=list, repr=False, compare=False)

    @property
    def messages(self) -> list[Message]:
        return self.messages_loader()

    def stamp_trailing_messages(self, timestamp: int) -> None:
        """Stamp trailing messages that have no timestamp yet.

        Walks back from the last message and stops at the first one that is
        already stamped.
        """
        for message in reversed(self.messages):
            if TIMESTAMP in message.metadata:
                break
            message.metadata[TIMESTAMP] = timestamp


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UsageSummary(_CamelModel):
    """Token counts of one response."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatMeta(_CamelModel):
    """Response summary stored on the user message of an exchange."""

    model: str | None = None
    usage: UsageSummary = Field(default_factory=UsageSummary)
    retrieved_document_count: int = 0
    retrieved_document_ids: list[str] = Field(default_factory=list)


class MessageRecord(_CamelModel):
    """A persisted message."""

    message_type: str  # user, assistant, system, tool
    text: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)


class ConversationRecord(_CamelModel):
    """A persisted conversation, one file per record."""

    conversation_id: str
    title: str | None = None
    create_timestamp: int
    update_timestamp: int
    system_prompt: str | None = None
    chat_options: ChatOptions = Field(default_factory=ChatOptions)
    message_list: list[MessageRecord] = Field(default_factory=list)

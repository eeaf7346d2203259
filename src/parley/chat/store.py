"""Conversation storage and lifecycle."""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol

from parley.chat.schema import CONVERSATION_ID_PREFIX, Conversation, current_millis
from parley.errors import ConversationNotFoundError
from parley.llm.client import ChatOptions, Message

if TYPE_CHECKING:
    from parley.chat.persistence import ConversationPersistence

logger = logging.getLogger(__name__)

TITLE_LENGTH = 20


class ConversationStore(Protocol):
    """Holds active conversations and their message lists."""

    def get(self, conversation_id: str) -> Conversation | None:
        ...

    def put(self, conversation: Conversation) -> None:
        ...

    def remove(self, conversation_id: str) -> None:
        ...

    def list(self) -> list[Conversation]:
        ...

    def messages(self, conversation_id: str) -> list[Message]:
        """The live message list of a conversation, created empty on first use."""
        ...

    def append_messages(self, conversation_id: str, messages: list[Message]) -> None:
        ...


class InMemoryConversationStore:
    """Process-local store. All access goes through one lock."""

    def __init__(self) -> None:
        self._conversations: dict[str, Conversation] = {}
        self._messages: dict[str, list[Message]] = {}
        self._lock = threading.Lock()

    def get(self, conversation_id: str) -> Conversation | None:
        with self._lock:
            return self._conversations.get(conversation_id)

    def put(self, conversation: Conversation) -> None:
        with self._lock:
            self._conversations[conversation.id] = conversation

    def remove(self, conversation_id: str) -> None:
        with self._lock:
            self._conversations.pop(conversation_id, None)
            self._messages.pop(conversation_id, None)

    def list(self) -> list[Conversation]:
        with self._lock:
            return list(self._conversations.values())

    def messages(self, conversation_id: str) -> list[Message]:
        with self._lock:
            return self._messages.setdefault(conversation_id, [])

    def append_messages(self, conversation_id: str, messages: list[Message]) -> None:
        with self._lock:
            self._messages.setdefault(conversation_id, []).extend(messages)


def build_title(user_prompt: str, length: int = TITLE_LENGTH) -> str:
    """Shorten a prompt into a conversation title."""
    user_prompt = user_prompt.strip()
    return user_prompt[:length] + "..." if len(user_prompt) > length else user_prompt


def extract_title(messages: list[Message]) -> str:
    """Title a conversation after its first user message.

    Raises:
        ValueError: If there is no user message
    """
    first_user = next((m for m in messages if m.role == "user"), None)
    if first_user is None:
        raise ValueError(f"No user message to build a title from: {messages}")
    return build_title(first_user.content)


class ConversationService:
    """Creates, completes, lists and deletes conversations."""

    def __init__(
        self,
        store: ConversationStore | None = None,
        persistence: ConversationPersistence | None = None,
        clock: Callable[[], int] = current_millis,
    ):
        """Initialize the service.

        Args:
            store: Backing store; defaults to an in-memory store
            persistence: File persistence used when deleting conversations
            clock: Epoch-millisecond clock
        """
        self.store = store if store is not None else InMemoryConversationStore()
        self.persistence = persistence
        self.clock = clock

    def _loader(self, conversation_id: str) -> Callable[[], list[Message]]:
        return lambda: self.store.messages(conversation_id)

    def create_conversation(
        self,
        system_prompt: str | None = None,
        options: ChatOptions | None = None,
    ) -> Conversation:
        """Start a new conversation.

        The conversation enters the store once its first exchange completes.

        Args:
            system_prompt: System prompt for the conversation
            options: Sampling options, copied

        Returns:
            The new conversation
        """
        conversation_id = CONVERSATION_ID_PREFIX + str(uuid.uuid4())
        timestamp = self.clock()
        return Conversation(
            id=conversation_id,
            create_timestamp=timestamp,
            update_timestamp=timestamp,
            system_prompt=system_prompt,
            options=(options or ChatOptions()).model_copy(),
            messages_loader=self._loader(conversation_id),
        )

    def complete_conversation(self, conversation: Conversation) -> Conversation:
        """Record that an exchange finished.

        Titles an untitled conversation after its first user message, bumps
        its update time, stamps trailing messages and stores it.

        Raises:
            ValueError: If the conversation is untitled and has no user message
        """
        if not conversation.title or not conversation.title.strip():
            conversation.title = extract_title(conversation.messages)
        conversation.update_timestamp = self.clock()
        conversation.stamp_trailing_messages(conversation.update_timestamp)
        self.store.put(conversation)
        return conversation

    def list_conversations(self) -> list[Conversation]:
        """Stored conversations, most recently updated first."""
        return sorted(self.store.list(), key=lambda c: c.update_timestamp, reverse=True)

    def get_conversation(self, conversation_id: str) -> Conversation:
        """Look up a stored conversation.

        Raises:
            ConversationNotFoundError: If no conversation has this id
        """
        conversation = self.store.get(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    def delete_conversation(self, conversation: Conversation) -> None:
        """Remove a conversation from the store and from disk."""
        self.store.remove(conversation.id)
        if self.persistence is not None:
            self.persistence.delete(conversation)

    def put_if_absent(self, conversation: Conversation) -> None:
        """Adopt a loaded conversation unless one with the same id is active.

        The loaded messages move into the store and the conversation reads them
        from there afterwards.
        """
        if self.store.get(conversation.id) is not None:
            return
        self.store.append_messages(conversation.id, list(conversation.messages))
        conversation.messages_loader = self._loader(conversation.id)
        self.store.put(conversation)

"""JSON file persistence for conversations.

Each conversation is saved as ``<home>/chat/save/<conversation id>.json``.
Files are written when the application shuts down and read back when it
starts; message metadata is stored as-is so every key round-trips.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from parley.chat.schema import Conversation, ConversationRecord, MessageRecord
from parley.errors import PersistenceError
from parley.llm.client import Message

if TYPE_CHECKING:
    from parley.chat.store import ConversationService

logger = logging.getLogger(__name__)


def to_record(conversation: Conversation) -> ConversationRecord:
    """Convert a conversation into its persisted shape."""
    return ConversationRecord(
        conversation_id=conversation.id,
        title=conversation.title,
        create_timestamp=conversation.create_timestamp,
        update_timestamp=conversation.update_timestamp,
        system_prompt=conversation.system_prompt,
        chat_options=conversation.options,
        message_list=[
            MessageRecord(message_type=m.role, text=m.content, metadata=m.metadata)
            for m in conversation.messages
        ],
    )


def from_record(record: ConversationRecord) -> Conversation:
    """Rebuild a conversation from its persisted shape."""
    messages = [
        Message(
            role=m.message_type.lower(),
            content=m.text,
            metadata=dict(m.metadata),
        )
        for m in record.message_list
    ]
    return Conversation(
        id=record.conversation_id,
        title=record.title,
        create_timestamp=record.create_timestamp,
        update_timestamp=record.update_timestamp,
        system_prompt=record.system_prompt or "",
        options=record.chat_options,
        messages_loader=lambda: messages,
    )


class ConversationPersistence:
    """Saves and loads conversations as JSON files."""

    def __init__(self, home_dir: str | Path):
        """Initialize persistence.

        Args:
            home_dir: Application home directory
        """
        self.save_dir = Path(home_dir) / "chat" / "save"
        self.save_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, conversation: Conversation) -> Path:
        return self.save_dir / f"{conversation.id}.json"

    def save(self, conversation: Conversation) -> Path:
        """Write a conversation to its file.

        Raises:
            PersistenceError: If the file cannot be written
        """
        path = self.path_for(conversation)
        logger.info("Saving Conversation to file: %s", path.absolute())
        try:
            self.save_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(to_record(conversation).model_dump_json(by_alias=True), encoding="utf-8")
        except OSError as e:
            raise PersistenceError(f"Failed to save conversation to {path}: {e}") from e
        return path

    def loads(self) -> list[Conversation]:
        """Load every saved conversation. Hidden files are skipped.

        Raises:
            PersistenceError: If a file cannot be read or parsed
        """
        conversations = []
        for path in sorted(self.save_dir.iterdir()):
            if path.name.startswith(".") or not path.is_file():
                continue
            logger.info("Load file : %s", path.absolute())
            try:
                record = ConversationRecord.model_validate_json(path.read_text(encoding="utf-8"))
            except (OSError, ValidationError) as e:
                raise PersistenceError(f"Failed to load conversation from {path}: {e}") from e
            conversations.append(from_record(record))
        return conversations

    def delete(self, conversation: Conversation) -> None:
        """Delete a conversation's file if it exists."""
        path = self.path_for(conversation)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"Failed to delete {path}: {e}") from e
        logger.info("Deleted conversation file: %s", path.absolute())

    def on_start(self, service: ConversationService) -> int:
        """Load saved conversations into the service.

        Returns:
            Number of conversations loaded
        """
        conversations = self.loads()
        for conversation in conversations:
            service.put_if_absent(conversation)
        return len(conversations)

    def on_shutdown(self, service: ConversationService) -> int:
        """Save every stored conversation.

        Returns:
            Number of conversations saved
        """
        conversations = service.list_conversations()
        for conversation in conversations:
            self.save(conversation)
        return len(conversations)

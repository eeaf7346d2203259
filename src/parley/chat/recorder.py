"""Finalization: folds a session's buffers into durable message metadata."""

import logging

from parley.chat.dispatcher import ResponseMetadata
from parley.chat.schema import (
    CHAT_META,
    CONVERSATION_ID,
    THINK_TEXT,
    THINK_TIMESTAMP,
    TIMESTAMP,
    TOOL_ACTIVITY_MESSAGES,
    TOOL_ACTIVITY_TIMESTAMP,
    ChatMeta,
    Conversation,
    UsageSummary,
)
from parley.chat.session import StreamSession

logger = logging.getLogger(__name__)


class FinalizationRecorder:
    """Writes segment metadata onto the trailing user/assistant message pair.

    Only in-memory metadata is mutated; saving to disk happens when the
    conversation is completed or the application shuts down.
    """

    def finalize(self, session: StreamSession, conversation: Conversation) -> bool:
        """Finalize a session once.

        Args:
            session: Session to finalize
            conversation: Conversation holding the trailing message pair

        Returns:
            True if this call performed the finalization, False if the session
            had already been finalized
        """
        if not session.claim_finalization():
            return False

        messages = conversation.messages
        if not messages:
            logger.error(
                "No messages found in conversation to finalize. [conversation_id=%s]",
                conversation.id,
            )
            return True

        pair = messages[-2:]
        assistant = pair[-1]
        user = pair[0] if len(pair) == 2 else None

        if user is not None and user.role == "user":
            if TIMESTAMP not in user.metadata:
                user.metadata[TIMESTAMP] = session.start_timestamp
            user.metadata[CONVERSATION_ID] = conversation.id
        else:
            logger.error(
                "No user message found in conversation to finalize. [conversation_id=%s]",
                conversation.id,
            )

        metadata = assistant.metadata
        response_timestamp = session.response_timestamp

        if session.reasoning_opened_at is not None:
            metadata[THINK_TIMESTAMP] = session.reasoning_opened_at
            metadata[THINK_TEXT] = session.reasoning_text
            # Visible response begins where reasoning ends
            response_timestamp = session.reasoning_closed_at or session.clock()

        if session.tool_activity_opened_at is not None:
            metadata[TOOL_ACTIVITY_TIMESTAMP] = session.tool_activity_opened_at
            metadata[TOOL_ACTIVITY_MESSAGES] = session.tool_activity_text

        if response_timestamp is None:
            response_timestamp = session.clock()

        if assistant.role == "assistant":
            assistant.content = session.answer_text
        metadata[TIMESTAMP] = response_timestamp
        metadata[CONVERSATION_ID] = conversation.id
        return True

    def record_response_metadata(
        self,
        conversation: Conversation,
        metadata: ResponseMetadata,
    ) -> None:
        """Store the response summary on the last user message.

        Args:
            conversation: Conversation that was answered
            metadata: Model, usage and retrieved documents of the response
        """
        user = next((m for m in reversed(conversation.messages) if m.role == "user"), None)
        if user is None:
            logger.error(
                "No user message found in chat history to update metadata. [conversation_id=%s]",
                conversation.id,
            )
            return

        usage = metadata.usage
        document_ids = metadata.document_ids
        chat_meta = ChatMeta(
            model=metadata.model,
            usage=UsageSummary(
                prompt_tokens=usage.prompt_tokens,
                completion_tokens=usage.completion_tokens,
                total_tokens=usage.total_tokens,
            ),
            retrieved_document_count=len(document_ids),
            retrieved_document_ids=document_ids,
        )
        user.metadata[CHAT_META] = chat_meta.model_dump(by_alias=True)

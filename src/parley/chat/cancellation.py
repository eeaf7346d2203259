"""User-initiated cancellation of an in-flight generation."""

import asyncio
import logging

from parley.chat.recorder import FinalizationRecorder
from parley.chat.schema import Conversation
from parley.chat.session import StreamSession

logger = logging.getLogger(__name__)


class CancellationController:
    """Stops a generation and finalizes it with whatever was buffered.

    Cancellation and natural completion race for the session's single
    finalization; whichever claims it first wins and the other is a no-op.
    """

    def __init__(
        self,
        recorder: FinalizationRecorder,
        conversation: Conversation,
        task: asyncio.Task | None = None,
    ):
        self.recorder = recorder
        self.conversation = conversation
        self.task = task

    def cancel(self, session: StreamSession) -> bool:
        """Cancel the generation of ``session``.

        Further deltas and tool events are dropped from this point on. The
        consumer task, if any, is cancelled without waiting for it.

        Returns:
            True if this call cancelled the session, False if it was already
            cancelled or finalized
        """
        if not session.cancel():
            return False

        logger.info("Generation cancelled. [conversation_id=%s]", session.conversation_id)
        if self.task is not None and not self.task.done():
            self.task.cancel()
        self.recorder.finalize(session, self.conversation)
        return True

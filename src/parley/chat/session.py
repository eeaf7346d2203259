"""Transient state of one in-flight generation."""

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from parley.chat.schema import current_millis


class StreamState(Enum):
    """Classification mode of a stream."""

    NORMAL = "normal"
    THINKING = "thinking"


@dataclass
class StreamSession:
    """Buffers and flags of one generation.

    Owned by the task that started the generation. The only mutation allowed
    from elsewhere is :meth:`append_tool_activity`, which is lock-protected.
    Once the session is closed (cancelled or finalized) nothing else is
    appended.
    """

    conversation_id: str
    clock: Callable[[], int] = field(default=current_millis, repr=False)
    start_timestamp: int = 0
    state: StreamState = StreamState.NORMAL
    first_response: bool = True
    response_timestamp: int | None = None
    answer: list[str] = field(default_factory=list)
    reasoning: list[str] = field(default_factory=list)
    reasoning_opened_at: int | None = None
    reasoning_closed_at: int | None = None
    tool_activity: list[str] = field(default_factory=list)
    tool_activity_opened_at: int | None = None
    cancelled: bool = False
    finalized: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.start_timestamp:
            self.start_timestamp = self.clock()

    @property
    def closed(self) -> bool:
        return self.cancelled or self.finalized

    @property
    def answer_text(self) -> str:
        return "".join(self.answer)

    @property
    def reasoning_text(self) -> str:
        return "".join(self.reasoning)

    @property
    def tool_activity_text(self) -> str:
        with self._lock:
            return "".join(self.tool_activity)

    def append_tool_activity(self, entry: str, timestamp: int) -> bool:
        """Append a transcript entry, opening the segment on first use.

        Returns:
            False if the session is already closed and the entry was dropped
        """
        with self._lock:
            if self.closed:
                return False
            if self.tool_activity_opened_at is None:
                self.tool_activity_opened_at = timestamp
            self.tool_activity.append(entry)
            return True

    def cancel(self) -> bool:
        """Mark the session cancelled.

        Returns:
            False if it was already cancelled or finalized
        """
        with self._lock:
            if self.closed:
                return False
            self.cancelled = True
            return True

    def claim_finalization(self) -> bool:
        """Claim the single finalization of this session.

        Returns:
            True exactly once per session
        """
        with self._lock:
            if self.finalized:
                return False
            self.finalized = True
            return True

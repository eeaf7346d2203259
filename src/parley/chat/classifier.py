"""Segment classifier: splits a live stream into answer, reasoning and tool activity.

Content deltas drive a two-state machine (NORMAL / THINKING). Reasoning spans
are recognised only when a single delta starts with the open marker or ends
with the close marker; a marker in the middle of other text, or split across
two deltas, is treated as ordinary content.

Tool-activity events arrive on their own channel, possibly from another
thread, and go to their own buffer. Ordering is kept within each kind only.
"""

import re
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

from parley.chat.segments import SegmentKind, SegmentUpdate
from parley.chat.session import StreamSession, StreamState
from parley.tools.activity import ToolActivityEvent, format_activity_entry, is_final_result

DEFAULT_OPEN_MARKER = "<think>"
DEFAULT_CLOSE_MARKER = "</think>"


class Effect(Enum):
    """Side effects a transition asks the session to apply."""

    OPEN_REASONING = "open_reasoning"
    APPEND_REASONING = "append_reasoning"
    CLOSE_REASONING = "close_reasoning"
    APPEND_ANSWER = "append_answer"
    MARK_FIRST_RESPONSE = "mark_first_response"


@dataclass(frozen=True)
class ClassifierState:
    """The part of a session the transition function reads."""

    mode: StreamState = StreamState.NORMAL
    reasoning_opened: bool = False
    first_response: bool = True


@dataclass(frozen=True)
class Transition:
    state: ClassifierState
    effects: tuple[Effect, ...] = ()


def transition(
    state: ClassifierState,
    delta: str,
    open_marker: str = DEFAULT_OPEN_MARKER,
    close_marker: str = DEFAULT_CLOSE_MARKER,
) -> Transition:
    """Compute the next state and effects for one content delta.

    Rules, in order:

    1. A delta starting with the open marker enters THINKING; nothing is shown.
    2. A delta ending with the close marker returns to NORMAL and closes the
       reasoning segment if one is open; nothing is shown.
    3. In THINKING, a blank delta before any reasoning content is dropped;
       anything else is reasoning, opening the segment on first append.
    4. In NORMAL the delta is answer text; the first one marks the response.
    """
    if delta.startswith(open_marker):
        return Transition(
            ClassifierState(StreamState.THINKING, state.reasoning_opened, state.first_response)
        )

    if delta.endswith(close_marker):
        effects = (Effect.CLOSE_REASONING,) if state.reasoning_opened else ()
        return Transition(
            ClassifierState(StreamState.NORMAL, state.reasoning_opened, state.first_response),
            effects,
        )

    if state.mode is StreamState.THINKING:
        if not state.reasoning_opened:
            if not delta.strip():
                return Transition(state)
            return Transition(
                ClassifierState(StreamState.THINKING, True, state.first_response),
                (Effect.OPEN_REASONING, Effect.APPEND_REASONING),
            )
        return Transition(state, (Effect.APPEND_REASONING,))

    if state.first_response:
        return Transition(
            ClassifierState(StreamState.NORMAL, state.reasoning_opened, False),
            (Effect.APPEND_ANSWER, Effect.MARK_FIRST_RESPONSE),
        )
    return Transition(state, (Effect.APPEND_ANSWER,))


def split_marked_text(
    text: str,
    open_marker: str = DEFAULT_OPEN_MARKER,
    close_marker: str = DEFAULT_CLOSE_MARKER,
) -> Iterator[str]:
    """Split a complete response into deltas the state machine recognises.

    Markers become deltas of their own, so a single-shot response classifies
    exactly like the same text streamed token by token.
    """
    pattern = f"({re.escape(open_marker)}|{re.escape(close_marker)})"
    for piece in re.split(pattern, text):
        if piece:
            yield piece


class SegmentClassifier:
    """Applies :func:`transition` to a :class:`StreamSession`."""

    def __init__(
        self,
        session: StreamSession,
        open_marker: str = DEFAULT_OPEN_MARKER,
        close_marker: str = DEFAULT_CLOSE_MARKER,
        activity_time_format: str = "%Y-%m-%dT%H:%M:%S",
    ):
        """Initialize the classifier.

        Args:
            session: Session whose buffers are filled
            open_marker: Prefix that opens a reasoning span
            close_marker: Suffix that closes a reasoning span
            activity_time_format: strftime format for transcript entries
        """
        self.session = session
        self.open_marker = open_marker
        self.close_marker = close_marker
        self.activity_time_format = activity_time_format

    @property
    def state(self) -> ClassifierState:
        return ClassifierState(
            mode=self.session.state,
            reasoning_opened=self.session.reasoning_opened_at is not None,
            first_response=self.session.first_response,
        )

    def feed(self, delta: str) -> list[SegmentUpdate]:
        """Classify one content delta.

        Args:
            delta: Content delta from the provider

        Returns:
            Display updates; empty for markers, suppressed deltas, or when the
            session is already closed
        """
        session = self.session
        if session.closed:
            return []

        timestamp = session.clock()
        result = transition(self.state, delta, self.open_marker, self.close_marker)
        session.state = result.state.mode
        session.first_response = result.state.first_response

        updates: list[SegmentUpdate] = []
        for effect in result.effects:
            if effect is Effect.OPEN_REASONING:
                session.reasoning_opened_at = timestamp
            elif effect is Effect.APPEND_REASONING:
                session.reasoning.append(delta)
                updates.append(SegmentUpdate(SegmentKind.REASONING, delta, timestamp))
            elif effect is Effect.CLOSE_REASONING:
                session.reasoning_closed_at = timestamp
            elif effect is Effect.APPEND_ANSWER:
                session.answer.append(delta)
                updates.append(SegmentUpdate(SegmentKind.ANSWER, delta, timestamp))
            elif effect is Effect.MARK_FIRST_RESPONSE:
                session.response_timestamp = timestamp
        return updates

    def feed_text(self, text: str) -> list[SegmentUpdate]:
        """Classify a complete response as if it had been streamed."""
        updates: list[SegmentUpdate] = []
        for delta in split_marked_text(text, self.open_marker, self.close_marker):
            updates.extend(self.feed(delta))
        return updates

    def accept_tool_activity(self, event: ToolActivityEvent) -> SegmentUpdate | None:
        """Append a tool-activity event to the transcript.

        Safe to call from any thread.

        Returns:
            The display update, or None if the session is closed
        """
        timestamp = self.session.clock()
        entry = format_activity_entry(event, timestamp, self.activity_time_format)
        if not self.session.append_tool_activity(entry, timestamp):
            return None
        return SegmentUpdate(
            SegmentKind.TOOL_ACTIVITY,
            entry,
            timestamp,
            collapse=is_final_result(event),
        )

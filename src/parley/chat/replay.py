"""Rebuild display segments from a persisted message."""

import re

from parley.chat.classifier import DEFAULT_CLOSE_MARKER, DEFAULT_OPEN_MARKER
from parley.chat.schema import (
    THINK_TEXT,
    THINK_TIMESTAMP,
    TIMESTAMP,
    TOOL_ACTIVITY_MESSAGES,
    TOOL_ACTIVITY_TIMESTAMP,
)
from parley.chat.segments import Segment, SegmentKind
from parley.llm.client import Message


def split_reasoning(
    text: str,
    open_marker: str = DEFAULT_OPEN_MARKER,
    close_marker: str = DEFAULT_CLOSE_MARKER,
) -> tuple[str, str]:
    """Separate inline reasoning spans from the rest of a text.

    Returns:
        Tuple of (reasoning, remaining text); reasoning spans are concatenated
    """
    pattern = re.compile(f"{re.escape(open_marker)}(.*?){re.escape(close_marker)}", re.DOTALL)
    reasoning = "".join(pattern.findall(text))
    return reasoning, pattern.sub("", text)


def _millis(value: object) -> int:
    return int(str(value)) if value is not None else 0


def replay(
    message: Message,
    open_marker: str = DEFAULT_OPEN_MARKER,
    close_marker: str = DEFAULT_CLOSE_MARKER,
) -> list[Segment]:
    """Reconstruct the segments a finalized message was displayed with.

    Reasoning and tool activity come first, ordered by the time they opened,
    followed by the message text itself. Messages saved before reasoning was
    kept in metadata carry it inline between markers; that form is split out
    when ``thinkTimestamp`` is present.

    Args:
        message: Persisted message
        open_marker: Inline reasoning open marker
        close_marker: Inline reasoning close marker

    Returns:
        Segments in display order
    """
    metadata = message.metadata
    text = message.content
    side_segments: list[Segment] = []

    think_timestamp = metadata.get(THINK_TIMESTAMP)
    if think_timestamp is not None:
        reasoning, remaining = split_reasoning(text, open_marker, close_marker)
        if reasoning:
            text = remaining
        reasoning = metadata.get(THINK_TEXT) or reasoning
        if reasoning:
            side_segments.append(
                Segment(SegmentKind.REASONING, reasoning, _millis(think_timestamp))
            )

    tool_activity = metadata.get(TOOL_ACTIVITY_MESSAGES)
    if tool_activity is not None:
        side_segments.append(
            Segment(
                SegmentKind.TOOL_ACTIVITY,
                tool_activity,
                _millis(metadata.get(TOOL_ACTIVITY_TIMESTAMP)),
            )
        )

    side_segments.sort(key=lambda segment: segment.opened_at)
    return [
        *side_segments,
        Segment(SegmentKind.ANSWER, text, _millis(metadata.get(TIMESTAMP))),
    ]

"""Display segment types."""

from dataclasses import dataclass
from enum import Enum


class SegmentKind(Enum):
    """Display kinds a generation is split into."""

    ANSWER = "answer"
    REASONING = "reasoning"
    TOOL_ACTIVITY = "tool_activity"


@dataclass(frozen=True)
class SegmentUpdate:
    """An incremental display update produced while a generation streams.

    ``collapse`` asks the display layer to fold the segment away; it is set on
    the final result of a tool round and does not affect classification.
    """

    kind: SegmentKind
    text: str
    timestamp: int
    collapse: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "kind": self.kind.value,
            "text": self.text,
            "timestamp": self.timestamp,
            "collapse": self.collapse,
        }


@dataclass(frozen=True)
class Segment:
    """A complete run of one display kind, as reconstructed for replay."""

    kind: SegmentKind
    text: str
    opened_at: int

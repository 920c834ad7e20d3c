"""
Diagram Event Feed

Builds the time-ordered list of wire exchanges (Send / ACK / NACK) that
sequence-diagram renderers consume.
"""

from enum import Enum
from typing import Iterable, List
from dataclasses import dataclass

from .frame import Frame, Acknowledgment, AckType


class EventKind(Enum):
    """Kinds of wire exchange shown on a sequence diagram."""
    SEND = "Send"
    ACK = "ACK"
    NACK = "NACK"


@dataclass(frozen=True)
class DiagramEvent:
    """Single exchange on the sequence diagram."""
    timestamp: float
    kind: EventKind
    seq_num: int

    @property
    def label(self) -> str:
        return f"{self.kind.value} {self.seq_num}"

    @property
    def from_receiver(self) -> bool:
        """ACK/NACK arrows point from receiver to sender."""
        return self.kind != EventKind.SEND


def _ack_kind(ack: Acknowledgment) -> EventKind:
    return EventKind.ACK if ack.ack_type == AckType.ACK else EventKind.NACK


def build_event_feed(
    frames: Iterable[Frame],
    acknowledgments: Iterable[Acknowledgment]
) -> List[DiagramEvent]:
    """
    Build the diagram feed.

    Covers every frame that reached the receiver and every ACK/NACK
    record, sorted by creation timestamp. Arrived means any of RECEIVED,
    ACKNOWLEDGED, BUFFERED or DISCARDED, not just RECEIVED, so a send
    stays on the diagram after it has been acknowledged or buffered.

    Args:
        frames: Frame records
        acknowledgments: Acknowledgment records

    Returns:
        Events in timestamp order
    """
    events = [
        DiagramEvent(f.created_at, EventKind.SEND, f.seq_num)
        for f in frames if f.has_arrived
    ]
    events.extend(
        DiagramEvent(a.created_at, _ack_kind(a), a.seq_num)
        for a in acknowledgments
    )
    events.sort(key=lambda e: e.timestamp)
    return events

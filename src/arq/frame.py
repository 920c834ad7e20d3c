"""
Frame and Acknowledgment Records for the ARQ Simulator

This module defines the records exchanged on the simulated link and the
append-only registry that owns them. Records are never removed or
replaced; only their status changes as the simulation progresses.
"""

from enum import Enum
from typing import Dict, List, Optional
from dataclasses import dataclass


class FrameStatus(Enum):
    """Lifecycle states of a data frame."""
    SENDING = "sending"
    RECEIVED = "received"
    ACKNOWLEDGED = "acknowledged"
    LOST = "lost"
    RETRANSMITTING = "retransmitting"
    BUFFERED = "buffered"
    DISCARDED = "discarded"


class AckType(Enum):
    """Acknowledgment type enumeration."""
    ACK = "ACK"
    NACK = "NACK"


class AckStatus(Enum):
    """Lifecycle states of an acknowledgment."""
    SENDING = "sending"
    RECEIVED = "received"


# Statuses of a frame that made it to the receiver
ARRIVED_STATUSES = frozenset({
    FrameStatus.RECEIVED,
    FrameStatus.ACKNOWLEDGED,
    FrameStatus.BUFFERED,
    FrameStatus.DISCARDED,
})

# Statuses of a frame still travelling towards the receiver
IN_FLIGHT_STATUSES = frozenset({
    FrameStatus.SENDING,
    FrameStatus.RETRANSMITTING,
})


@dataclass
class Frame:
    """
    One transmission attempt of a sequence number.

    Attributes:
        frame_id: Unique id, assigned in creation order
        seq_num: Sequence number
        payload: Frame label, carried unchanged across retransmissions
        status: Current lifecycle state
        is_retransmission: True for frames created by a retransmit action
        created_at: Simulation timestamp of creation
    """

    frame_id: int
    seq_num: int
    payload: str
    status: FrameStatus = FrameStatus.SENDING
    is_retransmission: bool = False
    created_at: float = 0.0

    def __post_init__(self):
        """Validate frame after initialization."""
        if self.seq_num < 0:
            raise ValueError("Sequence number must be non-negative")

    @staticmethod
    def make_payload(seq_num: int) -> str:
        """Payload label for a fresh frame."""
        return f"Frame {seq_num}"

    @property
    def has_arrived(self) -> bool:
        """Check if the frame reached the receiver."""
        return self.status in ARRIVED_STATUSES

    @property
    def in_flight(self) -> bool:
        """Check if the frame is still travelling."""
        return self.status in IN_FLIGHT_STATUSES

    def __repr__(self) -> str:
        retx = ", retx" if self.is_retransmission else ""
        return (f"Frame(id={self.frame_id}, seq={self.seq_num}, "
                f"status={self.status.value}{retx})")


@dataclass
class Acknowledgment:
    """
    One ACK or NACK exchange travelling from receiver to sender.

    Attributes:
        ack_id: Unique id, assigned in creation order
        seq_num: Sequence number being (negatively) acknowledged
        ack_type: ACK or NACK
        status: SENDING until the transit delay elapses, then RECEIVED
        created_at: Simulation timestamp of creation
    """

    ack_id: int
    seq_num: int
    ack_type: AckType
    status: AckStatus = AckStatus.SENDING
    created_at: float = 0.0

    def __repr__(self) -> str:
        return (f"Acknowledgment(id={self.ack_id}, {self.ack_type.value} "
                f"{self.seq_num}, status={self.status.value})")


class FrameRegistry:
    """
    Append-only log of frames and acknowledgments.

    Records are indexed by their stable id; lookups by sequence number
    scan in creation order, which keeps "most recent record" queries
    well defined after retransmissions.
    """

    def __init__(self):
        self.frames: List[Frame] = []
        self.acknowledgments: List[Acknowledgment] = []
        self._frames_by_id: Dict[int, Frame] = {}
        self._acks_by_id: Dict[int, Acknowledgment] = {}
        self._next_frame_id = 0
        self._next_ack_id = 0

    def add_frame(
        self,
        seq_num: int,
        payload: str,
        created_at: float,
        status: FrameStatus = FrameStatus.SENDING,
        is_retransmission: bool = False
    ) -> Frame:
        """
        Append a new frame record.

        Args:
            seq_num: Sequence number
            payload: Frame payload label
            created_at: Creation timestamp
            status: Initial status
            is_retransmission: Whether the frame is a retransmission

        Returns:
            The new frame
        """
        frame = Frame(
            frame_id=self._next_frame_id,
            seq_num=seq_num,
            payload=payload,
            status=status,
            is_retransmission=is_retransmission,
            created_at=created_at
        )
        self._next_frame_id += 1
        self.frames.append(frame)
        self._frames_by_id[frame.frame_id] = frame
        return frame

    def add_acknowledgment(
        self,
        seq_num: int,
        ack_type: AckType,
        created_at: float
    ) -> Acknowledgment:
        """Append a new ACK/NACK record in SENDING state."""
        ack = Acknowledgment(
            ack_id=self._next_ack_id,
            seq_num=seq_num,
            ack_type=ack_type,
            created_at=created_at
        )
        self._next_ack_id += 1
        self.acknowledgments.append(ack)
        self._acks_by_id[ack.ack_id] = ack
        return ack

    def get_frame(self, frame_id: int) -> Optional[Frame]:
        """Get a frame by id."""
        return self._frames_by_id.get(frame_id)

    def get_acknowledgment(self, ack_id: int) -> Optional[Acknowledgment]:
        """Get an acknowledgment by id."""
        return self._acks_by_id.get(ack_id)

    def frames_for(self, seq_num: int) -> List[Frame]:
        """All records of a sequence number, oldest first."""
        return [f for f in self.frames if f.seq_num == seq_num]

    def latest_frame(
        self,
        seq_num: int,
        status: Optional[FrameStatus] = None
    ) -> Optional[Frame]:
        """
        Most recent record of a sequence number.

        Args:
            seq_num: Sequence number
            status: Only consider records in this status

        Returns:
            Frame or None
        """
        for frame in reversed(self.frames):
            if frame.seq_num != seq_num:
                continue
            if status is None or frame.status == status:
                return frame
        return None

    def mark_sequence(
        self,
        seq_num: int,
        status: FrameStatus,
        only_from: frozenset = ARRIVED_STATUSES
    ) -> int:
        """
        Move every record of a sequence number in one of `only_from`
        to `status`.

        Returns:
            Number of records changed
        """
        changed = 0
        for frame in self.frames:
            if frame.seq_num == seq_num and frame.status in only_from:
                frame.status = status
                changed += 1
        return changed

    def count_status(self, status: FrameStatus) -> int:
        """Number of frame records currently in a status."""
        return sum(1 for f in self.frames if f.status == status)

    def clear(self):
        """Drop every record and restart ids."""
        self.frames.clear()
        self.acknowledgments.clear()
        self._frames_by_id.clear()
        self._acks_by_id.clear()
        self._next_frame_id = 0
        self._next_ack_id = 0

    @property
    def size(self) -> int:
        """Number of frame records."""
        return len(self.frames)

    @property
    def is_empty(self) -> bool:
        """Check if nothing has been sent."""
        return not self.frames and not self.acknowledgments

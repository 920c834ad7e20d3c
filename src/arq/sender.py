"""
ARQ Sender State

This module implements the sender-side bookkeeping shared by every
protocol: sequence number allocation, the set of outstanding sequence
numbers and the Stop-and-Wait / in-transit flags.
"""

from typing import List, Optional, Set
from dataclasses import dataclass, field


@dataclass
class SendWindow:
    """
    Outstanding (sent but unacknowledged) sequence numbers.

    The base is always derived from the live contents; it is never
    stored separately, so out-of-order removals are reflected at once.

    Attributes:
        outstanding: Sequence numbers awaiting acknowledgment
        size: Window size
    """
    outstanding: Set[int] = field(default_factory=set)
    size: int = 4

    @property
    def base(self) -> Optional[int]:
        """Oldest unacknowledged sequence number, None when empty."""
        if not self.outstanding:
            return None
        return min(self.outstanding)

    @property
    def is_full(self) -> bool:
        """Check if window is full."""
        return len(self.outstanding) >= self.size

    @property
    def is_empty(self) -> bool:
        """Check if nothing is outstanding."""
        return not self.outstanding

    def in_window(self, seq_num: int) -> bool:
        """Check if a sequence number fits in [base, base + size - 1]."""
        base = self.base
        if base is None:
            return True
        return base <= seq_num <= base + self.size - 1

    def add(self, seq_num: int):
        """Mark a sequence number outstanding."""
        self.outstanding.add(seq_num)

    def discard(self, seq_num: int):
        """Remove one sequence number (no-op if absent)."""
        self.outstanding.discard(seq_num)

    def discard_through(self, seq_num: int):
        """Remove every sequence number <= seq_num."""
        self.outstanding = {s for s in self.outstanding if s > seq_num}

    def from_base(self) -> List[int]:
        """Outstanding numbers >= base, ascending."""
        base = self.base
        if base is None:
            return []
        return sorted(s for s in self.outstanding if s >= base)

    def __contains__(self, seq_num: int) -> bool:
        return seq_num in self.outstanding

    def __len__(self) -> int:
        return len(self.outstanding)

    def __iter__(self):
        return iter(sorted(self.outstanding))


class SenderState:
    """
    Sender-side state of the simulated link.

    Attributes:
        next_seq: Next sequence number to assign to a new frame
        window: Outstanding sequence numbers (Go-Back-N, Selective-Repeat)
        awaiting_ack: Stop-and-Wait is blocked until acknowledgment
        busy: The most recent send is still in transit
    """

    def __init__(self, window_size: int = 4):
        """
        Initialize sender state.

        Args:
            window_size: Send window size
        """
        if window_size < 1:
            raise ValueError("Window size must be at least 1")

        self.window_size = window_size
        self.window = SendWindow(size=window_size)
        self.next_seq = 0
        self.awaiting_ack = False
        self.busy = False

        # Statistics
        self.frames_sent = 0
        self.retransmissions = 0

    def allocate_sequence(self) -> int:
        """Get next sequence number and increment counter."""
        seq = self.next_seq
        self.next_seq += 1
        self.frames_sent += 1
        return seq

    def window_allows(self, seq_num: Optional[int] = None) -> bool:
        """
        Sliding-window send check.

        Eligible iff the window has a free slot and the candidate number
        lies within [base, base + size - 1] of the live window.
        """
        if seq_num is None:
            seq_num = self.next_seq
        if self.window.is_full:
            return False
        return self.window.in_window(seq_num)

    def record_retransmission(self):
        """Count a retransmitted frame."""
        self.retransmissions += 1

    def get_window_state(self) -> dict:
        """Get current window state."""
        return {
            'base': self.window.base,
            'next_seq': self.next_seq,
            'size': self.window.size,
            'outstanding': list(self.window),
            'awaiting_ack': self.awaiting_ack,
            'busy': self.busy
        }

    def get_statistics(self) -> dict:
        """Get sender statistics."""
        return {
            'frames_sent': self.frames_sent,
            'retransmissions': self.retransmissions
        }

    def reset(self, window_size: Optional[int] = None):
        """Reset sender to initial state."""
        if window_size is not None:
            if window_size < 1:
                raise ValueError("Window size must be at least 1")
            self.window_size = window_size

        self.window = SendWindow(size=self.window_size)
        self.next_seq = 0
        self.awaiting_ack = False
        self.busy = False
        self.frames_sent = 0
        self.retransmissions = 0

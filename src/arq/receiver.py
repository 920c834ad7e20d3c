"""
ARQ Receiver State

This module implements the receiver side of the simulated link: the
next expected in-order sequence number and, for Selective-Repeat, the
reorder buffer holding frames that arrived ahead of it.
"""

from typing import List, Optional

from .frame import Frame, FrameStatus


class ReceiverState:
    """
    Receiver-side state of the simulated link.

    Attributes:
        expected_seq: Lowest sequence number not yet accepted in order
        reorder_buffer: Out-of-order frames in arrival order
    """

    def __init__(self):
        self.expected_seq = 0
        self.reorder_buffer: List[Frame] = []

        # Statistics
        self.frames_accepted = 0
        self.out_of_order_frames = 0
        self.duplicate_frames = 0

    def is_expected(self, seq_num: int) -> bool:
        """Check if a sequence number is the next in-order one."""
        return seq_num == self.expected_seq

    def is_duplicate(self, seq_num: int) -> bool:
        """Check if a sequence number was already accepted in order."""
        return seq_num < self.expected_seq

    def accept_in_order(self) -> int:
        """
        Accept the expected frame and advance.

        Returns:
            The sequence number accepted
        """
        accepted = self.expected_seq
        self.expected_seq += 1
        self.frames_accepted += 1
        return accepted

    def is_buffered(self, seq_num: int) -> bool:
        """Check if the reorder buffer holds a sequence number."""
        return any(f.seq_num == seq_num for f in self.reorder_buffer)

    def buffer_frame(self, frame: Frame) -> bool:
        """
        Hold an out-of-order frame until the gap before it closes.

        Args:
            frame: Frame that arrived ahead of the expected number

        Returns:
            False if the frame is not ahead of expected or already held
        """
        if frame.seq_num <= self.expected_seq:
            return False
        if self.is_buffered(frame.seq_num):
            return False

        frame.status = FrameStatus.BUFFERED
        self.reorder_buffer.append(frame)
        self.out_of_order_frames += 1
        return True

    def drain(self) -> List[int]:
        """
        Release buffered frames that are now in order.

        Repeats while the buffer holds the (new) expected number, so a
        single in-order arrival can cascade through several held frames.

        Returns:
            Sequence numbers released, in release order
        """
        released = []
        while True:
            frame = self._take(self.expected_seq)
            if frame is None:
                break
            released.append(self.accept_in_order())
        return released

    def _take(self, seq_num: int) -> Optional[Frame]:
        """Remove and return the buffered frame for a sequence number."""
        for idx, frame in enumerate(self.reorder_buffer):
            if frame.seq_num == seq_num:
                return self.reorder_buffer.pop(idx)
        return None

    def record_duplicate(self):
        """Count a frame acknowledged again after in-order acceptance."""
        self.duplicate_frames += 1

    @property
    def buffered_sequence_numbers(self) -> List[int]:
        """Sequence numbers held, in arrival order."""
        return [f.seq_num for f in self.reorder_buffer]

    def get_window_state(self) -> dict:
        """Get current receiver state."""
        return {
            'expected_seq': self.expected_seq,
            'buffered_frames': self.buffered_sequence_numbers
        }

    def get_statistics(self) -> dict:
        """Get receiver statistics."""
        return {
            'frames_accepted': self.frames_accepted,
            'out_of_order_frames': self.out_of_order_frames,
            'duplicate_frames': self.duplicate_frames,
            'buffered': len(self.reorder_buffer)
        }

    def reset(self):
        """Reset receiver to initial state."""
        self.expected_seq = 0
        self.reorder_buffer.clear()
        self.frames_accepted = 0
        self.out_of_order_frames = 0
        self.duplicate_frames = 0

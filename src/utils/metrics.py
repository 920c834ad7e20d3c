"""
Metrics Collection and Calculation

This module derives the counters shown next to a running simulation:
frames sent, acknowledged, lost, retransmitted and buffered, plus the
success rate.
"""

from dataclasses import dataclass, asdict
from typing import Iterable
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from src.arq.frame import Frame, FrameStatus


@dataclass(frozen=True)
class ProtocolStatistics:
    """
    Snapshot of the derived counters.

    Attributes:
        total_sent: Every frame record, retransmissions included
        total_acknowledged: Distinct sequence numbers acknowledged
        total_lost: Frame records currently marked lost
        total_retransmitted: Frame records created by retransmission
        total_buffered: Frames held in the reorder buffer
        success_rate: Acknowledged / original sends, in percent
    """
    total_sent: int = 0
    total_acknowledged: int = 0
    total_lost: int = 0
    total_retransmitted: int = 0
    total_buffered: int = 0
    success_rate: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


class MetricsCollector:
    """
    Calculates statistics from the frame log.

    Counters are recomputed from records rather than accumulated, so a
    command that turns out to be a no-op can never skew them.
    """

    @staticmethod
    def count_acknowledged(frames: Iterable[Frame]) -> int:
        """
        Distinct sequence numbers with an acknowledged record.

        Several records of one number (original plus resends) can end up
        acknowledged; each number counts once.
        """
        return len({f.seq_num for f in frames if f.status == FrameStatus.ACKNOWLEDGED})

    @staticmethod
    def calculate_success_rate(acknowledged: int, original_sends: int) -> float:
        """
        Success rate in percent.

        Success = Acknowledged / Original (non-retransmitted) sends

        Returns:
            Percentage, 0.0 when nothing original was sent
        """
        if original_sends <= 0:
            return 0.0
        return acknowledged / original_sends * 100.0

    @classmethod
    def collect(cls, frames: Iterable[Frame], buffered: int = 0) -> ProtocolStatistics:
        """
        Build statistics for a frame log.

        Args:
            frames: Frame records in creation order
            buffered: Current reorder buffer size

        Returns:
            ProtocolStatistics
        """
        frames = list(frames)
        retransmitted = sum(1 for f in frames if f.is_retransmission)
        originals = len(frames) - retransmitted
        acknowledged = cls.count_acknowledged(frames)

        return ProtocolStatistics(
            total_sent=len(frames),
            total_acknowledged=acknowledged,
            total_lost=sum(1 for f in frames if f.status == FrameStatus.LOST),
            total_retransmitted=retransmitted,
            total_buffered=buffered,
            success_rate=cls.calculate_success_rate(acknowledged, originals)
        )

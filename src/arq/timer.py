"""
Logical Clock for the ARQ Simulator

This module provides the simulation clock and its delay queue. Every
delayed transition (frame arrival, acknowledgment arrival, scheduled
retransmission) is a callback queued here and fired in time order.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional
import heapq
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from config import TIMESTAMP_RESOLUTION


@dataclass(order=True)
class ScheduledEvent:
    """Delayed callback in the priority queue."""
    fire_time: float
    order: int  # Breaks ties in scheduling order
    callback: Callable[[], None] = field(compare=False)
    label: str = field(compare=False, default="")


class SimulationClock:
    """
    Logical clock with a min-heap of scheduled callbacks.

    Events fire in (fire_time, scheduling order), so two callbacks with
    the same due time fire in the order they were scheduled. Callbacks may
    schedule further events; one scheduled with zero delay while the clock
    is advancing fires within the same advance.

    Attributes:
        now: Current simulation time in seconds
        event_queue: Pending events
    """

    def __init__(self, resolution: float = TIMESTAMP_RESOLUTION):
        """
        Initialize clock.

        Args:
            resolution: Gap inserted between equal creation timestamps
        """
        self.resolution = resolution
        self.now = 0.0
        self.event_queue: List[ScheduledEvent] = []

        self._order = 0
        self._last_stamp: Optional[float] = None

        # Statistics
        self.total_scheduled = 0
        self.total_fired = 0

    def schedule(
        self,
        delay: float,
        callback: Callable[[], None],
        label: str = ""
    ) -> ScheduledEvent:
        """
        Schedule a callback after `delay` seconds.

        Args:
            delay: Non-negative delay from now
            callback: Function to run when the event fires
            label: Description for debugging

        Returns:
            The queued event
        """
        if delay < 0:
            raise ValueError(f"Delay must be non-negative, got {delay}")

        event = ScheduledEvent(
            fire_time=self.now + delay,
            order=self._order,
            callback=callback,
            label=label
        )
        self._order += 1
        self.total_scheduled += 1
        heapq.heappush(self.event_queue, event)
        return event

    def step(self) -> bool:
        """
        Fire the next pending event.

        Returns:
            False if there was nothing to fire
        """
        if not self.event_queue:
            return False

        event = heapq.heappop(self.event_queue)
        if event.fire_time > self.now:
            self.now = event.fire_time

        self.total_fired += 1
        event.callback()
        return True

    def advance(self, duration: float) -> int:
        """
        Move time forward, firing every event due on the way.

        Args:
            duration: Non-negative amount of time to advance

        Returns:
            Number of events fired
        """
        if duration < 0:
            raise ValueError(f"Duration must be non-negative, got {duration}")

        target = self.now + duration
        fired = 0
        while self.event_queue and self.event_queue[0].fire_time <= target:
            self.step()
            fired += 1

        self.now = target
        return fired

    def run_until_idle(self, max_events: Optional[int] = None) -> int:
        """
        Fire events until the queue is empty.

        Args:
            max_events: Stop after this many events (None for no limit)

        Returns:
            Number of events fired
        """
        fired = 0
        while self.event_queue:
            if max_events is not None and fired >= max_events:
                break
            self.step()
            fired += 1
        return fired

    def timestamp(self) -> float:
        """
        Creation timestamp for a new record.

        Strictly increasing across calls, never earlier than `now`.
        """
        stamp = self.now
        if self._last_stamp is not None and stamp <= self._last_stamp:
            stamp = self._last_stamp + self.resolution
        self._last_stamp = stamp
        return stamp

    def get_next_event_time(self) -> Optional[float]:
        """Time of the next pending event, or None if idle."""
        if not self.event_queue:
            return None
        return self.event_queue[0].fire_time

    @property
    def pending(self) -> int:
        """Number of events waiting to fire."""
        return len(self.event_queue)

    @property
    def is_idle(self) -> bool:
        """Check if no events are pending."""
        return not self.event_queue

    def clear(self):
        """Drop all pending events and rewind to time zero."""
        self.event_queue.clear()
        self.now = 0.0
        self._order = 0
        self._last_stamp = None

    def get_statistics(self) -> dict:
        """Get clock statistics."""
        return {
            'now': self.now,
            'pending_events': self.pending,
            'total_scheduled': self.total_scheduled,
            'total_fired': self.total_fired
        }

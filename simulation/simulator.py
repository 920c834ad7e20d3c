"""
Main Simulator - Event-Driven ARQ Protocol Simulation

This module implements the simulation engine that front ends drive with
commands (send, acknowledge, negative-acknowledge, inject loss, reset,
reconfigure) and observe through snapshots and the diagram event feed.
All delayed transitions run on a single logical clock.
"""

from typing import Dict, List, Optional, Tuple, Union
from dataclasses import dataclass, replace
import sys
import os

# Add parent to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import (
    FRAME_TRANSIT_DELAY, ACK_TRANSIT_DELAY, RETRANSMIT_DELAY,
    RETRANSMIT_STAGGER, DEFAULT_PROTOCOL, DEFAULT_WINDOW_SIZE
)
from src.arq.frame import (
    Frame, FrameStatus, Acknowledgment, AckType, AckStatus, FrameRegistry,
    IN_FLIGHT_STATUSES
)
from src.arq.timer import SimulationClock
from src.arq.sender import SenderState
from src.arq.receiver import ReceiverState
from src.arq.protocol import Protocol, ProtocolPolicy, LossTrigger, get_policy
from src.arq.events import DiagramEvent, build_event_feed
from src.utils.metrics import MetricsCollector, ProtocolStatistics
from src.utils.logger import SimulationLogger, LogLevel


# Frames that may still be dropped on the wire
LOSABLE_STATUSES = IN_FLIGHT_STATUSES | {FrameStatus.RECEIVED}


@dataclass
class SimulatorConfig:
    """Configuration for the simulator."""
    # ARQ parameters
    protocol: Union[Protocol, str] = DEFAULT_PROTOCOL
    window_size: int = DEFAULT_WINDOW_SIZE

    # Simulated delays
    frame_transit_delay: float = FRAME_TRANSIT_DELAY
    ack_transit_delay: float = ACK_TRANSIT_DELAY
    retransmit_delay: float = RETRANSMIT_DELAY
    retransmit_stagger: float = RETRANSMIT_STAGGER

    # Block new sends while the previous frame is in transit
    serialize_sends: bool = True

    log_level: int = LogLevel.WARNING
    log_file: Optional[str] = None

    def __post_init__(self):
        """Validate configuration."""
        self.protocol = Protocol.parse(self.protocol)
        if self.window_size < 1:
            raise ValueError("Window size must be at least 1")
        delays = (self.frame_transit_delay, self.ack_transit_delay,
                  self.retransmit_delay, self.retransmit_stagger)
        if any(d < 0 for d in delays):
            raise ValueError("Delays must be non-negative")


@dataclass(frozen=True)
class SimulationSnapshot:
    """Read-only view of the simulation after a transition."""
    protocol: Protocol
    window_size: int
    time: float
    frames: Tuple[Frame, ...]
    acknowledgments: Tuple[Acknowledgment, ...]
    next_seq: int
    expected_seq: int
    window: Tuple[int, ...]
    reorder_buffer: Tuple[int, ...]
    awaiting_ack: bool
    busy: bool
    can_send: bool
    pending_events: int
    statistics: ProtocolStatistics


class Simulator:
    """
    ARQ protocol simulator.

    Commands return immediately; their delayed effects are queued on the
    clock and only happen when time is advanced with `advance`, `step` or
    `run_until_idle`. Commands whose preconditions do not hold are no-ops
    and report that through their return value.
    """

    def __init__(self, config: Optional[SimulatorConfig] = None):
        """Initialize simulator."""
        self.config = config or SimulatorConfig()

        self.logger = SimulationLogger(
            name="ARQ",
            level=self.config.log_level,
            log_file=self.config.log_file
        )

        self.clock = SimulationClock()
        self.registry = FrameRegistry()
        self.sender = SenderState(window_size=self.config.window_size)
        self.receiver = ReceiverState()
        self.policy: ProtocolPolicy = get_policy(self.config.protocol)

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    @property
    def protocol(self) -> Protocol:
        return self.config.protocol

    @property
    def window_size(self) -> int:
        return self.config.window_size

    def set_protocol(self, protocol: Union[Protocol, str]):
        """
        Switch protocol and reset.

        Raises:
            ValueError: Unknown protocol (state unchanged)
        """
        policy = get_policy(protocol)
        self.config.protocol = policy.protocol
        self.policy = policy
        self.reset()
        self.logger.configured(self.protocol.value, self.window_size)

    def set_window_size(self, window_size: int):
        """
        Change the window size and reset.

        Raises:
            ValueError: Window size below 1 (state unchanged)
        """
        if window_size < 1:
            raise ValueError("Window size must be at least 1")
        self.config.window_size = window_size
        self.reset()
        self.logger.configured(self.protocol.value, self.window_size)

    def reset(self):
        """Clear all frames, acknowledgments, counters, flags and pending events."""
        self.clock.clear()
        self.registry.clear()
        self.sender.reset(window_size=self.config.window_size)
        self.receiver.reset()
        self.logger.set_sim_time(self.clock.now)

    # =========================================================================
    # TIME CONTROL
    # =========================================================================

    def advance(self, duration: float) -> int:
        """Advance simulation time, firing due transitions."""
        return self.clock.advance(duration)

    def step(self) -> bool:
        """Fire the next pending transition."""
        return self.clock.step()

    def run_until_idle(self, max_events: Optional[int] = None) -> int:
        """Fire transitions until nothing is pending."""
        return self.clock.run_until_idle(max_events)

    @property
    def now(self) -> float:
        return self.clock.now

    def _schedule(self, delay: float, callback, label: str):
        self.clock.schedule(delay, callback, label)

    def _sync_log_time(self):
        self.logger.set_sim_time(self.clock.now)

    # =========================================================================
    # COMMANDS
    # =========================================================================

    def can_send(self) -> bool:
        """Check if a new frame may be sent now."""
        if self.sender.busy:
            return False
        return self.policy.gate(self.sender)

    def send_frame(self) -> Optional[Frame]:
        """
        Send a new frame with the next sequence number.

        Returns:
            The new frame, or None if sending is not allowed
        """
        self._sync_log_time()
        if not self.can_send():
            self.logger.ignored("send", "sender not eligible")
            return None

        seq_num = self.sender.allocate_sequence()
        frame = self.registry.add_frame(
            seq_num=seq_num,
            payload=Frame.make_payload(seq_num),
            created_at=self.clock.timestamp()
        )

        if self.policy.windowed:
            self.sender.window.add(seq_num)
        if self.policy.awaits_ack:
            self.sender.awaiting_ack = True
        if self.config.serialize_sends:
            self.sender.busy = True

        self._schedule(
            self.config.frame_transit_delay,
            lambda: self._on_send_arrival(frame.frame_id),
            f"arrive {seq_num}"
        )

        self.logger.frame_sent(seq_num, frame.frame_id)
        self.logger.window_update(list(self.sender.window), self.receiver.expected_seq,
                                  self.window_size)
        return frame

    def retransmit_frame(self, seq_num: int) -> Optional[Frame]:
        """
        Send a sequence number again as a new frame record.

        Returns:
            The retransmitted frame, or None if the number was never sent
        """
        self._sync_log_time()
        original = self.registry.latest_frame(seq_num)
        if original is None:
            self.logger.ignored(f"retransmit {seq_num}", "never sent")
            return None

        frame = self.registry.add_frame(
            seq_num=seq_num,
            payload=original.payload,
            created_at=self.clock.timestamp(),
            status=FrameStatus.RETRANSMITTING,
            is_retransmission=True
        )
        self.sender.record_retransmission()

        self._schedule(
            self.config.frame_transit_delay,
            lambda: self._on_retransmit_arrival(frame.frame_id),
            f"arrive retx {seq_num}"
        )

        self.logger.retransmit(seq_num)
        return frame

    def inject_loss(self, frame_id: int) -> bool:
        """
        Drop a frame on the wire and start protocol recovery.

        Returns:
            False if the frame is unknown or not in flight / unacknowledged
        """
        self._sync_log_time()
        frame = self.registry.get_frame(frame_id)
        if frame is None:
            self.logger.ignored(f"lose frame id={frame_id}", "unknown frame")
            return False
        if frame.status not in LOSABLE_STATUSES:
            self.logger.ignored(f"lose frame id={frame_id}", f"status {frame.status.value}")
            return False

        frame.status = FrameStatus.LOST
        self.logger.frame_lost(frame.seq_num, frame.frame_id)
        to_resend = self.policy.retransmit_set(frame.seq_num, self.sender)
        self._start_recovery(frame.seq_num, LossTrigger.INJECTED, to_resend)
        return True

    def acknowledge(self, seq_num: int) -> Optional[AckType]:
        """
        Acknowledge an arrived frame.

        Returns:
            Effective outcome (Stop-and-Wait may turn it into a NACK), or
            None if no frame with this number is awaiting acknowledgment
        """
        self._sync_log_time()
        frame = self.registry.latest_frame(seq_num, FrameStatus.RECEIVED)
        if frame is None:
            self.logger.ignored(f"ack {seq_num}", "no received frame")
            return None

        outcome = self.policy.on_ack(seq_num, frame, self.sender, self.receiver)

        ack = None
        if self.policy.logs_acknowledgments:
            ack = self.registry.add_acknowledgment(seq_num, outcome, self.clock.timestamp())
            self.logger.ack_sent(seq_num, outcome.value)

        if ack is not None or outcome == AckType.ACK:
            ack_id = ack.ack_id if ack is not None else None
            self._schedule(
                self.config.ack_transit_delay,
                lambda: self._on_ack_arrival(seq_num, outcome, ack_id),
                f"{outcome.value} {seq_num}"
            )

        self.logger.window_update(list(self.sender.window), self.receiver.expected_seq,
                                  self.window_size)
        return outcome

    def negative_acknowledge(self, seq_num: int) -> bool:
        """
        Reject a frame; it is marked lost and recovered per protocol.

        Returns:
            False if the sequence number was never sent
        """
        self._sync_log_time()
        if self.registry.latest_frame(seq_num) is None:
            self.logger.ignored(f"nack {seq_num}", "never sent")
            return False

        ack_id = None
        if self.policy.logs_acknowledgments:
            ack = self.registry.add_acknowledgment(seq_num, AckType.NACK, self.clock.timestamp())
            ack_id = ack.ack_id
            self.logger.ack_sent(seq_num, AckType.NACK.value)

        # Go-Back-N resends the window as it stands when the NACK is issued
        to_resend = self.policy.retransmit_set(seq_num, self.sender)
        self._schedule(
            self.config.ack_transit_delay,
            lambda: self._on_nack_arrival(seq_num, ack_id, to_resend),
            f"NACK {seq_num}"
        )
        return True

    # =========================================================================
    # DELAYED TRANSITIONS
    # =========================================================================

    def _on_send_arrival(self, frame_id: int):
        self._sync_log_time()
        frame = self.registry.get_frame(frame_id)
        if frame is not None:
            # Last writer wins, even over a loss injected in transit
            frame.status = FrameStatus.RECEIVED
            self.logger.frame_received(frame.seq_num, frame_id)
        self.sender.busy = False

    def _on_retransmit_arrival(self, frame_id: int):
        self._sync_log_time()
        frame = self.registry.get_frame(frame_id)
        if frame is not None:
            frame.status = FrameStatus.RECEIVED
            self.logger.frame_received(frame.seq_num, frame_id)
        if self.policy.awaits_ack:
            self.sender.awaiting_ack = False

    def _on_ack_arrival(self, seq_num: int, outcome: AckType, ack_id: Optional[int]):
        self._sync_log_time()
        if ack_id is not None:
            ack = self.registry.get_acknowledgment(ack_id)
            if ack is not None:
                ack.status = AckStatus.RECEIVED
        self.logger.ack_received(seq_num, outcome.value)

        if outcome != AckType.ACK:
            return

        self.registry.mark_sequence(
            seq_num,
            FrameStatus.ACKNOWLEDGED,
            only_from=frozenset({FrameStatus.RECEIVED, FrameStatus.BUFFERED})
        )
        self.sender.window.discard(seq_num)
        if self.policy.awaits_ack:
            self.sender.awaiting_ack = False

    def _on_nack_arrival(self, seq_num: int, ack_id: Optional[int], to_resend: List[int]):
        self._sync_log_time()
        if ack_id is not None:
            ack = self.registry.get_acknowledgment(ack_id)
            if ack is not None:
                ack.status = AckStatus.RECEIVED
        self.logger.ack_received(seq_num, AckType.NACK.value)

        frame = self.registry.latest_frame(seq_num)
        if frame is not None:
            frame.status = FrameStatus.LOST
            self.logger.frame_lost(seq_num, frame.frame_id)
        self._start_recovery(seq_num, LossTrigger.NACK, to_resend)

    def _start_recovery(self, seq_num: int, trigger: LossTrigger, to_resend: List[int]):
        delay = self.policy.on_nack(trigger, self.config.retransmit_delay)
        if delay is None:
            return
        self._schedule(
            delay,
            lambda: self._retransmit_lost(to_resend),
            f"recover {seq_num}"
        )

    def _retransmit_lost(self, to_resend: List[int]):
        for index, resend_seq in enumerate(to_resend):
            self._schedule(
                index * self.config.retransmit_stagger,
                lambda s=resend_seq: self.retransmit_frame(s),
                f"retx {resend_seq}"
            )

    # =========================================================================
    # QUERIES
    # =========================================================================

    @property
    def frames(self) -> List[Frame]:
        """Frame records in creation order."""
        return list(self.registry.frames)

    @property
    def acknowledgments(self) -> List[Acknowledgment]:
        """Acknowledgment records in creation order."""
        return list(self.registry.acknowledgments)

    def get_statistics(self) -> ProtocolStatistics:
        """Derived counters for the current session."""
        return MetricsCollector.collect(
            self.registry.frames,
            buffered=len(self.receiver.reorder_buffer)
        )

    def get_event_feed(self) -> List[DiagramEvent]:
        """Send/ACK/NACK events in timestamp order."""
        return build_event_feed(self.registry.frames, self.registry.acknowledgments)

    def snapshot(self) -> SimulationSnapshot:
        """Immutable copy of the current state."""
        return SimulationSnapshot(
            protocol=self.protocol,
            window_size=self.window_size,
            time=self.clock.now,
            frames=tuple(replace(f) for f in self.registry.frames),
            acknowledgments=tuple(replace(a) for a in self.registry.acknowledgments),
            next_seq=self.sender.next_seq,
            expected_seq=self.receiver.expected_seq,
            window=tuple(self.sender.window),
            reorder_buffer=tuple(self.receiver.buffered_sequence_numbers),
            awaiting_ack=self.sender.awaiting_ack,
            busy=self.sender.busy,
            can_send=self.can_send(),
            pending_events=self.clock.pending,
            statistics=self.get_statistics()
        )

    def get_state(self) -> Dict:
        """Sender, receiver and clock state as plain dictionaries."""
        return {
            'protocol': self.protocol.value,
            'window_size': self.window_size,
            'sender': self.sender.get_window_state(),
            'receiver': self.receiver.get_window_state(),
            'sender_statistics': self.sender.get_statistics(),
            'receiver_statistics': self.receiver.get_statistics(),
            'clock': self.clock.get_statistics(),
            'statistics': self.get_statistics().to_dict()
        }


if __name__ == "__main__":
    print("=" * 60)
    print("SIMULATOR TEST")
    print("=" * 60)

    config = SimulatorConfig(
        protocol=Protocol.GO_BACK_N,
        window_size=3,
        log_level=LogLevel.DEBUG
    )
    sim = Simulator(config)

    for _ in range(3):
        sim.send_frame()
        sim.advance(config.frame_transit_delay)

    print(f"\nCan send with full window: {sim.can_send()}")
    sim.negative_acknowledge(1)
    sim.run_until_idle()

    print("\nFrames:")
    for frame in sim.frames:
        print(f"  {frame}")

    print(f"\nStatistics: {sim.get_statistics().to_dict()}")

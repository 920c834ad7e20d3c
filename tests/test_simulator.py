"""
Unit tests for the ARQ simulator: per-protocol send, acknowledgment,
loss and retransmission behaviour, snapshots and reconfiguration.
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from simulation.simulator import Simulator, SimulatorConfig
from src.arq.frame import FrameStatus, AckType, AckStatus
from src.arq.events import EventKind
from src.arq.protocol import Protocol


def make_simulator(protocol, window_size=4, **kwargs):
    return Simulator(SimulatorConfig(protocol=protocol, window_size=window_size, **kwargs))


def send_and_arrive(sim, count):
    """Send `count` frames, letting each one arrive before the next."""
    frames = []
    for _ in range(count):
        frame = sim.send_frame()
        assert frame is not None
        frames.append(frame)
        sim.advance(sim.config.frame_transit_delay)
    return frames


def retransmitted(sim):
    return [f for f in sim.frames if f.is_retransmission]


class TestSimulatorConfig:
    """Tests for configuration validation."""

    def test_string_protocol_is_parsed(self):
        config = SimulatorConfig(protocol="go-back-n")
        assert config.protocol == Protocol.GO_BACK_N

    @pytest.mark.parametrize("kwargs", [
        {"window_size": 0},
        {"protocol": "carrier-pigeon"},
        {"frame_transit_delay": -1.0},
        {"retransmit_stagger": -0.1},
    ])
    def test_invalid_configuration(self, kwargs):
        with pytest.raises(ValueError):
            SimulatorConfig(**kwargs)


class TestSimpleProtocol:
    """Tests for the protocol without reliability."""

    def test_send_blocked_only_while_in_transit(self):
        sim = make_simulator("simple")
        sim.send_frame()

        assert not sim.can_send()
        assert sim.send_frame() is None

        sim.advance(1.0)
        assert sim.can_send()

    def test_unserialized_sends(self):
        sim = make_simulator("simple", serialize_sends=False)
        frames = [sim.send_frame() for _ in range(5)]

        assert [f.seq_num for f in frames] == [0, 1, 2, 3, 4]
        stamps = [f.created_at for f in frames]
        assert all(b > a for a, b in zip(stamps, stamps[1:]))

    def test_ack_is_logged_and_acknowledges(self):
        sim = make_simulator("simple")
        send_and_arrive(sim, 1)

        assert sim.acknowledge(0) == AckType.ACK
        assert len(sim.acknowledgments) == 1
        assert sim.acknowledgments[0].status == AckStatus.SENDING

        sim.run_until_idle()
        assert sim.acknowledgments[0].status == AckStatus.RECEIVED
        assert sim.frames[0].status == FrameStatus.ACKNOWLEDGED

    def test_loss_is_final(self):
        sim = make_simulator("simple")
        send_and_arrive(sim, 1)

        assert sim.inject_loss(0)
        sim.run_until_idle()

        assert sim.frames[0].status == FrameStatus.LOST
        assert retransmitted(sim) == []
        assert sim.get_statistics().total_lost == 1


class TestStopAndWait:
    """Tests for Stop-and-Wait."""

    def test_end_to_end(self):
        sim = make_simulator("stop-and-wait")

        frame = sim.send_frame()
        assert frame.seq_num == 0
        assert sim.sender.awaiting_ack
        assert sim.send_frame() is None

        sim.advance(1.0)
        assert sim.frames[0].status == FrameStatus.RECEIVED
        assert not sim.can_send()

        assert sim.acknowledge(0) == AckType.ACK
        assert sim.receiver.expected_seq == 1

        sim.advance(0.5)
        assert sim.frames[0].status == FrameStatus.ACKNOWLEDGED
        assert not sim.sender.awaiting_ack
        assert sim.can_send()

        # Acknowledgments do not show up on the wire for this protocol
        assert sim.acknowledgments == []
        assert sim.get_statistics().success_rate == pytest.approx(100.0)

    def test_at_most_one_outstanding(self):
        sim = make_simulator("stop-and-wait", serialize_sends=False)
        sim.send_frame()

        for _ in range(3):
            assert sim.send_frame() is None
        assert sim.sender.next_seq == 1
        assert len(sim.frames) == 1

    def test_mismatched_ack_turns_negative(self):
        """Acknowledging the same frame twice before the ACK lands."""
        sim = make_simulator("stop-and-wait")
        send_and_arrive(sim, 1)

        assert sim.acknowledge(0) == AckType.ACK
        pending = sim.clock.pending
        assert sim.acknowledge(0) == AckType.NACK

        assert sim.clock.pending == pending
        assert sim.receiver.expected_seq == 1
        assert sim.acknowledgments == []

    def test_nack_resends_single_frame(self):
        sim = make_simulator("stop-and-wait")
        send_and_arrive(sim, 1)

        assert sim.negative_acknowledge(0)
        sim.advance(0.5)

        assert sim.frames[0].status == FrameStatus.LOST
        retx = retransmitted(sim)
        assert [f.seq_num for f in retx] == [0]
        assert retx[0].status == FrameStatus.RETRANSMITTING
        assert retx[0].payload == sim.frames[0].payload

        sim.run_until_idle()
        assert retx[0].status == FrameStatus.RECEIVED
        assert not sim.sender.awaiting_ack

    def test_injected_loss_waits_before_resending(self):
        sim = make_simulator("stop-and-wait")
        send_and_arrive(sim, 1)

        assert sim.inject_loss(0)
        assert retransmitted(sim) == []

        sim.advance(sim.config.retransmit_delay)
        assert [f.seq_num for f in retransmitted(sim)] == [0]


class TestGoBackN:
    """Tests for Go-Back-N."""

    def test_window_blocks_send(self):
        sim = make_simulator("go-back-n", window_size=3)
        send_and_arrive(sim, 3)

        assert list(sim.sender.window) == [0, 1, 2]
        assert not sim.can_send()
        assert sim.send_frame() is None
        assert sim.sender.next_seq == 3

    def test_in_order_ack_slides_window(self):
        sim = make_simulator("go-back-n", window_size=2)
        send_and_arrive(sim, 2)

        sim.acknowledge(0)

        assert list(sim.sender.window) == [1]
        assert sim.can_send()

    def test_out_of_order_ack_keeps_base(self):
        """Only the acknowledged number leaves; base stays, so seq 3 is out of range."""
        sim = make_simulator("go-back-n", window_size=3)
        send_and_arrive(sim, 3)

        sim.acknowledge(1)

        assert list(sim.sender.window) == [0, 2]
        assert sim.sender.window.base == 0
        assert sim.receiver.expected_seq == 0
        assert not sim.can_send()

    @pytest.mark.parametrize("nacked", [0, 1, 2])
    def test_nack_resends_whole_window(self, nacked):
        sim = make_simulator("go-back-n", window_size=3)
        send_and_arrive(sim, 3)

        assert sim.negative_acknowledge(nacked)
        sim.advance(1.0)

        first = retransmitted(sim)
        assert first and all(f.status == FrameStatus.RETRANSMITTING for f in first)

        sim.run_until_idle()

        retx = retransmitted(sim)
        assert [f.seq_num for f in retx] == [0, 1, 2]
        assert all(f.status == FrameStatus.RECEIVED for f in retx)
        assert sim.frames[nacked].status == FrameStatus.LOST
        assert sim.acknowledgments[0].ack_type == AckType.NACK

    def test_ack_before_nack_recovery_keeps_resend_set(self):
        """Acknowledging the base while the NACK is in transit does not shrink the resend."""
        sim = make_simulator("go-back-n", window_size=3)
        send_and_arrive(sim, 3)

        sim.negative_acknowledge(1)
        sim.acknowledge(0)
        assert list(sim.sender.window) == [1, 2]

        sim.run_until_idle()

        assert [f.seq_num for f in retransmitted(sim)] == [0, 1, 2]

    def test_ack_before_loss_recovery_keeps_resend_set(self):
        sim = make_simulator("go-back-n", window_size=3)
        send_and_arrive(sim, 3)

        assert sim.inject_loss(sim.frames[1].frame_id)
        sim.acknowledge(0)
        sim.advance(0.25)
        assert not retransmitted(sim)

        sim.run_until_idle()

        assert [f.seq_num for f in retransmitted(sim)] == [0, 1, 2]

    def test_resends_are_staggered(self):
        sim = make_simulator("go-back-n", window_size=3)
        send_and_arrive(sim, 3)
        sim.negative_acknowledge(1)
        sim.run_until_idle()

        stamps = [f.created_at for f in retransmitted(sim)]
        gaps = [b - a for a, b in zip(stamps, stamps[1:])]
        assert gaps == [pytest.approx(0.5), pytest.approx(0.5)]

    def test_end_to_end(self):
        sim = make_simulator("go-back-n", window_size=3)
        send_and_arrive(sim, 3)

        for seq in (0, 1, 2):
            assert sim.acknowledge(seq) == AckType.ACK
        sim.run_until_idle()

        assert sim.sender.window.is_empty
        assert sim.receiver.expected_seq == 3
        stats = sim.get_statistics()
        assert stats.total_acknowledged == 3
        assert stats.success_rate == pytest.approx(100.0)


class TestSelectiveRepeat:
    """Tests for Selective-Repeat."""

    def test_nack_resends_only_that_frame(self):
        sim = make_simulator("selective-repeat", window_size=3)
        send_and_arrive(sim, 3)

        sim.negative_acknowledge(2)
        sim.run_until_idle()

        assert [f.seq_num for f in retransmitted(sim)] == [2]

    def test_reverse_acks_drain_buffer(self):
        sim = make_simulator("selective-repeat", window_size=3)
        send_and_arrive(sim, 3)

        sim.acknowledge(2)
        sim.acknowledge(1)
        assert sim.receiver.buffered_sequence_numbers == [2, 1]
        assert sim.frames[2].status == FrameStatus.BUFFERED

        sim.acknowledge(0)
        assert sim.receiver.expected_seq == 3
        assert sim.receiver.reorder_buffer == []

        sim.run_until_idle()
        assert all(f.status == FrameStatus.ACKNOWLEDGED for f in sim.frames)
        assert sim.sender.window.is_empty

    def test_buffered_frame_counted(self):
        sim = make_simulator("selective-repeat", window_size=3)
        send_and_arrive(sim, 3)

        sim.acknowledge(1)
        assert sim.get_statistics().total_buffered == 1

    def test_lost_frame_recovered_then_drains(self):
        sim = make_simulator("selective-repeat", window_size=3)
        send_and_arrive(sim, 3)

        sim.inject_loss(0)
        sim.acknowledge(1)
        sim.acknowledge(2)
        sim.run_until_idle()

        retx = retransmitted(sim)
        assert [f.seq_num for f in retx] == [0]
        assert retx[0].status == FrameStatus.RECEIVED

        sim.acknowledge(0)
        sim.run_until_idle()

        assert sim.receiver.expected_seq == 3
        assert sim.get_statistics().total_acknowledged == 3


class TestCommandPreconditions:
    """Commands whose preconditions do not hold change nothing."""

    def test_ack_without_received_frame(self):
        sim = make_simulator("go-back-n")
        assert sim.acknowledge(0) is None

        sim.send_frame()
        assert sim.acknowledge(0) is None  # still in transit

    def test_nack_of_unsent_number(self):
        sim = make_simulator("selective-repeat")
        assert sim.negative_acknowledge(4) is False
        assert sim.acknowledgments == []

    def test_inject_loss_rules(self):
        sim = make_simulator("go-back-n")
        assert sim.inject_loss(7) is False

        send_and_arrive(sim, 1)
        sim.acknowledge(0)
        sim.run_until_idle()
        assert sim.inject_loss(0) is False

    def test_retransmit_unknown_number(self):
        sim = make_simulator("stop-and-wait")
        assert sim.retransmit_frame(3) is None

    def test_repeat_ack_is_idempotent(self):
        sim = make_simulator("go-back-n", window_size=3)
        send_and_arrive(sim, 2)
        sim.acknowledge(0)
        sim.run_until_idle()

        before = sim.snapshot()
        assert sim.acknowledge(0) is None
        after = sim.snapshot()

        assert after.expected_seq == before.expected_seq == 1
        assert after.statistics.total_acknowledged == 1
        assert len(after.acknowledgments) == len(before.acknowledgments)


class TestSequenceNumbers:
    """Sequence numbers only grow with new sends."""

    def test_next_seq_monotonic(self):
        sim = make_simulator("go-back-n", window_size=3)
        seen = [sim.sender.next_seq]

        send_and_arrive(sim, 2)
        seen.append(sim.sender.next_seq)

        sim.negative_acknowledge(0)
        sim.run_until_idle()
        seen.append(sim.sender.next_seq)

        send_and_arrive(sim, 1)
        seen.append(sim.sender.next_seq)

        assert seen == [0, 2, 2, 3]

    @pytest.mark.parametrize("protocol", ["go-back-n", "selective-repeat"])
    @pytest.mark.parametrize("window_size", [1, 2, 4])
    def test_window_never_exceeds_size(self, protocol, window_size):
        sim = make_simulator(protocol, window_size=window_size, serialize_sends=False)
        for _ in range(10):
            sim.send_frame()
            assert len(sim.sender.window) <= window_size
        assert sim.sender.next_seq == window_size


class TestResetAndReconfigure:
    """Tests for reset and configuration changes."""

    def _busy_simulator(self):
        sim = make_simulator("selective-repeat", window_size=3)
        send_and_arrive(sim, 3)
        sim.acknowledge(2)
        sim.negative_acknowledge(1)
        return sim

    def test_reset_clears_everything(self):
        sim = self._busy_simulator()
        sim.reset()

        snap = sim.snapshot()
        assert snap.frames == ()
        assert snap.acknowledgments == ()
        assert snap.next_seq == 0
        assert snap.expected_seq == 0
        assert snap.window == ()
        assert snap.reorder_buffer == ()
        assert not snap.awaiting_ack
        assert not snap.busy
        assert snap.time == 0.0
        assert snap.pending_events == 0
        assert snap.statistics.total_sent == 0
        assert snap.statistics.success_rate == 0.0

    def test_pending_transitions_do_not_survive_reset(self):
        sim = make_simulator("stop-and-wait")
        sim.send_frame()
        sim.reset()
        sim.run_until_idle()

        assert sim.frames == []
        assert sim.can_send()

    def test_set_protocol_resets(self):
        sim = self._busy_simulator()
        sim.set_protocol("go_back_n")

        assert sim.protocol == Protocol.GO_BACK_N
        assert sim.frames == []

    def test_invalid_window_size_leaves_state(self):
        sim = self._busy_simulator()
        frames_before = len(sim.frames)

        with pytest.raises(ValueError):
            sim.set_window_size(0)

        assert sim.window_size == 3
        assert len(sim.frames) == frames_before

    def test_unknown_protocol_leaves_state(self):
        sim = self._busy_simulator()

        with pytest.raises(ValueError):
            sim.set_protocol("token-ring")

        assert sim.protocol == Protocol.SELECTIVE_REPEAT
        assert sim.frames

    def test_set_window_size(self):
        sim = self._busy_simulator()
        sim.set_window_size(5)

        assert sim.window_size == 5
        assert sim.sender.window.size == 5
        assert sim.frames == []


class TestQueries:
    """Tests for snapshots and the event feed."""

    def test_snapshot_is_a_copy(self):
        sim = make_simulator("go-back-n", window_size=2)
        send_and_arrive(sim, 1)

        snap = sim.snapshot()
        sim.acknowledge(0)
        sim.run_until_idle()

        assert snap.frames[0].status == FrameStatus.RECEIVED
        assert sim.frames[0].status == FrameStatus.ACKNOWLEDGED

    def test_event_feed_order(self):
        sim = make_simulator("selective-repeat", window_size=3)
        send_and_arrive(sim, 3)
        sim.acknowledge(2)
        sim.negative_acknowledge(1)
        sim.acknowledge(0)
        sim.run_until_idle()

        feed = sim.get_event_feed()
        stamps = [e.timestamp for e in feed]
        assert stamps == sorted(stamps)

        # The lost original of frame 1 never reached the receiver
        labels = [e.label for e in feed]
        assert labels == ["Send 0", "Send 2", "ACK 2", "NACK 1", "ACK 0", "Send 1"]
        assert feed[3].kind == EventKind.NACK

        # Acknowledged sends stay on the diagram
        assert sim.frames[0].status == FrameStatus.ACKNOWLEDGED
        assert sim.frames[2].status == FrameStatus.ACKNOWLEDGED

    def test_get_state(self):
        sim = make_simulator("go-back-n", window_size=2)
        send_and_arrive(sim, 1)
        state = sim.get_state()

        assert state['protocol'] == "go-back-n"
        assert state['sender']['outstanding'] == [0]
        assert state['receiver']['expected_seq'] == 0
        assert state['statistics']['total_sent'] == 1

    def test_get_state_counters(self):
        sim = make_simulator("selective-repeat", window_size=3)
        send_and_arrive(sim, 3)

        sim.acknowledge(1)
        sim.acknowledge(0)
        sim.retransmit_frame(2)
        state = sim.get_state()

        assert state['sender_statistics'] == {'frames_sent': 3, 'retransmissions': 1}
        assert state['receiver_statistics'] == {
            'frames_accepted': 2,
            'out_of_order_frames': 1,
            'duplicate_frames': 0,
            'buffered': 0
        }

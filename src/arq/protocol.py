"""
Protocol Policies for the ARQ Simulator

The four protocols share one skeleton (gate -> transmit -> delayed
arrival -> ack/nack -> retransmit) and differ only in four hooks:

    gate            may a new frame be sent now?
    on_ack          receiver/sender bookkeeping when a frame is acknowledged
    on_nack         delay before retransmission after a loss or NACK
    retransmit_set  which sequence numbers to send again

Each protocol is one ProtocolPolicy record built from plain functions and
looked up by its Protocol tag.
"""

from enum import Enum
from typing import Callable, Dict, List, Optional, Union
from dataclasses import dataclass
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from config import (
    PROTOCOL_SIMPLE, PROTOCOL_STOP_AND_WAIT,
    PROTOCOL_GO_BACK_N, PROTOCOL_SELECTIVE_REPEAT
)
from .frame import Frame, AckType
from .sender import SenderState
from .receiver import ReceiverState


class Protocol(Enum):
    """Supported ARQ protocol variants."""
    SIMPLE = PROTOCOL_SIMPLE
    STOP_AND_WAIT = PROTOCOL_STOP_AND_WAIT
    GO_BACK_N = PROTOCOL_GO_BACK_N
    SELECTIVE_REPEAT = PROTOCOL_SELECTIVE_REPEAT

    @classmethod
    def parse(cls, value: Union['Protocol', str]) -> 'Protocol':
        """
        Resolve a protocol from an enum member or its tag.

        Accepts "go-back-n", "go_back_n", "GO_BACK_N" and the like.

        Raises:
            ValueError: Unknown protocol
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            tag = value.strip().lower().replace("_", "-").replace(" ", "-")
            for member in cls:
                if member.value == tag:
                    return member
        raise ValueError(f"Unknown protocol: {value!r}")

    @property
    def display_name(self) -> str:
        """Human readable name, e.g. 'Go Back N'."""
        return self.value.replace("-", " ").title()


class LossTrigger(Enum):
    """What started a retransmission."""
    INJECTED = "injected"  # Frame dropped on the wire
    NACK = "nack"          # Receiver sent a negative acknowledgment


GateHook = Callable[[SenderState], bool]
AckHook = Callable[[int, Frame, SenderState, ReceiverState], AckType]
NackHook = Callable[[LossTrigger, float], Optional[float]]
RetransmitHook = Callable[[int, SenderState], List[int]]


@dataclass(frozen=True)
class ProtocolPolicy:
    """
    Behaviour of one protocol variant.

    Attributes:
        protocol: Protocol tag
        description: One-line summary for front ends
        windowed: Outstanding frames are tracked in the send window
        awaits_ack: Sender blocks after each frame (Stop-and-Wait)
        logs_acknowledgments: ACK/NACK exchanges appear on the wire
        gate: Send eligibility (in-transit blocking is applied on top)
        on_ack: Acknowledgment handling, returns the effective outcome
        on_nack: Delay before retransmitting, None for no retransmission
        retransmit_set: Sequence numbers to resend for a lost number
    """
    protocol: Protocol
    description: str
    windowed: bool
    awaits_ack: bool
    logs_acknowledgments: bool
    gate: GateHook
    on_ack: AckHook
    on_nack: NackHook
    retransmit_set: RetransmitHook


# =============================================================================
# GATE HOOKS
# =============================================================================

def _always_open(sender: SenderState) -> bool:
    return True


def _stop_and_wait_gate(sender: SenderState) -> bool:
    return not sender.awaiting_ack


def _sliding_window_gate(sender: SenderState) -> bool:
    return sender.window_allows()


# =============================================================================
# ACK HOOKS
# =============================================================================

def _simple_on_ack(
    seq_num: int,
    frame: Frame,
    sender: SenderState,
    receiver: ReceiverState
) -> AckType:
    return AckType.ACK


def _stop_and_wait_on_ack(
    seq_num: int,
    frame: Frame,
    sender: SenderState,
    receiver: ReceiverState
) -> AckType:
    # Any mismatch with the expected number turns the reply negative
    if not receiver.is_expected(seq_num):
        return AckType.NACK
    receiver.accept_in_order()
    return AckType.ACK


def _go_back_n_on_ack(
    seq_num: int,
    frame: Frame,
    sender: SenderState,
    receiver: ReceiverState
) -> AckType:
    """
    Individually acknowledges any arrived frame.

    In order: advance and slide the window past the accepted number.
    Out of order: drop just that number without moving the base.
    """
    if receiver.is_expected(seq_num):
        accepted = receiver.accept_in_order()
        sender.window.discard_through(accepted)
    else:
        sender.window.discard(seq_num)
    return AckType.ACK


def _selective_repeat_on_ack(
    seq_num: int,
    frame: Frame,
    sender: SenderState,
    receiver: ReceiverState
) -> AckType:
    """
    Buffers frames ahead of the expected number; an in-order frame
    releases every contiguous buffered frame behind it.
    """
    if receiver.is_expected(seq_num):
        receiver.accept_in_order()
        receiver.drain()
    elif receiver.is_duplicate(seq_num):
        receiver.record_duplicate()
    else:
        receiver.buffer_frame(frame)
    return AckType.ACK


# =============================================================================
# NACK HOOKS
# =============================================================================

def _never_retransmit(trigger: LossTrigger, retransmit_delay: float) -> Optional[float]:
    return None


def _retransmit_on_nack_arrival(trigger: LossTrigger, retransmit_delay: float) -> Optional[float]:
    # The NACK already spent its transit delay
    if trigger == LossTrigger.NACK:
        return 0.0
    return retransmit_delay


def _retransmit_after_delay(trigger: LossTrigger, retransmit_delay: float) -> Optional[float]:
    return retransmit_delay


# =============================================================================
# RETRANSMIT-SET HOOKS
# =============================================================================

def _nothing_to_resend(seq_num: int, sender: SenderState) -> List[int]:
    return []


def _resend_single(seq_num: int, sender: SenderState) -> List[int]:
    return [seq_num]


def _resend_from_base(seq_num: int, sender: SenderState) -> List[int]:
    # Whole outstanding window, whichever frame was lost
    return sender.window.from_base()


POLICIES: Dict[Protocol, ProtocolPolicy] = {
    Protocol.SIMPLE: ProtocolPolicy(
        protocol=Protocol.SIMPLE,
        description="Basic packet transmission without acknowledgments or error handling.",
        windowed=False,
        awaits_ack=False,
        logs_acknowledgments=True,
        gate=_always_open,
        on_ack=_simple_on_ack,
        on_nack=_never_retransmit,
        retransmit_set=_nothing_to_resend
    ),
    Protocol.STOP_AND_WAIT: ProtocolPolicy(
        protocol=Protocol.STOP_AND_WAIT,
        description=("Send one frame, wait for ACK, then send next frame. "
                     "Only one frame in transit at a time."),
        windowed=False,
        awaits_ack=True,
        logs_acknowledgments=False,
        gate=_stop_and_wait_gate,
        on_ack=_stop_and_wait_on_ack,
        on_nack=_retransmit_on_nack_arrival,
        retransmit_set=_resend_single
    ),
    Protocol.GO_BACK_N: ProtocolPolicy(
        protocol=Protocol.GO_BACK_N,
        description=("Send multiple frames in window. If error occurs, retransmit "
                     "from error point. Frames must be received in sequence."),
        windowed=True,
        awaits_ack=False,
        logs_acknowledgments=True,
        gate=_sliding_window_gate,
        on_ack=_go_back_n_on_ack,
        on_nack=_retransmit_after_delay,
        retransmit_set=_resend_from_base
    ),
    Protocol.SELECTIVE_REPEAT: ProtocolPolicy(
        protocol=Protocol.SELECTIVE_REPEAT,
        description=("Send multiple frames in window. Selectively retransmit only "
                     "missing frames. Receiver buffers out-of-order frames."),
        windowed=True,
        awaits_ack=False,
        logs_acknowledgments=True,
        gate=_sliding_window_gate,
        on_ack=_selective_repeat_on_ack,
        on_nack=_retransmit_on_nack_arrival,
        retransmit_set=_resend_single
    ),
}


def get_policy(protocol: Union[Protocol, str]) -> ProtocolPolicy:
    """Look up the policy for a protocol or protocol tag."""
    return POLICIES[Protocol.parse(protocol)]

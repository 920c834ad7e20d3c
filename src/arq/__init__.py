"""
ARQ package - Data-link ARQ protocol components.

Contains implementations for:
- Frame and acknowledgment records and their registry
- Logical clock with a delay queue
- Sender and receiver state
- Per-protocol policies (Simple, Stop-and-Wait, Go-Back-N, Selective-Repeat)
- Sequence diagram event feed
"""

from .frame import Frame, FrameStatus, Acknowledgment, AckType, AckStatus, FrameRegistry
from .timer import SimulationClock, ScheduledEvent
from .sender import SenderState, SendWindow
from .receiver import ReceiverState
from .protocol import Protocol, ProtocolPolicy, LossTrigger, get_policy
from .events import DiagramEvent, EventKind, build_event_feed

__all__ = [
    'Frame',
    'FrameStatus',
    'Acknowledgment',
    'AckType',
    'AckStatus',
    'FrameRegistry',
    'SimulationClock',
    'ScheduledEvent',
    'SenderState',
    'SendWindow',
    'ReceiverState',
    'Protocol',
    'ProtocolPolicy',
    'LossTrigger',
    'get_policy',
    'DiagramEvent',
    'EventKind',
    'build_event_feed'
]

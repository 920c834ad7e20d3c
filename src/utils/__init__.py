"""
Utilities package - Helper functions and classes.

Contains implementations for:
- Statistics calculation (counters, success rate)
- Logging utilities
"""

from .metrics import MetricsCollector, ProtocolStatistics
from .logger import SimulationLogger, LogLevel

__all__ = [
    'MetricsCollector',
    'ProtocolStatistics',
    'SimulationLogger',
    'LogLevel'
]

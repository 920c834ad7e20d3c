"""
Visualization package - Plotting and visualization tools.

Contains:
- Sequence diagram rendering
- Retransmission heatmaps
"""

from .sequence_diagram import SequenceDiagram
from .heatmap import RetransmissionHeatmap

__all__ = [
    'SequenceDiagram',
    'RetransmissionHeatmap'
]

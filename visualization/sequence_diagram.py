"""
Sequence Diagram Rendering

Draws the Send / ACK / NACK event feed as a classic two-lifeline
sequence diagram: sender on the left, receiver on the right, time
running downwards.
"""

import os
import sys
from typing import List, Optional, Sequence, Tuple

import numpy as np
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

# Add parent to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import PLOTS_DIR
from src.arq.events import DiagramEvent, EventKind


class SequenceDiagram:
    """
    Renders a diagram event feed with matplotlib.

    Arrow colors follow the usual convention: black for data frames,
    green for ACK, red for NACK.
    """

    COLORS = {
        EventKind.SEND: 'black',
        EventKind.ACK: 'green',
        EventKind.NACK: 'red',
    }

    SENDER_X = 0.0
    RECEIVER_X = 1.0

    def __init__(self, events: Sequence[DiagramEvent]):
        """
        Args:
            events: Feed from Simulator.get_event_feed()
        """
        self.events: List[DiagramEvent] = sorted(events, key=lambda e: e.timestamp)

    def _positions(self, spacing: str) -> np.ndarray:
        """
        Vertical position of each arrow, 0 at the top.

        'time' scales by timestamp; 'order' spaces arrows evenly, which
        keeps bursts of near-simultaneous events readable.
        """
        if spacing == "order":
            return np.arange(len(self.events), dtype=float)
        if spacing != "time":
            raise ValueError(f"Unknown spacing: {spacing!r}")

        stamps = np.array([e.timestamp for e in self.events], dtype=float)
        span = stamps.max() - stamps.min()
        if span == 0:
            return np.zeros_like(stamps)
        return (stamps - stamps.min()) / span * (len(self.events) - 1)

    def plot(
        self,
        output_file: Optional[str] = None,
        title: str = "Sequence Diagram",
        spacing: str = "time",
        figsize: Optional[Tuple[float, float]] = None
    ) -> str:
        """
        Generate and save the diagram.

        The format follows the file extension (.png, .svg, .pdf).

        Args:
            output_file: Output file path (auto-generated if None)
            title: Plot title
            spacing: 'time' or 'order'
            figsize: Figure size, grows with the number of events if None

        Returns:
            Path to saved figure
        """
        if not self.events:
            raise ValueError("No events to plot")

        ys = self._positions(spacing)
        bottom = max(ys.max(), 1.0) + 0.5

        if figsize is None:
            figsize = (8, min(2 + 0.4 * len(self.events), 40))
        fig, ax = plt.subplots(figsize=figsize)

        # Lifelines
        for x, name in ((self.SENDER_X, "Sender"), (self.RECEIVER_X, "Receiver")):
            ax.plot([x, x], [-0.5, bottom], color='black', linewidth=1.5)
            ax.text(x, -0.8, name, ha='center', va='bottom', fontsize=11, fontweight='bold')

        mid = (self.SENDER_X + self.RECEIVER_X) / 2
        for event, y in zip(self.events, ys):
            start, end = self.SENDER_X, self.RECEIVER_X
            if event.from_receiver:
                start, end = end, start

            color = self.COLORS[event.kind]
            ax.annotate(
                "",
                xy=(end, y),
                xytext=(start, y),
                arrowprops=dict(arrowstyle='->', color=color, linewidth=1.2)
            )
            ax.text(mid, y - 0.08, event.label, ha='center', va='bottom',
                    color=color, fontsize=9)

        ax.set_xlim(-0.2, 1.2)
        ax.set_ylim(bottom, -1.2)
        ax.axis('off')
        ax.set_title(title, fontsize=13, fontweight='bold')
        plt.tight_layout()

        if output_file is None:
            os.makedirs(PLOTS_DIR, exist_ok=True)
            output_file = os.path.join(PLOTS_DIR, 'sequence_diagram.png')
        else:
            out_dir = os.path.dirname(output_file)
            if out_dir:
                os.makedirs(out_dir, exist_ok=True)

        plt.savefig(output_file, dpi=150, bbox_inches='tight')
        plt.close(fig)

        return output_file


if __name__ == "__main__":
    from simulation.simulator import Simulator, SimulatorConfig

    sim = Simulator(SimulatorConfig(protocol="selective-repeat", window_size=3))
    for _ in range(3):
        sim.send_frame()
        sim.advance(1.0)
    sim.acknowledge(0)
    sim.negative_acknowledge(1)
    sim.acknowledge(2)
    sim.run_until_idle()
    sim.acknowledge(1)
    sim.run_until_idle()

    path = SequenceDiagram(sim.get_event_feed()).plot()
    print(f"Diagram saved to: {path}")

"""
Retransmission Heatmap Visualization

This module generates 2D heatmaps showing retransmissions per frame
as a function of window size and loss rate.
"""

import os
import sys
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

# Add parent to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import PLOTS_DIR, PROTOCOL_GO_BACK_N, PROTOCOL_SELECTIVE_REPEAT
from src.arq.protocol import Protocol


class RetransmissionHeatmap:
    """
    Generates 2D heatmaps of retransmissions per frame over (W, loss rate).

    Results come from BatchRunner, either as the list of run dictionaries
    or as the CSV it writes.
    """

    def __init__(
        self,
        results: Optional[List[Dict]] = None,
        csv_file: Optional[str] = None
    ):
        """
        Initialize heatmap generator.

        Args:
            results: List of result dictionaries
            csv_file: Path to CSV file with results
        """
        if results:
            df = pd.DataFrame(results)
        elif csv_file:
            df = pd.read_csv(csv_file)
        else:
            df = pd.DataFrame()

        # Failed runs carry only an error message
        if 'error' in df.columns:
            df = df[df['error'].isna()]
        self.df = df

    @property
    def protocols(self) -> List[str]:
        if self.df.empty:
            return []
        return sorted(self.df['protocol'].unique())

    def _create_matrix(self, protocol: str) -> Tuple[np.ndarray, List[int], List[float]]:
        """
        Create matrix of mean retransmissions per original frame.

        Returns:
            Tuple of (matrix, window_sizes, loss_rates)
        """
        df = self.df[self.df['protocol'] == protocol]
        if df.empty:
            raise ValueError(f"No results for protocol '{protocol}'")

        originals = df['original_frames'].replace(0, np.nan)
        df = df.assign(retx_per_frame=(df['retransmissions'] / originals).fillna(0.0))

        pivot = df.pivot_table(
            index='window_size',
            columns='loss_rate',
            values='retx_per_frame',
            aggfunc='mean'
        ).sort_index()

        return pivot.to_numpy(), list(pivot.index), list(pivot.columns)

    def _draw(self, ax, protocol: str, cmap: str, show_values: bool):
        matrix, window_sizes, loss_rates = self._create_matrix(protocol)

        # Larger W at the top
        matrix = np.flipud(matrix)
        window_sizes = list(reversed(window_sizes))

        im = ax.imshow(matrix, cmap=cmap, aspect='auto')
        ax.set_xticks(range(len(loss_rates)))
        ax.set_xticklabels([f"{l:.2f}" for l in loss_rates])
        ax.set_yticks(range(len(window_sizes)))
        ax.set_yticklabels(window_sizes)

        if show_values:
            peak = np.nanmax(matrix) if matrix.size else 0.0
            for i in range(matrix.shape[0]):
                for j in range(matrix.shape[1]):
                    value = matrix[i, j]
                    if np.isnan(value):
                        continue
                    color = 'white' if value < peak / 2 else 'black'
                    ax.text(j, i, f'{value:.2f}', ha='center', va='center',
                            color=color, fontsize=8)

        ax.set_xlabel('Loss Rate', fontsize=12)
        ax.set_ylabel('Window Size', fontsize=12)
        return im

    def plot(
        self,
        output_file: Optional[str] = None,
        protocol: str = PROTOCOL_SELECTIVE_REPEAT,
        title: Optional[str] = None,
        figsize: Tuple[int, int] = (10, 7),
        cmap: str = "magma",
        show_values: bool = True
    ) -> str:
        """
        Generate and save heatmap for one protocol.

        Args:
            output_file: Output file path (auto-generated if None)
            protocol: Protocol tag to plot
            title: Plot title
            figsize: Figure size (width, height)
            cmap: Colormap name
            show_values: Show values in cells

        Returns:
            Path to saved figure
        """
        if self.df.empty:
            raise ValueError("No results to plot")

        protocol = Protocol.parse(protocol)
        if protocol.value not in self.protocols:
            raise ValueError(f"No results for protocol '{protocol.value}'")

        fig, ax = plt.subplots(figsize=figsize)
        im = self._draw(ax, protocol.value, cmap, show_values)
        cbar = plt.colorbar(im, ax=ax)
        cbar.set_label('Retransmissions per frame')

        ax.set_title(title or f"{protocol.display_name}: Retransmissions per Frame",
                     fontsize=14, fontweight='bold')
        plt.tight_layout()

        if output_file is None:
            os.makedirs(PLOTS_DIR, exist_ok=True)
            output_file = os.path.join(PLOTS_DIR, f'retransmissions_{protocol.value}.png')

        plt.savefig(output_file, dpi=150, bbox_inches='tight')
        plt.close(fig)

        print(f"Heatmap saved to: {output_file}")
        return output_file

    def plot_comparison(
        self,
        output_file: Optional[str] = None,
        protocols: Tuple[str, str] = (PROTOCOL_GO_BACK_N, PROTOCOL_SELECTIVE_REPEAT),
        cmap: str = "magma"
    ) -> str:
        """
        Generate side-by-side heatmaps, typically Go-Back-N vs Selective-Repeat.

        Returns:
            Path to saved figure
        """
        if self.df.empty:
            raise ValueError("No results to plot")

        fig, axes = plt.subplots(1, len(protocols), figsize=(8 * len(protocols), 6))
        axes = np.atleast_1d(axes)

        for ax, tag in zip(axes, protocols):
            protocol = Protocol.parse(tag)
            im = self._draw(ax, protocol.value, cmap, show_values=True)
            plt.colorbar(im, ax=ax)
            ax.set_title(protocol.display_name)

        plt.suptitle("Retransmissions per Frame", fontsize=14, fontweight='bold')
        plt.tight_layout()

        if output_file is None:
            os.makedirs(PLOTS_DIR, exist_ok=True)
            output_file = os.path.join(PLOTS_DIR, 'retransmissions_comparison.png')

        plt.savefig(output_file, dpi=150, bbox_inches='tight')
        plt.close(fig)

        return output_file


if __name__ == "__main__":
    print("=" * 60)
    print("HEATMAP GENERATOR TEST")
    print("=" * 60)

    from simulation.runner import BatchRunner

    runner = BatchRunner(
        protocols=[PROTOCOL_GO_BACK_N, PROTOCOL_SELECTIVE_REPEAT],
        runs_per_config=2,
        frame_count=20
    )
    runner.run_sequential()

    heatmap = RetransmissionHeatmap(results=runner.results)
    output = heatmap.plot_comparison()
    print(f"Test complete: {output}")

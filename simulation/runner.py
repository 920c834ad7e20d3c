"""
Scenario Driver and Batch Runner

The engine never drops frames on its own; this module plays the part of
the person at the controls. A ScenarioDriver pushes a fixed number of
frames through one simulator, and for every frame that arrives it either
injects a loss (with a seeded probability) or acknowledges it. The
BatchRunner repeats that over protocol x window size x loss rate.
"""

import os
import time
from typing import Optional, Callable, List, Dict
from dataclasses import dataclass
from concurrent.futures import ProcessPoolExecutor, as_completed
import multiprocessing
import sys

import numpy as np
import pandas as pd
from tqdm import tqdm

# Add parent to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import (
    PROTOCOLS, WINDOW_SIZES, LOSS_RATES, FRAMES_PER_RUN,
    RUNS_PER_CONFIGURATION, RNG_SEED_BASE, MAX_SCENARIO_STEPS,
    RESULTS_CSV, DEFAULT_WINDOW_SIZE
)
from simulation.simulator import Simulator, SimulatorConfig
from src.arq.frame import FrameStatus, AckType
from src.arq.protocol import Protocol, get_policy
from src.utils.logger import LogLevel


@dataclass
class RunConfig:
    """Configuration for a single scripted run."""
    protocol: str
    window_size: int
    loss_rate: float
    run_id: int
    seed: int
    frame_count: int


class ScenarioDriver:
    """
    Drives one simulator through a scripted transfer.

    Every frame record is judged once, when it is first seen in RECEIVED
    state: it is lost with probability `loss_rate`, otherwise its
    sequence number is acknowledged. A Stop-and-Wait acknowledgment that
    comes back negative is retried, without a new loss draw, once the
    receiver has caught up.
    """

    def __init__(
        self,
        simulator: Simulator,
        frame_count: int = FRAMES_PER_RUN,
        loss_rate: float = 0.0,
        seed: int = RNG_SEED_BASE,
        max_steps: int = MAX_SCENARIO_STEPS
    ):
        """
        Initialize driver.

        Args:
            simulator: Simulator to drive (its current protocol is used)
            frame_count: Number of original frames to send
            loss_rate: Probability of dropping an arrived frame
            seed: RNG seed for loss decisions
            max_steps: Failsafe on clock events processed
        """
        if not 0.0 <= loss_rate <= 1.0:
            raise ValueError("Loss rate must be within [0, 1]")
        if frame_count < 0:
            raise ValueError("Frame count must be non-negative")

        self.simulator = simulator
        self.frame_count = frame_count
        self.loss_rate = loss_rate
        self.rng = np.random.default_rng(seed)
        self.max_steps = max_steps

        self._judged: set = set()
        self._deferred: set = set()
        self.losses_injected = 0
        self.acks_issued = 0
        self.steps = 0

    def _react(self):
        """Judge every frame that has newly arrived."""
        for frame in self.simulator.frames:
            if frame.status != FrameStatus.RECEIVED or frame.frame_id in self._judged:
                continue

            if frame.frame_id not in self._deferred:
                if self.loss_rate > 0 and self.rng.random() < self.loss_rate:
                    self._judged.add(frame.frame_id)
                    if self.simulator.inject_loss(frame.frame_id):
                        self.losses_injected += 1
                    continue

            outcome = self.simulator.acknowledge(frame.seq_num)
            if outcome == AckType.NACK:
                # Stop-and-Wait receiver is behind; retry once it catches up
                self._deferred.add(frame.frame_id)
                continue

            self._judged.add(frame.frame_id)
            self._deferred.discard(frame.frame_id)
            if outcome is not None:
                self.acks_issued += 1

    def run(self) -> Dict:
        """
        Run until every frame is sent and nothing is pending.

        Returns:
            Dictionary with run statistics
        """
        sim = self.simulator

        while self.steps < self.max_steps:
            self._react()

            if sim.sender.next_seq < self.frame_count and sim.can_send():
                sim.send_frame()
                continue

            if not sim.step():
                break
            self.steps += 1

        stats = sim.get_statistics()
        return {
            'frames_sent': stats.total_sent,
            'original_frames': stats.total_sent - stats.total_retransmitted,
            'retransmissions': stats.total_retransmitted,
            'lost': stats.total_lost,
            'acknowledged': stats.total_acknowledged,
            'success_rate': stats.success_rate,
            'losses_injected': self.losses_injected,
            'acks_issued': self.acks_issued,
            'simulation_time': sim.now,
            'steps': self.steps,
            'complete': stats.total_acknowledged >= self.frame_count
        }


def run_scenario(
    protocol,
    window_size: int = DEFAULT_WINDOW_SIZE,
    frame_count: int = FRAMES_PER_RUN,
    loss_rate: float = 0.0,
    seed: int = RNG_SEED_BASE,
    log_level: int = LogLevel.ERROR
) -> Dict:
    """
    Run one scripted transfer on a fresh simulator.

    Returns:
        Dictionary with configuration and run statistics
    """
    config = SimulatorConfig(
        protocol=protocol,
        window_size=window_size,
        log_level=log_level
    )
    driver = ScenarioDriver(
        Simulator(config),
        frame_count=frame_count,
        loss_rate=loss_rate,
        seed=seed
    )
    results = driver.run()
    return {
        'protocol': config.protocol.value,
        'window_size': window_size,
        'loss_rate': loss_rate,
        'seed': seed,
        **results
    }


def run_single_simulation(run_config: RunConfig) -> Dict:
    """
    Run a single simulation with given configuration.

    This function is designed to be called in a separate process.

    Args:
        run_config: Configuration for this run

    Returns:
        Dictionary with results
    """
    try:
        result = run_scenario(
            run_config.protocol,
            window_size=run_config.window_size,
            frame_count=run_config.frame_count,
            loss_rate=run_config.loss_rate,
            seed=run_config.seed
        )
        result['run_id'] = run_config.run_id
        result['error'] = None
        return result

    except Exception as e:
        return {
            'protocol': run_config.protocol,
            'window_size': run_config.window_size,
            'loss_rate': run_config.loss_rate,
            'run_id': run_config.run_id,
            'seed': run_config.seed,
            'error': str(e)
        }


class BatchRunner:
    """
    Batch Runner for parameter sweep simulations.

    Executes every (protocol, W, loss rate) combination with multiple runs
    each. Window size only varies for windowed protocols; Simple and
    Stop-and-Wait run once per loss rate with W = 1.

    Attributes:
        protocols: Protocols to test
        window_sizes: Window sizes to test
        loss_rates: Loss rates to test
        runs_per_config: Number of runs per configuration
        frame_count: Original frames per run
    """

    def __init__(
        self,
        protocols: Optional[List[str]] = None,
        window_sizes: Optional[List[int]] = None,
        loss_rates: Optional[List[float]] = None,
        runs_per_config: int = RUNS_PER_CONFIGURATION,
        frame_count: int = FRAMES_PER_RUN,
        output_file: str = RESULTS_CSV,
        on_progress: Optional[Callable[[int, int, dict], None]] = None
    ):
        """
        Initialize batch runner.

        Args:
            protocols: Protocol tags (default from config)
            window_sizes: Window sizes (default from config)
            loss_rates: Loss rates (default from config)
            runs_per_config: Number of runs per configuration
            frame_count: Original frames per run
            output_file: Path to output CSV file
            on_progress: Callback for progress updates
        """
        self.protocols = [Protocol.parse(p).value for p in (protocols or PROTOCOLS)]
        self.window_sizes = window_sizes or WINDOW_SIZES
        self.loss_rates = loss_rates if loss_rates is not None else LOSS_RATES
        self.runs_per_config = runs_per_config
        self.frame_count = frame_count
        self.output_file = output_file
        self.on_progress = on_progress

        # Results storage
        self.results: List[Dict] = []

        # Progress tracking
        self.total_runs = len(self._generate_run_configs())
        self.completed_runs = 0
        self.start_time = 0.0

    def _generate_run_configs(self) -> List[RunConfig]:
        """Generate all run configurations."""
        configs = []

        for p_index, protocol in enumerate(self.protocols):
            sizes = self.window_sizes if get_policy(protocol).windowed else [1]
            for window_size in sizes:
                for l_index, loss_rate in enumerate(self.loss_rates):
                    for run_id in range(self.runs_per_config):
                        # Unique seed for each run
                        seed = (RNG_SEED_BASE +
                                p_index * 1_000_000 +
                                window_size * 10_000 +
                                l_index * 100 +
                                run_id)

                        configs.append(RunConfig(
                            protocol=protocol,
                            window_size=window_size,
                            loss_rate=loss_rate,
                            run_id=run_id,
                            seed=seed,
                            frame_count=self.frame_count
                        ))

        return configs

    def _record(self, result: Dict):
        self.results.append(result)
        self.completed_runs += 1
        if self.on_progress:
            self.on_progress(self.completed_runs, self.total_runs, result)

    def run_sequential(self, show_progress: bool = True) -> List[Dict]:
        """
        Run all simulations sequentially.

        Returns:
            List of result dictionaries
        """
        configs = self._generate_run_configs()
        self.results = []
        self.completed_runs = 0
        self.start_time = time.time()

        for config in tqdm(configs, desc="Simulations", disable=not show_progress):
            self._record(run_single_simulation(config))

        return self.results

    def run_parallel(
        self,
        max_workers: Optional[int] = None,
        show_progress: bool = True
    ) -> List[Dict]:
        """
        Run simulations in parallel using multiprocessing.

        Args:
            max_workers: Number of parallel workers (default: CPU count)

        Returns:
            List of result dictionaries
        """
        if max_workers is None:
            max_workers = multiprocessing.cpu_count()

        configs = self._generate_run_configs()
        self.results = []
        self.completed_runs = 0
        self.start_time = time.time()

        with ProcessPoolExecutor(max_workers=max_workers) as executor:
            futures = [executor.submit(run_single_simulation, c) for c in configs]
            for future in tqdm(as_completed(futures), total=len(futures),
                               desc="Simulations", disable=not show_progress):
                self._record(future.result())

        return self.results

    def to_dataframe(self) -> pd.DataFrame:
        """Results as a DataFrame, one row per run."""
        return pd.DataFrame(self.results)

    def save_results(self, filepath: Optional[str] = None) -> Optional[str]:
        """
        Save results to CSV file.

        Args:
            filepath: Output file path (default: self.output_file)

        Returns:
            Path written, or None when there is nothing to save
        """
        filepath = filepath or self.output_file

        if not self.results:
            return None

        out_dir = os.path.dirname(filepath)
        if out_dir:
            os.makedirs(out_dir, exist_ok=True)

        self.to_dataframe().to_csv(filepath, index=False)
        return filepath

    def get_summary(self) -> pd.DataFrame:
        """
        Mean statistics per (protocol, W, loss rate).

        Runs that raised are left out; the summary is empty when none
        succeeded.
        """
        df = self.to_dataframe()
        if 'error' in df.columns:
            df = df[df['error'].isna()]
        if df.empty:
            return pd.DataFrame()

        summary = df.groupby(['protocol', 'window_size', 'loss_rate']).agg(
            runs=('run_id', 'count'),
            retransmissions=('retransmissions', 'mean'),
            success_rate=('success_rate', 'mean'),
            simulation_time=('simulation_time', 'mean'),
            complete=('complete', 'mean')
        ).reset_index()
        summary['retx_per_frame'] = summary['retransmissions'] / self.frame_count if self.frame_count else 0.0
        return summary


if __name__ == "__main__":
    print("=" * 60)
    print("BATCH RUNNER TEST")
    print("=" * 60)

    runner = BatchRunner(
        window_sizes=[2, 4],
        loss_rates=[0.0, 0.2],
        runs_per_config=2,
        frame_count=20
    )
    print(f"  Total runs: {runner.total_runs}")

    runner.run_sequential()
    print(runner.get_summary().to_string(index=False))

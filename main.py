#!/usr/bin/env python3
"""
ARQ Protocol Simulator - Main Entry Point

This is the main CLI interface for the ARQ protocol simulator.
It provides options for:
- A scripted demo run with a printed trace
- Parameter sweep over protocol, window size and loss rate
- Visualization generation

Usage:
    python main.py --demo --protocol go-back-n --window 3 --frames 10 --loss 0.2
    python main.py --sweep --runs 10
    python main.py --visualize --csv results.csv
"""

import argparse
import os
import sys
import time

# Ensure project root is in path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from config import (
    PROTOCOLS, WINDOW_SIZES, LOSS_RATES, RUNS_PER_CONFIGURATION,
    FRAMES_PER_RUN, DEFAULT_PROTOCOL, DEFAULT_WINDOW_SIZE, RNG_SEED_BASE,
    RESULTS_CSV, PLOTS_DIR
)


def run_demo(args):
    """Run one scripted transfer and print the resulting state."""
    from simulation.simulator import Simulator, SimulatorConfig
    from simulation.runner import ScenarioDriver
    from src.utils.logger import LogLevel

    config = SimulatorConfig(
        protocol=args.protocol,
        window_size=args.window,
        log_level=LogLevel.DEBUG if args.verbose else LogLevel.INFO
    )

    print("=" * 60)
    print("ARQ PROTOCOL SIMULATOR")
    print("=" * 60)
    print(f"\nConfiguration:")
    print(f"  Protocol: {config.protocol.display_name}")
    print(f"  Window size: {config.window_size}")
    print(f"  Frames: {args.frames}")
    print(f"  Loss rate: {args.loss:.2f}")
    print(f"  Seed: {args.seed}")

    print("\nRunning simulation...")

    sim = Simulator(config)
    driver = ScenarioDriver(sim, frame_count=args.frames, loss_rate=args.loss, seed=args.seed)
    start_time = time.time()
    results = driver.run()
    elapsed = time.time() - start_time

    snapshot = sim.snapshot()

    print("\n" + "=" * 60)
    print("RESULTS")
    print("=" * 60)

    print(f"\nTransfer Status:")
    print(f"  Complete: {results['complete']}")
    print(f"  Simulation Time: {snapshot.time:.3f} s")
    print(f"  Real Time: {elapsed:.2f} s")

    print(f"\nSender / Receiver:")
    print(f"  Next sequence: {snapshot.next_seq}")
    print(f"  Expected sequence: {snapshot.expected_seq}")
    print(f"  Window: {list(snapshot.window)}")
    print(f"  Reorder buffer: {list(snapshot.reorder_buffer)}")

    stats = snapshot.statistics
    print(f"\nFrame Statistics:")
    print(f"  Frames Sent: {stats.total_sent}")
    print(f"  Acknowledged: {stats.total_acknowledged}")
    print(f"  Lost: {stats.total_lost}")
    print(f"  Retransmissions: {stats.total_retransmitted}")
    print(f"  Buffered: {stats.total_buffered}")
    print(f"  Success Rate: {stats.success_rate:.1f}%")

    if args.diagram:
        from visualization.sequence_diagram import SequenceDiagram
        events = sim.get_event_feed()
        if events:
            path = SequenceDiagram(events).plot(
                output_file=args.diagram,
                title=f"{config.protocol.display_name} (W={config.window_size})",
                spacing=args.spacing
            )
            print(f"\nSequence diagram: {path}")
        else:
            print("\nNo exchanges to draw")

    return results


def run_parameter_sweep(args):
    """Run full parameter sweep."""
    from simulation.runner import BatchRunner

    print("=" * 60)
    print("PARAMETER SWEEP")
    print("=" * 60)

    # Determine parameter space
    if args.quick:
        window_sizes = [1, 4]
        loss_rates = [0.0, 0.2]
        runs = 2
        frames = 20
    else:
        window_sizes = WINDOW_SIZES
        loss_rates = LOSS_RATES
        runs = args.runs
        frames = args.frames

    runner = BatchRunner(
        protocols=args.protocols or PROTOCOLS,
        window_sizes=window_sizes,
        loss_rates=loss_rates,
        runs_per_config=runs,
        frame_count=frames,
        output_file=args.output or RESULTS_CSV
    )

    print(f"\nConfiguration:")
    print(f"  Protocols: {runner.protocols}")
    print(f"  Window sizes: {window_sizes}")
    print(f"  Loss rates: {loss_rates}")
    print(f"  Runs per config: {runs}")
    print(f"  Frames per run: {frames}")
    print(f"  Total simulations: {runner.total_runs}")
    print(f"  Output: {runner.output_file}")

    print("\nStarting parameter sweep...")

    if args.parallel:
        results = runner.run_parallel(max_workers=args.workers)
    else:
        results = runner.run_sequential()

    path = runner.save_results()
    if path:
        print(f"\nResults saved to: {path}")

    failed = [r for r in results if r.get('error')]
    if failed:
        print(f"  {len(failed)} run(s) failed, first error: {failed[0]['error']}")

    summary = runner.get_summary()
    if not summary.empty:
        print("\n" + "=" * 60)
        print("SUMMARY (means per configuration)")
        print("=" * 60)
        print(summary.to_string(index=False, float_format=lambda v: f"{v:.3f}"))

    return results


def generate_visualizations(args):
    """Generate retransmission heatmaps from sweep results."""
    print("=" * 60)
    print("GENERATING VISUALIZATIONS")
    print("=" * 60)

    csv_file = args.csv or RESULTS_CSV

    if not os.path.exists(csv_file):
        print(f"Error: Results file not found: {csv_file}")
        print("Run a parameter sweep first: python main.py --sweep")
        return

    from visualization.heatmap import RetransmissionHeatmap

    heatmap = RetransmissionHeatmap(csv_file=csv_file)
    print(f"Loaded {len(heatmap.df)} results from {csv_file}")

    os.makedirs(PLOTS_DIR, exist_ok=True)

    protocols = args.protocols or heatmap.protocols
    files = []
    for protocol in protocols:
        files.append(heatmap.plot(protocol=protocol))

    print("\n" + "=" * 60)
    print("VISUALIZATIONS GENERATED")
    print("=" * 60)
    for path in files:
        print(f"  {path}")


def show_config(args):
    """Display current configuration."""
    print("=" * 60)
    print("SIMULATOR CONFIGURATION")
    print("=" * 60)

    import config as cfg

    print(f"\nSimulated Delays:")
    print(f"  Frame transit: {cfg.FRAME_TRANSIT_DELAY:.2f} s")
    print(f"  ACK transit: {cfg.ACK_TRANSIT_DELAY:.2f} s")
    print(f"  Retransmit delay: {cfg.RETRANSMIT_DELAY:.2f} s")
    print(f"  Go-Back-N stagger: {cfg.RETRANSMIT_STAGGER:.2f} s")
    print(f"  Round trip: {cfg.calculate_round_trip_time():.2f} s")

    print(f"\nDefaults:")
    print(f"  Protocol: {cfg.DEFAULT_PROTOCOL}")
    print(f"  Window size: {cfg.DEFAULT_WINDOW_SIZE} (max {cfg.MAX_WINDOW_SIZE})")

    print(f"\nParameter Sweep:")
    print(f"  Protocols: {cfg.PROTOCOLS}")
    print(f"  Window Sizes: {cfg.WINDOW_SIZES}")
    print(f"  Loss Rates: {cfg.LOSS_RATES}")
    print(f"  Frames per run: {cfg.FRAMES_PER_RUN}")
    print(f"  Runs per config: {cfg.RUNS_PER_CONFIGURATION}")

    print(f"\nGo-Back-N recovery time by outstanding frames:")
    for outstanding in cfg.WINDOW_SIZES:
        recovery = cfg.calculate_go_back_n_recovery_time(outstanding)
        print(f"  {outstanding}: {recovery:.2f} s")


def main():
    parser = argparse.ArgumentParser(
        description="ARQ Protocol Simulator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Demo run with a sequence diagram:
    python main.py --demo --protocol selective-repeat --window 4 --loss 0.2 --diagram sr.png

  Quick parameter sweep (for testing):
    python main.py --sweep --quick

  Parallel parameter sweep:
    python main.py --sweep --parallel --workers 4

  Generate visualizations:
    python main.py --visualize

  Show configuration:
    python main.py --config
        """
    )

    # Mode selection
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument('--demo', action='store_true',
                      help='Run one scripted transfer')
    mode.add_argument('--sweep', action='store_true',
                      help='Run parameter sweep')
    mode.add_argument('--visualize', action='store_true',
                      help='Generate visualizations')
    mode.add_argument('--config', action='store_true',
                      help='Show configuration')

    # Demo options
    parser.add_argument('--protocol', type=str, default=DEFAULT_PROTOCOL,
                        help=f'Protocol for --demo (default: {DEFAULT_PROTOCOL})')
    parser.add_argument('--window', '-w', type=int, default=DEFAULT_WINDOW_SIZE,
                        help=f'Window size (default: {DEFAULT_WINDOW_SIZE})')
    parser.add_argument('--frames', '-f', type=int, default=FRAMES_PER_RUN,
                        help=f'Frames per run (default: {FRAMES_PER_RUN})')
    parser.add_argument('--loss', '-l', type=float, default=0.0,
                        help='Loss rate for --demo (default: 0.0)')
    parser.add_argument('--seed', '-s', type=int, default=RNG_SEED_BASE,
                        help=f'Random seed (default: {RNG_SEED_BASE})')
    parser.add_argument('--diagram', type=str,
                        help='Save a sequence diagram of the demo (.png or .svg)')
    parser.add_argument('--spacing', choices=['time', 'order'], default='time',
                        help='Vertical spacing of diagram arrows')

    # Parameter sweep options
    parser.add_argument('--protocols', nargs='+',
                        help='Protocols for --sweep / --visualize')
    parser.add_argument('--runs', '-r', type=int,
                        default=RUNS_PER_CONFIGURATION,
                        help=f'Runs per configuration (default: {RUNS_PER_CONFIGURATION})')
    parser.add_argument('--parallel', action='store_true',
                        help='Run simulations in parallel')
    parser.add_argument('--workers', type=int, default=None,
                        help='Number of parallel workers')
    parser.add_argument('--quick', action='store_true',
                        help='Quick test with reduced parameters')

    # Output options
    parser.add_argument('--output', '-o', type=str,
                        help='Output file path')
    parser.add_argument('--csv', type=str,
                        help='CSV file for visualization')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Verbose output')

    args = parser.parse_args()

    try:
        if args.demo:
            run_demo(args)
        elif args.sweep:
            run_parameter_sweep(args)
        elif args.visualize:
            generate_visualizations(args)
        elif args.config:
            show_config(args)
    except ValueError as e:
        parser.error(str(e))


if __name__ == "__main__":
    main()

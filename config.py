"""
Configuration file for the ARQ Protocol Simulator.
Contains the fixed timing constants, defaults and sweep parameters.
"""

import os

# =============================================================================
# SIMULATED DELAYS (in seconds of simulation time)
# =============================================================================

# Time for a data frame (new or retransmitted) to reach the receiver
FRAME_TRANSIT_DELAY = 1.0

# Time for an ACK/NACK to travel back to the sender
ACK_TRANSIT_DELAY = 0.5

# Pause between a loss being noticed and the retransmission starting
RETRANSMIT_DELAY = 0.5

# Spacing between consecutive Go-Back-N resends
RETRANSMIT_STAGGER = 0.5

# Minimum gap between two creation timestamps at the same simulation time
TIMESTAMP_RESOLUTION = 1e-6

# =============================================================================
# PROTOCOL DEFAULTS
# =============================================================================

PROTOCOL_SIMPLE = "simple"
PROTOCOL_STOP_AND_WAIT = "stop-and-wait"
PROTOCOL_GO_BACK_N = "go-back-n"
PROTOCOL_SELECTIVE_REPEAT = "selective-repeat"

DEFAULT_PROTOCOL = PROTOCOL_STOP_AND_WAIT
DEFAULT_WINDOW_SIZE = 4

# Largest window offered by the interactive front end
MAX_WINDOW_SIZE = 8

# =============================================================================
# PARAMETER SWEEP CONFIGURATION
# =============================================================================

PROTOCOLS = [
    PROTOCOL_SIMPLE,
    PROTOCOL_STOP_AND_WAIT,
    PROTOCOL_GO_BACK_N,
    PROTOCOL_SELECTIVE_REPEAT,
]

# Send window sizes to evaluate (windowed protocols only)
WINDOW_SIZES = [1, 2, 4, 8]

# Probability that the scenario driver drops an arrived frame
LOSS_RATES = [0.0, 0.05, 0.1, 0.2, 0.3]

# Original frames pushed through each scripted run
FRAMES_PER_RUN = 50

# Number of simulation runs per (protocol, W, loss) triple
RUNS_PER_CONFIGURATION = 5

# Failsafe on clock events processed by one scripted run
MAX_SCENARIO_STEPS = 100_000

# =============================================================================
# SIMULATION SETTINGS
# =============================================================================

# Default RNG seed base (actual seed = base + offsets per run)
RNG_SEED_BASE = 42

# Logging verbosity levels
LOG_LEVEL_DEBUG = 0
LOG_LEVEL_INFO = 1
LOG_LEVEL_WARNING = 2
LOG_LEVEL_ERROR = 3

DEFAULT_LOG_LEVEL = LOG_LEVEL_INFO

# =============================================================================
# OUTPUT PATHS
# =============================================================================

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DATA_DIR = os.path.join(BASE_DIR, "data")
OUTPUT_DIR = os.path.join(DATA_DIR, "output")
PLOTS_DIR = os.path.join(OUTPUT_DIR, "plots")

# Results CSV filename
RESULTS_CSV = os.path.join(OUTPUT_DIR, "results.csv")

# =============================================================================
# DERIVED PARAMETERS (calculated from fixed parameters)
# =============================================================================

def calculate_round_trip_time():
    """Frame transit plus acknowledgment transit."""
    return FRAME_TRANSIT_DELAY + ACK_TRANSIT_DELAY


def calculate_go_back_n_recovery_time(outstanding):
    """
    Time from a Go-Back-N loss until the last resent frame arrives.

    recovery = retransmit delay + (outstanding - 1) * stagger + frame transit
    """
    if outstanding <= 0:
        return 0.0
    return (RETRANSMIT_DELAY + (outstanding - 1) * RETRANSMIT_STAGGER +
            FRAME_TRANSIT_DELAY)


# Print configuration summary
if __name__ == "__main__":
    print("=" * 60)
    print("ARQ PROTOCOL SIMULATOR - CONFIGURATION")
    print("=" * 60)
    print(f"\nDelays:")
    print(f"  Frame transit: {FRAME_TRANSIT_DELAY * 1000:.0f} ms")
    print(f"  ACK transit: {ACK_TRANSIT_DELAY * 1000:.0f} ms")
    print(f"  Retransmit delay: {RETRANSMIT_DELAY * 1000:.0f} ms")
    print(f"  Go-Back-N stagger: {RETRANSMIT_STAGGER * 1000:.0f} ms")
    print(f"  Round trip: {calculate_round_trip_time() * 1000:.0f} ms")

    print(f"\nDefaults:")
    print(f"  Protocol: {DEFAULT_PROTOCOL}")
    print(f"  Window size: {DEFAULT_WINDOW_SIZE}")

    print(f"\nParameter Sweep:")
    print(f"  Protocols: {PROTOCOLS}")
    print(f"  Window Sizes: {WINDOW_SIZES}")
    print(f"  Loss Rates: {LOSS_RATES}")
    print(f"  Frames per run: {FRAMES_PER_RUN}")
    print(f"  Runs per config: {RUNS_PER_CONFIGURATION}")

"""
Simulation package - Main simulation engine and runners.

Contains:
- Main simulator orchestrator
- Scripted scenario driver
- Batch runner for parameter sweeps
"""

from .simulator import Simulator, SimulatorConfig, SimulationSnapshot
from .runner import BatchRunner, ScenarioDriver, run_scenario

__all__ = [
    'Simulator',
    'SimulatorConfig',
    'SimulationSnapshot',
    'BatchRunner',
    'ScenarioDriver',
    'run_scenario'
]

"""Window partitioning, rolling orchestration and sensitivity sweeps."""

from .orchestrator import HorizonOrchestrator, iter_windows, run_simulation
from .sensitivity import run_sensitivity, update_inputs
from .sets import HorizonPartitioner, Sets, WindowState, carry_state

__all__ = [
    "HorizonOrchestrator",
    "HorizonPartitioner",
    "Sets",
    "WindowState",
    "carry_state",
    "iter_windows",
    "run_sensitivity",
    "run_simulation",
    "update_inputs",
]

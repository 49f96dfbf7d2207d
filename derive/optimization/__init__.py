"""Window model building, solver backends and result extraction."""

from .model import COST_COMPONENTS, ModelBuilder, NetDemandAccumulator
from .results import SimulationResults, WindowResult, extract_window_result
from .solver import SolveResult, SolveStatus, SolverBackend, available_backends, get_solver, solve_model

__all__ = [
    "COST_COMPONENTS",
    "ModelBuilder",
    "NetDemandAccumulator",
    "SimulationResults",
    "SolveResult",
    "SolveStatus",
    "SolverBackend",
    "WindowResult",
    "available_backends",
    "extract_window_result",
    "get_solver",
    "solve_model",
]

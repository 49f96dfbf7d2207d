"""Scenario record and validating input factory."""

from .loader import load_inputs, load_inputs_file
from .models import Horizon, ProblemType, ScenarioSpec, SimulationInputs

__all__ = [
    "Horizon",
    "ProblemType",
    "ScenarioSpec",
    "SimulationInputs",
    "load_inputs",
    "load_inputs_file",
]

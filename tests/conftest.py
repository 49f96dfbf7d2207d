"""
Shared fixtures: input factories and a solver stub that assigns zero to
every variable so the orchestration loop can run without a solver.
"""

from typing import Optional, Sequence, Union

import numpy as np
import pyomo.environ as pyo
import pytest

from derive.config import load_inputs
from derive.optimization.solver import SolveResult, SolverBackend, SolveStatus
from derive.resources.profiles import steps_per_year

YEAR = 2023
HOURS = steps_per_year(YEAR, 60)

SOLAR_DAY = [0.0] * 9 + [0.2, 0.5, 0.8, 0.5, 0.2] + [0.0] * 10


def flat_tariff(rate: float = 0.2, **extra) -> dict:
    tariff = {
        "seasonal_month_split": False,
        "energy_tou_rates": {"base": [{"start": 0, "end": 24, "rate": rate, "label": "off-peak"}]},
    }
    tariff.update(extra)
    return tariff


def tou_table(peak: float = 0.5, off_peak: float = 0.2, partial_peak: Optional[float] = None) -> list:
    if partial_peak is None:
        return [
            {"start": 21, "end": 16, "rate": off_peak, "label": "off-peak"},
            {"start": 16, "end": 21, "rate": peak, "label": "peak"},
        ]
    return [
        {"start": 21, "end": 14, "rate": off_peak, "label": "off-peak"},
        {"start": 14, "end": 16, "rate": partial_peak, "label": "partial-peak"},
        {"start": 16, "end": 21, "rate": peak, "label": "peak"},
    ]


def tou_tariff(**extra) -> dict:
    tariff = {"energy_tou_rates": {"summer": tou_table(), "winter": tou_table()}}
    tariff.update(extra)
    return tariff


def solar_spec(capacity: float = 10.0, **extra) -> dict:
    spec = {
        "enabled": True,
        "power_capacity": capacity,
        "capacity_factor_profile": SOLAR_DAY * (HOURS // 24),
    }
    spec.update(extra)
    return spec


def storage_spec(power: float = 5.0, energy: float = 20.0, **extra) -> dict:
    spec = {"enabled": True, "power_capacity": power, "energy_capacity": energy}
    spec.update(extra)
    return spec


@pytest.fixture
def make_inputs():
    """Factory building validated SimulationInputs for the test year."""

    def build(
        demand: Union[float, Sequence[float]] = 10.0,
        tariff: Optional[dict] = None,
        scenario: Optional[dict] = None,
        solar: Optional[dict] = None,
        storage: Optional[dict] = None,
        **demand_extra,
    ):
        profile = [float(demand)] * HOURS if np.isscalar(demand) else list(demand)
        raw = {
            "scenario": {"year": YEAR, **(scenario or {})},
            "tariff": tariff or flat_tariff(),
            "demand": {"demand_profile": profile, **demand_extra},
        }
        if solar is not None:
            raw["solar"] = solar
        if storage is not None:
            raw["storage"] = storage
        return load_inputs(raw)

    return build


def zero_solve(m, solver, options=None):
    for var in m.component_data_objects(pyo.Var, descend_into=True):
        var.set_value(0.0)
    return SolveResult(
        status=SolveStatus.OPTIMAL,
        objective_value=pyo.value(m.objective),
        solve_time_sec=0.0,
    )


@pytest.fixture
def stub_solver(monkeypatch):
    """Replace solver lookup and solve in the orchestrator with zero_solve."""
    from derive.simulation import orchestrator

    calls = []

    def fake_solve(m, solver, options=None):
        calls.append(m)
        return zero_solve(m, solver, options)

    monkeypatch.setattr(orchestrator, "get_solver", lambda backend: (SolverBackend.HIGHS, object()))
    monkeypatch.setattr(orchestrator, "solve_model", fake_solve)
    return calls

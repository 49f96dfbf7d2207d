"""
Optimization Results
====================

Containers for per-window and whole-run results, and value extraction
from a solved window model.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import numpy as np
import pandas as pd
import pyomo.environ as pyo

from .model import COST_COMPONENTS
from .solver import SolveResult

if TYPE_CHECKING:
    from ..simulation.sets import Sets

TIME_SERIES_COLUMNS = [
    "timestamp",
    "demand",
    "net_demand",
    "net_exports",
    "solar_btm",
    "solar_export",
    "battery_soc",
    "battery_charge",
    "battery_discharge_btm",
    "battery_discharge_export",
    "shift_up",
    "shift_down",
    "shed_demand",
    "energy_price",
    "export_price",
]


@dataclass
class WindowResult:
    """Results of one optimization window."""
    start: date
    end: date
    status: str
    objective_value: float
    solve_time_sec: float = 0.0
    costs: Dict[str, float] = field(default_factory=dict)
    peak_demand: Dict[str, float] = field(default_factory=dict)
    tier_energy: List[Dict[str, Any]] = field(default_factory=list)
    capacities: Dict[str, float] = field(default_factory=dict)
    final_soc_fraction: float = 0.0
    time_series: pd.DataFrame = field(default_factory=pd.DataFrame, repr=False)

    def to_dict(self) -> dict:
        """Convert to dictionary (time series excluded)."""
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "status": self.status,
            "objective_value": self.objective_value,
            "solve_time_sec": self.solve_time_sec,
            "costs": dict(self.costs),
            "peak_demand": dict(self.peak_demand),
            "tier_energy": list(self.tier_energy),
            "capacities": dict(self.capacities),
            "final_soc_fraction": self.final_soc_fraction,
        }


@dataclass
class SimulationResults:
    """Accumulated results of a multi-window run."""
    windows: List[WindowResult] = field(default_factory=list)
    electricity_bill: Optional[pd.DataFrame] = None
    investment_costs: Optional[pd.DataFrame] = None

    @property
    def time_series(self) -> pd.DataFrame:
        frames = [w.time_series for w in self.windows if not w.time_series.empty]
        if not frames:
            return pd.DataFrame(columns=TIME_SERIES_COLUMNS)
        return pd.concat(frames, ignore_index=True)

    @property
    def tier_energy(self) -> pd.DataFrame:
        rows = [
            dict(row, window_start=w.start)
            for w in self.windows
            for row in w.tier_energy
        ]
        return pd.DataFrame(rows)

    @property
    def objective_value(self) -> float:
        return float(sum(w.objective_value for w in self.windows))

    @property
    def capacities(self) -> Dict[str, float]:
        return dict(self.windows[-1].capacities) if self.windows else {}

    def cost_summary(self) -> Dict[str, float]:
        """Objective components summed over all windows."""
        totals: Dict[str, float] = {}
        for w in self.windows:
            for name, value in w.costs.items():
                totals[name] = totals.get(name, 0.0) + value
        return totals

    def to_dict(self) -> dict:
        return {
            "objective_value": self.objective_value,
            "costs": self.cost_summary(),
            "capacities": self.capacities,
            "windows": [w.to_dict() for w in self.windows],
        }


def _series(m: pyo.ConcreteModel, name: str, n: int) -> np.ndarray:
    component = getattr(m, name, None)
    if component is None:
        return np.zeros(n)
    return np.array([pyo.value(component[t]) for t in m.T], dtype=float)


def extract_window_result(
    m: pyo.ConcreteModel,
    sets: "Sets",
    outcome: SolveResult,
) -> WindowResult:
    """Extract solution values from a solved window model."""
    n = sets.num_time_steps
    net_demand = _series(m, "net_demand", n)
    shift = _series(m, "shift", n)
    soc = _series(m, "battery_soc", n)

    time_series = pd.DataFrame({
        "timestamp": sets.timestamps,
        "demand": sets.demand,
        "net_demand": net_demand,
        "net_exports": _series(m, "total_exports", n),
        "solar_btm": _series(m, "solar_btm", n),
        "solar_export": _series(m, "solar_export", n),
        "battery_soc": soc,
        "battery_charge": _series(m, "battery_charge", n),
        "battery_discharge_btm": _series(m, "battery_discharge", n),
        "battery_discharge_export": _series(m, "battery_discharge_export", n),
        "shift_up": np.maximum(shift, 0.0),
        "shift_down": np.maximum(-shift, 0.0),
        "shed_demand": _series(m, "shed", n),
        "energy_price": sets.energy_prices,
        "export_price": sets.nem_prices if sets.nem_prices is not None else np.zeros(n),
    }, columns=TIME_SERIES_COLUMNS)

    costs = {
        name[len("cost_"):]: float(pyo.value(getattr(m, name)))
        for name in COST_COMPONENTS
        if hasattr(m, name)
    }

    peak_demand = {
        period.name: float(max(np.max(net_demand[period.mask]), period.prior_peak))
        for period in sets.demand_periods
    }

    tier_energy = []
    if hasattr(m, "tier_energy"):
        for k, block in enumerate(sets.tiers):
            tier_energy.append({
                "month": block.month,
                "tier": block.index,
                "lower": block.lower,
                "upper": block.upper,
                "price": block.price,
                "energy": float(pyo.value(m.tier_energy[k])),
            })

    capacities = {}
    for name in ("solar_capacity", "battery_power_capacity", "battery_energy_capacity"):
        if hasattr(m, name):
            capacities[name] = float(pyo.value(getattr(m, name)))

    final_soc = sets.bes_initial_soc
    energy = capacities.get("battery_energy_capacity", 0.0)
    if n and energy > 1e-9:
        final_soc = float(np.clip(soc[-1] / energy, 0.0, 1.0))

    return WindowResult(
        start=sets.start,
        end=sets.end,
        status=outcome.status.value,
        objective_value=float(outcome.objective_value or 0.0),
        solve_time_sec=outcome.solve_time_sec,
        costs=costs,
        peak_demand=peak_demand,
        tier_energy=tier_energy,
        capacities=capacities,
        final_soc_fraction=final_soc,
        time_series=time_series,
    )

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field, PositiveFloat, PositiveInt, confloat, field_validator, model_validator

from ..optimization.solver import SolverBackend
from ..resources.demand import DemandSpec
from ..resources.profiles import resample_profile, steps_per_year
from ..resources.solar import SolarSpec
from ..resources.storage import StorageSpec
from ..tariffs.models import TariffSpec


class ProblemType(str, Enum):
    PCM = "PCM"  # production cost: fixed sizes, dispatch only
    CEM = "CEM"  # capacity expansion: sizes are decisions


class Horizon(str, Enum):
    DAY = "DAY"
    MONTH = "MONTH"
    YEAR = "YEAR"


_PROBLEM_ALIASES = {
    "pcm": ProblemType.PCM,
    "production_cost": ProblemType.PCM,
    "production-cost": ProblemType.PCM,
    "cem": ProblemType.CEM,
    "capacity_expansion": ProblemType.CEM,
    "capacity-expansion": ProblemType.CEM,
}


class ScenarioSpec(BaseModel):
    problem_type: ProblemType = Field(ProblemType.PCM, description="PCM (dispatch) or CEM (sizing).")
    interval_length: Literal[15, 30, 60] = Field(60, description="Timestep length (minutes).")
    optimization_horizon: Horizon = Field(Horizon.DAY, description="Window solved at once.")
    optimization_solver: SolverBackend = Field(SolverBackend.HIGHS, description="Preferred solver backend.")
    solver_options: Dict[str, Any] = Field(
        default_factory=dict, description="Options forwarded to the solver (e.g. time_limit, mip_rel_gap)."
    )
    year: int = Field(2023, ge=1900, le=2200, description="Calendar year simulated.")

    binary_net_demand_and_exports_linkage: bool = Field(
        False, description="Use a binary indicator for export eligibility on net demand."
    )
    binary_pv_capacity_and_exports_linkage: bool = Field(
        False, description="Use a binary indicator for export eligibility on built PV capacity."
    )
    minimum_pv_capacity: PositiveFloat = Field(
        0.01, description="Smallest built PV capacity (kW) that qualifies exports for net metering."
    )

    real_discount_rate: Optional[confloat(gt=-1)] = Field(None, description="Real discount rate.")
    nominal_discount_rate: Optional[confloat(gt=-1)] = Field(None, description="Nominal discount rate.")
    inflation_rate: Optional[confloat(gt=-1)] = Field(None, description="Inflation rate.")
    amortization_period: Optional[PositiveInt] = Field(
        None, description="Years over which capital is amortized. Defaults to each asset's lifespan."
    )
    big_m: PositiveFloat = Field(
        1e5, description="Indicator bound used when it cannot be derived from known capacities."
    )

    @field_validator("problem_type", mode="before")
    @classmethod
    def _problem_alias(cls, value: Any) -> Any:
        if isinstance(value, str):
            key = value.strip().lower()
            if key in _PROBLEM_ALIASES:
                return _PROBLEM_ALIASES[key]
        return value

    @field_validator("optimization_horizon", mode="before")
    @classmethod
    def _horizon_upper(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("optimization_solver", mode="before")
    @classmethod
    def _solver_lower(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().lower()
            return "highs" if value in ("appsi_highs", "highspy") else value
        return value

    @property
    def interval_hours(self) -> float:
        return self.interval_length / 60.0

    @property
    def is_capacity_expansion(self) -> bool:
        return self.problem_type == ProblemType.CEM


class SimulationInputs(BaseModel):
    scenario: ScenarioSpec = Field(default_factory=ScenarioSpec)
    tariff: TariffSpec
    demand: DemandSpec
    solar: SolarSpec = Field(default_factory=SolarSpec)
    storage: StorageSpec = Field(default_factory=StorageSpec)

    @model_validator(mode="after")
    def _prepare(self) -> "SimulationInputs":
        scenario = self.scenario
        year, interval = scenario.year, scenario.interval_length
        n = steps_per_year(year, interval)

        demand_update: Dict[str, Any] = {
            "demand_profile": resample_profile(
                self.demand.demand_profile, year, interval, "demand_profile"
            ).tolist()
        }
        if self.demand.simple_shift_enabled:
            for name in ("shift_up_capacity_profile", "shift_down_capacity_profile"):
                profile = getattr(self.demand, name)
                if profile is not None:
                    demand_update[name] = resample_profile(profile, year, interval, name).tolist()
        self.demand = self.demand.model_copy(update=demand_update)

        if self.solar.enabled:
            cf = resample_profile(self.solar.capacity_factor_profile, year, interval, "capacity_factor_profile")
            self.solar = self.solar.model_copy(update={"capacity_factor_profile": cf.tolist()})

        if len(self.demand.demand_profile) != n:
            raise ValueError(f"demand_profile must have {n} values after resampling.")

        # cross-record checks
        if self.storage.enabled and self.storage.nonimport and not self.solar.enabled:
            raise ValueError("Non-import storage needs solar to charge from, but solar is disabled.")
        if self.tariff.has_tiered_rates and scenario.optimization_horizon == Horizon.YEAR:
            raise ValueError("Tiered energy rates need a DAY or MONTH optimization horizon.")

        if scenario.is_capacity_expansion:
            if scenario.optimization_horizon != Horizon.YEAR:
                raise ValueError("Capacity expansion must be solved with a YEAR optimization horizon.")
            if scenario.amortization_period is None:
                for name, asset in (("solar", self.solar), ("storage", self.storage)):
                    if asset.enabled and asset.lifespan is None:
                        raise ValueError(
                            f"Capacity expansion needs {name}.lifespan or scenario.amortization_period."
                        )
        elif self.storage.enabled and self.storage.fixed_energy_capacity is None:
            raise ValueError("Storage needs energy_capacity or duration when capacities are fixed.")
        return self

    @property
    def exports_enabled(self) -> bool:
        return self.tariff.nem_enabled

    @property
    def solar_exports(self) -> bool:
        return self.tariff.nem_enabled and self.solar.enabled and not self.solar.nonexport

    @property
    def storage_exports(self) -> bool:
        return self.tariff.nem_enabled and self.storage.enabled and not self.storage.nonexport

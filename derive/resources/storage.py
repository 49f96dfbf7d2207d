"""
Battery Energy Storage
======================

Behind-the-meter battery with:
- SOC limits and initial/terminal state of charge
- Charge/discharge efficiencies (or a round-trip efficiency)
- Per-timestep self-discharge
- Export (NEM) and grid-import permissions
"""

from __future__ import annotations

import math
from typing import Optional

from pydantic import BaseModel, Field, PositiveFloat, PositiveInt, confloat, model_validator


class StorageSpec(BaseModel):
    enabled: bool = Field(False, description="Include battery storage.")
    power_capacity: confloat(ge=0) = Field(0.0, description="Charge/discharge power rating (kW).")
    energy_capacity: Optional[confloat(ge=0)] = Field(
        None, description="Energy capacity (kWh). Overrides duration."
    )
    duration: Optional[PositiveFloat] = Field(
        None, description="Hours of storage at rated power; energy = duration * power."
    )
    maximum_power_capacity: Optional[confloat(ge=0)] = Field(
        None, description="Maximum buildable power in capacity expansion (kW)."
    )
    maximum_energy_capacity: Optional[confloat(ge=0)] = Field(
        None, description="Maximum buildable energy in capacity expansion (kWh)."
    )

    soc_min: confloat(ge=0, le=1) = Field(0.0, description="Minimum SOC fraction.")
    soc_max: confloat(ge=0, le=1) = Field(1.0, description="Maximum SOC fraction.")
    soc_initial: confloat(ge=0, le=1) = Field(0.5, description="Initial (and terminal floor) SOC fraction.")

    roundtrip_efficiency: Optional[confloat(gt=0, le=1)] = Field(
        None, description="Round-trip efficiency, split evenly into charge and discharge."
    )
    charge_efficiency: Optional[confloat(gt=0, le=1)] = Field(None, description="Charging efficiency.")
    discharge_efficiency: Optional[confloat(gt=0, le=1)] = Field(None, description="Discharging efficiency.")
    loss_rate: confloat(ge=0, le=1) = Field(0.0, description="Fraction of stored energy lost per timestep.")

    nonexport: bool = Field(True, description="Forbid exporting discharged energy.")
    nonimport: bool = Field(False, description="Only charge from on-site solar.")

    power_capital_cost: confloat(ge=0) = Field(0.0, description="Capital cost ($/kW).")
    energy_capital_cost: confloat(ge=0) = Field(0.0, description="Capital cost ($/kWh).")
    fixed_om_cost: confloat(ge=0) = Field(0.0, description="Fixed O&M cost ($/kW-yr).")
    lifespan: Optional[PositiveInt] = Field(None, description="Economic lifespan (years).")
    investment_tax_credit: confloat(ge=0, le=1) = Field(0.0, description="ITC fraction.")

    @model_validator(mode="after")
    def _check_limits(self) -> "StorageSpec":
        if self.soc_min > self.soc_max:
            raise ValueError("soc_min must not exceed soc_max.")
        if not self.soc_min <= self.soc_initial <= self.soc_max:
            raise ValueError(
                f"soc_initial ({self.soc_initial}) must lie within [soc_min, soc_max] "
                f"= [{self.soc_min}, {self.soc_max}]."
            )
        if self.roundtrip_efficiency is not None and (
            self.charge_efficiency is not None or self.discharge_efficiency is not None
        ):
            raise ValueError("Give either roundtrip_efficiency or charge/discharge efficiencies, not both.")
        return self

    @property
    def eta_charge(self) -> float:
        if self.roundtrip_efficiency is not None:
            return math.sqrt(self.roundtrip_efficiency)
        return 1.0 if self.charge_efficiency is None else float(self.charge_efficiency)

    @property
    def eta_discharge(self) -> float:
        if self.roundtrip_efficiency is not None:
            return math.sqrt(self.roundtrip_efficiency)
        return 1.0 if self.discharge_efficiency is None else float(self.discharge_efficiency)

    @property
    def fixed_energy_capacity(self) -> Optional[float]:
        """Energy capacity (kWh) implied by this record, None if neither energy nor duration is set."""
        if self.energy_capacity is not None:
            return float(self.energy_capacity)
        if self.duration is not None:
            return float(self.duration) * float(self.power_capacity)
        return None

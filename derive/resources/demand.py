"""
Site Demand
===========

Base demand profile plus optional flexibility:
- Shiftable: energy-neutral deviations within up/down capacity envelopes
- Sheddable: curtailment priced at the value of lost load
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, PositiveInt, confloat, model_validator


class DemandSpec(BaseModel):
    demand_profile: List[confloat(ge=0)] = Field(
        ..., min_length=1, description="Full-year base demand (kW)."
    )

    simple_shift_enabled: bool = Field(False, description="Allow energy-neutral load shifting.")
    shift_up_capacity_profile: Optional[List[confloat(ge=0)]] = Field(
        None, description="Maximum increase of demand per timestep (kW)."
    )
    shift_down_capacity_profile: Optional[List[confloat(ge=0)]] = Field(
        None, description="Maximum decrease of demand per timestep (kW, given as a magnitude)."
    )
    shift_percent: Optional[confloat(ge=0, le=1)] = Field(
        None, description="Shift envelope as a fraction of base demand when profiles are omitted."
    )
    shift_duration: PositiveInt = Field(
        24, description="Hours within which curtailed energy must be recovered."
    )

    shed_enabled: bool = Field(False, description="Allow curtailment of demand.")
    value_of_lost_load: confloat(ge=0) = Field(50.0, description="Cost of shed demand ($/kWh).")

    @model_validator(mode="after")
    def _shift_envelope(self) -> "DemandSpec":
        if not self.simple_shift_enabled:
            return self
        has_profiles = (
            self.shift_up_capacity_profile is not None and self.shift_down_capacity_profile is not None
        )
        if not has_profiles and self.shift_percent is None:
            raise ValueError(
                "Shifting is enabled but neither shift capacity profiles nor shift_percent are given."
            )
        return self

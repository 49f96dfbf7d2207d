"""
Solar PV
========

Behind-the-meter photovoltaic system described by a capacity factor
profile. Irradiance and module physics are upstream of this model; the
profile is taken as given (fraction of nameplate, 0-1).
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, PositiveInt, confloat, model_validator


class SolarSpec(BaseModel):
    """
    Solar PV asset.

    Attributes:
        enabled: Include the asset in the model
        capacity_factor_profile: Full-year AC output per kW of capacity (0-1)
        power_capacity: Installed capacity (kW), fixed in PCM
        maximum_power_capacity: Upper bound on built capacity in CEM (kW)
        inverter_efficiency: Applied on top of the capacity factor
        nonexport: If True, solar output may not be exported under NEM
        capital_cost: Overnight cost ($/kW)
        fixed_om_cost: Fixed O&M ($/kW-yr)
        lifespan: Economic life (years)
        investment_tax_credit: Fraction of capital cost credited
    """
    enabled: bool = Field(False, description="Include solar PV.")
    capacity_factor_profile: Optional[List[confloat(ge=0, le=1)]] = Field(
        None, description="Full-year capacity factor series (0-1)."
    )
    power_capacity: confloat(ge=0) = Field(0.0, description="Installed PV capacity (kW).")
    maximum_power_capacity: Optional[confloat(ge=0)] = Field(
        None, description="Maximum buildable PV capacity in capacity expansion (kW)."
    )
    inverter_efficiency: confloat(gt=0, le=1) = Field(1.0, description="Inverter efficiency.")
    nonexport: bool = Field(False, description="Forbid exporting PV output.")
    capital_cost: confloat(ge=0) = Field(0.0, description="Capital cost ($/kW).")
    fixed_om_cost: confloat(ge=0) = Field(0.0, description="Fixed O&M cost ($/kW-yr).")
    lifespan: Optional[PositiveInt] = Field(None, description="Economic lifespan (years).")
    investment_tax_credit: confloat(ge=0, le=1) = Field(0.3, description="ITC fraction.")

    @model_validator(mode="after")
    def _profile_required(self) -> "SolarSpec":
        if self.enabled and not self.capacity_factor_profile:
            raise ValueError("Solar is enabled but capacity_factor_profile is missing.")
        return self

"""
Tariff Schema
=============

Typed record describing a retail electricity tariff:
- Season to month partition
- Time-of-use energy rates (weekday table plus optional weekend/holiday table)
- Demand charges (monthly maximum, monthly TOU, daily TOU)
- Tiered energy bands
- Net energy metering (NEM v1/v2/v3)
- Charge scaling multipliers and customer charges

Rate tables are lists of hour ranges. ``start`` is inclusive, ``end`` is
exclusive, ``end`` may be 24 and a range with ``start > end`` wraps past
midnight (e.g. 21 -> 6).
"""

from __future__ import annotations

import logging
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, confloat, conint, model_validator

logger = logging.getLogger(__name__)

ALL_MONTHS = list(range(1, 13))
DEFAULT_SUMMER_MONTHS = [6, 7, 8, 9]
BASE_SEASON = "base"


class RatePeriod(BaseModel):
    start: conint(ge=0, le=23) = Field(..., description="First hour of the period (inclusive).")
    end: conint(ge=1, le=24) = Field(..., description="Hour the period ends (exclusive).")
    rate: float = Field(..., description="Rate applied during the period ($/kWh or $/kW).")
    label: str = Field("off-peak", description="Period label, e.g. peak, partial-peak, off-peak.")

    @model_validator(mode="after")
    def _non_empty(self) -> "RatePeriod":
        if self.start == self.end:
            raise ValueError(f"Rate period '{self.label}' is empty (start == end == {self.start}).")
        return self

    def hours(self) -> List[int]:
        """Hours of day covered by the period, wrapping past midnight if needed."""
        if self.start < self.end:
            return list(range(self.start, self.end))
        return list(range(self.start, 24)) + list(range(0, self.end))


class TieredBand(BaseModel):
    lower_bound: confloat(ge=0) = Field(..., description="Consumption where the band starts (kWh).")
    upper_bound: Optional[confloat(gt=0)] = Field(
        None, description="Consumption where the band ends (kWh). None means unbounded."
    )
    price: float = Field(..., description="Price adder for energy in this band ($/kWh).")

    @model_validator(mode="after")
    def _ordered(self) -> "TieredBand":
        if self.upper_bound is not None and self.upper_bound <= self.lower_bound:
            raise ValueError("Tier upper_bound must be greater than lower_bound.")
        return self


class AvoidedCostProfile(BaseModel):
    values: List[float] = Field(..., min_length=1, description="Avoided cost series ($/kWh).")
    year: Optional[int] = Field(
        None, description="Calendar year of the first value. Defaults to the scenario year."
    )
    interval_length: Literal[15, 30, 60] = Field(60, description="Minutes between values.")
    average_by_month_hour_daytype: bool = Field(
        False,
        description=(
            "If True, average the (possibly multi-year) series by month, hour and "
            "weekday versus weekend/holiday before mapping it onto the scenario year."
        ),
    )


class CustomerCharge(BaseModel):
    daily: confloat(ge=0) = Field(0.0, description="Flat fee per billed day ($/day).")
    monthly: confloat(ge=0) = Field(0.0, description="Flat fee per billed month ($/month).")


class TariffSpec(BaseModel):
    name: str = Field("tariff", description="Tariff name.")

    # Calendar handling
    seasonal_month_split: bool = Field(True, description="If False, one 'base' season covers every month.")
    weekday_weekend_split: bool = Field(True, description="Apply weekend overrides to Saturdays and Sundays.")
    holiday_split: bool = Field(True, description="Apply weekend overrides to federal holidays.")
    months_by_season: Optional[Dict[str, List[conint(ge=1, le=12)]]] = Field(
        None, description="Season name to months. Defaults to summer = Jun-Sep, winter = rest."
    )

    # Energy charges
    energy_tou_rates: Dict[str, List[RatePeriod]] = Field(
        ..., description="Season to TOU energy rate table ($/kWh). Must cover all 24 hours."
    )
    weekend_energy_tou_rates: Optional[Dict[str, List[RatePeriod]]] = Field(
        None, description="Season to energy rate table used on weekends and holidays."
    )
    energy_tiered_rates: Optional[Dict[str, List[TieredBand]]] = Field(
        None, description="Season to ordered list of consumption bands."
    )
    energy_tiered_baseline_type: Literal["monthly", "daily"] = Field(
        "monthly", description="Whether tier bounds are expressed per month or per day."
    )

    # Demand charges
    monthly_maximum_demand_rates: Optional[Dict[str, confloat(ge=0)]] = Field(
        None, description="Season to flat charge on the monthly peak demand ($/kW)."
    )
    monthly_demand_tou_rates: Optional[Dict[str, List[RatePeriod]]] = Field(
        None, description="Season to TOU table charged on each period's monthly peak ($/kW)."
    )
    daily_demand_tou_rates: Optional[Dict[str, List[RatePeriod]]] = Field(
        None, description="Season to TOU table charged on each period's daily peak ($/kW)."
    )

    # Net energy metering
    nem_enabled: bool = Field(False, description="Credit exported energy.")
    nem_version: Literal[1, 2, 3] = Field(2, description="Net energy metering version.")
    non_bypassable_charge: Optional[confloat(ge=0)] = Field(
        None, description="Non-bypassable charge ($/kWh). Required under NEM v2."
    )
    nem3_avoided_cost: Optional[AvoidedCostProfile] = Field(
        None, description="Export compensation profile. Required under NEM v3."
    )

    # Fixed fees and scaling
    customer_charge: CustomerCharge = Field(default_factory=CustomerCharge)
    all_charge_scaling: confloat(ge=0) = Field(1.0, description="Multiplier on every charge.")
    energy_charge_scaling: confloat(ge=0) = Field(1.0, description="Multiplier on energy charges.")
    demand_charge_scaling: confloat(ge=0) = Field(1.0, description="Multiplier on demand charges.")
    tou_energy_charge_scaling: confloat(gt=0) = Field(
        1.0, description="Multiplier on the peak energy rate; partial-peak keeps its relative position."
    )

    @model_validator(mode="after")
    def _resolve_seasons(self) -> "TariffSpec":
        if self.months_by_season is None:
            if self.seasonal_month_split:
                summer = list(DEFAULT_SUMMER_MONTHS)
                winter = [m for m in ALL_MONTHS if m not in summer]
                self.months_by_season = {"summer": summer, "winter": winter}
            else:
                self.months_by_season = {BASE_SEASON: list(ALL_MONTHS)}

        if not self.seasonal_month_split:
            self.months_by_season = {BASE_SEASON: list(ALL_MONTHS)}
            for name in (
                "energy_tou_rates",
                "weekend_energy_tou_rates",
                "energy_tiered_rates",
                "monthly_maximum_demand_rates",
                "monthly_demand_tou_rates",
                "daily_demand_tou_rates",
            ):
                table = getattr(self, name)
                if table is None or BASE_SEASON in table:
                    continue
                if len(table) != 1:
                    raise ValueError(
                        f"{name} defines {len(table)} seasons but seasonal_month_split is False."
                    )
                setattr(self, name, {BASE_SEASON: next(iter(table.values()))})
        return self

    @model_validator(mode="after")
    def _check_nem(self) -> "TariffSpec":
        if not self.nem_enabled:
            return self
        if self.nem_version == 2 and self.non_bypassable_charge is None:
            raise ValueError("NEM v2 requires non_bypassable_charge.")
        if self.nem_version == 3:
            if self.nem3_avoided_cost is None:
                raise ValueError("NEM v3 requires nem3_avoided_cost.")
            if self.non_bypassable_charge is None:
                logger.info("The tariff.non_bypassable_charge parameter is not defined. Will default to 0.0.")
                self.non_bypassable_charge = 0.0
        return self

    @property
    def season_of_month(self) -> Dict[int, str]:
        """Month number (1-12) to season name."""
        return {m: season for season, months in self.months_by_season.items() for m in months}

    @property
    def has_tiered_rates(self) -> bool:
        return bool(self.energy_tiered_rates)

    @property
    def nbc(self) -> float:
        """Non-bypassable charge, zero when undefined."""
        return float(self.non_bypassable_charge or 0.0)

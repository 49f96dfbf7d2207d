"""Tariff schema, holiday calendar and rate profile compiler."""

from .compiler import CompiledRates, DemandChargePeriod, TierBand, compile_rate_profiles
from .holidays import holiday_dates, identify_holidays, identify_weekends
from .models import AvoidedCostProfile, CustomerCharge, RatePeriod, TariffSpec, TieredBand

__all__ = [
    "AvoidedCostProfile",
    "CompiledRates",
    "CustomerCharge",
    "DemandChargePeriod",
    "RatePeriod",
    "TariffSpec",
    "TierBand",
    "TieredBand",
    "compile_rate_profiles",
    "holiday_dates",
    "identify_holidays",
    "identify_weekends",
]

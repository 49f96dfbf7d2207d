"""
Rate Profile Compiler
=====================

Turns a TariffSpec into dense per-timestep series for one scenario year:
- Energy prices (season/TOU resolution, weekend and holiday overrides,
  TOU, energy and all-charge scaling)
- Demand charge periods, each a named 0/1 mask with its rate
- Net energy metering sell prices
- Tiered energy bands per month
- TOU scaling indicator (0 other, 1 peak, 2+k partial-peak of season k)

Compilation runs once per simulation; every optimization window reads
slices of the result.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..errors import CompilationError
from ..resources.profiles import resample_profile, steps_per_year, year_index
from .holidays import identify_holidays, identify_weekends
from .models import ALL_MONTHS, AvoidedCostProfile, RatePeriod, TariffSpec

if TYPE_CHECKING:
    from ..config.models import ScenarioSpec

logger = logging.getLogger(__name__)

PEAK = "peak"
PARTIAL_PEAK = "partial-peak"
OFF_PEAK = "off-peak"

MONTHLY_MAXIMUM = "monthly_maximum"
MONTHLY_TOU = "monthly_tou"
DAILY_TOU = "daily_tou"
MONTHLY_CATEGORIES = (MONTHLY_MAXIMUM, MONTHLY_TOU)

_SEASON_TABLES = (
    "energy_tou_rates",
    "weekend_energy_tou_rates",
    "energy_tiered_rates",
    "monthly_maximum_demand_rates",
    "monthly_demand_tou_rates",
    "daily_demand_tou_rates",
)


@dataclass(frozen=True)
class DemandChargePeriod:
    """A demand charge billed on the peak net demand within ``mask``."""
    name: str
    category: str  # monthly_maximum / monthly_tou / daily_tou
    label: str
    month: int
    day: Optional[int]
    rate: float  # $/kW, scaled
    mask: np.ndarray = field(repr=False, compare=False)


@dataclass(frozen=True)
class TierBand:
    """One consumption band of a month. ``upper`` is math.inf when unbounded."""
    month: int
    index: int
    lower: float
    upper: float
    price: float  # $/kWh adder, scaled


@dataclass
class CompiledRates:
    """Full-year compiled tariff series."""
    year: int
    interval_length: int
    timestamps: pd.DatetimeIndex
    energy_prices: np.ndarray
    energy_labels: np.ndarray
    scaling_indicator: np.ndarray
    weekend_or_holiday: np.ndarray
    demand_charges: Dict[str, DemandChargePeriod] = field(default_factory=dict)
    nem_prices: Optional[np.ndarray] = None
    tiered_bands: Dict[int, List[TierBand]] = field(default_factory=dict)

    @property
    def num_time_steps(self) -> int:
        return len(self.timestamps)

    @property
    def interval_hours(self) -> float:
        return self.interval_length / 60.0


def normalize_label(label: str) -> str:
    return label.strip().lower().replace("_", "-").replace(" ", "-")


def expand_rate_table(
    periods: Sequence[RatePeriod],
    require_full: bool = True,
    context: str = "rate table",
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Expand a list of hour ranges into 24 hourly rates and labels.

    Args:
        periods: Rate periods of one season
        require_full: If True every hour 0..23 must be covered
        context: Table name used in error messages

    Returns:
        (rates, labels) arrays of length 24. Uncovered hours hold NaN / None.
    """
    rates = np.full(24, np.nan)
    labels = np.empty(24, dtype=object)
    for period in periods:
        for hour in period.hours():
            if labels[hour] is not None:
                raise CompilationError(
                    f"{context}: hour {hour} is covered by both '{labels[hour]}' and '{period.label}'."
                )
            rates[hour] = period.rate
            labels[hour] = period.label
    if require_full:
        missing = [h for h in range(24) if labels[h] is None]
        if missing:
            raise CompilationError(f"{context}: hours {missing} have no rate.")
    return rates, labels


def label_rates(periods: Sequence[RatePeriod], context: str = "rate table") -> Dict[str, float]:
    """Label to rate, rejecting a label that appears with two different rates."""
    out: Dict[str, float] = {}
    for period in periods:
        known = out.get(period.label)
        if known is not None and not math.isclose(known, period.rate):
            raise CompilationError(
                f"{context}: label '{period.label}' has conflicting rates {known} and {period.rate}."
            )
        out[period.label] = period.rate
    return out


def off_peak_fallback(periods: Sequence[RatePeriod]) -> Tuple[float, str]:
    """Rate used on weekends/holidays when no explicit override table exists."""
    for period in periods:
        if normalize_label(period.label) == OFF_PEAK:
            return period.rate, period.label
    for period in periods:
        if 0 in period.hours():
            return period.rate, period.label
    raise CompilationError("Rate table has no off-peak period and no rate at hour 0.")


def check_season_partition(tariff: TariffSpec) -> None:
    seen: Dict[int, str] = {}
    for season, months in tariff.months_by_season.items():
        for month in months:
            if month in seen:
                raise CompilationError(
                    f"Month {month} is assigned to both '{seen[month]}' and '{season}'."
                )
            seen[month] = season
    missing = [m for m in ALL_MONTHS if m not in seen]
    if missing:
        raise CompilationError(f"Months {missing} are not assigned to any season.")

    for name in _SEASON_TABLES:
        table = getattr(tariff, name)
        for season in table or {}:
            if season not in tariff.months_by_season:
                raise CompilationError(f"{name} references unknown season '{season}'.")


def tou_scaling_factors(tariff: TariffSpec) -> Dict[int, float]:
    """
    Multiplier for each scaling indicator code.

    Peak prices are multiplied by the TOU scaling factor. A partial-peak
    price is moved so that it keeps its relative position between the
    season's off-peak and scaled peak prices.
    """
    s = float(tariff.tou_energy_charge_scaling)
    factors = {0: 1.0, 1: s}
    for k, season in enumerate(sorted(tariff.months_by_season)):
        code = 2 + k
        if s == 1.0:
            factors[code] = 1.0
            continue
        periods = tariff.energy_tou_rates.get(season, [])
        rates = {normalize_label(lbl): r for lbl, r in label_rates(periods).items()}
        if PARTIAL_PEAK not in rates:
            factors[code] = 1.0
            continue
        if PEAK not in rates or OFF_PEAK not in rates:
            raise CompilationError(
                f"TOU scaling of season '{season}' needs 'peak' and 'off-peak' periods "
                f"alongside 'partial-peak'."
            )
        p, pp, op = rates[PEAK], rates[PARTIAL_PEAK], rates[OFF_PEAK]
        if math.isclose(p, op) or math.isclose(pp, 0.0):
            factors[code] = 1.0
            continue
        r = (pp - op) / (p - op)
        factors[code] = (r * (s * p - op) + op) / pp
    return factors


def resolve_tou_scaling(indicator: np.ndarray, factors: Dict[int, float]) -> np.ndarray:
    lookup = np.ones(max(factors) + 1)
    for code, factor in factors.items():
        lookup[code] = factor
    return lookup[indicator]


def _compile_energy(
    tariff: TariffSpec,
    index: pd.DatetimeIndex,
    override: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    n = len(index)
    months = np.asarray(index.month)
    hours = np.asarray(index.hour)
    prices = np.full(n, np.nan)
    labels = np.empty(n, dtype=object)
    indicator = np.zeros(n, dtype=int)
    weekend_tables = tariff.weekend_energy_tou_rates or {}

    for k, season in enumerate(sorted(tariff.months_by_season)):
        periods = tariff.energy_tou_rates.get(season)
        if not periods:
            raise CompilationError(f"energy_tou_rates has no table for season '{season}'.")
        context = f"energy_tou_rates[{season}]"
        rates, labs = expand_rate_table(periods, require_full=True, context=context)
        label_rates(periods, context)

        sel = np.isin(months, tariff.months_by_season[season])
        prices[sel] = rates[hours[sel]]
        labels[sel] = labs[hours[sel]]

        ov = sel & override
        if ov.any():
            weekend = weekend_tables.get(season)
            if weekend:
                w_rates, w_labs = expand_rate_table(
                    weekend, require_full=True, context=f"weekend_energy_tou_rates[{season}]"
                )
                prices[ov] = w_rates[hours[ov]]
                labels[ov] = w_labs[hours[ov]]
            else:
                rate, label = off_peak_fallback(periods)
                prices[ov] = rate
                labels[ov] = label

        normalized = np.array([normalize_label(lbl) for lbl in labels[sel]], dtype=object)
        codes = np.zeros(normalized.size, dtype=int)
        codes[normalized == PEAK] = 1
        codes[normalized == PARTIAL_PEAK] = 2 + k
        indicator[sel] = codes

    return prices, labels, indicator


def _add_period(periods: Dict[str, DemandChargePeriod], period: DemandChargePeriod) -> None:
    if period.name in periods:
        return
    periods[period.name] = period


def _compile_demand_charges(
    tariff: TariffSpec,
    index: pd.DatetimeIndex,
    override: np.ndarray,
    scale: float,
) -> Dict[str, DemandChargePeriod]:
    months = np.asarray(index.month)
    days = np.asarray(index.day)
    hours = np.asarray(index.hour)
    season_of_month = tariff.season_of_month
    maximum = tariff.monthly_maximum_demand_rates or {}
    monthly_tou = tariff.monthly_demand_tou_rates or {}
    daily_tou = tariff.daily_demand_tou_rates or {}
    periods: Dict[str, DemandChargePeriod] = {}

    for month in ALL_MONTHS:
        season = season_of_month[month]
        in_month = months == month
        if not in_month.any():
            continue

        if season in maximum:
            _add_period(periods, DemandChargePeriod(
                name=f"monthly_maximum_{month}",
                category=MONTHLY_MAXIMUM,
                label="maximum",
                month=month,
                day=None,
                rate=float(maximum[season]) * scale,
                mask=in_month,
            ))

        table = monthly_tou.get(season)
        if table:
            context = f"monthly_demand_tou_rates[{season}]"
            _, labs = expand_rate_table(table, require_full=False, context=context)
            for label, rate in label_rates(table, context).items():
                mask = in_month & (labs[hours] == label) & ~override
                if not mask.any():
                    continue
                _add_period(periods, DemandChargePeriod(
                    name=f"monthly_{label}_{month}",
                    category=MONTHLY_TOU,
                    label=label,
                    month=month,
                    day=None,
                    rate=rate * scale,
                    mask=mask,
                ))

        table = daily_tou.get(season)
        if table:
            context = f"daily_demand_tou_rates[{season}]"
            _, labs = expand_rate_table(table, require_full=False, context=context)
            rates = label_rates(table, context)
            label_hours = {label: labs[hours] == label for label in rates}
            for day in np.unique(days[in_month]):
                in_day = in_month & (days == day)
                if (in_day & override).any():
                    continue
                for label, rate in rates.items():
                    mask = in_day & label_hours[label]
                    if not mask.any():
                        continue
                    _add_period(periods, DemandChargePeriod(
                        name=f"daily_{label}_{month}-{int(day)}",
                        category=DAILY_TOU,
                        label=label,
                        month=month,
                        day=int(day),
                        rate=rate * scale,
                        mask=mask,
                    ))

    return periods


def _compile_tiers(tariff: TariffSpec, scale: float) -> Dict[int, List[TierBand]]:
    if not tariff.energy_tiered_rates:
        return {}

    for season, bands in tariff.energy_tiered_rates.items():
        context = f"energy_tiered_rates[{season}]"
        if not bands:
            raise CompilationError(f"{context} is empty.")
        if bands[0].lower_bound != 0:
            raise CompilationError(f"{context}: first band must start at 0.")
        for prev, band in zip(bands, bands[1:]):
            if prev.upper_bound is None:
                raise CompilationError(f"{context}: only the last band may be unbounded.")
            if not math.isclose(prev.upper_bound, band.lower_bound):
                raise CompilationError(
                    f"{context}: band starting at {band.lower_bound} does not follow "
                    f"band ending at {prev.upper_bound}."
                )
        prices = [b.price for b in bands]
        if any(b < a for a, b in zip(prices, prices[1:])):
            logger.warning("%s: tier prices decrease with consumption.", context)

    tiers: Dict[int, List[TierBand]] = {}
    for month in ALL_MONTHS:
        bands = tariff.energy_tiered_rates.get(tariff.season_of_month[month])
        if not bands:
            continue
        tiers[month] = [
            TierBand(
                month=month,
                index=i,
                lower=float(b.lower_bound),
                upper=math.inf if b.upper_bound is None else float(b.upper_bound),
                price=b.price * scale,
            )
            for i, b in enumerate(bands)
        ]
    return tiers


def align_avoided_cost(
    profile: AvoidedCostProfile,
    year: int,
    interval_length: int,
    index: pd.DatetimeIndex,
) -> np.ndarray:
    """Map an avoided-cost profile onto the scenario timestamps."""
    values = np.asarray(profile.values, dtype=float)

    if profile.average_by_month_hour_daytype:
        start_year = profile.year or year
        src = pd.date_range(
            start=pd.Timestamp(year=start_year, month=1, day=1),
            periods=values.size,
            freq=f"{profile.interval_length}min",
        )
        frame = pd.DataFrame({
            "value": values,
            "month": src.month,
            "hour": src.hour,
            "off_day": identify_weekends(src) | identify_holidays(src),
        })
        means = frame.groupby(["month", "hour", "off_day"])["value"].mean()
        keys = pd.MultiIndex.from_arrays(
            [index.month, index.hour, identify_weekends(index) | identify_holidays(index)],
            names=["month", "hour", "off_day"],
        )
        aligned = means.reindex(keys).to_numpy(dtype=float)
        if np.isnan(aligned).any():
            raise CompilationError(
                "nem3_avoided_cost does not cover every month, hour and day type of the scenario year."
            )
        return aligned

    if profile.year is not None and profile.year != year:
        raise CompilationError(
            f"nem3_avoided_cost is for {profile.year} but the scenario year is {year}; "
            f"set average_by_month_hour_daytype to map it."
        )
    expected = steps_per_year(year, profile.interval_length)
    if values.size != expected:
        raise CompilationError(
            f"nem3_avoided_cost has {values.size} values; expected {expected} "
            f"at {profile.interval_length}-minute resolution."
        )
    return resample_profile(values, year, interval_length, name="nem3_avoided_cost")


def _compile_nem_prices(
    tariff: TariffSpec,
    year: int,
    interval_length: int,
    index: pd.DatetimeIndex,
    energy_prices: np.ndarray,
) -> Optional[np.ndarray]:
    if not tariff.nem_enabled:
        return None
    if tariff.nem_version == 1:
        return energy_prices.copy()
    if tariff.nem_version == 2:
        return energy_prices - tariff.nbc
    avoided = align_avoided_cost(tariff.nem3_avoided_cost, year, interval_length, index)
    return avoided - tariff.nbc


def compile_rate_profiles(tariff: TariffSpec, scenario: "ScenarioSpec") -> CompiledRates:
    """
    Compile a tariff into full-year series at the scenario's resolution.

    Args:
        tariff: Validated tariff record
        scenario: Scenario providing ``year`` and ``interval_length``

    Returns:
        CompiledRates

    Raises:
        CompilationError: rate tables, seasons or profiles are inconsistent
    """
    year = int(scenario.year)
    interval_length = int(scenario.interval_length)
    check_season_partition(tariff)

    index = year_index(year, interval_length)
    weekend = identify_weekends(index)
    holiday = identify_holidays(index)
    override = np.zeros(len(index), dtype=bool)
    if tariff.weekday_weekend_split:
        override |= weekend
    if tariff.holiday_split:
        override |= holiday

    base_prices, labels, indicator = _compile_energy(tariff, index, override)
    tou_factor = resolve_tou_scaling(indicator, tou_scaling_factors(tariff))
    energy_scale = tariff.all_charge_scaling * tariff.energy_charge_scaling
    energy_prices = energy_scale * tou_factor * base_prices

    compiled = CompiledRates(
        year=year,
        interval_length=interval_length,
        timestamps=index,
        energy_prices=energy_prices,
        energy_labels=labels,
        scaling_indicator=indicator,
        weekend_or_holiday=override,
        demand_charges=_compile_demand_charges(
            tariff, index, override, tariff.all_charge_scaling * tariff.demand_charge_scaling
        ),
        nem_prices=_compile_nem_prices(tariff, year, interval_length, index, energy_prices),
        tiered_bands=_compile_tiers(tariff, energy_scale),
    )
    logger.info(
        "Compiled tariff '%s' for %d: %d timesteps, %d demand charge periods, %d tiered months",
        tariff.name,
        year,
        compiled.num_time_steps,
        len(compiled.demand_charges),
        len(compiled.tiered_bands),
    )
    return compiled

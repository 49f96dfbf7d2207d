"""
Horizon Partitioning
====================

Slices the full-year compiled series and asset profiles for one
optimization window and packages them, together with the state carried
from the previous window, into an immutable Sets snapshot.
"""

from __future__ import annotations

import calendar
import logging
import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from ..config.models import Horizon, SimulationInputs
from ..errors import ConfigurationError
from ..tariffs.compiler import DAILY_TOU, MONTHLY_CATEGORIES, CompiledRates

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WindowState:
    """State carried from one window to the next."""
    bes_soc_fraction: float
    monthly_peak_demand: Mapping[str, float] = field(default_factory=dict)
    month: Optional[int] = None  # month the peaks were observed in


@dataclass(frozen=True)
class DemandPeriod:
    name: str
    category: str
    rate: float  # $/kW applied to this window's peak variable
    mask: np.ndarray = field(repr=False, compare=False)
    prior_peak: float = 0.0


@dataclass(frozen=True)
class TierBlock:
    month: int
    index: int
    lower: float
    upper: float  # math.inf when unbounded
    price: float
    steps: np.ndarray = field(repr=False, compare=False)  # window positions in ``month``

    @property
    def width(self) -> Optional[float]:
        return None if math.isinf(self.upper) else self.upper - self.lower


@dataclass(frozen=True)
class Sets:
    """Everything one window's model needs, read-only."""
    start: date
    end: date  # inclusive
    horizon: Horizon
    interval_hours: float
    timestamps: pd.DatetimeIndex
    demand: np.ndarray
    energy_prices: np.ndarray
    nem_prices: Optional[np.ndarray] = None
    solar_capacity_factor: Optional[np.ndarray] = None
    shift_up: Optional[np.ndarray] = None
    shift_down: Optional[np.ndarray] = None
    demand_periods: Tuple[DemandPeriod, ...] = ()
    tiers: Tuple[TierBlock, ...] = ()
    bes_initial_soc: float = 0.0

    @property
    def num_time_steps(self) -> int:
        return len(self.timestamps)

    @property
    def num_demand_charge_periods(self) -> int:
        return len(self.demand_periods)

    @property
    def steps_per_hour(self) -> int:
        return int(round(1.0 / self.interval_hours))


def window_slice(compiled: CompiledRates, start: date, end: date) -> slice:
    """Positions of ``[start, end]`` (whole days) in the compiled year."""
    index = compiled.timestamps
    lo = index.searchsorted(pd.Timestamp(start))
    hi = index.searchsorted(pd.Timestamp(end + timedelta(days=1)))
    if hi <= lo:
        raise ConfigurationError(f"Window {start} to {end} lies outside simulated year {compiled.year}.")
    return slice(lo, hi)


class HorizonPartitioner:
    """
    Builds Sets snapshots for optimization windows.

    Rates are converted to the window's basis: under a DAY horizon monthly
    demand charges are spread evenly over the days of the month and tier
    bounds are expressed per day.
    """

    def __init__(self, inputs: SimulationInputs, compiled: CompiledRates):
        self.inputs = inputs
        self.compiled = compiled
        self.demand = np.asarray(inputs.demand.demand_profile, dtype=float)

        self.solar_cf = None
        if inputs.solar.enabled:
            self.solar_cf = np.asarray(inputs.solar.capacity_factor_profile, dtype=float)

        self.shift_up = self.shift_down = None
        spec = inputs.demand
        if spec.simple_shift_enabled:
            if spec.shift_up_capacity_profile is not None and spec.shift_down_capacity_profile is not None:
                self.shift_up = np.asarray(spec.shift_up_capacity_profile, dtype=float)
                self.shift_down = np.asarray(spec.shift_down_capacity_profile, dtype=float)
            else:
                self.shift_up = self.demand * spec.shift_percent
                self.shift_down = self.demand * spec.shift_percent

    def partition(self, start: date, end: date, state: WindowState) -> Sets:
        """
        Slice one window.

        Args:
            start: First day of the window
            end: Last day of the window (inclusive)
            state: State carried from the previous window
        """
        horizon = self.inputs.scenario.optimization_horizon
        sl = window_slice(self.compiled, start, end)
        timestamps = self.compiled.timestamps[sl]

        def cut(arr):
            return None if arr is None else arr[sl]

        sets = Sets(
            start=start,
            end=end,
            horizon=horizon,
            interval_hours=self.compiled.interval_hours,
            timestamps=timestamps,
            demand=self.demand[sl],
            energy_prices=self.compiled.energy_prices[sl],
            nem_prices=cut(self.compiled.nem_prices),
            solar_capacity_factor=cut(self.solar_cf),
            shift_up=cut(self.shift_up),
            shift_down=cut(self.shift_down),
            demand_periods=self._demand_periods(sl, start, horizon, state),
            tiers=self._tiers(timestamps, horizon),
            bes_initial_soc=float(state.bes_soc_fraction),
        )
        logger.debug(
            "Window %s..%s: %d steps, %d demand periods, %d tier blocks",
            start, end, sets.num_time_steps, sets.num_demand_charge_periods, len(sets.tiers),
        )
        return sets

    def _demand_periods(
        self,
        sl: slice,
        start: date,
        horizon: Horizon,
        state: WindowState,
    ) -> Tuple[DemandPeriod, ...]:
        carried: Mapping[str, float] = {}
        if horizon == Horizon.DAY and state.month == start.month:
            carried = state.monthly_peak_demand

        periods = []
        for charge in self.compiled.demand_charges.values():
            mask = charge.mask[sl]
            if not mask.any():
                continue
            rate = charge.rate
            prior = 0.0
            if horizon == Horizon.DAY and charge.category in MONTHLY_CATEGORIES:
                rate = rate / calendar.monthrange(self.compiled.year, charge.month)[1]
                prior = float(carried.get(charge.name, 0.0))
            periods.append(DemandPeriod(
                name=charge.name,
                category=charge.category,
                rate=rate,
                mask=mask,
                prior_peak=prior,
            ))
        return tuple(periods)

    def _tiers(self, timestamps: pd.DatetimeIndex, horizon: Horizon) -> Tuple[TierBlock, ...]:
        bands_by_month = self.compiled.tiered_bands
        if not bands_by_month:
            return ()
        if horizon == Horizon.YEAR:
            raise ConfigurationError("Tiered energy rates need a DAY or MONTH optimization horizon.")

        daily_baseline = self.inputs.tariff.energy_tiered_baseline_type == "daily"
        months = np.asarray(timestamps.month)
        blocks = []
        for month in np.unique(months):
            bands = bands_by_month.get(int(month))
            if not bands:
                continue
            days = calendar.monthrange(self.compiled.year, int(month))[1]
            if horizon == Horizon.DAY:
                factor = 1.0 if daily_baseline else 1.0 / days
            else:
                factor = float(days) if daily_baseline else 1.0
            steps = np.flatnonzero(months == month)
            for band in bands:
                blocks.append(TierBlock(
                    month=int(month),
                    index=band.index,
                    lower=band.lower * factor,
                    upper=band.upper * factor,
                    price=band.price,
                    steps=steps,
                ))
        return tuple(blocks)


def carry_state(state: WindowState, sets: Sets, net_demand: np.ndarray, soc_fraction: float) -> WindowState:
    """
    State for the window after ``sets``.

    Monthly peaks accumulate within a month and are dropped when the
    month changes; daily periods are never carried.
    """
    month = sets.start.month
    peaks: Dict[str, float] = {}
    if state.month == month:
        peaks.update(state.monthly_peak_demand)
    for period in sets.demand_periods:
        if period.category == DAILY_TOU:
            continue
        observed = float(np.max(net_demand[period.mask])) if period.mask.any() else 0.0
        peaks[period.name] = max(peaks.get(period.name, 0.0), period.prior_peak, observed)
    return WindowState(bes_soc_fraction=soc_fraction, monthly_peak_demand=peaks, month=month)

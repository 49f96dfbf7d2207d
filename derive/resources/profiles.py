from __future__ import annotations

import calendar
from typing import Sequence

import numpy as np
import pandas as pd

from ..errors import ConfigurationError

SUPPORTED_INTERVALS = (60, 30, 15)


def days_in_year(year: int) -> int:
    return 366 if calendar.isleap(year) else 365


def steps_per_year(year: int, interval_length: int) -> int:
    """Number of timesteps in a calendar year at ``interval_length`` minutes."""
    return days_in_year(year) * 24 * 60 // interval_length


def year_index(year: int, interval_length: int) -> pd.DatetimeIndex:
    """Interval-beginning timestamps covering one calendar year."""
    return pd.date_range(
        start=pd.Timestamp(year=year, month=1, day=1),
        periods=steps_per_year(year, interval_length),
        freq=f"{interval_length}min",
    )


def detect_interval(n_values: int, year: int) -> int:
    """Interval length (minutes) implied by a full-year series of ``n_values``."""
    for interval in SUPPORTED_INTERVALS:
        if n_values == steps_per_year(year, interval):
            return interval
    raise ConfigurationError(
        f"Profile has {n_values} values; expected a full {year} year at 15, 30 or 60 minutes "
        f"({', '.join(str(steps_per_year(year, i)) for i in reversed(SUPPORTED_INTERVALS))} values)."
    )


def resample_profile(
    values: Sequence[float],
    year: int,
    interval_length: int,
    name: str = "profile",
) -> np.ndarray:
    """
    Resample a full-year profile to ``interval_length`` minutes.

    Finer profiles are averaged in blocks. Coarser profiles are expanded by
    linear interpolation between consecutive values; the final block
    interpolates toward the first value of the year.
    """
    arr = np.asarray(values, dtype=float)
    try:
        source = detect_interval(arr.size, year)
    except ConfigurationError as exc:
        raise ConfigurationError(f"{name}: {exc}") from None

    if source == interval_length:
        return arr
    if source < interval_length:
        factor = interval_length // source
        return arr.reshape(-1, factor).mean(axis=1)

    factor = source // interval_length
    nxt = np.roll(arr, -1)
    frac = np.arange(factor, dtype=float) / factor
    return (arr[:, None] + (nxt - arr)[:, None] * frac[None, :]).ravel()

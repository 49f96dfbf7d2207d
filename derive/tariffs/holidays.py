"""
Holiday Calendar
================

Fixed set of federal holidays used by tariff weekend/holiday overrides:
New Year's Day, Presidents' Day, Memorial Day, Independence Day,
Labor Day, Veterans Day, Thanksgiving and Christmas.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from typing import Iterable, List

import numpy as np
import pandas as pd


def nth_weekday(year: int, month: int, weekday: int, n: int) -> date:
    """n-th occurrence (1-based) of ``weekday`` (Monday=0) in a month."""
    first = date(year, month, 1)
    offset = (weekday - first.weekday()) % 7
    return first + timedelta(days=offset + 7 * (n - 1))


def last_weekday(year: int, month: int, weekday: int) -> date:
    last = date(year, month, calendar.monthrange(year, month)[1])
    return last - timedelta(days=(last.weekday() - weekday) % 7)


def holiday_dates(year: int) -> List[date]:
    return [
        date(year, 1, 1),
        nth_weekday(year, 2, calendar.MONDAY, 3),
        last_weekday(year, 5, calendar.MONDAY),
        date(year, 7, 4),
        nth_weekday(year, 9, calendar.MONDAY, 1),
        date(year, 11, 11),
        nth_weekday(year, 11, calendar.THURSDAY, 4),
        date(year, 12, 25),
    ]


def identify_holidays(index: pd.DatetimeIndex) -> np.ndarray:
    """Boolean array, True for timestamps falling on a holiday."""
    years: Iterable[int] = np.unique(index.year)
    dates = pd.DatetimeIndex([d for y in years for d in holiday_dates(int(y))])
    return np.asarray(index.normalize().isin(dates))


def identify_weekends(index: pd.DatetimeIndex) -> np.ndarray:
    """Boolean array, True for Saturday and Sunday timestamps."""
    return np.asarray(index.dayofweek >= 5)

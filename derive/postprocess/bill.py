"""
Electricity Bill
================

Monthly bill breakdown from a simulated time series:
- Energy charge (scaled TOU prices)
- Tiered energy adders
- Demand charges on billed peaks
- NEM export revenue (capped on the annual total)
- Non-bypassable charge (informational, not added to the total)
- Customer charges
"""

from __future__ import annotations

import math
from typing import Dict, List

import numpy as np
import pandas as pd

from ..tariffs.compiler import CompiledRates
from ..tariffs.models import TariffSpec

BILL_COLUMNS = [
    "energy_charge",
    "tiered_energy_charge",
    "demand_charge",
    "nem_revenue",
    "non_bypassable_charge",
    "customer_charge",
    "total_charge",
]


def tiered_charge(consumption: float, bands: List, scale: float = 1.0) -> float:
    """Charge for ``consumption`` kWh filled through ``bands`` in order."""
    charge = 0.0
    for band in bands:
        upper = band.upper * scale
        lower = band.lower * scale
        width = upper - lower if not math.isinf(upper) else math.inf
        used = min(max(consumption - lower, 0.0), width)
        charge += used * band.price
    return charge


def nem_revenue_cap(tariff: TariffSpec, energy_total: float, nbc_total: float) -> float:
    if tariff.nem_version == 1:
        return energy_total
    return max(energy_total - nbc_total, 0.0)


def calculate_electricity_bill(
    time_series: pd.DataFrame,
    tariff: TariffSpec,
    compiled: CompiledRates,
) -> pd.DataFrame:
    """
    Bill one row per month plus a ``Total`` row.

    Args:
        time_series: Simulation time series (timestamp, net_demand, net_exports)
        tariff: Tariff the series was optimized against
        compiled: Compiled rates of that tariff for the simulated year

    Returns:
        DataFrame indexed by month number and ``Total`` with BILL_COLUMNS
    """
    if time_series.empty:
        return pd.DataFrame(columns=BILL_COLUMNS)

    dt = compiled.interval_hours
    stamps = pd.DatetimeIndex(time_series["timestamp"])
    positions = compiled.timestamps.get_indexer(stamps)
    if (positions < 0).any():
        raise ValueError("Time series timestamps do not match the compiled tariff calendar.")

    net = time_series["net_demand"].to_numpy(dtype=float)
    exports = time_series["net_exports"].to_numpy(dtype=float)
    prices = compiled.energy_prices[positions]
    nem_prices = compiled.nem_prices[positions] if compiled.nem_prices is not None else None
    nbc = tariff.nbc
    months = np.asarray(stamps.month)
    days = np.asarray(stamps.normalize())
    daily_baseline = tariff.energy_tiered_baseline_type == "daily"
    fees = tariff.customer_charge

    rows: Dict[object, Dict[str, float]] = {}
    for month in np.unique(months):
        sel = months == month
        n_days = len(np.unique(days[sel]))

        energy = dt * float(np.sum(prices[sel] * net[sel]))

        tiered = 0.0
        bands = compiled.tiered_bands.get(int(month))
        if bands:
            consumption = dt * float(np.sum(net[sel]))
            tiered = tiered_charge(consumption, bands, scale=n_days if daily_baseline else 1.0)

        demand = 0.0
        for period in compiled.demand_charges.values():
            if period.month != month:
                continue
            local = period.mask[positions] & sel
            if local.any():
                demand += period.rate * float(np.max(net[local]))

        nem = 0.0
        if nem_prices is not None:
            credit = nem_prices[sel] if tariff.nem_version == 1 else nem_prices[sel] + nbc
            nem = dt * float(np.sum(exports[sel] * credit))

        customer = tariff.all_charge_scaling * (fees.daily * n_days + fees.monthly)
        rows[int(month)] = {
            "energy_charge": energy,
            "tiered_energy_charge": tiered,
            "demand_charge": demand,
            "nem_revenue": nem,
            "non_bypassable_charge": dt * nbc * float(np.sum(net[sel])),
            "customer_charge": customer,
            "total_charge": energy + tiered + demand + customer - nem,
        }

    bill = pd.DataFrame.from_dict(rows, orient="index", columns=BILL_COLUMNS)
    total = bill.sum(axis=0)
    if tariff.nem_enabled:
        cap = nem_revenue_cap(tariff, total["energy_charge"], total["non_bypassable_charge"])
        total["nem_revenue"] = min(total["nem_revenue"], cap)
    total["total_charge"] = (
        total["energy_charge"]
        + total["tiered_energy_charge"]
        + total["demand_charge"]
        + total["customer_charge"]
        - total["nem_revenue"]
    )
    bill.loc["Total"] = total
    return bill

from __future__ import annotations

from typing import Dict, List

import pandas as pd

from ..config.models import SimulationInputs
from ..optimization.mechanisms import capital_recovery_factor

INVESTMENT_COLUMNS = [
    "unit",
    "capacity",
    "capital_cost_per_unit",
    "total_capital_cost",
    "amortized_capital_cost",
    "fixed_om_cost",
    "investment_tax_credit",
    "total_itc",
    "amortized_itc",
]


def _row(unit: str, capacity: float, unit_cost: float, crf: float, fixed_om: float, itc: float) -> Dict:
    total = capacity * unit_cost
    return {
        "unit": unit,
        "capacity": capacity,
        "capital_cost_per_unit": unit_cost,
        "total_capital_cost": total,
        "amortized_capital_cost": crf * total,
        "fixed_om_cost": fixed_om * capacity,
        "investment_tax_credit": itc,
        "total_itc": itc * total,
        "amortized_itc": itc * crf * total,
    }


def calculate_investment_costs(inputs: SimulationInputs, capacities: Dict[str, float]) -> pd.DataFrame:
    """Capital cost breakdown for built capacities, one row per sized quantity."""
    scenario = inputs.scenario
    rows: Dict[str, Dict] = {}

    solar = inputs.solar
    if solar.enabled:
        crf = capital_recovery_factor(scenario, solar.lifespan)
        capacity = capacities.get("solar_capacity", solar.power_capacity)
        rows["solar"] = _row(
            "kW", capacity, solar.capital_cost, crf, solar.fixed_om_cost, solar.investment_tax_credit
        )

    storage = inputs.storage
    if storage.enabled:
        crf = capital_recovery_factor(scenario, storage.lifespan)
        power = capacities.get("battery_power_capacity", storage.power_capacity)
        energy = capacities.get("battery_energy_capacity", storage.fixed_energy_capacity or 0.0)
        rows["storage_power"] = _row(
            "kW", power, storage.power_capital_cost, crf, storage.fixed_om_cost, storage.investment_tax_credit
        )
        rows["storage_energy"] = _row(
            "kWh", energy, storage.energy_capital_cost, crf, 0.0, storage.investment_tax_credit
        )

    return pd.DataFrame.from_dict(rows, orient="index", columns=INVESTMENT_COLUMNS)


def investment_summary(table: pd.DataFrame) -> List[str]:
    lines = []
    for asset, row in table.iterrows():
        lines.append(
            f"{asset}: {row['capacity']:.2f} {row['unit']}, "
            f"amortized ${row['amortized_capital_cost']:,.0f}/yr, ITC ${row['amortized_itc']:,.0f}/yr"
        )
    return lines

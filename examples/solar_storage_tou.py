"""
Solar + storage under a two-season TOU tariff with NEM v2 (one summer week).

Synthetic profiles: flat-ish commercial load with a daytime bump and a
diurnal sine-shaped PV capacity factor.
"""

import logging
import math
import sys
from datetime import date
from pathlib import Path

import numpy as np

# Ensure repo root is on sys.path when running from /examples
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from derive.config import load_inputs
from derive.simulation import HorizonOrchestrator

YEAR = 2023


def synthetic_profiles(hours: int = 8760):
    t = np.arange(hours, dtype=float)
    hod = t % 24.0
    solar_angle = math.pi * (hod - 6.0) / 12.0
    pv = np.maximum(0.0, np.sin(solar_angle)) ** 1.8 * 0.85
    load = 40.0 + 15.0 * np.exp(-((hod - 14.0) ** 2) / 18.0)
    return load, pv


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    load, pv = synthetic_profiles()

    tou = {
        "summer": [
            {"start": 0, "end": 16, "rate": 0.22, "label": "off-peak"},
            {"start": 16, "end": 21, "rate": 0.48, "label": "peak"},
            {"start": 21, "end": 24, "rate": 0.22, "label": "off-peak"},
        ],
        "winter": [
            {"start": 21, "end": 16, "rate": 0.20, "label": "off-peak"},
            {"start": 16, "end": 21, "rate": 0.31, "label": "peak"},
        ],
    }
    inputs = load_inputs({
        "scenario": {"optimization_horizon": "DAY", "year": YEAR},
        "tariff": {
            "energy_tou_rates": tou,
            "monthly_maximum_demand_rates": {"summer": 18.0, "winter": 12.0},
            "nem_enabled": True,
            "nem_version": 2,
            "non_bypassable_charge": 0.025,
            "customer_charge": {"daily": 0.5},
        },
        "demand": {"demand_profile": load.tolist()},
        "solar": {"enabled": True, "capacity_factor_profile": pv.tolist(), "power_capacity": 60.0},
        "storage": {
            "enabled": True,
            "power_capacity": 25.0,
            "duration": 4.0,
            "roundtrip_efficiency": 0.9,
            "soc_min": 0.1,
        },
    })

    results = HorizonOrchestrator(inputs).run(date(YEAR, 7, 1), date(YEAR, 7, 7))

    print("=== Cost components ($) ===")
    for name, value in results.cost_summary().items():
        print(f"{name:>10}: {value:10.2f}")
    print("\n=== Electricity bill ($) ===")
    print(results.electricity_bill.round(2).to_string())
    print("\n=== First day ===")
    cols = ["timestamp", "net_demand", "solar_btm", "battery_soc", "net_exports"]
    print(results.time_series[cols].head(24).round(2).to_string(index=False))


if __name__ == "__main__":
    main()

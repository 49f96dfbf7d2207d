"""
Tariff and Incentive Mechanisms
===============================

Objective terms and linkage constraints built on the shared net demand
and total exports expressions:
- Energy charge
- Demand charges (with carried monthly peaks under DAY windows)
- Net energy metering revenue
- Export eligibility linkages (net demand and built PV capacity)
- Tiered energy bands
- Capital cost, fixed O&M and investment tax credit (capacity expansion)

Indicator implications are written as big-M constraints so that every
backend can solve them; the indicator is binary or relaxed to [0, 1].
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

import numpy as np
import pyomo.environ as pyo

from ..errors import ConfigurationError

if TYPE_CHECKING:
    from ..config.models import ScenarioSpec, SimulationInputs
    from ..simulation.sets import Sets
    from .model import NetDemandAccumulator

logger = logging.getLogger(__name__)


def add_energy_charge(m: pyo.ConcreteModel, sets: "Sets") -> None:
    if sets.num_demand_charge_periods == 0:
        # linearizes max(net_demand, 0) when no peak variable pins net demand
        m.net_demand_positive = pyo.Var(m.T, within=pyo.NonNegativeReals)
        m.net_demand_positive_def = pyo.Constraint(
            m.T, rule=lambda m, t: m.net_demand_positive[t] >= m.net_demand[t]
        )
        billed = m.net_demand_positive
    else:
        billed = m.net_demand
    m.cost_energy = pyo.Expression(expr=m.dt * sum(m.energy_price[t] * billed[t] for t in m.T))


def add_demand_charges(m: pyo.ConcreteModel, sets: "Sets") -> None:
    periods = sets.demand_periods
    if not periods:
        return

    m.P = pyo.Set(initialize=range(len(periods)))
    m.demand_rate = pyo.Param(m.P, initialize=lambda m, p: float(periods[p].rate))
    m.peak_demand = pyo.Var(m.P, within=pyo.NonNegativeReals)

    pairs = [(p, int(t)) for p, period in enumerate(periods) for t in np.flatnonzero(period.mask)]
    m.PEAK_STEPS = pyo.Set(dimen=2, initialize=pairs)
    m.peak_demand_def = pyo.Constraint(
        m.PEAK_STEPS, rule=lambda m, p, t: m.peak_demand[p] >= m.net_demand[t]
    )

    def prior_peak_rule(m, p):
        if periods[p].prior_peak <= 0:
            return pyo.Constraint.Skip
        return m.peak_demand[p] >= periods[p].prior_peak

    m.peak_demand_prior = pyo.Constraint(m.P, rule=prior_peak_rule)
    m.cost_demand = pyo.Expression(expr=sum(m.demand_rate[p] * m.peak_demand[p] for p in m.P))


def add_nem_revenue(m: pyo.ConcreteModel, sets: "Sets") -> None:
    prices = sets.nem_prices
    m.nem_price = pyo.Param(m.T, initialize=lambda m, t: float(prices[t]))
    m.cost_nem = pyo.Expression(expr=-m.dt * sum(m.nem_price[t] * m.total_exports[t] for t in m.T))


def _indicator(m: pyo.ConcreteModel, name: str, binary: bool, index=None) -> pyo.Var:
    args = () if index is None else (index,)
    if binary:
        var = pyo.Var(*args, within=pyo.Binary)
    else:
        var = pyo.Var(*args, within=pyo.NonNegativeReals, bounds=(0, 1))
    m.add_component(name, var)
    return var


def _bound_or_big_m(value: Optional[float], scenario: "ScenarioSpec", what: str) -> float:
    if value is None:
        logger.warning("No upper bound known for %s; using big_m = %g", what, scenario.big_m)
        return float(scenario.big_m)
    return float(value)


def net_demand_bound(sets: "Sets", inputs: "SimulationInputs") -> float:
    """Largest net demand reachable in the window."""
    bound = float(np.max(sets.demand)) if sets.num_time_steps else 0.0
    storage = inputs.storage
    if storage.enabled:
        if inputs.scenario.is_capacity_expansion:
            bound += _bound_or_big_m(storage.maximum_power_capacity, inputs.scenario, "storage power")
        else:
            bound += float(storage.power_capacity)
    if sets.shift_up is not None:
        bound += float(np.max(sets.shift_up))
    return bound


def export_bound(sets: "Sets", inputs: "SimulationInputs") -> float:
    """Largest total export reachable in the window."""
    cem = inputs.scenario.is_capacity_expansion
    bound = 0.0
    if inputs.solar_exports:
        solar = inputs.solar
        if cem:
            bound += _bound_or_big_m(solar.maximum_power_capacity, inputs.scenario, "solar capacity")
        else:
            peak_cf = float(np.max(sets.solar_capacity_factor)) if sets.num_time_steps else 0.0
            bound += float(solar.power_capacity) * peak_cf * solar.inverter_efficiency
    if inputs.storage_exports:
        storage = inputs.storage
        if cem:
            bound += _bound_or_big_m(storage.maximum_power_capacity, inputs.scenario, "storage power")
        else:
            bound += float(storage.power_capacity)
    return bound


def add_net_demand_export_linkage(
    m: pyo.ConcreteModel,
    sets: "Sets",
    inputs: "SimulationInputs",
    binary: bool,
) -> None:
    """Exports only while on-site demand is fully served: zeta[t] => net_demand[t] <= 0."""
    zeta = _indicator(m, "export_eligible", binary, m.T)
    big_m = net_demand_bound(sets, inputs)
    cap = export_bound(sets, inputs)

    m.export_linkage_net_demand = pyo.Constraint(
        m.T, rule=lambda m, t: m.net_demand[t] <= big_m * (1 - zeta[t])
    )
    m.export_linkage_exports = pyo.Constraint(
        m.T, rule=lambda m, t: m.total_exports[t] <= cap * zeta[t]
    )


def add_pv_capacity_export_linkage(
    m: pyo.ConcreteModel,
    sets: "Sets",
    inputs: "SimulationInputs",
    binary: bool,
) -> None:
    """
    No exports without a built PV system: zeta = 1 <=> solar_capacity <= 0.

    Capacity below ``scenario.minimum_pv_capacity`` does not qualify, so
    zeta = 0 requires at least that much PV to be built.
    """
    zeta = _indicator(m, "pv_export_ineligible", binary)
    big_m = _bound_or_big_m(inputs.solar.maximum_power_capacity, inputs.scenario, "solar capacity")
    eps = float(inputs.scenario.minimum_pv_capacity)
    cap = export_bound(sets, inputs)

    m.pv_capacity_linkage = pyo.Constraint(expr=m.solar_capacity <= big_m * (1 - zeta))
    m.pv_capacity_qualifies = pyo.Constraint(expr=m.solar_capacity >= eps * (1 - zeta))
    m.pv_export_linkage = pyo.Constraint(
        m.T, rule=lambda m, t: m.total_exports[t] <= cap * (1 - zeta)
    )


def add_tiered_energy(m: pyo.ConcreteModel, sets: "Sets") -> None:
    """Split each month's consumption in the window across its bands."""
    tiers = sets.tiers
    m.TIERS = pyo.Set(initialize=range(len(tiers)))
    m.tier_energy = pyo.Var(
        m.TIERS, within=pyo.NonNegativeReals, bounds=lambda m, k: (0, tiers[k].width)
    )

    months = sorted({block.month for block in tiers})
    m.TIER_MONTHS = pyo.Set(initialize=months)

    def tier_balance_rule(m, month):
        blocks = [k for k, block in enumerate(tiers) if block.month == month]
        steps = tiers[blocks[0]].steps
        return sum(m.tier_energy[k] for k in blocks) == m.dt * sum(m.net_demand[int(t)] for t in steps)

    m.tier_balance = pyo.Constraint(m.TIER_MONTHS, rule=tier_balance_rule)
    m.cost_tiered = pyo.Expression(expr=sum(tiers[k].price * m.tier_energy[k] for k in m.TIERS))


def capital_recovery_factor(scenario: "ScenarioSpec", lifespan: Optional[int]) -> float:
    """
    Annualization factor for capital cost.

    Uses the real discount rate, or one derived from the nominal rate and
    inflation; straight-line over the period when neither is available.
    """
    n = scenario.amortization_period or lifespan
    if not n:
        raise ConfigurationError("Amortization needs an asset lifespan or scenario.amortization_period.")

    r = scenario.real_discount_rate
    if r is None and scenario.nominal_discount_rate is not None:
        inflation = scenario.inflation_rate or 0.0
        r = (scenario.nominal_discount_rate - inflation) / (1 + inflation)
    if r is None or r == 0:
        return 1.0 / n
    growth = (1 + r) ** n
    return r * growth / (growth - 1)


def add_capital_costs(m: pyo.ConcreteModel, inputs: "SimulationInputs") -> None:
    """Amortized capital, fixed O&M and ITC credit for sized assets."""
    scenario = inputs.scenario
    costs = []
    credits = []

    if inputs.solar.enabled:
        solar = inputs.solar
        crf = capital_recovery_factor(scenario, solar.lifespan)
        costs.append((crf * solar.capital_cost + solar.fixed_om_cost) * m.solar_capacity)
        credits.append(solar.investment_tax_credit * crf * solar.capital_cost * m.solar_capacity)

    if inputs.storage.enabled:
        storage = inputs.storage
        crf = capital_recovery_factor(scenario, storage.lifespan)
        capital = (
            storage.power_capital_cost * m.battery_power_capacity
            + storage.energy_capital_cost * m.battery_energy_capacity
        )
        costs.append(crf * capital + storage.fixed_om_cost * m.battery_power_capacity)
        credits.append(storage.investment_tax_credit * crf * capital)

    m.cost_capital = pyo.Expression(expr=sum(costs))
    m.cost_itc = pyo.Expression(expr=-sum(credits))

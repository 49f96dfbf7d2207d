"""
Asset Sub-Builders
==================

Each builder adds one asset's variables and constraints to a window
model and registers its power terms with the NetDemandAccumulator.
Builders return nothing; the accumulator is the only shared channel.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pyomo.environ as pyo

from ..errors import ConfigurationError

if TYPE_CHECKING:
    from ..config.models import SimulationInputs
    from ..simulation.sets import Sets
    from .model import NetDemandAccumulator


def add_solar(m: pyo.ConcreteModel, sets: "Sets", inputs: "SimulationInputs", acc: "NetDemandAccumulator") -> None:
    """Behind-the-meter and exported PV output limited by the capacity factor."""
    spec = inputs.solar
    cf = sets.solar_capacity_factor

    m.solar_cf = pyo.Param(m.T, initialize=lambda m, t: float(cf[t]))
    if inputs.scenario.is_capacity_expansion:
        m.solar_capacity = pyo.Var(within=pyo.NonNegativeReals, bounds=(0, spec.maximum_power_capacity))
    else:
        m.solar_capacity = pyo.Param(initialize=float(spec.power_capacity))

    m.solar_btm = pyo.Var(m.T, within=pyo.NonNegativeReals)
    acc.add_demand(m.solar_btm, -1.0)
    if inputs.solar_exports:
        m.solar_export = pyo.Var(m.T, within=pyo.NonNegativeReals)
        acc.add_export(m.solar_export)

    def solar_output_rule(m, t):
        output = m.solar_btm[t]
        if hasattr(m, "solar_export"):
            output = output + m.solar_export[t]
        return output <= m.solar_cf[t] * m.solar_capacity * spec.inverter_efficiency

    m.solar_output = pyo.Constraint(m.T, rule=solar_output_rule)


def add_battery(m: pyo.ConcreteModel, sets: "Sets", inputs: "SimulationInputs", acc: "NetDemandAccumulator") -> None:
    """Battery power limits, SOC dynamics, SOC limits and terminal guard."""
    spec = inputs.storage
    last = sets.num_time_steps - 1

    if inputs.scenario.is_capacity_expansion:
        m.battery_power_capacity = pyo.Var(
            within=pyo.NonNegativeReals, bounds=(0, spec.maximum_power_capacity)
        )
        if spec.duration is not None:
            m.battery_energy_capacity = pyo.Expression(expr=spec.duration * m.battery_power_capacity)
        else:
            m.battery_energy_capacity = pyo.Var(
                within=pyo.NonNegativeReals, bounds=(0, spec.maximum_energy_capacity)
            )
    else:
        m.battery_power_capacity = pyo.Param(initialize=float(spec.power_capacity))
        m.battery_energy_capacity = pyo.Param(initialize=float(spec.fixed_energy_capacity))

    m.bes_initial_soc = pyo.Param(initialize=sets.bes_initial_soc)
    m.bes_eff_c = pyo.Param(initialize=spec.eta_charge)
    m.bes_eff_d = pyo.Param(initialize=spec.eta_discharge)
    m.bes_loss = pyo.Param(initialize=float(spec.loss_rate))

    m.battery_charge = pyo.Var(m.T, within=pyo.NonNegativeReals)
    m.battery_discharge = pyo.Var(m.T, within=pyo.NonNegativeReals)
    m.battery_soc = pyo.Var(m.T, within=pyo.Reals)
    acc.add_demand(m.battery_charge, 1.0)
    acc.add_demand(m.battery_discharge, -1.0)
    if inputs.storage_exports:
        m.battery_discharge_export = pyo.Var(m.T, within=pyo.NonNegativeReals)
        acc.add_export(m.battery_discharge_export)

    def outflow(m, t):
        if hasattr(m, "battery_discharge_export"):
            return m.battery_discharge[t] + m.battery_discharge_export[t]
        return m.battery_discharge[t]

    # 1. POWER LIMITS
    def charge_limit_rule(m, t):
        return m.battery_charge[t] <= m.battery_power_capacity

    def discharge_limit_rule(m, t):
        return outflow(m, t) <= m.battery_power_capacity

    m.battery_charge_limit = pyo.Constraint(m.T, rule=charge_limit_rule)
    m.battery_discharge_limit = pyo.Constraint(m.T, rule=discharge_limit_rule)

    # 2. SOC DYNAMICS
    def soc_dynamics_rule(m, t):
        if t == 0:
            prev_soc = m.bes_initial_soc * m.battery_energy_capacity
        else:
            prev_soc = m.battery_soc[t - 1]
        charge_energy = m.battery_charge[t] * m.dt * m.bes_eff_c
        discharge_energy = outflow(m, t) * m.dt / m.bes_eff_d
        return m.battery_soc[t] == (1 - m.bes_loss) * prev_soc + charge_energy - discharge_energy

    m.battery_soc_dynamics = pyo.Constraint(m.T, rule=soc_dynamics_rule)

    # 3. SOC LIMITS
    def soc_min_rule(m, t):
        return m.battery_soc[t] >= spec.soc_min * m.battery_energy_capacity

    def soc_max_rule(m, t):
        return m.battery_soc[t] <= spec.soc_max * m.battery_energy_capacity

    m.battery_soc_min = pyo.Constraint(m.T, rule=soc_min_rule)
    m.battery_soc_max = pyo.Constraint(m.T, rule=soc_max_rule)

    # 4. TERMINAL SOC (energy left for the next window)
    m.battery_soc_terminal = pyo.Constraint(
        expr=m.battery_soc[last] >= m.bes_initial_soc * m.battery_energy_capacity
    )

    # 5. NON-IMPORT: charge only from concurrent solar
    if spec.nonimport:
        if not hasattr(m, "solar_btm"):
            raise ConfigurationError("Non-import storage needs solar to charge from, but solar is disabled.")
        m.battery_nonimport = pyo.Constraint(
            m.T, rule=lambda m, t: m.battery_charge[t] <= m.solar_btm[t]
        )


def add_shiftable_demand(m: pyo.ConcreteModel, sets: "Sets", inputs: "SimulationInputs", acc: "NetDemandAccumulator") -> None:
    """Energy-neutral demand shifting with a recovery window."""
    up = sets.shift_up
    down = sets.shift_down
    n = sets.num_time_steps
    window = int(inputs.demand.shift_duration * sets.steps_per_hour)

    m.shift = pyo.Var(m.T, within=pyo.Reals, bounds=lambda m, t: (-float(down[t]), float(up[t])))
    acc.add_demand(m.shift, 1.0)

    m.shift_balance = pyo.Constraint(expr=sum(m.shift[t] for t in m.T) == 0)

    if window < n:
        m.SHIFT_WINDOWS = pyo.Set(initialize=range(n - window + 1))

        def shift_recovery_rule(m, s):
            return sum(m.shift[t] for t in range(s, s + window)) >= 0

        m.shift_recovery = pyo.Constraint(m.SHIFT_WINDOWS, rule=shift_recovery_rule)


def add_sheddable_demand(m: pyo.ConcreteModel, sets: "Sets", inputs: "SimulationInputs", acc: "NetDemandAccumulator") -> None:
    """Curtailable demand priced at the value of lost load."""
    demand = sets.demand
    m.voll = pyo.Param(initialize=float(inputs.demand.value_of_lost_load))
    m.shed = pyo.Var(m.T, within=pyo.NonNegativeReals, bounds=lambda m, t: (0, float(demand[t])))
    acc.add_demand(m.shed, -1.0)
    m.cost_shed = pyo.Expression(expr=m.dt * m.voll * sum(m.shed[t] for t in m.T))

"""
Window Model Builder
====================

Pyomo LP/MILP for one optimization window of a behind-the-meter site.

Objective: Minimize electricity cost
- TOU energy charge
- Demand charges
- Tiered energy adders
- Shed demand at value of lost load
- NEM export revenue (negative cost)
- Amortized capital, fixed O&M and ITC credit (capacity expansion)

Constraints:
- Net demand nonnegative (exports only through export variables)
- Peak demand per demand charge period, carried monthly peaks
- Asset constraints (solar output, battery SOC, shifting, shedding)
- Export eligibility linkages
- Tier bucket accounting
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, List, Optional, Sequence, Tuple

import pyomo.environ as pyo

from .assets import add_battery, add_sheddable_demand, add_shiftable_demand, add_solar
from .mechanisms import (
    add_capital_costs,
    add_demand_charges,
    add_energy_charge,
    add_nem_revenue,
    add_net_demand_export_linkage,
    add_pv_capacity_export_linkage,
    add_tiered_energy,
)

if TYPE_CHECKING:
    from ..config.models import SimulationInputs
    from ..simulation.sets import Sets

logger = logging.getLogger(__name__)

COST_COMPONENTS = (
    "cost_energy",
    "cost_demand",
    "cost_tiered",
    "cost_nem",
    "cost_shed",
    "cost_capital",
    "cost_itc",
)


class NetDemandAccumulator:
    """
    Collects the power terms that make up net demand and total exports.

    Asset builders register indexed variables with a sign; ``attach``
    turns the collected terms into the model's shared expressions.
    """

    def __init__(self, base_demand: Sequence[float], exports_enabled: bool):
        self.base_demand = [float(v) for v in base_demand]
        self.exports_enabled = exports_enabled
        self._demand_terms: List[Tuple[Any, float]] = []
        self._export_terms: List[Any] = []

    def add_demand(self, component: Any, sign: float = 1.0) -> None:
        self._demand_terms.append((component, float(sign)))

    def add_export(self, component: Any) -> None:
        if not self.exports_enabled:
            raise ValueError("Export term added while net metering is disabled.")
        self._export_terms.append(component)

    @property
    def has_variable_terms(self) -> bool:
        return bool(self._demand_terms)

    @property
    def has_exports(self) -> bool:
        return bool(self._export_terms)

    def net_demand(self, t: int):
        return self.base_demand[t] + sum(sign * comp[t] for comp, sign in self._demand_terms)

    def total_exports(self, t: int):
        return sum(comp[t] for comp in self._export_terms)

    def attach(self, m: pyo.ConcreteModel) -> None:
        m.net_demand = pyo.Expression(m.T, rule=lambda m, t: self.net_demand(t))
        if self.exports_enabled:
            m.total_exports = pyo.Expression(m.T, rule=lambda m, t: self.total_exports(t))


class ModelBuilder:
    """
    Builds a fresh model per window.

    The binary-versus-relaxed choice for each export linkage indicator
    defaults to the scenario flags and can be overridden here.
    """

    def __init__(
        self,
        inputs: "SimulationInputs",
        binary_net_demand_linkage: Optional[bool] = None,
        binary_pv_capacity_linkage: Optional[bool] = None,
    ):
        scenario = inputs.scenario
        self.inputs = inputs
        self.binary_net_demand_linkage = (
            scenario.binary_net_demand_and_exports_linkage
            if binary_net_demand_linkage is None else binary_net_demand_linkage
        )
        self.binary_pv_capacity_linkage = (
            scenario.binary_pv_capacity_and_exports_linkage
            if binary_pv_capacity_linkage is None else binary_pv_capacity_linkage
        )

    def build(self, sets: "Sets") -> pyo.ConcreteModel:
        """
        Build the optimization model for one window.

        Args:
            sets: Window snapshot from the HorizonPartitioner

        Returns:
            Pyomo ConcreteModel with a ``objective`` to minimize
        """
        inputs = self.inputs
        m = pyo.ConcreteModel("DeriveWindow")

        # =====================
        # SETS
        # =====================
        m.T = pyo.Set(initialize=range(sets.num_time_steps))

        # =====================
        # PARAMETERS
        # =====================
        m.dt = pyo.Param(initialize=sets.interval_hours)
        m.demand = pyo.Param(m.T, initialize=lambda m, t: float(sets.demand[t]))
        m.energy_price = pyo.Param(m.T, initialize=lambda m, t: float(sets.energy_prices[t]))

        # =====================
        # ASSETS
        # =====================
        acc = NetDemandAccumulator(sets.demand, exports_enabled=inputs.exports_enabled)
        if inputs.solar.enabled:
            add_solar(m, sets, inputs, acc)
        if inputs.storage.enabled:
            add_battery(m, sets, inputs, acc)
        if inputs.demand.simple_shift_enabled:
            add_shiftable_demand(m, sets, inputs, acc)
        if inputs.demand.shed_enabled:
            add_sheddable_demand(m, sets, inputs, acc)
        acc.attach(m)

        # =====================
        # CONSTRAINTS
        # =====================

        # 1. NET DEMAND NONNEGATIVE (exports route through export variables)
        if acc.has_variable_terms:
            m.net_demand_nonnegative = pyo.Constraint(m.T, rule=lambda m, t: m.net_demand[t] >= 0)

        # 2. ENERGY AND DEMAND CHARGES
        add_energy_charge(m, sets)
        add_demand_charges(m, sets)

        # 3. NET METERING
        if acc.has_exports:
            add_nem_revenue(m, sets)
            add_net_demand_export_linkage(m, sets, inputs, self.binary_net_demand_linkage)
            if inputs.scenario.is_capacity_expansion and inputs.solar.enabled:
                add_pv_capacity_export_linkage(m, sets, inputs, self.binary_pv_capacity_linkage)

        # 4. TIERED ENERGY
        if sets.tiers:
            add_tiered_energy(m, sets)

        # 5. CAPITAL COSTS
        if inputs.scenario.is_capacity_expansion:
            add_capital_costs(m, inputs)

        # =====================
        # OBJECTIVE FUNCTION
        # =====================
        m.objective = pyo.Objective(
            expr=sum(getattr(m, name) for name in COST_COMPONENTS if hasattr(m, name)),
            sense=pyo.minimize,
        )

        logger.debug(
            "Built window model %s..%s: %d variables, %d constraints",
            sets.start,
            sets.end,
            m.nvariables(),
            m.nconstraints(),
        )
        return m

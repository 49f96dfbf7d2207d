"""
Unit tests for window model construction (no solver needed).
"""

import logging
from datetime import date

import pyomo.environ as pyo
import pytest

from conftest import flat_tariff, solar_spec, storage_spec
from derive.config import ScenarioSpec
from derive.optimization import ModelBuilder, NetDemandAccumulator
from derive.optimization.mechanisms import capital_recovery_factor, export_bound, net_demand_bound
from derive.simulation import HorizonPartitioner, WindowState
from derive.tariffs import compile_rate_profiles

DAY = date(2023, 1, 3)
NEM_TARIFF = flat_tariff(nem_enabled=True, nem_version=2, non_bypassable_charge=0.02)
CEM = {"problem_type": "CEM", "optimization_horizon": "YEAR"}


def build(inputs, day=DAY, state=None, **builder_args):
    compiled = compile_rate_profiles(inputs.tariff, inputs.scenario)
    sets = HorizonPartitioner(inputs, compiled).partition(day, day, state or WindowState(0.5))
    return ModelBuilder(inputs, **builder_args).build(sets), sets


class TestBaseModel:
    """Demand-only models."""

    def test_fixed_demand(self, make_inputs):
        m, sets = build(make_inputs(demand=10.0, tariff=flat_tariff(0.2)))
        assert len(m.T) == 24
        assert not hasattr(m, "net_demand_nonnegative")
        assert hasattr(m, "net_demand_positive")
        for t in m.T:
            m.net_demand_positive[t].set_value(10.0)
        assert pyo.value(m.cost_energy) == pytest.approx(48.0)
        assert pyo.value(m.objective) == pytest.approx(48.0)

    def test_quarter_hour_dt(self, make_inputs):
        m, _ = build(make_inputs(scenario={"interval_length": 15}))
        assert len(m.T) == 96
        assert pyo.value(m.dt) == 0.25

    def test_demand_charges_replace_positive_part(self, make_inputs):
        m, _ = build(make_inputs(tariff=flat_tariff(monthly_maximum_demand_rates={"base": 10.0})))
        assert not hasattr(m, "net_demand_positive")
        assert len(m.P) == 1
        assert len(m.PEAK_STEPS) == 24
        assert len(m.peak_demand_prior) == 0

    def test_prior_peak_constraint(self, make_inputs):
        inputs = make_inputs(tariff=flat_tariff(monthly_maximum_demand_rates={"base": 10.0}))
        m, _ = build(inputs, state=WindowState(0.5, {"monthly_maximum_1": 12.0}, month=1))
        assert 0 in m.peak_demand_prior
        assert pyo.value(m.peak_demand_prior[0].lower) == 12.0


class TestAssets:
    """Asset components and their registration in net demand."""

    def test_net_demand_identity(self, make_inputs):
        inputs = make_inputs(
            demand=10.0,
            solar=solar_spec(),
            storage=storage_spec(),
            simple_shift_enabled=True,
            shift_percent=0.5,
            shed_enabled=True,
        )
        m, _ = build(inputs)
        values = {"solar_btm": 2.0, "battery_charge": 3.0, "battery_discharge": 1.0, "shift": 0.5, "shed": 0.25}
        for name, value in values.items():
            for t in m.T:
                getattr(m, name)[t].set_value(value)
        for t in m.T:
            assert pyo.value(m.net_demand[t]) == pytest.approx(10.0 - 2.0 + 3.0 - 1.0 + 0.5 - 0.25)
        assert hasattr(m, "net_demand_nonnegative")
        assert not hasattr(m, "total_exports")

    def test_battery_components(self, make_inputs):
        inputs = make_inputs(storage=storage_spec(5.0, 20.0, roundtrip_efficiency=0.81, soc_min=0.1))
        m, _ = build(inputs, state=WindowState(0.25))
        assert pyo.value(m.battery_energy_capacity) == 20.0
        assert pyo.value(m.bes_eff_c) == pytest.approx(0.9)
        assert pyo.value(m.bes_initial_soc) == 0.25
        assert pyo.value(m.battery_soc_terminal.lower) == pytest.approx(5.0)
        assert not hasattr(m, "battery_discharge_export")
        assert not hasattr(m, "battery_nonimport")

    def test_soc_dynamics_use_dt(self, make_inputs):
        """Charging 4 kW for a quarter hour adds 1 kWh."""
        inputs = make_inputs(scenario={"interval_length": 15}, storage=storage_spec(5.0, 20.0))
        m, _ = build(inputs, state=WindowState(0.5))
        m.battery_charge[0].set_value(4.0)
        m.battery_discharge[0].set_value(0.0)
        m.battery_soc[0].set_value(11.0)
        constraint = m.battery_soc_dynamics[0]
        assert pyo.value(constraint.body) == pytest.approx(pyo.value(constraint.upper))

    def test_nonimport(self, make_inputs):
        m, _ = build(make_inputs(solar=solar_spec(), storage=storage_spec(nonimport=True)))
        assert len(m.battery_nonimport) == 24

    def test_shift_recovery_windows(self, make_inputs):
        m, _ = build(make_inputs(simple_shift_enabled=True, shift_percent=0.2, shift_duration=4))
        assert len(m.shift_recovery) == 21
        assert m.shift[0].bounds == (-2.0, 2.0)

    def test_shed_cost(self, make_inputs):
        m, _ = build(make_inputs(demand=4.0, shed_enabled=True, value_of_lost_load=10.0))
        for t in m.T:
            m.shed[t].set_value(1.0 if t == 0 else 0.0)
        assert pyo.value(m.cost_shed) == pytest.approx(10.0)
        assert m.shed[0].bounds == (0, 4.0)


class TestExports:
    """Net metering revenue and export linkages."""

    def test_solar_exports(self, make_inputs):
        m, _ = build(make_inputs(tariff=NEM_TARIFF, solar=solar_spec(), storage=storage_spec()))
        assert hasattr(m, "solar_export")
        assert not hasattr(m, "battery_discharge_export")  # storage is non-export by default
        assert pyo.value(m.nem_price[12]) == pytest.approx(0.18)
        for t in m.T:
            m.solar_export[t].set_value(1.0)
        assert pyo.value(m.cost_nem) == pytest.approx(-24 * 0.18)

    def test_storage_exports(self, make_inputs):
        m, _ = build(make_inputs(tariff=NEM_TARIFF, storage=storage_spec(nonexport=False)))
        assert hasattr(m, "battery_discharge_export")
        assert not hasattr(m, "solar_export")

    def test_nonexport_solar(self, make_inputs):
        m, _ = build(make_inputs(tariff=NEM_TARIFF, solar=solar_spec(nonexport=True)))
        assert not hasattr(m, "cost_nem")
        assert not hasattr(m, "export_eligible")

    def test_relaxed_linkage(self, make_inputs):
        m, _ = build(make_inputs(tariff=NEM_TARIFF, solar=solar_spec()))
        assert not m.export_eligible[0].is_binary()
        assert m.export_eligible[0].bounds == (0, 1)

    def test_binary_linkage(self, make_inputs):
        inputs = make_inputs(
            tariff=NEM_TARIFF,
            solar=solar_spec(),
            scenario={"binary_net_demand_and_exports_linkage": True},
        )
        m, _ = build(inputs)
        assert m.export_eligible[0].is_binary()

    def test_builder_overrides_scenario_flag(self, make_inputs):
        m, _ = build(make_inputs(tariff=NEM_TARIFF, solar=solar_spec()), binary_net_demand_linkage=True)
        assert m.export_eligible[0].is_binary()

    def test_export_cap_from_capacity(self, make_inputs):
        """Exports are capped by peak PV output in the window."""
        inputs = make_inputs(tariff=NEM_TARIFF, solar=solar_spec(10.0), storage=storage_spec(nonexport=False))
        _, sets = build(inputs)
        assert export_bound(sets, inputs) == pytest.approx(8.0 + 5.0)
        assert net_demand_bound(sets, inputs) == pytest.approx(10.0 + 5.0)

    def test_accumulator_rejects_exports_when_disabled(self):
        acc = NetDemandAccumulator([1.0, 2.0], exports_enabled=False)
        with pytest.raises(ValueError):
            acc.add_export(object())


class TestTiersAndCapital:
    """Tiered energy and capacity expansion components."""

    def test_tier_balance(self, make_inputs):
        bands = [
            {"lower_bound": 0, "upper_bound": 310, "price": 0.0},
            {"lower_bound": 310, "upper_bound": None, "price": 0.05},
        ]
        m, _ = build(make_inputs(tariff=flat_tariff(energy_tiered_rates={"base": bands})))
        assert list(m.TIER_MONTHS) == [1]
        assert len(m.TIERS) == 2
        assert m.tier_energy[0].ub == pytest.approx(10.0)
        assert m.tier_energy[1].ub is None
        assert hasattr(m, "cost_tiered")

    def test_capacity_expansion(self, make_inputs):
        inputs = make_inputs(
            tariff=NEM_TARIFF,
            scenario=CEM,
            solar=solar_spec(lifespan=25, capital_cost=1000.0, maximum_power_capacity=50.0),
            storage=storage_spec(lifespan=10, duration=4.0, maximum_power_capacity=20.0),
        )
        m, _ = build(inputs)
        assert isinstance(m.solar_capacity, pyo.Var)
        assert isinstance(m.battery_power_capacity, pyo.Var)
        assert hasattr(m, "pv_capacity_linkage")
        assert hasattr(m, "cost_capital")
        assert hasattr(m, "cost_itc")

    def test_unbuilt_pv_makes_exports_ineligible(self, make_inputs):
        inputs = make_inputs(
            tariff=NEM_TARIFF,
            scenario={**CEM, "binary_pv_capacity_and_exports_linkage": True, "minimum_pv_capacity": 0.5},
            solar=solar_spec(lifespan=25, maximum_power_capacity=50.0),
        )
        m, _ = build(inputs)
        m.solar_capacity.set_value(0.0)
        m.pv_export_ineligible.set_value(0)
        assert m.pv_capacity_qualifies.slack() == pytest.approx(-0.5)
        m.pv_export_ineligible.set_value(1)
        assert m.pv_capacity_qualifies.slack() >= 0
        m.solar_capacity.set_value(2.0)
        m.pv_export_ineligible.set_value(0)
        assert m.pv_capacity_qualifies.slack() >= 0
        assert m.pv_capacity_linkage.slack() >= 0

    def test_capacity_expansion_big_m_warning(self, make_inputs, caplog):
        caplog.set_level(logging.WARNING, logger="derive")
        inputs = make_inputs(tariff=NEM_TARIFF, scenario=CEM, solar=solar_spec(lifespan=25))
        m, _ = build(inputs)
        assert "No upper bound known for solar capacity" in caplog.text
        assert hasattr(m, "pv_export_ineligible")

    def test_capital_costs_value(self, make_inputs):
        inputs = make_inputs(
            scenario={**CEM, "amortization_period": 10},
            solar=solar_spec(capital_cost=1000.0, fixed_om_cost=20.0, investment_tax_credit=0.3),
        )
        m, _ = build(inputs)
        m.solar_capacity.set_value(5.0)
        assert pyo.value(m.cost_capital) == pytest.approx((100.0 + 20.0) * 5.0)
        assert pyo.value(m.cost_itc) == pytest.approx(-0.3 * 100.0 * 5.0)


class TestCapitalRecovery:
    """Test annualization of capital cost."""

    def test_straight_line(self):
        assert capital_recovery_factor(ScenarioSpec(), 20) == pytest.approx(0.05)

    def test_real_rate(self):
        scenario = ScenarioSpec(real_discount_rate=0.05)
        assert capital_recovery_factor(scenario, 20) == pytest.approx(0.0802426, rel=1e-5)

    def test_nominal_rate_with_inflation(self):
        nominal = ScenarioSpec(nominal_discount_rate=0.071, inflation_rate=0.02)
        real = ScenarioSpec(real_discount_rate=0.05)
        assert capital_recovery_factor(nominal, 20) == pytest.approx(capital_recovery_factor(real, 20))

    def test_amortization_period_wins(self):
        scenario = ScenarioSpec(amortization_period=10)
        assert capital_recovery_factor(scenario, 30) == pytest.approx(0.1)

"""
Unit tests for window partitioning and state carried between windows.
"""

from datetime import date

import numpy as np
import pytest

from conftest import flat_tariff, solar_spec, storage_spec
from derive.config import Horizon
from derive.errors import ConfigurationError
from derive.simulation import HorizonPartitioner, WindowState, carry_state, iter_windows
from derive.tariffs import compile_rate_profiles

TIER_BANDS = [
    {"lower_bound": 0, "upper_bound": 310, "price": 0.0},
    {"lower_bound": 310, "upper_bound": None, "price": 0.05},
]


def partitioner(inputs):
    return HorizonPartitioner(inputs, compile_rate_profiles(inputs.tariff, inputs.scenario))


class TestWindows:
    """Test window boundaries per horizon."""

    def test_day_count(self):
        windows = list(iter_windows(Horizon.DAY, date(2023, 1, 1), date(2023, 12, 31)))
        assert len(windows) == 365
        assert windows[0] == (date(2023, 1, 1), date(2023, 1, 1))

    def test_month_count(self):
        windows = list(iter_windows(Horizon.MONTH, date(2023, 1, 1), date(2023, 12, 31)))
        assert len(windows) == 12
        assert windows[1] == (date(2023, 2, 1), date(2023, 2, 28))

    def test_year(self):
        assert list(iter_windows(Horizon.YEAR, date(2023, 1, 1), date(2023, 12, 31))) == [
            (date(2023, 1, 1), date(2023, 12, 31))
        ]

    def test_partial_months(self):
        """A range crossing a month boundary is cut at the boundary."""
        assert list(iter_windows(Horizon.MONTH, date(2023, 1, 30), date(2023, 2, 2))) == [
            (date(2023, 1, 30), date(2023, 1, 31)),
            (date(2023, 2, 1), date(2023, 2, 2)),
        ]


class TestPartition:
    """Test slicing of series into window snapshots."""

    def test_day_window(self, make_inputs):
        inputs = make_inputs(
            demand=np.arange(8760, dtype=float),
            tariff=flat_tariff(monthly_maximum_demand_rates={"base": 31.0}),
            solar=solar_spec(),
        )
        sets = partitioner(inputs).partition(date(2023, 1, 2), date(2023, 1, 2), WindowState(0.5))
        assert sets.num_time_steps == 24
        assert sets.demand[0] == 24.0
        assert sets.solar_capacity_factor[12] == pytest.approx(0.5)
        assert sets.bes_initial_soc == 0.5
        (period,) = sets.demand_periods
        assert period.name == "monthly_maximum_1"
        assert period.rate == pytest.approx(1.0)  # 31 $/kW over 31 days
        assert period.mask.sum() == 24

    def test_month_window(self, make_inputs):
        inputs = make_inputs(
            tariff=flat_tariff(monthly_maximum_demand_rates={"base": 28.0}),
            scenario={"optimization_horizon": "MONTH"},
        )
        sets = partitioner(inputs).partition(date(2023, 2, 1), date(2023, 2, 28), WindowState(0.0))
        assert sets.num_time_steps == 672
        assert sets.demand_periods[0].rate == 28.0
        assert sets.demand_periods[0].prior_peak == 0.0

    def test_quarter_hour_window(self, make_inputs):
        inputs = make_inputs(scenario={"interval_length": 15})
        sets = partitioner(inputs).partition(date(2023, 3, 1), date(2023, 3, 1), WindowState(0.0))
        assert sets.num_time_steps == 96
        assert sets.steps_per_hour == 4

    def test_prior_peak_same_month(self, make_inputs):
        inputs = make_inputs(tariff=flat_tariff(monthly_maximum_demand_rates={"base": 10.0}))
        state = WindowState(0.5, {"monthly_maximum_1": 12.0}, month=1)
        sets = partitioner(inputs).partition(date(2023, 1, 5), date(2023, 1, 5), state)
        assert sets.demand_periods[0].prior_peak == 12.0

    def test_prior_peak_dropped_on_new_month(self, make_inputs):
        inputs = make_inputs(tariff=flat_tariff(monthly_maximum_demand_rates={"base": 10.0}))
        state = WindowState(0.5, {"monthly_maximum_1": 12.0}, month=1)
        sets = partitioner(inputs).partition(date(2023, 2, 1), date(2023, 2, 1), state)
        assert sets.demand_periods[0].name == "monthly_maximum_2"
        assert sets.demand_periods[0].prior_peak == 0.0

    def test_daily_rates_not_spread(self, make_inputs):
        peak = [{"start": 16, "end": 21, "rate": 3.0, "label": "peak"}]
        inputs = make_inputs(tariff=flat_tariff(daily_demand_tou_rates={"base": peak}))
        sets = partitioner(inputs).partition(date(2023, 1, 3), date(2023, 1, 3), WindowState(0.0))
        (period,) = sets.demand_periods
        assert period.name == "daily_peak_1-3"
        assert period.rate == 3.0

    def test_shift_percent_envelope(self, make_inputs):
        inputs = make_inputs(demand=8.0, simple_shift_enabled=True, shift_percent=0.25)
        sets = partitioner(inputs).partition(date(2023, 1, 1), date(2023, 1, 1), WindowState(0.0))
        assert np.allclose(sets.shift_up, 2.0)
        assert np.allclose(sets.shift_down, 2.0)

    def test_outside_year(self, make_inputs):
        with pytest.raises(ConfigurationError):
            partitioner(make_inputs()).partition(date(2024, 1, 1), date(2024, 1, 1), WindowState(0.0))


class TestTierBounds:
    """Tier bounds follow the window basis."""

    def test_monthly_baseline_per_day(self, make_inputs):
        inputs = make_inputs(tariff=flat_tariff(energy_tiered_rates={"base": TIER_BANDS}))
        sets = partitioner(inputs).partition(date(2023, 1, 10), date(2023, 1, 10), WindowState(0.0))
        first, second = sets.tiers
        assert first.upper == pytest.approx(10.0)
        assert first.width == pytest.approx(10.0)
        assert second.lower == pytest.approx(10.0)
        assert second.width is None
        assert len(first.steps) == 24

    def test_daily_baseline_per_month(self, make_inputs):
        bands = [
            {"lower_bound": 0, "upper_bound": 10, "price": 0.0},
            {"lower_bound": 10, "upper_bound": None, "price": 0.05},
        ]
        inputs = make_inputs(
            tariff=flat_tariff(energy_tiered_rates={"base": bands}, energy_tiered_baseline_type="daily"),
            scenario={"optimization_horizon": "MONTH"},
        )
        sets = partitioner(inputs).partition(date(2023, 4, 1), date(2023, 4, 30), WindowState(0.0))
        assert sets.tiers[0].upper == pytest.approx(300.0)

    def test_monthly_baseline_per_month(self, make_inputs):
        inputs = make_inputs(
            tariff=flat_tariff(energy_tiered_rates={"base": TIER_BANDS}),
            scenario={"optimization_horizon": "MONTH"},
        )
        sets = partitioner(inputs).partition(date(2023, 4, 1), date(2023, 4, 30), WindowState(0.0))
        assert sets.tiers[0].upper == pytest.approx(310.0)


class TestCarryState:
    """Test month-to-date peak and SOC threading."""

    def day(self, inputs, day, state):
        return partitioner(inputs).partition(day, day, state)

    def test_peaks_accumulate_within_month(self, make_inputs):
        inputs = make_inputs(tariff=flat_tariff(monthly_maximum_demand_rates={"base": 10.0}), storage=storage_spec())
        state = WindowState(0.5)
        sets = self.day(inputs, date(2023, 1, 1), state)
        state = carry_state(state, sets, np.full(24, 15.0), 0.4)
        assert state.monthly_peak_demand == {"monthly_maximum_1": 15.0}
        assert state.bes_soc_fraction == 0.4
        assert state.month == 1

        sets = self.day(inputs, date(2023, 1, 2), state)
        assert sets.demand_periods[0].prior_peak == 15.0
        state = carry_state(state, sets, np.full(24, 9.0), 0.6)
        assert state.monthly_peak_demand["monthly_maximum_1"] == 15.0

    def test_peaks_reset_on_new_month(self, make_inputs):
        inputs = make_inputs(tariff=flat_tariff(monthly_maximum_demand_rates={"base": 10.0}))
        state = WindowState(0.5, {"monthly_maximum_1": 30.0}, month=1)
        sets = self.day(inputs, date(2023, 2, 1), state)
        state = carry_state(state, sets, np.full(24, 5.0), 0.5)
        assert state.monthly_peak_demand == {"monthly_maximum_2": 5.0}
        assert state.month == 2

    def test_daily_periods_not_carried(self, make_inputs):
        peak = [{"start": 16, "end": 21, "rate": 3.0, "label": "peak"}]
        inputs = make_inputs(tariff=flat_tariff(daily_demand_tou_rates={"base": peak}))
        state = WindowState(0.0)
        sets = self.day(inputs, date(2023, 1, 3), state)
        assert carry_state(state, sets, np.full(24, 5.0), 0.0).monthly_peak_demand == {}

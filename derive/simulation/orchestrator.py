"""
Horizon Orchestrator
====================

Rolling simulation over DAY, MONTH or YEAR windows. Each window runs
partition -> build -> solve -> extract -> advance; the battery state of
charge and, under DAY windows, the month-to-date peak demand per demand
charge period are threaded into the next window.

A window that does not solve stops the run. The SolveError raised
carries every window solved before it.
"""

from __future__ import annotations

import calendar
import logging
from datetime import date, timedelta
from typing import Iterator, Optional, Tuple

from ..config.models import Horizon, SimulationInputs
from ..errors import ConfigurationError, SolveError
from ..optimization.model import ModelBuilder
from ..optimization.results import SimulationResults, extract_window_result
from ..optimization.solver import get_solver, solve_model
from ..postprocess.bill import calculate_electricity_bill
from ..postprocess.investment import calculate_investment_costs
from ..tariffs.compiler import CompiledRates, compile_rate_profiles
from .sets import HorizonPartitioner, WindowState, carry_state

logger = logging.getLogger(__name__)


def iter_windows(horizon: Horizon, start: date, end: date) -> Iterator[Tuple[date, date]]:
    """(first day, last day) of each window between ``start`` and ``end`` inclusive."""
    if horizon == Horizon.YEAR:
        yield start, end
        return

    current = start
    while current <= end:
        if horizon == Horizon.DAY:
            last = current
        else:
            month_end = date(current.year, current.month, calendar.monthrange(current.year, current.month)[1])
            last = min(month_end, end)
        yield current, last
        current = last + timedelta(days=1)


class HorizonOrchestrator:
    """
    Drives the window loop for one set of inputs.

    The tariff is compiled once on construction and shared read-only by
    every window.
    """

    def __init__(self, inputs: SimulationInputs, compiled: Optional[CompiledRates] = None):
        self.inputs = inputs
        self.compiled = compiled or compile_rate_profiles(inputs.tariff, inputs.scenario)
        self.partitioner = HorizonPartitioner(inputs, self.compiled)
        self.builder = ModelBuilder(inputs)

    def run(self, start_date: Optional[date] = None, end_date: Optional[date] = None) -> SimulationResults:
        """
        Simulate ``[start_date, end_date]`` (defaults to the whole scenario year).

        Raises:
            SolveError: a window did not reach an optimal or feasible solution
        """
        scenario = self.inputs.scenario
        year = scenario.year
        start = start_date or date(year, 1, 1)
        end = end_date or date(year, 12, 31)
        if start > end or start.year != year or end.year != year:
            raise ConfigurationError(f"Simulation range {start}..{end} must lie within {year}.")

        results = SimulationResults()
        try:
            backend, solver = get_solver(scenario.optimization_solver)
        except SolveError as exc:
            exc.partial_results = results
            raise

        state = WindowState(bes_soc_fraction=float(self.inputs.storage.soc_initial))
        horizon = scenario.optimization_horizon
        for window_start, window_end in iter_windows(horizon, start, end):
            sets = self.partitioner.partition(window_start, window_end, state)
            m = self.builder.build(sets)
            outcome = solve_model(m, solver, scenario.solver_options)

            if not outcome.status.is_success:
                self._finalize(results)
                raise SolveError(
                    f"Window {window_start}..{window_end} did not solve with {backend.value}: "
                    f"{outcome.status.value} {outcome.message}".strip(),
                    status=outcome.status,
                    window=(window_start, window_end),
                    partial_results=results,
                )

            window = extract_window_result(m, sets, outcome)
            results.windows.append(window)
            log = logger.debug if horizon == Horizon.DAY else logger.info
            log("Solved %s..%s: objective %.2f", window_start, window_end, window.objective_value)

            state = carry_state(
                state,
                sets,
                window.time_series["net_demand"].to_numpy(dtype=float),
                window.final_soc_fraction,
            )

        self._finalize(results)
        return results

    def _finalize(self, results: SimulationResults) -> None:
        if not results.windows:
            return
        results.electricity_bill = calculate_electricity_bill(
            results.time_series, self.inputs.tariff, self.compiled
        )
        if self.inputs.scenario.is_capacity_expansion:
            results.investment_costs = calculate_investment_costs(self.inputs, results.capacities)


def run_simulation(
    inputs: SimulationInputs,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> SimulationResults:
    return HorizonOrchestrator(inputs).run(start_date, end_date)

"""
Solver Backends
===============

Interchangeable LP/MILP backends reached through Pyomo's SolverFactory.
The requested backend is tried first, then the remaining ones in a fixed
order. Solver options are passed through untouched.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import pyomo.environ as pyo
from pyomo.opt import SolverFactory, SolverStatus, TerminationCondition

from ..errors import SolveError

logger = logging.getLogger(__name__)


class SolverBackend(str, Enum):
    HIGHS = "highs"
    GLPK = "glpk"
    CBC = "cbc"
    GUROBI = "gurobi"
    CPLEX = "cplex"

    @property
    def pyomo_name(self) -> str:
        return {"highs": "appsi_highs"}.get(self.value, self.value)


FALLBACK_ORDER = [
    SolverBackend.HIGHS,
    SolverBackend.GLPK,
    SolverBackend.CBC,
    SolverBackend.GUROBI,
    SolverBackend.CPLEX,
]


class SolveStatus(str, Enum):
    OPTIMAL = "optimal"
    FEASIBLE = "feasible"
    INFEASIBLE = "infeasible"
    UNBOUNDED = "unbounded"
    ERROR = "error"

    @property
    def is_success(self) -> bool:
        return self in (SolveStatus.OPTIMAL, SolveStatus.FEASIBLE)


@dataclass
class SolveResult:
    """Outcome of one solver call. Variable values live on the model."""
    status: SolveStatus
    objective_value: Optional[float]
    solve_time_sec: float
    termination_condition: str = ""
    message: str = ""


def _open(backend: SolverBackend):
    try:
        solver = SolverFactory(backend.pyomo_name)
        if solver is not None and solver.available(exception_flag=False):
            return solver
    except Exception as exc:
        logger.debug("Solver %s unavailable: %s", backend.value, exc)
    return None


def available_backends() -> List[SolverBackend]:
    return [b for b in FALLBACK_ORDER if _open(b) is not None]


def get_solver(backend: Any = SolverBackend.HIGHS) -> Tuple[SolverBackend, Any]:
    """
    Open the requested backend, falling back to any other installed one.

    Raises:
        SolveError: no backend is installed
    """
    requested = SolverBackend(backend)
    for candidate in [requested] + [b for b in FALLBACK_ORDER if b != requested]:
        solver = _open(candidate)
        if solver is None:
            continue
        if candidate != requested:
            logger.warning("Solver %s not available, using %s", requested.value, candidate.value)
        else:
            logger.info("Using solver: %s", candidate.value)
        return candidate, solver

    raise SolveError(
        "No LP/MILP solver found. Install one of:\n"
        "  - pip install highspy\n"
        "  - conda install -c conda-forge glpk\n"
        "  - conda install -c conda-forge coincbc",
        status=SolveStatus.ERROR,
    )


def _classify(result) -> SolveStatus:
    tc = result.solver.termination_condition
    if tc == TerminationCondition.optimal:
        return SolveStatus.OPTIMAL
    if tc == TerminationCondition.feasible:
        return SolveStatus.FEASIBLE
    if tc in (TerminationCondition.infeasible, TerminationCondition.infeasibleOrUnbounded):
        return SolveStatus.INFEASIBLE
    if tc == TerminationCondition.unbounded:
        return SolveStatus.UNBOUNDED
    if result.solver.status == SolverStatus.ok and tc == TerminationCondition.maxTimeLimit:
        # time limit reached with an incumbent
        return SolveStatus.FEASIBLE if len(result.solution) > 0 else SolveStatus.ERROR
    return SolveStatus.ERROR


def solve_model(
    m: pyo.ConcreteModel,
    solver: Any,
    options: Optional[Dict[str, Any]] = None,
) -> SolveResult:
    """
    Solve a built model and load its solution in place.

    Backend exceptions are reported as an ERROR result, never raised.
    """
    if options and hasattr(solver, "options"):
        for key, value in options.items():
            solver.options[key] = value

    start_time = time.time()
    try:
        result = solver.solve(m, tee=False, load_solutions=False)
    except Exception as exc:
        return SolveResult(
            status=SolveStatus.ERROR,
            objective_value=None,
            solve_time_sec=time.time() - start_time,
            message=f"Error: {exc}",
        )
    solve_time = time.time() - start_time

    status = _classify(result)
    objective = None
    if status.is_success:
        m.solutions.load_from(result)
        objective = pyo.value(m.objective)

    return SolveResult(
        status=status,
        objective_value=objective,
        solve_time_sec=solve_time,
        termination_condition=str(result.solver.termination_condition),
        message=str(getattr(result.solver, "message", None) or ""),
    )

"""
Sensitivity Sweeps
==================

Runs independent copies of a simulation with one input field varied.
Variations share nothing, so they are mapped over a process pool and
merged by key ``"<target>_<parameter>_<value>"``.
"""

from __future__ import annotations

import logging
from concurrent.futures import ProcessPoolExecutor
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from ..config.models import SimulationInputs
from ..errors import ConfigurationError, SolveError
from ..optimization.results import SimulationResults
from .orchestrator import HorizonOrchestrator

logger = logging.getLogger(__name__)

SWEEP_TARGETS = ("scenario", "tariff", "demand", "solar", "storage")


def update_inputs(inputs: SimulationInputs, target: str, parameter: str, value: Any) -> SimulationInputs:
    """
    Copy ``inputs`` with ``target.parameter`` replaced and re-validated.

    Raises:
        ConfigurationError: unknown target or field, or the new value is invalid
    """
    if target not in SWEEP_TARGETS:
        raise ConfigurationError(f"Unknown sweep target '{target}'; expected one of {SWEEP_TARGETS}.")
    record = getattr(inputs, target)
    if parameter not in type(record).model_fields:
        raise ConfigurationError(f"{type(record).__name__} has no field '{parameter}'.")

    raw = record.model_dump()
    raw[parameter] = value
    try:
        updated = type(record).model_validate(raw)
        fields = {name: getattr(inputs, name) for name in SWEEP_TARGETS}
        fields[target] = updated
        return SimulationInputs.model_validate(fields)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid value {value!r} for {target}.{parameter}:\n{exc}") from exc


def sweep_key(target: str, parameter: str, value: Any) -> str:
    return f"{target}_{parameter}_{value}"


def _run_variation(
    key: str,
    inputs: SimulationInputs,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> Tuple[str, SimulationResults, Optional[str]]:
    try:
        return key, HorizonOrchestrator(inputs).run(start_date, end_date), None
    except SolveError as exc:
        return key, exc.partial_results or SimulationResults(), str(exc)


def run_sensitivity(
    inputs: SimulationInputs,
    target: str,
    parameter: str,
    values: Iterable[Any],
    max_workers: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> Dict[str, SimulationResults]:
    """
    Simulate every value of ``target.parameter``.

    Args:
        inputs: Base inputs, never modified
        target: Record to vary (scenario, tariff, demand, solar, storage)
        parameter: Field of that record
        values: Values to simulate
        max_workers: Process pool size; 1 runs in this process
        start_date, end_date: Simulated range, defaults to the scenario year

    Returns:
        Results keyed by ``"<target>_<parameter>_<value>"``. A variation
        that failed to solve holds its partial results.
    """
    jobs: List[Tuple[str, SimulationInputs]] = [
        (sweep_key(target, parameter, value), update_inputs(inputs, target, parameter, value))
        for value in values
    ]
    logger.info("Sensitivity sweep over %s.%s: %d variations", target, parameter, len(jobs))

    if max_workers == 1:
        outcomes = [_run_variation(key, variation, start_date, end_date) for key, variation in jobs]
    else:
        with ProcessPoolExecutor(max_workers=max_workers) as pool:
            futures = [
                pool.submit(_run_variation, key, variation, start_date, end_date)
                for key, variation in jobs
            ]
            outcomes = [future.result() for future in futures]

    merged: Dict[str, SimulationResults] = {}
    for key, result, error in outcomes:
        if error is not None:
            logger.error("Variation %s failed: %s", key, error)
        merged[key] = result
    return merged

"""
Input Loading
=============

Validating factory for SimulationInputs. Defaults and validation happen
in one pass; every optional parameter left out is reported once with
the value taken.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping

from pydantic import BaseModel, ValidationError

from ..errors import ConfigurationError
from .models import SimulationInputs

logger = logging.getLogger(__name__)

# Large series are summarized in default notices.
_QUIET_FIELDS = {"demand_profile", "capacity_factor_profile", "values"}


def _report_defaults(record: BaseModel, prefix: str) -> None:
    for name in type(record).model_fields:
        value = getattr(record, name)
        if name not in record.model_fields_set:
            shown = "<series>" if name in _QUIET_FIELDS else value
            if isinstance(value, BaseModel):
                shown = type(value).__name__ + "()"
            logger.info("The %s%s parameter is not defined. Will default to %s.", prefix, name, shown)
        if isinstance(value, BaseModel):
            _report_defaults(value, f"{prefix}{name}.")


def load_inputs(raw: Mapping[str, Any]) -> SimulationInputs:
    """
    Validate a raw mapping into SimulationInputs.

    Raises:
        ConfigurationError: a required field is missing or a value is invalid
    """
    try:
        inputs = SimulationInputs.model_validate(dict(raw))
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid simulation inputs:\n{exc}") from exc
    _report_defaults(inputs, "")
    return inputs


def load_inputs_file(path: str | Path) -> SimulationInputs:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Input JSON not found: {path}")
    data: Dict[str, Any] = json.loads(p.read_text())
    return load_inputs(data)

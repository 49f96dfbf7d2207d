"""
Error Taxonomy
==============

- ConfigurationError: input missing, out of range or contradictory.
  Raised before any model is built.
- CompilationError: a tariff cannot be turned into price series.
- SolveError: a window did not solve. Carries the results gathered
  before the failing window.
"""

from typing import Any, Optional, Tuple


class DeriveError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(DeriveError, ValueError):
    """Invalid or inconsistent input record."""


class CompilationError(DeriveError):
    """Tariff rate tables could not be compiled into time series."""


class SolveError(DeriveError):
    """
    Solver returned a non-success status for an optimization window.

    Attributes:
        status: Solve status reported for the failing window
        window: (start, end) dates of the failing window, if known
        partial_results: Results of every window solved before the failure
    """

    def __init__(
        self,
        message: str,
        status: Any = None,
        window: Optional[Tuple[Any, Any]] = None,
        partial_results: Any = None,
    ):
        super().__init__(message)
        self.status = status
        self.window = window
        self.partial_results = partial_results

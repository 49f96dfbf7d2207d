"""Asset input specs and profile preparation."""

from .demand import DemandSpec
from .profiles import resample_profile, steps_per_year, year_index
from .solar import SolarSpec
from .storage import StorageSpec

__all__ = [
    "DemandSpec",
    "SolarSpec",
    "StorageSpec",
    "resample_profile",
    "steps_per_year",
    "year_index",
]

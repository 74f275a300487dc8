"""Workflow contracts - fail-fast enforcement of stage invariants.

This package enforces semantic guarantees between workflow stages.
Contracts fail immediately and loudly when a stage doesn't produce
its promised invariants.

Key principle:
- Pydantic validates config correctness
- Contracts validate workflow correctness
- Models handle science edge cases
"""

from ecomod.contracts.failure import ContractViolation
from ecomod.contracts.base import require
from ecomod.contracts.tabular import assert_training_table, assert_fold_assignment, assert_cv_scores
from ecomod.contracts.raster import assert_raster_cube, assert_cluster_map
from ecomod.contracts.phenology import assert_temperature_series, assert_transition_dates

__all__ = [
    "ContractViolation",
    "require",
    "assert_training_table",
    "assert_fold_assignment",
    "assert_cv_scores",
    "assert_raster_cube",
    "assert_cluster_map",
    "assert_temperature_series",
    "assert_transition_dates",
]

"""Pipeline modules.

- orchestrator: Runs the configured workflows
- processor: One processor per workflow (load → fit → score → persist → plot)
- result_store: SQLite result tables tagged by run
"""

from ecomod.pipeline.orchestrator import WorkflowOrchestrator
from ecomod.pipeline.processor import SpatialCVProcessor, LandCoverProcessor, PhenologyProcessor
from ecomod.pipeline.result_store import ResultStore, new_run_id

__all__ = [
    "WorkflowOrchestrator",
    "SpatialCVProcessor",
    "LandCoverProcessor",
    "PhenologyProcessor",
    "ResultStore",
    "new_run_id",
]

"""Workflow orchestration.

Configures logging, resolves every workflow input to a local file
(downloading URLs), runs the configured workflows in order and closes the
result database.
"""

import time
import logging
from pathlib import Path
from typing import Dict, Optional, TYPE_CHECKING

import requests

from ecomod.contracts import ContractViolation
from ecomod.data.downloader import DatasetDownloader
from ecomod.pipeline.processor import SpatialCVProcessor, LandCoverProcessor, PhenologyProcessor
from ecomod.pipeline.result_store import ResultStore, new_run_id
from ecomod.visualization.plotter import WorkflowPlotter

if TYPE_CHECKING:
    from ecomod.schemas import InternalConfig

__all__ = ['WorkflowOrchestrator']

logger = logging.getLogger(__name__)


class WorkflowOrchestrator:
    """Runs the configured ecological workflows.

    This is the main entry point for running ``ecomod``. Workflows run
    sequentially in the order given by `config.workflows`:

    1. **spatial_cv**: random / spatial / environmental cross-validation of
       a random-forest leaf nitrogen model
    2. **landcover**: k-means clustering and supervised classification of a
       satellite raster cube
    3. **phenology**: growing-degree-day model calibrated against PhenoCam
       spring transition dates

    **Inputs:**

    Sources in `config.data` may be URLs or local paths. URLs are
    downloaded once into `output_dirs["downloads"]`. When the phenology
    sources are unset, Daymet and PhenoCam URLs are built from the
    configured site, coordinates and years.

    **Failure:**

    There is no recovery. A contract violation or library error stops the
    run and is re-raised after logging; results of workflows that already
    finished stay in the result database.

    **Logging:**

    All output goes to both console and log file
    (logs/ecomod_{run_id}.log). Log level from `config.logging.level`.

    Example usage::

        config = resolve_config(ParamConfig(), user_cfg, cli_cfg)
        output_dirs = setup_output_directories(config.base_dir)

        orch = WorkflowOrchestrator(config, output_dirs)
        results = orch.run()
        results["phenology"]["calibration"].par
    """

    def __init__(self, config: "InternalConfig", output_dirs: Dict[str, Path],
                 session: Optional[requests.Session] = None):
        """Initialize orchestrator.

        Parameters
        ----------
        config : InternalConfig
            Fully validated runtime configuration.
        output_dirs : dict
            Output directory paths (from setup_output_directories):
            downloads, results, plots, logs.
        session : requests.Session, optional
            HTTP session passed to the downloader. Allows injection for
            testing.
        """
        self.config = config
        self.output_dirs = {k: Path(v) for k, v in output_dirs.items()}
        self.run_id = config.run_id or new_run_id()
        self.downloader = DatasetDownloader(config, self.output_dirs["downloads"], session=session)
        self.store = None
        self.log_path = None

    def _setup_logging(self):
        """Configure root logger with file and console handlers."""
        log_level = getattr(logging, self.config.logging.level)

        log_dir = self.output_dirs["logs"]
        log_dir.mkdir(parents=True, exist_ok=True)
        self.log_path = log_dir / f"ecomod_{self.run_id}.log"

        formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        # Clear existing handlers and add new ones
        root = logging.getLogger()
        root.setLevel(log_level)
        for handler in root.handlers[:]:
            root.removeHandler(handler)
            handler.close()

        fh = logging.FileHandler(self.log_path)
        fh.setLevel(log_level)
        fh.setFormatter(formatter)
        root.addHandler(fh)

        ch = logging.StreamHandler()
        ch.setLevel(log_level)
        ch.setFormatter(formatter)
        root.addHandler(ch)

        logger.info("Logging: level=%s, file=%s", self.config.logging.level, self.log_path)

    # ------------------------------------------------------------------
    # Input resolution
    # ------------------------------------------------------------------

    def _spatial_cv_inputs(self) -> dict:
        source = self.config.data.leaf_nitrogen_source
        if not source:
            raise ValueError("spatial_cv workflow needs data.leaf_nitrogen_source")
        return {"table_path": self.downloader.fetch(source)}

    def _landcover_inputs(self) -> dict:
        data = self.config.data
        if not data.raster_sources:
            raise ValueError("landcover workflow needs at least one entry in data.raster_sources")
        reference = data.lulc_reference_source
        return {
            "raster_paths": [self.downloader.fetch(s) for s in data.raster_sources],
            "reference_path": self.downloader.fetch(reference) if reference else None,
        }

    def _phenology_inputs(self) -> dict:
        data = self.config.data
        cfg = self.config.phenology
        prefix = f"{cfg.site}_{cfg.veg_type}_{cfg.roi_id:04d}"

        if data.temperature_source:
            temperature = self.downloader.fetch(data.temperature_source)
        else:
            url = DatasetDownloader.daymet_url(cfg.latitude, cfg.longitude, cfg.start_year, cfg.end_year)
            temperature = self.downloader.fetch(
                url, filename=f"{cfg.site}_daymet_{cfg.start_year}_{cfg.end_year}.csv")

        if data.transition_source:
            return {"temperature_path": temperature,
                    "transition_path": self.downloader.fetch(data.transition_source)}
        if data.gcc_source:
            return {"temperature_path": temperature,
                    "gcc_path": self.downloader.fetch(data.gcc_source)}

        url = DatasetDownloader.phenocam_transition_url(cfg.site, cfg.veg_type, cfg.roi_id)
        return {"temperature_path": temperature,
                "transition_path": self.downloader.fetch(url, filename=f"{prefix}_transitions.csv")}

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _make_processor(self, workflow: str, plotter: WorkflowPlotter):
        processors = {
            "spatial_cv": SpatialCVProcessor,
            "landcover": LandCoverProcessor,
            "phenology": PhenologyProcessor,
        }
        return processors[workflow](self.config, self.output_dirs, self.store, plotter)

    def run(self) -> dict:
        """Run all configured workflows.

        Returns
        -------
        dict
            `{workflow: result}` where each result is the dict returned by
            the workflow's processor.

        Raises
        ------
        ContractViolation
            If a stage breaks its invariants.
        ValueError
            If a workflow's inputs are not configured.
        """
        self._setup_logging()

        logger.info("=" * 60)
        logger.info("Starting ecomod run %s: %s", self.run_id, ", ".join(self.config.workflows))
        logger.info("=" * 60)

        start = time.time()
        db_path = self.output_dirs["results"] / self.config.output.results_db_name
        self.store = ResultStore(db_path, run_id=self.run_id)
        plotter = WorkflowPlotter(self.config) if self.config.visualization.enabled else None

        resolvers = {
            "spatial_cv": self._spatial_cv_inputs,
            "landcover": self._landcover_inputs,
            "phenology": self._phenology_inputs,
        }

        results = {}
        try:
            for workflow in self.config.workflows:
                logger.info("Running %s...", workflow)
                t0 = time.time()
                try:
                    inputs = resolvers[workflow]()
                    results[workflow] = self._make_processor(workflow, plotter).run(**inputs)
                except ContractViolation as e:
                    logger.critical("CRITICAL: %s contract violated: %s", workflow, e)
                    raise
                except Exception:
                    logger.exception("%s failed", workflow)
                    raise
                logger.info("%s finished in %.1f seconds", workflow, time.time() - t0)
        finally:
            self.store.close()
            logger.info("=" * 60)
            logger.info("Run %s stopped. Runtime: %.1f seconds (%d/%d workflows)",
                        self.run_id, time.time() - start, len(results), len(self.config.workflows))
            logger.info("=" * 60)

        return results

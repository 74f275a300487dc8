"""Workflow processors.

Each processor runs one analysis end to end: load → clean → fit → score →
persist → plot. Stage outputs are checked with the contracts package, so a
broken stage stops the workflow at the boundary where it broke.

Outputs per workflow (under `output_dirs`):

- **results/**: CSV tables, land-cover NetCDF maps
- **results/<results_db_name>**: SQLite tables, one row set per run
- **plots/**: figures (when visualization is enabled)
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Sequence, TYPE_CHECKING

import numpy as np
import pandas as pd
import xarray as xr

from ecomod.contracts import (
    assert_cv_scores,
    assert_raster_cube,
    assert_cluster_map,
    assert_temperature_series,
    assert_transition_dates,
)
from ecomod.data.loader import (
    load_table,
    clean_records,
    read_daymet_csv,
    read_phenocam_transitions,
    read_phenocam_gcc,
)
from ecomod.data.raster import load_raster_cube, reproject_cube
from ecomod.models.spatial_cv import SpatialCrossValidator, summarize_scores
from ecomod.models.landcover import LandCoverClassifier
from ecomod.models.phenology import (
    PhenologyCalibrator,
    predict_transition_dates,
    gcc_transition_dates,
)
from ecomod.pipeline.result_store import ResultStore
from ecomod.visualization.plotter import WorkflowPlotter

if TYPE_CHECKING:
    from ecomod.schemas import InternalConfig

__all__ = ['SpatialCVProcessor', 'LandCoverProcessor', 'PhenologyProcessor']

logger = logging.getLogger(__name__)


class _WorkflowProcessor:
    """Shared output handling for the workflow processors."""

    name = "workflow"

    def __init__(self, config: "InternalConfig", output_dirs: Dict[str, Path],
                 store: ResultStore, plotter: Optional[WorkflowPlotter] = None):
        """
        Parameters
        ----------
        config : InternalConfig
            Fully validated runtime configuration.
        output_dirs : dict
            Output directory paths (from setup_output_directories); the
            `results` and `plots` entries are used.
        store : ResultStore
            Open result database.
        plotter : WorkflowPlotter, optional
            If None, no figures are written.
        """
        self.config = config
        self.output_dirs = {k: Path(v) for k, v in output_dirs.items()}
        self.store = store
        self.plotter = plotter

    def _results_path(self, suffix: str) -> Path:
        results_dir = self.output_dirs["results"]
        results_dir.mkdir(parents=True, exist_ok=True)
        return results_dir / f"{self.name}_{suffix}"

    def _plot_path(self, suffix: str) -> Path:
        return self.output_dirs["plots"] / f"{self.name}_{suffix}"

    def _save_table(self, df: pd.DataFrame, suffix: str, files: dict) -> None:
        """Write `df` as CSV and append it to the result database."""
        path = self._results_path(f"{suffix}.csv")
        df.to_csv(path, index=False)
        self.store.save(f"{self.name}_{suffix}", df)
        files[suffix] = str(path)
        logger.debug(f"Saved {suffix}: {path.name} ({len(df)} rows)")


class SpatialCVProcessor(_WorkflowProcessor):
    """Leaf-nitrogen random-forest model under three CV strategies.

    Example usage::

        processor = SpatialCVProcessor(config, output_dirs, store, plotter)
        result = processor.run("downloads/leafN.csv")
        result["summary"]
    """

    name = "spatial_cv"

    def run(self, table_path: Path | str) -> dict:
        """Cross-validate the model on one CSV table.

        Returns
        -------
        dict
            - `scores`, `predictions`, `summary`, `importance` : pd.DataFrame
            - `files` : dict of written output paths
        """
        cfg = self.config.spatial_cv
        logger.info(f"Spatial CV: {Path(table_path).name}")

        # Step 1: Load and filter missing values
        raw = load_table(table_path)
        coords = [cfg.lon_column, cfg.lat_column]
        required = [cfg.target, *cfg.covariates]
        if "spatial" in cfg.strategies or all(c in raw.columns for c in coords):
            required += coords
        df = clean_records(raw, required)

        # Step 2: Fit and score under each strategy
        validator = SpatialCrossValidator(self.config)
        scores, predictions = validator.evaluate(df)
        assert_cv_scores(scores)
        summary = summarize_scores(scores, predictions)
        importance = validator.feature_importance(df)

        for row in summary.itertuples(index=False):
            logger.info(f"  {row.strategy:>13s}: RMSE={row.rmse_mean:.4f} ± {row.rmse_std:.4f}, "
                        f"R2={row.r2_mean:.3f}")

        # Step 3: Persist
        files = {}
        self._save_table(scores, "scores", files)
        self._save_table(predictions, "predictions", files)
        self._save_table(summary, "summary", files)
        self._save_table(importance, "importance", files)

        # Step 4: Plot
        if self.plotter:
            files["scores_plot"] = self.plotter.plot_cv_scores(
                scores, self._plot_path("scores"), title=f"{cfg.target} cross-validation")
            files["predictions_plot"] = self.plotter.plot_observed_vs_predicted(
                predictions, self._plot_path("observed_vs_predicted"), target=cfg.target)

        return {
            "n_records": len(df),
            "scores": scores,
            "predictions": predictions,
            "summary": summary,
            "importance": importance,
            "files": files,
        }


class LandCoverProcessor(_WorkflowProcessor):
    """K-means clustering and supervised classification of a raster cube.

    The unsupervised step always runs. The supervised step runs when a
    reference table is given.

    Example usage::

        processor = LandCoverProcessor(config, output_dirs, store, plotter)
        result = processor.run(["red.tif", "nir.tif"], "downloads/geowiki.csv")
        result["metrics"]["accuracy"]
    """

    name = "landcover"

    def _save_netcdf(self, maps: dict, cube: xr.Dataset, files: dict) -> None:
        ds = xr.Dataset(maps)
        ds.attrs.update({
            "crs": cube.attrs.get("crs", ""),
            "transform": cube.attrs["transform"],
            "bands": ",".join(str(b) for b in cube["band"].values),
            "description": "Land-cover clusters and classes",
        })
        encoding = {}
        if self.config.output.compression == "zlib":
            encoding = {name: {"zlib": True, "complevel": 4} for name in ds.data_vars}

        path = self._results_path("maps.nc")
        ds.to_netcdf(path, mode='w', engine='netcdf4', format='NETCDF4', encoding=encoding)
        files["maps"] = str(path)
        logger.info(f"Land-cover maps saved: {path.name} [{', '.join(ds.data_vars)}]")

    def run(self, raster_paths: Sequence[Path | str],
            reference_path: Optional[Path | str] = None) -> dict:
        """Cluster (and optionally classify) a raster cube.

        Returns
        -------
        dict
            - `clusters` : xr.DataArray
            - `cluster_sizes` : pd.DataFrame
            - `classes` : xr.DataArray or None
            - `metrics` : dict or None (see LandCoverClassifier.fit)
            - `files` : dict of written output paths
        """
        cfg = self.config.landcover
        nodata = cfg.nodata_label

        # Step 1: Load cube
        cube = load_raster_cube(raster_paths)
        if cfg.target_crs:
            cube = reproject_cube(cube, cfg.target_crs)
        assert_raster_cube(cube)

        # Step 2: Unsupervised clustering
        classifier = LandCoverClassifier(self.config)
        clusters = classifier.cluster(cube)
        assert_cluster_map(clusters, cfg.n_clusters, nodata)

        labels, counts = np.unique(clusters.values[clusters.values != nodata], return_counts=True)
        cluster_sizes = pd.DataFrame({"cluster": labels.astype(int), "n_pixels": counts.astype(int)})
        centers = (classifier.cluster_centers_.reset_index()
                   .melt(id_vars="cluster", var_name="band", value_name="value"))

        files = {}
        maps = {"cluster": clusters}
        self._save_table(cluster_sizes, "cluster_sizes", files)
        self._save_table(centers, "cluster_centers", files)

        # Step 3: Supervised classification
        classes, metrics = None, None
        if reference_path is not None:
            reference = load_table(reference_path)
            training = classifier.prepare_training(reference, cube)
            metrics = classifier.fit(training)
            classes = classifier.predict_map(cube)
            assert_cluster_map(classes, len(classifier.classes_), nodata)
            maps["landcover_class"] = classes

            summary = pd.DataFrame([{
                "classifier": cfg.classifier,
                "accuracy": metrics["accuracy"],
                "kappa": metrics["kappa"],
                "n_train": metrics["n_train"],
                "n_test": metrics["n_test"],
                "n_classes": len(classifier.classes_),
            }])
            confusion = (
                metrics["confusion_matrix"]
                .reset_index()
                .melt(id_vars="observed", var_name="predicted", value_name="count")
            )
            self._save_table(summary, "metrics", files)
            self._save_table(confusion, "confusion", files)

        # Step 4: Persist maps and plot
        if self.config.output.save_netcdf:
            self._save_netcdf(maps, cube, files)

        if self.plotter:
            files["clusters_plot"] = self.plotter.plot_landcover_map(
                clusters, self._plot_path("clusters"))
            if classes is not None:
                files["classes_plot"] = self.plotter.plot_landcover_map(
                    classes, self._plot_path("classes"))

        return {
            "clusters": clusters,
            "cluster_sizes": cluster_sizes,
            "classes": classes,
            "metrics": metrics,
            "files": files,
        }


class PhenologyProcessor(_WorkflowProcessor):
    """Calibrate the GDD spring phenology model for one PhenoCam site.

    Observed dates come from a PhenoCam transition file or, when only the
    GCC time series is available, are derived from it.

    Example usage::

        processor = PhenologyProcessor(config, output_dirs, store, plotter)
        result = processor.run("daymet.csv", transition_path="transitions.csv")
        result["calibration"].par
    """

    name = "phenology"

    def _in_years(self, df: pd.DataFrame) -> pd.DataFrame:
        cfg = self.config.phenology
        return df[df["year"].between(cfg.start_year, cfg.end_year)].reset_index(drop=True)

    def _observed_dates(self, transition_path, gcc_path) -> pd.DataFrame:
        cfg = self.config.phenology
        if transition_path is not None:
            return read_phenocam_transitions(
                transition_path,
                direction="rising",
                gcc_value=cfg.gcc_value,
                threshold=cfg.transition_threshold,
            )
        if gcc_path is not None:
            gcc = read_phenocam_gcc(gcc_path, gcc_value=cfg.gcc_value)
            dates = gcc_transition_dates(
                gcc,
                threshold=cfg.transition_threshold / 100.0,
                smoothing_days=cfg.gcc_smoothing_days,
            )
            return dates[["year", "doy"]]
        raise ValueError("Phenology workflow needs a transition file or a GCC time series")

    def run(self, temperature_path: Path | str,
            transition_path: Optional[Path | str] = None,
            gcc_path: Optional[Path | str] = None) -> dict:
        """Calibrate the model and compare modelled with observed dates.

        Returns
        -------
        dict
            - `calibration` : CalibrationResult
            - `dates` : pd.DataFrame with year, observed, predicted, residual
            - `files` : dict of written output paths
        """
        cfg = self.config.phenology

        # Step 1: Load inputs restricted to the configured years
        temperature = self._in_years(clean_records(read_daymet_csv(temperature_path), ["tmean"]))
        assert_temperature_series(temperature)
        observed = self._in_years(self._observed_dates(transition_path, gcc_path))
        assert_transition_dates(observed)
        logger.info(f"Phenology {cfg.site}: {temperature['year'].nunique()} temperature years, "
                    f"{len(observed)} observed transitions")

        # Step 2: Calibrate
        calibration = PhenologyCalibrator(self.config).calibrate(temperature, observed)
        predicted = predict_transition_dates(temperature, calibration.par)

        dates = (
            observed.rename(columns={"doy": "observed"})
            .merge(predicted.rename(columns={"doy": "predicted"}), on="year", how="left")
            .sort_values("year")
            .reset_index(drop=True)
        )
        dates["residual"] = dates["predicted"] - dates["observed"]

        # Step 3: Persist
        params = pd.DataFrame([{"site": cfg.site, "veg_type": cfg.veg_type, **calibration.as_dict()}])
        files = {}
        self._save_table(params, "parameters", files)
        self._save_table(dates, "dates", files)

        # Step 4: Plot
        if self.plotter:
            files["fit_plot"] = self.plotter.plot_phenology_fit(
                observed, predicted, self._plot_path("fit"),
                title=f"{cfg.site} GDD model (t_base={calibration.t_base:.1f}, "
                      f"gdd_crit={calibration.gdd_crit:.0f})",
            )

        return {
            "calibration": calibration,
            "dates": dates,
            "files": files,
        }

"""Processor tests on synthetic input files."""

from pathlib import Path

import numpy as np
import pandas as pd
import pytest
import xarray as xr

from ecomod.contracts import ContractViolation
from ecomod.models import predict_transition_dates
from ecomod.pipeline import ResultStore, SpatialCVProcessor, LandCoverProcessor, PhenologyProcessor
from ecomod.visualization import WorkflowPlotter
from tests.helpers.synthetic import (
    CUBE_CRS,
    make_gcc_series,
    make_leaf_nitrogen_table,
    make_reference_points,
    make_region_array,
    make_temperature_series,
    write_daymet_csv,
    write_geotiff,
    write_phenocam_gcc,
    write_phenocam_transitions,
)

pytestmark = pytest.mark.unit


@pytest.fixture
def store(output_dirs):
    s = ResultStore(output_dirs["results"] / "ecomod_results.db", run_id="test_run")
    yield s
    s.close()


@pytest.fixture
def config(make_config):
    return make_config(
        N_ESTIMATORS=20,
        landcover={"n_clusters": 3, "reference_crs": CUBE_CRS, "n_estimators": 20},
        phenology={"start_year": 2008, "end_year": 2012, "maxiter": 200},
        visualization={"dpi": 60, "figsize": (4, 3)},
    )


@pytest.fixture
def plotter(config):
    return WorkflowPlotter(config)


class TestSpatialCVProcessor:

    @pytest.fixture
    def table_path(self, temp_dir):
        df = make_leaf_nitrogen_table()
        df.loc[3, "leafN"] = np.nan
        path = temp_dir / "leafN.csv"
        df.to_csv(path, index=False)
        return path

    def test_run_writes_tables_and_plots(self, config, output_dirs, store, plotter, table_path):
        result = SpatialCVProcessor(config, output_dirs, store, plotter).run(table_path)

        assert result["n_records"] == 99
        assert len(result["scores"]) == 15
        assert set(result["summary"]["strategy"]) == {"random", "spatial", "environmental"}
        for key in ("scores", "predictions", "summary", "importance"):
            assert Path(result["files"][key]).exists()
        assert Path(result["files"]["scores_plot"]).exists()
        assert Path(result["files"]["predictions_plot"]).exists()

        assert set(store.tables()) >= {
            "spatial_cv_scores", "spatial_cv_predictions", "spatial_cv_summary", "spatial_cv_importance",
        }
        assert (store.load("spatial_cv_scores")["run_id"] == "test_run").all()

    def test_run_without_plotter(self, config, output_dirs, store, table_path):
        result = SpatialCVProcessor(config, output_dirs, store).run(table_path)

        assert "scores_plot" not in result["files"]
        assert list(output_dirs["plots"].iterdir()) == []

    def test_missing_covariate_column(self, config, output_dirs, store, temp_dir):
        path = temp_dir / "partial.csv"
        make_leaf_nitrogen_table().drop(columns=["ndep"]).to_csv(path, index=False)

        with pytest.raises(KeyError, match="ndep"):
            SpatialCVProcessor(config, output_dirs, store).run(path)


class TestLandCoverProcessor:

    @pytest.fixture
    def scene(self, temp_dir):
        array, regions = make_region_array()
        tif = write_geotiff(temp_dir / "scene.tif", array, descriptions=["blue", "green", "nir"])
        reference = temp_dir / "reference.csv"
        make_reference_points(regions).to_csv(reference, index=False)
        return tif, reference

    def test_clusters_only(self, config, output_dirs, store, scene):
        tif, _ = scene
        result = LandCoverProcessor(config, output_dirs, store).run([tif])

        assert result["classes"] is None
        assert result["metrics"] is None
        assert result["cluster_sizes"]["cluster"].tolist() == [1, 2, 3]
        assert result["cluster_sizes"]["n_pixels"].tolist() == [199, 120, 79]
        assert "landcover_cluster_sizes" in store.tables()
        assert "landcover_metrics" not in store.tables()

        with xr.open_dataset(result["files"]["maps"]) as ds:
            assert list(ds.data_vars) == ["cluster"]
            assert ds.attrs["bands"] == "blue,green,nir"
            assert int(ds["cluster"].values[0, 0]) == 0

    def test_cluster_centers_long_format(self, config, output_dirs, store, scene, temp_dir):
        tif, _ = scene
        array, _ = make_region_array()
        renamed = write_geotiff(temp_dir / "renamed.tif", array, descriptions=["b1", "b2", "b3"])

        LandCoverProcessor(config, output_dirs, store).run([tif])
        LandCoverProcessor(config, output_dirs, store).run([renamed])

        centers = store.load("landcover_cluster_centers")
        assert list(centers.columns[:3]) == ["cluster", "band", "value"]
        assert len(centers) == 18
        assert set(centers["band"]) == {"blue", "green", "nir", "b1", "b2", "b3"}

    def test_with_reference_points(self, config, output_dirs, store, plotter, scene):
        tif, reference = scene
        result = LandCoverProcessor(config, output_dirs, store, plotter).run([tif], reference)

        assert result["metrics"]["accuracy"] >= 0.9
        assert result["classes"].attrs["classes"] == "1=forest;2=urban;3=water"

        metrics = store.load("landcover_metrics")
        assert metrics["classifier"].tolist() == ["gradient_boosting"]
        assert metrics["n_classes"].tolist() == [3]

        confusion = store.load("landcover_confusion")
        assert len(confusion) == 9
        assert confusion["count"].sum() == result["metrics"]["n_test"]

        with xr.open_dataset(result["files"]["maps"]) as ds:
            assert set(ds.data_vars) == {"cluster", "landcover_class"}
        assert Path(result["files"]["clusters_plot"]).exists()
        assert Path(result["files"]["classes_plot"]).exists()

    def test_netcdf_disabled(self, make_config, output_dirs, store, scene):
        tif, _ = scene
        config = make_config(landcover={"n_clusters": 3}, output={"save_netcdf": False})

        result = LandCoverProcessor(config, output_dirs, store).run([tif])

        assert "maps" not in result["files"]

    def test_reprojected_cube(self, make_config, output_dirs, store, scene):
        tif, _ = scene
        config = make_config(landcover={"n_clusters": 3, "target_crs": "EPSG:4326"})

        result = LandCoverProcessor(config, output_dirs, store).run([tif])

        assert result["clusters"].dims == ("y", "x")
        assert float(result["clusters"]["x"].mean()) < 0


class TestPhenologyProcessor:

    @pytest.fixture
    def temperature_path(self, temp_dir):
        return write_daymet_csv(temp_dir / "daymet.csv", make_temperature_series(years=range(2008, 2013)))

    def test_run_with_transition_file(self, config, output_dirs, store, plotter, temperature_path, temp_dir):
        observed = predict_transition_dates(make_temperature_series(years=range(2008, 2013)), (5.0, 130.0))
        transitions = write_phenocam_transitions(temp_dir / "transitions.csv", observed)

        result = PhenologyProcessor(config, output_dirs, store, plotter).run(
            temperature_path, transition_path=transitions)

        assert result["calibration"].n_years == 5
        assert result["calibration"].rmse < 5.0
        dates = result["dates"]
        assert list(dates.columns) == ["year", "observed", "predicted", "residual"]
        assert dates["year"].tolist() == [2008, 2009, 2010, 2011, 2012]
        np.testing.assert_allclose(dates["residual"], dates["predicted"] - dates["observed"])

        params = store.load("phenology_parameters")
        assert params["site"].tolist() == ["harvard"]
        assert {"t_base", "gdd_crit", "rmse", "n_years"} <= set(params.columns)
        assert Path(result["files"]["fit_plot"]).exists()

    def test_years_outside_window_dropped(self, make_config, output_dirs, store, temperature_path, temp_dir):
        config = make_config(phenology={"start_year": 2009, "end_year": 2011, "maxiter": 100})
        observed = pd.DataFrame({"year": range(2008, 2013), "doy": [130, 129, 128, 127, 126]})
        transitions = write_phenocam_transitions(temp_dir / "transitions.csv", observed)

        result = PhenologyProcessor(config, output_dirs, store).run(
            temperature_path, transition_path=transitions)

        assert result["dates"]["year"].tolist() == [2009, 2010, 2011]

    def test_run_from_gcc_series(self, config, output_dirs, store, temperature_path, temp_dir):
        gcc = write_phenocam_gcc(temp_dir / "gcc.csv", make_gcc_series(years=(2010, 2011), rise_doy=(130, 125)))

        result = PhenologyProcessor(config, output_dirs, store).run(temperature_path, gcc_path=gcc)

        assert result["dates"]["year"].tolist() == [2010, 2011]
        assert result["dates"]["observed"].between(115, 130).all()

    def test_no_observations(self, config, output_dirs, store, temperature_path):
        with pytest.raises(ValueError, match="transition file or a GCC"):
            PhenologyProcessor(config, output_dirs, store).run(temperature_path)

    def test_no_observed_years_in_window(self, config, output_dirs, store, temperature_path, temp_dir):
        observed = pd.DataFrame({"year": [1995, 1996], "doy": [130, 128]})
        transitions = write_phenocam_transitions(temp_dir / "transitions.csv", observed)

        with pytest.raises(ContractViolation, match="no transition dates"):
            PhenologyProcessor(config, output_dirs, store).run(temperature_path, transition_path=transitions)

"""Tests for workflow stage contracts."""

import numpy as np
import pandas as pd
import pytest
import xarray as xr

from ecomod.contracts import (
    ContractViolation,
    require,
    assert_training_table,
    assert_fold_assignment,
    assert_cv_scores,
    assert_raster_cube,
    assert_cluster_map,
    assert_temperature_series,
    assert_transition_dates,
)

pytestmark = pytest.mark.unit


def _cube(dims=("band", "y", "x"), with_transform=True):
    shape = {"band": 2, "y": 3, "x": 4}
    data = np.zeros([shape[d] for d in dims])
    ds = xr.Dataset(
        {"reflectance": (dims, data)},
        coords={"band": ["b1", "b2"], "y": np.arange(3.0), "x": np.arange(4.0)},
    )
    if with_transform:
        ds.attrs["transform"] = (30.0, 0.0, 0.0, 0.0, -30.0, 0.0)
    return ds


class TestRequire:

    def test_passes_silently(self):
        require(True, "never raised")

    def test_raises_contract_violation(self):
        with pytest.raises(ContractViolation, match="broken"):
            require(False, "broken")

    def test_contract_violation_is_runtime_error(self):
        assert issubclass(ContractViolation, RuntimeError)


class TestTabularContracts:

    def test_valid_training_table(self):
        df = pd.DataFrame({"y": [1.0, 2.0, 3.0], "a": [0.1, 0.2, 0.3]})
        assert_training_table(df, "y", ["a"], min_rows=3)

    def test_missing_covariate(self):
        df = pd.DataFrame({"y": [1.0, 2.0]})
        with pytest.raises(ContractViolation, match="missing column 'a'"):
            assert_training_table(df, "y", ["a"])

    def test_nan_in_target(self):
        df = pd.DataFrame({"y": [1.0, np.nan], "a": [0.1, 0.2]})
        with pytest.raises(ContractViolation, match="NaN"):
            assert_training_table(df, "y", ["a"])

    def test_too_few_rows(self):
        df = pd.DataFrame({"y": [1.0, 2.0], "a": [0.1, 0.2]})
        with pytest.raises(ContractViolation, match="expected >= 5"):
            assert_training_table(df, "y", ["a"], min_rows=5)

    def test_valid_folds(self):
        assert_fold_assignment(np.array([0, 1, 2, 0, 1, 2]), 6, 3)

    def test_empty_fold(self):
        with pytest.raises(ContractViolation, match="expected folds"):
            assert_fold_assignment(np.array([0, 0, 1, 1]), 4, 3)

    def test_fold_length_mismatch(self):
        with pytest.raises(ContractViolation):
            assert_fold_assignment(np.array([0, 1]), 4, 2)

    def test_float_fold_ids(self):
        with pytest.raises(ContractViolation, match="dtype"):
            assert_fold_assignment(np.array([0.0, 1.0]), 2, 2)

    def test_cv_scores(self):
        scores = pd.DataFrame({
            "strategy": ["random", "random"], "fold": [0, 1],
            "n_train": [8, 8], "n_test": [2, 2],
            "rmse": [0.5, 0.7], "r2": [0.9, 0.8],
        })
        assert_cv_scores(scores)

        scores.loc[1, "rmse"] = np.nan
        with pytest.raises(ContractViolation, match="rmse"):
            assert_cv_scores(scores)

    def test_cv_scores_empty_test_fold(self):
        scores = pd.DataFrame({
            "strategy": ["spatial"], "fold": [0], "n_train": [10], "n_test": [0],
            "rmse": [0.5], "r2": [0.1],
        })
        with pytest.raises(ContractViolation, match="test rows"):
            assert_cv_scores(scores)


class TestRasterContracts:

    def test_valid_cube(self):
        assert_raster_cube(_cube())

    def test_wrong_dim_order(self):
        with pytest.raises(ContractViolation, match="dims"):
            assert_raster_cube(_cube(dims=("y", "x", "band")))

    def test_missing_transform(self):
        with pytest.raises(ContractViolation, match="transform"):
            assert_raster_cube(_cube(with_transform=False))

    def test_missing_variable(self):
        with pytest.raises(ContractViolation, match="missing 'reflectance'"):
            assert_raster_cube(_cube().rename({"reflectance": "ndvi"}))

    def test_valid_cluster_map(self):
        labels = xr.DataArray(np.array([[0, 1], [2, 3]]), dims=("y", "x"))
        assert_cluster_map(labels, n_clusters=3)

    def test_cluster_label_out_of_range(self):
        labels = xr.DataArray(np.array([[0, 1], [2, 4]]), dims=("y", "x"))
        with pytest.raises(ContractViolation, match=r"unexpected labels \[4\]"):
            assert_cluster_map(labels, n_clusters=3)

    def test_float_cluster_map(self):
        labels = xr.DataArray(np.array([[1.0, 2.0]]), dims=("y", "x"))
        with pytest.raises(ContractViolation, match="integer"):
            assert_cluster_map(labels, n_clusters=2)


class TestPhenologyContracts:

    def test_valid_series(self):
        df = pd.DataFrame({"year": [2010, 2010], "doy": [1, 2], "tmean": [-3.0, -1.5]})
        assert_temperature_series(df)

    def test_duplicate_days(self):
        df = pd.DataFrame({"year": [2010, 2010], "doy": [1, 1], "tmean": [-3.0, -1.5]})
        with pytest.raises(ContractViolation, match="duplicate"):
            assert_temperature_series(df)

    def test_doy_out_of_range(self):
        df = pd.DataFrame({"year": [2010], "doy": [367], "tmean": [1.0]})
        with pytest.raises(ContractViolation, match="1..366"):
            assert_temperature_series(df)

    def test_non_finite_temperature(self):
        df = pd.DataFrame({"year": [2010], "doy": [5], "tmean": [np.inf]})
        with pytest.raises(ContractViolation, match="non-finite"):
            assert_temperature_series(df)

    def test_one_transition_per_year(self):
        assert_transition_dates(pd.DataFrame({"year": [2010, 2011], "doy": [130, 128]}))

        with pytest.raises(ContractViolation, match="more than one"):
            assert_transition_dates(pd.DataFrame({"year": [2010, 2010], "doy": [130, 128]}))

    def test_no_transitions(self):
        with pytest.raises(ContractViolation, match="no transition"):
            assert_transition_dates(pd.DataFrame({"year": [], "doy": []}))

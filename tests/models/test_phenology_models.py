"""Tests for the growing-degree-day model and its calibration."""

import numpy as np
import pandas as pd
import pytest

from ecomod.contracts import ContractViolation
from ecomod.models import (
    gdd_model,
    predict_transition_dates,
    phenology_rmse,
    gcc_transition_dates,
    PhenologyCalibrator,
    CalibrationResult,
)
from tests.helpers.synthetic import make_temperature_series, make_gcc_series

pytestmark = pytest.mark.unit

TRUE_PAR = (5.0, 130.0)


@pytest.fixture
def temperatures():
    return make_temperature_series(years=range(2008, 2013))


@pytest.fixture
def observed(temperatures):
    return predict_transition_dates(temperatures, TRUE_PAR)


class TestGddModel:

    def test_constant_warmth(self):
        assert gdd_model([6.0] * 30, (5.0, 10.0)) == 10.0

    def test_base_temperature_is_exclusive(self):
        assert gdd_model([5.0, 5.0, 5.0, 7.0], (5.0, 2.0)) == 4.0

    def test_threshold_never_reached(self):
        assert np.isnan(gdd_model([1.0] * 365, (5.0, 10.0)))

    def test_zero_critical_sum_is_first_day(self):
        assert gdd_model([-20.0, -10.0], (5.0, 0.0)) == 1.0

    def test_warmer_base_delays_transition(self, temperatures):
        year = temperatures[temperatures["year"] == 2010]["tmean"]

        assert gdd_model(year, (8.0, 130.0)) > gdd_model(year, (2.0, 130.0))


class TestPredictTransitionDates:

    def test_one_date_per_year(self, temperatures):
        dates = predict_transition_dates(temperatures, TRUE_PAR)

        assert dates["year"].tolist() == [2008, 2009, 2010, 2011, 2012]
        assert dates["doy"].between(60, 200).all()

    def test_warmer_years_green_up_earlier(self, observed):
        # the synthetic series warms by half a degree each year
        assert observed["doy"].is_monotonic_decreasing

    def test_unreached_year_is_nan(self, temperatures):
        dates = predict_transition_dates(temperatures, (40.0, 100.0))

        assert dates["doy"].isna().all()

    def test_doy_column_used_for_partial_years(self):
        df = pd.DataFrame({"year": 2010, "doy": np.arange(100, 110), "tmean": 10.0})

        dates = predict_transition_dates(df, (5.0, 12.0))

        # third day of the series reaches 15 degree days
        assert dates["doy"].tolist() == [102.0]


class TestPhenologyRmse:

    def test_perfect_parameters(self, temperatures, observed):
        assert phenology_rmse(TRUE_PAR, temperatures, observed) == 0.0

    def test_offset_dates(self, temperatures, observed):
        shifted = observed.assign(doy=observed["doy"] + 3)

        assert phenology_rmse(TRUE_PAR, temperatures, shifted) == pytest.approx(3.0)

    def test_unreached_years_penalised(self, temperatures, observed):
        cost = phenology_rmse((40.0, 100.0), temperatures, observed, penalty=365.0)

        assert cost == pytest.approx(365.0)

    def test_no_overlap(self, temperatures):
        with pytest.raises(ValueError, match="No overlapping years"):
            phenology_rmse(TRUE_PAR, temperatures, pd.DataFrame({"year": [1990], "doy": [120]}))


class TestGccTransitionDates:

    def test_detects_spring_rise(self):
        gcc = make_gcc_series(years=(2010, 2011), rise_doy=(130, 120))

        dates = gcc_transition_dates(gcc, threshold=0.25, smoothing_days=7)

        assert dates["year"].tolist() == [2010, 2011]
        # 25% of a logistic rise with width 5 is ~5.5 days before its midpoint
        assert dates["doy"].iloc[0] == pytest.approx(124.5, abs=2)
        assert dates["doy"].iloc[1] == pytest.approx(114.5, abs=2)
        assert (dates["gcc_max"] > dates["gcc_min"]).all()

    def test_higher_threshold_is_later(self):
        gcc = make_gcc_series(years=(2010,), rise_doy=(130,))

        early = gcc_transition_dates(gcc, threshold=0.1)["doy"].iloc[0]
        late = gcc_transition_dates(gcc, threshold=0.5)["doy"].iloc[0]

        assert early < late

    def test_flat_and_short_years_skipped(self):
        flat = pd.DataFrame({"year": 2010, "doy": np.arange(1, 50), "gcc": 0.5})
        short = pd.DataFrame({"year": 2011, "doy": [1, 2], "gcc": [0.3, 0.4]})

        dates = gcc_transition_dates(pd.concat([flat, short]))

        assert dates.empty
        assert list(dates.columns) == ["year", "doy", "gcc_min", "gcc_max"]

    @pytest.mark.parametrize("threshold", [0.0, 1.0, 25])
    def test_threshold_must_be_fraction(self, threshold):
        with pytest.raises(ValueError, match="threshold"):
            gcc_transition_dates(make_gcc_series(), threshold=threshold)


class TestPhenologyCalibrator:

    @pytest.fixture
    def config(self, make_config):
        return make_config(phenology={"maxiter": 300, "seed": 1})

    def test_recovers_synthetic_dates(self, config, temperatures, observed):
        result = PhenologyCalibrator(config).calibrate(temperatures, observed)

        assert isinstance(result, CalibrationResult)
        assert result.n_years == 5
        assert result.n_evaluations > 0
        assert result.rmse < 5.0
        assert result.rmse <= phenology_rmse(config.phenology.initial_params, temperatures, observed)
        assert result.rmse == pytest.approx(phenology_rmse(result.par, temperatures, observed))

    def test_parameters_within_bounds(self, config, temperatures, observed):
        result = PhenologyCalibrator(config).calibrate(temperatures, observed)

        assert -10.0 <= result.t_base <= 45.0
        assert 0.0 <= result.gdd_crit <= 500.0

    def test_seeded_runs_are_identical(self, config, temperatures, observed):
        a = PhenologyCalibrator(config).calibrate(temperatures, observed)
        b = PhenologyCalibrator(config).calibrate(temperatures, observed)

        assert a.par == b.par
        assert a.rmse == b.rmse

    def test_as_dict(self):
        result = CalibrationResult(t_base=4.0, gdd_crit=120.0, rmse=2.5, n_years=3, n_evaluations=10)

        assert result.par == (4.0, 120.0)
        assert result.as_dict() == {
            "t_base": 4.0, "gdd_crit": 120.0, "rmse": 2.5,
            "n_years": 3, "n_evaluations": 10, "message": "",
        }

    def test_duplicate_years_violate_contract(self, config, temperatures):
        observed = pd.DataFrame({"year": [2010, 2010], "doy": [120, 125]})

        with pytest.raises(ContractViolation):
            PhenologyCalibrator(config).calibrate(temperatures, observed)

    def test_bad_temperature_series(self, config, temperatures, observed):
        broken = temperatures.copy()
        broken.loc[3, "tmean"] = np.nan

        with pytest.raises(ContractViolation, match="non-finite"):
            PhenologyCalibrator(config).calibrate(broken, observed)

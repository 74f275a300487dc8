"""Growing-degree-day spring phenology model.

The model predicts the day of year of spring green-up from daily mean air
temperature. Starting on 1 January, degree days accumulate on every day
warmer than a base temperature::

    gdd(d) = sum_{i <= d} max(T_i - t_base, 0)

and the transition is the first day on which ``gdd >= gdd_crit``. The two
parameters ``(t_base, gdd_crit)`` are calibrated against observed PhenoCam
transition dates by minimising the RMSE across years with simulated
annealing (`scipy.optimize.dual_annealing`).

Observed dates can also be derived directly from a GCC time series
(`gcc_transition_dates`), the camera-based greenness index PhenoCam
publishes.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Sequence, TYPE_CHECKING

import numpy as np
import pandas as pd
from scipy.optimize import dual_annealing

from ecomod.contracts import assert_temperature_series, assert_transition_dates

if TYPE_CHECKING:
    from ecomod.schemas import InternalConfig

__all__ = [
    'gdd_model',
    'predict_transition_dates',
    'phenology_rmse',
    'gcc_transition_dates',
    'PhenologyCalibrator',
    'CalibrationResult',
]

logger = logging.getLogger(__name__)


def gdd_model(temp, par: Sequence[float]) -> float:
    """Day of year on which growing degree days reach the critical sum.

    Parameters
    ----------
    temp : array-like
        Daily mean temperature for one year, starting 1 January.
    par : (t_base, gdd_crit)
        Base temperature (only days strictly above it accumulate) and the
        critical degree-day sum.

    Returns
    -------
    float
        1-based day of year of the first day with ``gdd >= gdd_crit``,
        NaN if the sum is never reached.

    Examples
    --------
    >>> gdd_model([6.0] * 30, (5.0, 10.0))
    10.0
    """
    t_base, gdd_crit = par
    temp = np.asarray(temp, dtype=float)
    gdd = np.cumsum(np.where(temp > t_base, temp - t_base, 0.0))
    hits = np.flatnonzero(gdd >= gdd_crit)
    if hits.size == 0:
        return np.nan
    return float(hits[0] + 1)


def _year_arrays(temperature_df: pd.DataFrame):
    """{year: (tmean, doy)} with each year sorted by doy."""
    out = {}
    for year, g in temperature_df.sort_values(["year", "doy"]).groupby("year"):
        out[int(year)] = (g["tmean"].to_numpy(dtype=float), g["doy"].to_numpy())
    return out


def _predict_doy(tmean: np.ndarray, doy: np.ndarray, par) -> float:
    pos = gdd_model(tmean, par)
    if np.isnan(pos):
        return np.nan
    return float(doy[int(pos) - 1])


def predict_transition_dates(temperature_df: pd.DataFrame, par: Sequence[float]) -> pd.DataFrame:
    """Run the GDD model for every year in a daily temperature table.

    Parameters
    ----------
    temperature_df : pd.DataFrame
        Columns year, doy, tmean.
    par : (t_base, gdd_crit)

    Returns
    -------
    pd.DataFrame
        Columns year, doy (NaN where the threshold is never reached).
    """
    rows = [
        {"year": year, "doy": _predict_doy(tmean, doy, par)}
        for year, (tmean, doy) in _year_arrays(temperature_df).items()
    ]
    return pd.DataFrame(rows, columns=["year", "doy"])


def _cost(par, years, penalty: float) -> float:
    errors = np.empty(len(years))
    for i, (tmean, doy, observed) in enumerate(years):
        pred = _predict_doy(tmean, doy, par)
        errors[i] = penalty if np.isnan(pred) else pred - observed
    return float(np.sqrt(np.mean(errors ** 2)))


def _paired_years(temperature_df: pd.DataFrame, observed_df: pd.DataFrame):
    """(tmean, doy, observed_doy) for years present in both tables."""
    by_year = _year_arrays(temperature_df)
    observed = observed_df.dropna(subset=["doy"])
    years = [
        (*by_year[int(year)], float(obs))
        for year, obs in zip(observed["year"], observed["doy"])
        if int(year) in by_year
    ]
    if not years:
        raise ValueError("No overlapping years between temperature series and observed dates")
    return years


def phenology_rmse(par: Sequence[float], temperature_df: pd.DataFrame,
                   observed_df: pd.DataFrame, penalty: float = 365.0) -> float:
    """RMSE (days) between modelled and observed transition dates.

    Years where the model never reaches the critical sum contribute an
    error of `penalty` days.

    Raises
    ------
    ValueError
        If no year is present in both tables.
    """
    return _cost(par, _paired_years(temperature_df, observed_df), penalty)


def gcc_transition_dates(gcc_df: pd.DataFrame, threshold: float = 0.25,
                         smoothing_days: int = 7) -> pd.DataFrame:
    """Spring transition dates from a GCC time series.

    For each year the series is smoothed with a centred rolling mean and
    the transition is the first day, before the seasonal maximum, on which
    smoothed GCC reaches ``min + threshold * (max - min)``.

    Parameters
    ----------
    gcc_df : pd.DataFrame
        Columns year, doy, gcc.
    threshold : float
        Fraction of the seasonal amplitude, in (0, 1).
    smoothing_days : int
        Rolling window length in observations.

    Returns
    -------
    pd.DataFrame
        Columns year, doy, gcc_min, gcc_max. Years with fewer than three
        observations or no amplitude are skipped.
    """
    if not 0 < threshold < 1:
        raise ValueError(f"threshold must be in (0, 1), got {threshold}")

    rows = []
    for year, g in gcc_df.sort_values(["year", "doy"]).groupby("year"):
        if len(g) < 3:
            continue
        smooth = g["gcc"].rolling(smoothing_days, center=True, min_periods=1).mean().to_numpy()
        lo, hi = float(np.min(smooth)), float(np.max(smooth))
        if hi <= lo:
            continue
        level = lo + threshold * (hi - lo)
        peak = int(np.argmax(smooth))
        crossing = np.flatnonzero(smooth[: peak + 1] >= level)
        rows.append({
            "year": int(year),
            "doy": int(g["doy"].to_numpy()[crossing[0]]),
            "gcc_min": lo,
            "gcc_max": hi,
        })
    return pd.DataFrame(rows, columns=["year", "doy", "gcc_min", "gcc_max"])


@dataclass
class CalibrationResult:
    """Optimised GDD parameters and fit statistics."""
    t_base: float
    gdd_crit: float
    rmse: float
    n_years: int
    n_evaluations: int
    message: str = ""

    @property
    def par(self) -> tuple:
        return (self.t_base, self.gdd_crit)

    def as_dict(self) -> dict:
        return asdict(self)


class PhenologyCalibrator:
    """Calibrate the GDD model by simulated annealing.

    Bounds, initial guess, iteration budget, seed and the penalty for
    unreached years come from `config.phenology`. The cost surface is
    piecewise constant (dates are whole days), which is why a global
    stochastic optimiser is used rather than a gradient method.

    Examples
    --------
    >>> calibrator = PhenologyCalibrator(config)
    >>> result = calibrator.calibrate(temperature_df, observed_df)
    >>> result.par, result.rmse
    """

    def __init__(self, config: "InternalConfig"):
        cfg = config.phenology
        self.bounds = list(zip(cfg.lower, cfg.upper))
        self.initial_params = np.array(cfg.initial_params, dtype=float)
        self.maxiter = cfg.maxiter
        self.seed = cfg.seed
        self.penalty = cfg.unreached_penalty

    def calibrate(self, temperature_df: pd.DataFrame, observed_df: pd.DataFrame) -> CalibrationResult:
        """Minimise the RMSE between modelled and observed dates.

        Raises
        ------
        ContractViolation
            If the inputs break the temperature or transition contracts.
        ValueError
            If the tables share no year.
        """
        assert_temperature_series(temperature_df)
        assert_transition_dates(observed_df)
        years = _paired_years(temperature_df, observed_df)

        logger.info("Calibrating GDD model on %d years (maxiter=%d, seed=%d)",
                    len(years), self.maxiter, self.seed)
        initial_rmse = _cost(self.initial_params, years, self.penalty)

        result = dual_annealing(
            _cost,
            bounds=self.bounds,
            args=(years, self.penalty),
            maxiter=self.maxiter,
            seed=self.seed,
            x0=self.initial_params,
        )

        t_base, gdd_crit = (float(v) for v in result.x)
        calibrated = CalibrationResult(
            t_base=t_base,
            gdd_crit=gdd_crit,
            rmse=float(result.fun),
            n_years=len(years),
            n_evaluations=int(result.nfev),
            message=str(result.message[0] if isinstance(result.message, list) else result.message),
        )
        logger.info("GDD calibration: t_base=%.3f, gdd_crit=%.2f, RMSE %.2f -> %.2f days",
                    t_base, gdd_crit, initial_rmse, calibrated.rmse)
        return calibrated

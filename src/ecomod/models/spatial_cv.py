"""Random, spatial and environmental cross-validation of a random forest.

Random k-fold cross-validation over-states the skill of a model fit to
spatially clustered samples: neighbouring test points are nearly copies of
training points. This module compares three ways of splitting the same
table into k folds:

- **random**: shuffled k-fold
- **spatial**: k-means on the sample coordinates, each cluster is one fold
  (leave-cluster-out)
- **environmental**: k-means on the standardised covariates, each cluster
  is one fold, so test folds sit in covariate space not seen in training

For each split a random-forest regressor is fit on k-1 folds and scored on
the held-out fold (RMSE, R²). Model fitting is delegated to scikit-learn.
"""

import logging
from typing import Optional, Sequence, TYPE_CHECKING

import numpy as np
import pandas as pd
from sklearn.cluster import KMeans
from sklearn.ensemble import RandomForestRegressor
from sklearn.metrics import mean_squared_error, r2_score
from sklearn.model_selection import KFold
from sklearn.preprocessing import StandardScaler

from ecomod.contracts import assert_fold_assignment, assert_training_table

if TYPE_CHECKING:
    from ecomod.schemas import InternalConfig

__all__ = ['SpatialCrossValidator', 'assign_folds', 'summarize_scores', 'rmse']

logger = logging.getLogger(__name__)

STRATEGIES = ("random", "spatial", "environmental")


def rmse(observed, predicted) -> float:
    """Root mean squared error."""
    return float(np.sqrt(mean_squared_error(observed, predicted)))


def _cluster_folds(features: np.ndarray, n_folds: int, random_state: int) -> np.ndarray:
    """K-means cluster ids used directly as fold ids."""
    km = KMeans(n_clusters=n_folds, random_state=random_state, n_init=10)
    labels = km.fit_predict(features)
    found = len(np.unique(labels))
    if found < n_folds:
        raise ValueError(
            f"Only {found} distinct clusters for {n_folds} folds; "
            "too few distinct locations or covariate combinations"
        )
    return labels.astype(np.int64)


def assign_folds(df: pd.DataFrame, strategy: str, n_folds: int,
                 coords: Sequence[str], covariates: Sequence[str],
                 random_state: int = 42) -> np.ndarray:
    """Assign every row of `df` to one of `n_folds` folds.

    Parameters
    ----------
    df : pd.DataFrame
        Cleaned training table.
    strategy : {"random", "spatial", "environmental"}
        How rows are grouped into folds.
    n_folds : int
        Number of folds (k).
    coords : sequence of str
        Coordinate columns (lon, lat) used by the spatial strategy.
    covariates : sequence of str
        Predictor columns used by the environmental strategy.
    random_state : int
        Seed for shuffling and k-means initialisation.

    Returns
    -------
    np.ndarray
        Integer fold id in 0..n_folds-1 for each row.

    Raises
    ------
    ValueError
        If the strategy is unknown or the table cannot be split into
        `n_folds` non-empty folds.
    """
    if strategy not in STRATEGIES:
        raise ValueError(f"Unknown cross-validation strategy: {strategy}")
    if len(df) < n_folds:
        raise ValueError(f"Need at least {n_folds} rows for {n_folds} folds, got {len(df)}")

    if strategy == "random":
        folds = np.empty(len(df), dtype=np.int64)
        kf = KFold(n_splits=n_folds, shuffle=True, random_state=random_state)
        for fold, (_, test_idx) in enumerate(kf.split(df)):
            folds[test_idx] = fold
        return folds

    if strategy == "spatial":
        features = df[list(coords)].to_numpy(dtype=float)
    else:
        features = StandardScaler().fit_transform(df[list(covariates)].to_numpy(dtype=float))

    return _cluster_folds(features, n_folds, random_state)


def summarize_scores(scores: pd.DataFrame, predictions: Optional[pd.DataFrame] = None) -> pd.DataFrame:
    """Mean and standard deviation of fold scores per strategy.

    If out-of-fold `predictions` are given, pooled RMSE and R² over all
    held-out rows are added.
    """
    summary = (
        scores.groupby("strategy", sort=False)
        .agg(
            n_folds=("fold", "count"),
            rmse_mean=("rmse", "mean"),
            rmse_std=("rmse", "std"),
            r2_mean=("r2", "mean"),
            r2_std=("r2", "std"),
        )
        .reset_index()
    )
    if predictions is not None and len(predictions):
        pooled = pd.DataFrame([
            {
                "strategy": strategy,
                "rmse_pooled": rmse(g["observed"], g["predicted"]),
                "r2_pooled": float(r2_score(g["observed"], g["predicted"])),
            }
            for strategy, g in predictions.groupby("strategy", sort=False)
        ])
        summary = summary.merge(pooled, on="strategy", how="left")
    return summary


class SpatialCrossValidator:
    """Compare random, spatial and environmental cross-validation.

    Configuration comes from `config.spatial_cv`: target and covariate
    columns, coordinate columns, strategies, number of folds and the
    random-forest hyperparameters. All randomness (fold shuffling, k-means,
    forest) is seeded from `random_state`, so repeated runs give identical
    scores.

    Examples
    --------
    >>> cv = SpatialCrossValidator(config)
    >>> scores, predictions = cv.evaluate(df)
    >>> summarize_scores(scores, predictions)
    """

    def __init__(self, config: "InternalConfig"):
        self.config = config
        cfg = config.spatial_cv
        self.target = cfg.target
        self.covariates = list(cfg.covariates)
        self.coords = [cfg.lon_column, cfg.lat_column]
        self.strategies = list(cfg.strategies)
        self.n_folds = cfg.n_folds
        self.random_state = cfg.random_state

        logger.info("SpatialCrossValidator initialized: target=%s, folds=%d, strategies=%s",
                    self.target, self.n_folds, self.strategies)

    def _make_model(self) -> RandomForestRegressor:
        cfg = self.config.spatial_cv
        max_features = None if cfg.max_features == "all" else cfg.max_features
        return RandomForestRegressor(
            n_estimators=cfg.n_estimators,
            min_samples_leaf=cfg.min_samples_leaf,
            max_features=max_features,
            random_state=cfg.random_state,
            n_jobs=1,
        )

    def evaluate(self, df: pd.DataFrame, strategies: Optional[Sequence[str]] = None):
        """Cross-validate the random forest under each strategy.

        Parameters
        ----------
        df : pd.DataFrame
            Cleaned table with target, covariates and coordinate columns.
        strategies : sequence of str, optional
            Overrides the configured strategies.

        Returns
        -------
        scores : pd.DataFrame
            One row per (strategy, fold): n_train, n_test, rmse, r2.
            r2 is NaN for folds with fewer than two test rows.
        predictions : pd.DataFrame
            Out-of-fold predictions: strategy, fold, observed, predicted,
            plus the coordinate columns.
        """
        strategies = list(strategies) if strategies is not None else self.strategies
        assert_training_table(df, self.target, self.covariates, min_rows=self.n_folds)

        X = df[self.covariates].to_numpy(dtype=float)
        y = df[self.target].to_numpy(dtype=float)
        has_coords = all(c in df.columns for c in self.coords)

        score_rows, prediction_frames = [], []
        for strategy in strategies:
            folds = assign_folds(df, strategy, self.n_folds, self.coords,
                                 self.covariates, self.random_state)
            assert_fold_assignment(folds, len(df), self.n_folds)

            for fold in range(self.n_folds):
                test = folds == fold
                model = self._make_model()
                model.fit(X[~test], y[~test])
                pred = model.predict(X[test])

                n_test = int(test.sum())
                score_rows.append({
                    "strategy": strategy,
                    "fold": fold,
                    "n_train": int((~test).sum()),
                    "n_test": n_test,
                    "rmse": rmse(y[test], pred),
                    "r2": float(r2_score(y[test], pred)) if n_test >= 2 else np.nan,
                })

                frame = pd.DataFrame({
                    "strategy": strategy,
                    "fold": fold,
                    "observed": y[test],
                    "predicted": pred,
                })
                if has_coords:
                    for c in self.coords:
                        frame[c] = df[c].to_numpy()[test]
                prediction_frames.append(frame)

            fold_scores = [r["rmse"] for r in score_rows if r["strategy"] == strategy]
            logger.info("%s CV: mean RMSE=%.4f over %d folds", strategy,
                        float(np.mean(fold_scores)), self.n_folds)

        scores = pd.DataFrame(score_rows)
        predictions = pd.concat(prediction_frames, ignore_index=True)
        return scores, predictions

    def feature_importance(self, df: pd.DataFrame) -> pd.DataFrame:
        """Impurity-based importance of each covariate, fit on all rows."""
        assert_training_table(df, self.target, self.covariates)
        model = self._make_model()
        model.fit(df[self.covariates].to_numpy(dtype=float), df[self.target].to_numpy(dtype=float))
        return (
            pd.DataFrame({"covariate": self.covariates, "importance": model.feature_importances_})
            .sort_values("importance", ascending=False)
            .reset_index(drop=True)
        )

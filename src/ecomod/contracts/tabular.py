"""Tabular stage contracts.

Enforce that cleaned training tables are ready for model fitting and that
cross-validation produced complete, well-formed fold assignments and scores.
"""

import numpy as np
import pandas as pd
from ecomod.contracts.base import require


def assert_training_table(df: pd.DataFrame, target: str, covariates: list, min_rows: int = 2) -> None:
    """Enforce the cleaned training table contract.

    Called after missing-value filtering, before any model is fit.

    Parameters
    ----------
    df : pd.DataFrame
        Cleaned training table
    target : str
        Response column
    covariates : list of str
        Predictor columns
    min_rows : int, optional
        Minimum number of rows (the number of folds for cross-validation)

    Raises
    ------
    ContractViolation
        If columns are missing, contain NaN, or there are too few rows
    """
    require(
        isinstance(df, pd.DataFrame),
        f"Training contract violated: got {type(df)}, expected DataFrame"
    )
    for col in [target, *covariates]:
        require(
            col in df.columns,
            f"Training contract violated: missing column '{col}'"
        )
    columns = [target, *covariates]
    require(
        not df[columns].isna().any().any(),
        "Training contract violated: NaN values remain after cleaning"
    )
    require(
        len(df) >= min_rows,
        f"Training contract violated: got {len(df)} rows, expected >= {min_rows}"
    )


def assert_fold_assignment(folds: np.ndarray, n_rows: int, n_folds: int) -> None:
    """Enforce fold assignment contract.

    Every row belongs to exactly one fold in 0..n_folds-1 and no fold is empty.
    """
    folds = np.asarray(folds)
    require(
        folds.shape == (n_rows,),
        f"Fold contract violated: {folds.shape[0] if folds.ndim else 0} assignments for {n_rows} rows"
    )
    require(
        folds.dtype.kind in {"i", "u"},
        f"Fold contract violated: fold ids dtype is {folds.dtype}, expected integer"
    )
    require(
        set(np.unique(folds).tolist()) == set(range(n_folds)),
        f"Fold contract violated: expected folds 0..{n_folds - 1}, got {sorted(np.unique(folds).tolist())}"
    )


def assert_cv_scores(df: pd.DataFrame) -> None:
    """Enforce cross-validation score table contract."""
    require(
        isinstance(df, pd.DataFrame),
        f"Score contract violated: got {type(df)}, expected DataFrame"
    )
    for col in ("strategy", "fold", "n_train", "n_test", "rmse", "r2"):
        require(
            col in df.columns,
            f"Score contract violated: missing column '{col}'"
        )
    require(len(df) > 0, "Score contract violated: no fold scores")
    require(
        bool(np.isfinite(df["rmse"]).all()) and bool((df["rmse"] >= 0).all()),
        "Score contract violated: rmse must be finite and non-negative"
    )
    require(
        bool((df["n_test"] > 0).all()),
        "Score contract violated: every fold must have test rows"
    )

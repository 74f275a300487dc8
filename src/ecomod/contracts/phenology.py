"""Phenology stage contracts.

Enforce that daily temperature series and observed transition dates are
usable by the growing-degree-day model.
"""

import numpy as np
import pandas as pd
from ecomod.contracts.base import require


def assert_temperature_series(df: pd.DataFrame) -> None:
    """Enforce daily temperature contract.

    One row per (year, doy), doy in 1..366, finite mean temperature.
    """
    for col in ("year", "doy", "tmean"):
        require(
            col in df.columns,
            f"Temperature contract violated: missing column '{col}'"
        )
    require(len(df) > 0, "Temperature contract violated: empty series")
    require(
        not df.duplicated(subset=["year", "doy"]).any(),
        "Temperature contract violated: duplicate (year, doy) rows"
    )
    require(
        bool(df["doy"].between(1, 366).all()),
        "Temperature contract violated: doy outside 1..366"
    )
    require(
        bool(np.isfinite(df["tmean"]).all()),
        "Temperature contract violated: non-finite tmean values"
    )


def assert_transition_dates(df: pd.DataFrame) -> None:
    """Enforce observed transition date contract (one date per year)."""
    for col in ("year", "doy"):
        require(
            col in df.columns,
            f"Transition contract violated: missing column '{col}'"
        )
    require(len(df) > 0, "Transition contract violated: no transition dates")
    require(
        not df["year"].duplicated().any(),
        "Transition contract violated: more than one date per year"
    )

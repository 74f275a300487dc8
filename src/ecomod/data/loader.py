"""Read and clean the tabular inputs of the workflows.

Covers the plain CSV tables (leaf nitrogen records, land-cover reference
points) and the two public phenology formats used by the GDD model: Daymet
single-pixel daily weather downloads and PhenoCam transition date / GCC
time-series files. Missing values are excluded by filtering, never imputed.
"""

import io
import logging
from pathlib import Path
from typing import Iterable

import numpy as np
import pandas as pd

__all__ = [
    'load_table',
    'clean_records',
    'read_daymet_csv',
    'read_phenocam_transitions',
    'read_phenocam_gcc',
]

logger = logging.getLogger(__name__)


def load_table(path: Path | str) -> pd.DataFrame:
    """Read a CSV table.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Table not found: {path}")
    df = pd.read_csv(path)
    logger.debug("Loaded %s: %d rows, %d columns", path.name, len(df), df.shape[1])
    return df


def clean_records(df: pd.DataFrame, columns: Iterable[str]) -> pd.DataFrame:
    """Drop rows with missing values in `columns`.

    Parameters
    ----------
    df : pd.DataFrame
        Raw table.
    columns : iterable of str
        Columns that must be complete (target and predictors).

    Returns
    -------
    pd.DataFrame
        Filtered copy with a fresh RangeIndex.

    Raises
    ------
    KeyError
        If any of `columns` is not in the table.
    """
    columns = list(columns)
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise KeyError(f"Columns not in table: {missing}")

    cleaned = df.dropna(subset=columns).reset_index(drop=True)
    removed = len(df) - len(cleaned)
    if removed:
        logger.info("Removed %d of %d rows with missing values", removed, len(df))
    return cleaned


def read_daymet_csv(path: Path | str) -> pd.DataFrame:
    """Read a Daymet single-pixel CSV download.

    The file starts with free-text metadata lines (location, tile,
    elevation, citation) followed by a header row beginning with ``year,``.
    Column units are stripped: ``tmax (deg c)`` becomes ``tmax``.

    Returns
    -------
    pd.DataFrame
        Columns year, doy, tmax, tmin, tmean (plus any other requested
        variables), sorted by year and doy. ``tmean = (tmax + tmin) / 2``.

    Raises
    ------
    ValueError
        If no data header is found or tmax/tmin are missing.
    """
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        lines = f.readlines()

    header_idx = next(
        (i for i, line in enumerate(lines) if line.strip().lower().startswith("year,")),
        None,
    )
    if header_idx is None:
        raise ValueError(f"No Daymet data header found in {path}")

    df = pd.read_csv(io.StringIO("".join(lines[header_idx:])))
    df.columns = [c.split("(")[0].strip().lower() for c in df.columns]
    df = df.rename(columns={"yday": "doy"})

    for col in ("tmax", "tmin"):
        if col not in df.columns:
            raise ValueError(f"Daymet file {path} has no '{col}' column")

    df["tmean"] = (df["tmax"] + df["tmin"]) / 2.0
    df = df.sort_values(["year", "doy"]).reset_index(drop=True)
    logger.debug("Daymet series %s: %d days, years %d-%d",
                 path.name, len(df), df["year"].min(), df["year"].max())
    return df


def read_phenocam_transitions(path: Path | str, direction: str = "rising",
                              gcc_value: str = "gcc_90", threshold: int = 25) -> pd.DataFrame:
    """Read a PhenoCam transition dates file.

    PhenoCam files carry a ``#`` comment header. Each row is one greenness
    transition; only rows with the requested `direction` and `gcc_value`
    are kept, and the date of ``transition_<threshold>`` is converted to
    day-of-year. When a site has more than one rising transition in a
    year, the earliest one is the spring transition.

    Returns
    -------
    pd.DataFrame
        Columns year, doy (one row per year).
    """
    df = pd.read_csv(path, comment="#")
    column = f"transition_{threshold}"
    for col in ("direction", "gcc_value", column):
        if col not in df.columns:
            raise ValueError(f"PhenoCam transition file {path} has no '{col}' column")

    df = df[(df["direction"] == direction) & (df["gcc_value"] == gcc_value)]
    dates = pd.to_datetime(df[column], errors="coerce").dropna()

    out = pd.DataFrame({"year": dates.dt.year, "doy": dates.dt.dayofyear})
    out = (
        out.sort_values(["year", "doy"])
        .drop_duplicates(subset="year", keep="first")
        .reset_index(drop=True)
    )
    logger.debug("PhenoCam transitions %s: %d years", Path(path).name, len(out))
    return out


def read_phenocam_gcc(path: Path | str, gcc_value: str = "gcc_90") -> pd.DataFrame:
    """Read a PhenoCam GCC time series (1-day or 3-day summary product).

    Returns
    -------
    pd.DataFrame
        Columns date, year, doy, gcc; rows without a GCC value are dropped.
    """
    df = pd.read_csv(path, comment="#")
    if gcc_value not in df.columns or "date" not in df.columns:
        raise ValueError(f"PhenoCam GCC file {path} needs 'date' and '{gcc_value}' columns")

    dates = pd.to_datetime(df["date"])
    gcc = pd.to_numeric(df[gcc_value], errors="coerce")
    out = pd.DataFrame({
        "date": dates,
        "year": dates.dt.year,
        "doy": dates.dt.dayofyear,
        "gcc": gcc,
    })
    out = out[np.isfinite(out["gcc"])].reset_index(drop=True)
    return out

"""SQLite store for workflow result tables.

Every table written by a workflow (fold scores, CV summaries, confusion
matrices, calibrated phenology parameters) is appended to one SQLite
database per output directory, tagged with the run that produced it.
Repeated runs accumulate, so results of different seeds or configurations
can be compared with plain SQL or `pd.read_sql`.
"""

import re
import sqlite3
import logging
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional

import pandas as pd

__all__ = ['ResultStore', 'new_run_id']

logger = logging.getLogger(__name__)

_TABLE_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def new_run_id() -> str:
    """UTC timestamp run id with microseconds, e.g. ``20240101_120000_123456``."""
    return datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")


class ResultStore:
    """Persists DataFrames to SQLite tables tagged with a run id.

    Each saved row gets two extra columns, `run_id` and `saved_at` (UTC,
    ISO format). Tables are created on first save with the schema pandas
    infers from the DataFrame; later saves append. Columns a later frame
    introduces are added to the table first, and earlier rows read back as
    NULL in them.

    Typical usage::

        with ResultStore(output_dirs["results"] / "ecomod_results.db", run_id) as store:
            store.save("spatial_cv_scores", scores)
            previous = store.load("spatial_cv_scores")
    """

    def __init__(self, db_path: Path | str, run_id: Optional[str] = None):
        """Initialize store.

        Parameters
        ----------
        db_path : Path or str
            Path to SQLite database file. Created if doesn't exist.
        run_id : str, optional
            Tag written to every saved row. Defaults to the current UTC
            time, see `new_run_id`.
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.run_id = run_id or new_run_id()
        self._conn = None
        logger.info(f"Result store initialized: {self.db_path}")

    def _get_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path))
        return self._conn

    def tables(self) -> list:
        """Names of the tables in the database."""
        cursor = self._get_connection().execute(
            "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
        )
        return [row[0] for row in cursor.fetchall()]

    def save(self, table: str, df: pd.DataFrame) -> int:
        """Append `df` to `table`.

        Parameters
        ----------
        table : str
            Table name (letters, digits and underscores).
        df : pd.DataFrame
            Rows to store. The index is not written.

        Returns
        -------
        int
            Number of rows written.

        Raises
        ------
        ValueError
            If the table name is not a plain identifier.
        """
        if not _TABLE_NAME.fullmatch(table):
            raise ValueError(f"Invalid table name: {table}")

        out = df.copy()
        out["run_id"] = self.run_id
        out["saved_at"] = datetime.now(timezone.utc).isoformat()

        conn = self._get_connection()
        if table in self.tables():
            self._add_missing_columns(conn, table, out)
        out.to_sql(table, conn, if_exists="append", index=False)
        conn.commit()
        logger.debug(f"Saved {len(out)} rows to {table}")
        return len(out)

    @staticmethod
    def _add_missing_columns(conn: sqlite3.Connection, table: str, df: pd.DataFrame):
        existing = {row[1].lower() for row in conn.execute(f'PRAGMA table_info("{table}")')}
        for col in df.columns:
            if str(col).lower() in existing:
                continue
            if pd.api.types.is_integer_dtype(df[col]) or pd.api.types.is_bool_dtype(df[col]):
                sql_type = "INTEGER"
            elif pd.api.types.is_float_dtype(df[col]):
                sql_type = "REAL"
            else:
                sql_type = "TEXT"
            quoted = str(col).replace('"', '""')
            conn.execute(f'ALTER TABLE "{table}" ADD COLUMN "{quoted}" {sql_type}')
            logger.info(f"Added column {col} ({sql_type}) to {table}")

    def load(self, table: str, run_id: Optional[str] = None) -> pd.DataFrame:
        """Read a table, optionally restricted to one run.

        Returns an empty DataFrame if the table does not exist.
        """
        if table not in self.tables():
            return pd.DataFrame()

        conn = self._get_connection()
        if run_id is None:
            return pd.read_sql(f'SELECT * FROM "{table}"', conn)
        return pd.read_sql(f'SELECT * FROM "{table}" WHERE run_id = ?', conn, params=(run_id,))

    def close(self):
        """Close database connection. Safe to call multiple times."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

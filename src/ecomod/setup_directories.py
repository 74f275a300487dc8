"""
Directory setup for ecomod runs.

One flat tree per base directory, shared by all runs:
- downloads/: cached input datasets (CSV downloads, Daymet, PhenoCam)
- results/: CSV tables, NetCDF maps, SQLite result database
- plots/: figures
- logs/: one log file per run
"""

from pathlib import Path

DEFAULT_BASE_DIR = "ecomod_output"


def setup_output_directories(base_output_dir=None):
    """
    Set up the output directory structure.

    Parameters
    ----------
    base_output_dir : str or Path, optional
        Base output directory. If None, ``./ecomod_output`` is used.

    Returns
    -------
    dict
        Dictionary with paths: 'base', 'downloads', 'results', 'plots', 'logs'
    """
    if base_output_dir is None:
        base_output_dir = Path.cwd() / DEFAULT_BASE_DIR

    base_output_dir = Path(base_output_dir).expanduser().resolve()

    directories = {
        "base": base_output_dir,
        "downloads": base_output_dir / "downloads",
        "results": base_output_dir / "results",
        "plots": base_output_dir / "plots",
        "logs": base_output_dir / "logs",
    }

    for path in directories.values():
        path.mkdir(parents=True, exist_ok=True)

    print("\nOutput directories:")
    for key, path in directories.items():
        print(f"  {key:12s}: {path}")

    return directories

"""Dataset acquisition and loading.

- downloader: HTTP download with caching, Daymet/PhenoCam URL builders
- loader: CSV tables, Daymet and PhenoCam readers, missing-value filtering
- raster: Raster cube stacking, point sampling, reprojection
"""

from ecomod.data.downloader import DatasetDownloader
from ecomod.data.loader import (
    load_table,
    clean_records,
    read_daymet_csv,
    read_phenocam_transitions,
    read_phenocam_gcc,
)
from ecomod.data.raster import load_raster_cube, sample_cube, reproject_cube

__all__ = [
    "DatasetDownloader",
    "load_table",
    "clean_records",
    "read_daymet_csv",
    "read_phenocam_transitions",
    "read_phenocam_gcc",
    "load_raster_cube",
    "sample_cube",
    "reproject_cube",
]

"""Read satellite raster files into a (band, y, x) xarray cube.

Land-cover classification works on a stack of co-registered reflectance
bands (e.g. MODIS or Sentinel-2 surface reflectance exported as GeoTIFF).
This module stacks one or more rasters with rasterio, keeps the
georeferencing needed to sample the cube at reference points, and
reprojects the cube when the reference points and imagery use different
grids.

Key capabilities:
- Stacks single- and multi-band files along a `band` dimension
- Converts nodata to NaN
- Samples band values at lon/lat points
- Reprojects with bilinear resampling
"""

import logging
from pathlib import Path
from typing import Iterable, Optional

import numpy as np
import pandas as pd
import xarray as xr
import rasterio
from rasterio.crs import CRS
from rasterio.transform import Affine, array_bounds, rowcol
from rasterio.warp import Resampling, calculate_default_transform, reproject, transform as warp_transform

__all__ = ['load_raster_cube', 'sample_cube', 'reproject_cube']

logger = logging.getLogger(__name__)

CUBE_VAR = "reflectance"


def _cube_dataset(array: np.ndarray, band_names: list, transform: Affine,
                  crs: Optional[CRS]) -> xr.Dataset:
    """Wrap a (band, y, x) array with cell-centre coordinates."""
    if transform.b != 0 or transform.d != 0:
        raise ValueError("Rotated rasters are not supported")

    nband, height, width = array.shape
    xs = transform.c + (np.arange(width) + 0.5) * transform.a
    ys = transform.f + (np.arange(height) + 0.5) * transform.e

    return xr.Dataset(
        {CUBE_VAR: (("band", "y", "x"), array)},
        coords={"band": list(band_names), "y": ys, "x": xs},
        attrs={
            # NetCDF can't serialize None
            "crs": crs.to_string() if crs else "",
            "transform": tuple(transform)[:6],
        },
    )


def load_raster_cube(paths: Iterable[Path | str]) -> xr.Dataset:
    """Stack raster files into a single reflectance cube.

    Parameters
    ----------
    paths : iterable of Path or str
        GeoTIFF (or any GDAL-readable) files on the same grid. Bands are
        appended in file order.

    Returns
    -------
    xr.Dataset
        `reflectance(band, y, x)` as float64 with NaN for nodata. Band names
        come from the band descriptions, else the file stem (single-band
        files) or ``<stem>_b<i>``. Attributes `crs` and `transform` describe
        the grid.

    Raises
    ------
    ValueError
        If no paths are given or the files are not on the same grid.
    """
    paths = [Path(p) for p in paths]
    if not paths:
        raise ValueError("No raster files given")

    arrays, names = [], []
    grid = None
    crs = None
    for path in paths:
        with rasterio.open(path) as src:
            this_grid = (tuple(src.transform)[:6], src.width, src.height)
            if grid is None:
                grid, crs = this_grid, src.crs
            elif this_grid != grid:
                raise ValueError(f"{path.name} is not on the same grid as {paths[0].name}")

            data = src.read(masked=True).astype("float64").filled(np.nan)
            for i, desc in enumerate(src.descriptions):
                if desc:
                    names.append(desc)
                elif src.count == 1:
                    names.append(path.stem)
                else:
                    names.append(f"{path.stem}_b{i + 1}")
            arrays.append(data)

    cube = np.concatenate(arrays, axis=0)
    ds = _cube_dataset(cube, names, Affine(*grid[0]), crs)
    logger.info("Loaded raster cube: %d bands, %d x %d pixels", *cube.shape)
    return ds


def sample_cube(ds: xr.Dataset, lon, lat, src_crs: str = "EPSG:4326") -> pd.DataFrame:
    """Extract band values at point locations.

    Points are reprojected from `src_crs` to the cube CRS when the cube has
    one. Points that fall outside the grid get NaN.

    Parameters
    ----------
    ds : xr.Dataset
        Cube from load_raster_cube().
    lon, lat : array-like
        Point coordinates in `src_crs`.
    src_crs : str
        CRS of the input points.

    Returns
    -------
    pd.DataFrame
        One row per point, one column per band.
    """
    xs = np.asarray(lon, dtype="float64")
    ys = np.asarray(lat, dtype="float64")

    cube_crs = ds.attrs.get("crs", "")
    if cube_crs and len(xs) and CRS.from_user_input(src_crs) != CRS.from_user_input(cube_crs):
        xs, ys = warp_transform(src_crs, cube_crs, xs.tolist(), ys.tolist())
        xs, ys = np.asarray(xs), np.asarray(ys)

    values = ds[CUBE_VAR].values
    nband, height, width = values.shape
    out = np.full((len(xs), nband), np.nan)

    if len(xs):
        rows, cols = rowcol(Affine(*ds.attrs["transform"]), xs, ys)
        rows = np.asarray(rows, dtype=int)
        cols = np.asarray(cols, dtype=int)
        inside = (rows >= 0) & (rows < height) & (cols >= 0) & (cols < width)
        out[inside] = values[:, rows[inside], cols[inside]].T
        if (~inside).any():
            logger.debug("%d of %d points outside raster grid", int((~inside).sum()), len(xs))

    return pd.DataFrame(out, columns=[str(b) for b in ds["band"].values])


def reproject_cube(ds: xr.Dataset, dst_crs: str, resolution: Optional[float] = None) -> xr.Dataset:
    """Reproject a cube to `dst_crs` with bilinear resampling.

    Raises
    ------
    ValueError
        If the cube has no CRS.
    """
    src_crs = ds.attrs.get("crs", "")
    if not src_crs:
        raise ValueError("Cannot reproject a cube without a CRS")

    src = ds[CUBE_VAR].values
    nband, height, width = src.shape
    src_transform = Affine(*ds.attrs["transform"])
    west, south, east, north = array_bounds(height, width, src_transform)

    dst_transform, dst_width, dst_height = calculate_default_transform(
        src_crs, dst_crs, width, height,
        left=west, bottom=south, right=east, top=north,
        resolution=resolution,
    )
    dst = np.full((nband, dst_height, dst_width), np.nan)
    reproject(
        source=src,
        destination=dst,
        src_transform=src_transform,
        src_crs=src_crs,
        src_nodata=np.nan,
        dst_transform=dst_transform,
        dst_crs=dst_crs,
        dst_nodata=np.nan,
        resampling=Resampling.bilinear,
    )
    logger.info("Reprojected cube %s -> %s (%d x %d)", src_crs, dst_crs, dst_height, dst_width)
    return _cube_dataset(dst, list(ds["band"].values), dst_transform, CRS.from_user_input(dst_crs))

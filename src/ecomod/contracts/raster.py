"""Raster stage contracts.

Enforce that loaded reflectance cubes and classified maps have the layout
the land-cover models expect.
"""

import numpy as np
import xarray as xr
from ecomod.contracts.base import require


def assert_raster_cube(ds: xr.Dataset, var_name: str = "reflectance") -> None:
    """Enforce raster cube contract.

    Called after loading (and optional reprojection) of the satellite cube.

    Raises
    ------
    ContractViolation
        If the reflectance variable, its (band, y, x) layout, or the
        georeferencing attributes are missing
    """
    require(
        var_name in ds.data_vars,
        f"Raster contract violated: missing '{var_name}' variable"
    )
    da = ds[var_name]
    require(
        da.dims == ("band", "y", "x"),
        f"Raster contract violated: '{var_name}' dims are {da.dims}, expected ('band', 'y', 'x')"
    )
    require(
        da.sizes["band"] >= 1,
        "Raster contract violated: cube has no bands"
    )
    for coord in ("x", "y", "band"):
        require(
            coord in ds.coords,
            f"Raster contract violated: missing '{coord}' coordinate"
        )
    require(
        "transform" in ds.attrs,
        "Raster contract violated: missing 'transform' attribute"
    )


def assert_cluster_map(da: xr.DataArray, n_clusters: int, nodata_label: int = 0) -> None:
    """Enforce classified map contract.

    Labels are integers, 2D (y, x), and every value is either the nodata
    label or a class in 1..n_clusters.
    """
    require(
        da.dtype.kind in {"i", "u"},
        f"Cluster contract violated: dtype is {da.dtype}, expected integer"
    )
    require(
        da.ndim == 2,
        f"Cluster contract violated: map has {da.ndim} dims, expected 2"
    )
    values = np.unique(da.values)
    allowed = set(range(1, n_clusters + 1)) | {nodata_label}
    require(
        set(values.tolist()) <= allowed,
        f"Cluster contract violated: unexpected labels {sorted(set(values.tolist()) - allowed)}"
    )

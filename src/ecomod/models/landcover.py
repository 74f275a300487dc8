"""Unsupervised and supervised land-cover classification of raster cubes.

Two classifications of the same reflectance cube:

1. **Unsupervised**: k-means on the pixel x band matrix. Clusters are
   renumbered by size (largest = 1) so that labels are stable across runs
   with the same seed; nodata pixels get the configured nodata label.

2. **Supervised**: reference points (e.g. Geo-Wiki crowd-sourced LULC
   labels) are sampled from the cube, split into training and hold-out
   sets, and a boosted-tree (or random-forest) classifier is fit and
   scored (overall accuracy, Cohen's kappa, confusion matrix). The fitted
   model then classifies every valid pixel.

Class labels may be numbers or names; on the map they are coded 1..n in
sorted order and the mapping is kept in the map attributes.
"""

import logging
from typing import TYPE_CHECKING

import numpy as np
import pandas as pd
import xarray as xr
from sklearn.cluster import KMeans
from sklearn.ensemble import GradientBoostingClassifier, RandomForestClassifier
from sklearn.metrics import accuracy_score, classification_report, cohen_kappa_score, confusion_matrix
from sklearn.model_selection import train_test_split

from ecomod.contracts import assert_raster_cube, require
from ecomod.data.loader import clean_records
from ecomod.data.raster import CUBE_VAR, sample_cube

if TYPE_CHECKING:
    from ecomod.schemas import InternalConfig

__all__ = ['LandCoverClassifier']

logger = logging.getLogger(__name__)


class LandCoverClassifier:
    """Config-driven land-cover clustering and classification.

    Configuration comes from `config.landcover` (number of clusters,
    band subset, reference columns, classifier type and hyperparameters,
    hold-out fraction, nodata label, seed).

    Examples
    --------
    >>> lc = LandCoverClassifier(config)
    >>> clusters = lc.cluster(cube)
    >>> training = lc.prepare_training(reference_df, cube)
    >>> metrics = lc.fit(training)
    >>> classes = lc.predict_map(cube)
    """

    def __init__(self, config: "InternalConfig"):
        self.config = config
        cfg = config.landcover
        self.n_clusters = cfg.n_clusters
        self.bands = cfg.bands
        self.label_column = cfg.label_column
        self.nodata_label = cfg.nodata_label
        self.random_state = cfg.random_state

        self.model = None
        self.classes_ = None
        self.cluster_centers_ = None
        self._bands = None

        logger.info("LandCoverClassifier initialized: k=%d, classifier=%s",
                    self.n_clusters, cfg.classifier)

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _band_names(self, ds: xr.Dataset) -> list:
        available = [str(b) for b in ds["band"].values]
        if self.bands is None:
            return available
        missing = [b for b in self.bands if b not in available]
        if missing:
            raise KeyError(f"Bands not in cube: {missing}")
        return list(self.bands)

    def _pixel_matrix(self, ds: xr.Dataset):
        """(n_pixels, n_bands) matrix and mask of pixels with all bands valid."""
        assert_raster_cube(ds)
        bands = self._band_names(ds)
        values = ds[CUBE_VAR].sel(band=bands).values
        nband = values.shape[0]
        pixels = values.reshape(nband, -1).T
        valid = np.isfinite(pixels).all(axis=1)
        return pixels, valid, bands

    def _as_map(self, labels: np.ndarray, ds: xr.Dataset, attrs: dict) -> xr.DataArray:
        return xr.DataArray(
            labels.reshape(ds.sizes["y"], ds.sizes["x"]),
            dims=("y", "x"),
            coords={"y": ds.y, "x": ds.x},
            attrs=attrs,
        )

    # ------------------------------------------------------------------
    # Unsupervised
    # ------------------------------------------------------------------

    def cluster(self, ds: xr.Dataset) -> xr.DataArray:
        """K-means clustering of cube pixels.

        Returns
        -------
        xr.DataArray
            int32 labels on (y, x): 1..k ordered by decreasing cluster
            size, nodata label where any band is NaN.

        Raises
        ------
        ValueError
            If there are fewer valid pixels than clusters.
        """
        pixels, valid, bands = self._pixel_matrix(ds)
        n_valid = int(valid.sum())
        if n_valid < self.n_clusters:
            raise ValueError(f"Only {n_valid} valid pixels for {self.n_clusters} clusters")

        cfg = self.config.landcover
        km = KMeans(
            n_clusters=self.n_clusters,
            n_init=cfg.kmeans_n_init,
            max_iter=cfg.kmeans_max_iter,
            random_state=self.random_state,
        )
        raw = km.fit_predict(pixels[valid])

        # Renumber: largest=1
        counts = np.bincount(raw, minlength=self.n_clusters)
        order = np.argsort(-counts, kind="stable")
        old_to_new = np.empty(self.n_clusters, dtype=np.int32)
        old_to_new[order] = np.arange(1, self.n_clusters + 1, dtype=np.int32)

        labels = np.full(pixels.shape[0], self.nodata_label, dtype=np.int32)
        labels[valid] = old_to_new[raw]

        self.cluster_centers_ = pd.DataFrame(
            km.cluster_centers_[order], columns=bands,
            index=pd.Index(np.arange(1, self.n_clusters + 1), name="cluster"),
        )
        logger.info("Clustered %d pixels into %d clusters (sizes %s)",
                    n_valid, self.n_clusters, counts[order].tolist())

        return self._as_map(labels, ds, {
            "long_name": "Unsupervised land-cover clusters",
            "units": "1",
            "method": "kmeans",
            "n_clusters": self.n_clusters,
            "nodata_label": self.nodata_label,
        })

    # ------------------------------------------------------------------
    # Supervised
    # ------------------------------------------------------------------

    def prepare_training(self, reference_df: pd.DataFrame, ds: xr.Dataset) -> pd.DataFrame:
        """Sample cube bands at labelled reference points.

        Rows without a label or coordinates, and points whose band values
        are missing (outside the grid or nodata), are dropped.

        Returns
        -------
        pd.DataFrame
            Label column followed by one column per band.
        """
        cfg = self.config.landcover
        ref = clean_records(reference_df, [cfg.lon_column, cfg.lat_column, self.label_column])
        bands = self._band_names(ds)

        sampled = sample_cube(ds, ref[cfg.lon_column], ref[cfg.lat_column], src_crs=cfg.reference_crs)
        training = pd.concat(
            [ref[[self.label_column]].reset_index(drop=True), sampled[bands]], axis=1
        )
        training = clean_records(training, bands)
        logger.info("Training samples: %d of %d reference points", len(training), len(reference_df))
        return training

    def _make_model(self):
        cfg = self.config.landcover
        if cfg.classifier == "random_forest":
            return RandomForestClassifier(
                n_estimators=cfg.n_estimators,
                max_depth=None,
                random_state=self.random_state,
                n_jobs=1,
            )
        return GradientBoostingClassifier(
            n_estimators=cfg.n_estimators,
            learning_rate=cfg.learning_rate,
            max_depth=cfg.max_depth,
            random_state=self.random_state,
        )

    def fit(self, training: pd.DataFrame) -> dict:
        """Fit the classifier on a training split and score the hold-out.

        The split is stratified by class when every class has at least two
        samples.

        Returns
        -------
        dict
            - `accuracy` : float, overall hold-out accuracy
            - `kappa` : float, Cohen's kappa
            - `confusion_matrix` : pd.DataFrame (rows observed, cols predicted)
            - `report` : dict, per-class precision/recall/f1
            - `n_train`, `n_test` : int

        Raises
        ------
        ValueError
            If fewer than two classes are present.
        """
        bands = [c for c in training.columns if c != self.label_column]
        y_raw = training[self.label_column].tolist()
        self.classes_ = sorted(set(y_raw))
        if len(self.classes_) < 2:
            raise ValueError("Supervised classification needs at least two classes")
        if 1 <= self.nodata_label <= len(self.classes_):
            raise ValueError(
                f"nodata_label {self.nodata_label} collides with class codes 1..{len(self.classes_)}"
            )

        codes_by_class = {c: i + 1 for i, c in enumerate(self.classes_)}
        X = training[bands].to_numpy(dtype=float)
        y = np.array([codes_by_class[v] for v in y_raw], dtype=np.int32)

        test_fraction = self.config.landcover.test_fraction
        n_test = int(np.ceil(test_fraction * len(y)))
        n_classes = len(self.classes_)
        counts = pd.Series(y).value_counts()
        can_stratify = counts.min() >= 2 and n_test >= n_classes and len(y) - n_test >= n_classes
        X_train, X_test, y_train, y_test = train_test_split(
            X, y,
            test_size=test_fraction,
            stratify=y if can_stratify else None,
            random_state=self.random_state,
        )

        self.model = self._make_model()
        self.model.fit(X_train, y_train)
        self._bands = bands
        y_pred = self.model.predict(X_test)

        codes = np.arange(1, len(self.classes_) + 1)
        names = [str(c) for c in self.classes_]
        cm = confusion_matrix(y_test, y_pred, labels=codes)
        metrics = {
            "accuracy": float(accuracy_score(y_test, y_pred)),
            "kappa": float(cohen_kappa_score(y_test, y_pred)),
            "confusion_matrix": pd.DataFrame(
                cm,
                index=pd.Index(names, name="observed"),
                columns=pd.Index(names, name="predicted"),
            ),
            "report": classification_report(
                y_test, y_pred, labels=codes, target_names=names,
                output_dict=True, zero_division=0,
            ),
            "n_train": int(len(y_train)),
            "n_test": int(len(y_test)),
        }
        logger.info("Hold-out accuracy=%.3f, kappa=%.3f (n_test=%d)",
                    metrics["accuracy"], metrics["kappa"], metrics["n_test"])
        return metrics

    def predict_map(self, ds: xr.Dataset) -> xr.DataArray:
        """Classify every valid pixel with the fitted model.

        Returns
        -------
        xr.DataArray
            int32 class codes 1..n on (y, x); the `classes` attribute maps
            codes to class labels.
        """
        require(self.model is not None, "predict_map called before fit")
        pixels, valid, bands = self._pixel_matrix(ds)
        require(
            bands == self._bands,
            f"Cube bands {bands} differ from training bands {self._bands}"
        )

        labels = np.full(pixels.shape[0], self.nodata_label, dtype=np.int32)
        if valid.any():
            labels[valid] = self.model.predict(pixels[valid]).astype(np.int32)

        mapping = ";".join(f"{i + 1}={c}" for i, c in enumerate(self.classes_))
        return self._as_map(labels, ds, {
            "long_name": "Supervised land-cover classes",
            "units": "1",
            "method": self.config.landcover.classifier,
            "classes": mapping,
            "nodata_label": self.nodata_label,
        })

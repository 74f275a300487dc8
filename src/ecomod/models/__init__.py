"""Ecological models.

- spatial_cv: Random / spatial / environmental cross-validation of a random forest
- landcover: K-means clustering and supervised classification of raster cubes
- phenology: Growing-degree-day spring phenology model and its calibration
"""

from ecomod.models.spatial_cv import SpatialCrossValidator, assign_folds, summarize_scores, rmse
from ecomod.models.landcover import LandCoverClassifier
from ecomod.models.phenology import (
    gdd_model,
    predict_transition_dates,
    phenology_rmse,
    gcc_transition_dates,
    PhenologyCalibrator,
    CalibrationResult,
)

__all__ = [
    "SpatialCrossValidator",
    "assign_folds",
    "summarize_scores",
    "rmse",
    "LandCoverClassifier",
    "gdd_model",
    "predict_transition_dates",
    "phenology_rmse",
    "gcc_transition_dates",
    "PhenologyCalibrator",
    "CalibrationResult",
]

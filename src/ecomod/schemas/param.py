"""ParamConfig: Expert defaults for ecomod workflows.

This module defines the complete default configuration. ALL workflow
parameters must have defaults here. No runtime code should define
fallback values - this is the single source of truth for defaults.

Runtime code NEVER reads from ParamConfig directly - it only receives InternalConfig.
"""

from typing import Literal, Optional
from pydantic import Field, field_validator, model_validator
from ecomod.schemas.base import EcomodBaseModel


WorkflowName = Literal["spatial_cv", "landcover", "phenology"]
CVStrategy = Literal["random", "spatial", "environmental"]


# =============================================================================
# Nested Configuration Models
# =============================================================================

class DataConfig(EcomodBaseModel):
    """Input dataset sources (local paths or http(s) URLs)."""
    leaf_nitrogen_source: Optional[str] = None
    lulc_reference_source: Optional[str] = None
    raster_sources: list[str] = Field(default_factory=list)
    temperature_source: Optional[str] = None
    transition_source: Optional[str] = None
    gcc_source: Optional[str] = None
    download_timeout_sec: int = Field(120, ge=1, description="HTTP timeout in seconds")
    min_file_size: int = Field(64, ge=1, description="Minimum download size in bytes to consider valid")


class SpatialCVConfig(EcomodBaseModel):
    """Random-forest cross-validation of the leaf nitrogen model."""
    target: str = "leafN"
    covariates: list[str] = Field(
        default_factory=lambda: ["elv", "mat", "map", "ndep", "mai"]
    )
    lon_column: str = "lon"
    lat_column: str = "lat"
    strategies: list[CVStrategy] = Field(
        default_factory=lambda: ["random", "spatial", "environmental"]
    )
    n_folds: int = Field(5, ge=2)
    n_estimators: int = Field(200, ge=1)
    min_samples_leaf: int = Field(5, ge=1)
    max_features: Literal["sqrt", "log2", "all"] = "sqrt"
    random_state: int = 42

    @field_validator("strategies", mode="before")
    @classmethod
    def normalize_strategies(cls, v):
        """Lowercase strategy names and drop duplicates, keeping order."""
        if isinstance(v, str):
            v = [v]
        if isinstance(v, (list, tuple)):
            seen = []
            for item in v:
                name = item.lower().strip() if isinstance(item, str) else item
                if name not in seen:
                    seen.append(name)
            return seen
        return v


class LandCoverConfig(EcomodBaseModel):
    """Unsupervised and supervised land-cover classification."""
    n_clusters: int = Field(6, ge=2)
    kmeans_n_init: int = Field(10, ge=1)
    kmeans_max_iter: int = Field(300, ge=1)
    bands: Optional[list[str]] = None
    label_column: str = "land_cover"
    lon_column: str = "lon"
    lat_column: str = "lat"
    reference_crs: str = "EPSG:4326"
    target_crs: Optional[str] = None
    classifier: Literal["gradient_boosting", "random_forest"] = "gradient_boosting"
    n_estimators: int = Field(100, ge=1)
    learning_rate: float = Field(0.1, gt=0)
    max_depth: int = Field(3, ge=1)
    test_fraction: float = Field(0.3, gt=0, lt=1)
    nodata_label: int = 0
    random_state: int = 42

    @field_validator("classifier", mode="before")
    @classmethod
    def normalize_classifier_name(cls, v):
        """Normalize classifier names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip().replace("-", "_")
        return v


class PhenologyConfig(EcomodBaseModel):
    """Growing-degree-day model and simulated annealing calibration."""
    site: str = "harvard"
    veg_type: str = "DB"
    roi_id: int = 1000
    latitude: float = Field(42.5378, ge=-90, le=90)
    longitude: float = Field(-72.1715, ge=-180, le=180)
    start_year: int = 2008
    end_year: int = 2022
    transition_threshold: Literal[10, 25, 50] = 25
    gcc_value: Literal["gcc_50", "gcc_75", "gcc_90", "gcc_mean"] = "gcc_90"
    gcc_smoothing_days: int = Field(7, ge=1)
    initial_params: tuple[float, float] = (0.0, 130.0)
    lower: tuple[float, float] = (-10.0, 0.0)
    upper: tuple[float, float] = (45.0, 500.0)
    maxiter: int = Field(1000, ge=1)
    seed: int = 42
    unreached_penalty: float = Field(365.0, gt=0, description="Error in days for years where GDD never reaches the threshold")

    @model_validator(mode="after")
    def check_bounds(self):
        """Bounds must be ordered and contain the initial guess."""
        for i, name in enumerate(("t_base", "gdd_crit")):
            if not self.lower[i] < self.upper[i]:
                raise ValueError(f"phenology lower bound must be below upper bound for {name}")
            if not self.lower[i] <= self.initial_params[i] <= self.upper[i]:
                raise ValueError(f"phenology initial {name} outside bounds")
        if self.start_year > self.end_year:
            raise ValueError("phenology start_year must not be after end_year")
        return self


class VisualizationConfig(EcomodBaseModel):
    """Visualization settings."""
    enabled: bool = True
    dpi: int = Field(150, ge=50)
    figsize: tuple[float, float] = (10.0, 6.0)
    output_format: Literal["png", "pdf", "jpeg"] = "png"
    cmap: str = "tab10"


class OutputConfig(EcomodBaseModel):
    """Output file configuration."""
    results_db_name: str = "ecomod_results.db"
    save_netcdf: bool = True
    compression: Literal["zlib", "none"] = "zlib"


class LoggingConfig(EcomodBaseModel):
    """Logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"


# =============================================================================
# Main ParamConfig
# =============================================================================

class ParamConfig(EcomodBaseModel):
    """Complete expert configuration with all defaults.

    This is the single source of truth for all workflow parameters.
    Every tunable parameter MUST have a default here.

    Usage
    -----
    This config is NOT used directly by runtime code. It serves as the
    base layer in config resolution:

        internal_cfg = resolve_config(param_cfg, user_cfg, cli_cfg)

    Runtime code only sees InternalConfig.
    """

    base_dir: Optional[str] = None
    workflows: list[WorkflowName] = Field(
        default_factory=lambda: ["spatial_cv", "landcover", "phenology"]
    )
    data: DataConfig = Field(default_factory=DataConfig)
    spatial_cv: SpatialCVConfig = Field(default_factory=SpatialCVConfig)
    landcover: LandCoverConfig = Field(default_factory=LandCoverConfig)
    phenology: PhenologyConfig = Field(default_factory=PhenologyConfig)
    visualization: VisualizationConfig = Field(default_factory=VisualizationConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

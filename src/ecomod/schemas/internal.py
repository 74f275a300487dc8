"""InternalConfig: Authoritative runtime configuration.

This is the ONLY config schema that runtime code sees. It is fully validated,
normalized, and contains NO optional fields that processing code depends on.

All .get() calls, fallback defaults, and validation logic are FORBIDDEN in
runtime code - everything is explicit here.
"""

from typing import Literal, Optional
from pydantic import Field, ConfigDict, model_validator
from ecomod.schemas.base import EcomodBaseModel
from ecomod.schemas.param import WorkflowName, CVStrategy


# =============================================================================
# Nested Configuration Models (Runtime)
# =============================================================================

class InternalDataConfig(EcomodBaseModel):
    """Runtime data source configuration.

    Note: sources may be None here. A workflow whose inputs are missing
    fails when the orchestrator resolves its inputs, not at config time.
    """
    leaf_nitrogen_source: Optional[str]
    lulc_reference_source: Optional[str]
    raster_sources: list[str]
    temperature_source: Optional[str]
    transition_source: Optional[str]
    gcc_source: Optional[str]
    download_timeout_sec: int
    min_file_size: int


class InternalSpatialCVConfig(EcomodBaseModel):
    """Runtime cross-validation configuration."""
    target: str
    covariates: list[str] = Field(min_length=1)
    lon_column: str
    lat_column: str
    strategies: list[CVStrategy] = Field(min_length=1)
    n_folds: int = Field(ge=2)
    n_estimators: int
    min_samples_leaf: int
    max_features: Literal["sqrt", "log2", "all"]
    random_state: int

    @model_validator(mode="after")
    def target_not_a_covariate(self):
        """The response variable cannot also be a predictor."""
        if self.target in self.covariates:
            raise ValueError(f"spatial_cv target '{self.target}' is listed in covariates")
        return self


class InternalLandCoverConfig(EcomodBaseModel):
    """Runtime land-cover configuration."""
    n_clusters: int = Field(ge=2)
    kmeans_n_init: int
    kmeans_max_iter: int
    bands: Optional[list[str]]
    label_column: str
    lon_column: str
    lat_column: str
    reference_crs: str
    target_crs: Optional[str]
    classifier: Literal["gradient_boosting", "random_forest"]
    n_estimators: int
    learning_rate: float
    max_depth: int
    test_fraction: float = Field(gt=0, lt=1)
    nodata_label: int
    random_state: int

    @model_validator(mode="after")
    def nodata_outside_class_range(self):
        """Classes are numbered 1..k; the nodata label must not collide."""
        if 1 <= self.nodata_label <= self.n_clusters:
            raise ValueError(
                f"landcover nodata_label {self.nodata_label} collides with cluster labels 1..{self.n_clusters}"
            )
        return self


class InternalPhenologyConfig(EcomodBaseModel):
    """Runtime phenology configuration."""
    site: str
    veg_type: str
    roi_id: int
    latitude: float
    longitude: float
    start_year: int
    end_year: int
    transition_threshold: Literal[10, 25, 50]
    gcc_value: Literal["gcc_50", "gcc_75", "gcc_90", "gcc_mean"]
    gcc_smoothing_days: int
    initial_params: tuple[float, float]
    lower: tuple[float, float]
    upper: tuple[float, float]
    maxiter: int
    seed: int
    unreached_penalty: float

    @model_validator(mode="after")
    def check_bounds(self):
        """Re-check bounds after merging user and CLI overrides."""
        for i, name in enumerate(("t_base", "gdd_crit")):
            if not self.lower[i] < self.upper[i]:
                raise ValueError(f"phenology lower bound must be below upper bound for {name}")
            if not self.lower[i] <= self.initial_params[i] <= self.upper[i]:
                raise ValueError(f"phenology initial {name} outside bounds")
        if self.start_year > self.end_year:
            raise ValueError("phenology start_year must not be after end_year")
        return self


class InternalVisualizationConfig(EcomodBaseModel):
    """Runtime visualization settings."""
    enabled: bool
    dpi: int
    figsize: tuple[float, float]
    output_format: Literal["png", "pdf", "jpeg"]
    cmap: str


class InternalOutputConfig(EcomodBaseModel):
    """Runtime output configuration."""
    results_db_name: str
    save_netcdf: bool
    compression: Literal["zlib", "none"]


class InternalLoggingConfig(EcomodBaseModel):
    """Runtime logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


# =============================================================================
# Main InternalConfig
# =============================================================================

class InternalConfig(EcomodBaseModel):
    """Authoritative runtime configuration.

    This is the ONLY configuration schema that processing code sees.
    It is fully validated, immutable, and contains explicit values for
    all parameters (no None for fields that runtime depends on).

    Usage
    -----
    Runtime modules receive InternalConfig and access fields directly:

        def __init__(self, config: InternalConfig):
            self.n_folds = config.spatial_cv.n_folds  # NOT .get()
            self.seed = config.phenology.seed

    Rules
    -----
    - NO .get() calls
    - NO fallback defaults
    - NO type checking
    - NO validation

    All of that happens during config resolution, not in runtime code.
    """

    base_dir: Optional[str]
    workflows: list[WorkflowName] = Field(min_length=1)
    data: InternalDataConfig
    spatial_cv: InternalSpatialCVConfig
    landcover: InternalLandCoverConfig
    phenology: InternalPhenologyConfig
    visualization: InternalVisualizationConfig
    output: InternalOutputConfig
    logging: InternalLoggingConfig
    run_id: Optional[str] = None
    output_dirs: dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(
        extra='forbid',
        validate_assignment=True,
        use_enum_values=True,
        str_strip_whitespace=True,
        frozen=True,  # Immutable after construction
    )

"""UserConfig: Forgiving, minimal user-facing configuration.

This schema accepts user inputs in a variety of formats, with aliases
for common naming patterns (e.g., N_FOLDS → n_folds, BASE_DIR → base_dir).

UserConfig is intentionally minimal - users only specify what they want
to override from the expert defaults. Validation is lenient to accept
both uppercase and lowercase keys, integers where floats are expected, etc.
"""

from typing import Optional, Any
from pydantic import Field, field_validator
from ecomod.schemas.base import EcomodBaseModel


def _normalize_name_list(v):
    """Accept a single name or a list of names; lowercase, dedupe."""
    if isinstance(v, str):
        v = [part for part in v.replace(",", " ").split() if part]
    if isinstance(v, (list, tuple)):
        out = []
        for item in v:
            name = item.lower().strip().replace("-", "_") if isinstance(item, str) else item
            if name not in out:
                out.append(name)
        return out
    return v


class UserSpatialCVConfig(EcomodBaseModel):
    """User-facing cross-validation config."""
    target: Optional[str] = None
    covariates: Optional[list[str]] = None
    lon_column: Optional[str] = None
    lat_column: Optional[str] = None
    strategies: Optional[list[str]] = None
    n_folds: Optional[int] = None
    n_estimators: Optional[int] = None
    min_samples_leaf: Optional[int] = None
    max_features: Optional[str] = None
    random_state: Optional[int] = None

    @field_validator("strategies", mode="before")
    @classmethod
    def normalize_strategies(cls, v):
        """Accept 'spatial' or ['Spatial', 'random']."""
        return _normalize_name_list(v)


class UserLandCoverConfig(EcomodBaseModel):
    """User-facing land-cover config."""
    n_clusters: Optional[int] = None
    kmeans_n_init: Optional[int] = None
    kmeans_max_iter: Optional[int] = None
    bands: Optional[list[str]] = None
    label_column: Optional[str] = None
    lon_column: Optional[str] = None
    lat_column: Optional[str] = None
    reference_crs: Optional[str] = None
    target_crs: Optional[str] = None
    classifier: Optional[str] = None
    n_estimators: Optional[int] = None
    learning_rate: Optional[float] = None
    max_depth: Optional[int] = None
    test_fraction: Optional[float] = None
    nodata_label: Optional[int] = None
    random_state: Optional[int] = None

    @field_validator("classifier", mode="before")
    @classmethod
    def normalize_classifier(cls, v):
        """Normalize classifier names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip().replace("-", "_")
        return v


class UserPhenologyConfig(EcomodBaseModel):
    """User-facing phenology config."""
    site: Optional[str] = None
    veg_type: Optional[str] = None
    roi_id: Optional[int] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    start_year: Optional[int] = None
    end_year: Optional[int] = None
    transition_threshold: Optional[int] = None
    gcc_value: Optional[str] = None
    gcc_smoothing_days: Optional[int] = None
    initial_params: Optional[tuple[float, float]] = None
    lower: Optional[tuple[float, float]] = None
    upper: Optional[tuple[float, float]] = None
    maxiter: Optional[int] = None
    seed: Optional[int] = None
    unreached_penalty: Optional[float] = None


class UserConfig(EcomodBaseModel):
    """User-facing configuration schema.

    Minimal, forgiving, and uses common aliases. Users only specify
    what they want to override from ParamConfig defaults.

    This config is converted to internal overrides during resolution.

    Usage
    -----
        user_cfg = UserConfig(
            base_dir="/data/ecomod",
            leaf_nitrogen_source="https://example.org/leafn.csv",
            n_folds=5,
            phenocam_site="harvard",
        )

        internal = resolve_config(param_cfg, user_cfg, cli_cfg)
    """

    # Top-level operational settings
    base_dir: Optional[str] = Field(None, alias="BASE_DIR")
    workflows: Optional[list[str]] = Field(None, alias="WORKFLOWS")

    # Data sources (flat aliases)
    leaf_nitrogen_source: Optional[str] = Field(None, alias="LEAF_NITROGEN_SOURCE")
    lulc_reference_source: Optional[str] = Field(None, alias="LULC_REFERENCE_SOURCE")
    raster_sources: Optional[list[str]] = Field(None, alias="RASTER_SOURCES")
    temperature_source: Optional[str] = Field(None, alias="TEMPERATURE_SOURCE")
    transition_source: Optional[str] = Field(None, alias="TRANSITION_SOURCE")
    gcc_source: Optional[str] = Field(None, alias="GCC_SOURCE")

    # Cross-validation settings (flat aliases)
    target: Optional[str] = Field(None, alias="TARGET")
    covariates: Optional[list[str]] = Field(None, alias="COVARIATES")
    cv_strategies: Optional[list[str]] = Field(None, alias="CV_STRATEGIES")
    n_folds: Optional[int] = Field(None, alias="N_FOLDS")
    n_estimators: Optional[int] = Field(None, alias="N_ESTIMATORS")

    # Land-cover settings (flat aliases)
    n_clusters: Optional[int] = Field(None, alias="N_CLUSTERS")
    classifier: Optional[str] = Field(None, alias="CLASSIFIER")
    label_column: Optional[str] = Field(None, alias="LABEL_COLUMN")

    # Phenology settings (flat aliases)
    phenocam_site: Optional[str] = Field(None, alias="PHENOCAM_SITE")
    start_year: Optional[int] = Field(None, alias="START_YEAR")
    end_year: Optional[int] = Field(None, alias="END_YEAR")
    initial_params: Optional[tuple[float, float]] = Field(None, alias="INITIAL_PARAMS")

    # Shared
    random_state: Optional[int] = Field(None, alias="RANDOM_STATE")

    # Nested overrides (advanced users)
    data: Optional[dict[str, Any]] = None
    spatial_cv: Optional[UserSpatialCVConfig] = None
    landcover: Optional[UserLandCoverConfig] = None
    phenology: Optional[UserPhenologyConfig] = None
    visualization: Optional[dict[str, Any]] = None
    output: Optional[dict[str, Any]] = None

    model_config = EcomodBaseModel.model_config.copy()
    # Allow forgiving input dictionaries (ignore unknown legacy keys)
    model_config.update({"populate_by_name": True, "extra": "ignore"})

    @field_validator("workflows", "cv_strategies", mode="before")
    @classmethod
    def normalize_name_lists(cls, v):
        """Accept a single name, a comma separated string, or a list."""
        return _normalize_name_list(v)

    @field_validator("raster_sources", "covariates", mode="before")
    @classmethod
    def coerce_to_list(cls, v):
        """Accept a single string where a list is expected."""
        if isinstance(v, str):
            return [v]
        return v

    @field_validator("classifier", mode="before")
    @classmethod
    def normalize_classifier(cls, v):
        """Normalize classifier names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip().replace("-", "_")
        return v

    def to_internal_overrides(self) -> dict:
        """Convert flat UserConfig to nested InternalConfig structure.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        if self.base_dir is not None:
            overrides["base_dir"] = str(self.base_dir)
        if self.workflows is not None:
            overrides["workflows"] = self.workflows

        # Data section
        data = {}
        for key in ("leaf_nitrogen_source", "lulc_reference_source", "raster_sources",
                    "temperature_source", "transition_source", "gcc_source"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.data is not None:
            data.update(self.data)
        if data:
            overrides["data"] = data

        # Cross-validation section
        spatial_cv = {}
        if self.target is not None:
            spatial_cv["target"] = self.target
        if self.covariates is not None:
            spatial_cv["covariates"] = self.covariates
        if self.cv_strategies is not None:
            spatial_cv["strategies"] = self.cv_strategies
        if self.n_folds is not None:
            spatial_cv["n_folds"] = self.n_folds
        if self.n_estimators is not None:
            spatial_cv["n_estimators"] = self.n_estimators
        if self.random_state is not None:
            spatial_cv["random_state"] = self.random_state

        # Merge with explicit spatial_cv config
        if self.spatial_cv is not None:
            spatial_cv.update(self.spatial_cv.model_dump(exclude_none=True))
        if spatial_cv:
            overrides["spatial_cv"] = spatial_cv

        # Land-cover section
        landcover = {}
        if self.n_clusters is not None:
            landcover["n_clusters"] = self.n_clusters
        if self.classifier is not None:
            landcover["classifier"] = self.classifier
        if self.label_column is not None:
            landcover["label_column"] = self.label_column
        if self.random_state is not None:
            landcover["random_state"] = self.random_state

        if self.landcover is not None:
            landcover.update(self.landcover.model_dump(exclude_none=True))
        if landcover:
            overrides["landcover"] = landcover

        # Phenology section
        phenology = {}
        if self.phenocam_site is not None:
            phenology["site"] = self.phenocam_site
        if self.start_year is not None:
            phenology["start_year"] = self.start_year
        if self.end_year is not None:
            phenology["end_year"] = self.end_year
        if self.initial_params is not None:
            phenology["initial_params"] = self.initial_params
        if self.random_state is not None:
            phenology["seed"] = self.random_state

        if self.phenology is not None:
            phenology.update(self.phenology.model_dump(exclude_none=True))
        if phenology:
            overrides["phenology"] = phenology

        if self.visualization is not None:
            overrides["visualization"] = dict(self.visualization)
        if self.output is not None:
            overrides["output"] = dict(self.output)

        return overrides

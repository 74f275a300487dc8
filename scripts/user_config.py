"""ecomod User Configuration.

This is the user-facing configuration file. Modify settings here to customize
the workflows. Expert defaults live in ecomod.schemas.param.ParamConfig.

Usage:
    python scripts/run_workflows.py scripts/user_config.py
    python scripts/run_workflows.py scripts/user_config.py --workflows phenology
    ecomod scripts/user_config.py --random-state 7
"""

CONFIG = {
    # ========================================================================
    # RUN
    # ========================================================================
    "BASE_DIR": "./ecomod_output",     # All outputs go here
    "WORKFLOWS": ["spatial_cv", "landcover", "phenology"],
    "RANDOM_STATE": 42,                # Seeds CV, k-means, classifiers and annealing

    # ========================================================================
    # LEAF NITROGEN CROSS-VALIDATION
    # ========================================================================
    "LEAF_NITROGEN_SOURCE": "data/leafN.csv",   # URL or local CSV
    "TARGET": "leafN",
    "COVARIATES": ["elv", "mat", "map", "ndep", "mai"],
    "CV_STRATEGIES": ["random", "spatial", "environmental"],
    "N_FOLDS": 5,
    "N_ESTIMATORS": 200,

    # ========================================================================
    # LAND COVER
    # ========================================================================
    "RASTER_SOURCES": ["data/reflectance.tif"],  # One or more GeoTIFFs on one grid
    "LULC_REFERENCE_SOURCE": None,     # Geo-Wiki style CSV (lon, lat, land_cover)
    "N_CLUSTERS": 6,
    "CLASSIFIER": "gradient_boosting", # or "random_forest"
    "LABEL_COLUMN": "land_cover",

    # ========================================================================
    # PHENOLOGY
    # ========================================================================
    # Leave TEMPERATURE_SOURCE / TRANSITION_SOURCE unset to download Daymet
    # and PhenoCam data for the site below.
    "PHENOCAM_SITE": "harvard",
    "START_YEAR": 2008,
    "END_YEAR": 2022,
    "INITIAL_PARAMS": (0, 130),        # (t_base [°C], gdd_crit [°C day])
    "phenology": {
        "veg_type": "DB",
        "roi_id": 1000,
        "latitude": 42.5378,
        "longitude": -72.1715,
    },

    # ========================================================================
    # OUTPUT
    # ========================================================================
    "visualization": {"enabled": True, "dpi": 150, "output_format": "png"},
}

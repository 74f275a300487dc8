"""Test config resolution and validation with Pydantic."""

import pytest
from pydantic import ValidationError

from ecomod.schemas import ParamConfig, UserConfig, CLIConfig, InternalConfig, resolve_config
from ecomod.schemas.param import PhenologyConfig
from ecomod.schemas.resolve import deep_merge

pytestmark = pytest.mark.unit


class TestConfigResolution:
    """Test resolve_config() precedence and merging."""

    def test_resolve_config_all_defaults(self):
        """Resolving with no user/CLI overrides uses all ParamConfig defaults."""
        config = resolve_config(ParamConfig(), None, None)

        assert isinstance(config, InternalConfig)
        assert config.workflows == ["spatial_cv", "landcover", "phenology"]
        assert config.spatial_cv.n_folds == 5
        assert config.spatial_cv.strategies == ["random", "spatial", "environmental"]
        assert config.landcover.classifier == "gradient_boosting"
        assert config.phenology.initial_params == (0.0, 130.0)
        assert config.phenology.lower == (-10.0, 0.0)
        assert config.phenology.upper == (45.0, 500.0)
        assert config.data.leaf_nitrogen_source is None

    def test_user_config_overrides_param_config(self):
        config = resolve_config(ParamConfig(), UserConfig(N_FOLDS=10), None)

        assert config.spatial_cv.n_folds == 10

    def test_cli_overrides_user(self):
        user = UserConfig(BASE_DIR="/from/user", WORKFLOWS=["spatial_cv"])
        cli = CLIConfig(base_dir="/from/cli", workflows=["phenology"])
        config = resolve_config(ParamConfig(), user, cli)

        assert config.base_dir == "/from/cli"
        assert config.workflows == ["phenology"]

    def test_user_value_kept_when_cli_silent(self):
        user = UserConfig(BASE_DIR="/from/user")
        config = resolve_config(ParamConfig(), user, CLIConfig(log_level="debug"))

        assert config.base_dir == "/from/user"
        assert config.logging.level == "DEBUG"

    def test_accepts_plain_dicts(self):
        config = resolve_config({}, {"N_CLUSTERS": 4}, {"random_state": 3})

        assert config.landcover.n_clusters == 4
        assert config.landcover.random_state == 3

    def test_nested_override_merges_with_defaults(self):
        user = UserConfig(phenology={"site": "bartlettir", "maxiter": 50})
        config = resolve_config(ParamConfig(), user, None)

        assert config.phenology.site == "bartlettir"
        assert config.phenology.maxiter == 50
        # untouched defaults survive the merge
        assert config.phenology.veg_type == "DB"

    def test_internal_config_is_frozen(self, internal_config):
        with pytest.raises(ValidationError):
            internal_config.base_dir = "/elsewhere"


class TestRandomState:
    """A single seed reaches every workflow."""

    def test_user_random_state_seeds_all_workflows(self):
        config = resolve_config(ParamConfig(), UserConfig(RANDOM_STATE=7), None)

        assert config.spatial_cv.random_state == 7
        assert config.landcover.random_state == 7
        assert config.phenology.seed == 7

    def test_cli_random_state_wins(self):
        config = resolve_config(ParamConfig(), UserConfig(RANDOM_STATE=7), CLIConfig(random_state=11))

        assert config.spatial_cv.random_state == 11
        assert config.phenology.seed == 11


class TestValidation:
    """Invalid combinations are rejected at resolution time."""

    def test_n_folds_below_two_rejected(self):
        with pytest.raises(ValidationError):
            resolve_config(ParamConfig(), UserConfig(N_FOLDS=1), None)

    def test_unknown_workflow_rejected(self):
        with pytest.raises(ValidationError):
            resolve_config(ParamConfig(), UserConfig(WORKFLOWS=["forecast"]), None)

    def test_unknown_strategy_rejected(self):
        with pytest.raises(ValidationError):
            resolve_config(ParamConfig(), UserConfig(CV_STRATEGIES=["temporal"]), None)

    def test_target_in_covariates_rejected(self):
        with pytest.raises(ValidationError, match="covariates"):
            resolve_config(ParamConfig(), UserConfig(TARGET="mat"), None)

    def test_initial_params_outside_bounds_rejected(self):
        with pytest.raises(ValidationError, match="outside bounds"):
            resolve_config(ParamConfig(), UserConfig(INITIAL_PARAMS=(60, 130)), None)

    def test_inverted_bounds_rejected(self):
        with pytest.raises(ValidationError, match="below upper bound"):
            PhenologyConfig(lower=(10.0, 0.0), upper=(5.0, 500.0), initial_params=(7.0, 100.0))

    def test_start_after_end_rejected(self):
        with pytest.raises(ValidationError, match="start_year"):
            resolve_config(ParamConfig(), UserConfig(START_YEAR=2020, END_YEAR=2010), None)

    def test_test_fraction_must_be_open_interval(self):
        with pytest.raises(ValidationError):
            resolve_config(ParamConfig(), UserConfig(landcover={"test_fraction": 1.0}), None)

    def test_nodata_label_colliding_with_clusters_rejected(self):
        with pytest.raises(ValidationError, match="nodata_label"):
            resolve_config(ParamConfig(), UserConfig(landcover={"nodata_label": 2}), None)

    def test_unknown_data_key_rejected(self):
        with pytest.raises(ValidationError):
            resolve_config(ParamConfig(), UserConfig(data={"leaf_source": "x.csv"}), None)


class TestDeepMerge:

    def test_nested_dicts_are_merged(self):
        base = {"a": 1, "b": {"c": 2, "d": 3}}
        override = {"b": {"d": 4, "e": 5}, "f": 6}

        assert deep_merge(base, override) == {"a": 1, "b": {"c": 2, "d": 4, "e": 5}, "f": 6}

    def test_later_overrides_win(self):
        assert deep_merge({"a": 1}, {"a": 2}, {"a": 3}) == {"a": 3}

    def test_base_not_mutated(self):
        base = {"b": {"c": 2}}
        deep_merge(base, {"b": {"c": 9}})

        assert base == {"b": {"c": 2}}

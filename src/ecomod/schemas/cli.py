"""CLIConfig: Command-line operational overrides.

Minimal configuration for operational parameters that commonly change
between runs: output directory, which workflows to run, seed, verbosity.

This schema handles command-line arguments parsed by argparse.
"""

from typing import Literal, Optional
from pydantic import field_validator
from ecomod.schemas.base import EcomodBaseModel
from ecomod.schemas.user import _normalize_name_list


class CLIConfig(EcomodBaseModel):
    """Command-line configuration overrides.

    Operational-only settings that override user and param configs.
    Highest priority in config resolution.

    Notes
    -----
    A random_state given on the command line reseeds every workflow
    (cross-validation, land-cover models and annealing) at once.

    Usage
    -----
        cli_cfg = CLIConfig(
            base_dir="/scratch/ecomod_output",
            workflows=["phenology"],
            log_level="DEBUG",
        )

        internal = resolve_config(param_cfg, user_cfg, cli_cfg)
    """

    base_dir: Optional[str] = None
    workflows: Optional[list[str]] = None
    random_state: Optional[int] = None
    log_level: Optional[Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]] = None

    @field_validator("workflows", mode="before")
    @classmethod
    def normalize_workflows(cls, v):
        """Accept 'spatial_cv,phenology' as well as a list."""
        return _normalize_name_list(v)

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, v):
        """Accept lowercase level names."""
        if isinstance(v, str):
            return v.upper().strip()
        return v

    def to_internal_overrides(self) -> dict:
        """Convert CLI config to internal config structure.

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

        if self.random_state is not None:
            overrides["spatial_cv"] = {"random_state": self.random_state}
            overrides["landcover"] = {"random_state": self.random_state}
            overrides["phenology"] = {"seed": self.random_state}

        if self.log_level is not None:
            overrides["logging"] = {"level": self.log_level}

        return overrides

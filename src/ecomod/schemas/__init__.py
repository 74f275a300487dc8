"""Pydantic configuration schemas for ecomod workflows.

This module provides strictly typed configuration models for the
cross-validation, land-cover and phenology workflows. All configuration
validation, coercion, and normalization happens at schema validation time
via Pydantic.

Exports
-------
resolve_config : function
    Single entrypoint for configuration resolution
InternalConfig : class
    Fully validated, authoritative runtime configuration
ParamConfig : class
    Expert defaults (complete)
UserConfig : class
    User-facing configuration (forgiving, minimal)
CLIConfig : class
    Command-line operational overrides
"""

from ecomod.schemas.resolve import resolve_config
from ecomod.schemas.internal import InternalConfig
from ecomod.schemas.param import ParamConfig
from ecomod.schemas.user import UserConfig
from ecomod.schemas.cli import CLIConfig

__all__ = [
    'resolve_config',
    'InternalConfig',
    'ParamConfig',
    'UserConfig',
    'CLIConfig',
]

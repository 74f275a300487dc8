"""Core workflow execution logic.

This module contains the actual runner, separated from argument parsing.
Scripts are thin wrappers; this is the real implementation.
"""

import json
import shutil
import argparse
import logging
import importlib.util
from pathlib import Path
from typing import Optional, Dict, Any

from ecomod.setup_directories import setup_output_directories, DEFAULT_BASE_DIR
from ecomod.pipeline.orchestrator import WorkflowOrchestrator
from ecomod.pipeline.result_store import new_run_id
from ecomod.schemas import resolve_config, ParamConfig, UserConfig, CLIConfig


logger = logging.getLogger(__name__)


def load_user_config_dict(config_path: str) -> dict:
    """Load user config dict from Python file.

    Returns the raw dict before Pydantic validation.

    Parameters
    ----------
    config_path : str
        Path to user config Python file containing CONFIG dict.

    Returns
    -------
    dict
        Raw user configuration dictionary.

    Raises
    ------
    FileNotFoundError
        If config file does not exist.
    ValueError
        If no CONFIG dict found in file.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")

    spec = importlib.util.spec_from_file_location("config_module", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    config = getattr(module, "CONFIG", None)
    if isinstance(config, dict):
        return config

    raise ValueError(f"No CONFIG dict found in {path}")


def run_workflows(
    user_config_path: str,
    cli_args: Optional[Dict[str, Any]] = None,
    rerun: bool = False,
    verbose: bool = False,
    session=None,
) -> dict:
    """Execute the configured ecological workflows.

    This is the core execution function. It:
    1. Loads and resolves configuration (Param < User < CLI)
    2. Optionally cleans the output directory if rerun=True
    3. Sets up output directories and saves the resolved config
    4. Runs the workflow orchestrator

    Parameters
    ----------
    user_config_path : str
        Path to user config file (Python file with CONFIG dict).

    cli_args : dict, optional
        CLI argument overrides. Keys: base_dir, workflows, random_state,
        log_level. All optional; None values are ignored.

    rerun : bool, optional
        If True, delete the output directory before running.

    verbose : bool, optional
        If True, enable DEBUG logging and print full resolved config.

    session : requests.Session, optional
        HTTP session for downloads (testing).

    Returns
    -------
    dict
        `{workflow: result}` from WorkflowOrchestrator.run().

    Raises
    ------
    FileNotFoundError
        If user_config_path does not exist.
    ValueError
        If configuration validation fails or a workflow input is missing.

    Examples
    --------
    Run with user config only::

        run_workflows("scripts/user_config.py")

    Run only the phenology workflow with a different seed::

        run_workflows(
            "scripts/user_config.py",
            cli_args={"workflows": ["phenology"], "random_state": 7},
        )
    """
    param_cfg = ParamConfig()

    user_cfg_dict = load_user_config_dict(user_config_path)
    user_cfg = UserConfig.model_validate(user_cfg_dict)

    cli_args = dict(cli_args or {})
    if verbose and not cli_args.get("log_level"):
        cli_args["log_level"] = "DEBUG"

    cli_dict = {k: v for k, v in cli_args.items() if v is not None}
    cli_cfg = CLIConfig.model_validate(cli_dict) if cli_dict else CLIConfig()

    config = resolve_config(param_cfg, user_cfg, cli_cfg)

    base_dir = Path(config.base_dir or Path.cwd() / DEFAULT_BASE_DIR).expanduser()
    if rerun and base_dir.exists():
        print(f"Cleaning output directory: {base_dir}")
        shutil.rmtree(base_dir)

    output_dirs = setup_output_directories(base_dir)

    run_id = new_run_id()
    config = config.model_copy(update={
        "run_id": run_id,
        "output_dirs": {k: str(v) for k, v in output_dirs.items()},
    })

    runtime_config_path = output_dirs["results"] / f"runtime_config_{run_id}.json"
    runtime_config_path.write_text(json.dumps(config.model_dump(), indent=2))

    print(f"\n{'='*60}")
    print("ecomod workflows")
    print('='*60)
    print(f"Config:    {user_config_path}")
    print(f"Workflows: {', '.join(config.workflows)}")
    print(f"Output:    {output_dirs['base']}")
    print(f"Run:       {run_id}")
    print('='*60)

    if verbose:
        print("\nFull Internal Configuration:")
        print(json.dumps(config.model_dump(), indent=2))
        print('='*60)

    orchestrator = WorkflowOrchestrator(config, output_dirs, session=session)
    return orchestrator.run()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ecomod",
        description="Run the ecomod environmental modelling workflows",
    )
    parser.add_argument("config", help="Path to user config file")
    parser.add_argument("--base-dir", help="Output directory")
    parser.add_argument("--workflows",
                        help="Comma-separated workflows to run (spatial_cv, landcover, phenology)")
    parser.add_argument("--random-state", type=int, help="Seed for every workflow")
    parser.add_argument("--log-level", help="Logging level (DEBUG, INFO, WARNING, ...)")
    parser.add_argument("--rerun", action="store_true", help="Delete output directory before running")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv=None) -> int:
    """Console entry point (``ecomod``)."""
    args = build_parser().parse_args(argv)
    run_workflows(
        args.config,
        cli_args={
            "base_dir": args.base_dir,
            "workflows": args.workflows,
            "random_state": args.random_state,
            "log_level": args.log_level,
        },
        rerun=args.rerun,
        verbose=args.verbose,
    )
    return 0

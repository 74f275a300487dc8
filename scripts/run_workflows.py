#!/usr/bin/env python3
"""ecomod workflow runner.

Usage:
    python scripts/run_workflows.py scripts/user_config.py
    python scripts/run_workflows.py scripts/user_config.py --workflows spatial_cv,phenology
    python scripts/run_workflows.py scripts/user_config.py --base-dir /tmp/ecomod -v

Note: User config in scripts/user_config.py, expert config in ecomod.schemas.param
"""

import sys
from pathlib import Path

# Add src to path
project_root = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(project_root / "src"))

from ecomod.cli.run_workflow import main


if __name__ == "__main__":
    sys.exit(main())

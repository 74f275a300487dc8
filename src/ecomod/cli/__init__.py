"""Command-line interface modules for ecomod workflow execution.

This package contains core execution logic, making scripts/ optional and deletable.
"""

from ecomod.cli.run_workflow import run_workflows, main

__all__ = ['run_workflows', 'main']

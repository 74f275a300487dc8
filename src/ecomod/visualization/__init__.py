"""Plotting of workflow results."""

from .plotter import WorkflowPlotter

__all__ = ['WorkflowPlotter']

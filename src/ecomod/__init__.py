"""`ecomod` - Environmental and ecological modelling workflows.

Subpackages:
- data: Dataset download, tabular and raster loading
- models: Spatial cross-validation, land-cover classification, phenology
- pipeline: Orchestrator, workflow processors, result store
- visualization: Plotting
"""

__version__ = "0.1.0"

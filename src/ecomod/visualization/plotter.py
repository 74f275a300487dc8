"""Workflow result plots.

Renders cross-validation scores, out-of-fold predictions, land-cover maps
and phenology model fits to image files. Uses the Agg backend so plots can
be produced on headless machines.
"""

import logging
from pathlib import Path
from typing import Optional, TYPE_CHECKING

import numpy as np
import pandas as pd
import xarray as xr
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
from matplotlib.colors import BoundaryNorm, ListedColormap

if TYPE_CHECKING:
    from ecomod.schemas import InternalConfig

__all__ = ['WorkflowPlotter']

logger = logging.getLogger(__name__)


class WorkflowPlotter:
    """Generates figures for the three workflows.

    **Plots:**

    - `plot_cv_scores`: per-fold RMSE and R² for each CV strategy (box plots)
    - `plot_observed_vs_predicted`: out-of-fold predictions against
      observations, one panel per strategy, with a 1:1 line
    - `plot_landcover_map`: categorical cluster/class map, nodata blank
    - `plot_phenology_fit`: observed vs. modelled transition DOY by year

    **Configuration:**

    DPI, figure size, output format and the categorical colormap come from
    `config.visualization`. When `enabled` is False every method returns
    None without drawing.

    **Output:**

    Each method takes an output path; the suffix is replaced with the
    configured format and the written path is returned as a string.

    Example usage::

        plotter = WorkflowPlotter(config)
        path = plotter.plot_cv_scores(scores, output_dirs["plots"] / "cv_scores")
    """

    def __init__(self, config: "InternalConfig"):
        viz = config.visualization
        self.enabled = viz.enabled
        self.dpi = viz.dpi
        self.figsize = tuple(viz.figsize)
        self.output_format = viz.output_format
        self.cmap = viz.cmap
        logger.info(f"WorkflowPlotter initialized (format={self.output_format}, dpi={self.dpi})")

    def _save_figure(self, fig: plt.Figure, output_path: Path | str) -> str:
        """Save figure in configured format."""
        output_file = Path(output_path).with_suffix(f'.{self.output_format}')
        output_file.parent.mkdir(parents=True, exist_ok=True)

        fig.savefig(
            output_file,
            dpi=self.dpi,
            bbox_inches='tight',
            format=self.output_format
        )
        plt.close(fig)
        logger.info(f"Plot saved: {output_file}")
        return str(output_file)

    def plot_cv_scores(self, scores: pd.DataFrame, output_path: Path | str,
                       title: str = "Cross-validation") -> Optional[str]:
        """Box plots of fold RMSE and R² per strategy."""
        if not self.enabled:
            return None

        strategies = list(dict.fromkeys(scores["strategy"]))
        fig, (ax1, ax2) = plt.subplots(1, 2, figsize=self.figsize, dpi=self.dpi)

        for ax, metric, label in ((ax1, "rmse", "RMSE"), (ax2, "r2", "R²")):
            data = [scores.loc[scores["strategy"] == s, metric].dropna().to_numpy() for s in strategies]
            ax.boxplot(data)
            ax.set_xticks(range(1, len(strategies) + 1))
            ax.set_xticklabels(strategies)
            for i, values in enumerate(data, start=1):
                ax.scatter(np.full(len(values), i), values, s=12, color='#333333', alpha=0.7, zorder=3)
            ax.set_ylabel(label)
            ax.grid(True, alpha=0.2, linestyle=':', linewidth=0.5)

        ax2.axhline(0, color='grey', linewidth=0.8)
        fig.suptitle(title, fontsize=12, fontweight='bold')
        return self._save_figure(fig, output_path)

    def plot_observed_vs_predicted(self, predictions: pd.DataFrame, output_path: Path | str,
                                   target: str = "target") -> Optional[str]:
        """Scatter of out-of-fold predictions, one panel per strategy."""
        if not self.enabled:
            return None

        strategies = list(dict.fromkeys(predictions["strategy"]))
        fig, axes = plt.subplots(1, len(strategies), figsize=self.figsize, dpi=self.dpi,
                                 squeeze=False, sharex=True, sharey=True)

        lo = float(min(predictions["observed"].min(), predictions["predicted"].min()))
        hi = float(max(predictions["observed"].max(), predictions["predicted"].max()))
        for ax, strategy in zip(axes[0], strategies):
            sub = predictions[predictions["strategy"] == strategy]
            ax.scatter(sub["observed"], sub["predicted"], s=10, alpha=0.6)
            ax.plot([lo, hi], [lo, hi], color='k', linewidth=0.8, linestyle='--')
            ax.set_title(strategy)
            ax.set_xlabel(f"Observed {target}")
            ax.grid(True, alpha=0.2, linestyle=':', linewidth=0.5)
        axes[0][0].set_ylabel(f"Predicted {target}")

        return self._save_figure(fig, output_path)

    def plot_landcover_map(self, label_map: xr.DataArray, output_path: Path | str,
                           title: Optional[str] = None) -> Optional[str]:
        """Categorical map of cluster or class labels.

        Pixels equal to the map's `nodata_label` attribute are left blank.
        """
        if not self.enabled:
            return None

        nodata = label_map.attrs.get("nodata_label", 0)
        values = np.ma.masked_equal(label_map.values, nodata)
        n_labels = int(values.max()) if values.count() else 1

        base = plt.get_cmap(self.cmap)
        colors = [base(i % base.N) for i in range(n_labels)]
        cmap = ListedColormap(colors)
        norm = BoundaryNorm(np.arange(0.5, n_labels + 1.5), cmap.N)

        x = label_map["x"].values
        y = label_map["y"].values
        fig, ax = plt.subplots(figsize=self.figsize, dpi=self.dpi)
        mesh = ax.pcolormesh(x, y, values, cmap=cmap, norm=norm, shading='nearest')
        cbar = fig.colorbar(mesh, ax=ax, ticks=np.arange(1, n_labels + 1))
        cbar.set_label("label")
        ax.set_aspect('equal')
        ax.set_xlabel('x')
        ax.set_ylabel('y')
        ax.set_title(title or label_map.attrs.get("long_name", "Land cover"),
                     fontsize=12, fontweight='bold')

        return self._save_figure(fig, output_path)

    def plot_phenology_fit(self, observed: pd.DataFrame, predicted: pd.DataFrame,
                           output_path: Path | str, title: str = "GDD spring phenology") -> Optional[str]:
        """Observed and modelled transition DOY per year, plus a 1:1 panel."""
        if not self.enabled:
            return None

        merged = observed.merge(predicted, on="year", suffixes=("_obs", "_pred")).sort_values("year")
        fig, (ax1, ax2) = plt.subplots(1, 2, figsize=self.figsize, dpi=self.dpi)

        ax1.plot(merged["year"], merged["doy_obs"], marker='o', label='observed')
        ax1.plot(merged["year"], merged["doy_pred"], marker='s', linestyle='--', label='GDD model')
        ax1.set_xlabel("Year")
        ax1.set_ylabel("Transition DOY")
        ax1.legend(loc='upper right', fontsize=10, framealpha=0.9)
        ax1.grid(True, alpha=0.2, linestyle=':', linewidth=0.5)

        ax2.scatter(merged["doy_obs"], merged["doy_pred"])
        finite = merged[["doy_obs", "doy_pred"]].to_numpy(dtype=float)
        finite = finite[np.isfinite(finite).all(axis=1)]
        if len(finite):
            lo, hi = float(finite.min()) - 2, float(finite.max()) + 2
            ax2.plot([lo, hi], [lo, hi], color='k', linewidth=0.8, linestyle='--')
        ax2.set_xlabel("Observed DOY")
        ax2.set_ylabel("Predicted DOY")
        ax2.grid(True, alpha=0.2, linestyle=':', linewidth=0.5)

        fig.suptitle(title, fontsize=12, fontweight='bold')
        return self._save_figure(fig, output_path)

"""
Evaluation and Visualization Module.

Modules:
    metrics: Height error statistics and percentile coverage
    plots: Stability traces, Monte Carlo histograms and fusion history
"""

from .metrics import (
    compute_error_stats,
    compute_height_errors,
    compute_rmse,
    percentile_coverage,
)
from .plots import (
    plot_fusion_history,
    plot_height_distribution,
    plot_stability_trace,
    rolling_sd_deg,
    save_figure,
)

__all__ = [
    # Metrics
    "compute_height_errors",
    "compute_rmse",
    "compute_error_stats",
    "percentile_coverage",
    # Plots
    "plot_stability_trace",
    "plot_height_distribution",
    "plot_fusion_history",
    "rolling_sd_deg",
    "save_figure",
]

"""
Visualization utilities for height measurement.

All functions return matplotlib Figure objects for flexible display/saving.
"""

from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import matplotlib.pyplot as plt
import numpy as np

from heightcore.config import StabilityConfig
from heightcore.fusion.types import FusionHistoryEntry
from heightcore.measure.types import PercentileRange


def plot_stability_trace(
    t_ms: np.ndarray,
    pitch_deg: np.ndarray,
    sd_deg: Optional[np.ndarray] = None,
    capture_times_ms: Sequence[int] = (),
    config: Optional[StabilityConfig] = None,
    title: str = "Handheld Pitch and Stability",
) -> plt.Figure:
    """
    Plot pitch over time, with the windowed SD against the gate thresholds.

    Args:
        t_ms: Sample times, shape (N,)
        pitch_deg: Pitch in degrees, shape (N,)
        sd_deg: Windowed SD per tick, shape (N,) (optional; NaN where the
                window is too short)
        capture_times_ms: Times at which a capture fired
        config: Thresholds to draw (default StabilityConfig())
        title: Plot title

    Returns:
        fig: Matplotlib figure
    """
    config = config if config is not None else StabilityConfig()
    t_s = (np.asarray(t_ms) - t_ms[0]) / 1000.0
    n_rows = 2 if sd_deg is not None else 1

    fig, axes = plt.subplots(n_rows, 1, figsize=(12, 4 * n_rows), sharex=True)
    if n_rows == 1:
        axes = [axes]

    ax = axes[0]
    ax.plot(t_s, pitch_deg, color="blue", linewidth=1.0, label="Pitch")
    for i, tc in enumerate(capture_times_ms):
        ax.axvline(
            (tc - t_ms[0]) / 1000.0,
            color="green",
            linestyle="--",
            linewidth=1.5,
            label="Capture" if i == 0 else None,
        )
    ax.set_ylabel("Pitch (deg)", fontsize=12)
    ax.set_title(title, fontsize=14, fontweight="bold")
    ax.legend(fontsize=10)
    ax.grid(True, alpha=0.3)

    if sd_deg is not None:
        ax = axes[1]
        ax.plot(t_s, sd_deg, color="black", linewidth=1.5, label="Window SD")
        ax.axhline(config.shaky_sd_deg, color="red", linestyle="--", label="Shaky")
        ax.axhline(config.ready_sd_deg, color="green", linestyle="--", label="Ready")
        ax.set_ylabel("SD (deg)", fontsize=12)
        ax.set_yscale("log")
        ax.legend(fontsize=10)
        ax.grid(True, alpha=0.3, which="both")

    axes[-1].set_xlabel("Time (s)", fontsize=12)
    plt.tight_layout()
    return fig


def plot_height_distribution(
    heights_m: np.ndarray,
    point_estimate_m: Optional[float] = None,
    percentile_range: Optional[PercentileRange] = None,
    truth_m: Optional[float] = None,
    bins: int = 40,
    title: str = "Monte Carlo Height Distribution",
) -> plt.Figure:
    """
    Histogram of Monte Carlo heights with the reported interval.

    Args:
        heights_m: Finite perturbed heights, shape (N,)
        point_estimate_m: Unperturbed height (optional)
        percentile_range: p10/p90 to shade (optional)
        truth_m: True height (optional)
        bins: Number of histogram bins
        title: Plot title

    Returns:
        fig: Matplotlib figure
    """
    fig, ax = plt.subplots(figsize=(10, 6))
    ax.hist(heights_m, bins=bins, color="blue", alpha=0.6, edgecolor="black", label="Draws")

    if percentile_range is not None:
        ax.axvspan(
            percentile_range.p10,
            percentile_range.p90,
            color="orange",
            alpha=0.2,
            label="p10-p90",
        )
    if point_estimate_m is not None:
        ax.axvline(point_estimate_m, color="red", linewidth=2, label="Estimate")
    if truth_m is not None:
        ax.axvline(truth_m, color="black", linestyle="--", linewidth=2, label="Truth")

    ax.set_xlabel("Height (m)", fontsize=12)
    ax.set_ylabel("Frequency", fontsize=12)
    ax.set_title(title, fontsize=14, fontweight="bold")
    ax.legend(fontsize=10)
    ax.grid(True, alpha=0.3, axis="y")

    plt.tight_layout()
    return fig


def plot_fusion_history(
    history: Sequence[FusionHistoryEntry],
    truth_m: Optional[float] = None,
    title: str = "Vision/Sensor Height Fusion",
) -> plt.Figure:
    """
    Plot fused height with its 1-sigma band and the raw inputs per update.

    Args:
        history: Entries from HeightFusion.get_history()
        truth_m: True height (optional)
        title: Plot title

    Returns:
        fig: Matplotlib figure

    Raises:
        ValueError: If history is empty.
    """
    if not history:
        raise ValueError("history must not be empty")

    k = np.arange(1, len(history) + 1)
    fused = np.array([e.fused_height_m for e in history])
    sigma = np.array([e.fused_uncertainty_m for e in history])
    vision = np.array([e.vision.height_m if e.vision is not None else np.nan for e in history])
    sensor = np.array([e.sensor.height_m if e.sensor is not None else np.nan for e in history])

    fig, ax = plt.subplots(figsize=(10, 6))
    ax.plot(k, vision, "s", color="purple", alpha=0.6, label="Vision")
    ax.plot(k, sensor, "o", color="orange", alpha=0.6, label="Sensor")
    ax.plot(k, fused, "-", color="blue", linewidth=2, label="Fused")
    ax.fill_between(k, fused - sigma, fused + sigma, color="blue", alpha=0.15, label="±1σ")
    if truth_m is not None:
        ax.axhline(truth_m, color="black", linestyle="--", linewidth=1.5, label="Truth")

    ax.set_xlabel("Update", fontsize=12)
    ax.set_ylabel("Height (m)", fontsize=12)
    ax.set_title(title, fontsize=14, fontweight="bold")
    ax.legend(fontsize=10)
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    return fig


def save_figure(
    fig: plt.Figure,
    out_dir: Union[str, Path],
    name: str,
    formats: Tuple[str, ...] = ("svg", "pdf", "png"),
) -> List[Path]:
    """
    Save figure in multiple formats.

    Args:
        fig: Matplotlib figure to save
        out_dir: Output directory
        name: Base filename (without extension)
        formats: Tuple of format extensions

    Returns:
        paths: List of saved file paths
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    paths = []
    for fmt in formats:
        filepath = out_dir / f"{name}.{fmt}"
        fig.savefig(filepath, dpi=150, bbox_inches="tight")
        paths.append(filepath)

    return paths


def rolling_sd_deg(t_ms: np.ndarray, pitch_deg: np.ndarray, window_ms: int) -> np.ndarray:
    """
    Sample SD of pitch over the trailing window_ms at every sample time.

    NaN where fewer than two samples are in the window. Intended for plotting
    alongside plot_stability_trace.
    """
    t_ms = np.asarray(t_ms)
    pitch_deg = np.asarray(pitch_deg, dtype=float)
    out = np.full(t_ms.size, np.nan)
    start = np.searchsorted(t_ms, t_ms - window_ms, side="left")
    for i, s in enumerate(start):
        if i - s + 1 >= 2:
            out[i] = np.std(pitch_deg[s : i + 1], ddof=1)
    return out

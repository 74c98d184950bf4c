"""
Monte Carlo uncertainty for BaseTop measurements.

Both BaseTop angles are noisy hand-held captures, and tan() near steep
angles turns symmetric angle noise into an asymmetric, heavy-tailed height
distribution. Instead of linearising, we sample:

    θ1⁽ⁱ⁾ ~ N(θ1, σ1²),  θ2⁽ⁱ⁾ ~ N(θ2, σ2²),   i = 1..N
    θ1⁽ⁱ⁾ ← sign(θ1⁽ⁱ⁾) · max(|θ1⁽ⁱ⁾|, θ_min)       (keeps tan(θ1) away from 0)
    h⁽ⁱ⁾  = BaseTop(h0, θ1⁽ⁱ⁾, θ2⁽ⁱ⁾)

Non-finite draws are discarded. The reported range is the empirical
lower/upper percentile of the remaining heights ("lower" interpolation, so
every reported value is an actual draw). A 1-sigma equivalent is derived
from the range assuming normality:

    σ ≈ (p_hi - p_lo) / (Φ⁻¹(hi) - Φ⁻¹(lo))

The point estimate is the unperturbed BaseTop height, not the median.
"""

from dataclasses import dataclass, field
from typing import Optional

import numpy as np
from scipy import stats

from heightcore.config import UncertaintyConfig
from heightcore.errors import ErrorKind, MeasurementIssue
from heightcore.measure.geometry import height_from_base_top
from heightcore.measure.types import BaseTopInput, HeightEstimate, PercentileRange


@dataclass(frozen=True)
class UncertaintyResult:
    """
    Outcome of a Monte Carlo run.

    Attributes:
        estimate: Point estimate with uncertainty and percentile range, or
            None when the run failed.
        median_m: Median of the finite draws.
        n_valid: Number of finite draws kept.
        issue: NON_FINITE_RESULT issue when no usable draw remained.
        heights: The finite draws, for plotting and diagnostics.
    """

    estimate: Optional[HeightEstimate] = None
    median_m: Optional[float] = None
    n_valid: int = 0
    issue: Optional[MeasurementIssue] = None
    heights: Optional[np.ndarray] = field(default=None, repr=False, compare=False)

    @property
    def ok(self) -> bool:
        return self.issue is None


def sigma_from_percentiles(p_lo: float, p_hi: float, lo: float = 10.0, hi: float = 90.0) -> float:
    """
    1-sigma equivalent of a percentile range under a normal assumption.

    Example:
        >>> round(sigma_from_percentiles(-1.2815515655446004, 1.2815515655446004), 6)
        1.0
    """
    z_span = stats.norm.ppf(hi / 100.0) - stats.norm.ppf(lo / 100.0)
    return float((p_hi - p_lo) / z_span)


def _non_finite(message: str) -> UncertaintyResult:
    return UncertaintyResult(issue=MeasurementIssue(ErrorKind.NON_FINITE_RESULT, message))


def estimate_height_uncertainty(
    eye_height_m: float,
    base_angle_rad: float,
    top_angle_rad: float,
    base_sd_rad: Optional[float] = None,
    top_sd_rad: Optional[float] = None,
    n_samples: Optional[int] = None,
    config: Optional[UncertaintyConfig] = None,
    rng: Optional[np.random.Generator] = None,
) -> UncertaintyResult:
    """
    Propagate angle noise through the BaseTop formula by sampling.

    Args:
        eye_height_m: Device height above ground.
        base_angle_rad: Captured base angle (median).
        top_angle_rad: Captured top angle (median).
        base_sd_rad: Base angle SD; config.default_sd_deg when None.
        top_sd_rad: Top angle SD; config.default_sd_deg when None.
        n_samples: Number of draws; config.n_samples when None. Values
            below config.min_samples are raised to it.
        config: Monte Carlo settings.
        rng: Random generator (for reproducibility). Default: new generator.

    Returns:
        UncertaintyResult with the estimate, or a NON_FINITE_RESULT issue.

    Raises:
        ValueError: If a supplied SD is negative.

    Example:
        >>> rng = np.random.default_rng(0)
        >>> r = estimate_height_uncertainty(1.6, np.deg2rad(-20), np.deg2rad(40), rng=rng)
        >>> r.estimate.percentile_range.p10 <= r.estimate.height_m <= r.estimate.percentile_range.p90
        True
    """
    config = config if config is not None else UncertaintyConfig()
    if rng is None:
        rng = np.random.default_rng()

    default_sd = float(np.deg2rad(config.default_sd_deg))
    sd_base = default_sd if base_sd_rad is None else float(base_sd_rad)
    sd_top = default_sd if top_sd_rad is None else float(top_sd_rad)
    if sd_base < 0 or sd_top < 0:
        raise ValueError(f"Angle SDs must be non-negative, got {sd_base}, {sd_top}")

    n = max(config.min_samples, config.n_samples if n_samples is None else int(n_samples))

    point, _ = height_from_base_top(eye_height_m, base_angle_rad, top_angle_rad)
    if not np.isfinite(point):
        return _non_finite("Point estimate is not finite. Recapture the base angle.")

    base = rng.normal(base_angle_rad, sd_base, size=n)
    top = rng.normal(top_angle_rad, sd_top, size=n)
    min_base = np.deg2rad(config.min_base_deg)
    base = np.sign(base) * np.maximum(np.abs(base), min_base)

    heights, _ = height_from_base_top(eye_height_m, base, top)
    heights = heights[np.isfinite(heights)]
    if heights.size == 0:
        return _non_finite("No finite Monte Carlo draws. Recapture both angles.")

    p_lo, p_med, p_hi = np.percentile(
        heights,
        [config.lower_percentile, 50.0, config.upper_percentile],
        method="lower",
    )
    sigma = sigma_from_percentiles(p_lo, p_hi, config.lower_percentile, config.upper_percentile)

    estimate = HeightEstimate(
        height_m=float(point),
        uncertainty_m=max(0.0, sigma),
        percentile_range=PercentileRange(p10=float(p_lo), p90=float(p_hi)),
    )
    return UncertaintyResult(
        estimate=estimate,
        median_m=float(p_med),
        n_valid=int(heights.size),
        heights=heights,
    )


def estimate_base_top_uncertainty(
    inp: BaseTopInput,
    n_samples: Optional[int] = None,
    config: Optional[UncertaintyConfig] = None,
    rng: Optional[np.random.Generator] = None,
) -> UncertaintyResult:
    """Run estimate_height_uncertainty on a BaseTopInput."""
    return estimate_height_uncertainty(
        inp.eye_height_m,
        inp.base_angle_rad,
        inp.top_angle_rad,
        base_sd_rad=inp.base_sd_rad,
        top_sd_rad=inp.top_sd_rad,
        n_samples=n_samples,
        config=config,
        rng=rng,
    )

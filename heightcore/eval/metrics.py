"""
Evaluation metrics for height measurements.

Used by the demos and the dataset tools to score repeated measurements of a
target with known height.
"""

from typing import Dict, Optional, Union

import numpy as np


def compute_height_errors(truth_m: Union[float, np.ndarray], estimated_m: np.ndarray) -> np.ndarray:
    """
    Signed errors estimated - truth.

    Args:
        truth_m: True height(s), scalar or shape (N,).
        estimated_m: Estimated heights, shape (N,).

    Returns:
        errors: Shape (N,).

    Raises:
        ValueError: If an array truth does not match the estimates.
    """
    estimated_m = np.asarray(estimated_m, dtype=float)
    truth_m = np.asarray(truth_m, dtype=float)
    if truth_m.ndim > 0 and truth_m.shape != estimated_m.shape:
        raise ValueError(f"Shape mismatch: truth {truth_m.shape} vs estimated {estimated_m.shape}")
    return estimated_m - truth_m


def compute_rmse(errors: np.ndarray) -> float:
    errors = np.asarray(errors, dtype=float)
    return float(np.sqrt(np.mean(errors**2)))


def compute_error_stats(errors: np.ndarray) -> Dict[str, float]:
    """
    Summary statistics of height errors.

    Returns:
        stats: Dictionary with keys 'bias' (mean signed error), 'mae',
            'median', 'std', 'rmse', 'p90', 'max' (the last five on
            absolute errors except 'std').
    """
    errors = np.asarray(errors, dtype=float)
    abs_err = np.abs(errors)
    return {
        "bias": float(np.mean(errors)),
        "mae": float(np.mean(abs_err)),
        "median": float(np.median(abs_err)),
        "std": float(np.std(errors)),
        "rmse": compute_rmse(errors),
        "p90": float(np.percentile(abs_err, 90)),
        "max": float(np.max(abs_err)),
    }


def percentile_coverage(
    truth_m: Union[float, np.ndarray],
    p10: np.ndarray,
    p90: np.ndarray,
) -> Optional[float]:
    """
    Fraction of [p10, p90] intervals that contain the true height.

    For a well calibrated Monte Carlo this tends to 0.8. Intervals with a
    NaN bound (no result) are skipped.

    Returns:
        Coverage in [0, 1], or None if no interval is usable.
    """
    p10 = np.asarray(p10, dtype=float)
    p90 = np.asarray(p90, dtype=float)
    truth = np.broadcast_to(np.asarray(truth_m, dtype=float), p10.shape)
    valid = np.isfinite(p10) & np.isfinite(p90)
    if not np.any(valid):
        return None
    hits = (p10[valid] <= truth[valid]) & (truth[valid] <= p90[valid])
    return float(np.mean(hits))

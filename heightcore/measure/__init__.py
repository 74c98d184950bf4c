"""
Geometric height solvers and Monte Carlo uncertainty.

Modules:
    types: Per-mode inputs (tagged by MeasurementMode), HeightEstimate,
        GeometryResult
    geometry: Paced, BaseTop and TwoStop formulas plus validated solvers
    uncertainty: Monte Carlo propagation of angle noise for BaseTop

Example:
    >>> import numpy as np
    >>> from heightcore.measure import BaseTopInput, compute_height
    >>> r = compute_height(BaseTopInput(1.6, np.deg2rad(-20), np.deg2rad(40)))
    >>> r.ok
    True
"""

from heightcore.measure.geometry import (
    compute_height,
    height_from_base_top,
    height_from_distance,
    horizontal_distance_from_base,
    paced_distance,
    solve_base_top,
    solve_paced,
    solve_two_stop,
    two_stop_solution,
    validate_base_angle,
    validate_eye_height,
    validate_paced_distance,
)
from heightcore.measure.types import (
    BaseTopInput,
    GeometryResult,
    HeightEstimate,
    MeasurementInput,
    MeasurementMode,
    PacedInput,
    PercentileRange,
    TwoStopInput,
)
from heightcore.measure.uncertainty import (
    UncertaintyResult,
    estimate_base_top_uncertainty,
    estimate_height_uncertainty,
    sigma_from_percentiles,
)

__all__ = [
    # Types
    "BaseTopInput",
    "GeometryResult",
    "HeightEstimate",
    "MeasurementInput",
    "MeasurementMode",
    "PacedInput",
    "PercentileRange",
    "TwoStopInput",
    # Geometry
    "compute_height",
    "height_from_base_top",
    "height_from_distance",
    "horizontal_distance_from_base",
    "paced_distance",
    "solve_base_top",
    "solve_paced",
    "solve_two_stop",
    "two_stop_solution",
    "validate_base_angle",
    "validate_eye_height",
    "validate_paced_distance",
    # Uncertainty
    "UncertaintyResult",
    "estimate_base_top_uncertainty",
    "estimate_height_uncertainty",
    "sigma_from_percentiles",
]

"""
Trigonometric height solvers.

Three measurement modes, all assuming flat ground and a vertical object:

Paced (known horizontal distance d, top elevation θ):
    h = h_cam + d * tan(θ)

BaseTop (eye height h0, base depression θ1, top elevation θ2):
    d' = h0 / tan(|θ1|)
    h  = h0 + d' * tan(θ2)

TwoStop (eye height h0, forward step L, far top angle A1, near top angle A2):
    h - h0 = D * tan(A1) = (D - L) * tan(A2)
    ⇒ D = L * tan(A2) / (tan(A2) - tan(A1))
       h = h0 + D * tan(A1)

The raw formulas (height_from_distance, height_from_base_top,
two_stop_solution) accept scalars or arrays and perform no validation; the
Monte Carlo estimator calls them vectorised. The solve_* functions apply the
validity limits and return a GeometryResult carrying either the height or a
MeasurementIssue with a re-prompt hint.
"""

from typing import Optional, Tuple, Union

import numpy as np

from heightcore.config import GeometryLimits
from heightcore.errors import (
    ErrorKind,
    GeometryReason,
    MeasurementIssue,
    geometry_issue,
)
from heightcore.measure.types import (
    BaseTopInput,
    GeometryResult,
    MeasurementInput,
    PacedInput,
    TwoStopInput,
)
from heightcore.utils.angles import angle_separation_deg

ArrayLike = Union[float, np.ndarray]


def _as_output(value: np.ndarray) -> ArrayLike:
    if np.ndim(value) == 0:
        return float(value)
    return value


def height_from_distance(camera_height_m: ArrayLike, distance_m: ArrayLike, top_angle_rad: ArrayLike) -> ArrayLike:
    """
    Height from a known horizontal distance and one top elevation.

    Example:
        >>> round(height_from_distance(1.5, 10.0, np.deg2rad(45.0)), 6)
        11.5
    """
    return _as_output(np.asarray(camera_height_m) + np.asarray(distance_m) * np.tan(top_angle_rad))


def height_from_base_top(
    eye_height_m: ArrayLike,
    base_angle_rad: ArrayLike,
    top_angle_rad: ArrayLike,
) -> Tuple[ArrayLike, ArrayLike]:
    """
    Height and implied horizontal distance from a base/top angle pair.

    Only the magnitude of the base angle is used, so the sign convention of
    the depression angle does not matter.

    Args:
        eye_height_m: Device height above ground.
        base_angle_rad: Angle to the base of the object.
        top_angle_rad: Angle to the top of the object.

    Returns:
        (height_m, distance_m). Non-finite where |base| is 0.

    Example:
        >>> h, d = height_from_base_top(1.6, np.deg2rad(-45.0), np.deg2rad(45.0))
        >>> round(h, 6), round(d, 6)
        (3.2, 1.6)
    """
    eye = np.asarray(eye_height_m, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        distance = eye / np.tan(np.abs(base_angle_rad))
        height = eye + distance * np.tan(top_angle_rad)
    return _as_output(height), _as_output(distance)


def two_stop_solution(
    eye_height_m: float,
    step_forward_m: float,
    far_angle_rad: float,
    near_angle_rad: float,
) -> Tuple[float, float]:
    """
    Two-station triangulation.

    Args:
        eye_height_m: Device height above ground (same at both stations).
        step_forward_m: Distance walked straight towards the object.
        far_angle_rad: Top elevation from the far station (A1).
        near_angle_rad: Top elevation from the near station (A2).

    Returns:
        (height_m, far_distance_m). Non-finite when A1 == A2.
    """
    t1 = np.tan(far_angle_rad)
    t2 = np.tan(near_angle_rad)
    with np.errstate(divide="ignore", invalid="ignore"):
        distance = step_forward_m * t2 / (t2 - t1)
        height = eye_height_m + distance * t1
    return float(height), float(distance)


def horizontal_distance_from_base(eye_height_m: float, base_angle_rad: float) -> Optional[float]:
    """Estimated distance d' = h0 / tan(|θ1|), or None when not finite."""
    _, distance = height_from_base_top(eye_height_m, base_angle_rad, 0.0)
    return distance if np.isfinite(distance) else None


def paced_distance(steps: float, step_length_m: float) -> float:
    """
    Horizontal distance covered by pacing.

    Raises:
        ValueError: If steps is negative or step_length_m not positive.
    """
    if steps < 0:
        raise ValueError(f"steps must be non-negative, got {steps}")
    if step_length_m <= 0:
        raise ValueError(f"step_length_m must be positive, got {step_length_m}")
    return float(steps * step_length_m)


def validate_eye_height(eye_height_m: float, limits: Optional[GeometryLimits] = None) -> Optional[MeasurementIssue]:
    """Return an issue if the eye height is outside the plausible range."""
    limits = limits if limits is not None else GeometryLimits()
    if not np.isfinite(eye_height_m) or not (
        limits.eye_height_min_m <= eye_height_m <= limits.eye_height_max_m
    ):
        return geometry_issue(
            GeometryReason.EYE_HEIGHT_OUT_OF_RANGE,
            f"Eye height should be between {limits.eye_height_min_m:g} m "
            f"and {limits.eye_height_max_m:g} m.",
        )
    return None


def validate_paced_distance(distance_m: float, limits: Optional[GeometryLimits] = None) -> Optional[MeasurementIssue]:
    """Return DISTANCE_OUT_OF_RANGE if a paced distance is outside the allowed range."""
    limits = limits if limits is not None else GeometryLimits()
    if not (limits.paced_min_distance_m <= distance_m <= limits.paced_max_distance_m):
        return geometry_issue(
            GeometryReason.DISTANCE_OUT_OF_RANGE,
            f"Distance must be between {limits.paced_min_distance_m:g} m "
            f"and {limits.paced_max_distance_m:g} m.",
        )
    return None


def validate_base_angle(base_angle_rad: float, limits: Optional[GeometryLimits] = None) -> Optional[MeasurementIssue]:
    """
    Check a base capture on its own, before the top is taken.

    Returns:
        TOO_SHALLOW or TOO_STEEP issue, or None if the angle is usable.
    """
    limits = limits if limits is not None else GeometryLimits()
    base_abs_deg = abs(float(np.rad2deg(base_angle_rad)))
    if base_abs_deg < limits.base_min_deg:
        return geometry_issue(
            GeometryReason.TOO_SHALLOW,
            "Base angle too small. Move farther and recapture.",
        )
    if base_abs_deg > limits.base_max_deg:
        return geometry_issue(
            GeometryReason.TOO_STEEP,
            "Base angle too large. Move closer and recapture.",
        )
    return None


def _finish(
    height_m: float,
    distance_m: Optional[float],
    near_distance_m: Optional[float] = None,
) -> GeometryResult:
    values = [height_m] + [v for v in (distance_m, near_distance_m) if v is not None]
    if not all(np.isfinite(v) for v in values):
        return GeometryResult.failure(
            MeasurementIssue(
                ErrorKind.NON_FINITE_RESULT,
                "Geometry is degenerate. Change position and recapture.",
            )
        )
    if any(v < 0 for v in values):
        return GeometryResult.failure(
            geometry_issue(
                GeometryReason.NEGATIVE_RESULT,
                "Result is negative. Check the capture order and recapture.",
            )
        )
    return GeometryResult(
        height_m=float(height_m),
        distance_m=None if distance_m is None else float(distance_m),
        near_distance_m=None if near_distance_m is None else float(near_distance_m),
    )


def solve_paced(inp: PacedInput, limits: Optional[GeometryLimits] = None) -> GeometryResult:
    """
    Validated Paced solve.

    Rejects a distance outside [paced_min_distance_m, paced_max_distance_m]
    (DISTANCE_OUT_OF_RANGE) and |θ| < paced_min_top_deg (TOO_SMALL).
    """
    limits = limits if limits is not None else GeometryLimits()
    issue = validate_paced_distance(inp.distance_m, limits)
    if issue is not None:
        return GeometryResult.failure(issue)
    if abs(np.rad2deg(inp.top_angle_rad)) < limits.paced_min_top_deg:
        return GeometryResult.failure(
            geometry_issue(
                GeometryReason.TOO_SMALL,
                "Angle too small; move closer or lower the phone.",
            )
        )
    height = height_from_distance(inp.camera_height_m, inp.distance_m, inp.top_angle_rad)
    return _finish(height, inp.distance_m)


def solve_base_top(inp: BaseTopInput, limits: Optional[GeometryLimits] = None) -> GeometryResult:
    """
    Validated BaseTop solve.

    Rejects |θ1| < base_min_deg (TOO_SHALLOW), |θ1| > base_max_deg
    (TOO_STEEP) and θ2 - θ1 < base_top_min_separation_deg
    (TOO_SMALL_SEPARATION).

    Example:
        >>> r = solve_base_top(BaseTopInput(1.6, np.deg2rad(-20), np.deg2rad(40)))
        >>> r.ok
        True
    """
    limits = limits if limits is not None else GeometryLimits()
    issue = validate_base_angle(inp.base_angle_rad, limits)
    if issue is not None:
        return GeometryResult.failure(issue)
    if angle_separation_deg(inp.base_angle_rad, inp.top_angle_rad) < limits.base_top_min_separation_deg:
        return GeometryResult.failure(
            geometry_issue(
                GeometryReason.TOO_SMALL_SEPARATION,
                "Angle difference too small. Aim higher or move closer, then recapture the top.",
            )
        )
    height, distance = height_from_base_top(inp.eye_height_m, inp.base_angle_rad, inp.top_angle_rad)
    return _finish(height, distance)


def solve_two_stop(inp: TwoStopInput, limits: Optional[GeometryLimits] = None) -> GeometryResult:
    """
    Validated TwoStop solve.

    Rejects |A1 - A2| < two_stop_min_separation_deg (TOO_SIMILAR), then a
    non-finite (NON_FINITE_RESULT) or negative (NEGATIVE_RESULT) height or
    distance. distance_m is the far-station distance D and near_distance_m
    is D - L.
    """
    limits = limits if limits is not None else GeometryLimits()
    separation = abs(angle_separation_deg(inp.far_angle_rad, inp.near_angle_rad))
    if separation < limits.two_stop_min_separation_deg:
        return GeometryResult.failure(
            geometry_issue(
                GeometryReason.TOO_SIMILAR,
                "Angles too similar. Walk farther and recapture.",
            )
        )
    height, distance = two_stop_solution(
        inp.eye_height_m, inp.step_forward_m, inp.far_angle_rad, inp.near_angle_rad
    )
    return _finish(height, distance, distance - inp.step_forward_m)


def compute_height(inp: MeasurementInput, limits: Optional[GeometryLimits] = None) -> GeometryResult:
    """
    Dispatch to the solver for the input's measurement mode.

    Raises:
        TypeError: If inp is not one of the mode input types.
    """
    if isinstance(inp, PacedInput):
        return solve_paced(inp, limits)
    if isinstance(inp, BaseTopInput):
        return solve_base_top(inp, limits)
    if isinstance(inp, TwoStopInput):
        return solve_two_stop(inp, limits)
    raise TypeError(f"Unsupported measurement input: {type(inp).__name__}")

"""
Data types for geometric height measurement.

Each measurement mode carries its own input type, so a BaseTop measurement
can never be built with a paced distance and a Paced measurement never
carries a base angle:

    PacedInput    camera height + horizontal distance + top angle
    BaseTopInput  eye height + base angle + top angle
    TwoStopInput  eye height + forward step + far/near top angles

Solvers return a GeometryResult holding either a height or a
MeasurementIssue, never a silent default.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

import numpy as np

from heightcore.errors import MeasurementIssue


class MeasurementMode(str, Enum):
    PACED = "paced"
    BASE_TOP = "base_top"
    TWO_STOP = "two_stop"


def _check_finite(**values: float) -> None:
    for name, value in values.items():
        if not np.isfinite(value):
            raise ValueError(f"{name} must be finite, got {value}")


def _check_sd(name: str, value: Optional[float]) -> None:
    if value is not None and (not np.isfinite(value) or value < 0):
        raise ValueError(f"{name} must be a non-negative finite number, got {value}")


@dataclass(frozen=True)
class PacedInput:
    """
    Paced-distance measurement: one top angle at a known distance.

    Attributes:
        camera_height_m: Height of the device above the ground.
        distance_m: Horizontal distance to the object.
        top_angle_rad: Elevation to the top of the object.
    """

    camera_height_m: float
    distance_m: float
    top_angle_rad: float

    mode = MeasurementMode.PACED

    def __post_init__(self) -> None:
        _check_finite(
            camera_height_m=self.camera_height_m,
            distance_m=self.distance_m,
            top_angle_rad=self.top_angle_rad,
        )


@dataclass(frozen=True)
class BaseTopInput:
    """
    Two-angle measurement from a single station.

    Attributes:
        eye_height_m: Height of the device above the ground.
        base_angle_rad: Elevation to the base (normally negative).
        top_angle_rad: Elevation to the top.
        base_sd_rad: Optional angle SD of the base capture.
        top_sd_rad: Optional angle SD of the top capture.
    """

    eye_height_m: float
    base_angle_rad: float
    top_angle_rad: float
    base_sd_rad: Optional[float] = None
    top_sd_rad: Optional[float] = None

    mode = MeasurementMode.BASE_TOP

    def __post_init__(self) -> None:
        _check_finite(
            eye_height_m=self.eye_height_m,
            base_angle_rad=self.base_angle_rad,
            top_angle_rad=self.top_angle_rad,
        )
        _check_sd("base_sd_rad", self.base_sd_rad)
        _check_sd("top_sd_rad", self.top_sd_rad)


@dataclass(frozen=True)
class TwoStopInput:
    """
    Two top angles taken from stations separated by a forward step.

    Attributes:
        eye_height_m: Height of the device above the ground.
        step_forward_m: Distance walked towards the object between captures.
        far_angle_rad: Top elevation from the far station (A1).
        near_angle_rad: Top elevation from the near station (A2).
    """

    eye_height_m: float
    step_forward_m: float
    far_angle_rad: float
    near_angle_rad: float

    mode = MeasurementMode.TWO_STOP

    def __post_init__(self) -> None:
        _check_finite(
            eye_height_m=self.eye_height_m,
            step_forward_m=self.step_forward_m,
            far_angle_rad=self.far_angle_rad,
            near_angle_rad=self.near_angle_rad,
        )
        if self.step_forward_m <= 0:
            raise ValueError(f"step_forward_m must be positive, got {self.step_forward_m}")


MeasurementInput = Union[PacedInput, BaseTopInput, TwoStopInput]


@dataclass(frozen=True)
class PercentileRange:
    """Lower/upper percentiles of a Monte Carlo height distribution."""

    p10: float
    p90: float

    def __post_init__(self) -> None:
        if self.p10 > self.p90:
            raise ValueError(f"p10 must not exceed p90, got {self.p10} > {self.p90}")

    @property
    def width(self) -> float:
        return self.p90 - self.p10


@dataclass(frozen=True)
class HeightEstimate:
    """
    A height with optional uncertainty.

    Attributes:
        height_m: Point estimate in meters.
        uncertainty_m: 1-sigma equivalent uncertainty in meters.
        percentile_range: Monte Carlo p10/p90, when available.
    """

    height_m: float
    uncertainty_m: Optional[float] = None
    percentile_range: Optional[PercentileRange] = None

    def __post_init__(self) -> None:
        _check_sd("uncertainty_m", self.uncertainty_m)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"height_m": self.height_m}
        if self.uncertainty_m is not None:
            data["uncertainty_m"] = self.uncertainty_m
        if self.percentile_range is not None:
            data["p10"] = self.percentile_range.p10
            data["p90"] = self.percentile_range.p90
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HeightEstimate":
        pr = None
        if data.get("p10") is not None and data.get("p90") is not None:
            pr = PercentileRange(p10=data["p10"], p90=data["p90"])
        return cls(
            height_m=data["height_m"],
            uncertainty_m=data.get("uncertainty_m"),
            percentile_range=pr,
        )


@dataclass(frozen=True)
class GeometryResult:
    """
    Outcome of a geometric solve.

    Exactly one of height_m / issue is set. distance_m is the horizontal
    distance to the object when the mode determines one (BaseTop: d',
    TwoStop: far-station distance, Paced: the input distance).
    near_distance_m is only set for TwoStop.
    """

    height_m: Optional[float] = None
    distance_m: Optional[float] = None
    near_distance_m: Optional[float] = None
    issue: Optional[MeasurementIssue] = None

    def __post_init__(self) -> None:
        if (self.height_m is None) == (self.issue is None):
            raise ValueError("GeometryResult needs exactly one of height_m or issue")

    @property
    def ok(self) -> bool:
        return self.issue is None

    @classmethod
    def failure(cls, issue: MeasurementIssue) -> "GeometryResult":
        return cls(issue=issue)

"""
Conversion of image-space detections into metric height estimates.

Detection itself happens elsewhere; this module receives its outputs:

    - BoundaryResult: top and base points of the object in pixels plus a
      detector confidence
    - KnownObject: a detected reference object of typical real-world height
      (door, person, car, window) used to derive a pixels-per-meter scale

Scale calibration:
    px_per_meter = bbox_height_px / typical_height_m

Height from a boundary:
    h_raw = ‖base - top‖ / px_per_meter
    h     = h_raw · k,   k = 2.0 / 2.43 (door field correction)

The result is a VisionEstimate ready for heightcore.fusion.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

from heightcore.config import DOOR_ACTUAL_HEIGHT_M, DOOR_MEASURED_HEIGHT_M
from heightcore.fusion.types import VisionEstimate

DEFAULT_CALIBRATION_FACTOR = DOOR_ACTUAL_HEIGHT_M / DOOR_MEASURED_HEIGHT_M


class KnownObjectType(str, Enum):
    DOOR = "door"
    PERSON = "person"
    CAR = "car"
    WINDOW = "window"


# Typical real-world height ranges (meters)
KNOWN_OBJECT_HEIGHTS_M: Dict[KnownObjectType, Tuple[float, float]] = {
    KnownObjectType.DOOR: (2.0, 2.1),
    KnownObjectType.PERSON: (1.6, 1.8),
    KnownObjectType.WINDOW: (1.2, 1.5),
    KnownObjectType.CAR: (1.4, 1.5),
}

# Preferred reference when several are visible
REFERENCE_PRIORITY = (
    KnownObjectType.DOOR,
    KnownObjectType.PERSON,
    KnownObjectType.CAR,
    KnownObjectType.WINDOW,
)


@dataclass(frozen=True)
class Point2D:
    x: float
    y: float


@dataclass(frozen=True)
class BoundaryResult:
    """
    Top/base points of the measured object in image pixels.

    Attributes:
        top: Pixel location of the top.
        base: Pixel location of the base.
        confidence: Detector confidence in [0, 1].
    """

    top: Point2D
    base: Point2D
    confidence: float

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be in [0, 1], got {self.confidence}")

    @property
    def pixel_length(self) -> float:
        return float(np.hypot(self.base.x - self.top.x, self.base.y - self.top.y))


@dataclass(frozen=True)
class KnownObject:
    """
    A detected reference object.

    Attributes:
        type: Object class.
        bbox: (x, y, width, height) in pixels.
        confidence: Detector confidence in [0, 1].
        score: Aggregate quality score in [0, 1].
    """

    type: KnownObjectType
    bbox: Tuple[float, float, float, float]
    confidence: float
    score: float = 0.0

    @property
    def expected_height_range_m(self) -> Tuple[float, float]:
        return KNOWN_OBJECT_HEIGHTS_M[self.type]

    @property
    def estimated_height_m(self) -> float:
        lo, hi = self.expected_height_range_m
        return (lo + hi) / 2.0


@dataclass(frozen=True)
class ScaleCalibration:
    """Pixels-per-meter scale derived from a reference object."""

    px_per_meter: float
    reference: Optional[KnownObject] = field(default=None, compare=False)
    score: float = 0.0

    def __post_init__(self) -> None:
        if not (np.isfinite(self.px_per_meter) and self.px_per_meter > 0):
            raise ValueError(f"px_per_meter must be positive, got {self.px_per_meter}")


def known_object_score(detector_confidence: float, edge_clarity: float, has_references: bool) -> float:
    """Weighted quality score 0.6·confidence + 0.3·clarity + 0.1·references, clamped."""
    score = 0.6 * detector_confidence + 0.3 * edge_clarity + 0.1 * (1.0 if has_references else 0.0)
    return float(np.clip(score, 0.0, 1.0))


def px_per_meter_from_reference(height_px: float, reference_height_m: float) -> float:
    """
    Image scale from an object of known height.

    A box height below one pixel is raised to one pixel.

    Raises:
        ValueError: If reference_height_m is not positive.
    """
    if not reference_height_m > 0:
        raise ValueError(f"reference_height_m must be positive, got {reference_height_m}")
    return max(1.0, float(height_px)) / reference_height_m


def select_reference(objects: Sequence[KnownObject]) -> Optional[KnownObject]:
    """
    Pick the calibration reference: the best-scored object of the most
    preferred type present.
    """
    for kind in REFERENCE_PRIORITY:
        candidates = [o for o in objects if o.type is kind]
        if candidates:
            return max(candidates, key=lambda o: o.score)
    return None


def calibrate_scale(objects: Sequence[KnownObject]) -> Optional[ScaleCalibration]:
    """
    Scale calibration from the detected known objects.

    Returns:
        ScaleCalibration, or None when no usable reference was detected.
    """
    reference = select_reference(objects)
    if reference is None:
        return None
    height_px = reference.bbox[3]
    return ScaleCalibration(
        px_per_meter=px_per_meter_from_reference(height_px, reference.estimated_height_m),
        reference=reference,
        score=reference.score,
    )


def boost_confidence(confidence: float, calibration: Optional[ScaleCalibration]) -> float:
    """Raise a detector confidence by up to 0.1 according to calibration quality."""
    if calibration is None:
        return confidence
    boost = 0.1 * float(np.clip(calibration.score, 0.0, 1.0))
    return float(np.clip(confidence + boost, 0.0, 1.0))


def vision_height_from_boundary(
    boundary: BoundaryResult,
    px_per_meter: float,
    calibration_factor: float = DEFAULT_CALIBRATION_FACTOR,
) -> Optional[float]:
    """
    Metric height of a detected boundary.

    Returns:
        Height in meters, or None when the scale is unusable.

    Example:
        >>> b = BoundaryResult(Point2D(100, 50), Point2D(100, 650), 0.9)
        >>> round(vision_height_from_boundary(b, 100.0, calibration_factor=1.0), 6)
        6.0
    """
    if not (np.isfinite(px_per_meter) and px_per_meter > 0):
        return None
    return boundary.pixel_length / px_per_meter * calibration_factor


def vision_estimate_from_boundary(
    boundary: BoundaryResult,
    calibration: ScaleCalibration,
    calibration_factor: float = DEFAULT_CALIBRATION_FACTOR,
    std_dev_m: Optional[float] = None,
) -> VisionEstimate:
    """Build the fusion input for a boundary, applying the calibration boost."""
    height = vision_height_from_boundary(boundary, calibration.px_per_meter, calibration_factor)
    return VisionEstimate(
        height_m=height,
        confidence=boost_confidence(boundary.confidence, calibration),
        std_dev_m=std_dev_m,
    )

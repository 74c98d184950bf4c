"""
Vision boundary to metric height conversion.

The detector is external; this package turns its boundary points and
reference-object boxes into a VisionEstimate for fusion.
"""

from heightcore.vision.boundary import (
    DEFAULT_CALIBRATION_FACTOR,
    KNOWN_OBJECT_HEIGHTS_M,
    BoundaryResult,
    KnownObject,
    KnownObjectType,
    Point2D,
    ScaleCalibration,
    boost_confidence,
    calibrate_scale,
    known_object_score,
    px_per_meter_from_reference,
    select_reference,
    vision_estimate_from_boundary,
    vision_height_from_boundary,
)

__all__ = [
    "DEFAULT_CALIBRATION_FACTOR",
    "KNOWN_OBJECT_HEIGHTS_M",
    "BoundaryResult",
    "KnownObject",
    "KnownObjectType",
    "Point2D",
    "ScaleCalibration",
    "boost_confidence",
    "calibrate_scale",
    "known_object_score",
    "px_per_meter_from_reference",
    "select_reference",
    "vision_estimate_from_boundary",
    "vision_height_from_boundary",
]

"""
Error taxonomy for the height-measurement engine.

Two families are kept apart so that callers can tell "can't sense" from
"sensed badly":

    - SensorError and its subclasses are raised by the orientation sampler
      when the device cannot be read at all (unsupported hardware, refused
      permission) or when a single reading fails.
    - MeasurementIssue values are *returned* by capture, geometry,
      uncertainty and fusion operations. They describe a recoverable
      condition; the caller re-prompts the user to recapture.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Closed set of failure kinds reported by the engine."""

    UNSUPPORTED_DEVICE = "unsupported_device"
    PERMISSION_DENIED = "permission_denied"
    INSUFFICIENT_SAMPLES = "insufficient_samples"
    DEVICE_TILTED = "device_tilted"
    GEOMETRY_INVALID = "geometry_invalid"
    NON_FINITE_RESULT = "non_finite_result"
    FUSION_NO_INPUT = "fusion_no_input"


class GeometryReason(str, Enum):
    """Sub-reason attached to ErrorKind.GEOMETRY_INVALID."""

    TOO_SHALLOW = "too_shallow"
    TOO_STEEP = "too_steep"
    TOO_SMALL = "too_small"
    TOO_SIMILAR = "too_similar"
    TOO_SMALL_SEPARATION = "too_small_separation"
    DISTANCE_OUT_OF_RANGE = "distance_out_of_range"
    NEGATIVE_RESULT = "negative_result"
    EYE_HEIGHT_OUT_OF_RANGE = "eye_height_out_of_range"


@dataclass(frozen=True)
class MeasurementIssue:
    """
    A recoverable, reportable measurement problem.

    Attributes:
        kind: Failure family.
        message: Short user-facing hint (e.g. "Move farther and recapture.").
        reason: Geometry sub-reason, only set for GEOMETRY_INVALID.
    """

    kind: ErrorKind
    message: str
    reason: Optional[GeometryReason] = None

    def __post_init__(self) -> None:
        if self.kind is ErrorKind.GEOMETRY_INVALID and self.reason is None:
            raise ValueError("GEOMETRY_INVALID issues require a reason")
        if self.kind is not ErrorKind.GEOMETRY_INVALID and self.reason is not None:
            raise ValueError(f"reason is only valid for GEOMETRY_INVALID, got kind {self.kind}")


def geometry_issue(reason: GeometryReason, message: str) -> MeasurementIssue:
    """Shorthand for a GEOMETRY_INVALID issue."""
    return MeasurementIssue(ErrorKind.GEOMETRY_INVALID, message, reason)


class SensorError(Exception):
    """Base class for orientation sensor failures."""

    kind: Optional[ErrorKind] = None


class UnsupportedDeviceError(SensorError):
    """The device exposes no usable orientation sensor."""

    kind = ErrorKind.UNSUPPORTED_DEVICE


class PermissionDeniedError(SensorError):
    """The user or OS refused (or has not yet granted) sensor access."""

    kind = ErrorKind.PERMISSION_DENIED


class SensorReadError(SensorError):
    """A single reading failed; the stream itself stays open."""

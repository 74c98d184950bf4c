"""
Handheld orientation sensing and steadiness gating.

Modules:
    types: Orientation readings, samples, captured angles, permission states
    orientation: OrientationSource interface and the OrientationSampler
    stability: Rolling SampleWindow and the auto-capture StabilityGate

Design principles:
    - Packets are frozen dataclasses, angles in radians, times in integer ms
    - The platform sensor is abstract (OrientationSource) so recorded traces
      and the simulator drive the same code path as a real device
    - "Can't sense" problems raise SensorError subclasses; "sensed badly"
      problems come back as MeasurementIssue values

Example:
    >>> from heightcore.sensors import OrientationSampler, StabilityGate
    >>> gate = StabilityGate()
    >>> sampler = OrientationSampler(source)
    >>> await sampler.request_permission()
    >>> sampler.start(gate.push)
"""

from heightcore.sensors.orientation import (
    ErrorHandler,
    OrientationSampler,
    OrientationSource,
    SampleCallback,
)
from heightcore.sensors.stability import (
    CaptureResult,
    SampleWindow,
    StabilityGate,
    StabilityState,
    StabilityStatus,
    classify_sd,
)
from heightcore.sensors.types import (
    CapturedAngle,
    OrientationSample,
    PermissionState,
    RawOrientationReading,
)

__all__ = [
    # Types
    "CapturedAngle",
    "OrientationSample",
    "PermissionState",
    "RawOrientationReading",
    # Sampling
    "ErrorHandler",
    "OrientationSampler",
    "OrientationSource",
    "SampleCallback",
    # Stability
    "CaptureResult",
    "SampleWindow",
    "StabilityGate",
    "StabilityState",
    "StabilityStatus",
    "classify_sd",
]

"""Core modules for handheld height measurement.

This package estimates the height of a standing object (e.g. a tree) from a
phone's orientation sensors, optionally fused with a vision estimate:
- sensors: Orientation sampling, steadiness gate and angle capture
- measure: Paced, BaseTop and TwoStop geometry plus Monte Carlo uncertainty
- fusion: Confidence-weighted vision/sensor fusion with a scalar Kalman filter
- vision: Boundary pixels to metric height via a reference object
- session: One measurement from setup to result
- sim: Synthetic handheld orientation traces
- eval: Metrics and plots
"""

from heightcore.config import SessionConfig, load_config, save_config
from heightcore.errors import (
    ErrorKind,
    GeometryReason,
    MeasurementIssue,
    PermissionDeniedError,
    SensorError,
    SensorReadError,
    UnsupportedDeviceError,
)
from heightcore.measure.types import HeightEstimate, MeasurementMode
from heightcore.records import MeasurementRecord
from heightcore.session import CaptureOutcome, MeasurementSession, Step

__version__ = "0.1.0"

__all__ = [
    "CaptureOutcome",
    "ErrorKind",
    "GeometryReason",
    "HeightEstimate",
    "MeasurementIssue",
    "MeasurementMode",
    "MeasurementRecord",
    "MeasurementSession",
    "PermissionDeniedError",
    "SensorError",
    "SensorReadError",
    "SessionConfig",
    "Step",
    "UnsupportedDeviceError",
    "load_config",
    "save_config",
]

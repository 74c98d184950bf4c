"""
Data structures for handheld orientation sensing.

This module defines the packets exchanged between the orientation sampler,
the stability gate and the capture logic:
    - RawOrientationReading: what the platform sensor hands us (degrees,
      may be missing fields)
    - OrientationSample: a cleaned, zero-corrected sample in radians
    - CapturedAngle: a robust summary of a window of samples
    - PermissionState: closed set of sensor permission outcomes

Time Base Convention:
    All timestamps are integer milliseconds on a monotonic clock.

Angle Convention:
    - pitch: forward/back tilt, positive when the device looks above the
      horizon
    - roll: left/right tilt about the viewing axis
    - yaw: compass heading, optional
    All angles stored in radians.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

from heightcore.utils.angles import elevation_from_pitch_roll


class PermissionState(str, Enum):
    """Sensor permission outcome."""

    UNKNOWN = "unknown"
    GRANTED = "granted"
    DENIED = "denied"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class RawOrientationReading:
    """
    One reading as reported by the platform (DeviceOrientation-style).

    Attributes:
        timestamp_ms: Reading time in milliseconds.
        beta_deg: Front/back tilt in degrees, or None if not reported.
        gamma_deg: Left/right tilt in degrees, or None if not reported.
        alpha_deg: Compass heading in degrees, or None.
        portrait: False when the screen is in landscape orientation.
    """

    timestamp_ms: int
    beta_deg: Optional[float] = None
    gamma_deg: Optional[float] = None
    alpha_deg: Optional[float] = None
    portrait: bool = True


@dataclass(frozen=True)
class OrientationSample:
    """
    A cleaned orientation sample pushed by the sampler.

    Attributes:
        timestamp_ms: Sample time in milliseconds.
        pitch_rad: Zero-corrected pitch in radians.
        roll_rad: Roll in radians.
        yaw_rad: Optional yaw in radians.

    Example:
        >>> s = OrientationSample(timestamp_ms=1000, pitch_rad=0.2, roll_rad=0.0)
        >>> s.yaw_rad is None
        True
    """

    timestamp_ms: int
    pitch_rad: float
    roll_rad: float
    yaw_rad: Optional[float] = None

    def __post_init__(self) -> None:
        """Validate the sample."""
        if not isinstance(self.timestamp_ms, (int, np.integer)):
            raise TypeError(f"timestamp_ms must be an integer, got {type(self.timestamp_ms)}")
        if not (np.isfinite(self.pitch_rad) and np.isfinite(self.roll_rad)):
            raise ValueError(
                f"pitch and roll must be finite, got {self.pitch_rad}, {self.roll_rad}"
            )

    @property
    def elevation_rad(self) -> float:
        """Roll-corrected elevation, atan(tan(pitch) * cos(roll))."""
        return elevation_from_pitch_roll(self.pitch_rad, self.roll_rad)


@dataclass(frozen=True)
class CapturedAngle:
    """
    Robust summary of a window of elevation samples.

    The median (not the mean) is the captured angle, so a single jolt in the
    window does not move the reading. The sample standard deviation (n - 1
    denominator) is kept for uncertainty propagation.

    Attributes:
        median_rad: Median elevation in radians.
        std_dev_rad: Sample standard deviation in radians (>= 0).
        roll_at_capture_rad: Device roll at the moment of capture.
        n_samples: Number of samples summarised.
    """

    median_rad: float
    std_dev_rad: float
    roll_at_capture_rad: float = 0.0
    n_samples: int = 0

    def __post_init__(self) -> None:
        if self.std_dev_rad < 0:
            raise ValueError(f"std_dev_rad must be non-negative, got {self.std_dev_rad}")

    @classmethod
    def from_samples(cls, pitch_rad: np.ndarray, roll_rad: float = 0.0) -> "CapturedAngle":
        """
        Summarise an array of elevation samples.

        Args:
            pitch_rad: Elevation samples in radians. Shape: (N,), N >= 1.
            roll_rad: Roll at capture time.

        Returns:
            CapturedAngle with median and sample SD (0 when N == 1).

        Raises:
            ValueError: If the array is empty or not 1D.
        """
        values = np.asarray(pitch_rad, dtype=float)
        if values.ndim != 1 or values.size == 0:
            raise ValueError(f"pitch_rad must be a non-empty 1D array, got shape {values.shape}")
        sd = float(np.std(values, ddof=1)) if values.size > 1 else 0.0
        return cls(
            median_rad=float(np.median(values)),
            std_dev_rad=sd,
            roll_at_capture_rad=float(roll_rad),
            n_samples=int(values.size),
        )

"""
Orientation sampling from a handheld device.

The sampler turns raw platform readings (degrees, possibly incomplete,
possibly flipped) into a clean push stream of OrientationSample values:

    1. Ignore readings with neither tilt angle, or taken in landscape.
    2. Treat a pitch beyond ±179° as a flipped reading and clamp it to ±89°.
    3. Convert to radians and smooth pitch exponentially:
           p_k = α * raw_k + (1 - α) * p_{k-1}
    4. Subtract the calibrated zero offset.

The platform sensor itself sits behind the OrientationSource interface, so
the same sampler drives a phone sensor bridge, a recorded trace or the
simulator in heightcore.sim.

Permission handling:
    request_permission() is the only suspending call. start() refuses to run
    unless permission is GRANTED, raising UnsupportedDeviceError or
    PermissionDeniedError. Transient read failures are reported to the
    error callback as SensorReadError and do not stop the stream.
"""

import warnings
from abc import ABC, abstractmethod
from typing import Callable, Optional

import numpy as np

from heightcore.config import SensorConfig
from heightcore.errors import (
    PermissionDeniedError,
    SensorError,
    SensorReadError,
    UnsupportedDeviceError,
)
from heightcore.sensors.types import (
    OrientationSample,
    PermissionState,
    RawOrientationReading,
)
from heightcore.utils.angles import wrap_angle

ReadingHandler = Callable[[RawOrientationReading], None]
ErrorHandler = Callable[[Exception], None]
SampleCallback = Callable[[OrientationSample], None]


class OrientationSource(ABC):
    """Abstract platform orientation sensor."""

    @abstractmethod
    def has_support(self) -> bool:
        """Return True if the device exposes an orientation sensor."""
        pass

    @abstractmethod
    async def request_permission(self) -> PermissionState:
        """
        Ask the user/OS for sensor access.

        May suspend awaiting user interaction. Implementations raise
        PermissionDeniedError (or return DENIED) on refusal.
        """
        pass

    @abstractmethod
    def open(self, on_reading: ReadingHandler, on_error: ErrorHandler) -> None:
        """Begin delivering readings to on_reading."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Stop delivering readings and release the sensor handle."""
        pass


class OrientationSampler:
    """
    Push-based orientation stream with zero calibration.

    Attributes:
        source: Underlying OrientationSource.
        config: Reading handling parameters.
        permission: Last known permission state.
        dropped_out_of_order: Readings discarded because their timestamp
            went backwards.
    """

    def __init__(self, source: OrientationSource, config: Optional[SensorConfig] = None):
        self.source = source
        self.config = config if config is not None else SensorConfig()
        self.permission = PermissionState.UNKNOWN
        self.dropped_out_of_order = 0

        self._active = False
        self._callback: Optional[SampleCallback] = None
        self._on_error: Optional[ErrorHandler] = None
        self._filtered_pitch_rad: Optional[float] = None
        self._zero_offset_rad = 0.0
        self._last_timestamp_ms: Optional[int] = None

    @property
    def active(self) -> bool:
        return self._active

    def has_support(self) -> bool:
        return self.source.has_support()

    async def request_permission(self) -> PermissionState:
        """
        Request sensor permission and remember the outcome.

        Cancellation (e.g. session teardown) propagates to the caller and
        leaves the state unchanged.

        Returns:
            The resulting PermissionState.
        """
        if not self.source.has_support():
            self.permission = PermissionState.UNSUPPORTED
            return self.permission

        try:
            state = await self.source.request_permission()
        except UnsupportedDeviceError:
            state = PermissionState.UNSUPPORTED
        except PermissionDeniedError:
            state = PermissionState.DENIED
        except SensorError as e:
            warnings.warn(f"Orientation permission request failed: {e}", RuntimeWarning)
            state = PermissionState.DENIED

        self.permission = PermissionState(state)
        return self.permission

    def start(self, callback: SampleCallback, on_error: Optional[ErrorHandler] = None) -> None:
        """
        Begin pushing samples to callback.

        Args:
            callback: Called with each OrientationSample, in non-decreasing
                timestamp order.
            on_error: Called with SensorReadError for transient read
                failures. If None, failures are reported as RuntimeWarning.

        Raises:
            RuntimeError: If the sampler is already running.
            UnsupportedDeviceError: If there is no usable sensor.
            PermissionDeniedError: If permission is not GRANTED.
        """
        if self._active:
            raise RuntimeError("OrientationSampler is already running; call stop() first")
        if not self.source.has_support() or self.permission is PermissionState.UNSUPPORTED:
            raise UnsupportedDeviceError("Device orientation is not supported on this device")
        if self.permission is PermissionState.DENIED:
            raise PermissionDeniedError("Orientation permission was denied")
        if self.permission is not PermissionState.GRANTED:
            raise PermissionDeniedError(
                "Orientation permission not granted yet; await request_permission() first"
            )

        self._callback = callback
        self._on_error = on_error
        self._filtered_pitch_rad = None
        self._last_timestamp_ms = None
        self._active = True
        self.source.open(self._handle_reading, self._handle_error)

    def stop(self) -> None:
        """Stop the stream and release the sensor. Safe to call repeatedly."""
        if not self._active:
            return
        self._active = False
        self._callback = None
        self._on_error = None
        self.source.close()

    def calibrate_zero(self) -> float:
        """
        Take the current smoothed pitch as the new zero.

        Has no effect before the first reading arrives.

        Returns:
            The zero offset in radians.
        """
        if self._filtered_pitch_rad is not None:
            self._zero_offset_rad = self._filtered_pitch_rad
        return self._zero_offset_rad

    def get_zero_offset(self) -> float:
        return self._zero_offset_rad

    def process_reading(self, reading: RawOrientationReading) -> Optional[OrientationSample]:
        """
        Convert one raw reading to a sample, updating the smoothing state.

        Returns:
            The sample, or None if the reading is ignored.

        Raises:
            SensorReadError: If a reported angle is not finite.
        """
        beta, gamma = reading.beta_deg, reading.gamma_deg
        if beta is None and gamma is None:
            return None
        if self.config.portrait_only and not reading.portrait:
            return None
        for value in (beta, gamma, reading.alpha_deg):
            if value is not None and not np.isfinite(value):
                raise SensorReadError(f"Non-finite orientation angle in reading at {reading.timestamp_ms} ms")

        pitch_deg = beta if beta is not None else 0.0
        limit = self.config.pitch_wrap_limit_deg
        if pitch_deg > limit:
            pitch_deg = self.config.pitch_clamp_deg
        elif pitch_deg < -limit:
            pitch_deg = -self.config.pitch_clamp_deg
        roll_deg = gamma if gamma is not None else 0.0

        pitch_rad = float(np.deg2rad(pitch_deg))
        alpha = self.config.smoothing_alpha
        if self._filtered_pitch_rad is None:
            self._filtered_pitch_rad = pitch_rad
        else:
            self._filtered_pitch_rad = alpha * pitch_rad + (1.0 - alpha) * self._filtered_pitch_rad

        yaw_rad = None
        if reading.alpha_deg is not None:
            yaw_rad = wrap_angle(np.deg2rad(reading.alpha_deg))

        return OrientationSample(
            timestamp_ms=int(reading.timestamp_ms),
            pitch_rad=self._filtered_pitch_rad - self._zero_offset_rad,
            roll_rad=float(np.deg2rad(roll_deg)),
            yaw_rad=yaw_rad,
        )

    def _handle_reading(self, reading: RawOrientationReading) -> None:
        if not self._active:
            return
        if self._last_timestamp_ms is not None and reading.timestamp_ms < self._last_timestamp_ms:
            self.dropped_out_of_order += 1
            return
        try:
            sample = self.process_reading(reading)
        except SensorReadError as e:
            self._handle_error(e)
            return
        if sample is None:
            return
        self._last_timestamp_ms = sample.timestamp_ms
        # stop() may run inside an earlier callback
        if self._callback is not None:
            self._callback(sample)

    def _handle_error(self, error: Exception) -> None:
        if not self._active:
            return
        if not isinstance(error, SensorReadError):
            wrapped = SensorReadError(str(error))
            wrapped.__cause__ = error
            error = wrapped
        if self._on_error is not None:
            self._on_error(error)
        else:
            warnings.warn(f"Orientation read error: {error}", RuntimeWarning)

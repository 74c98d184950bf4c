"""
Synthetic handheld orientation traces and a replaying OrientationSource.

A trace is built from an aim plan (where the user points the phone, and
when) plus a hand model:

    beta(t)  = aim(t) + white(t) + drift(t) + tremor(t)      [degrees]
    gamma(t) = roll + white_roll(t)

    white:  N(0, white_sd_deg²) per sample
    drift:  pink (1/f) noise scaled to drift_sd_deg
    tremor: tremor_amp_deg * sin(2π f_tremor t + φ), φ ~ U(0, 2π)

The aim is piecewise constant; each segment starts at a time in seconds.
Readings are emitted at fs_hz with integer millisecond timestamps.

SimulatedOrientationSource plays a trace (or ad-hoc readings) into an
OrientationSampler synchronously, so tests and demos can drive a full
MeasurementSession without a phone or a wall clock.
"""

import asyncio
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from heightcore.errors import SensorReadError
from heightcore.sensors.orientation import ErrorHandler, OrientationSource, ReadingHandler
from heightcore.sensors.types import PermissionState, RawOrientationReading
from heightcore.sim.noise_pink import pink_noise_1f


@dataclass(frozen=True)
class HandheldProfile:
    """
    How unsteady the hand holding the phone is.

    Attributes:
        name: Profile name.
        white_sd_deg: Per-sample sensor and hand jitter SD.
        drift_sd_deg: SD of the slow 1/f aim wander over the whole trace.
        tremor_amp_deg: Amplitude of physiological tremor.
        tremor_freq_hz: Tremor frequency (typically 8-12 Hz).
    """

    name: str
    white_sd_deg: float
    drift_sd_deg: float
    tremor_amp_deg: float
    tremor_freq_hz: float = 9.0

    def __post_init__(self) -> None:
        if min(self.white_sd_deg, self.drift_sd_deg, self.tremor_amp_deg) < 0:
            raise ValueError(f"noise levels must be non-negative in profile '{self.name}'")
        if self.tremor_freq_hz <= 0:
            raise ValueError(f"tremor_freq_hz must be positive, got {self.tremor_freq_hz}")


PROFILES: Dict[str, HandheldProfile] = {
    "tripod": HandheldProfile("tripod", 0.0, 0.0, 0.0),
    "steady": HandheldProfile("steady", 0.02, 0.02, 0.01),
    "normal": HandheldProfile("normal", 0.08, 0.06, 0.05),
    "shaky": HandheldProfile("shaky", 0.8, 0.6, 0.4),
}


@dataclass(frozen=True)
class HandheldTrace:
    """
    Sampled orientation trace.

    Attributes:
        t_ms: Timestamps in ms. Shape: (N,), int64.
        beta_deg: Reported pitch. Shape: (N,).
        gamma_deg: Reported roll. Shape: (N,).
        aim_deg: Noise-free aim the user intended. Shape: (N,).
        profile: Hand model used.
    """

    t_ms: np.ndarray
    beta_deg: np.ndarray
    gamma_deg: np.ndarray
    aim_deg: np.ndarray
    profile: HandheldProfile

    def __len__(self) -> int:
        return int(self.t_ms.size)

    @property
    def duration_ms(self) -> int:
        return int(self.t_ms[-1] - self.t_ms[0]) if len(self) else 0

    def readings(self) -> List[RawOrientationReading]:
        return [
            RawOrientationReading(timestamp_ms=int(t), beta_deg=float(b), gamma_deg=float(g))
            for t, b, g in zip(self.t_ms, self.beta_deg, self.gamma_deg)
        ]


def aim_from_segments(t_s: np.ndarray, segments: Sequence[Tuple[float, float]]) -> np.ndarray:
    """
    Piecewise-constant aim pitch (degrees) at times t_s.

    Args:
        t_s: Sample times in seconds.
        segments: (start_s, pitch_deg) pairs; sorted by start time.

    Raises:
        ValueError: If segments is empty, unsorted, or starts after t=0.

    Example:
        >>> aim_from_segments(np.array([0.0, 1.0, 2.5]), [(0.0, -10.0), (2.0, 30.0)])
        array([-10., -10.,  30.])
    """
    if not segments:
        raise ValueError("segments must not be empty")
    starts = np.array([s for s, _ in segments], dtype=float)
    pitches = np.array([p for _, p in segments], dtype=float)
    if np.any(np.diff(starts) < 0):
        raise ValueError("segments must be sorted by start time")
    if starts[0] > 0:
        raise ValueError("first segment must start at t = 0")
    idx = np.searchsorted(starts, t_s, side="right") - 1
    return pitches[idx]


def simulate_orientation_trace(
    segments: Sequence[Tuple[float, float]],
    duration_s: float,
    fs_hz: float = 50.0,
    profile: Optional[HandheldProfile] = None,
    roll_deg: float = 0.0,
    rng: Optional[np.random.Generator] = None,
    t0_ms: int = 0,
) -> HandheldTrace:
    """
    Generate a handheld orientation trace.

    Args:
        segments: Aim plan as (start_s, pitch_deg) pairs.
        duration_s: Trace length in seconds.
        fs_hz: Reading rate.
        profile: Hand model. Default: PROFILES["normal"].
        roll_deg: Constant side tilt.
        rng: Random generator for reproducibility.
        t0_ms: Timestamp of the first reading.

    Returns:
        HandheldTrace with floor(duration_s * fs_hz) readings.

    Example:
        >>> trace = simulate_orientation_trace([(0.0, 20.0)], 2.0,
        ...                                    profile=PROFILES["tripod"])
        >>> len(trace), float(trace.beta_deg[0])
        (100, 20.0)
    """
    if duration_s <= 0 or fs_hz <= 0:
        raise ValueError("duration_s and fs_hz must be positive")
    if profile is None:
        profile = PROFILES["normal"]
    if rng is None:
        rng = np.random.default_rng()

    n = int(np.floor(duration_s * fs_hz))
    t_s = np.arange(n) / fs_hz
    aim = aim_from_segments(t_s, segments)

    white = profile.white_sd_deg * rng.standard_normal(n)
    drift = profile.drift_sd_deg * pink_noise_1f(n, fs_hz, rng=rng)
    phase = rng.uniform(0.0, 2.0 * np.pi)
    tremor = profile.tremor_amp_deg * np.sin(2.0 * np.pi * profile.tremor_freq_hz * t_s + phase)
    roll = roll_deg + profile.white_sd_deg * rng.standard_normal(n)

    t_ms = t0_ms + np.round(t_s * 1000.0).astype(np.int64)
    return HandheldTrace(
        t_ms=t_ms,
        beta_deg=aim + white + drift + tremor,
        gamma_deg=roll,
        aim_deg=aim,
        profile=profile,
    )


class SimulatedOrientationSource(OrientationSource):
    """
    OrientationSource that replays readings on demand.

    Readings are queued with load() or passed to feed(); replay() hands the
    queued ones to the open handler in order, synchronously.

    Attributes:
        supported: Reported sensor support.
        permission: State returned by request_permission().
        permission_delay_s: Simulated time the user takes to answer.
        delivered: Number of readings handed to the sampler.
    """

    def __init__(
        self,
        trace: Optional[HandheldTrace] = None,
        supported: bool = True,
        permission: PermissionState = PermissionState.GRANTED,
        permission_delay_s: float = 0.0,
    ):
        self.supported = supported
        self.permission = PermissionState(permission)
        self.permission_delay_s = permission_delay_s
        self.delivered = 0

        self._queue: List[RawOrientationReading] = []
        self._cursor = 0
        self._on_reading: Optional[ReadingHandler] = None
        self._on_error: Optional[ErrorHandler] = None
        self._now_ms = 0
        if trace is not None:
            self.load(trace)

    @property
    def is_open(self) -> bool:
        return self._on_reading is not None

    @property
    def pending(self) -> int:
        return len(self._queue) - self._cursor

    @property
    def now_ms(self) -> int:
        """Timestamp of the last delivered reading."""
        return self._now_ms

    def has_support(self) -> bool:
        return self.supported

    async def request_permission(self) -> PermissionState:
        if self.permission_delay_s > 0:
            await asyncio.sleep(self.permission_delay_s)
        return self.permission

    def open(self, on_reading: ReadingHandler, on_error: ErrorHandler) -> None:
        if self.is_open:
            raise RuntimeError("SimulatedOrientationSource is already open")
        self._on_reading = on_reading
        self._on_error = on_error

    def close(self) -> None:
        self._on_reading = None
        self._on_error = None

    def load(self, trace: HandheldTrace) -> None:
        """Queue every reading of a trace behind the ones already queued."""
        self._queue.extend(trace.readings())

    def replay(self, until_ms: Optional[int] = None) -> int:
        """
        Deliver queued readings with timestamp <= until_ms (all if None).

        Stops early if the source is closed from inside a callback.

        Returns:
            Number of readings delivered by this call.
        """
        count = 0
        while self._cursor < len(self._queue) and self.is_open:
            reading = self._queue[self._cursor]
            if until_ms is not None and reading.timestamp_ms > until_ms:
                break
            self._cursor += 1
            self.feed(reading)
            count += 1
        return count

    def feed(self, reading: RawOrientationReading) -> None:
        """Deliver one reading immediately. Ignored while closed."""
        if self._on_reading is None:
            return
        self._now_ms = max(self._now_ms, int(reading.timestamp_ms))
        self.delivered += 1
        self._on_reading(reading)

    def inject_error(self, message: str = "simulated read failure") -> None:
        """Report a transient read failure to the open error handler."""
        if self._on_error is not None:
            self._on_error(SensorReadError(message))


def drive_session(
    session,
    source: SimulatedOrientationSource,
    start_ms: int,
    end_ms: int,
    tick_ms: Optional[int] = None,
    on_status=None,
) -> list:
    """
    Run a started MeasurementSession offline on the sample clock.

    At each tick time the source replays readings up to that time and the
    session ticks once, so auto-capture fires exactly as it would live.

    Args:
        session: MeasurementSession streaming from source.
        source: The simulated source feeding the session.
        start_ms: First tick time.
        end_ms: Last tick time (inclusive).
        tick_ms: Tick period. Default: the session's tick_interval_ms.
        on_status: Optional callback(now_ms, StabilityStatus).

    Returns:
        CaptureOutcome list of the auto-captures, in order.
    """
    if tick_ms is None:
        tick_ms = session.config.stability.tick_interval_ms
    outcomes = []
    for now_ms in range(int(start_ms), int(end_ms) + 1, int(tick_ms)):
        if session.closed:
            break
        source.replay(until_ms=now_ms)
        status = session.tick(now_ms)
        if on_status is not None:
            on_status(now_ms, status)
        if status.capture_now and session.last_capture is not None:
            outcomes.append(session.last_capture)
    return outcomes

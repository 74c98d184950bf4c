"""
Steadiness detection and auto-capture gating.

The gate buffers roll-corrected elevation samples in a time-bounded window
and, on every fixed tick, decides whether the hand is steady enough to trust
a reading. It is a windowed stationarity detector in the same spirit as a
zero-velocity detector: a dispersion statistic over the last W ms compared
against thresholds.

Test statistic (per tick):
    sd_k = sqrt( 1/(n-1) * Σ_{l∈W_k} (θ_l - θ̄_k)² )      [degrees]

Classification:
    sd_k ≥ shaky_sd_deg                      → SHAKY
    ready_sd_deg ≤ sd_k < shaky_sd_deg       → STABILIZING
    sd_k < ready_sd_deg                      → READY
    n < min_samples_for_stability            → SHAKY (progress 0)

Auto-capture state machine:
    While READY continuously, steady time accumulates. Once it reaches
    required_steady_ms the gate emits capture_now exactly once (if
    auto-capture is enabled, not paused, not in a setup period and not in
    the post-capture cooldown), then restarts the steady timer.

Manual capture does not consult the classification; it only refuses when
fewer than min_samples_for_capture samples are buffered, or (for base
captures) when the device is tilted sideways.
"""

import math
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Deque, Optional, Tuple

import numpy as np

from heightcore.config import StabilityConfig
from heightcore.errors import ErrorKind, MeasurementIssue
from heightcore.sensors.types import CapturedAngle, OrientationSample


class StabilityState(str, Enum):
    SHAKY = "shaky"
    STABILIZING = "stabilizing"
    READY = "ready"


class SampleWindow:
    """
    Time-bounded FIFO of (t_ms, pitch_rad) pairs.

    Samples older than span_ms relative to the newest time seen are evicted
    from the front. Timestamps must be non-decreasing.
    """

    def __init__(self, span_ms: int):
        if span_ms <= 0:
            raise ValueError(f"span_ms must be positive, got {span_ms}")
        self.span_ms = span_ms
        self._t: Deque[int] = deque()
        self._pitch: Deque[float] = deque()

    def __len__(self) -> int:
        return len(self._t)

    def append(self, t_ms: int, pitch_rad: float) -> None:
        """
        Add a sample and evict anything older than the span.

        Raises:
            ValueError: If t_ms is earlier than the newest buffered sample.
        """
        if self._t and t_ms < self._t[-1]:
            raise ValueError(
                f"Samples must arrive in time order: {t_ms} < {self._t[-1]}"
            )
        self._t.append(int(t_ms))
        self._pitch.append(float(pitch_rad))
        self.evict(t_ms)

    def evict(self, now_ms: int) -> None:
        """Drop samples with t < now_ms - span_ms."""
        cutoff = now_ms - self.span_ms
        while self._t and self._t[0] < cutoff:
            self._t.popleft()
            self._pitch.popleft()

    def clear(self) -> None:
        self._t.clear()
        self._pitch.clear()

    @property
    def latest_ms(self) -> Optional[int]:
        return self._t[-1] if self._t else None

    def since(self, start_ms: int) -> np.ndarray:
        """Pitch values with t >= start_ms, oldest first."""
        return np.array(
            [p for t, p in zip(self._t, self._pitch) if t >= start_ms], dtype=float
        )

    def as_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        """Return (t_ms, pitch_rad) arrays of the whole window."""
        return np.array(self._t, dtype=np.int64), np.array(self._pitch, dtype=float)


@dataclass(frozen=True)
class StabilityStatus:
    """
    Result of one stability tick.

    Attributes:
        state: Steadiness class.
        sd_deg: Pitch SD over the analysis window, None below the sample
            threshold.
        progress: Fraction of the required steady time accumulated, [0, 1].
        seconds_remaining: Whole seconds left until auto-capture.
        capture_now: True on the single tick that triggers auto-capture.
        n_samples: Samples in the analysis window.
        in_cooldown: True while the post-capture cooldown is running.
        setup_seconds_remaining: Whole seconds left in a setup period.
    """

    state: StabilityState
    sd_deg: Optional[float]
    progress: float
    seconds_remaining: int
    capture_now: bool
    n_samples: int
    in_cooldown: bool = False
    setup_seconds_remaining: int = 0

    @property
    def is_steady(self) -> bool:
        return self.state is StabilityState.READY


@dataclass(frozen=True)
class CaptureResult:
    """A CapturedAngle, or the reason a capture was refused."""

    angle: Optional[CapturedAngle] = None
    issue: Optional[MeasurementIssue] = None

    @property
    def ok(self) -> bool:
        return self.angle is not None


def classify_sd(sd_deg: float, config: StabilityConfig) -> StabilityState:
    """Map a pitch SD (degrees) to a steadiness class."""
    if sd_deg >= config.shaky_sd_deg:
        return StabilityState.SHAKY
    if sd_deg >= config.ready_sd_deg:
        return StabilityState.STABILIZING
    return StabilityState.READY


class StabilityGate:
    """
    Rolling-window steadiness classifier with an auto-capture trigger.

    Usage:
        >>> gate = StabilityGate()
        >>> for sample in samples:            # pushed by the sampler
        ...     gate.push(sample)
        >>> status = gate.tick(now_ms)        # every ~100 ms
        >>> if status.capture_now:
        ...     result = gate.capture(now_ms)

    Attributes:
        config: Thresholds and timings.
        window: Buffered elevation samples.
        auto_capture: Whether the gate may trigger captures on its own.
        paused: Temporarily suppress auto-capture without disabling it.
        triggers: Number of auto-capture triggers emitted so far.
    """

    def __init__(self, config: Optional[StabilityConfig] = None):
        self.config = config if config is not None else StabilityConfig()
        self.window = SampleWindow(self.config.window_ms)
        self.auto_capture = True
        self.paused = False
        self.triggers = 0

        self._last_roll_rad = 0.0
        self._steady_since_ms: Optional[int] = None
        self._cooldown_until_ms: Optional[int] = None
        self._setup_until_ms: Optional[int] = None

    @property
    def last_roll_rad(self) -> float:
        return self._last_roll_rad

    def push(self, sample: OrientationSample) -> None:
        """Buffer the roll-corrected elevation of a sample."""
        self.window.append(sample.timestamp_ms, sample.elevation_rad)
        self._last_roll_rad = sample.roll_rad

    def begin_setup(self, now_ms: int, duration_ms: Optional[int] = None) -> None:
        """Suppress auto-capture for a while (user is lining up the shot)."""
        if duration_ms is None:
            duration_ms = self.config.setup_duration_ms
        self._setup_until_ms = now_ms + duration_ms

    def setup_active(self, now_ms: int) -> bool:
        return self._setup_until_ms is not None and now_ms < self._setup_until_ms

    def in_cooldown(self, now_ms: int) -> bool:
        return self._cooldown_until_ms is not None and now_ms < self._cooldown_until_ms

    def interrupt(self) -> None:
        """Restart the steady timer without dropping samples."""
        self._steady_since_ms = None

    def reset(self) -> None:
        """Forget all samples and timers (e.g. after zero calibration)."""
        self.window.clear()
        self._steady_since_ms = None
        self._cooldown_until_ms = None
        self._setup_until_ms = None

    def tick(self, now_ms: int) -> StabilityStatus:
        """
        Evaluate steadiness at time now_ms.

        Args:
            now_ms: Current time on the sample clock.

        Returns:
            StabilityStatus for this tick.
        """
        cfg = self.config
        self.window.evict(now_ms)

        setup_remaining_s = 0
        if self._setup_until_ms is not None:
            remaining = max(0, self._setup_until_ms - now_ms)
            setup_remaining_s = math.ceil(remaining / 1000)
            if remaining <= 0:
                self._setup_until_ms = None

        values = self.window.since(now_ms - cfg.window_ms)
        n = len(values)
        cooling = self.in_cooldown(now_ms)

        if n < cfg.min_samples_for_stability:
            self._steady_since_ms = None
            return StabilityStatus(
                state=StabilityState.SHAKY,
                sd_deg=None,
                progress=0.0,
                seconds_remaining=0,
                capture_now=False,
                n_samples=n,
                in_cooldown=cooling,
                setup_seconds_remaining=setup_remaining_s,
            )

        sd_deg = float(np.rad2deg(np.std(values, ddof=1)))
        state = classify_sd(sd_deg, cfg)

        if state is not StabilityState.READY:
            self._steady_since_ms = None
            return StabilityStatus(
                state=state,
                sd_deg=sd_deg,
                progress=0.0,
                seconds_remaining=0,
                capture_now=False,
                n_samples=n,
                in_cooldown=cooling,
                setup_seconds_remaining=setup_remaining_s,
            )

        if self._steady_since_ms is None:
            self._steady_since_ms = now_ms
        elapsed = now_ms - self._steady_since_ms
        progress = min(1.0, max(0.0, elapsed / cfg.required_steady_ms))
        seconds_remaining = math.ceil(max(0, cfg.required_steady_ms - elapsed) / 1000)

        capture_now = False
        allowed = self.auto_capture and not self.paused and not self.setup_active(now_ms)
        if allowed and not cooling and progress >= 1.0:
            capture_now = True
            self.triggers += 1
            self._cooldown_until_ms = now_ms + cfg.cooldown_ms
            self._steady_since_ms = None
            progress = 0.0
            seconds_remaining = 0
            cooling = cfg.cooldown_ms > 0

        return StabilityStatus(
            state=state,
            sd_deg=sd_deg,
            progress=progress,
            seconds_remaining=seconds_remaining,
            capture_now=capture_now,
            n_samples=n,
            in_cooldown=cooling,
            setup_seconds_remaining=setup_remaining_s,
        )

    def capture(self, now_ms: int, check_roll: bool = False) -> CaptureResult:
        """
        Summarise the most recent capture window into a CapturedAngle.

        Args:
            now_ms: Capture time.
            check_roll: Refuse when |roll| exceeds max_capture_roll_deg
                (used for base-angle captures).

        Returns:
            CaptureResult holding the angle or an advisory issue.
        """
        cfg = self.config
        values = self.window.since(now_ms - cfg.capture_window_ms)
        if len(values) < cfg.min_samples_for_capture:
            return CaptureResult(
                issue=MeasurementIssue(
                    ErrorKind.INSUFFICIENT_SAMPLES,
                    "Hold steady for a second, then tap capture.",
                )
            )
        if check_roll and abs(np.rad2deg(self._last_roll_rad)) > cfg.max_capture_roll_deg:
            return CaptureResult(
                issue=MeasurementIssue(
                    ErrorKind.DEVICE_TILTED,
                    "Keep phone upright (reduce side tilt).",
                )
            )
        return CaptureResult(angle=CapturedAngle.from_samples(values, self._last_roll_rad))

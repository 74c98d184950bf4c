"""
Measurement session: one target, one sampler, one gate, one filter.

The session wires the components together:

    OrientationSource → OrientationSampler ─push─→ StabilityGate
                                                        │ tick (every 100 ms)
                                                        ▼
                          capture → geometry / Monte Carlo → HeightEstimate
                                                        │
                                   VisionEstimate ──→ HeightFusion → FusionResult

and walks the user through a small step machine:

    SETUP → DISTANCE → TOP → RESULT                   (Paced)
    SETUP → BASE → TOP → RESULT                       (BaseTop)
    SETUP → DISTANCE → TOP → TOP2 → RESULT            (TwoStop)

Capture failures never raise; they come back as a MeasurementIssue on the
CaptureOutcome (and in ``warning``) so the caller can re-prompt. Sensor
access failures (unsupported device, permission refused) raise SensorError
subclasses from start().

Concurrency:
    Everything runs on one asyncio loop. Samples arrive through the sampler
    callback; run_stability_loop() is the periodic tick coroutine.
    request_permission() is the only suspending call and close() cancels it.
    After close() returns no sample is processed and nothing changes.
"""

import asyncio
import time
import warnings
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence

import numpy as np

from heightcore.config import SessionConfig
from heightcore.errors import GeometryReason, MeasurementIssue, SensorReadError
from heightcore.fusion.height_filter import HeightFusion
from heightcore.fusion.types import FusionResult, SensorEstimate, VisionEstimate
from heightcore.measure.geometry import (
    horizontal_distance_from_base,
    paced_distance,
    solve_base_top,
    solve_paced,
    solve_two_stop,
    validate_base_angle,
    validate_eye_height,
    validate_paced_distance,
)
from heightcore.measure.types import (
    BaseTopInput,
    GeometryResult,
    HeightEstimate,
    MeasurementMode,
    PacedInput,
    TwoStopInput,
)
from heightcore.measure.uncertainty import estimate_base_top_uncertainty
from heightcore.records import MeasurementRecord
from heightcore.sensors.orientation import OrientationSampler, OrientationSource
from heightcore.sensors.stability import StabilityGate, StabilityState, StabilityStatus
from heightcore.sensors.types import CapturedAngle, OrientationSample, PermissionState
from heightcore.vision.boundary import (
    BoundaryResult,
    KnownObject,
    calibrate_scale,
    vision_estimate_from_boundary,
)


class Step(str, Enum):
    SETUP = "setup"
    DISTANCE = "distance"
    BASE = "base"
    TOP = "top"
    TOP2 = "top2"
    RESULT = "result"


CAPTURE_STEPS = (Step.BASE, Step.TOP, Step.TOP2)


def monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


@dataclass(frozen=True)
class CaptureOutcome:
    """
    Result of a capture attempt.

    Attributes:
        step: The step the capture was taken in.
        angle: The captured angle, if the capture window was usable.
        issue: Why the capture (or the solve that followed) was rejected.
        result: The height estimate, when this capture completed a measurement.
        auto: True when triggered by the stability gate.
    """

    step: Step
    angle: Optional[CapturedAngle] = None
    issue: Optional[MeasurementIssue] = None
    result: Optional[HeightEstimate] = None
    auto: bool = False

    @property
    def ok(self) -> bool:
        return self.issue is None


class MeasurementSession:
    """
    Drives one height measurement from setup to result.

    Attributes:
        mode: Measurement mode.
        config: Session configuration.
        sampler: Orientation sampler over the given source.
        gate: Stability gate fed by the sampler.
        fusion: Vision/sensor fusion filter for this target.
        step: Current step.
        eye_height_m: Device height above ground.
        distance_m: Paced distance (Paced mode).
        step_forward_m: Forward step between stations (TwoStop mode).
        estimated_distance_m: Distance implied by the captures so far.
        result: Final height estimate, once available.
        warning: Last issue reported to the user, if any.
        last_capture: Outcome of the most recent capture attempt.

    Example:
        >>> session = MeasurementSession(source, MeasurementMode.BASE_TOP)
        >>> await session.start()
        >>> session.save_setup(1.6)
        >>> asyncio.create_task(session.run_stability_loop())
        >>> ...                                  # auto-capture base, then top
        >>> session.result.height_m
    """

    def __init__(
        self,
        source: OrientationSource,
        mode: MeasurementMode = MeasurementMode.BASE_TOP,
        config: Optional[SessionConfig] = None,
        rng: Optional[np.random.Generator] = None,
        clock: Callable[[], int] = monotonic_ms,
    ):
        self.mode = MeasurementMode(mode)
        self.config = config if config is not None else SessionConfig()
        self.rng = rng if rng is not None else np.random.default_rng()
        self.clock = clock

        self.sampler = OrientationSampler(source, self.config.sensor)
        self.gate = StabilityGate(self.config.stability)
        self.fusion = HeightFusion(self.config.fusion)

        self.eye_height_m = self.config.eye_height_m
        self.distance_m: Optional[float] = None
        self.step_forward_m = self.config.step_forward_m
        self.last_sample: Optional[OrientationSample] = None
        self.last_status: Optional[StabilityStatus] = None
        self.last_sensor_error: Optional[SensorReadError] = None
        self.last_capture: Optional[CaptureOutcome] = None

        self._closed = False
        self._permission_task: Optional[asyncio.Future] = None
        self._clear_measurement()

    def _clear_measurement(self) -> None:
        self.step = Step.SETUP
        self.base_angle: Optional[CapturedAngle] = None
        self.top_angle: Optional[CapturedAngle] = None
        self.far_angle: Optional[CapturedAngle] = None
        self.estimated_distance_m: Optional[float] = None
        self.result: Optional[HeightEstimate] = None
        self.warning: Optional[MeasurementIssue] = None
        self.base_image: Optional[str] = None
        self.top_image: Optional[str] = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def streaming(self) -> bool:
        return self.sampler.active

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("MeasurementSession is closed")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> PermissionState:
        """
        Request sensor permission and start streaming samples into the gate.

        Returns:
            The permission state. If close() ran while the request was in
            flight, nothing is started.

        Raises:
            UnsupportedDeviceError: If the device has no orientation sensor.
            PermissionDeniedError: If access was refused.
        """
        self._ensure_open()
        if self.sampler.active:
            return self.sampler.permission

        self._permission_task = asyncio.ensure_future(self.sampler.request_permission())
        try:
            permission = await self._permission_task
        except asyncio.CancelledError:
            if self._closed:
                return self.sampler.permission
            raise
        finally:
            self._permission_task = None

        if self._closed:
            return permission
        self.sampler.start(self.push_sample, self._on_sensor_error)
        return permission

    def close(self) -> None:
        """Stop everything. Idempotent; no callbacks take effect afterwards."""
        if self._closed:
            return
        self._closed = True
        if self._permission_task is not None and not self._permission_task.done():
            self._permission_task.cancel()
        self.sampler.stop()
        self.gate.reset()

    async def __aenter__(self) -> "MeasurementSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Sample stream and stability
    # ------------------------------------------------------------------

    def push_sample(self, sample: OrientationSample) -> None:
        """Sampler callback: buffer one sample in the gate."""
        if self._closed:
            return
        self.gate.push(sample)
        self.last_sample = sample

    def _on_sensor_error(self, error: SensorReadError) -> None:
        if self._closed:
            return
        self.last_sensor_error = error
        warnings.warn(f"Orientation read error: {error}", RuntimeWarning)

    def tick(self, now_ms: Optional[int] = None) -> StabilityStatus:
        """
        Run one stability evaluation, auto-capturing when the gate says so.

        Outside the capture steps the gate is held (progress 0).
        """
        if now_ms is None:
            now_ms = self.clock()
        if self._closed or self.step not in CAPTURE_STEPS:
            self.gate.interrupt()
            status = StabilityStatus(
                state=StabilityState.SHAKY,
                sd_deg=None,
                progress=0.0,
                seconds_remaining=0,
                capture_now=False,
                n_samples=len(self.gate.window),
            )
        else:
            status = self.gate.tick(now_ms)
            if status.capture_now:
                self.capture(now_ms, auto=True)
        self.last_status = status
        return status

    async def run_stability_loop(self, on_status: Optional[Callable[[StabilityStatus], None]] = None) -> None:
        """Tick every tick_interval_ms until the session is closed."""
        interval_s = self.config.stability.tick_interval_ms / 1000.0
        while not self._closed:
            status = self.tick()
            if on_status is not None:
                on_status(status)
            await asyncio.sleep(interval_s)

    def calibrate_zero(self) -> float:
        """Zero the pitch at the current orientation and clear the window."""
        self._ensure_open()
        offset = self.sampler.calibrate_zero()
        self.gate.reset()
        return offset

    def begin_setup(self, now_ms: Optional[int] = None, duration_ms: Optional[int] = None) -> None:
        """Suppress auto-capture while the user lines up the shot."""
        self.gate.begin_setup(self.clock() if now_ms is None else now_ms, duration_ms)

    @property
    def auto_capture(self) -> bool:
        return self.gate.auto_capture

    @auto_capture.setter
    def auto_capture(self, enabled: bool) -> None:
        self.gate.auto_capture = bool(enabled)

    @property
    def paused(self) -> bool:
        return self.gate.paused

    @paused.setter
    def paused(self, value: bool) -> None:
        self.gate.paused = bool(value)

    # ------------------------------------------------------------------
    # Step machine
    # ------------------------------------------------------------------

    def _report(self, issue: Optional[MeasurementIssue]) -> Optional[MeasurementIssue]:
        self.warning = issue
        return issue

    def save_setup(self, eye_height_m: Optional[float] = None) -> Optional[MeasurementIssue]:
        """
        Confirm the eye height and move to the first capture/distance step.

        Returns:
            EYE_HEIGHT_OUT_OF_RANGE issue, or None on success.
        """
        self._ensure_open()
        if eye_height_m is not None:
            self.eye_height_m = float(eye_height_m)
        issue = validate_eye_height(self.eye_height_m, self.config.geometry)
        if issue is not None:
            return self._report(issue)
        self._report(None)
        self.step = Step.BASE if self.mode is MeasurementMode.BASE_TOP else Step.DISTANCE
        return None

    def set_distance(
        self,
        distance_m: Optional[float] = None,
        steps: Optional[float] = None,
        step_length_m: Optional[float] = None,
        step_forward_m: Optional[float] = None,
    ) -> Optional[MeasurementIssue]:
        """
        Provide the distance inputs and move to the top capture.

        Paced mode takes either distance_m or a step count (times
        step_length_m, default from config). TwoStop mode takes the forward
        step between stations.

        Returns:
            DISTANCE_OUT_OF_RANGE issue, or None on success.

        Raises:
            RuntimeError: If the session is not in the DISTANCE step.
            ValueError: If the inputs are incomplete or invalid.
        """
        self._ensure_open()
        if self.step is not Step.DISTANCE:
            raise RuntimeError(f"set_distance() is not valid in step {self.step.value}")

        if self.mode is MeasurementMode.TWO_STOP:
            if step_forward_m is not None:
                if step_forward_m <= 0:
                    raise ValueError(f"step_forward_m must be positive, got {step_forward_m}")
                self.step_forward_m = float(step_forward_m)
            self._report(None)
            self.step = Step.TOP
            return None

        if distance_m is None:
            if steps is None:
                raise ValueError("Provide distance_m or steps")
            length = self.config.step_length_m if step_length_m is None else step_length_m
            distance_m = paced_distance(steps, length)

        self.distance_m = float(distance_m)
        issue = validate_paced_distance(self.distance_m, self.config.geometry)
        if issue is not None:
            return self._report(issue)
        self._report(None)
        self.step = Step.TOP
        return None

    def capture(self, now_ms: Optional[int] = None, auto: bool = False) -> CaptureOutcome:
        """
        Capture the angle for the current step and advance if it is usable.

        Args:
            now_ms: Capture time. Default: time of the newest sample.
            auto: Whether the stability gate triggered the capture.

        Returns:
            CaptureOutcome for this attempt.

        Raises:
            RuntimeError: If the session is closed or not in a capture step.
        """
        self._ensure_open()
        if self.step not in CAPTURE_STEPS:
            raise RuntimeError(f"Nothing to capture in step {self.step.value}")
        if now_ms is None:
            latest = self.gate.window.latest_ms
            now_ms = latest if latest is not None else self.clock()

        step = self.step
        snapshot = self.gate.capture(now_ms, check_roll=step is Step.BASE)
        if not snapshot.ok:
            self._report(snapshot.issue)
            outcome = CaptureOutcome(step=step, issue=snapshot.issue, auto=auto)
        elif step is Step.BASE:
            outcome = self._capture_base(snapshot.angle, auto)
        elif step is Step.TOP:
            outcome = self._capture_top(snapshot.angle, auto)
        else:
            outcome = self._capture_second_top(snapshot.angle, auto)
        self.last_capture = outcome
        return outcome

    def _capture_base(self, angle: CapturedAngle, auto: bool) -> CaptureOutcome:
        issue = validate_base_angle(angle.median_rad, self.config.geometry)
        if issue is not None:
            self._report(issue)
            return CaptureOutcome(step=Step.BASE, angle=angle, issue=issue, auto=auto)
        self.base_angle = angle
        self.estimated_distance_m = horizontal_distance_from_base(self.eye_height_m, angle.median_rad)
        self._report(None)
        self.step = Step.TOP
        return CaptureOutcome(step=Step.BASE, angle=angle, auto=auto)

    def _capture_top(self, angle: CapturedAngle, auto: bool) -> CaptureOutcome:
        limits = self.config.geometry
        if self.mode is MeasurementMode.TWO_STOP:
            self.far_angle = angle
            self._report(None)
            self.step = Step.TOP2
            return CaptureOutcome(step=Step.TOP, angle=angle, auto=auto)

        if self.mode is MeasurementMode.PACED:
            solved = solve_paced(PacedInput(self.eye_height_m, self.distance_m, angle.median_rad), limits)
            if not solved.ok and solved.issue.reason is GeometryReason.DISTANCE_OUT_OF_RANGE:
                self.step = Step.DISTANCE
            return self._finish(Step.TOP, angle, solved, auto)

        inp = BaseTopInput(
            eye_height_m=self.eye_height_m,
            base_angle_rad=self.base_angle.median_rad,
            top_angle_rad=angle.median_rad,
            base_sd_rad=self.base_angle.std_dev_rad,
            top_sd_rad=angle.std_dev_rad,
        )
        solved = solve_base_top(inp, limits)
        if not solved.ok:
            return self._finish(Step.TOP, angle, solved, auto)
        mc = estimate_base_top_uncertainty(inp, config=self.config.uncertainty, rng=self.rng)
        if not mc.ok:
            self._report(mc.issue)
            return CaptureOutcome(step=Step.TOP, angle=angle, issue=mc.issue, auto=auto)
        return self._complete(Step.TOP, angle, mc.estimate, solved.distance_m, auto)

    def _capture_second_top(self, angle: CapturedAngle, auto: bool) -> CaptureOutcome:
        inp = TwoStopInput(
            eye_height_m=self.eye_height_m,
            step_forward_m=self.step_forward_m,
            far_angle_rad=self.far_angle.median_rad,
            near_angle_rad=angle.median_rad,
        )
        return self._finish(Step.TOP2, angle, solve_two_stop(inp, self.config.geometry), auto)

    def _finish(self, step: Step, angle: CapturedAngle, solved: GeometryResult, auto: bool) -> CaptureOutcome:
        if not solved.ok:
            self._report(solved.issue)
            return CaptureOutcome(step=step, angle=angle, issue=solved.issue, auto=auto)
        return self._complete(step, angle, HeightEstimate(height_m=solved.height_m), solved.distance_m, auto)

    def _complete(
        self,
        step: Step,
        angle: CapturedAngle,
        estimate: HeightEstimate,
        distance_m: Optional[float],
        auto: bool,
    ) -> CaptureOutcome:
        self.top_angle = angle
        self.result = estimate
        if distance_m is not None:
            self.estimated_distance_m = distance_m
        self._report(None)
        self.step = Step.RESULT
        return CaptureOutcome(step=step, angle=angle, result=estimate, auto=auto)

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def fuse_vision(self, vision: Optional[VisionEstimate], timestamp_ms: Optional[int] = None) -> FusionResult:
        """Fuse a vision estimate with the current sensor result (if any)."""
        self._ensure_open()
        sensor = SensorEstimate.from_height_estimate(self.result) if self.result is not None else None
        return self.fusion.fuse(vision=vision, sensor=sensor, timestamp_ms=timestamp_ms)

    def fuse_boundary(
        self,
        boundary: BoundaryResult,
        references: Sequence[KnownObject],
        timestamp_ms: Optional[int] = None,
    ) -> FusionResult:
        """
        Scale a detected boundary with the best reference object and fuse it.

        Without a usable reference the vision side is dropped and only the
        sensor result (if any) is fused.
        """
        calibration = calibrate_scale(references)
        vision = None
        if calibration is not None:
            vision = vision_estimate_from_boundary(
                boundary, calibration, self.config.vision_calibration_factor
            )
        return self.fuse_vision(vision, timestamp_ms)

    def record(self, timestamp_ms: Optional[int] = None) -> MeasurementRecord:
        """
        Build the persistable record of the completed measurement.

        Raises:
            RuntimeError: If no result is available yet.
        """
        if self.result is None:
            raise RuntimeError("No completed measurement to record")
        pr = self.result.percentile_range
        return MeasurementRecord(
            timestamp_ms=int(time.time() * 1000) if timestamp_ms is None else timestamp_ms,
            mode=self.mode,
            eye_height_m=self.eye_height_m,
            top_angle_rad=self.top_angle.median_rad,
            result_m=self.result.height_m,
            distance_m=self.distance_m if self.mode is MeasurementMode.PACED else self.estimated_distance_m,
            base_angle_rad=self.base_angle.median_rad if self.base_angle is not None else None,
            p10=pr.p10 if pr is not None else None,
            p90=pr.p90 if pr is not None else None,
            base_image=self.base_image,
            top_image=self.top_image,
        )

    def reset(self) -> None:
        """Start over on a new target: clear captures, result and fusion state."""
        self._ensure_open()
        self._clear_measurement()
        self.fusion.reset()
        self.gate.interrupt()

"""
Unit tests for heightcore/session.py.

Drives complete measurements through the simulated orientation source with
the noise-free tripod profile, so auto-capture timing and results are
deterministic.
"""

import asyncio
import unittest
import warnings

import numpy as np

from heightcore.errors import (
    ErrorKind,
    GeometryReason,
    PermissionDeniedError,
    UnsupportedDeviceError,
)
from heightcore.measure.types import MeasurementMode
from heightcore.sensors.types import PermissionState, RawOrientationReading
from heightcore.session import MeasurementSession, Step
from heightcore.sim.handheld import (
    PROFILES,
    SimulatedOrientationSource,
    drive_session,
    simulate_orientation_trace,
)
from heightcore.vision.boundary import (
    DEFAULT_CALIBRATION_FACTOR,
    BoundaryResult,
    KnownObject,
    KnownObjectType,
    Point2D,
)


def make_session(mode, segments=None, duration_s=14.0, **source_kwargs):
    source = SimulatedOrientationSource(**source_kwargs)
    if segments is not None:
        source.load(
            simulate_orientation_trace(
                segments, duration_s, profile=PROFILES["tripod"], rng=np.random.default_rng(0)
            )
        )
    session = MeasurementSession(source, mode, rng=np.random.default_rng(1), clock=lambda: source.now_ms)
    return session, source


def base_top_scene(height=12.0, eye=1.6, distance=15.0, switch_s=4.0):
    base = -np.rad2deg(np.arctan(eye / distance))
    top = np.rad2deg(np.arctan((height - eye) / distance))
    return [(0.0, base), (switch_s, top)]


def paced_session(height=9.0, camera=1.5, distance=12.0):
    top = np.rad2deg(np.arctan((height - camera) / distance))
    session, source = make_session(MeasurementMode.PACED, [(0.0, top)], duration_s=2.0)
    asyncio.run(session.start())
    session.save_setup(camera)
    session.set_distance(steps=distance / 0.75, step_length_m=0.75)
    source.replay()
    return session, source


class TestBaseTopFlow(unittest.TestCase):
    """Test suite for a BaseTop session on a tripod trace."""

    def setUp(self) -> None:
        self.session, self.source = make_session(MeasurementMode.BASE_TOP, base_top_scene())
        asyncio.run(self.session.start())
        self.assertIsNone(self.session.save_setup(1.6))

    def test_auto_capture_base_then_top(self) -> None:
        """Test base and top are auto-captured in order."""
        self.assertIs(self.session.step, Step.BASE)
        outcomes = drive_session(self.session, self.source, 0, 14000)
        self.assertEqual([o.step for o in outcomes], [Step.BASE, Step.TOP])
        self.assertTrue(all(o.auto and o.ok for o in outcomes))
        self.assertIs(self.session.step, Step.RESULT)

        result = self.session.result
        self.assertAlmostEqual(result.height_m, 12.0, places=6)
        self.assertAlmostEqual(self.session.estimated_distance_m, 15.0, places=6)
        self.assertLessEqual(result.percentile_range.p10, result.percentile_range.p90)
        self.assertIs(outcomes[-1].result, result)

    def test_record(self) -> None:
        """Test the record built from a finished session."""
        drive_session(self.session, self.source, 0, 14000)
        record = self.session.record(timestamp_ms=123)
        self.assertIs(record.mode, MeasurementMode.BASE_TOP)
        self.assertEqual(record.timestamp_ms, 123)
        self.assertAlmostEqual(record.result_m, 12.0, places=6)
        self.assertAlmostEqual(record.distance_m, 15.0, places=6)
        self.assertIsNotNone(record.base_angle_rad)
        self.assertIsNotNone(record.p10)

    def test_manual_capture_needs_samples(self) -> None:
        """Test manual capture right after start is refused."""
        outcome = self.session.capture(now_ms=0)
        self.assertIs(outcome.issue.kind, ErrorKind.INSUFFICIENT_SAMPLES)
        self.assertIs(self.session.step, Step.BASE)
        self.assertIs(self.session.warning, outcome.issue)

    def test_no_capture_outside_capture_steps(self) -> None:
        """Test capture on the result step is refused."""
        drive_session(self.session, self.source, 0, 14000)
        status = self.session.tick(14100)
        self.assertFalse(status.capture_now)
        with self.assertRaises(RuntimeError):
            self.session.capture()

    def test_reset(self) -> None:
        """Test reset returns to setup with a fresh filter."""
        drive_session(self.session, self.source, 0, 14000)
        self.session.fuse_vision(None)
        self.session.reset()
        self.assertIs(self.session.step, Step.SETUP)
        self.assertIsNone(self.session.result)
        self.assertIsNone(self.session.base_angle)
        self.assertFalse(self.session.fusion.state.initialized)
        with self.assertRaises(RuntimeError):
            self.session.record()

    def test_auto_capture_disabled(self) -> None:
        """Test no capture happens with auto-capture off."""
        self.session.auto_capture = False
        outcomes = drive_session(self.session, self.source, 0, 14000)
        self.assertEqual(outcomes, [])
        self.assertIs(self.session.step, Step.BASE)


class TestBaseTopRejections(unittest.TestCase):
    """Test suite for rejected BaseTop measurements."""

    def test_shallow_base_is_rejected(self) -> None:
        """Test a shallow base stays on the base step."""
        session, source = make_session(MeasurementMode.BASE_TOP, [(0.0, -1.0)], duration_s=2.0)
        asyncio.run(session.start())
        session.save_setup(1.6)
        source.replay()
        outcome = session.capture()
        self.assertIs(outcome.issue.reason, GeometryReason.TOO_SHALLOW)
        self.assertIsNotNone(outcome.angle)
        self.assertIs(session.step, Step.BASE)

    def test_tilted_base_is_rejected(self) -> None:
        """Test a tilted base capture is refused."""
        source = SimulatedOrientationSource()
        session = MeasurementSession(source, MeasurementMode.BASE_TOP, clock=lambda: source.now_ms)
        asyncio.run(session.start())
        session.save_setup(1.6)
        for t in range(0, 1000, 20):
            source.feed(RawOrientationReading(timestamp_ms=t, beta_deg=-10.0, gamma_deg=12.0))
        outcome = session.capture()
        self.assertIs(outcome.issue.kind, ErrorKind.DEVICE_TILTED)

    def test_eye_height_out_of_range(self) -> None:
        """Test an eye height outside the range is refused."""
        session, _ = make_session(MeasurementMode.BASE_TOP)
        issue = session.save_setup(3.0)
        self.assertIs(issue.reason, GeometryReason.EYE_HEIGHT_OUT_OF_RANGE)
        self.assertIs(session.step, Step.SETUP)
        self.assertIsNone(session.save_setup(1.7))
        self.assertIs(session.step, Step.BASE)


class TestPacedFlow(unittest.TestCase):
    """Test suite for a Paced session."""

    def test_manual_capture(self) -> None:
        """Test a Paced height from a manual capture."""
        session, _ = paced_session()
        self.assertAlmostEqual(session.distance_m, 12.0)
        outcome = session.capture()
        self.assertTrue(outcome.ok)
        self.assertFalse(outcome.auto)
        self.assertIs(session.step, Step.RESULT)
        self.assertAlmostEqual(session.result.height_m, 9.0, places=6)
        self.assertIsNone(session.result.percentile_range)
        record = session.record(timestamp_ms=0)
        self.assertEqual(record.distance_m, 12.0)
        self.assertIsNone(record.base_angle_rad)

    def test_distance_out_of_range(self) -> None:
        """Test a paced distance outside the limits is refused."""
        session, _ = make_session(MeasurementMode.PACED)
        session.save_setup(1.5)
        issue = session.set_distance(steps=2)
        self.assertIs(issue.reason, GeometryReason.DISTANCE_OUT_OF_RANGE)
        self.assertIs(session.step, Step.DISTANCE)
        self.assertIsNone(session.set_distance(distance_m=10.0))
        self.assertIs(session.step, Step.TOP)

    def test_set_distance_needs_input(self) -> None:
        """Test set_distance without any distance raises."""
        session, _ = make_session(MeasurementMode.PACED)
        session.save_setup(1.5)
        with self.assertRaises(ValueError):
            session.set_distance()

    def test_set_distance_in_wrong_step(self) -> None:
        """Test set_distance outside its step raises."""
        session, _ = make_session(MeasurementMode.PACED)
        with self.assertRaises(RuntimeError):
            session.set_distance(distance_m=10.0)


class TestTwoStopFlow(unittest.TestCase):
    """Test suite for a TwoStop session."""

    def test_auto_capture_both_stations(self) -> None:
        """Test both station angles are auto-captured."""
        eye, step, far, height = 1.7, 5.0, 12.0, 10.0
        a1 = np.rad2deg(np.arctan((height - eye) / far))
        a2 = np.rad2deg(np.arctan((height - eye) / (far - step)))
        session, source = make_session(MeasurementMode.TWO_STOP, [(0.0, a1), (5.0, a2)])
        asyncio.run(session.start())
        session.save_setup(eye)
        self.assertIs(session.step, Step.DISTANCE)
        session.set_distance(step_forward_m=step)

        outcomes = drive_session(session, source, 0, 14000)
        self.assertEqual([o.step for o in outcomes], [Step.TOP, Step.TOP2])
        self.assertIs(session.step, Step.RESULT)
        self.assertAlmostEqual(session.result.height_m, height, places=6)
        self.assertAlmostEqual(session.estimated_distance_m, far, places=6)

    def test_invalid_step_forward(self) -> None:
        """Test a non-positive step forward raises."""
        session, _ = make_session(MeasurementMode.TWO_STOP)
        session.save_setup(1.7)
        with self.assertRaises(ValueError):
            session.set_distance(step_forward_m=0.0)


class TestLifecycle(unittest.TestCase):
    """Test suite for session start, close and errors."""

    def test_start_twice(self) -> None:
        """Test a second start keeps the stream and returns GRANTED."""
        session, source = make_session(MeasurementMode.BASE_TOP)
        self.assertIs(asyncio.run(session.start()), PermissionState.GRANTED)
        self.assertIs(asyncio.run(session.start()), PermissionState.GRANTED)
        self.assertTrue(source.is_open)
        self.assertTrue(session.streaming)

    def test_unsupported_device(self) -> None:
        """Test start on an unsupported device raises."""
        session, _ = make_session(MeasurementMode.BASE_TOP, supported=False)
        with self.assertRaises(UnsupportedDeviceError):
            asyncio.run(session.start())

    def test_permission_denied(self) -> None:
        """Test start with permission denied raises."""
        session, _ = make_session(MeasurementMode.BASE_TOP, permission=PermissionState.DENIED)
        with self.assertRaises(PermissionDeniedError):
            asyncio.run(session.start())

    def test_close_during_permission_request(self) -> None:
        """Test close cancels a pending permission request."""
        session, source = make_session(MeasurementMode.BASE_TOP, permission_delay_s=0.5)

        async def scenario():
            task = asyncio.ensure_future(session.start())
            await asyncio.sleep(0.01)
            session.close()
            return await task

        state = asyncio.run(scenario())
        self.assertIsNot(state, PermissionState.GRANTED)
        self.assertFalse(source.is_open)
        self.assertFalse(session.streaming)
        self.assertTrue(session.closed)

    def test_nothing_changes_after_close(self) -> None:
        """Test a closed session ignores further input."""
        session, source = make_session(MeasurementMode.BASE_TOP, base_top_scene())
        asyncio.run(session.start())
        session.save_setup(1.6)
        source.replay(until_ms=1000)
        session.close()
        session.close()
        self.assertEqual(source.replay(), 0)
        self.assertEqual(len(session.gate.window), 0)
        self.assertFalse(session.tick(5000).capture_now)
        with self.assertRaises(RuntimeError):
            session.capture()
        with self.assertRaises(RuntimeError):
            asyncio.run(session.start())

    def test_async_context_manager(self) -> None:
        """Test the session as an async context manager."""
        session, source = make_session(MeasurementMode.BASE_TOP)

        async def scenario():
            async with session:
                await session.start()
                self.assertTrue(source.is_open)

        asyncio.run(scenario())
        self.assertTrue(session.closed)
        self.assertFalse(source.is_open)

    def test_sensor_error_is_reported(self) -> None:
        """Test read errors reach the session error list."""
        session, source = make_session(MeasurementMode.BASE_TOP)
        asyncio.run(session.start())
        with warnings.catch_warnings(record=True):
            warnings.simplefilter("always")
            source.inject_error("bus glitch")
        self.assertIn("bus glitch", str(session.last_sensor_error))
        self.assertTrue(session.streaming)

    def test_calibrate_zero(self) -> None:
        """Test calibration zeroes pitch and clears the window."""
        source = SimulatedOrientationSource()
        session = MeasurementSession(source, MeasurementMode.BASE_TOP, clock=lambda: source.now_ms)
        asyncio.run(session.start())
        for t in range(0, 200, 20):
            source.feed(RawOrientationReading(timestamp_ms=t, beta_deg=3.0, gamma_deg=0.0))
        offset = session.calibrate_zero()
        self.assertAlmostEqual(offset, np.deg2rad(3.0), places=9)
        self.assertEqual(len(session.gate.window), 0)
        source.feed(RawOrientationReading(timestamp_ms=200, beta_deg=3.0, gamma_deg=0.0))
        self.assertAlmostEqual(session.last_sample.pitch_rad, 0.0, places=9)


class TestFusion(unittest.TestCase):
    """Test suite for fusing vision heights into a session."""

    def setUp(self) -> None:
        self.session, _ = paced_session()
        self.session.capture()
        self.door = KnownObject(KnownObjectType.DOOR, (0.0, 0.0, 90.0, 205.0), 0.9, 0.8)

    def _boundary(self, height_m, confidence=0.9):
        length_px = height_m / DEFAULT_CALIBRATION_FACTOR * 100.0
        return BoundaryResult(Point2D(300.0, 100.0), Point2D(300.0, 100.0 + length_px), confidence)

    def test_fuse_boundary(self) -> None:
        """Test fusing one boundary with a door reference."""
        r = self.session.fuse_boundary(self._boundary(9.0), [self.door], timestamp_ms=0)
        self.assertTrue(r.ok)
        self.assertEqual((r.w_vision, r.w_sensor), (0.7, 0.3))
        self.assertAlmostEqual(r.height_m, 9.0, places=6)
        entry = self.session.fusion.get_history()[-1]
        self.assertAlmostEqual(entry.vision.confidence, 0.98)

    def test_fuse_boundary_without_reference(self) -> None:
        """Test a boundary without a reference falls back to the sensor."""
        r = self.session.fuse_boundary(self._boundary(20.0), [], timestamp_ms=0)
        self.assertEqual((r.w_vision, r.w_sensor), (0.0, 1.0))
        self.assertAlmostEqual(r.height_m, 9.0, places=6)

    def test_repeated_frames_shrink_uncertainty(self) -> None:
        """Test repeated frames shrink the fused SD."""
        first = self.session.fuse_boundary(self._boundary(9.0), [self.door], timestamp_ms=0)
        for k in range(1, 10):
            last = self.session.fuse_boundary(self._boundary(9.0), [self.door], timestamp_ms=k)
        self.assertLess(last.uncertainty_m, first.uncertainty_m)
        self.assertGreater(last.confidence, first.confidence)

    def test_no_input(self) -> None:
        """Test fusing with nothing usable."""
        session, _ = make_session(MeasurementMode.PACED)
        r = session.fuse_vision(None)
        self.assertIs(r.issue.kind, ErrorKind.FUSION_NO_INPUT)


if __name__ == "__main__":
    unittest.main()

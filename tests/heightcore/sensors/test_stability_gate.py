"""
Unit tests for heightcore/sensors/stability.py.

Tests the rolling window, steadiness classification, the auto-capture
trigger with its cooldown and suppression rules, and manual capture.
"""

import unittest

import numpy as np

from heightcore.config import StabilityConfig
from heightcore.errors import ErrorKind
from heightcore.sensors.stability import (
    SampleWindow,
    StabilityGate,
    StabilityState,
    classify_sd,
)
from heightcore.sensors.types import OrientationSample


def run_gate(gate, t_end_ms, pitch_fn, roll_rad=0.0, dt_ms=20, tick_ms=100):
    """Push 50 Hz samples and tick every 100 ms; return the list of statuses."""
    statuses = []
    t = 0
    for now in range(0, t_end_ms + 1, tick_ms):
        while t <= now:
            gate.push(OrientationSample(timestamp_ms=t, pitch_rad=pitch_fn(t), roll_rad=roll_rad))
            t += dt_ms
        statuses.append((now, gate.tick(now)))
    return statuses


def alternating(amplitude_deg):
    amp = np.deg2rad(amplitude_deg)
    return lambda t: 0.3 + (amp if (t // 20) % 2 == 0 else -amp)


class TestSampleWindow(unittest.TestCase):
    """Test suite for SampleWindow."""

    def test_evicts_old_samples(self) -> None:
        """Test samples older than the window are evicted."""
        w = SampleWindow(1000)
        w.append(0, 0.1)
        w.append(500, 0.2)
        w.append(1500, 0.3)
        self.assertEqual(len(w), 2)
        t, p = w.as_arrays()
        np.testing.assert_array_equal(t, [500, 1500])
        np.testing.assert_allclose(p, [0.2, 0.3])

    def test_rejects_time_regression(self) -> None:
        """Test appending an older sample raises."""
        w = SampleWindow(1000)
        w.append(100, 0.0)
        with self.assertRaises(ValueError):
            w.append(50, 0.0)

    def test_since(self) -> None:
        """Test values at or after a given time."""
        w = SampleWindow(3000)
        for t in range(0, 1000, 100):
            w.append(t, t / 1000.0)
        np.testing.assert_allclose(w.since(800), [0.8, 0.9])


class TestClassification(unittest.TestCase):
    """Test suite for steadiness classification."""

    def test_thresholds(self) -> None:
        """Test SD thresholds and their boundaries."""
        cfg = StabilityConfig()
        self.assertIs(classify_sd(0.25, cfg), StabilityState.SHAKY)
        self.assertIs(classify_sd(0.2, cfg), StabilityState.SHAKY)
        self.assertIs(classify_sd(0.15, cfg), StabilityState.STABILIZING)
        self.assertIs(classify_sd(0.1, cfg), StabilityState.STABILIZING)
        self.assertIs(classify_sd(0.05, cfg), StabilityState.READY)

    def test_too_few_samples_is_shaky(self) -> None:
        """Test fewer than 30 samples reads as SHAKY."""
        gate = StabilityGate()
        for t in range(0, 20 * 20, 20):
            gate.push(OrientationSample(timestamp_ms=t, pitch_rad=0.3, roll_rad=0.0))
        status = gate.tick(400)
        self.assertIs(status.state, StabilityState.SHAKY)
        self.assertIsNone(status.sd_deg)
        self.assertEqual(status.progress, 0.0)
        self.assertEqual(status.n_samples, 20)

    def test_shaky_hand(self) -> None:
        """Test a large wobble is SHAKY."""
        statuses = run_gate(StabilityGate(), 2000, alternating(0.5))
        self.assertIs(statuses[-1][1].state, StabilityState.SHAKY)
        self.assertGreater(statuses[-1][1].sd_deg, 0.2)

    def test_stabilizing_hand(self) -> None:
        """Test a small wobble is STABILIZING."""
        statuses = run_gate(StabilityGate(), 2000, alternating(0.15))
        self.assertIs(statuses[-1][1].state, StabilityState.STABILIZING)

    def test_steady_hand(self) -> None:
        """Test a constant pitch is READY."""
        statuses = run_gate(StabilityGate(), 2000, lambda t: 0.3)
        self.assertIs(statuses[-1][1].state, StabilityState.READY)
        self.assertTrue(statuses[-1][1].is_steady)


class TestAutoCapture(unittest.TestCase):
    """Test suite for the auto-capture trigger."""

    def test_single_trigger_then_cooldown(self) -> None:
        """Test one trigger followed by a cooldown."""
        gate = StabilityGate()
        statuses = run_gate(gate, 5000, lambda t: 0.3)
        trigger_times = [now for now, s in statuses if s.capture_now]
        # READY from 600 ms (31 samples), capture 2500 ms later
        self.assertEqual(trigger_times, [3100])
        self.assertEqual(gate.triggers, 1)
        after = dict(statuses)
        self.assertTrue(after[3500].in_cooldown)
        self.assertFalse(after[4200].in_cooldown)

    def test_triggers_again_after_full_steady_period(self) -> None:
        """Test a second trigger needs a new steady period."""
        gate = StabilityGate()
        statuses = run_gate(gate, 6000, lambda t: 0.3)
        self.assertEqual([now for now, s in statuses if s.capture_now], [3100, 5700])

    def test_cooldown_blocks_short_steady_period(self) -> None:
        """Test the cooldown holds back a trigger that is otherwise due."""
        gate = StabilityGate(StabilityConfig(required_steady_ms=200, cooldown_ms=1000))
        statuses = run_gate(gate, 4000, lambda t: 0.3)
        trigger_times = [now for now, s in statuses if s.capture_now]
        self.assertEqual(trigger_times, [800, 1800, 2800, 3800])
        self.assertTrue(np.all(np.diff(trigger_times) >= 1000))
        # steady long enough during cooldown, but held back until it ends
        held = dict(statuses)[1500]
        self.assertTrue(held.in_cooldown)
        self.assertEqual(held.progress, 1.0)
        self.assertFalse(held.capture_now)
        for now, s in statuses:
            if now not in trigger_times and s.in_cooldown:
                self.assertFalse(s.capture_now)

    def test_progress_and_countdown(self) -> None:
        """Test progress and seconds remaining."""
        statuses = dict(run_gate(StabilityGate(), 1850, lambda t: 0.3))
        status = statuses[1800]
        self.assertAlmostEqual(status.progress, 1200 / 2500)
        self.assertEqual(status.seconds_remaining, 2)
        self.assertFalse(status.capture_now)

    def test_jolt_restarts_steady_timer(self) -> None:
        """Test a jolt resets the steady timer."""
        def pitch(t):
            return 0.3 if t < 2000 else 0.3 + np.deg2rad(1.0)

        statuses = run_gate(StabilityGate(), 4000, pitch)
        self.assertFalse(any(s.capture_now for _, s in statuses))
        self.assertIs(dict(statuses)[2100].state, StabilityState.SHAKY)

    def test_disabled(self) -> None:
        """Test no trigger with auto-capture off."""
        gate = StabilityGate()
        gate.auto_capture = False
        statuses = run_gate(gate, 5000, lambda t: 0.3)
        self.assertFalse(any(s.capture_now for _, s in statuses))
        self.assertIs(statuses[-1][1].state, StabilityState.READY)

    def test_paused(self) -> None:
        """Test no trigger while paused."""
        gate = StabilityGate()
        gate.paused = True
        statuses = run_gate(gate, 5000, lambda t: 0.3)
        self.assertFalse(any(s.capture_now for _, s in statuses))

    def test_setup_period_suppresses(self) -> None:
        """Test the setup period suppresses triggers."""
        gate = StabilityGate()
        gate.begin_setup(0, 10000)
        statuses = run_gate(gate, 5000, lambda t: 0.3)
        self.assertFalse(any(s.capture_now for _, s in statuses))
        self.assertEqual(statuses[0][1].setup_seconds_remaining, 10)
        self.assertTrue(gate.setup_active(5000))

    def test_capture_after_setup_period(self) -> None:
        """Test triggers resume after the setup period."""
        gate = StabilityGate()
        gate.begin_setup(0)
        statuses = run_gate(gate, 5000, lambda t: 0.3)
        self.assertEqual([now for now, s in statuses if s.capture_now], [3100])
        self.assertFalse(gate.setup_active(5000))

    def test_reset_clears_window(self) -> None:
        """Test reset empties the window."""
        gate = StabilityGate()
        run_gate(gate, 1000, lambda t: 0.3)
        gate.reset()
        self.assertEqual(len(gate.window), 0)
        self.assertIs(gate.tick(1100).state, StabilityState.SHAKY)


class TestManualCapture(unittest.TestCase):
    """Test suite for manual capture."""

    def test_insufficient_samples(self) -> None:
        """Test fewer than 10 samples gives an issue."""
        gate = StabilityGate()
        for t in range(0, 100, 20):
            gate.push(OrientationSample(timestamp_ms=t, pitch_rad=0.3, roll_rad=0.0))
        result = gate.capture(100)
        self.assertFalse(result.ok)
        self.assertIs(result.issue.kind, ErrorKind.INSUFFICIENT_SAMPLES)

    def test_uses_recent_window_only(self) -> None:
        """Test capture summarises the last second only."""
        gate = StabilityGate()
        run_gate(gate, 2000, lambda t: 0.1 if t < 1000 else 0.3)
        result = gate.capture(2000)
        self.assertTrue(result.ok)
        self.assertAlmostEqual(result.angle.median_rad, 0.3, places=9)
        self.assertEqual(result.angle.n_samples, 51)

    def test_capture_ignores_shakiness(self) -> None:
        """Test manual capture bypasses the steadiness gate."""
        gate = StabilityGate()
        run_gate(gate, 2000, alternating(0.5))
        self.assertTrue(gate.capture(2000).ok)

    def test_tilted_base_capture_refused(self) -> None:
        """Test a tilted base capture gives DEVICE_TILTED."""
        gate = StabilityGate()
        run_gate(gate, 2000, lambda t: -0.1, roll_rad=np.deg2rad(10.0))
        result = gate.capture(2000, check_roll=True)
        self.assertIs(result.issue.kind, ErrorKind.DEVICE_TILTED)
        self.assertTrue(gate.capture(2000, check_roll=False).ok)


if __name__ == "__main__":
    unittest.main()

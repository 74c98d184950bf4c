"""
Unit tests for heightcore/sensors/types.py.
"""

import unittest

import numpy as np

from heightcore.sensors.types import CapturedAngle, OrientationSample


class TestOrientationSample(unittest.TestCase):
    """Test suite for OrientationSample."""

    def test_elevation_uses_roll(self) -> None:
        """Test elevation is roll corrected."""
        s = OrientationSample(timestamp_ms=0, pitch_rad=0.5, roll_rad=0.4)
        self.assertAlmostEqual(s.elevation_rad, np.arctan(np.tan(0.5) * np.cos(0.4)), places=12)

    def test_rejects_non_integer_time(self) -> None:
        """Test float timestamps raise."""
        with self.assertRaises(TypeError):
            OrientationSample(timestamp_ms=1.5, pitch_rad=0.0, roll_rad=0.0)

    def test_rejects_non_finite(self) -> None:
        """Test non-finite angles raise."""
        with self.assertRaises(ValueError):
            OrientationSample(timestamp_ms=0, pitch_rad=float("nan"), roll_rad=0.0)

    def test_numpy_integer_time_accepted(self) -> None:
        """Test numpy integer timestamps are accepted."""
        s = OrientationSample(timestamp_ms=np.int64(20), pitch_rad=0.0, roll_rad=0.0)
        self.assertEqual(s.timestamp_ms, 20)


class TestCapturedAngle(unittest.TestCase):
    """Test suite for CapturedAngle."""

    def test_median_is_robust_to_jolt(self) -> None:
        """Test one outlier does not move the median."""
        values = np.full(21, 0.2)
        values[10] = 1.5
        angle = CapturedAngle.from_samples(values)
        self.assertAlmostEqual(angle.median_rad, 0.2, places=12)
        self.assertEqual(angle.n_samples, 21)

    def test_sample_sd_uses_n_minus_one(self) -> None:
        """Test SD uses the n-1 denominator."""
        values = np.array([0.0, 1.0, 2.0, 3.0])
        angle = CapturedAngle.from_samples(values, roll_rad=0.05)
        self.assertAlmostEqual(angle.std_dev_rad, np.std(values, ddof=1), places=12)
        self.assertAlmostEqual(angle.roll_at_capture_rad, 0.05)

    def test_single_sample_zero_sd(self) -> None:
        """Test a single sample has zero SD."""
        self.assertEqual(CapturedAngle.from_samples(np.array([0.3])).std_dev_rad, 0.0)

    def test_empty_rejected(self) -> None:
        """Test an empty sample set raises."""
        with self.assertRaises(ValueError):
            CapturedAngle.from_samples(np.array([]))

    def test_negative_sd_rejected(self) -> None:
        """Test a negative SD raises."""
        with self.assertRaises(ValueError):
            CapturedAngle(median_rad=0.0, std_dev_rad=-0.1)


if __name__ == "__main__":
    unittest.main()

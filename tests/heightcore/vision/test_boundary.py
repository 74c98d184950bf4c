"""
Unit tests for heightcore/vision/boundary.py.

Tests reference-object scale calibration and the conversion of a detected
boundary into a fusion-ready vision estimate.
"""

import unittest

from heightcore.vision.boundary import (
    DEFAULT_CALIBRATION_FACTOR,
    BoundaryResult,
    KnownObject,
    KnownObjectType,
    Point2D,
    ScaleCalibration,
    boost_confidence,
    calibrate_scale,
    known_object_score,
    px_per_meter_from_reference,
    select_reference,
    vision_estimate_from_boundary,
    vision_height_from_boundary,
)


def _door(height_px=205.0, score=0.8):
    return KnownObject(KnownObjectType.DOOR, (0.0, 0.0, 90.0, height_px), 0.9, score)


class TestBoundary(unittest.TestCase):
    """Test suite for BoundaryResult."""

    def test_pixel_length(self) -> None:
        """Test base-to-top pixel length."""
        b = BoundaryResult(Point2D(0.0, 0.0), Point2D(30.0, 40.0), 0.5)
        self.assertAlmostEqual(b.pixel_length, 50.0)

    def test_confidence_range(self) -> None:
        """Test confidence outside [0, 1] raises."""
        with self.assertRaises(ValueError):
            BoundaryResult(Point2D(0.0, 0.0), Point2D(0.0, 1.0), 1.2)


class TestCalibration(unittest.TestCase):
    """Test suite for reference-object scale calibration."""

    def test_px_per_meter(self) -> None:
        """Test px-per-meter from a known object."""
        self.assertAlmostEqual(px_per_meter_from_reference(205.0, 2.05), 100.0)
        self.assertAlmostEqual(px_per_meter_from_reference(0.2, 2.0), 0.5)
        with self.assertRaises(ValueError):
            px_per_meter_from_reference(100.0, 0.0)

    def test_known_object_score(self) -> None:
        """Test the reference object score."""
        self.assertAlmostEqual(known_object_score(1.0, 1.0, True), 1.0)
        self.assertAlmostEqual(known_object_score(0.5, 0.5, False), 0.45)

    def test_select_prefers_door(self) -> None:
        """Test a door wins over other references."""
        person = KnownObject(KnownObjectType.PERSON, (0, 0, 40, 170), 0.99, 0.99)
        weak_door = _door(score=0.3)
        strong_door = _door(score=0.7)
        self.assertIs(select_reference([person, weak_door, strong_door]), strong_door)
        self.assertIs(select_reference([person]), person)
        self.assertIsNone(select_reference([]))

    def test_calibrate_scale(self) -> None:
        """Test the scale calibration result."""
        cal = calibrate_scale([_door()])
        self.assertAlmostEqual(cal.px_per_meter, 100.0)
        self.assertAlmostEqual(cal.score, 0.8)
        self.assertIsNone(calibrate_scale([]))

    def test_invalid_scale(self) -> None:
        """Test a non-positive scale raises."""
        with self.assertRaises(ValueError):
            ScaleCalibration(px_per_meter=0.0)

    def test_boost(self) -> None:
        """Test the confidence boost from a reference."""
        cal = ScaleCalibration(100.0, score=0.5)
        self.assertAlmostEqual(boost_confidence(0.8, cal), 0.85)
        self.assertAlmostEqual(boost_confidence(0.98, ScaleCalibration(100.0, score=1.0)), 1.0)
        self.assertEqual(boost_confidence(0.8, None), 0.8)


class TestVisionHeight(unittest.TestCase):
    """Test suite for image-based heights."""

    def test_height_from_boundary(self) -> None:
        """Test metric height from a boundary and scale."""
        b = BoundaryResult(Point2D(100, 50), Point2D(100, 650), 0.9)
        self.assertAlmostEqual(vision_height_from_boundary(b, 100.0, calibration_factor=1.0), 6.0)
        self.assertAlmostEqual(
            vision_height_from_boundary(b, 100.0),
            6.0 * 2.0 / 2.43,
        )

    def test_unusable_scale(self) -> None:
        """Test an unusable scale gives no height."""
        b = BoundaryResult(Point2D(100, 50), Point2D(100, 650), 0.9)
        self.assertIsNone(vision_height_from_boundary(b, 0.0))
        self.assertIsNone(vision_height_from_boundary(b, float("nan")))

    def test_estimate_for_fusion(self) -> None:
        """Test the VisionEstimate handed to fusion."""
        b = BoundaryResult(Point2D(100, 50), Point2D(100, 650), 0.7)
        est = vision_estimate_from_boundary(b, calibrate_scale([_door()]))
        self.assertAlmostEqual(est.height_m, 6.0 * DEFAULT_CALIBRATION_FACTOR)
        self.assertAlmostEqual(est.confidence, 0.78)
        self.assertIsNone(est.std_dev_m)
        self.assertTrue(est.usable)


if __name__ == "__main__":
    unittest.main()

"""
Unit tests for heightcore/config.py.

Tests default thresholds, presets, validation and JSON round trips.
"""

import tempfile
import unittest
from pathlib import Path

from heightcore.config import (
    PRESETS,
    FusionConfig,
    GeometryLimits,
    SessionConfig,
    StabilityConfig,
    UncertaintyConfig,
    load_config,
    save_config,
)


class TestDefaults(unittest.TestCase):
    """Default values match the field-tuned thresholds."""

    def test_stability_defaults(self) -> None:
        """Test default stability thresholds and timings."""
        cfg = StabilityConfig()
        self.assertEqual(cfg.window_ms, 3000)
        self.assertEqual(cfg.min_samples_for_stability, 30)
        self.assertEqual(cfg.min_samples_for_capture, 10)
        self.assertEqual(cfg.shaky_sd_deg, 0.2)
        self.assertEqual(cfg.ready_sd_deg, 0.1)
        self.assertEqual(cfg.required_steady_ms, 2500)
        self.assertEqual(cfg.cooldown_ms, 1000)
        self.assertEqual(cfg.max_capture_roll_deg, 5.0)

    def test_geometry_defaults(self) -> None:
        """Test default geometry limits."""
        lim = GeometryLimits()
        self.assertEqual((lim.paced_min_distance_m, lim.paced_max_distance_m), (3.0, 25.0))
        self.assertEqual((lim.base_min_deg, lim.base_max_deg), (2.0, 35.0))
        self.assertEqual(lim.base_top_min_separation_deg, 5.0)
        self.assertEqual(lim.two_stop_min_separation_deg, 3.0)

    def test_uncertainty_and_fusion_defaults(self) -> None:
        """Test default Monte Carlo and fusion settings."""
        self.assertEqual(UncertaintyConfig().n_samples, 400)
        self.assertEqual(UncertaintyConfig().min_samples, 50)
        self.assertEqual(FusionConfig().process_noise_sd_m, 0.25)
        self.assertEqual(FusionConfig().effective_vision_base_sd_m, FusionConfig().sensor_base_sd_m)


class TestValidation(unittest.TestCase):
    """Invalid settings are rejected at construction."""

    def test_ready_above_shaky(self) -> None:
        """Test READY threshold above SHAKY raises."""
        with self.assertRaises(ValueError):
            StabilityConfig(ready_sd_deg=0.3, shaky_sd_deg=0.2)

    def test_capture_window_longer_than_window(self) -> None:
        """Test a capture window longer than the window raises."""
        with self.assertRaises(ValueError):
            StabilityConfig(window_ms=1000, capture_window_ms=2000)

    def test_base_range(self) -> None:
        """Test an inverted base angle range raises."""
        with self.assertRaises(ValueError):
            GeometryLimits(base_min_deg=40.0, base_max_deg=35.0)

    def test_percentiles(self) -> None:
        """Test invalid percentiles raise."""
        with self.assertRaises(ValueError):
            UncertaintyConfig(lower_percentile=90.0, upper_percentile=10.0)

    def test_fusion_min_sd_factor(self) -> None:
        """Test an invalid minimum SD factor raises."""
        with self.assertRaises(ValueError):
            FusionConfig(min_sd_factor=0.0)


class TestSessionConfig(unittest.TestCase):
    """Presets, partial dicts and JSON."""

    def test_presets_load(self) -> None:
        """Test every preset builds a SessionConfig."""
        for name in PRESETS:
            cfg = SessionConfig.from_preset(name)
            self.assertIsInstance(cfg, SessionConfig)

    def test_relaxed_preset(self) -> None:
        """Test the relaxed preset loosens thresholds."""
        cfg = SessionConfig.from_preset("relaxed")
        self.assertEqual(cfg.stability.ready_sd_deg, 0.15)
        self.assertEqual(cfg.stability.min_samples_for_stability, 30)

    def test_unknown_preset(self) -> None:
        """Test an unknown preset name raises."""
        with self.assertRaises(ValueError):
            SessionConfig.from_preset("nope")

    def test_from_dict_partial(self) -> None:
        """Test missing sections fall back to defaults."""
        cfg = SessionConfig.from_dict({"eye_height_m": 1.5, "geometry": {"base_min_deg": 3.0}})
        self.assertEqual(cfg.eye_height_m, 1.5)
        self.assertEqual(cfg.geometry.base_min_deg, 3.0)
        self.assertEqual(cfg.geometry.base_max_deg, 35.0)

    def test_from_dict_unknown_keys(self) -> None:
        """Test unknown keys raise."""
        with self.assertRaises(ValueError):
            SessionConfig.from_dict({"bogus": 1})
        with self.assertRaises(ValueError):
            SessionConfig.from_dict({"stability": {"bogus": 1}})

    def test_dict_round_trip(self) -> None:
        """Test to_dict/from_dict round trip."""
        cfg = SessionConfig.from_preset("strict")
        self.assertEqual(SessionConfig.from_dict(cfg.to_dict()), cfg)

    def test_json_round_trip(self) -> None:
        """Test save_config/load_config round trip."""
        cfg = SessionConfig().with_overrides(eye_height_m=1.72)
        with tempfile.TemporaryDirectory() as tmp:
            path = save_config(cfg, Path(tmp) / "sub" / "config.json")
            self.assertTrue(path.exists())
            self.assertEqual(load_config(path), cfg)


if __name__ == "__main__":
    unittest.main()

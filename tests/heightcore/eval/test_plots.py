"""
Unit tests for heightcore/eval/plots.py.
"""

import tempfile
import unittest
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np

from heightcore.eval.plots import (
    plot_fusion_history,
    plot_height_distribution,
    plot_stability_trace,
    rolling_sd_deg,
    save_figure,
)
from heightcore.fusion.height_filter import HeightFusion
from heightcore.fusion.types import SensorEstimate, VisionEstimate
from heightcore.measure.types import PercentileRange


class TestRollingSd(unittest.TestCase):
    """Test suite for rolling_sd_deg."""

    def test_constant_signal(self) -> None:
        """Test a constant pitch has zero rolling SD."""
        t = np.arange(0, 1000, 20)
        sd = rolling_sd_deg(t, np.full(t.size, 5.0), window_ms=200)
        self.assertTrue(np.isnan(sd[0]))
        np.testing.assert_allclose(sd[1:], 0.0)

    def test_window(self) -> None:
        """Test only samples inside the window contribute."""
        t = np.array([0, 100, 200, 300])
        sd = rolling_sd_deg(t, np.array([0.0, 2.0, 0.0, 2.0]), window_ms=100)
        self.assertAlmostEqual(sd[1], np.sqrt(2.0))
        self.assertAlmostEqual(sd[3], np.sqrt(2.0))


class TestPlots(unittest.TestCase):
    """Test suite for the plotting functions."""

    def tearDown(self) -> None:
        plt.close("all")

    def test_stability_trace(self) -> None:
        """Test the stability trace figure is created."""
        t = np.arange(0, 2000, 20)
        pitch = np.full(t.size, 10.0)
        fig = plot_stability_trace(t, pitch, sd_deg=np.full(t.size, 0.05), capture_times_ms=[1000])
        self.assertEqual(len(fig.axes), 2)
        fig = plot_stability_trace(t, pitch)
        self.assertEqual(len(fig.axes), 1)

    def test_height_distribution(self) -> None:
        """Test the Monte Carlo histogram figure."""
        heights = np.random.default_rng(0).normal(12.0, 0.3, 400)
        fig = plot_height_distribution(heights, 12.0, PercentileRange(11.6, 12.4), truth_m=12.0)
        self.assertIsInstance(fig, plt.Figure)

    def test_fusion_history(self) -> None:
        """Test the fusion history figure."""
        fusion = HeightFusion()
        fusion.fuse(vision=VisionEstimate(10.0, 0.9), timestamp_ms=0)
        fusion.fuse(sensor=SensorEstimate(10.5), timestamp_ms=1)
        fig = plot_fusion_history(fusion.get_history(), truth_m=10.2)
        self.assertIsInstance(fig, plt.Figure)
        with self.assertRaises(ValueError):
            plot_fusion_history([])

    def test_save_figure(self) -> None:
        """Test save_figure writes one file per format."""
        fig, _ = plt.subplots()
        with tempfile.TemporaryDirectory() as tmp:
            paths = save_figure(fig, Path(tmp) / "figs", "trace", formats=("png",))
            self.assertEqual(len(paths), 1)
            self.assertTrue(paths[0].exists())


if __name__ == "__main__":
    unittest.main()

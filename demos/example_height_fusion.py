"""
Example: Vision/Sensor Height Fusion

A Paced inclinometer measurement is combined with a stream of image-based
heights. Each frame's vision height comes from the detected trunk boundary,
scaled by a door of known height in the same image; its weight depends on
the detector confidence:

    c > 85 %      → (w_vision, w_sensor) = (0.7, 0.3)
    70 % .. 85 %  → (0.5, 0.5)
    c < 70 %      → (0.3, 0.7)

The weighted pseudo-measurement then drives a scalar Kalman filter, so the
fused height settles and its uncertainty shrinks over repeated frames.

Demonstrates:
    - Paced measurement with a manual capture
    - Reference-object scale calibration and confidence boost
    - Rule-based weighting + scalar Kalman filter with NIS consistency check
"""

import asyncio

import matplotlib.pyplot as plt
import numpy as np

from heightcore import MeasurementMode, MeasurementSession
from heightcore.eval import compute_error_stats, plot_fusion_history, save_figure
from heightcore.sim import PROFILES, SimulatedOrientationSource, simulate_orientation_trace
from heightcore.vision import (
    DEFAULT_CALIBRATION_FACTOR,
    BoundaryResult,
    KnownObject,
    KnownObjectType,
    Point2D,
    known_object_score,
)


def example_height_fusion(n_frames: int = 15, seed: int = 3):
    """Fuse one Paced result with n_frames noisy vision detections."""
    print("=" * 70)
    print("EXAMPLE: Vision/Sensor Height Fusion")
    print("=" * 70)

    true_height = 9.0  # m
    camera_height = 1.5  # m
    distance = 12.0  # m
    top_deg = np.rad2deg(np.arctan((true_height - camera_height) / distance))

    # 1. Sensor side: Paced measurement
    rng = np.random.default_rng(seed)
    trace = simulate_orientation_trace([(0.0, top_deg)], 2.0, profile=PROFILES["normal"], rng=rng)
    source = SimulatedOrientationSource(trace)
    session = MeasurementSession(source, MeasurementMode.PACED, clock=lambda: source.now_ms)
    asyncio.run(session.start())
    session.save_setup(camera_height)
    session.set_distance(steps=16, step_length_m=0.75)
    source.replay()
    outcome = session.capture()
    if not outcome.ok:
        print(f"\nCapture rejected: {outcome.issue.message}")
        session.close()
        return

    print(f"\n1. Sensor (Paced, {session.distance_m:.1f} m):")
    print(f"   Height: {session.result.height_m:.2f} m (truth {true_height:.2f} m)")

    # 2. Vision side: door of ~2.05 m at 100 px/m, trunk boundary per frame
    px_per_m = 100.0
    door = KnownObject(
        KnownObjectType.DOOR,
        bbox=(40.0, 500.0, 90.0, 2.05 * px_per_m),
        confidence=0.9,
        score=known_object_score(0.9, edge_clarity=0.8, has_references=True),
    )
    trunk_px = true_height / DEFAULT_CALIBRATION_FACTOR * px_per_m

    print(f"\n2. Fusing {n_frames} vision frames...")
    print(f"   {'Frame':>5} {'Conf':>6} {'Vision':>8} {'w_v':>5} {'Fused':>8} {'σ':>6} {'NIS':>7}")
    fused = []
    for k in range(n_frames):
        confidence = float(np.clip(rng.uniform(0.5, 0.98), 0.0, 1.0))
        noise_px = rng.normal(0.0, 40.0 * (1.2 - confidence))
        boundary = BoundaryResult(
            top=Point2D(320.0, 100.0),
            base=Point2D(320.0, 100.0 + trunk_px + noise_px),
            confidence=confidence,
        )
        r = session.fuse_boundary(boundary, [door], timestamp_ms=1000 * k)
        entry = session.fusion.get_history()[-1]
        nis = f"{r.nis:7.2f}" if r.nis is not None else f"{'-':>7}"
        print(
            f"   {k + 1:>5d} {confidence:>6.2f} {entry.vision.height_m:>8.2f} "
            f"{r.w_vision:>5.1f} {r.height_m:>8.2f} {r.uncertainty_m:>6.3f} {nis}"
        )
        fused.append(r.height_m)

    stats = compute_error_stats(np.array(fused) - true_height)
    print(f"\nResults:")
    print(f"  Final fused height: {fused[-1]:.2f} m")
    print(f"  Final confidence: {r.confidence:.2f}")
    print(f"  Fused error over frames: bias {stats['bias']:+.3f} m, RMSE {stats['rmse']:.3f} m")

    print(f"\nCreating visualization...")
    fig = plot_fusion_history(session.fusion.get_history(), truth_m=true_height)
    session.close()
    for p in save_figure(fig, "figs", "height_fusion", formats=("png",)):
        print(f"Plot saved as: {p}")
    plt.show()


def main():
    """Run the fusion example."""
    print("\n" + "=" * 70)
    print("HANDHELD HEIGHT: FUSION EXAMPLE")
    print("=" * 70)

    example_height_fusion()

    print("\n" + "=" * 70)
    print("EXAMPLE COMPLETED")
    print("=" * 70)


if __name__ == "__main__":
    main()

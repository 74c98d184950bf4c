"""
Example: BaseTop Tree Height with Auto-Capture

This script walks a simulated user through a BaseTop measurement: the phone
is aimed at the base of a tree, held until the stability gate auto-captures,
then raised to the top and held again. The height comes with a Monte Carlo
p10-p90 interval.

Demonstrates:
    - OrientationSampler + StabilityGate driven by a synthetic hand
    - Auto-capture state machine (READY for 2.5 s → capture once)
    - BaseTop geometry and Monte Carlo uncertainty
    - Visualization of the pitch trace and the height distribution
"""

import asyncio

import matplotlib.pyplot as plt
import numpy as np

from heightcore import MeasurementMode, MeasurementSession, Step
from heightcore.eval import (
    plot_height_distribution,
    plot_stability_trace,
    save_figure,
)
from heightcore.measure import BaseTopInput, estimate_base_top_uncertainty
from heightcore.sim import (
    PROFILES,
    SimulatedOrientationSource,
    drive_session,
    simulate_orientation_trace,
)


def example_base_top(profile_name: str = "steady", seed: int = 42):
    """Measure a 12 m tree from 15 m away with a handheld phone."""
    print("=" * 70)
    print("EXAMPLE: BaseTop Height Measurement with Auto-Capture")
    print("=" * 70)

    true_height = 12.0  # m
    eye_height = 1.6  # m
    distance = 15.0  # m

    base_deg = -np.rad2deg(np.arctan(eye_height / distance))
    top_deg = np.rad2deg(np.arctan((true_height - eye_height) / distance))

    print(f"\nScenario:")
    print(f"  True height: {true_height:.2f} m")
    print(f"  Eye height: {eye_height:.2f} m")
    print(f"  Distance to trunk: {distance:.1f} m")
    print(f"  Base angle: {base_deg:.2f} deg, top angle: {top_deg:.2f} deg")
    print(f"  Hand profile: {profile_name}")

    # Aim at the base, raise the phone at 4 s
    rng = np.random.default_rng(seed)
    trace = simulate_orientation_trace(
        [(0.0, base_deg), (4.0, top_deg)],
        duration_s=14.0,
        profile=PROFILES[profile_name],
        rng=rng,
    )
    source = SimulatedOrientationSource(trace)
    session = MeasurementSession(
        source,
        MeasurementMode.BASE_TOP,
        rng=np.random.default_rng(seed),
        clock=lambda: source.now_ms,
    )

    asyncio.run(session.start())
    session.save_setup(eye_height)

    print(f"\nRunning stability loop...")
    sd_trace = []
    capture_times = []

    def on_status(now_ms, status):
        sd_trace.append((now_ms, np.nan if status.sd_deg is None else status.sd_deg))
        if status.capture_now:
            capture_times.append(now_ms)

    outcomes = drive_session(session, source, 0, int(trace.t_ms[-1]), on_status=on_status)

    for outcome in outcomes:
        angle_deg = np.rad2deg(outcome.angle.median_rad) if outcome.angle else float("nan")
        status = "ok" if outcome.ok else outcome.issue.message
        print(f"  Auto-capture in step '{outcome.step.value}': {angle_deg:.2f} deg ({status})")

    if session.step is not Step.RESULT:
        print(f"\nNo result: {session.warning.message if session.warning else 'hold steadier'}")
        session.close()
        return

    result = session.result
    pr = result.percentile_range
    print(f"\nResults:")
    print(f"  Estimated height: {result.height_m:.2f} m")
    print(f"  Error: {result.height_m - true_height:+.3f} m")
    print(f"  p10-p90: [{pr.p10:.2f}, {pr.p90:.2f}] m")
    print(f"  1-sigma equivalent: {result.uncertainty_m:.3f} m")
    print(f"  Estimated distance: {session.estimated_distance_m:.2f} m")
    print(f"  Record: {session.record().to_json()}")

    # Re-run the Monte Carlo to get the draws for plotting
    mc = estimate_base_top_uncertainty(
        BaseTopInput(
            eye_height,
            session.base_angle.median_rad,
            session.top_angle.median_rad,
            session.base_angle.std_dev_rad,
            session.top_angle.std_dev_rad,
        ),
        rng=np.random.default_rng(seed),
    )
    session.close()

    print(f"\nCreating visualization...")
    t_tick = np.array([t for t, _ in sd_trace])
    sd_tick = np.array([s for _, s in sd_trace])
    fig1 = plot_stability_trace(
        trace.t_ms,
        trace.beta_deg,
        sd_deg=np.interp(trace.t_ms, t_tick, sd_tick),
        capture_times_ms=capture_times,
    )
    fig2 = plot_height_distribution(
        mc.heights,
        point_estimate_m=result.height_m,
        percentile_range=pr,
        truth_m=true_height,
    )
    paths = save_figure(fig1, "figs", "base_top_stability", formats=("png",))
    paths += save_figure(fig2, "figs", "base_top_distribution", formats=("png",))
    for p in paths:
        print(f"Plot saved as: {p}")
    plt.show()


def main():
    """Run the BaseTop example."""
    print("\n" + "=" * 70)
    print("HANDHELD HEIGHT: BASETOP EXAMPLE")
    print("=" * 70)
    print("\nh = h0 + h0 / tan|θ1| * tan θ2")

    example_base_top()

    print("\n" + "=" * 70)
    print("EXAMPLE COMPLETED")
    print("=" * 70)


if __name__ == "__main__":
    main()

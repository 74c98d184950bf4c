"""
Example: TwoStop Height Without a Tape Measure

When the base of the tree is hidden (bushes, slope), BaseTop cannot be used.
TwoStop aims at the top twice: once from a far station, then again after
walking a known distance L straight towards the tree.

    D = L * tan(A2) / (tan(A2) - tan(A1))
    h = h0 + D * tan(A1)

Demonstrates:
    - Paced input of the forward step (step count x step length)
    - Two auto-captured top angles with a walk in between
    - Sensitivity of the result to the angle separation |A2 - A1|
"""

import asyncio

import numpy as np

from heightcore import MeasurementMode, MeasurementSession, Step
from heightcore.measure import TwoStopInput, paced_distance, solve_two_stop
from heightcore.sim import (
    PROFILES,
    SimulatedOrientationSource,
    drive_session,
    simulate_orientation_trace,
)


def example_two_stop(seed: int = 7):
    """Measure a 15 m tree from 20 m, stepping 8 paces forward."""
    print("=" * 70)
    print("EXAMPLE: TwoStop Height Measurement")
    print("=" * 70)

    true_height = 15.0  # m
    eye_height = 1.6  # m
    far_distance = 20.0  # m
    n_paces = 8
    pace_length = 0.75  # m
    step_forward = paced_distance(n_paces, pace_length)

    a1 = np.rad2deg(np.arctan((true_height - eye_height) / far_distance))
    a2 = np.rad2deg(np.arctan((true_height - eye_height) / (far_distance - step_forward)))

    print(f"\nScenario:")
    print(f"  True height: {true_height:.2f} m")
    print(f"  Far station: {far_distance:.1f} m, walk {n_paces} paces = {step_forward:.2f} m")
    print(f"  A1 = {a1:.2f} deg, A2 = {a2:.2f} deg (separation {a2 - a1:.2f} deg)")

    # Hold at the far station, walk (shaky) from 4 s to 7 s, hold again
    rng = np.random.default_rng(seed)
    hold_far = simulate_orientation_trace([(0.0, a1)], 4.0, profile=PROFILES["steady"], rng=rng)
    walk = simulate_orientation_trace(
        [(0.0, a1), (1.5, a2)], 3.0, profile=PROFILES["shaky"], rng=rng, t0_ms=4000
    )
    hold_near = simulate_orientation_trace([(0.0, a2)], 7.0, profile=PROFILES["steady"], rng=rng, t0_ms=7000)

    source = SimulatedOrientationSource()
    for part in (hold_far, walk, hold_near):
        source.load(part)

    session = MeasurementSession(source, MeasurementMode.TWO_STOP, clock=lambda: source.now_ms)
    asyncio.run(session.start())
    session.save_setup(eye_height)
    session.set_distance(step_forward_m=step_forward)

    print(f"\nRunning stability loop...")
    outcomes = drive_session(session, source, 0, 14000)
    for outcome in outcomes:
        angle_deg = np.rad2deg(outcome.angle.median_rad) if outcome.angle else float("nan")
        status = "ok" if outcome.ok else outcome.issue.message
        print(f"  Auto-capture in step '{outcome.step.value}': {angle_deg:.2f} deg ({status})")

    if session.step is Step.RESULT:
        print(f"\nResults:")
        print(f"  Estimated height: {session.result.height_m:.2f} m "
              f"(error {session.result.height_m - true_height:+.3f} m)")
        print(f"  Far-station distance: {session.estimated_distance_m:.2f} m")
    else:
        print(f"\nNo result in step '{session.step.value}'")
    session.close()

    # Sensitivity: a 0.2 deg error on A1 for shrinking separations
    print(f"\nSensitivity to a +0.2 deg error on A1:")
    print(f"  {'Paces':>6} {'Sep (deg)':>10} {'Height (m)':>11} {'Error (m)':>10}")
    for paces in (2, 4, 8, 12):
        L = paced_distance(paces, pace_length)
        a2_k = np.arctan((true_height - eye_height) / (far_distance - L))
        inp = TwoStopInput(eye_height, L, np.deg2rad(a1 + 0.2), a2_k)
        r = solve_two_stop(inp)
        sep = np.rad2deg(a2_k) - a1
        if r.ok:
            print(f"  {paces:>6d} {sep:>10.2f} {r.height_m:>11.2f} {r.height_m - true_height:>+10.2f}")
        else:
            print(f"  {paces:>6d} {sep:>10.2f} {'rejected':>11} {r.issue.reason.value:>10}")


def main():
    """Run the TwoStop example."""
    print("\n" + "=" * 70)
    print("HANDHELD HEIGHT: TWOSTOP EXAMPLE")
    print("=" * 70)

    example_two_stop()

    print("\n" + "=" * 70)
    print("EXAMPLE COMPLETED")
    print("=" * 70)


if __name__ == "__main__":
    main()

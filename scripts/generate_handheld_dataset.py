"""Generate handheld BaseTop measurement dataset.

Creates repeated BaseTop measurements of trees with known height:
    - Synthetic handheld pitch/roll traces (50 Hz): aim at the base, then
      raise the phone to the top
    - Engine output per trial: auto-captured angles, height, p10/p90
    - Ground truth: tree height, horizontal distance, eye height

Saves to: data/sim/handheld_base_top/
"""

import argparse
import asyncio
import json
from pathlib import Path
from typing import Dict

import numpy as np

from heightcore import MeasurementMode, MeasurementSession, SessionConfig, Step
from heightcore.eval import compute_error_stats, percentile_coverage
from heightcore.sim import (
    PROFILES,
    SimulatedOrientationSource,
    drive_session,
    simulate_orientation_trace,
)


# ============================================================================
# PRESET CONFIGURATIONS
# ============================================================================

PRESETS = {
    'baseline': {
        'description': 'Two-handed hold, trees 6-20 m seen from 10-25 m',
        'profile': 'normal',
        'height_min': 6.0,
        'height_max': 20.0,
        'distance_min': 10.0,
        'distance_max': 25.0,
    },
    'steady_hands': {
        'description': 'Braced hold; most trials should auto-capture quickly',
        'profile': 'steady',
        'height_min': 6.0,
        'height_max': 20.0,
        'distance_min': 10.0,
        'distance_max': 25.0,
    },
    'shaky_hands': {
        'description': 'Unsteady hold to exercise the stability gate',
        'profile': 'shaky',
        'height_min': 6.0,
        'height_max': 20.0,
        'distance_min': 10.0,
        'distance_max': 25.0,
    },
    'far_targets': {
        'description': 'Distant trees with shallow base angles near the 2 deg limit',
        'profile': 'normal',
        'height_min': 15.0,
        'height_max': 30.0,
        'distance_min': 30.0,
        'distance_max': 45.0,
    },
}


# ============================================================================
# TRIAL SIMULATION
# ============================================================================

def run_trial(
    true_height: float,
    distance: float,
    eye_height: float,
    profile: str,
    duration: float,
    raise_at: float,
    fs: float,
    rng: np.random.Generator,
    config: SessionConfig,
) -> Dict[str, np.ndarray]:
    """Simulate one BaseTop measurement and run it through the engine.

    Args:
        true_height: Tree height (m).
        distance: Horizontal distance to the trunk (m).
        eye_height: Phone height above ground (m).
        profile: Name of the handheld profile.
        duration: Trace length (s).
        raise_at: Time the user raises the phone from base to top (s).
        fs: Reading rate (Hz).
        rng: Random generator.
        config: Engine configuration.

    Returns:
        Dictionary with the trace and the engine outputs (NaN when the
        engine produced no result).
    """
    base_deg = -np.rad2deg(np.arctan(eye_height / distance))
    top_deg = np.rad2deg(np.arctan((true_height - eye_height) / distance))
    trace = simulate_orientation_trace(
        [(0.0, base_deg), (raise_at, top_deg)],
        duration_s=duration,
        fs_hz=fs,
        profile=PROFILES[profile],
        rng=rng,
    )

    source = SimulatedOrientationSource(trace)
    session = MeasurementSession(
        source, MeasurementMode.BASE_TOP, config=config, rng=rng, clock=lambda: source.now_ms
    )
    asyncio.run(session.start())
    session.save_setup(eye_height)
    outcomes = drive_session(session, source, 0, int(trace.t_ms[-1]))

    out = {
        't_ms': trace.t_ms,
        'beta_deg': trace.beta_deg,
        'gamma_deg': trace.gamma_deg,
        'height': np.nan,
        'p10': np.nan,
        'p90': np.nan,
        'base_deg': np.nan,
        'top_deg': np.nan,
        'n_captures': len(outcomes),
    }
    if session.step is Step.RESULT:
        pr = session.result.percentile_range
        out.update(
            height=session.result.height_m,
            p10=pr.p10,
            p90=pr.p90,
            base_deg=np.rad2deg(session.base_angle.median_rad),
            top_deg=np.rad2deg(session.top_angle.median_rad),
        )
    session.close()
    return out


def generate_handheld_dataset(
    output_dir: str,
    seed: int = 42,
    num_trials: int = 50,
    profile: str = 'normal',
    eye_height: float = 1.6,
    height_min: float = 6.0,
    height_max: float = 20.0,
    distance_min: float = 10.0,
    distance_max: float = 25.0,
    duration: float = 14.0,
    raise_at: float = 4.0,
    fs: float = 50.0,
    n_mc: int = 400,
) -> None:
    """Generate the dataset and save it to output_dir."""
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    print(f"\n{'='*70}")
    print(f"Generating Handheld BaseTop Dataset")
    print(f"{'='*70}")
    print(f"Output directory: {output_path}")
    print(f"Random seed: {seed}")

    rng = np.random.default_rng(seed)
    config = SessionConfig.from_dict({'eye_height_m': eye_height, 'uncertainty': {'n_samples': n_mc}})

    # 1. Ground truth
    print(f"\n1. Drawing {num_trials} targets...")
    heights = rng.uniform(height_min, height_max, num_trials)
    distances = rng.uniform(distance_min, distance_max, num_trials)
    print(f"   Heights: {height_min:.1f}-{height_max:.1f} m")
    print(f"   Distances: {distance_min:.1f}-{distance_max:.1f} m")

    # 2. Simulate trials
    print(f"\n2. Simulating trials (profile '{profile}')...")
    trials = [
        run_trial(h, d, eye_height, profile, duration, raise_at, fs, rng, config)
        for h, d in zip(heights, distances)
    ]
    est = np.array([t['height'] for t in trials])
    p10 = np.array([t['p10'] for t in trials])
    p90 = np.array([t['p90'] for t in trials])
    ok = np.isfinite(est)
    print(f"   Completed: {np.sum(ok)}/{num_trials}")

    np.savez(
        output_path / "truth.npz",
        height=heights,
        distance=distances,
        eye_height=np.full(num_trials, eye_height),
    )
    print(f"   Saved: truth.npz")

    np.savez(
        output_path / "traces.npz",
        t_ms=np.stack([t['t_ms'] for t in trials]),
        beta_deg=np.stack([t['beta_deg'] for t in trials]),
        gamma_deg=np.stack([t['gamma_deg'] for t in trials]),
    )
    print(f"   Saved: traces.npz")

    np.savez(
        output_path / "results.npz",
        height=est,
        p10=p10,
        p90=p90,
        base_deg=np.array([t['base_deg'] for t in trials]),
        top_deg=np.array([t['top_deg'] for t in trials]),
        n_captures=np.array([t['n_captures'] for t in trials]),
    )
    print(f"   Saved: results.npz")

    # 3. Save configuration
    print(f"\n3. Saving configuration...")
    stats = compute_error_stats(est[ok] - heights[ok]) if np.any(ok) else {}
    coverage = percentile_coverage(heights, p10, p90)

    dataset_config = {
        "dataset_info": {
            "description": "Handheld BaseTop tree height measurements",
            "seed": seed,
            "num_trials": num_trials,
            "completed_trials": int(np.sum(ok)),
        },
        "scenario": {
            "eye_height_m": eye_height,
            "height_range_m": [height_min, height_max],
            "distance_range_m": [distance_min, distance_max],
            "duration_sec": duration,
            "raise_at_sec": raise_at,
        },
        "handheld": {
            "profile": profile,
            "rate_hz": fs,
            "white_sd_deg": PROFILES[profile].white_sd_deg,
            "drift_sd_deg": PROFILES[profile].drift_sd_deg,
            "tremor_amp_deg": PROFILES[profile].tremor_amp_deg,
            "tremor_freq_hz": PROFILES[profile].tremor_freq_hz,
        },
        "engine": config.to_dict(),
        "summary": {
            "error_stats_m": stats,
            "p10_p90_coverage": coverage,
        },
    }

    with open(output_path / "config.json", "w") as f:
        json.dump(dataset_config, f, indent=2)

    print(f"   Saved: config.json")

    # Summary
    print(f"\n{'='*70}")
    print(f"Dataset generation complete!")
    print(f"{'='*70}")
    print(f"Output directory: {output_path.absolute()}")
    print(f"\nFiles created:")
    print(f"  - truth.npz   : Ground truth (height, distance, eye_height)")
    print(f"  - traces.npz  : Orientation traces (t_ms, beta_deg, gamma_deg)")
    print(f"  - results.npz : Engine output (height, p10, p90, base_deg, top_deg, n_captures)")
    print(f"  - config.json : Dataset configuration")
    if stats:
        print(f"\nDataset statistics:")
        print(f"  Completed       : {np.sum(ok)}/{num_trials}")
        print(f"  Bias            : {stats['bias']:+.3f} m")
        print(f"  RMSE            : {stats['rmse']:.3f} m")
        print(f"  p10-p90 coverage: {coverage:.2f}")
    print(f"\n")


# ============================================================================
# COMMAND-LINE INTERFACE
# ============================================================================

def main():
    """Main entry point with CLI argument parsing."""
    parser = argparse.ArgumentParser(
        description="Generate handheld BaseTop tree height dataset",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Generate with default parameters
  python %(prog)s

  # Use a preset configuration
  python %(prog)s --preset shaky_hands

  # Custom parameters
  python %(prog)s --num-trials 200 --profile steady --eye-height 1.5

Available presets: """ + ", ".join(PRESETS.keys())
    )

    # Preset configuration
    parser.add_argument(
        '--preset',
        type=str,
        choices=PRESETS.keys(),
        help='Use preset configuration (overrides individual parameters)'
    )

    # Output
    parser.add_argument(
        '--output',
        type=str,
        default='data/sim/handheld_base_top',
        help='Output directory (default: data/sim/handheld_base_top)'
    )

    parser.add_argument(
        '--seed',
        type=int,
        default=42,
        help='Random seed for reproducibility (default: 42)'
    )

    # Scenario parameters
    scen_group = parser.add_argument_group('Scenario Parameters')
    scen_group.add_argument(
        '--num-trials',
        type=int,
        default=50,
        help='Number of measurements to simulate (default: 50)'
    )
    scen_group.add_argument(
        '--eye-height',
        type=float,
        default=1.6,
        help='Phone height above ground in meters (default: 1.6)'
    )
    scen_group.add_argument('--height-min', type=float, default=6.0, help='Minimum tree height in m (default: 6.0)')
    scen_group.add_argument('--height-max', type=float, default=20.0, help='Maximum tree height in m (default: 20.0)')
    scen_group.add_argument('--distance-min', type=float, default=10.0, help='Minimum distance in m (default: 10.0)')
    scen_group.add_argument('--distance-max', type=float, default=25.0, help='Maximum distance in m (default: 25.0)')

    # Hand parameters
    hand_group = parser.add_argument_group('Handheld Parameters')
    hand_group.add_argument(
        '--profile',
        type=str,
        default='normal',
        choices=PROFILES.keys(),
        help='Hand steadiness profile (default: normal)'
    )
    hand_group.add_argument(
        '--duration',
        type=float,
        default=14.0,
        help='Trace length in seconds (default: 14.0)'
    )
    hand_group.add_argument(
        '--raise-at',
        type=float,
        default=4.0,
        help='Time the phone is raised from base to top in seconds (default: 4.0)'
    )
    hand_group.add_argument(
        '--fs',
        type=float,
        default=50.0,
        help='Orientation reading rate in Hz (default: 50.0)'
    )

    # Engine parameters
    engine_group = parser.add_argument_group('Engine Parameters')
    engine_group.add_argument(
        '--n-mc',
        type=int,
        default=400,
        help='Monte Carlo draws per measurement (default: 400)'
    )

    # Parse arguments
    args = parser.parse_args()

    # If preset is specified, override with preset values
    if args.preset:
        preset_config = PRESETS[args.preset]
        print(f"\nUsing preset: '{args.preset}'")
        print(f"Description: {preset_config['description']}\n")

        for key, value in preset_config.items():
            if key != 'description' and hasattr(args, key):
                setattr(args, key, value)

    # Validate parameters
    if args.num_trials <= 0:
        parser.error("Number of trials must be positive")
    if not 0 < args.height_min <= args.height_max:
        parser.error("Height range must satisfy 0 < min <= max")
    if not 0 < args.distance_min <= args.distance_max:
        parser.error("Distance range must satisfy 0 < min <= max")
    if not 0 < args.raise_at < args.duration:
        parser.error("raise-at must be inside the trace duration")
    if args.fs <= 0:
        parser.error("Reading rate must be positive")

    generate_handheld_dataset(
        output_dir=args.output,
        seed=args.seed,
        num_trials=args.num_trials,
        profile=args.profile,
        eye_height=args.eye_height,
        height_min=args.height_min,
        height_max=args.height_max,
        distance_min=args.distance_min,
        distance_max=args.distance_max,
        duration=args.duration,
        raise_at=args.raise_at,
        fs=args.fs,
        n_mc=args.n_mc,
    )


if __name__ == "__main__":
    main()

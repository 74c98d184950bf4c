"""
Simulation of handheld orientation sensing.

Modules:
    noise_pink: 1/f noise for slow aim drift
    handheld: Hand-unsteadiness profiles, aim-plan traces and a replaying
        OrientationSource for driving a MeasurementSession offline
"""

from heightcore.sim.handheld import (
    PROFILES,
    HandheldProfile,
    HandheldTrace,
    SimulatedOrientationSource,
    aim_from_segments,
    drive_session,
    simulate_orientation_trace,
)
from heightcore.sim.noise_pink import pink_noise_1f

__all__ = [
    "PROFILES",
    "HandheldProfile",
    "HandheldTrace",
    "SimulatedOrientationSource",
    "aim_from_segments",
    "drive_session",
    "pink_noise_1f",
    "simulate_orientation_trace",
]

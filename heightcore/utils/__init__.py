"""
Utility functions for angles and unit conversion.
"""

from .angles import (
    FEET_PER_METER,
    angle_separation_deg,
    degrees_to_radians,
    elevation_from_pitch_roll,
    meters_to_feet,
    radians_to_degrees,
    wrap_angle,
)

__all__ = [
    "FEET_PER_METER",
    "angle_separation_deg",
    "degrees_to_radians",
    "elevation_from_pitch_roll",
    "meters_to_feet",
    "radians_to_degrees",
    "wrap_angle",
]

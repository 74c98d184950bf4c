"""
Angle and unit helpers.

All engine computation is in radians and meters. These helpers convert at the
boundary and implement the roll-corrected elevation used by every capture.
"""

import numpy as np
from typing import Union

FEET_PER_METER = 3.281


def wrap_angle(angle: float) -> float:
    """
    Wrap angle to [-π, π] range.

    Args:
        angle: Angle in radians (can be any value)

    Returns:
        Wrapped angle in range [-π, π]

    Example:
        >>> wrap_angle(3.5 * np.pi)  # 630° -> -90°
        -1.5707963267948966
    """
    # Use atan2 trick for robust wrapping
    return float(np.arctan2(np.sin(angle), np.cos(angle)))


def elevation_from_pitch_roll(
    pitch_rad: Union[float, np.ndarray],
    roll_rad: Union[float, np.ndarray],
) -> Union[float, np.ndarray]:
    """
    Roll-corrected elevation angle.

        elevation = atan( tan(pitch) * cos(roll) )

    When the device is held upright (roll = 0) this is the raw pitch. As the
    device leans sideways about its forward axis the effective elevation
    shrinks in magnitude, approaching 0 as |roll| → 90°.

    Args:
        pitch_rad: Device pitch (forward/back tilt) in radians.
        roll_rad: Device roll (left/right tilt) in radians.

    Returns:
        Elevation angle in radians, same shape as the inputs.

    Example:
        >>> elevation_from_pitch_roll(0.3, 0.0)
        0.3
        >>> abs(elevation_from_pitch_roll(0.3, 0.5)) < 0.3
        True
    """
    elevation = np.arctan(np.tan(pitch_rad) * np.cos(roll_rad))
    if np.ndim(elevation) == 0:
        return float(elevation)
    return elevation


def angle_separation_deg(angle1_rad: float, angle2_rad: float) -> float:
    """Signed difference angle2 - angle1, in degrees."""
    return float(np.rad2deg(angle2_rad) - np.rad2deg(angle1_rad))


def degrees_to_radians(degrees: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """Convert degrees to radians."""
    return np.deg2rad(degrees)


def radians_to_degrees(radians: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """Convert radians to degrees."""
    return np.rad2deg(radians)


def meters_to_feet(meters: float) -> float:
    """Convert meters to feet for presentation."""
    return meters * FEET_PER_METER

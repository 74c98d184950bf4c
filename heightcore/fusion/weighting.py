"""Rule-based weighting of vision and sensor height estimates.

The vision detector's confidence decides how much the image-based height is
trusted relative to the inclinometer:

    c > 85 %          → (w_vision, w_sensor) = (0.7, 0.3)
    70 % ≤ c ≤ 85 %   → (0.5, 0.5)
    c < 70 %          → (0.3, 0.7)
    vision absent     → (0, 1)
    sensor absent     → (1, 0)

Weighted pseudo-measurement fed to the Kalman update:

    z = Σ wᵢ hᵢ / Σ wᵢ
    R = Σ wᵢ² σᵢ²

When a vision estimate carries no SD, it is inferred from confidence by
shrinking the baseline linearly down to min_sd_factor at c = 1:

    σ_vision = σ_base · (f_min + (1 - c)(1 - f_min))
"""

from typing import Optional, Tuple

import numpy as np

from heightcore.config import FusionConfig
from heightcore.fusion.types import SensorEstimate, VisionEstimate

HIGH_CONFIDENCE_PCT = 85.0
MEDIUM_CONFIDENCE_PCT = 70.0


def clamp_confidence(confidence: Optional[float]) -> Optional[float]:
    """
    Clamp a confidence to [0, 1]; NaN becomes 0, None stays None.

    Example:
        >>> clamp_confidence(1.4), clamp_confidence(float("nan")), clamp_confidence(None)
        (1.0, 0.0, None)
    """
    if confidence is None:
        return None
    if not np.isfinite(confidence):
        # ±inf saturates
        return 1.0 if confidence > 0 else 0.0
    return float(min(1.0, max(0.0, confidence)))


def determine_weights(
    vision_confidence: Optional[float],
    sensor_present: bool = True,
) -> Tuple[float, float]:
    """
    Weights (w_vision, w_sensor) for the given vision confidence.

    Args:
        vision_confidence: Clamped confidence in [0, 1], or None when no
            usable vision estimate is available.
        sensor_present: Whether a usable sensor estimate is available.

    Returns:
        Tuple (w_vision, w_sensor).

    Raises:
        ValueError: If neither input is present.
    """
    if vision_confidence is None:
        if not sensor_present:
            raise ValueError("At least one of vision or sensor must be present")
        return 0.0, 1.0
    if not sensor_present:
        return 1.0, 0.0

    conf_pct = vision_confidence * 100.0
    if conf_pct > HIGH_CONFIDENCE_PCT:
        return 0.7, 0.3
    if conf_pct >= MEDIUM_CONFIDENCE_PCT:
        return 0.5, 0.5
    return 0.3, 0.7


def sd_from_confidence(confidence: float, base_sd_m: float, min_factor: float = 0.4) -> float:
    """
    Measurement SD inferred from a confidence in [0, 1].

    Example:
        >>> round(sd_from_confidence(1.0, 0.75), 6)
        0.3
        >>> sd_from_confidence(0.0, 0.75)
        0.75
    """
    c = clamp_confidence(confidence)
    factor = min_factor + (1.0 - c) * (1.0 - min_factor)
    return max(1e-6, factor * base_sd_m)


def combine_measurements(
    vision: Optional[VisionEstimate],
    sensor: Optional[SensorEstimate],
    config: Optional[FusionConfig] = None,
) -> Tuple[float, float, float, float]:
    """
    Build the weighted pseudo-measurement from the usable inputs.

    Inputs with a non-finite height are ignored.

    Returns:
        Tuple (z, R, w_vision, w_sensor).

    Raises:
        ValueError: If neither input is usable.
    """
    config = config if config is not None else FusionConfig()
    vision = vision if vision is not None and vision.usable else None
    sensor = sensor if sensor is not None and sensor.usable else None

    confidence = clamp_confidence(vision.confidence) if vision is not None else None
    w_vision, w_sensor = determine_weights(confidence, sensor_present=sensor is not None)

    weighted_sum = 0.0
    variance = 0.0
    weight_total = 0.0

    if vision is not None and w_vision > 0:
        sd = vision.std_dev_m
        if sd is None:
            sd = sd_from_confidence(confidence, config.effective_vision_base_sd_m, config.min_sd_factor)
        weighted_sum += w_vision * vision.height_m
        variance += w_vision ** 2 * sd ** 2
        weight_total += w_vision

    if sensor is not None and w_sensor > 0:
        sd = sensor.std_dev_m if sensor.std_dev_m is not None else config.sensor_base_sd_m
        weighted_sum += w_sensor * sensor.height_m
        variance += w_sensor ** 2 * sd ** 2
        weight_total += w_sensor

    return weighted_sum / weight_total, variance, w_vision, w_sensor

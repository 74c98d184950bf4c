"""Scalar Kalman filter fusing vision and inclinometer heights.

The state is the object height x (meters) with variance P. The object does
not move, but successive captures differ, so a small random-walk process
noise keeps the filter responsive:

    Predict:   P⁻ = P + Q                          (x⁻ = x)
    Update:    K  = P⁻ / (P⁻ + R)
               x  = x⁻ + K (z - x⁻)
               P  = (1 - K) P⁻

z and R come from the rule-based weighting in heightcore.fusion.weighting.
The first fusion after construction or reset() initialises x = z and
P = max(1e-6, R).

Aggregate confidence combines the vision confidence (0.5 when no vision
estimate was used) with an inverse-uncertainty score:

    confidence = 0.5 · c + 0.5 / (1 + σ),   σ = sqrt(P)

The filter instance is the FusionState's only owner; one instance per
measurement session, reset per target.
"""

import time
import warnings
from collections import deque
from typing import Deque, List, Optional, Tuple

import numpy as np

from heightcore.config import FusionConfig
from heightcore.errors import ErrorKind, MeasurementIssue
from heightcore.fusion.gating import is_consistent, normalized_innovation_squared
from heightcore.fusion.types import (
    FusionHistoryEntry,
    FusionResult,
    FusionState,
    SensorEstimate,
    VisionEstimate,
)
from heightcore.fusion.weighting import clamp_confidence, combine_measurements

_MIN_VARIANCE = 1e-12


class HeightFusion:
    """
    Confidence-weighted scalar Kalman filter for object height.

    Attributes:
        config: Noise and history settings.
        state: Current FusionState (mutated only by fuse() and reset()).

    Example:
        >>> fusion = HeightFusion()
        >>> r = fusion.fuse(vision=VisionEstimate(10.0, 0.9))
        >>> r.height_m
        10.0
        >>> r = fusion.fuse(vision=VisionEstimate(10.4, 0.9), sensor=SensorEstimate(10.2))
        >>> 10.0 < r.height_m < 10.4
        True
    """

    def __init__(self, config: Optional[FusionConfig] = None):
        self.config = config if config is not None else FusionConfig()
        self.state = FusionState()
        self._history: Deque[FusionHistoryEntry] = deque(maxlen=max(1, self.config.max_history))

    @property
    def process_noise_var_m2(self) -> float:
        return self.config.process_noise_sd_m ** 2

    def reset(self) -> None:
        """Forget the running estimate and history (new target object)."""
        self.state = FusionState()
        self._history.clear()

    def get_state(self) -> Tuple[Optional[float], float]:
        """Return (estimate_m, variance_m2)."""
        return self.state.estimate_m, self.state.variance_m2

    def get_history(self) -> List[FusionHistoryEntry]:
        return list(self._history)

    def predict(self) -> None:
        """Time update P⁻ = P + Q; no-op before the first fusion."""
        if self.state.initialized:
            self.state.variance_m2 = self.state.variance_m2 + self.process_noise_var_m2

    def update(self, z: float, r_var: float) -> Tuple[Optional[float], Optional[float]]:
        """
        Measurement update with pseudo-measurement z and variance R.

        Returns:
            (innovation, innovation variance), both None on initialisation.
        """
        if not self.state.initialized:
            self.state.estimate_m = float(z)
            self.state.variance_m2 = max(1e-6, float(r_var))
            self.state.n_updates = 1
            return None, None

        p_prior = max(_MIN_VARIANCE, self.state.variance_m2)
        r = max(_MIN_VARIANCE, float(r_var))
        s = p_prior + r
        gain = p_prior / s
        innovation = float(z) - self.state.estimate_m

        self.state.estimate_m = self.state.estimate_m + gain * innovation
        self.state.variance_m2 = (1.0 - gain) * p_prior
        self.state.n_updates += 1
        return innovation, s

    def fuse(
        self,
        vision: Optional[VisionEstimate] = None,
        sensor: Optional[SensorEstimate] = None,
        timestamp_ms: Optional[int] = None,
    ) -> FusionResult:
        """
        Fuse the currently available estimates into the running height.

        Either input may be None (or carry a non-finite height); the
        remaining one is used alone. With no usable input the state is
        left untouched and a FUSION_NO_INPUT result is returned.

        Args:
            vision: Vision-based estimate, or None.
            sensor: Inclinometer-based estimate, or None.
            timestamp_ms: Time recorded in the history entry. Default: now.

        Returns:
            FusionResult with the fused height, confidence and uncertainty.
        """
        vision_ok = vision is not None and vision.usable
        sensor_ok = sensor is not None and sensor.usable
        if not vision_ok and not sensor_ok:
            return FusionResult(
                height_m=float("nan"),
                confidence=0.0,
                uncertainty_m=float("nan"),
                issue=MeasurementIssue(
                    ErrorKind.FUSION_NO_INPUT,
                    "No vision or sensor height available to fuse.",
                ),
            )

        vision = vision if vision_ok else None
        sensor = sensor if sensor_ok else None
        z, r_var, w_vision, w_sensor = combine_measurements(vision, sensor, self.config)

        self.predict()
        innovation, s = self.update(z, r_var)

        nis = None
        consistent = None
        if innovation is not None:
            nis = normalized_innovation_squared(innovation, s)
            consistent = is_consistent(innovation, s, self.config.consistency_level)
            if not consistent:
                warnings.warn(
                    f"Fused height innovation {innovation:+.2f} m is inconsistent "
                    f"(NIS={nis:.1f}); was the target changed without reset()?",
                    RuntimeWarning,
                )

        fused_sd = self.state.std_dev_m
        c = clamp_confidence(vision.confidence) if vision is not None else 0.5
        confidence = float(np.clip(0.5 * c + 0.5 / (1.0 + fused_sd), 0.0, 1.0))

        if timestamp_ms is None:
            timestamp_ms = int(time.time() * 1000)
        self._history.append(
            FusionHistoryEntry(
                timestamp_ms=timestamp_ms,
                fused_height_m=self.state.estimate_m,
                fused_uncertainty_m=fused_sd,
                vision=vision,
                sensor=sensor,
            )
        )

        return FusionResult(
            height_m=self.state.estimate_m,
            confidence=confidence,
            uncertainty_m=fused_sd,
            w_vision=w_vision,
            w_sensor=w_sensor,
            measurement_m=z,
            measurement_var_m2=r_var,
            innovation_m=innovation,
            nis=nis,
            consistent=consistent,
        )

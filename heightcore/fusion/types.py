"""Data types for vision/sensor height fusion.

Inputs:
    VisionEstimate: height from an image boundary plus detector confidence
    SensorEstimate: height from the inclinometer geometry

State and outputs:
    FusionState: scalar Kalman state (x, P), owned by one HeightFusion
    FusionResult: fused height, confidence, 1-sigma uncertainty, diagnostics
    FusionHistoryEntry: bounded log of past fusions
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from heightcore.errors import MeasurementIssue
from heightcore.measure.types import HeightEstimate


def _validate_sd(value: Optional[float]) -> None:
    if value is not None and not (np.isfinite(value) and value >= 0):
        raise ValueError(f"std_dev_m must be a non-negative finite number, got {value}")


@dataclass(frozen=True)
class VisionEstimate:
    """
    Height reported by the vision collaborator.

    Attributes:
        height_m: Estimated height. A non-finite value makes the estimate
            count as absent.
        confidence: Detector confidence, nominally in [0, 1]. Clamped before
            use; NaN is treated as 0.
        std_dev_m: Optional 1-sigma height error; inferred from confidence
            when None.
    """

    height_m: float
    confidence: float
    std_dev_m: Optional[float] = None

    def __post_init__(self) -> None:
        _validate_sd(self.std_dev_m)

    @property
    def usable(self) -> bool:
        return bool(np.isfinite(self.height_m))


@dataclass(frozen=True)
class SensorEstimate:
    """
    Height reported by the inclinometer geometry.

    Attributes:
        height_m: Estimated height. Non-finite counts as absent.
        std_dev_m: Optional 1-sigma height error (e.g. a Monte Carlo
            uncertainty); the configured base SD is used when None.
    """

    height_m: float
    std_dev_m: Optional[float] = None

    def __post_init__(self) -> None:
        _validate_sd(self.std_dev_m)

    @property
    def usable(self) -> bool:
        return bool(np.isfinite(self.height_m))

    @classmethod
    def from_height_estimate(cls, estimate: HeightEstimate) -> "SensorEstimate":
        return cls(height_m=estimate.height_m, std_dev_m=estimate.uncertainty_m)


@dataclass
class FusionState:
    """
    Scalar filter state.

    Attributes:
        estimate_m: Current height estimate x, None before the first fusion.
        variance_m2: Current estimate variance P.
        n_updates: Number of fusions applied since the last reset.
    """

    estimate_m: Optional[float] = None
    variance_m2: float = 1.0
    n_updates: int = 0

    @property
    def initialized(self) -> bool:
        return self.estimate_m is not None and bool(np.isfinite(self.estimate_m))

    @property
    def std_dev_m(self) -> float:
        return float(np.sqrt(max(0.0, self.variance_m2)))


@dataclass(frozen=True)
class FusionResult:
    """
    Outcome of one fuse() call.

    Attributes:
        height_m: Fused height, NaN when there was no usable input.
        confidence: Aggregate confidence in [0, 1].
        uncertainty_m: 1-sigma uncertainty of the fused height (NaN on failure).
        w_vision: Weight applied to the vision estimate.
        w_sensor: Weight applied to the sensor estimate.
        measurement_m: Combined pseudo-measurement z.
        measurement_var_m2: Its variance R.
        innovation_m: z - x before the update; None on the first fusion.
        nis: Normalized innovation squared y²/S; None on the first fusion.
        consistent: NIS below the chi-square threshold; None on the first fusion.
        issue: FUSION_NO_INPUT when both inputs were absent.
    """

    height_m: float
    confidence: float
    uncertainty_m: float
    w_vision: float = 0.0
    w_sensor: float = 0.0
    measurement_m: Optional[float] = None
    measurement_var_m2: Optional[float] = None
    innovation_m: Optional[float] = None
    nis: Optional[float] = None
    consistent: Optional[bool] = None
    issue: Optional[MeasurementIssue] = None

    @property
    def ok(self) -> bool:
        return self.issue is None

    def to_height_estimate(self) -> HeightEstimate:
        """
        Convert to a HeightEstimate.

        Raises:
            ValueError: If the fusion failed.
        """
        if not self.ok:
            raise ValueError(f"Fusion failed: {self.issue.message}")
        return HeightEstimate(height_m=self.height_m, uncertainty_m=self.uncertainty_m)


@dataclass(frozen=True)
class FusionHistoryEntry:
    timestamp_ms: int
    fused_height_m: float
    fused_uncertainty_m: float
    vision: Optional[VisionEstimate] = None
    sensor: Optional[SensorEstimate] = None

"""Vision/inclinometer height fusion.

This package combines an image-based height (with detector confidence) and
an inclinometer height into one estimate:
- Rule-based confidence weighting into a single pseudo-measurement
- Scalar Kalman filter smoothing across repeated captures
- Chi-square consistency check on each innovation

The filter state belongs to one HeightFusion instance; there is no shared
module-level filter.
"""

from heightcore.fusion.gating import (
    chi_square_threshold,
    is_consistent,
    normalized_innovation_squared,
)
from heightcore.fusion.height_filter import HeightFusion
from heightcore.fusion.types import (
    FusionHistoryEntry,
    FusionResult,
    FusionState,
    SensorEstimate,
    VisionEstimate,
)
from heightcore.fusion.weighting import (
    clamp_confidence,
    combine_measurements,
    determine_weights,
    sd_from_confidence,
)

__all__ = [
    # Types
    "FusionHistoryEntry",
    "FusionResult",
    "FusionState",
    "SensorEstimate",
    "VisionEstimate",
    # Weighting
    "clamp_confidence",
    "combine_measurements",
    "determine_weights",
    "sd_from_confidence",
    # Gating
    "chi_square_threshold",
    "is_consistent",
    "normalized_innovation_squared",
    # Filter
    "HeightFusion",
]

"""
Serializable measurement records.

A MeasurementRecord is what a caller hands to its own persistence layer after
a measurement. Fields that only exist for some modes are optional and are
omitted from the serialized form when unset. Photo attachments are opaque
strings (e.g. data URLs) supplied by the caller.

The dict form uses the caller-facing camelCase keys; JSON round-trips are
lossless for every float field.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

from heightcore.measure.types import HeightEstimate, MeasurementMode, PercentileRange

_KEYS = {
    "timestamp_ms": "timestamp",
    "mode": "mode",
    "eye_height_m": "eyeHeightM",
    "distance_m": "distanceM",
    "base_angle_rad": "baseAngleRad",
    "top_angle_rad": "topAngleRad",
    "result_m": "resultM",
    "p10": "p10",
    "p90": "p90",
    "base_image": "baseImg",
    "top_image": "topImg",
}


@dataclass(frozen=True)
class MeasurementRecord:
    """
    One completed measurement.

    Attributes:
        timestamp_ms: Completion time (epoch ms).
        mode: Measurement mode used.
        eye_height_m: Eye/camera height used.
        top_angle_rad: Captured top angle (near-station angle for TwoStop).
        result_m: Measured height.
        distance_m: Horizontal distance, when the mode has one.
        base_angle_rad: Base angle (BaseTop only).
        p10: Lower Monte Carlo percentile (BaseTop only).
        p90: Upper Monte Carlo percentile (BaseTop only).
        base_image: Opaque base photo attachment.
        top_image: Opaque top photo attachment.
    """

    timestamp_ms: int
    mode: MeasurementMode
    eye_height_m: float
    top_angle_rad: float
    result_m: float
    distance_m: Optional[float] = None
    base_angle_rad: Optional[float] = None
    p10: Optional[float] = None
    p90: Optional[float] = None
    base_image: Optional[str] = None
    top_image: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.mode, MeasurementMode):
            object.__setattr__(self, "mode", MeasurementMode(self.mode))
        if (self.p10 is None) != (self.p90 is None):
            raise ValueError("p10 and p90 must be given together")

    @property
    def estimate(self) -> HeightEstimate:
        pr = None
        if self.p10 is not None:
            pr = PercentileRange(p10=self.p10, p90=self.p90)
        return HeightEstimate(height_m=self.result_m, percentile_range=pr)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for attr, key in _KEYS.items():
            value = getattr(self, attr)
            if value is None:
                continue
            data[key] = value.value if attr == "mode" else value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MeasurementRecord":
        """
        Rebuild a record from to_dict() output.

        Raises:
            KeyError: If a required field is missing.
            ValueError: If the mode is unknown.
        """
        for attr in ("timestamp_ms", "mode", "eye_height_m", "top_angle_rad", "result_m"):
            if _KEYS[attr] not in data:
                raise KeyError(f"Missing record field '{_KEYS[attr]}'")
        kwargs = {attr: data[key] for attr, key in _KEYS.items() if key in data}
        return cls(**kwargs)

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, text: str) -> "MeasurementRecord":
        return cls.from_dict(json.loads(text))

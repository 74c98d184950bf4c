"""
Configuration for the height-measurement engine.

Every tunable threshold lives in a frozen dataclass so that a session can be
built from a preset, from a JSON file, or from explicit keyword overrides.
The thresholds are empirically chosen policy constants, not derived
invariants.

Example:
    >>> from heightcore.config import SessionConfig, load_config
    >>> cfg = SessionConfig.from_preset("relaxed")
    >>> cfg.stability.ready_sd_deg
    0.15
"""

import json
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union


@dataclass(frozen=True)
class SensorConfig:
    """
    Raw orientation reading handling.

    Attributes:
        smoothing_alpha: Exponential smoothing coefficient for pitch, in (0, 1].
        portrait_only: Ignore readings taken in landscape orientation.
        pitch_wrap_limit_deg: Raw pitch beyond ±this value is treated as a
            flipped reading.
        pitch_clamp_deg: Value substituted for a flipped reading.
    """

    smoothing_alpha: float = 0.2
    portrait_only: bool = True
    pitch_wrap_limit_deg: float = 179.0
    pitch_clamp_deg: float = 89.0

    def __post_init__(self) -> None:
        if not 0.0 < self.smoothing_alpha <= 1.0:
            raise ValueError(f"smoothing_alpha must be in (0, 1], got {self.smoothing_alpha}")


@dataclass(frozen=True)
class StabilityConfig:
    """
    Steadiness classification and auto-capture timing.

    Attributes:
        tick_interval_ms: Period of the stability evaluation timer.
        window_ms: Span analysed by each tick.
        capture_window_ms: Span summarised into a CapturedAngle.
        min_samples_for_stability: Samples required before classifying.
        min_samples_for_capture: Samples required for a manual capture.
        shaky_sd_deg: SD at or above which the hand is SHAKY.
        ready_sd_deg: SD below which the hand is READY.
        required_steady_ms: Continuous READY time before auto-capture.
        cooldown_ms: Post-capture period during which no trigger fires.
        max_capture_roll_deg: Largest side tilt accepted for a base capture.
        setup_duration_ms: Default length of a setup period during which
            auto-capture is suppressed.
    """

    tick_interval_ms: int = 100
    window_ms: int = 3000
    capture_window_ms: int = 1000
    min_samples_for_stability: int = 30
    min_samples_for_capture: int = 10
    shaky_sd_deg: float = 0.2
    ready_sd_deg: float = 0.1
    required_steady_ms: int = 2500
    cooldown_ms: int = 1000
    max_capture_roll_deg: float = 5.0
    setup_duration_ms: int = 3000

    def __post_init__(self) -> None:
        if self.tick_interval_ms <= 0:
            raise ValueError(f"tick_interval_ms must be positive, got {self.tick_interval_ms}")
        if not 0 < self.capture_window_ms <= self.window_ms:
            raise ValueError(
                f"capture_window_ms must be in (0, window_ms={self.window_ms}], "
                f"got {self.capture_window_ms}"
            )
        if self.min_samples_for_stability < 2 or self.min_samples_for_capture < 1:
            raise ValueError("sample thresholds must be at least 2 (stability) and 1 (capture)")
        if not 0.0 < self.ready_sd_deg <= self.shaky_sd_deg:
            raise ValueError(
                f"need 0 < ready_sd_deg <= shaky_sd_deg, got {self.ready_sd_deg}, {self.shaky_sd_deg}"
            )
        if self.required_steady_ms <= 0:
            raise ValueError(f"required_steady_ms must be positive, got {self.required_steady_ms}")
        if self.cooldown_ms < 0:
            raise ValueError(f"cooldown_ms must be non-negative, got {self.cooldown_ms}")


@dataclass(frozen=True)
class GeometryLimits:
    """Validity limits for the three geometric solution modes (degrees, meters)."""

    paced_min_distance_m: float = 3.0
    paced_max_distance_m: float = 25.0
    paced_min_top_deg: float = 5.0
    base_min_deg: float = 2.0
    base_max_deg: float = 35.0
    base_top_min_separation_deg: float = 5.0
    two_stop_min_separation_deg: float = 3.0
    eye_height_min_m: float = 0.5
    eye_height_max_m: float = 2.2

    def __post_init__(self) -> None:
        if not 0.0 < self.paced_min_distance_m < self.paced_max_distance_m:
            raise ValueError("paced distance range must satisfy 0 < min < max")
        if not 0.0 < self.base_min_deg < self.base_max_deg < 90.0:
            raise ValueError("base angle range must satisfy 0 < min < max < 90")
        if not 0.0 < self.eye_height_min_m < self.eye_height_max_m:
            raise ValueError("eye height range must satisfy 0 < min < max")


@dataclass(frozen=True)
class UncertaintyConfig:
    """
    Monte Carlo settings.

    Attributes:
        n_samples: Number of perturbed angle pairs.
        min_samples: Lower bound applied to n_samples.
        default_sd_deg: Angle SD used when a capture carries none.
        min_base_deg: Floor on the perturbed base-angle magnitude (avoids tan(0)).
        lower_percentile: Lower reported percentile.
        upper_percentile: Upper reported percentile.
    """

    n_samples: int = 400
    min_samples: int = 50
    default_sd_deg: float = 0.5
    min_base_deg: float = 1.0
    lower_percentile: float = 10.0
    upper_percentile: float = 90.0

    def __post_init__(self) -> None:
        if self.min_samples < 1:
            raise ValueError(f"min_samples must be >= 1, got {self.min_samples}")
        if self.default_sd_deg < 0:
            raise ValueError(f"default_sd_deg must be non-negative, got {self.default_sd_deg}")
        if not 0.0 < self.lower_percentile < self.upper_percentile < 100.0:
            raise ValueError("percentiles must satisfy 0 < lower < upper < 100")


@dataclass(frozen=True)
class FusionConfig:
    """
    Scalar Kalman fusion settings.

    Attributes:
        process_noise_sd_m: Process noise SD (Q = sd²) added on each predict.
        sensor_base_sd_m: Measurement SD for sensor estimates without one.
        vision_base_sd_m: Baseline SD for vision estimates; None reuses
            sensor_base_sd_m.
        min_sd_factor: Fraction of the baseline SD reached at confidence 1.
        max_history: Number of fused results kept for inspection.
        consistency_level: Chi-square confidence level for the innovation
            consistency flag.
    """

    process_noise_sd_m: float = 0.25
    sensor_base_sd_m: float = 0.75
    vision_base_sd_m: Optional[float] = None
    min_sd_factor: float = 0.4
    max_history: int = 50
    consistency_level: float = 0.95

    def __post_init__(self) -> None:
        if self.process_noise_sd_m < 0:
            raise ValueError(f"process_noise_sd_m must be non-negative, got {self.process_noise_sd_m}")
        if self.sensor_base_sd_m <= 0:
            raise ValueError(f"sensor_base_sd_m must be positive, got {self.sensor_base_sd_m}")
        if self.vision_base_sd_m is not None and self.vision_base_sd_m <= 0:
            raise ValueError(f"vision_base_sd_m must be positive, got {self.vision_base_sd_m}")
        if not 0.0 < self.min_sd_factor <= 1.0:
            raise ValueError(f"min_sd_factor must be in (0, 1], got {self.min_sd_factor}")
        if not 0.0 < self.consistency_level < 1.0:
            raise ValueError(f"consistency_level must be in (0, 1), got {self.consistency_level}")

    @property
    def effective_vision_base_sd_m(self) -> float:
        if self.vision_base_sd_m is None:
            return self.sensor_base_sd_m
        return self.vision_base_sd_m


# Door used as the default vision reference: actual height over the height
# the detector measured for it in field tests.
DOOR_ACTUAL_HEIGHT_M = 2.0
DOOR_MEASURED_HEIGHT_M = 2.43


@dataclass(frozen=True)
class SessionConfig:
    """Everything a MeasurementSession needs, grouped by component."""

    eye_height_m: float = 1.65
    step_length_m: float = 0.75
    step_forward_m: float = 5.0
    vision_calibration_factor: float = DOOR_ACTUAL_HEIGHT_M / DOOR_MEASURED_HEIGHT_M
    sensor: SensorConfig = field(default_factory=SensorConfig)
    stability: StabilityConfig = field(default_factory=StabilityConfig)
    geometry: GeometryLimits = field(default_factory=GeometryLimits)
    uncertainty: UncertaintyConfig = field(default_factory=UncertaintyConfig)
    fusion: FusionConfig = field(default_factory=FusionConfig)

    def __post_init__(self) -> None:
        if self.step_length_m <= 0 or self.step_forward_m <= 0:
            raise ValueError("step_length_m and step_forward_m must be positive")
        if self.vision_calibration_factor <= 0:
            raise ValueError(
                f"vision_calibration_factor must be positive, got {self.vision_calibration_factor}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionConfig":
        """Build a config from a (possibly partial) nested dictionary."""
        sections = {
            "sensor": SensorConfig,
            "stability": StabilityConfig,
            "geometry": GeometryLimits,
            "uncertainty": UncertaintyConfig,
            "fusion": FusionConfig,
        }
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")

        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            if key in sections:
                kwargs[key] = _section_from_dict(sections[key], value)
            else:
                kwargs[key] = value
        return cls(**kwargs)

    @classmethod
    def from_preset(cls, name: str) -> "SessionConfig":
        if name not in PRESETS:
            raise ValueError(f"Unknown preset '{name}'. Available: {sorted(PRESETS)}")
        return cls.from_dict(PRESETS[name]["config"])

    def with_overrides(self, **kwargs: Any) -> "SessionConfig":
        return replace(self, **kwargs)


def _section_from_dict(section_cls, data: Dict[str, Any]):
    known = {f.name for f in fields(section_cls)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown {section_cls.__name__} keys: {sorted(unknown)}")
    return section_cls(**data)


PRESETS: Dict[str, Dict[str, Any]] = {
    "default": {
        "description": "Thresholds tuned on modern phones held in two hands",
        "config": {},
    },
    "relaxed": {
        "description": "Looser steadiness for older or noisier sensors",
        "config": {
            "stability": {"ready_sd_deg": 0.15, "shaky_sd_deg": 0.3, "required_steady_ms": 2000},
        },
    },
    "strict": {
        "description": "Longer hold and tighter steadiness for survey work",
        "config": {
            "stability": {"ready_sd_deg": 0.05, "shaky_sd_deg": 0.15, "required_steady_ms": 3500},
            "uncertainty": {"n_samples": 2000},
        },
    },
}


def save_config(config: SessionConfig, path: Union[str, Path]) -> Path:
    """Write a config as indented JSON and return the path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(config.to_dict(), f, indent=2)
    return path


def load_config(path: Union[str, Path]) -> SessionConfig:
    """Read a config written by save_config (or a hand-written subset of it)."""
    with open(path, "r") as f:
        data = json.load(f)
    return SessionConfig.from_dict(data)

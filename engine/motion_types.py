# engine/motion_types.py
"""Data types shared by the extractor, the detector and the alert trigger."""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Optional, Tuple

Vector3 = Tuple[float, float, float]

_ZERO: Vector3 = (0.0, 0.0, 0.0)


class DetectionKind(Enum):
    FALL = "fall"
    VIOLENT_MOVEMENT = "violent_movement"
    ABNORMAL_MOTION = "abnormal_motion"


class FallState(Enum):
    """Fall sequence: free fall -> impact -> inactivity."""
    IDLE = "idle"
    FREE_FALL = "free_fall"
    IMPACT = "impact"
    POST_IMPACT = "post_impact"


def _vector(value, keys) -> Vector3:
    """Coerce a sensor vector to three floats. Missing axes read as zero."""
    if value is None:
        return _ZERO
    if isinstance(value, dict):
        return tuple(float(value.get(k) or 0.0) for k in keys)
    axes = list(value)[:3]
    axes += [0.0] * (3 - len(axes))
    return tuple(float(v or 0.0) for v in axes)


@dataclass(frozen=True)
class Sample:
    """
    One inertial reading.

    timestamp            : monotonic milliseconds
    linear_acceleration  : m/s^2 with gravity removed by the platform, or zeros
    gravity_acceleration : m/s^2 including gravity
    rotation_rate        : deg/s (alpha, beta, gamma)
    """
    timestamp: float
    linear_acceleration: Vector3 = _ZERO
    gravity_acceleration: Vector3 = _ZERO
    rotation_rate: Vector3 = _ZERO

    @classmethod
    def from_event(cls, event: dict) -> "Sample":
        """Build a Sample from a loosely-typed sensor event dict."""
        xyz = ("x", "y", "z")
        return cls(
            timestamp=float(event.get("timestamp") or 0.0),
            linear_acceleration=_vector(event.get("acceleration"), xyz),
            gravity_acceleration=_vector(event.get("acceleration_including_gravity"), xyz),
            rotation_rate=_vector(event.get("rotation_rate"), ("alpha", "beta", "gamma")),
        )

    @property
    def has_linear_acceleration(self) -> bool:
        return any(v != 0.0 for v in self.linear_acceleration)


@dataclass(frozen=True)
class FeatureVector:
    magnitude: float
    jerk: float
    variance: float
    peak_acceleration: float
    average_acceleration: float
    rotation_magnitude: float
    timestamp: float = 0.0   # newest sample in the window

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Classification:
    """
    Detector output for one feature vector.

    kind is None exactly when confidence is 0.
    """
    kind: Optional[DetectionKind]
    confidence: float
    timestamp: float
    features: FeatureVector

    @classmethod
    def none(cls, timestamp: float, features: FeatureVector) -> "Classification":
        return cls(kind=None, confidence=0.0, timestamp=timestamp, features=features)

    @property
    def detected(self) -> bool:
        return self.kind is not None

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value if self.kind else None,
            "confidence": self.confidence,
            "timestamp": self.timestamp,
            "features": self.features.to_dict(),
        }

# engine/pattern_detector.py
import json
from collections import deque

import config
from engine.motion_types import Classification, DetectionKind, FallState, FeatureVector

DEFAULT_THRESHOLDS = {
    "fall": config.FALL_THRESHOLDS,
    "violent_movement": config.VIOLENT_MOVEMENT_THRESHOLDS,
    "abnormal_motion": config.ABNORMAL_MOTION_THRESHOLDS,
    "normal_activity": config.NORMAL_ACTIVITY_PROFILES,
}

_FEATURE_NAMES = set(FeatureVector.__dataclass_fields__) - {"timestamp"}


def merge_thresholds(overrides=None):
    """
    Merge partial threshold overrides over the defaults.

    overrides: {"fall": {"IMPACT_MIN": 30.0}, "normal_activity": {"walking": {...}}}
    New normal-activity profiles may be added. Unknown groups, threshold
    keys or profile feature names raise ValueError.
    """
    merged = {group: {k: (dict(v) if isinstance(v, dict) else v) for k, v in values.items()}
              for group, values in DEFAULT_THRESHOLDS.items()}

    for group, values in (overrides or {}).items():
        if group not in merged:
            raise ValueError(f"Unknown threshold group: {group}")

        for key, value in values.items():
            if group == "normal_activity":
                unknown = set(value) - _FEATURE_NAMES
                if unknown:
                    raise ValueError(f"Unknown features in profile '{key}': {sorted(unknown)}")
                merged[group].setdefault(key, {}).update(value)
            elif key not in merged[group]:
                raise ValueError(f"Unknown threshold {group}.{key}")
            elif "CONFIDENCE" in key and not 0.0 <= value <= 1.0:
                raise ValueError(f"{group}.{key} must be within [0, 1]")
            else:
                merged[group][key] = value

    return merged


def load_thresholds(path):
    """Read a JSON threshold override file and merge it over the defaults."""
    with open(path, 'r') as f:
        return merge_thresholds(json.load(f))


class PatternDetector:
    """
    Rule-based motion pattern detector.

    Consumes one FeatureVector per call and runs, in priority order:
    - Fall state machine (free fall -> impact -> inactivity)
    - Violent movement scorer (indicator counting)
    - Abnormal motion scorer (sustained elevated acceleration)

    The first detector with a non-zero confidence wins; its result only
    survives if it clears the global minimum confidence.

    Timeouts run on the timestamps carried by the features, so the detector
    owns no timers.
    """

    def __init__(self, thresholds=None, min_confidence=config.MIN_DETECTION_CONFIDENCE,
                 history_size=config.FEATURE_HISTORY_SIZE):
        thresholds = merge_thresholds(thresholds)
        self.fall_thresholds = thresholds["fall"]
        self.violent_thresholds = thresholds["violent_movement"]
        self.abnormal_thresholds = thresholds["abnormal_motion"]
        self.normal_profiles = thresholds["normal_activity"]
        self.min_confidence = min_confidence

        # Fall sequence state
        self.fall_state = FallState.IDLE
        self.state_timestamp = None
        self.free_fall_timestamp = None

        # History for trend analysis
        self.feature_history = deque(maxlen=history_size)

        self.detectors = [
            (DetectionKind.FALL, self._detect_fall),
            (DetectionKind.VIOLENT_MOVEMENT, self._detect_violent_movement),
            (DetectionKind.ABNORMAL_MOTION, self._detect_abnormal_motion),
        ]

    def detect(self, features, timestamp=None):
        """
        Classify one feature vector.

        Args:
            features: FeatureVector from FeatureExtractor
            timestamp: ms; defaults to the timestamp of the features

        Returns: Classification (kind None, confidence 0 when nothing qualifies)
        """
        if timestamp is None:
            timestamp = features.timestamp

        self.feature_history.append(features)

        for kind, detector in self.detectors:
            confidence = detector(features, timestamp)
            if confidence <= 0:
                continue
            if confidence >= self.min_confidence:
                return Classification(kind=kind, confidence=confidence,
                                      timestamp=timestamp, features=features)
            break

        return Classification.none(timestamp, features)

    def _detect_fall(self, features, timestamp):
        """Advance the fall state machine by one tick and return its confidence."""
        t = self.fall_thresholds
        confidence = 0.0

        # Whole-sequence timeout
        if self.state_timestamp is not None and timestamp - self.state_timestamp > t["SEQUENCE_TIMEOUT_MS"]:
            self._reset_fall()

        if self.fall_state is FallState.IDLE:
            # Near-zero acceleration starts a free fall
            if features.magnitude < t["FREE_FALL_MAX"]:
                self._enter(FallState.FREE_FALL, timestamp)
                self.free_fall_timestamp = timestamp

        elif self.fall_state is FallState.FREE_FALL:
            impact = (features.peak_acceleration > t["IMPACT_MIN"]
                      and features.jerk > t["JERK_SPIKE_MIN"])
            long_enough = timestamp - self.free_fall_timestamp >= t["MIN_FREE_FALL_DURATION_MS"]

            if impact and long_enough:
                self._enter(FallState.IMPACT, timestamp)
                confidence = t["IMPACT_CONFIDENCE"]
            elif features.magnitude > t["FREE_FALL_MAX"]:
                # Movement without a qualifying impact: false alarm
                self._reset_fall()

        elif self.fall_state is FallState.IMPACT:
            if features.average_acceleration < t["INACTIVITY_MAX"]:
                self._enter(FallState.POST_IMPACT, timestamp)
                confidence = t["INACTIVITY_CONFIDENCE"]
            else:
                # Still moving after the impact, likely not a fall
                self._reset_fall()

        elif self.fall_state is FallState.POST_IMPACT:
            if timestamp - self.state_timestamp >= t["POST_IMPACT_HOLD_MS"]:
                self._reset_fall()
            else:
                confidence = t["POST_IMPACT_CONFIDENCE"]

        return confidence

    def _detect_violent_movement(self, features, timestamp):
        t = self.violent_thresholds

        indicators = [
            features.jerk > t["JERK_HIGH"],
            features.peak_acceleration > t["ACCELERATION_PEAK"],
            features.rotation_magnitude > t["ROTATION_RAPID"],
            features.variance > t["VARIANCE_HIGH"],
        ]
        confidence = t.get(f"CONFIDENCE_{sum(indicators)}_INDICATORS", 0.0)

        if confidence > 0 and self.is_normal_activity(features):
            confidence = 0.0
        return confidence

    def _detect_abnormal_motion(self, features, timestamp):
        t = self.abnormal_thresholds
        confidence = 0.0

        if (features.average_acceleration > t["AVERAGE_MIN"]
                and features.variance > t["VARIANCE_MIN"]
                and features.peak_acceleration > t["PEAK_MIN"]):
            confidence = t["SPIKE_CONFIDENCE"]

            # A sustained pattern outweighs a single spike
            window = int(t["SUSTAINED_WINDOW"])
            if len(self.feature_history) >= window:
                recent = list(self.feature_history)[-window:]
                elevated = sum(1 for f in recent if f.average_acceleration > t["SUSTAINED_AVERAGE_MIN"])
                if elevated >= t["SUSTAINED_COUNT"]:
                    confidence = t["SUSTAINED_CONFIDENCE"]

        if confidence > 0 and self.is_normal_activity(features):
            confidence = 0.0
        return confidence

    def is_normal_activity(self, features):
        """True when the features sit under every ceiling of any normal-activity profile."""
        for ceilings in self.normal_profiles.values():
            if all(getattr(features, name) < limit for name, limit in ceilings.items()):
                return True
        return False

    def _enter(self, state, timestamp):
        self.fall_state = state
        self.state_timestamp = timestamp

    def _reset_fall(self):
        self.fall_state = FallState.IDLE
        self.state_timestamp = None
        self.free_fall_timestamp = None

    def get_state(self):
        return {
            "fall_state": self.fall_state.value,
            "history_size": len(self.feature_history),
        }

    def reset(self):
        """Reset detector state (monitoring restart)."""
        self._reset_fall()
        self.feature_history.clear()

import json

import numpy as np
import pytest

from engine.motion_types import DetectionKind, FallState
from engine.pattern_detector import PatternDetector, load_thresholds, merge_thresholds
from tests.conftest import make_features


def free_fall(t):
    return make_features(t, magnitude=0.5)


def impact(t):
    return make_features(t, magnitude=45.0, peak_acceleration=50.0, jerk=250.0, average_acceleration=9.0)


def lying_still(t):
    return make_features(t, magnitude=0.5, average_acceleration=1.0)


def fall_sequence():
    features = [free_fall(t) for t in range(0, 500, 100)]
    features.append(impact(500))
    features.extend(lying_still(t) for t in range(600, 1700, 100))
    return features


def run(detector, features):
    return [detector.detect(f) for f in features]


def test_full_fall_sequence():
    detector = PatternDetector()
    sequence = fall_sequence()
    results = run(detector, sequence[:7])
    assert detector.fall_state is FallState.POST_IMPACT
    results += run(detector, sequence[7:])

    # Free fall phase emits nothing
    assert all(r.kind is None and r.confidence == 0.0 for r in results[:5])

    assert results[5].kind is DetectionKind.FALL
    assert results[5].confidence == 0.75

    assert results[6].kind is DetectionKind.FALL
    assert results[6].confidence == 0.85

    # t=700..1500, still within 1000ms of entering post-impact at t=600
    for r in results[7:16]:
        assert r.kind is DetectionKind.FALL
        assert r.confidence == 0.9

    # t=1600: hold expired
    assert results[16].kind is None
    assert detector.get_state()["fall_state"] == "idle"


def test_fall_state_transitions():
    detector = PatternDetector()
    assert detector.fall_state is FallState.IDLE
    detector.detect(free_fall(0))
    assert detector.fall_state is FallState.FREE_FALL
    detector.detect(free_fall(400))
    assert detector.fall_state is FallState.FREE_FALL
    detector.detect(impact(500))
    assert detector.fall_state is FallState.IMPACT


def test_impact_before_minimum_free_fall_duration_is_false_alarm():
    detector = PatternDetector()
    detector.detect(free_fall(0))
    result = detector.detect(impact(100))

    assert result.kind is None
    assert detector.fall_state is FallState.IDLE


def test_impact_without_jerk_spike_is_not_a_fall():
    detector = PatternDetector()
    detector.detect(free_fall(0))
    result = detector.detect(make_features(400, magnitude=45.0, peak_acceleration=50.0, jerk=100.0))

    assert result.kind is None
    assert detector.fall_state is FallState.IDLE


def test_movement_after_impact_rejects_fall():
    detector = PatternDetector()
    detector.detect(free_fall(0))
    detector.detect(impact(400))
    result = detector.detect(make_features(500, average_acceleration=20.0))

    assert result.kind is None
    assert result.confidence == 0.0
    assert detector.fall_state is FallState.IDLE


def test_sequence_timeout_resets_and_redetects():
    detector = PatternDetector()
    detector.detect(free_fall(0))
    assert detector.fall_state is FallState.FREE_FALL

    # No transition for more than 2000ms: reset, then free fall starts over
    detector.detect(free_fall(2500))
    assert detector.fall_state is FallState.FREE_FALL
    assert detector.free_fall_timestamp == 2500

    result = detector.detect(impact(2900))
    assert result.kind is DetectionKind.FALL
    assert result.confidence == 0.75


def test_stuck_impact_times_out():
    detector = PatternDetector()
    detector.detect(free_fall(0))
    detector.detect(impact(400))
    assert detector.fall_state is FallState.IMPACT

    result = detector.detect(make_features(3000, average_acceleration=1.0))
    assert result.kind is None
    assert detector.fall_state is FallState.IDLE


def test_violent_movement_confidence_by_indicator_count():
    all_four = make_features(0, jerk=300.0, peak_acceleration=45.0, rotation_magnitude=700.0, variance=40.0)
    three = make_features(0, jerk=300.0, peak_acceleration=45.0, rotation_magnitude=700.0, variance=5.0)
    two = make_features(0, jerk=300.0, peak_acceleration=45.0)

    assert PatternDetector().detect(all_four).confidence == 0.95
    assert PatternDetector().detect(all_four).kind is DetectionKind.VIOLENT_MOVEMENT
    assert PatternDetector().detect(three).confidence == 0.8

    # 0.6 does not clear the default 0.75 gate
    assert PatternDetector().detect(two).kind is None
    relaxed = PatternDetector(min_confidence=0.5).detect(two)
    assert relaxed.kind is DetectionKind.VIOLENT_MOVEMENT
    assert relaxed.confidence == 0.6


def test_normal_activity_suppresses_violent_movement():
    sensitive = {"violent_movement": {"JERK_HIGH": 10.0, "ACCELERATION_PEAK": 10.0,
                                      "ROTATION_RAPID": 10.0, "VARIANCE_HIGH": 1.0}}
    walking_like = make_features(0, jerk=50.0, peak_acceleration=15.0, rotation_magnitude=50.0, variance=5.0)

    detector = PatternDetector(thresholds=sensitive)
    assert detector.is_normal_activity(walking_like)
    assert detector._detect_violent_movement(walking_like, 0) == 0.0
    assert detector.detect(walking_like).kind is None

    no_profiles = dict(sensitive, normal_activity={
        "walking": {"peak_acceleration": 0.0},
        "running": {"peak_acceleration": 0.0},
        "phone_handling": {"peak_acceleration": 0.0},
    })
    unsuppressed = PatternDetector(thresholds=no_profiles).detect(walking_like)
    assert unsuppressed.kind is DetectionKind.VIOLENT_MOVEMENT
    assert unsuppressed.confidence == 0.95


def test_normal_activity_profiles():
    detector = PatternDetector()
    assert detector.is_normal_activity(make_features(peak_acceleration=20.0, variance=10.0, jerk=100.0))
    assert detector.is_normal_activity(make_features(peak_acceleration=30.0, variance=20.0, jerk=130.0))
    assert detector.is_normal_activity(make_features(peak_acceleration=21.0, variance=80.0, jerk=900.0,
                                                     rotation_magnitude=100.0))
    assert not detector.is_normal_activity(make_features(peak_acceleration=40.0))


def test_abnormal_motion_requires_sustained_pattern():
    detector = PatternDetector()
    elevated = [make_features(t * 100, average_acceleration=25.0, variance=22.0, peak_acceleration=40.0)
                for t in range(7)]

    results = run(detector, elevated)

    # Single spikes score 0.5 and stay under the gate
    assert all(r.kind is None for r in results[:6])
    assert results[6].kind is DetectionKind.ABNORMAL_MOTION
    assert results[6].confidence == 0.75


def test_abnormal_motion_spike_score_below_gate():
    detector = PatternDetector(min_confidence=0.5)
    result = detector.detect(make_features(0, average_acceleration=25.0, variance=22.0, peak_acceleration=40.0))

    assert result.kind is DetectionKind.ABNORMAL_MOTION
    assert result.confidence == 0.5


def test_fall_takes_priority_over_violent_movement():
    detector = PatternDetector()
    detector.detect(free_fall(0))
    violent_impact = make_features(400, magnitude=45.0, peak_acceleration=50.0, jerk=400.0,
                                   rotation_magnitude=800.0, variance=60.0, average_acceleration=9.0)

    result = detector.detect(violent_impact)
    assert result.kind is DetectionKind.FALL


def test_classification_invariant_holds_for_random_features():
    rng = np.random.RandomState(3)
    detector = PatternDetector(min_confidence=0.0)
    for i in range(500):
        features = make_features(
            i * 20,
            magnitude=rng.uniform(0, 60), jerk=rng.uniform(0, 400),
            variance=rng.uniform(0, 60), peak_acceleration=rng.uniform(0, 60),
            average_acceleration=rng.uniform(0, 30), rotation_magnitude=rng.uniform(0, 900),
        )
        result = detector.detect(features)
        if result.kind is None:
            assert result.confidence == 0.0
        else:
            assert 0.0 < result.confidence <= 1.0


def test_reset_reproduces_identical_classifications():
    detector = PatternDetector()
    sequence = fall_sequence()

    first = run(detector, sequence)
    detector.reset()
    assert detector.get_state() == {"fall_state": "idle", "history_size": 0}
    second = run(detector, sequence)

    assert first == second


def test_history_is_bounded():
    detector = PatternDetector()
    run(detector, [make_features(t) for t in range(25)])
    assert detector.get_state()["history_size"] == 10


def test_merge_thresholds_rejects_unknown_names():
    with pytest.raises(ValueError):
        merge_thresholds({"gravity": {}})
    with pytest.raises(ValueError):
        merge_thresholds({"fall": {"IMPACT_MAX": 3.0}})
    with pytest.raises(ValueError):
        merge_thresholds({"normal_activity": {"cycling": {"speed": 3.0}}})


def test_merge_thresholds_does_not_touch_defaults():
    merged = merge_thresholds({"fall": {"IMPACT_MIN": 30.0},
                               "normal_activity": {"walking": {"jerk": 90.0}}})
    assert merged["fall"]["IMPACT_MIN"] == 30.0
    assert merged["normal_activity"]["walking"]["jerk"] == 90.0
    assert merged["normal_activity"]["walking"]["peak_acceleration"] == 25.0
    assert merge_thresholds()["fall"]["IMPACT_MIN"] == 40.0
    assert merge_thresholds()["normal_activity"]["walking"]["jerk"] == 120.0


def test_load_thresholds_from_json(tmp_path):
    path = tmp_path / "thresholds.json"
    path.write_text(json.dumps({"fall": {"IMPACT_MIN": 20.0}}))

    detector = PatternDetector(thresholds=load_thresholds(str(path)))
    detector.detect(free_fall(0))
    result = detector.detect(make_features(400, magnitude=25.0, peak_acceleration=25.0, jerk=250.0))
    assert result.kind is DetectionKind.FALL


def test_confidence_tables_are_overridable():
    detector = PatternDetector(thresholds={"fall": {"IMPACT_CONFIDENCE": 0.8}})

    detector.detect(free_fall(0))
    assert detector.detect(impact(400)).confidence == 0.8

    two = make_features(0, jerk=300.0, peak_acceleration=45.0)
    result = PatternDetector(thresholds={"violent_movement": {"CONFIDENCE_2_INDICATORS": 0.76}}).detect(two)
    assert result.kind is DetectionKind.VIOLENT_MOVEMENT
    assert result.confidence == 0.76


def test_confidence_overrides_must_be_probabilities():
    with pytest.raises(ValueError):
        merge_thresholds({"abnormal_motion": {"SUSTAINED_CONFIDENCE": 1.5}})

import pytest

from engine.alert_trigger import AlertConfig, AlertTrigger
from engine.motion_types import Classification, DetectionKind, FeatureVector


class FakeAudio:
    """Stands in for ToneAlarm; a tone keeps 'playing' until finish() or stop()."""

    def __init__(self, fail=False):
        self.fail = fail
        self.plays = 0
        self.stops = 0
        self.closed = False
        self.playing = False

    def play(self):
        if self.fail:
            raise RuntimeError("audio device unavailable")
        self.plays += 1
        self.playing = True
        return True

    def finish(self):
        self.playing = False

    def stop(self):
        self.stops += 1
        self.playing = False

    def close(self):
        self.closed = True

    @property
    def is_playing(self):
        return self.playing


class RecordingLogger:
    def __init__(self):
        self.events = []

    def log_alert(self, event):
        self.events.append(event)


def make_features(timestamp=0.0, **overrides):
    """Quiet, ordinary motion unless overridden."""
    values = dict(
        magnitude=5.0, jerk=0.0, variance=0.0,
        peak_acceleration=5.0, average_acceleration=5.0,
        rotation_magnitude=0.0, timestamp=timestamp,
    )
    values.update(overrides)
    return FeatureVector(**values)


def make_classification(timestamp, confidence=0.9, kind=DetectionKind.FALL):
    return Classification(kind=kind, confidence=confidence, timestamp=timestamp,
                          features=make_features(timestamp))


@pytest.fixture
def audio():
    return FakeAudio()


@pytest.fixture
def alert_logger():
    return RecordingLogger()


@pytest.fixture
def trigger(audio, alert_logger):
    return AlertTrigger(
        alert_config=AlertConfig(config_path=None, overrides={"cooldown_period_ms": 5000}),
        audio=audio,
        alert_logger=alert_logger,
        clock=lambda: 0.0,
    )

import os
import json
from collections import deque
from datetime import datetime
import time

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

import numpy as np
import pygame

import config
from engine.motion_types import Classification, DetectionKind, FeatureVector
from utils.time_buffer import TimeBuffer


def _monotonic_ms():
    return time.monotonic() * 1000.0


class AlertConfig:
    DEFAULT_CONFIG = {
        "enabled": config.ALERT_ENABLED,
        "confidence_threshold": config.ALERT_CONFIDENCE_THRESHOLD,
        "cooldown_period_ms": config.ALERT_COOLDOWN_MS,
        "sound_enabled": config.ALERT_SOUND_ENABLED,
    }

    def __init__(self, config_path=config.ALERT_CONFIG_PATH, overrides=None):
        self.config_path = config_path
        self._ensure_config_exists()
        self.config = self._load_config()
        if overrides:
            self.update(overrides, save=False)

    def _ensure_config_exists(self):
        if not self.config_path or os.path.exists(self.config_path):
            return
        os.makedirs(os.path.dirname(self.config_path) or ".", exist_ok=True)
        with open(self.config_path, 'w') as f:
            json.dump(self.DEFAULT_CONFIG, f, indent=2)

    def _load_config(self) -> dict:
        if not self.config_path:
            return self.DEFAULT_CONFIG.copy()
        try:
            with open(self.config_path, 'r') as f:
                loaded = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            print(f"Alert config unreadable ({e}), using defaults")
            return self.DEFAULT_CONFIG.copy()

        self.validate(loaded)
        return {**self.DEFAULT_CONFIG, **loaded}

    @classmethod
    def validate(cls, values: dict):
        """Raise ValueError for unknown keys or out-of-range values."""
        unknown = set(values) - set(cls.DEFAULT_CONFIG)
        if unknown:
            raise ValueError(f"Unknown alert settings: {sorted(unknown)}")

        for key in ("enabled", "sound_enabled"):
            if key in values and not isinstance(values[key], bool):
                raise ValueError(f"{key} must be a bool")

        threshold = values.get("confidence_threshold")
        if threshold is not None and (isinstance(threshold, bool) or not isinstance(threshold, (int, float))
                                      or not 0.0 <= threshold <= 1.0):
            raise ValueError("confidence_threshold must be within [0, 1]")

        cooldown = values.get("cooldown_period_ms")
        if cooldown is not None and (isinstance(cooldown, bool) or not isinstance(cooldown, int) or cooldown < 0):
            raise ValueError("cooldown_period_ms must be an integer >= 0")

    def save(self):
        if not self.config_path:
            return
        with open(self.config_path, 'w') as f:
            json.dump(self.config, f, indent=2)

    def get(self, key: str, default=None):
        return self.config.get(key, default)

    def update(self, values: dict, save: bool = True):
        """Merge a partial config. Persisted when backed by a file."""
        self.validate(values)
        self.config.update(values)
        if save:
            self.save()

    def as_dict(self) -> dict:
        return dict(self.config)


class ToneAlarm:
    """
    Alternating dual-tone alarm played through pygame.mixer.

    The pattern is a square wave stepping between the configured frequencies
    (800/1000Hz, 6 steps of 400ms). Playback is non-blocking; the mixer is
    opened on first use and released by close().
    """

    def __init__(self, frequencies=None, steps=config.ALARM_STEPS, step_ms=config.ALARM_STEP_MS,
                 volume=config.ALARM_VOLUME, sample_rate=config.ALARM_SAMPLE_RATE):
        self.frequencies = list(frequencies or config.ALARM_FREQUENCIES)
        self.steps = steps
        self.step_ms = step_ms
        self.volume = volume
        self.sample_rate = sample_rate

        self._sound = None
        self._channel = None
        self._mixer_ready = False

    @property
    def duration_ms(self) -> int:
        return self.steps * self.step_ms

    def build_pattern(self, sample_rate=None, channels=1) -> np.ndarray:
        """Synthesize the alarm as signed 16-bit PCM, interleaved for `channels`."""
        sample_rate = sample_rate or self.sample_rate
        samples_per_step = int(sample_rate * self.step_ms / 1000)
        t = np.arange(samples_per_step) / sample_rate

        steps = []
        for i in range(self.steps):
            freq = self.frequencies[i % len(self.frequencies)]
            steps.append(np.sign(np.sin(2 * np.pi * freq * t)))

        wave = (np.concatenate(steps) * self.volume * 32767).astype(np.int16)
        if channels > 1:
            wave = np.repeat(wave[:, np.newaxis], channels, axis=1)
        return wave

    def _init_mixer(self) -> bool:
        if self._mixer_ready:
            return True
        try:
            if pygame.mixer.get_init() is None:
                pygame.mixer.init(frequency=self.sample_rate, size=-16, channels=1)
            frequency, _, channels = pygame.mixer.get_init()
            pcm = self.build_pattern(sample_rate=frequency, channels=channels)
            self._sound = pygame.mixer.Sound(buffer=pcm.tobytes())
            self._mixer_ready = True
        except pygame.error as e:
            print(f"Audio unavailable: {e}")
        return self._mixer_ready

    def play(self) -> bool:
        """Start the pattern. Returns False when no audio device could be used."""
        if not self._init_mixer():
            return False
        try:
            self._channel = self._sound.play()
        except pygame.error as e:
            print(f"Alarm playback failed: {e}")
            self._channel = None
        return self._channel is not None

    def stop(self):
        if self._sound is not None:
            self._sound.stop()
        self._channel = None

    def close(self):
        self.stop()
        if self._mixer_ready:
            pygame.mixer.quit()
        self._sound = None
        self._mixer_ready = False

    @property
    def is_playing(self) -> bool:
        return self._channel is not None and bool(self._channel.get_busy())


class AlertLogger:
    """One JSON line per alert, plus a console line. log_dir=None keeps it console-only."""

    def __init__(self, log_dir: str = config.LOG_DIR):
        self.log_dir = log_dir
        self.log_file = None
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
            self.log_file = os.path.join(log_dir, "alerts.json")

    def log_alert(self, event: dict):
        print(f"\nALERT #{event['alert_number']} TRIGGERED: "
              f"{event['kind']} ({event['confidence']:.0%} confidence)")

        if not self.log_file:
            return

        record = {"logged_at": datetime.now().isoformat(), **event}
        try:
            with open(self.log_file, 'a') as f:
                f.write(json.dumps(record) + "\n")
        except OSError as e:
            print(f"Could not write alert log {self.log_file}: {e}")


class AlertTrigger:
    """
    Decides whether a classification raises an alert, and raises it.

    should_alert() is the pure decision (enable flag, confidence threshold,
    cooldown); trigger() is the effect (tone, log, listeners). Time is the
    classification timestamp, so cooldowns follow the sample clock.

    listeners receive the alert event dict; persistence and location
    enrichment hook in there.
    """

    def __init__(self, alert_config=None, audio=None, alert_logger=None, listeners=None, clock=None):
        self.config = alert_config if alert_config is not None else AlertConfig()
        self.audio = audio if audio is not None else ToneAlarm()
        self.logger = alert_logger if alert_logger is not None else AlertLogger()
        self.listeners = list(listeners or [])
        self.clock = clock or _monotonic_ms

        self.cooldown = TimeBuffer(self.config.get("cooldown_period_ms"))
        self._is_alerting = False
        self._alert_count = 0
        self.last_seen_timestamp = None   # sample clock, from the latest evaluated classification
        self.alert_history = deque(maxlen=config.ALERT_HISTORY_SIZE)

    @property
    def is_alerting(self) -> bool:
        # An alert lasts as long as its tone
        if self._is_alerting and not self.audio.is_playing:
            self._is_alerting = False
        return self._is_alerting

    @property
    def last_alert_timestamp(self):
        return self.cooldown.last_event_time

    def should_alert(self, classification: Classification) -> bool:
        if not self.config.get("enabled"):
            return False
        if classification.kind is None:
            return False
        if classification.confidence < self.config.get("confidence_threshold"):
            return False

        if self.cooldown.is_active(classification.timestamp, self.config.get("cooldown_period_ms")):
            return False

        return True

    def trigger(self, classification: Classification) -> bool:
        """Raise the alert. No-op (returns False) while one is in progress."""
        if self.is_alerting:
            return False

        self._is_alerting = True
        self.cooldown.trigger(classification.timestamp)
        self._alert_count += 1

        try:
            sound = bool(self.config.get("sound_enabled"))
            if sound:
                try:
                    self.audio.play()
                except Exception as e:
                    # The alert is still logged and delivered without a tone
                    print(f"Alarm playback failed: {e}")

            event = {
                "alert_number": self._alert_count,
                "sound": sound,
                **classification.to_dict(),
            }
            self.logger.log_alert(event)
            self.alert_history.appendleft(classification)

            for listener in self.listeners:
                listener(event)
        finally:
            if not self.audio.is_playing:
                self._is_alerting = False

        return True

    def evaluate(self, classification: Classification) -> bool:
        """should_alert() then trigger(). Returns True when an alert fired."""
        self.last_seen_timestamp = classification.timestamp
        if not self.should_alert(classification):
            return False
        return self.trigger(classification)

    def stop_alert(self):
        self.audio.stop()
        self._is_alerting = False

    def reset(self):
        """Stop any alert and forget the cooldown (new sample stream)."""
        self.stop_alert()
        self.cooldown.reset()
        self.last_seen_timestamp = None

    def update_config(self, **partial):
        self.config.update(partial)

    def test_alert(self, now=None) -> bool:
        """
        Fire a maximal-confidence fall alert to check the tone and log path.

        Args:
            now: ms on the sample clock; defaults to the latest evaluated
                 classification, or the trigger clock before any sample
        """
        if now is None:
            now = self.last_seen_timestamp if self.last_seen_timestamp is not None else self.clock()

        original_enabled = self.config.get("enabled")
        self.config.update({"enabled": True}, save=False)

        try:
            features = FeatureVector(
                magnitude=0.0, jerk=0.0, variance=0.0,
                peak_acceleration=0.0, average_acceleration=0.0,
                rotation_magnitude=0.0, timestamp=now,
            )
            return self.trigger(Classification(
                kind=DetectionKind.FALL, confidence=1.0, timestamp=now, features=features
            ))
        finally:
            self.config.update({"enabled": original_enabled}, save=False)

    def get_status(self, now=None) -> dict:
        now = self.clock() if now is None else now
        last = self.cooldown.last_event_time
        since = None if last is None else now - last
        return {
            "is_alerting": self.is_alerting,
            "last_alert_timestamp": last,
            "time_since_last_alert": since,
            "alert_count": self._alert_count,
        }

    def destroy(self):
        """Stop any alert and release the audio device."""
        self.stop_alert()
        self.audio.close()

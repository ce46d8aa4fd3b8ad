# engine/feature_extractor.py
"""
Motion Feature Extractor
------------------------
Turns a stream of raw inertial samples into per-window scalar features.

Key Features:
- Bounded sliding window: FIFO eviction at capacity
- Gravity removal: exponential low-pass estimate of gravity for samples
  without a platform-supplied linear acceleration
- Transient features (jerk, rotation) on a short tail so spikes are not diluted
- Sustained features (variance, peak, average) on the whole window
"""

import numpy as np
from collections import deque
from scipy.signal import lfilter

import config
from engine.motion_types import FeatureVector


class FeatureExtractor:
    def __init__(self, window_size=config.WINDOW_SIZE, alpha=config.GRAVITY_FILTER_ALPHA):
        self.window_size = window_size
        self.alpha = alpha

        # Raw samples and their linear acceleration (None until filtered)
        self.sample_buffer = deque(maxlen=window_size)
        self.linear_buffer = deque(maxlen=window_size)
        self._pending = 0

        # Low-pass gravity estimate, persists across extractions
        self.gravity = np.zeros(3)

    @property
    def capacity(self):
        return self.window_size

    def add_sample(self, sample):
        """Append a sample, evicting the oldest one when the window is full."""
        if len(self.sample_buffer) == self.window_size and self._pending == len(self.sample_buffer):
            # Oldest sample is about to leave unfiltered; the gravity estimate still has to see it
            self._resolve_pending()

        self.sample_buffer.append(sample)
        self.linear_buffer.append(None)
        self._pending += 1

    def extract_features(self):
        """
        Main API: compute the feature vector of the current window.

        Returns None while the window holds fewer than config.MIN_SAMPLES
        samples. Callers skip detection for that tick.
        """
        if len(self.sample_buffer) < config.MIN_SAMPLES:
            return None

        self._resolve_pending()

        linear = np.array(self.linear_buffer, dtype=float)
        magnitudes = np.linalg.norm(linear, axis=1)

        return FeatureVector(
            magnitude=float(magnitudes[-1]),
            jerk=self._compute_jerk(linear),
            variance=float(np.var(magnitudes)),
            peak_acceleration=float(np.max(magnitudes)),
            average_acceleration=float(np.mean(magnitudes)),
            rotation_magnitude=self._compute_rotation_magnitude(),
            timestamp=float(self.sample_buffer[-1].timestamp),
        )

    def _resolve_pending(self):
        """Fill in linear acceleration for every sample not yet filtered, in arrival order."""
        if self._pending == 0:
            return

        start = len(self.sample_buffer) - self._pending
        pending = [self.sample_buffer[i] for i in range(start, len(self.sample_buffer))]

        missing = [s.gravity_acceleration for s in pending if not s.has_linear_acceleration]
        derived = iter(self._remove_gravity(np.array(missing, dtype=float)) if missing else ())

        for offset, sample in enumerate(pending):
            if sample.has_linear_acceleration:
                linear = np.asarray(sample.linear_acceleration, dtype=float)
            else:
                linear = next(derived)
            self.linear_buffer[start + offset] = linear

        self._pending = 0

    def _remove_gravity(self, raw):
        """
        Low-pass the gravity-inclusive readings and subtract the estimate.

        gravity_n = alpha * gravity_{n-1} + (1 - alpha) * raw_n

        raw is an (n, 3) array; the filter state is carried between calls
        through lfilter's initial conditions.
        """
        b = [1.0 - self.alpha]
        a = [1.0, -self.alpha]
        zi = (self.alpha * self.gravity)[np.newaxis, :]

        gravity, _ = lfilter(b, a, raw, axis=0, zi=zi)
        self.gravity = gravity[-1].copy()

        return raw - gravity

    def _compute_jerk(self, linear):
        """Max magnitude of d(acceleration)/dt over the recent tail, in m/s^3."""
        recent = linear[-config.JERK_WINDOW:]
        timestamps = np.array(
            [s.timestamp for s in list(self.sample_buffer)[-config.JERK_WINDOW:]], dtype=float
        )

        dt = np.diff(timestamps) / 1000.0
        valid = dt > 0  # repeated or out-of-order timestamps carry no jerk
        if not np.any(valid):
            return 0.0

        deltas = np.diff(recent, axis=0)[valid]
        jerks = np.linalg.norm(deltas, axis=1) / dt[valid]
        return float(np.max(jerks))

    def _compute_rotation_magnitude(self):
        recent = list(self.sample_buffer)[-config.ROTATION_WINDOW:]
        rates = np.array([s.rotation_rate for s in recent], dtype=float)
        return float(np.max(np.linalg.norm(rates, axis=1)))

    def get_buffer_length(self):
        return len(self.sample_buffer)

    def get_time_span(self):
        """Seconds covered by the buffered samples."""
        if len(self.sample_buffer) < 2:
            return 0.0
        return (self.sample_buffer[-1].timestamp - self.sample_buffer[0].timestamp) / 1000.0

    def clear(self):
        """Drop buffered samples and the gravity estimate (monitoring restart)."""
        self.sample_buffer.clear()
        self.linear_buffer.clear()
        self._pending = 0
        self.gravity = np.zeros(3)

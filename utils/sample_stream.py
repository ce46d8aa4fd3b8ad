# utils/sample_stream.py
"""
Sample sources for replaying motion data through a monitoring session.

- read_samples_csv: recorded streams (one sample per row)
- generate_scenario: synthetic activity (rest, walking, fall, shaking)
"""

import csv

import numpy as np

from engine.motion_types import Sample

GRAVITY = np.array([0.0, 9.81, 0.0])

CSV_COLUMNS = {
    "acceleration": ("ax", "ay", "az"),
    "acceleration_including_gravity": ("gx", "gy", "gz"),
    "rotation_rate": ("alpha", "beta", "gamma"),
}


def read_samples_csv(path):
    """
    Yield Samples from a CSV with a `timestamp` column (ms) and any of
    ax, ay, az, gx, gy, gz, alpha, beta, gamma. Missing or empty cells read as 0.
    """
    with open(path, newline='') as f:
        for row in csv.DictReader(f):
            event = {"timestamp": row.get("timestamp")}
            for field, columns in CSV_COLUMNS.items():
                event[field] = [row.get(c) or 0.0 for c in columns]
            yield Sample.from_event(event)


class ScenarioGenerator:
    """Synthetic sensor streams, deterministic for a given seed."""

    def __init__(self, rate_hz=50, seed=0, start_ms=0.0):
        self.rate_hz = rate_hz
        self.dt_ms = 1000.0 / rate_hz
        self.rng = np.random.RandomState(seed)
        self.t = start_ms

    def _emit(self, linear, rotation):
        sample = Sample(
            timestamp=self.t,
            linear_acceleration=tuple(float(v) for v in linear),
            gravity_acceleration=tuple(float(v) for v in linear + GRAVITY),
            rotation_rate=tuple(float(v) for v in rotation),
        )
        self.t += self.dt_ms
        return sample

    def _count(self, duration_ms):
        return max(1, int(round(duration_ms / self.dt_ms)))

    def rest(self, duration_ms):
        """Device lying still: sensor noise only."""
        return [
            self._emit(self.rng.normal(0, 0.05, 3), self.rng.normal(0, 2.0, 3))
            for _ in range(self._count(duration_ms))
        ]

    def walking(self, duration_ms, step_hz=2.0, amplitude=3.0):
        samples = []
        for _ in range(self._count(duration_ms)):
            phase = 2 * np.pi * step_hz * self.t / 1000.0
            linear = np.array([0.3 * np.cos(phase), amplitude * np.sin(phase), 0.0])
            samples.append(self._emit(linear + self.rng.normal(0, 0.2, 3),
                                      self.rng.normal(0, 30.0, 3)))
        return samples

    def impact(self, peak=45.0, samples=2):
        """Hard hit on the floor, a few samples long."""
        return [
            self._emit(np.array([peak * 0.2, peak, peak * 0.1]), np.array([0.0, 250.0, 120.0]))
            for _ in range(samples)
        ]

    def fall(self, lead_ms=1000, free_fall_ms=400, lying_ms=1500):
        """Still, near-zero acceleration long enough to count as free fall, impact, then lying still."""
        return self.rest(lead_ms + free_fall_ms) + self.impact() + self.rest(lying_ms)

    def shaking(self, duration_ms, shake_hz=6.0, amplitude=40.0):
        """Violent back-and-forth shaking with rapid rotation."""
        samples = []
        for _ in range(self._count(duration_ms)):
            phase = 2 * np.pi * shake_hz * self.t / 1000.0
            sign = 1.0 if np.sin(phase) >= 0 else -1.0
            linear = np.array([sign * amplitude, 0.5 * amplitude * np.cos(phase), 5.0])
            samples.append(self._emit(linear + self.rng.normal(0, 1.0, 3),
                                      np.array([650.0, 300.0, 200.0]) * sign))
        return samples


SCENARIOS = ("rest", "walking", "fall", "shaking")


def generate_scenario(name, rate_hz=50, seed=0):
    """Build one of SCENARIOS as a list of Samples."""
    gen = ScenarioGenerator(rate_hz=rate_hz, seed=seed)
    if name == "rest":
        return gen.rest(5000)
    if name == "walking":
        return gen.walking(8000)
    if name == "fall":
        return gen.walking(2000) + gen.fall()
    if name == "shaking":
        return gen.walking(1000) + gen.shaking(3000)
    raise ValueError(f"Unknown scenario: {name} (choose from {', '.join(SCENARIOS)})")

# utils/fps_controller.py
import time


class SamplePacer:
    """
    Replays a sample stream at the pace its timestamps describe.

    speed > 1 replays faster than recorded. Gaps and jitter in the
    recording are reproduced as they are.
    """

    def __init__(self, speed=1.0, clock=time.monotonic, sleep=time.sleep):
        self.speed = speed
        self.clock = clock
        self.sleep = sleep

        self.anchor_wall = None     # seconds, clock() at the anchor sample
        self.anchor_sample = None   # ms, timestamp of the anchor sample

    def sync(self, timestamp_ms):
        """
        Call this once per replayed sample, before handing it on.
        Sleeps until the sample is due. Returns the time slept in seconds.
        """
        now = self.clock()

        if self.anchor_wall is None or timestamp_ms < self.anchor_sample:
            # First sample, or the stream jumped back: start over from here
            self.anchor_wall = now
            self.anchor_sample = timestamp_ms
            return 0.0

        due = self.anchor_wall + (timestamp_ms - self.anchor_sample) / 1000.0 / self.speed
        wait_time = due - now
        if wait_time <= 0:
            return 0.0

        self.sleep(wait_time)
        return wait_time

    def reset(self):
        self.anchor_wall = None
        self.anchor_sample = None

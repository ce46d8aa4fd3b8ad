"""Time buffer for managing event timing windows."""


class TimeBuffer:
    """
    Tracks timing windows for debouncing events.

    Times are caller-supplied milliseconds (the sample clock), never read
    from the wall clock here.
    """

    def __init__(self, duration_ms):
        self.duration = duration_ms
        self.last_event_time = None

    def trigger(self, timestamp):
        self.last_event_time = timestamp

    def is_active(self, timestamp, duration=None):
        """Returns True if we are still within the time buffer window"""
        if self.last_event_time is None:
            return False
        window = self.duration if duration is None else duration
        elapsed = timestamp - self.last_event_time
        # A timestamp before the last event belongs to another clock or stream
        return 0 <= elapsed < window

    def reset(self):
        self.last_event_time = None

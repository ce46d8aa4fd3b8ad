# engine/event_logger.py
import json
import time
import os
from datetime import datetime

import config
from utils.time_buffer import TimeBuffer


class DetectionLogger:
    """Session log of detections, one JSON line each."""

    def __init__(self, log_dir=config.LOG_DIR, min_interval_ms=config.DETECTION_LOG_INTERVAL_MS):
        self.log_dir = log_dir
        os.makedirs(self.log_dir, exist_ok=True)
        self.current_log_file = os.path.join(self.log_dir, f"session_{int(time.time())}.json")
        self.throttle = TimeBuffer(min_interval_ms)

    def log_detection(self, classification):
        """Append a detection. Returns False when skipped."""
        if not classification.detected:
            return False

        # Don't spam the log file (sample clock, not wall clock)
        if self.throttle.is_active(classification.timestamp):
            return False

        event = {
            "logged_at": datetime.now().isoformat(),
            **classification.to_dict(),
        }

        with open(self.current_log_file, "a") as f:
            f.write(json.dumps(event) + "\n")

        print(f"[DETECTION] {event['kind']} {event['confidence']:.0%} @ {classification.timestamp:.0f}ms")
        self.throttle.trigger(classification.timestamp)
        return True

    def reset(self):
        self.throttle.reset()

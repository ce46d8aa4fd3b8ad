# engine/monitor.py
"""
Monitoring session: sample -> features -> classification -> alert.

One session owns one extractor, one detector and one alert trigger. Nothing
is shared between sessions, so several devices can be monitored side by side.
Calls must come from a single thread at a time.
"""

from engine.feature_extractor import FeatureExtractor
from engine.pattern_detector import PatternDetector
from engine.alert_trigger import AlertTrigger


class MonitoringSession:
    def __init__(self, extractor=None, detector=None, alert_trigger=None, detection_logger=None):
        self.extractor = extractor or FeatureExtractor()
        self.detector = detector or PatternDetector()
        self.alert_trigger = alert_trigger or AlertTrigger()
        self.detection_logger = detection_logger

        self.is_active = False
        self.last_classification = None
        self.samples_processed = 0

    def start(self):
        """(Re)start monitoring with empty buffers and an idle detector."""
        self.extractor.clear()
        self.detector.reset()
        self.alert_trigger.reset()
        if self.detection_logger:
            self.detection_logger.reset()

        self.last_classification = None
        self.samples_processed = 0
        self.is_active = True

    def stop(self):
        self.is_active = False
        self.alert_trigger.stop_alert()

    def process_sample(self, sample):
        """
        Feed one sample through the pipeline.

        Returns the Classification, or None while inactive or while the
        window is still warming up.
        """
        if not self.is_active:
            return None

        self.extractor.add_sample(sample)
        self.samples_processed += 1

        features = self.extractor.extract_features()
        if features is None:
            return None

        classification = self.detector.detect(features)
        self.last_classification = classification

        if self.detection_logger and classification.detected:
            self.detection_logger.log_detection(classification)

        self.alert_trigger.evaluate(classification)
        return classification

    def close(self):
        self.stop()
        self.alert_trigger.destroy()

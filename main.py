"""Motion monitoring runner.

Replays a recorded CSV stream or a synthetic activity scenario through a
monitoring session (feature extraction, pattern detection, alerting) and
reports detections and alerts.
"""

import argparse
import sys
import time

import config
from engine.feature_extractor import FeatureExtractor
from engine.pattern_detector import PatternDetector, load_thresholds
from engine.alert_trigger import AlertConfig, AlertLogger, AlertTrigger
from engine.event_logger import DetectionLogger
from engine.monitor import MonitoringSession
from utils.fps_controller import SamplePacer
from utils.sample_stream import SCENARIOS, generate_scenario, read_samples_csv


def build_session(args):
    thresholds = load_thresholds(args.thresholds) if args.thresholds else None
    alert_config = AlertConfig(config_path=args.alert_config)
    if args.no_sound:
        alert_config.update({"sound_enabled": False}, save=False)

    return MonitoringSession(
        extractor=FeatureExtractor(window_size=config.WINDOW_SIZE),
        detector=PatternDetector(thresholds=thresholds),
        alert_trigger=AlertTrigger(alert_config=alert_config,
                                   alert_logger=AlertLogger(log_dir=args.log_dir)),
        detection_logger=DetectionLogger(log_dir=args.log_dir) if args.log_dir else None,
    )


def wait_for_alarm(session):
    """Let a running alarm finish before the mixer is released."""
    while session.alert_trigger.is_alerting:
        time.sleep(0.1)


def main(argv=None):
    parser = argparse.ArgumentParser(description='Replay motion samples through fall/violent-motion detection')
    source = parser.add_mutually_exclusive_group()
    source.add_argument('--csv', help='Recorded samples (timestamp, ax..az, gx..gz, alpha, beta, gamma)')
    source.add_argument('--scenario', choices=SCENARIOS, default='fall',
                        help='Synthetic activity to replay')
    parser.add_argument('--rate', type=int, default=config.REPLAY_SAMPLE_RATE,
                        help='Sample rate (Hz) for synthetic scenarios')
    parser.add_argument('--realtime', action='store_true', help='Pace the replay by the sample timestamps')
    parser.add_argument('--speed', type=float, default=1.0, help='Replay speed factor for --realtime')
    parser.add_argument('--thresholds', help='JSON file with detection threshold overrides')
    parser.add_argument('--alert-config', default=config.ALERT_CONFIG_PATH,
                        help='JSON file with alert settings')
    parser.add_argument('--log-dir', default=config.LOG_DIR, help='Directory for alert/session logs')
    parser.add_argument('--no-sound', action='store_true', help='Do not play the alarm tone')
    parser.add_argument('--test-alert', action='store_true', help='Fire a test alert and exit')
    args = parser.parse_args(argv)

    try:
        session = build_session(args)
    except (OSError, ValueError) as e:
        print(f"Configuration error: {e}")
        return 1

    if args.test_alert:
        session.alert_trigger.test_alert()
        wait_for_alarm(session)
        session.close()
        return 0

    samples = read_samples_csv(args.csv) if args.csv else generate_scenario(args.scenario, rate_hz=args.rate)
    pacer = SamplePacer(speed=args.speed) if args.realtime else None

    print("=" * 40)
    print("MOTION GUARD")
    print(f"SOURCE: {args.csv or args.scenario}")
    print("=" * 40)

    session.start()
    last_kind = None
    detections = 0

    try:
        for sample in samples:
            if pacer:
                pacer.sync(sample.timestamp)

            classification = session.process_sample(sample)

            if classification is not None:
                if classification.detected:
                    detections += 1
                if classification.kind != last_kind:
                    label = classification.kind.value if classification.kind else "normal"
                    print(f"{sample.timestamp:>9.0f}ms  {label:<18} {classification.confidence:.2f}")
                    last_kind = classification.kind
    except KeyboardInterrupt:
        pass
    finally:
        last = session.last_classification
        status = session.alert_trigger.get_status(now=last.timestamp if last else None)

        wait_for_alarm(session)
        session.close()

    print("-" * 40)
    print(f"Samples: {session.samples_processed}  Detections: {detections}  Alerts: {status['alert_count']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

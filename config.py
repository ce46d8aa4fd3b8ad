# config.py
"""
Motion Guard Configuration
--------------------------
All tunable parameters in one place for easy adjustment.

Detection thresholds are policy, not physics: the values below are the
strictest tuning pass (very low sensitivity, only extreme events alert).
Override them per session with a JSON file, see
engine.pattern_detector.load_thresholds.
"""

# --- Sample Window ---
WINDOW_SIZE = 50            # Samples kept for feature extraction (~1s at 50Hz)
MIN_SAMPLES = 10            # Below this the window has no statistical basis
JERK_WINDOW = 10            # Jerk looks at the most recent samples only (transients)
ROTATION_WINDOW = 5         # Rotation peak looks at an even shorter tail

# --- Gravity Filter ---
# gravity_n = alpha * gravity_{n-1} + (1 - alpha) * raw_n
GRAVITY_FILTER_ALPHA = 0.8

# --- Fall Detection (m/s^2, m/s^3, ms) ---
FALL_THRESHOLDS = {
    "FREE_FALL_MAX": 1.5,               # Must be true free fall (almost zero g)
    "IMPACT_MIN": 40.0,                 # Very strong impact only (>4g)
    "JERK_SPIKE_MIN": 200.0,            # Very sudden spike required
    "INACTIVITY_MAX": 8.0,              # Very minimal movement after impact
    "MIN_FREE_FALL_DURATION_MS": 300,   # Free fall must last this long before impact counts
    "SEQUENCE_TIMEOUT_MS": 2000,        # Max time between two fall-sequence transitions
    "POST_IMPACT_HOLD_MS": 1000,        # How long a confirmed fall keeps reporting
    "IMPACT_CONFIDENCE": 0.75,
    "INACTIVITY_CONFIDENCE": 0.85,      # Tick that confirms stillness after the impact
    "POST_IMPACT_CONFIDENCE": 0.9,
}

# --- Violent Movement ---
VIOLENT_MOVEMENT_THRESHOLDS = {
    "JERK_HIGH": 150.0,          # m/s^3
    "ACCELERATION_PEAK": 35.0,   # m/s^2 (>3.5g)
    "ROTATION_RAPID": 500.0,     # deg/s
    "VARIANCE_HIGH": 25.0,
    # Confidence by number of triggered indicators (fewer than 2 = no detection)
    "CONFIDENCE_2_INDICATORS": 0.6,
    "CONFIDENCE_3_INDICATORS": 0.8,
    "CONFIDENCE_4_INDICATORS": 0.95,
}

# --- Abnormal Motion (sustained) ---
ABNORMAL_MOTION_THRESHOLDS = {
    "AVERAGE_MIN": 22.0,
    "VARIANCE_MIN": 20.0,
    "PEAK_MIN": 32.0,
    "SUSTAINED_AVERAGE_MIN": 20.0,   # Companion threshold checked over history
    "SUSTAINED_WINDOW": 7,           # History entries inspected
    "SUSTAINED_COUNT": 6,            # ...of which this many must be elevated
    "SPIKE_CONFIDENCE": 0.5,
    "SUSTAINED_CONFIDENCE": 0.75,
}

# --- Normal Activity Profiles (False Positive Filter) ---
# A feature vector under every ceiling of any one profile is ordinary motion.
NORMAL_ACTIVITY_PROFILES = {
    "walking": {"peak_acceleration": 25.0, "variance": 18.0, "jerk": 120.0},
    "running": {"peak_acceleration": 35.0, "variance": 25.0, "jerk": 140.0},
    "phone_handling": {"peak_acceleration": 22.0, "rotation_magnitude": 400.0},
}

# --- Decision Logic ---
MIN_DETECTION_CONFIDENCE = 0.75   # Global gate: high precision, low recall
FEATURE_HISTORY_SIZE = 10

# --- Alerts ---
ALERT_ENABLED = True
ALERT_CONFIDENCE_THRESHOLD = 0.7
ALERT_COOLDOWN_MS = 5000          # 5 seconds between two alerts
ALERT_SOUND_ENABLED = True
ALERT_HISTORY_SIZE = 10
ALERT_CONFIG_PATH = None          # e.g. "data/alert_config.json" to persist settings

# --- Alarm Tone ---
ALARM_FREQUENCIES = [800, 1000]   # Alternating, square wave
ALARM_STEPS = 6
ALARM_STEP_MS = 400               # 6 x 400ms = 2.4s
ALARM_VOLUME = 0.7
ALARM_SAMPLE_RATE = 44100

# --- Logs ---
LOG_DIR = "data/logs"
DETECTION_LOG_INTERVAL_MS = 1000  # Max one session log entry per second of sample time

# --- Replay ---
REPLAY_SAMPLE_RATE = 50           # Hz, synthetic scenarios in main.py

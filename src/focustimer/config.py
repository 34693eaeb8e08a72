DEFAULT_FOCUS_MIN = 25
DEFAULT_BREAK_MIN = 5
HISTORY_LIMIT = 30

FOCUS_MIN_BOUNDS = (1, 180)
BREAK_MIN_BOUNDS = (1, 60)

TICK_INTERVAL_MS = 1000

# QSettings keys
SETTINGS_KEY = "ft_settings"
STATE_KEY = "ft_state"
HISTORY_KEY = "ft_history"

QS_ORGANIZATION = "FocusTimer"
QS_APPLICATION = "FocusTimerApp"

# Environment
ENV_STORE_PATH = "FOCUSTIMER_STORE"  # INI file instead of native settings
ENV_LOG_LEVEL = "FOCUSTIMER_LOG_LEVEL"

DEFAULT_MOUSE_DISTANCE = 10
DEFAULT_TOUCH_DELAY_MS = 250
DEFAULT_TOUCH_TOLERANCE = 10
MAX_THRESHOLD = 1000

_ENV_KEYS = {
    'GESTURE_MOUSE_DISTANCE': DEFAULT_MOUSE_DISTANCE,
    'GESTURE_TOUCH_DELAY_MS': DEFAULT_TOUCH_DELAY_MS,
    'GESTURE_TOUCH_TOLERANCE': DEFAULT_TOUCH_TOLERANCE,
}


def normalize_threshold(raw, default):
    try:
        value = int(raw) if raw is not None else default
    except ValueError:
        raise ValueError('gesture thresholds must be int')
    return max(0, min(value, MAX_THRESHOLD))


def load_gesture_config(environ):
    """Read drag activation thresholds from an environment-like mapping."""
    return {key: normalize_threshold(environ.get(key), default) for key, default in _ENV_KEYS.items()}

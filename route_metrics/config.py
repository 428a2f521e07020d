import os

def int_env(name: str, default: int, *, min_value: int | None = None, max_value: int | None = None) -> int:
    """
    Read an env var and convert to int, with optional range validation.
    Falls back to `default` if var is unset or its parsing fails.
    """
    raw = os.getenv(name, default)
    try:
        value = int(raw)
    except (ValueError, TypeError):
        value = int(default)

    if min_value is not None and value < min_value:
        value = min_value
    if max_value is not None and value > max_value:
        value = max_value
    return value

# Server bind & logging
BIND_HOST = os.getenv("BIND_HOST", "0.0.0.0")
PORT      = int_env("PORT", 8080, min_value=1, max_value=65535)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Recent request records kept for /metrics/requests and /health
REQUEST_LOG_CAPACITY = int_env("REQUEST_LOG_CAPACITY", 10000, min_value=1)

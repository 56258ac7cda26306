"""Time helpers for consistent UTC timestamps across services."""

from datetime import datetime, timezone

# Anything below this is a second-resolution epoch (10**11 s is in the year 5138).
_MS_THRESHOLD = 10**11


def utc_now() -> datetime:
    """Return current UTC datetime with timezone attached."""

    return datetime.now(timezone.utc)


def utc_now_ms() -> int:
    return int(utc_now().timestamp() * 1000)


def to_epoch_ms(value: int | float | str) -> int:
    """Normalize a second- or millisecond-resolution epoch timestamp to milliseconds."""

    numeric = int(float(value))
    if abs(numeric) < _MS_THRESHOLD:
        return numeric * 1000
    return numeric


def format_ms(value_ms: int, pattern: str) -> str:
    """Format an epoch-millisecond timestamp in UTC."""

    return datetime.fromtimestamp(value_ms / 1000, tz=timezone.utc).strftime(pattern)

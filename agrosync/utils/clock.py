"""
Timestamp helpers.

All local timestamps are UTC ISO-8601 strings with millisecond precision and a
trailing ``Z`` so they compare correctly as plain strings.
"""
import time
from datetime import date, datetime, timezone
from typing import Union

EPOCH_ISO = "1970-01-01T00:00:00.000Z"


def to_iso(value: Union[str, date, datetime]) -> str:
    """Render a date, datetime or ISO string as a canonical UTC timestamp."""
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        value = datetime.fromisoformat(text)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
    elif isinstance(value, date):
        value = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_now_iso() -> str:
    """Current time as a canonical UTC timestamp."""
    return to_iso(datetime.now(timezone.utc))


def epoch_millis() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)

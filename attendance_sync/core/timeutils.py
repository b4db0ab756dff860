"""
Clock and calendar helpers.

Punch timestamps are epoch milliseconds from the device clock. Calendar dates
and server-provided wall times are interpreted in the configured timezone.
"""

import time
from datetime import datetime, timedelta
from typing import Optional, Protocol
from zoneinfo import ZoneInfo

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M:%S"


class Clock(Protocol):
    def now_ms(self) -> int: ...


class SystemClock:
    """Wall clock of the device."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)


def to_datetime(timestamp_ms: int, tz: ZoneInfo) -> datetime:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=tz)


def date_for_timestamp(timestamp_ms: int, tz: ZoneInfo) -> str:
    return to_datetime(timestamp_ms, tz).strftime(DATE_FORMAT)


def format_time(timestamp_ms: Optional[int], tz: ZoneInfo) -> Optional[str]:
    if timestamp_ms is None:
        return None
    return to_datetime(timestamp_ms, tz).strftime(TIME_FORMAT)


def cutoff_date(now_ms: int, days: int, tz: ZoneInfo) -> str:
    """Calendar date `days` before the date of `now_ms`."""
    return (to_datetime(now_ms, tz) - timedelta(days=days)).strftime(DATE_FORMAT)


def parse_server_time(value: Optional[str], tz: ZoneInfo) -> Optional[int]:
    """
    Parse a time string from the remote API into epoch milliseconds.

    Accepts "YYYY-MM-DD HH:MM:SS" as well as ISO 8601 with a "T" separator,
    fractional seconds, a "Z" suffix or an explicit offset. Naive values are
    taken to be in `tz`. Returns None when the value is empty or unparseable.
    """
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return int(parsed.timestamp() * 1000)

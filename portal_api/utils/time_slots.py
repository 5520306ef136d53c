"""Wall-clock arithmetic for consultation slots.

Slot times are "HH:MM" 24-hour strings compared as minutes since midnight.
Intervals are half-open: [start, end).
"""

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import NamedTuple
from zoneinfo import ZoneInfo

from portal_api.core.errors import InvalidTimeFormat

HHMM_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
MINUTES_PER_DAY = 24 * 60


class TimeRange(NamedTuple):
    """Half-open minute interval within one day."""
    start: int
    end: int


def parse_hhmm(value: str) -> int:
    """Convert "HH:MM" to minutes since midnight."""
    if not isinstance(value, str) or not HHMM_PATTERN.match(value):
        raise InvalidTimeFormat(f"Invalid time format '{value}'. Use HH:MM (24-hour)")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def format_hhmm(minutes: int) -> str:
    """Format minutes since midnight as "HH:MM"."""
    if minutes < 0 or minutes >= MINUTES_PER_DAY:
        raise InvalidTimeFormat("Time must fall within the same day (00:00-23:59)")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def end_time(start: str, duration_minutes: int) -> str:
    """
    Return start + duration as "HH:MM".

    A slot may end at 23:59 at the latest; anything reaching midnight is
    rejected because slots do not cross days.
    """
    return format_hhmm(parse_hhmm(start) + duration_minutes)


def time_range(start: str, end: str) -> TimeRange:
    return TimeRange(parse_hhmm(start), parse_hhmm(end))


def overlaps(a: TimeRange, b: TimeRange) -> bool:
    """True iff the half-open intervals share at least one minute."""
    return a.start < b.end and a.end > b.start


def normalize_date(value: date | datetime) -> date:
    """
    Calendar date of a slot.

    Datetimes are converted to UTC first, so every stored slot date is the
    start of a UTC day.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def iter_dates(start: date, end: date):
    """Yield every date in [start, end]."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def slot_start_datetime(slot_date: date, start: str, tz_name: str) -> datetime:
    """Aware datetime for a slot's start, interpreting the wall time in tz_name."""
    minutes = parse_hhmm(start)
    return datetime.combine(
        slot_date, time(minutes // 60, minutes % 60), tzinfo=ZoneInfo(tz_name)
    )


def format_12h(value: str) -> str:
    """Format "14:05" as "2:05 PM"."""
    minutes = parse_hhmm(value)
    hours, mins = divmod(minutes, 60)
    suffix = "PM" if hours >= 12 else "AM"
    display = hours % 12 or 12
    return f"{display}:{mins:02d} {suffix}"

"""
Wall-clock helpers for notification scheduling.

All stored instants are naive UTC. Anything that depends on the user's local
time (quiet hours, the daily summary threshold, "today") goes through
resolve_timezone() and to_local() so the conversion happens in exactly one place.
"""
import logging
import re
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

HHMM_PATTERN = re.compile(r"^([0-1]\d|2[0-3]):[0-5]\d$")
DEFAULT_TIMEZONE = "UTC"


def is_valid_hhmm(value: str) -> bool:
    return bool(value) and bool(HHMM_PATTERN.match(value))


def parse_hhmm(value: str) -> int:
    """Parse "HH:MM" into minutes since midnight. Raises ValueError on bad input."""
    if not is_valid_hhmm(value):
        raise ValueError(f"Expected HH:MM, got {value!r}")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def is_valid_timezone(name: str) -> bool:
    if not name:
        return False
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def resolve_timezone(name: str | None) -> ZoneInfo:
    """ZoneInfo for an IANA name; unknown or empty names fall back to UTC."""
    if not name:
        return ZoneInfo(DEFAULT_TIMEZONE)
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, falling back to UTC", name)
        return ZoneInfo(DEFAULT_TIMEZONE)


def to_local(instant: datetime, tz_name: str | None) -> datetime:
    """Convert a naive-UTC (or aware) instant to local wall-clock time in tz_name."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(resolve_timezone(tz_name))


def local_minutes(instant: datetime, tz_name: str | None) -> int:
    """Minutes since local midnight."""
    local = to_local(instant, tz_name)
    return local.hour * 60 + local.minute


def local_date(instant: datetime, tz_name: str | None) -> date:
    return to_local(instant, tz_name).date()


def local_date_string(instant: datetime, tz_name: str | None) -> str:
    """Local calendar date as YYYY-MM-DD."""
    return local_date(instant, tz_name).isoformat()


def utc_day_bounds(day: date) -> tuple[datetime, datetime]:
    """[start, end) of a calendar day expressed in naive UTC.

    Due dates are date-only values stored as midnight UTC, so "due today" for a user
    means due on the UTC day whose calendar date equals the user's local date.
    """
    start = datetime(day.year, day.month, day.day)
    return start, start + timedelta(days=1)


def is_within_quiet_hours(
    instant: datetime,
    enabled: bool,
    start: str,
    end: str,
    tz_name: str | None = DEFAULT_TIMEZONE,
) -> bool:
    """
    Whether ambient notifications (reminders, overdue) are suppressed at instant.

    start <= end is a same-day window [start, end). start > end wraps midnight,
    e.g. 23:00-07:00 suppresses from 23:00 through 06:59 local time.
    """
    if not enabled:
        return False
    current = local_minutes(instant, tz_name)
    start_minutes = parse_hhmm(start)
    end_minutes = parse_hhmm(end)
    if start_minutes > end_minutes:
        return current >= start_minutes or current < end_minutes
    return start_minutes <= current < end_minutes


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'}"


def format_time_remaining(minutes: int) -> str:
    """Human duration for reminder titles: "15 minutes", "1 hour", "2 days"."""
    if minutes < 60:
        return _plural(minutes, "minute")
    hours = minutes // 60
    if hours < 24:
        return _plural(hours, "hour")
    return _plural(hours // 24, "day")


def offset_fire_time(due_date: datetime, minutes_before: int) -> datetime:
    return due_date - timedelta(minutes=minutes_before)


def is_due_for_offset(fire_time: datetime, now: datetime, window_minutes: int) -> bool:
    """Fire time has passed, but by no more than window_minutes (catch-up window)."""
    elapsed = (now - fire_time).total_seconds() / 60
    return 0 <= elapsed <= window_minutes


def due_date_reminder_time(
    due_date: datetime,
    days_before: int,
    time_of_day: str,
    tz_name: str | None = DEFAULT_TIMEZONE,
) -> datetime:
    """
    Naive-UTC instant for a "days_before at HH:MM local" due-date reminder.

    The calendar day is read from the stored due date's UTC components, never from
    its local conversion, so zones west of UTC do not shift the due day backwards.
    The wall-clock time is then placed in tz_name, which follows DST on that day.
    """
    minutes = parse_hhmm(time_of_day)
    day = due_date.date() - timedelta(days=days_before)
    local = datetime(day.year, day.month, day.day, minutes // 60, minutes % 60, tzinfo=resolve_timezone(tz_name))
    return local.astimezone(timezone.utc).replace(tzinfo=None)

"""Recurrence rules for repeating tasks."""
import calendar
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

FREQUENCIES = ("none", "daily", "weekly", "monthly", "yearly")


def _add_months(value: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the target month's last day (Jan 31 + 1 -> Feb 28)."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def next_due_date(current: datetime, frequency: str, interval: int = 1) -> datetime:
    """Due date of the next occurrence. Raises ValueError for an unknown or "none" frequency."""
    interval = max(1, int(interval or 1))
    if frequency == "daily":
        return current + timedelta(days=interval)
    if frequency == "weekly":
        return current + timedelta(weeks=interval)
    if frequency == "monthly":
        return _add_months(current, interval)
    if frequency == "yearly":
        return _add_months(current, 12 * interval)
    raise ValueError(f"Unsupported recurrence frequency: {frequency!r}")


def _parse_end_date(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.astimezone(timezone.utc).replace(tzinfo=None) if value.tzinfo else value
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def next_occurrence(due_date: Optional[datetime], recurrence: Optional[dict[str, Any]]) -> Optional[datetime]:
    """
    Next due date for a completed recurring task, or None when it does not repeat.

    recurrence is the task's stored rule: {"frequency", "interval", "end_date"}. An
    occurrence past end_date is not created.
    """
    if not recurrence or due_date is None:
        return None
    frequency = recurrence.get("frequency") or "none"
    if frequency == "none":
        return None
    following = next_due_date(due_date, frequency, recurrence.get("interval") or 1)
    end_date = _parse_end_date(recurrence.get("end_date") or recurrence.get("endDate"))
    if end_date is not None and following > end_date:
        return None
    return following

"""Next one-shot reminder scheduling from the owner's and assignee's due-date reminders."""
import logging
from datetime import datetime
from typing import Any, Iterable, Optional

from pillar.domain.notifications.models import DEFAULT_DUE_DATE_REMINDERS, TaskView
from pillar.domain.notifications.schedule import DEFAULT_TIMEZONE, due_date_reminder_time
from pillar.infra.db.repositories.preference_repo import PreferenceRepository
from pillar.infra.db.repositories.task_repo import TaskRepository

logger = logging.getLogger(__name__)


def next_reminder_time(
    due_date: Optional[datetime],
    reminders: Iterable[tuple[dict[str, Any], str]],
    now: datetime,
) -> Optional[datetime]:
    """
    Soonest reminder instant strictly after now, or None when every reminder has passed.

    reminders pairs each {"daysBefore", "time"} entry with the timezone of the user who
    configured it. Malformed entries are skipped.
    """
    if due_date is None:
        return None
    candidates = []
    for reminder, tz_name in reminders:
        try:
            fire_at = due_date_reminder_time(
                due_date, int(reminder["daysBefore"]), reminder["time"], tz_name
            )
        except (KeyError, TypeError, ValueError, OverflowError) as e:
            logger.debug("Skipping malformed due-date reminder %r: %s", reminder, e)
            continue
        if fire_at > now:
            candidates.append(fire_at)
    return min(candidates) if candidates else None


class ReminderScheduler:
    """Fills an empty reminder_at slot with the next due-date reminder of the owner or assignee."""

    def __init__(self, task_repo: TaskRepository, preference_repo: PreferenceRepository):
        self.task_repo = task_repo
        self.preference_repo = preference_repo

    async def _reminders_for(self, task: TaskView) -> list[tuple[dict[str, Any], str]]:
        user_ids = [task.user_id]
        if task.assignee_id and task.assignee_id != task.user_id:
            user_ids.append(task.assignee_id)
        reminders: list[tuple[dict[str, Any], str]] = []
        for user_id in user_ids:
            prefs = await self.preference_repo.get_by_user(user_id)
            if prefs is None:
                reminders.extend((dict(r), DEFAULT_TIMEZONE) for r in DEFAULT_DUE_DATE_REMINDERS)
                continue
            tz_name = prefs.timezone or DEFAULT_TIMEZONE
            reminders.extend((r, tz_name) for r in prefs.due_date_reminders or [])
        return reminders

    async def schedule_next(self, task: TaskView, now: datetime) -> Optional[datetime]:
        """
        Write the next reminder for task if its reminder_at is still empty.

        Returns the scheduled instant, or None when nothing was written (no due date,
        no future reminder, or the slot was filled meanwhile, e.g. by a snooze).
        """
        if task.due_date is None or task.completed_at is not None:
            return None
        when = next_reminder_time(task.due_date, await self._reminders_for(task), now)
        if when is None:
            return None
        if await self.task_repo.set_reminder_if_empty(task.id, when):
            logger.debug("Scheduled next reminder for task %s at %s", task.id, when.isoformat())
            return when
        return None

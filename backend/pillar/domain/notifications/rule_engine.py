"""
Notification rule engine: decides which notifications are due for one user and creates them once.

Passes run in a fixed order (one-shot reminders, timing offsets, overdue, daily summary)
because later dedup checks read notifications created by earlier passes of the same run.
Every write commits on its own; there is no transaction around the evaluation, so a
timeout or a failed insert keeps whatever was created before it.
"""
import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from pillar.domain.common.types import utcnow
from pillar.domain.notifications.models import (
    DAILY_SUMMARY_TITLE,
    DUE_SOON_TITLE_PREFIX,
    OVERDUE_TITLE,
    REMINDER_TITLE,
    TAG_PREFIX,
    TASK_PUSH_ACTIONS,
    DeliveryPayload,
    EvaluationResult,
    NotificationType,
    PreferenceView,
    TaskView,
    notification_snapshot,
)
from pillar.domain.notifications.reminders import ReminderScheduler
from pillar.domain.notifications.schedule import (
    format_time_remaining,
    is_due_for_offset,
    is_within_quiet_hours,
    local_date,
    local_minutes,
    offset_fire_time,
    parse_hhmm,
    utc_day_bounds,
)
from pillar.infra.db.repositories.notification_repo import NotificationRepository
from pillar.infra.db.repositories.preference_repo import PreferenceRepository
from pillar.infra.db.repositories.task_repo import TaskRepository

logger = logging.getLogger(__name__)

SUMMARY_PREVIEW_LIMIT = 5


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


def daily_summary_message(due_today: int, overdue: int) -> str:
    parts = []
    if due_today:
        parts.append(f"{_plural(due_today, 'task')} due today")
    if overdue:
        parts.append(f"{_plural(overdue, 'overdue task')}")
    return f"You have {' and '.join(parts)}."


def _task_metadata(task: TaskView) -> dict[str, Any]:
    return {
        "priority": task.priority,
        "dueDate": task.due_date.isoformat() if task.due_date else None,
        "boardId": task.board_id,
    }


class NotificationRuleEngine:
    """Evaluates one user's tasks against their preferences."""

    def __init__(
        self,
        session: AsyncSession,
        dispatcher=None,
        *,
        catch_up_minutes: int = 120,
    ):
        self.session = session
        self.dispatcher = dispatcher
        self.catch_up_minutes = catch_up_minutes
        self.tasks = TaskRepository(session)
        self.notifications = NotificationRepository(session)
        self.preferences = PreferenceRepository(session)
        self.reminder_scheduler = ReminderScheduler(self.tasks, self.preferences)

    async def evaluate(
        self,
        user_id: str,
        now: Optional[datetime] = None,
        result: Optional[EvaluationResult] = None,
    ) -> EvaluationResult:
        """
        Run all passes for user_id and return the counts.

        result may be supplied by the caller; it is updated in place as notifications are
        created, so a caller that cancels the evaluation still sees partial progress.
        """
        now = now or utcnow()
        result = result or EvaluationResult(user_id=user_id)

        prefs = PreferenceView.from_model(await self.preferences.get_or_create(user_id))
        if not prefs.enable_in_app_notifications:
            return result

        quiet = self._quiet_now(prefs, now)

        await self._one_shot_reminders(prefs, now, quiet, result)
        if not quiet:
            await self._timing_offset_reminders(prefs, now, result)
            if prefs.enable_overdue_summary:
                await self._overdue(prefs, now, result)
        if prefs.enable_daily_summary:
            await self._daily_summary(prefs, now, result)

        if result.total or result.anomalies:
            logger.info(
                "Evaluated user %s: %s reminders, %s overdue, %s daily summaries, %s anomalies",
                user_id,
                result.reminders,
                result.overdue,
                result.daily_summaries,
                result.anomalies,
            )
        return result

    def _quiet_now(self, prefs: PreferenceView, now: datetime) -> bool:
        try:
            return is_within_quiet_hours(
                now,
                prefs.quiet_hours_enabled,
                prefs.quiet_hours_start,
                prefs.quiet_hours_end,
                prefs.timezone,
            )
        except ValueError as e:
            logger.warning("Ignoring malformed quiet hours for user %s: %s", prefs.user_id, e)
            return False

    async def _anomaly(self, result: EvaluationResult, stage: str, subject: str, error: Exception) -> None:
        result.anomalies += 1
        logger.warning("Skipping %s in %s pass for user %s: %s", subject, stage, result.user_id, error)
        logger.debug("Anomaly detail", exc_info=error)
        await self.session.rollback()

    # --- passes ----------------------------------------------------------------

    async def _one_shot_reminders(
        self, prefs: PreferenceView, now: datetime, quiet: bool, result: EvaluationResult
    ) -> None:
        for task in await self.tasks.list_pending_reminders(prefs.user_id, now):
            try:
                fired_at = task.reminder_at
                created = None
                if not quiet:
                    created = await self._create(
                        prefs,
                        result,
                        NotificationType.REMINDER,
                        REMINDER_TITLE,
                        f'"{task.title}" needs your attention.',
                        task=task,
                        scheduled_for=fired_at,
                        metadata=_task_metadata(task),
                    )
                    if created:
                        result.reminders += 1
                # Quiet hours consume the reminder; a failed insert leaves it for the next cycle
                if quiet or created:
                    await self.tasks.clear_reminder(task.id, fired_at)
                    await self.reminder_scheduler.schedule_next(task, now)
            except Exception as e:
                await self._anomaly(result, "reminder", f"task {task.id}", e)

    async def _timing_offset_reminders(
        self, prefs: PreferenceView, now: datetime, result: EvaluationResult
    ) -> None:
        if not prefs.reminder_timings:
            return
        for task in await self.tasks.list_upcoming(prefs.user_id, now):
            try:
                for minutes_before in prefs.reminder_timings:
                    fire_time = offset_fire_time(task.due_date, minutes_before)
                    if not is_due_for_offset(fire_time, now, self.catch_up_minutes):
                        continue
                    # One live reminder per task; the first elapsed offset wins
                    if await self.notifications.exists_for_task(
                        task.id, prefs.user_id, NotificationType.REMINDER.value, include_dismissed=False
                    ):
                        break
                    remaining = format_time_remaining(minutes_before)
                    created = await self._create(
                        prefs,
                        result,
                        NotificationType.REMINDER,
                        f"{DUE_SOON_TITLE_PREFIX} {remaining}",
                        f'"{task.title}" is due in {remaining}.',
                        task=task,
                        scheduled_for=fire_time,
                        metadata=_task_metadata(task),
                    )
                    if created:
                        result.reminders += 1
                    break
            except Exception as e:
                await self._anomaly(result, "timing-offset", f"task {task.id}", e)

    async def _overdue(self, prefs: PreferenceView, now: datetime, result: EvaluationResult) -> None:
        for task in await self.tasks.list_overdue(prefs.user_id, now):
            try:
                if await self.notifications.exists_for_task(
                    task.id, prefs.user_id, NotificationType.OVERDUE.value
                ):
                    continue
                created = await self._create(
                    prefs,
                    result,
                    NotificationType.OVERDUE,
                    OVERDUE_TITLE,
                    f'"{task.title}" is overdue and needs your attention.',
                    task=task,
                    metadata=_task_metadata(task),
                )
                if created:
                    result.overdue += 1
            except Exception as e:
                await self._anomaly(result, "overdue", f"task {task.id}", e)

    async def _daily_summary(self, prefs: PreferenceView, now: datetime, result: EvaluationResult) -> None:
        try:
            await self._build_daily_summary(prefs, now, result)
        except Exception as e:
            await self._anomaly(result, "daily-summary", "summary", e)

    async def _build_daily_summary(self, prefs: PreferenceView, now: datetime, result: EvaluationResult) -> None:
        try:
            summary_minutes = parse_hhmm(prefs.daily_summary_time)
        except ValueError as e:
            logger.warning("Ignoring malformed daily summary time for user %s: %s", prefs.user_id, e)
            return
        if local_minutes(now, prefs.timezone) < summary_minutes:
            return

        today = local_date(now, prefs.timezone)
        today_str = today.isoformat()
        if today_str in await self.notifications.summary_dates(prefs.user_id, now):
            return

        # Due dates are date-only, stored as midnight UTC of the calendar day
        day_start, day_end = utc_day_bounds(today)
        due_today = await self.tasks.list_due_between(prefs.user_id, day_start, day_end)
        overdue = await self.tasks.list_overdue(prefs.user_id, day_start)
        total = len(due_today) + len(overdue)
        if total == 0:
            return

        created = await self._create(
            prefs,
            result,
            NotificationType.DAILY_SUMMARY,
            DAILY_SUMMARY_TITLE,
            daily_summary_message(len(due_today), len(overdue)),
            metadata={
                "summaryDate": today_str,
                "dueTodayCount": len(due_today),
                "overdueCount": len(overdue),
                "totalCount": total,
                "dueTodayTasks": [t.preview() for t in due_today[:SUMMARY_PREVIEW_LIMIT]],
                "overdueTasks": [t.preview() for t in overdue[:SUMMARY_PREVIEW_LIMIT]],
            },
        )
        if created:
            result.daily_summaries += 1

    # --- creation + dispatch ---------------------------------------------------

    async def _create(
        self,
        prefs: PreferenceView,
        result: EvaluationResult,
        notification_type: NotificationType,
        title: str,
        message: str,
        *,
        task: Optional[TaskView] = None,
        scheduled_for: Optional[datetime] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Optional[dict[str, Any]]:
        """Persist one notification and dispatch it. Returns None if the insert failed."""
        try:
            model = await self.notifications.create(
                prefs.user_id,
                notification_type.value,
                title,
                message,
                task_id=task.id if task else None,
                scheduled_for=scheduled_for,
                metadata=metadata,
            )
        except Exception as e:
            result.anomalies += 1
            logger.warning("Failed to create %s notification for user %s: %s", notification_type.value, prefs.user_id, e)
            return None

        snapshot = notification_snapshot(model)
        result.created.append(snapshot)

        if prefs.enable_browser_push and self.dispatcher is not None:
            payload = self._payload(snapshot, notification_type, task)
            try:
                await self.dispatcher.deliver(prefs.user_id, payload)
            except Exception as e:
                logger.warning("Push dispatch failed for user %s: %s", prefs.user_id, e)
        return snapshot

    @staticmethod
    def _payload(
        snapshot: dict[str, Any], notification_type: NotificationType, task: Optional[TaskView]
    ) -> DeliveryPayload:
        single_task = notification_type in (NotificationType.REMINDER, NotificationType.OVERDUE)
        board_id = task.board_id if task else None
        return DeliveryPayload(
            title=snapshot["title"],
            message=snapshot["message"],
            notification_id=snapshot["id"],
            task_id=task.id if task else None,
            tag=f"{TAG_PREFIX}-{snapshot['id']}",
            url=f"/boards/{board_id}" if board_id else "/",
            actions=list(TASK_PUSH_ACTIONS) if single_task else None,
            notification_type=notification_type.value if single_task else None,
        )

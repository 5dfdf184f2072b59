"""
User-triggered task mutations that share reminder_at with the rule engine.

Snooze writes reminder_at unconditionally. The engine only clears the exact value it
fired and only schedules into an empty slot, so a snooze persisted at any point survives.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from pillar.domain.common.errors import NotFoundError
from pillar.domain.common.types import generate_id, utcnow
from pillar.domain.tasks.recurrence import next_occurrence
from pillar.infra.db.models.task import TaskModel
from pillar.infra.db.repositories.notification_repo import NotificationRepository
from pillar.infra.db.repositories.task_repo import BoardRepository, TaskRepository

logger = logging.getLogger(__name__)


def _sorted_columns(board) -> list[dict]:
    if board is None or not board.columns:
        return []
    return sorted(board.columns, key=lambda column: column.get("order", 0))


class TaskActionService:
    """Snooze and complete, scoped to tasks the caller owns or is assigned to."""

    def __init__(self, session: AsyncSession, snooze_hours: int = 24):
        self.tasks = TaskRepository(session)
        self.boards = BoardRepository(session)
        self.notifications = NotificationRepository(session)
        self.snooze_hours = snooze_hours

    async def _require_task(self, task_id: str, user_id: str) -> TaskModel:
        task = await self.tasks.get_for_user(task_id, user_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    async def snooze(
        self,
        task_id: str,
        user_id: str,
        notification_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> datetime:
        """Push the task's reminder out by snooze_hours. Returns the new reminder instant."""
        await self._require_task(task_id, user_id)
        snoozed_until = (now or utcnow()) + timedelta(hours=self.snooze_hours)
        await self.tasks.set_reminder(task_id, snoozed_until)
        if notification_id:
            await self.notifications.mark_snoozed(notification_id, user_id, snoozed_until)
        logger.info("Task %s snoozed until %s by user %s", task_id, snoozed_until.isoformat(), user_id)
        return snoozed_until

    async def complete(
        self, task_id: str, user_id: str, now: Optional[datetime] = None
    ) -> tuple[TaskModel, Optional[TaskModel]]:
        """
        Mark the task done and move it to the board's last column.

        Returns (task, next_occurrence_task). An already completed task is returned
        unchanged; the second element is set only when a recurring task spawned its
        next occurrence.
        """
        task = await self._require_task(task_id, user_id)
        if task.completed_at is not None:
            return task, None

        now = now or utcnow()
        columns = _sorted_columns(await self.boards.get(task.board_id))
        done_column = columns[-1]["id"] if columns else task.column_id

        task.completed_at = now
        task.column_id = done_column
        task.reminder_at = None
        task.status_history = list(task.status_history or []) + [
            {"column_id": done_column, "timestamp": now.isoformat()}
        ]
        task.updated_at = now
        task = await self.tasks.add(task)

        following = next_occurrence(task.due_date, task.recurrence)
        if following is None or not columns:
            return task, None

        first_column = columns[0]["id"]
        clone = TaskModel(
            id=generate_id(),
            user_id=task.user_id,
            assignee_id=task.assignee_id,
            board_id=task.board_id,
            column_id=first_column,
            title=task.title,
            description=task.description,
            priority=task.priority,
            order=await self.tasks.count_in_column(task.board_id, first_column),
            due_date=following,
            recurrence=dict(task.recurrence),
            subtasks=[{"title": s.get("title"), "completed": False} for s in (task.subtasks or [])],
            labels=list(task.labels or []),
            status_history=[{"column_id": first_column, "timestamp": now.isoformat()}],
            created_at=now,
            updated_at=now,
        )
        clone = await self.tasks.add(clone)
        logger.info("Created next occurrence %s of recurring task %s due %s", clone.id, task.id, following.isoformat())
        return task, clone

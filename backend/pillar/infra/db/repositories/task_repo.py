"""Task and board access for the notification core.

Read queries return TaskView snapshots. reminder_at writes come in two flavours:
conditional ones used by the rule engine (clear only the value that fired, fill only
an empty slot) and the unconditional one used by snooze, so a user's snooze is never
overwritten by scheduled work.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pillar.domain.common.types import utcnow
from pillar.domain.notifications.models import TaskView
from pillar.infra.db.models.task import BoardModel, TaskModel


def _visible_to(user_id: str):
    return or_(TaskModel.user_id == user_id, TaskModel.assignee_id == user_id)


class TaskRepository:
    """Task repository."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _views(self, *conditions) -> List[TaskView]:
        result = await self.session.execute(
            select(TaskModel).where(*conditions).order_by(TaskModel.due_date.asc(), TaskModel.id)
        )
        return [TaskView.from_model(row) for row in result.scalars().all()]

    async def list_pending_reminders(self, user_id: str, now: datetime) -> List[TaskView]:
        """Incomplete tasks whose one-shot reminder_at has come due."""
        return await self._views(
            _visible_to(user_id),
            TaskModel.completed_at.is_(None),
            TaskModel.reminder_at.is_not(None),
            TaskModel.reminder_at <= now,
        )

    async def list_upcoming(self, user_id: str, now: datetime) -> List[TaskView]:
        """Incomplete tasks due now or later."""
        return await self._views(
            _visible_to(user_id),
            TaskModel.completed_at.is_(None),
            TaskModel.due_date.is_not(None),
            TaskModel.due_date >= now,
        )

    async def list_overdue(self, user_id: str, now: datetime) -> List[TaskView]:
        """Incomplete tasks whose due date is strictly in the past."""
        return await self._views(
            _visible_to(user_id),
            TaskModel.completed_at.is_(None),
            TaskModel.due_date.is_not(None),
            TaskModel.due_date < now,
        )

    async def list_due_between(self, user_id: str, start: datetime, end: datetime) -> List[TaskView]:
        """Incomplete tasks with start <= due_date < end."""
        return await self._views(
            _visible_to(user_id),
            TaskModel.completed_at.is_(None),
            TaskModel.due_date >= start,
            TaskModel.due_date < end,
        )

    async def get(self, task_id: str) -> Optional[TaskModel]:
        return await self.session.get(TaskModel, task_id)

    async def get_for_user(self, task_id: str, user_id: str) -> Optional[TaskModel]:
        """Task by id if the user owns it or is assigned to it."""
        result = await self.session.execute(
            select(TaskModel).where(TaskModel.id == task_id, _visible_to(user_id))
        )
        return result.scalar_one_or_none()

    async def clear_reminder(self, task_id: str, fired_at: datetime) -> bool:
        """Consume a fired one-shot reminder. No-op if reminder_at has changed since it fired."""
        result = await self.session.execute(
            update(TaskModel)
            .where(TaskModel.id == task_id, TaskModel.reminder_at == fired_at)
            .values(reminder_at=None, updated_at=utcnow())
        )
        await self.session.commit()
        return result.rowcount > 0

    async def set_reminder_if_empty(self, task_id: str, when: datetime) -> bool:
        """Schedule a reminder only into an empty slot; an existing value (e.g. a snooze) wins."""
        result = await self.session.execute(
            update(TaskModel)
            .where(
                TaskModel.id == task_id,
                TaskModel.reminder_at.is_(None),
                TaskModel.completed_at.is_(None),
            )
            .values(reminder_at=when, updated_at=utcnow())
        )
        await self.session.commit()
        return result.rowcount > 0

    async def set_reminder(self, task_id: str, when: datetime) -> bool:
        """Unconditional write (user intent)."""
        result = await self.session.execute(
            update(TaskModel).where(TaskModel.id == task_id).values(reminder_at=when, updated_at=utcnow())
        )
        await self.session.commit()
        return result.rowcount > 0

    async def add(self, task: TaskModel) -> TaskModel:
        self.session.add(task)
        await self.session.commit()
        await self.session.refresh(task)
        return task

    async def count_in_column(self, board_id: str, column_id: str) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(TaskModel).where(
                TaskModel.board_id == board_id,
                TaskModel.column_id == column_id,
            )
        )
        return result.scalar() or 0

    async def list_active_user_ids(self) -> List[str]:
        """Owners and assignees of incomplete tasks that have a due date or a pending reminder."""
        condition = (
            TaskModel.completed_at.is_(None),
            or_(TaskModel.due_date.is_not(None), TaskModel.reminder_at.is_not(None)),
        )
        owners = await self.session.execute(select(TaskModel.user_id).where(*condition).distinct())
        assignees = await self.session.execute(
            select(TaskModel.assignee_id).where(*condition, TaskModel.assignee_id.is_not(None)).distinct()
        )
        ids = {row[0] for row in owners.all()} | {row[0] for row in assignees.all()}
        return sorted(ids)


class BoardRepository:
    """Board repository (read-only here)."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, board_id: str) -> Optional[BoardModel]:
        return await self.session.get(BoardModel, board_id)

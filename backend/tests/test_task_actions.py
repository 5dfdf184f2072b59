"""Tests for snooze and complete."""
from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select

from conftest import OTHER_USER_ID, USER_ID
from pillar.domain.common.errors import NotFoundError
from pillar.infra.db.models import TaskModel
from pillar.infra.db.repositories.notification_repo import NotificationRepository
from pillar.services.task_actions import TaskActionService


@pytest.fixture
def actions(db_session):
    return TaskActionService(db_session)


async def _count_tasks(db_session, board_id):
    result = await db_session.execute(
        select(func.count()).select_from(TaskModel).where(TaskModel.board_id == board_id)
    )
    return result.scalar()


async def test_snooze_sets_reminder_a_day_out(actions, db_session, session_factory, make_task, reload_task, now):
    task = await make_task(due_date=now + timedelta(days=3), reminder_at=now - timedelta(minutes=1))
    notification = await NotificationRepository(db_session).create(
        USER_ID, "reminder", "Task reminder", '"Write report" needs your attention.', task_id=task.id
    )

    snoozed_until = await actions.snooze(task.id, USER_ID, notification.id, now=now)

    assert snoozed_until == now + timedelta(hours=24)
    assert (await reload_task(task.id)).reminder_at == snoozed_until
    async with session_factory() as session:
        stored = await NotificationRepository(session).get(notification.id, USER_ID)
    assert stored.read is True
    assert stored.snoozed_until == snoozed_until


async def test_snooze_hours_are_configurable(db_session, make_task, reload_task, now):
    task = await make_task(due_date=now + timedelta(days=3))

    snoozed_until = await TaskActionService(db_session, snooze_hours=2).snooze(task.id, USER_ID, now=now)

    assert snoozed_until == now + timedelta(hours=2)


async def test_assignee_can_snooze(actions, make_task, now):
    task = await make_task(due_date=now + timedelta(days=3), assignee_id=OTHER_USER_ID)

    assert await actions.snooze(task.id, OTHER_USER_ID, now=now) == now + timedelta(hours=24)


async def test_snooze_unknown_or_foreign_task(actions, make_task, now):
    task = await make_task()

    with pytest.raises(NotFoundError):
        await actions.snooze(task.id, "stranger", now=now)
    with pytest.raises(NotFoundError):
        await actions.snooze("missing", USER_ID, now=now)


async def test_complete_moves_task_to_last_column(actions, make_task, now):
    task = await make_task(due_date=now + timedelta(days=1), reminder_at=now + timedelta(hours=2))

    completed, following = await actions.complete(task.id, USER_ID, now=now)

    assert following is None
    assert completed.completed_at == now
    assert completed.column_id == "done"
    assert completed.reminder_at is None
    assert completed.status_history[-1] == {"column_id": "done", "timestamp": now.isoformat()}


async def test_complete_uses_highest_order_column(actions, make_board, make_task, now):
    board = await make_board(
        columns=[
            {"id": "shipped", "name": "Shipped", "order": 5},
            {"id": "backlog", "name": "Backlog", "order": 0},
            {"id": "review", "name": "Review", "order": 3},
        ]
    )
    task = await make_task(board_id=board.id, column_id="backlog")

    completed, _ = await actions.complete(task.id, USER_ID, now=now)

    assert completed.column_id == "shipped"


async def test_completing_recurring_task_creates_next_occurrence(actions, db_session, make_board, make_task, now):
    board = await make_board()
    await make_task(board_id=board.id, title="Already waiting")
    task = await make_task(
        board_id=board.id,
        column_id="doing",
        due_date=datetime(2026, 2, 16),
        reminder_at=datetime(2026, 2, 15, 9, 0),
        recurrence={"frequency": "weekly", "interval": 1},
        subtasks=[{"title": "Draft", "completed": True}, {"title": "Send", "completed": False}],
        labels=["finance"],
        priority="high",
    )

    completed, following = await actions.complete(task.id, USER_ID, now=now)

    assert completed.column_id == "done"
    assert following is not None
    assert following.id != task.id
    assert following.due_date == datetime(2026, 2, 23)
    assert following.column_id == "todo"
    assert following.order == 1
    assert following.completed_at is None
    assert following.reminder_at is None
    assert following.priority == "high"
    assert following.labels == ["finance"]
    assert following.recurrence == {"frequency": "weekly", "interval": 1}
    assert [s["completed"] for s in following.subtasks] == [False, False]
    assert following.status_history == [{"column_id": "todo", "timestamp": now.isoformat()}]
    assert await _count_tasks(db_session, board.id) == 3


async def test_recurrence_past_end_date_stops(actions, make_task, now):
    task = await make_task(
        due_date=datetime(2026, 2, 16),
        recurrence={"frequency": "daily", "interval": 1, "end_date": "2026-02-16T23:59:59Z"},
    )

    _, following = await actions.complete(task.id, USER_ID, now=now)

    assert following is None


async def test_complete_is_idempotent(actions, db_session, make_task, now):
    task = await make_task(due_date=datetime(2026, 2, 16), recurrence={"frequency": "daily"})

    first, following = await actions.complete(task.id, USER_ID, now=now)
    again, none = await actions.complete(task.id, USER_ID, now=now + timedelta(hours=1))

    assert following is not None
    assert none is None
    assert again.completed_at == now
    assert len(again.status_history) == 1
    assert await _count_tasks(db_session, task.board_id) == 2


async def test_complete_foreign_task(actions, make_task, now):
    task = await make_task()

    with pytest.raises(NotFoundError):
        await actions.complete(task.id, OTHER_USER_ID, now=now)

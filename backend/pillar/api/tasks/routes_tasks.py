"""Task action routes: snooze and complete."""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from pillar.api.deps import get_current_user_id, get_task_actions
from pillar.services.task_actions import TaskActionService

router = APIRouter()


class SnoozeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    notification_id: Optional[str] = Field(default=None, alias="notificationId")


class TaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    board_id: str
    column_id: str
    title: str
    priority: str
    due_date: Optional[datetime] = None
    reminder_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    recurrence: Optional[dict] = None
    subtasks: list = []
    status_history: list = []


class CompleteResponse(BaseModel):
    task: TaskResponse
    next_occurrence: Optional[TaskResponse] = None


@router.post("/{task_id}/snooze")
async def snooze_task(
    task_id: str,
    request: Optional[SnoozeRequest] = None,
    current_user_id: str = Depends(get_current_user_id),
    actions: TaskActionService = Depends(get_task_actions),
):
    """Remind again in 24 hours; optionally mark the notification that was acted on as read."""
    notification_id = request.notification_id if request else None
    snoozed_until = await actions.snooze(task_id, current_user_id, notification_id)
    return {"success": True, "snoozedUntil": snoozed_until.isoformat() + "Z"}


@router.post("/{task_id}/complete", response_model=CompleteResponse)
async def complete_task(
    task_id: str,
    current_user_id: str = Depends(get_current_user_id),
    actions: TaskActionService = Depends(get_task_actions),
):
    task, next_task = await actions.complete(task_id, current_user_id)
    return CompleteResponse(
        task=TaskResponse.model_validate(task),
        next_occurrence=TaskResponse.model_validate(next_task) if next_task else None,
    )

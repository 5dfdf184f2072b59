"""Notification inbox and on-demand evaluation routes."""
from datetime import datetime
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from pillar.api.deps import get_current_user_id, get_db, get_notification_runner
from pillar.domain.common.types import to_naive_utc
from pillar.infra.db.repositories.notification_repo import NotificationRepository
from pillar.services.notification_service import NotificationRunner

router = APIRouter()


class NotificationResponse(BaseModel):
    """Notification response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    type: str
    title: str
    message: str
    task_id: Optional[str] = None
    read: bool
    dismissed: bool
    scheduled_for: Optional[datetime] = None
    snoozed_until: Optional[datetime] = None
    metadata: dict[str, Any] = {}
    created_at: datetime
    timestamp: int  # ms since epoch for client compatibility


class NotificationUpdateRequest(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    read: Optional[bool] = None
    dismissed: Optional[bool] = None
    snoozed_until: Optional[datetime] = Field(default=None, alias="snoozedUntil")


def _to_response(model) -> NotificationResponse:
    return NotificationResponse(
        id=model.id,
        type=model.type,
        title=model.title,
        message=model.message,
        task_id=model.task_id,
        read=model.read,
        dismissed=model.dismissed,
        scheduled_for=model.scheduled_for,
        snoozed_until=model.snoozed_until,
        metadata=model.meta or {},
        created_at=model.created_at,
        timestamp=int(model.created_at.timestamp() * 1000) if model.created_at else 0,
    )


@router.post("/check-due-dates")
async def check_due_dates(
    current_user_id: str = Depends(get_current_user_id),
    runner: NotificationRunner = Depends(get_notification_runner),
):
    """Run one evaluation cycle for the calling user and return what was created."""
    result = await runner.run_for_user(current_user_id)
    return result.as_counts()


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    limit: int = Query(50, ge=1, le=100),
    unread_only: bool = False,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """List the caller's notifications, newest first. Dismissed ones are hidden."""
    repo = NotificationRepository(db)
    models = await repo.list_by_user(current_user_id, limit=limit, unread_only=unread_only)
    return [_to_response(m) for m in models]


@router.get("/unread-count")
async def get_unread_count(
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Return unread notification count for the current user."""
    repo = NotificationRepository(db)
    count = await repo.count_unread(current_user_id)
    return {"unread": count}


@router.post("/read-all")
async def mark_all_notifications_read(
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Mark all notifications as read for the current user."""
    repo = NotificationRepository(db)
    count = await repo.mark_all_read(current_user_id)
    return {"ok": True, "updated": count}


@router.get("/{notification_id}", response_model=NotificationResponse)
async def get_notification(
    notification_id: str,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    repo = NotificationRepository(db)
    model = await repo.get(notification_id, current_user_id)
    if model is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return _to_response(model)


@router.patch("/{notification_id}", response_model=NotificationResponse)
async def update_notification(
    notification_id: str,
    request: NotificationUpdateRequest,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Mark read, dismiss or snooze a notification."""
    values = request.model_dump(exclude_unset=True)
    if "snoozed_until" in values:
        values["snoozed_until"] = to_naive_utc(values["snoozed_until"])
    repo = NotificationRepository(db)
    model = await repo.update_fields(notification_id, current_user_id, values)
    if model is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return _to_response(model)


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Delete a notification for the current user."""
    repo = NotificationRepository(db)
    deleted = await repo.delete_for_user(notification_id, current_user_id)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return {"ok": True}

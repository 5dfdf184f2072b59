"""Notification repository."""
from datetime import datetime, timedelta
from typing import Any, List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pillar.domain.common.types import generate_id, utcnow
from pillar.domain.notifications.models import NotificationType
from pillar.infra.db.models.notification import NotificationModel

# Daily summaries are deduplicated by local date; any stamp for "today" in any
# timezone was created within the last 36 hours.
SUMMARY_LOOKBACK = timedelta(hours=36)


class NotificationRepository:
    """Notification repository."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        user_id: str,
        notification_type: str,
        title: str,
        message: str,
        *,
        task_id: Optional[str] = None,
        scheduled_for: Optional[datetime] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> NotificationModel:
        """Insert and commit one notification. On failure the session is rolled back and the error re-raised."""
        now = utcnow()
        model = NotificationModel(
            id=generate_id(),
            user_id=user_id,
            task_id=task_id,
            type=notification_type,
            title=title[:200],
            message=message[:500],
            read=False,
            dismissed=False,
            scheduled_for=scheduled_for,
            meta=metadata,
            created_at=now,
            updated_at=now,
        )
        self.session.add(model)
        try:
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        await self.session.refresh(model)
        return model

    async def exists_for_task(
        self,
        task_id: str,
        user_id: str,
        notification_type: str,
        *,
        include_dismissed: bool = True,
    ) -> bool:
        q = select(NotificationModel.id).where(
            NotificationModel.task_id == task_id,
            NotificationModel.user_id == user_id,
            NotificationModel.type == notification_type,
        )
        if not include_dismissed:
            q = q.where(NotificationModel.dismissed.is_(False))
        result = await self.session.execute(q.limit(1))
        return result.first() is not None

    async def summary_dates(self, user_id: str, now: datetime) -> set[str]:
        """summaryDate stamps of this user's recent daily summaries."""
        result = await self.session.execute(
            select(NotificationModel.meta).where(
                NotificationModel.user_id == user_id,
                NotificationModel.type == NotificationType.DAILY_SUMMARY.value,
                NotificationModel.created_at >= now - SUMMARY_LOOKBACK,
            )
        )
        dates = set()
        for (meta,) in result.all():
            if isinstance(meta, dict) and meta.get("summaryDate"):
                dates.add(meta["summaryDate"])
        return dates

    async def list_by_user(
        self,
        user_id: str,
        limit: int = 50,
        unread_only: bool = False,
        include_dismissed: bool = False,
    ) -> List[NotificationModel]:
        """List notifications for a user, newest first."""
        q = select(NotificationModel).where(NotificationModel.user_id == user_id)
        if unread_only:
            q = q.where(NotificationModel.read.is_(False))
        if not include_dismissed:
            q = q.where(NotificationModel.dismissed.is_(False))
        q = q.order_by(NotificationModel.created_at.desc()).limit(limit)
        result = await self.session.execute(q)
        return list(result.scalars().all())

    async def count_unread(self, user_id: str) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(NotificationModel).where(
                NotificationModel.user_id == user_id,
                NotificationModel.read.is_(False),
                NotificationModel.dismissed.is_(False),
            )
        )
        return result.scalar() or 0

    async def get(self, notification_id: str, user_id: str) -> Optional[NotificationModel]:
        """Get a notification by ID if it belongs to the user."""
        result = await self.session.execute(
            select(NotificationModel).where(
                NotificationModel.id == notification_id,
                NotificationModel.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def update_fields(
        self, notification_id: str, user_id: str, values: dict[str, Any]
    ) -> Optional[NotificationModel]:
        """Apply a partial update (read, dismissed, snoozed_until). Returns the row or None if not found."""
        model = await self.get(notification_id, user_id)
        if model is None:
            return None
        for key, value in values.items():
            setattr(model, key, value)
        model.updated_at = utcnow()
        await self.session.commit()
        await self.session.refresh(model)
        return model

    async def mark_snoozed(self, notification_id: str, user_id: str, snoozed_until: datetime) -> bool:
        result = await self.session.execute(
            update(NotificationModel)
            .where(
                NotificationModel.id == notification_id,
                NotificationModel.user_id == user_id,
            )
            .values(read=True, snoozed_until=snoozed_until, updated_at=utcnow())
        )
        await self.session.commit()
        return result.rowcount > 0

    async def mark_all_read(self, user_id: str) -> int:
        result = await self.session.execute(
            update(NotificationModel)
            .where(NotificationModel.user_id == user_id, NotificationModel.read.is_(False))
            .values(read=True, updated_at=utcnow())
        )
        await self.session.commit()
        return result.rowcount or 0

    async def delete_for_user(self, notification_id: str, user_id: str) -> bool:
        result = await self.session.execute(
            delete(NotificationModel).where(
                NotificationModel.id == notification_id,
                NotificationModel.user_id == user_id,
            )
        )
        await self.session.commit()
        return result.rowcount > 0

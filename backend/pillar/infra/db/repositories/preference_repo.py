"""Notification preference repository."""
import logging
from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pillar.domain.common.types import generate_id, utcnow
from pillar.infra.db.models.notification import NotificationPreferenceModel

logger = logging.getLogger(__name__)


class PreferenceRepository:
    """Preference store: one row per user, created lazily with defaults."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_user(self, user_id: str) -> Optional[NotificationPreferenceModel]:
        result = await self.session.execute(
            select(NotificationPreferenceModel).where(NotificationPreferenceModel.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_or_create(self, user_id: str) -> NotificationPreferenceModel:
        """Return the user's preferences, inserting the defaults on first use."""
        existing = await self.get_by_user(user_id)
        if existing is not None:
            return existing
        now = utcnow()
        model = NotificationPreferenceModel(
            id=generate_id(),
            user_id=user_id,
            created_at=now,
            updated_at=now,
        )
        self.session.add(model)
        try:
            await self.session.commit()
        except IntegrityError:
            # Unique user_id: a concurrent evaluation or request created it first
            await self.session.rollback()
            existing = await self.get_by_user(user_id)
            if existing is None:
                raise
            return existing
        await self.session.refresh(model)
        logger.info("Created default notification preferences for user %s", user_id)
        return model

    async def update(self, user_id: str, values: dict[str, Any]) -> NotificationPreferenceModel:
        """Partial update; creates the record first when missing."""
        model = await self.get_or_create(user_id)
        for key, value in values.items():
            setattr(model, key, value)
        model.updated_at = utcnow()
        await self.session.commit()
        await self.session.refresh(model)
        return model

    async def apply_detected_timezone(self, user_id: str, tz_name: str) -> tuple[NotificationPreferenceModel, bool]:
        """Store a client-detected timezone once. Returns (prefs, applied)."""
        model = await self.get_or_create(user_id)
        if model.timezone_detected:
            return model, False
        model.timezone = tz_name
        model.timezone_detected = True
        model.updated_at = utcnow()
        await self.session.commit()
        await self.session.refresh(model)
        return model, True

    async def list_user_ids(self) -> List[str]:
        result = await self.session.execute(select(NotificationPreferenceModel.user_id))
        return [row[0] for row in result.all()]

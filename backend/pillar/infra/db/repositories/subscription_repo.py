"""Push subscription repository (web endpoints and native device tokens)."""
from typing import List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pillar.domain.common.types import generate_id, utcnow
from pillar.infra.db.models.push_subscription import PushSubscriptionModel


class SubscriptionRepository:
    """Subscription registry."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_by(self, column, value: str) -> Optional[PushSubscriptionModel]:
        result = await self.session.execute(select(PushSubscriptionModel).where(column == value))
        return result.scalar_one_or_none()

    async def upsert_web(
        self,
        user_id: str,
        endpoint: str,
        p256dh: str,
        auth: str,
        user_agent: Optional[str] = None,
    ) -> PushSubscriptionModel:
        """Insert or update by endpoint. A re-registered endpoint moves to the calling user."""
        row = await self._get_by(PushSubscriptionModel.endpoint, endpoint)
        now = utcnow()
        if row is None:
            row = PushSubscriptionModel(id=generate_id(), endpoint=endpoint, created_at=now)
            self.session.add(row)
        row.user_id = user_id
        row.platform = "web"
        row.p256dh = p256dh
        row.auth = auth
        row.user_agent = user_agent
        row.updated_at = now
        await self.session.commit()
        await self.session.refresh(row)
        return row

    async def upsert_native(
        self,
        user_id: str,
        platform: str,
        device_token: str,
        user_agent: Optional[str] = None,
    ) -> PushSubscriptionModel:
        """Insert or update by device token (one row per device)."""
        row = await self._get_by(PushSubscriptionModel.device_token, device_token)
        now = utcnow()
        if row is None:
            row = PushSubscriptionModel(id=generate_id(), device_token=device_token, created_at=now)
            self.session.add(row)
        row.user_id = user_id
        row.platform = platform
        row.user_agent = user_agent
        row.updated_at = now
        await self.session.commit()
        await self.session.refresh(row)
        return row

    async def list_by_user(self, user_id: str) -> List[PushSubscriptionModel]:
        result = await self.session.execute(
            select(PushSubscriptionModel).where(PushSubscriptionModel.user_id == user_id)
        )
        return list(result.scalars().all())

    async def count_by_user(self, user_id: str) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(PushSubscriptionModel).where(
                PushSubscriptionModel.user_id == user_id
            )
        )
        return result.scalar() or 0

    async def delete_many(self, subscription_ids: List[str]) -> int:
        """Delete by id; already-deleted ids are ignored."""
        if not subscription_ids:
            return 0
        result = await self.session.execute(
            delete(PushSubscriptionModel).where(PushSubscriptionModel.id.in_(subscription_ids))
        )
        await self.session.commit()
        return result.rowcount or 0

    async def delete_by_endpoint(self, user_id: str, endpoint: str) -> bool:
        result = await self.session.execute(
            delete(PushSubscriptionModel).where(
                PushSubscriptionModel.user_id == user_id,
                PushSubscriptionModel.endpoint == endpoint,
            )
        )
        await self.session.commit()
        return result.rowcount > 0

    async def delete_by_device_token(self, user_id: str, device_token: str) -> bool:
        result = await self.session.execute(
            delete(PushSubscriptionModel).where(
                PushSubscriptionModel.user_id == user_id,
                PushSubscriptionModel.device_token == device_token,
            )
        )
        await self.session.commit()
        return result.rowcount > 0

"""Push subscription database model (web push endpoints and native device tokens)."""
from sqlalchemy import Column, String, DateTime

from pillar.domain.common.types import utcnow
from pillar.infra.db.base import Base


class PushSubscriptionModel(Base):
    """One delivery endpoint. Web rows carry endpoint + keys; native rows carry device_token."""

    __tablename__ = "push_subscriptions"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    platform = Column(String, nullable=False, default="web")  # web, android, ios
    endpoint = Column(String(1024), nullable=True, unique=True)
    p256dh = Column(String, nullable=True)
    auth = Column(String, nullable=True)
    device_token = Column(String, nullable=True, unique=True)
    user_agent = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def is_native(self) -> bool:
        return self.platform in ("android", "ios")

"""Forwards newly created notifications to live clients over Redis pub/sub."""
import logging
from typing import Any

from pillar.infra.messaging.redis_bus import RedisBus

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "notifications"


def user_channel(user_id: str) -> str:
    return f"{CHANNEL_PREFIX}:{user_id}"


class LiveUpdateNotifier:
    """Publishes one notification.new event per created notification."""

    def __init__(self, bus: RedisBus):
        self.bus = bus

    async def publish_created(self, user_id: str, created: list[dict[str, Any]]) -> int:
        channel = user_channel(user_id)
        published = 0
        for notification in created:
            await self.bus.publish(channel, {"type": "notification.new", "payload": notification})
            published += 1
        logger.debug("Published %s live updates on %s", published, channel)
        return published

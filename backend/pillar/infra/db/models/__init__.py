"""Database models."""
from pillar.infra.db.models.task import BoardModel, TaskModel
from pillar.infra.db.models.notification import NotificationModel, NotificationPreferenceModel
from pillar.infra.db.models.push_subscription import PushSubscriptionModel

__all__ = [
    "BoardModel",
    "TaskModel",
    "NotificationModel",
    "NotificationPreferenceModel",
    "PushSubscriptionModel",
]

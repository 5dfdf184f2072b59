"""Notifications API."""
from fastapi import APIRouter

from pillar.api.notifications import routes_notifications, routes_preferences

router = APIRouter()

# Preferences first: their fixed paths must win over /notifications/{notification_id}
router.include_router(routes_preferences.router, prefix="/notifications/preferences", tags=["notifications"])
router.include_router(routes_notifications.router, prefix="/notifications", tags=["notifications"])

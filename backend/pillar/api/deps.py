"""API dependencies."""
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pillar.infra.db.session import get_db, get_session_factory
from pillar.infra.messaging.redis_bus import redis_bus
from pillar.infra.security.jwt import decode_token
from pillar.services.delivery_service import DeliveryDispatcher
from pillar.services.live_updates import LiveUpdateNotifier
from pillar.services.notification_service import NotificationRunner
from pillar.services.task_actions import TaskActionService
from pillar.settings import settings

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/v1/auth/login")

__all__ = [
    "get_current_user_id",
    "get_db",
    "get_dispatcher",
    "get_notification_runner",
    "get_session_factory",
    "get_task_actions",
]


async def get_current_user_id(token: str = Depends(oauth2_scheme)) -> str:
    """Id of the authenticated caller, from the bearer token's sub claim."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_token(token)
    if payload is None:
        raise credentials_exception

    user_id = payload.get("sub")
    token_type = payload.get("type", "access")
    if not user_id or token_type != "access":
        raise credentials_exception
    return str(user_id)


def get_live_update_notifier():
    """Redis notifier when live updates are enabled, else None."""
    if not settings.live_updates_enabled:
        return None
    return LiveUpdateNotifier(redis_bus)


def get_notification_runner(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> NotificationRunner:
    return NotificationRunner(session_factory, notifier=get_live_update_notifier())


def get_dispatcher(db: AsyncSession = Depends(get_db)) -> DeliveryDispatcher:
    return DeliveryDispatcher.from_settings(db)


def get_task_actions(db: AsyncSession = Depends(get_db)) -> TaskActionService:
    return TaskActionService(db, snooze_hours=settings.snooze_hours)

"""Cron-invoked sweep over all users."""
import hmac
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status

from pillar.api.deps import get_notification_runner
from pillar.services.notification_service import NotificationRunner
from pillar.settings import settings

router = APIRouter()


def require_cron_secret(x_cron_secret: Optional[str] = Header(default=None)) -> None:
    """Shared-secret check. The endpoint is disabled while no secret is configured."""
    expected = settings.cron_secret
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Sweep endpoint is disabled (no cron secret configured)",
        )
    if not x_cron_secret or not hmac.compare_digest(x_cron_secret.encode(), expected.encode()):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid cron secret")


@router.post("/sweep", dependencies=[Depends(require_cron_secret)])
async def sweep(runner: NotificationRunner = Depends(get_notification_runner)):
    """Evaluate every user with pending work."""
    result = await runner.run_sweep()
    return {
        "notificationsCreated": result.total,
        "reminders": result.reminders,
        "overdue": result.overdue,
        "dailySummaries": result.daily_summaries,
        "users": result.users,
    }

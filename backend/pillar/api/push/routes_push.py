"""Push subscription routes: register/unregister endpoints, VAPID key, test send."""
import time
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from pillar.api.deps import get_current_user_id, get_db, get_dispatcher
from pillar.domain.notifications.models import TAG_PREFIX, DeliveryPayload
from pillar.infra.db.repositories.subscription_repo import SubscriptionRepository
from pillar.services.delivery_service import DeliveryDispatcher
from pillar.settings import settings

router = APIRouter()


class SubscriptionKeys(BaseModel):
    p256dh: str = Field(min_length=1)
    auth: str = Field(min_length=1)


class SubscribeRequest(BaseModel):
    """Web shape (endpoint + keys, as PushSubscription.toJSON() produces) or native shape (deviceToken)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    platform: Literal["web", "android", "ios"] = "web"
    endpoint: Optional[str] = None
    keys: Optional[SubscriptionKeys] = None
    device_token: Optional[str] = Field(default=None, alias="deviceToken")
    user_agent: Optional[str] = Field(default=None, alias="userAgent")

    @model_validator(mode="after")
    def _check_shape(self) -> "SubscribeRequest":
        if self.platform == "web":
            if not self.endpoint or not self.endpoint.startswith("https://"):
                raise ValueError("web subscriptions need an https endpoint")
            if self.keys is None:
                raise ValueError("web subscriptions need p256dh and auth keys")
        elif not self.device_token:
            raise ValueError("native subscriptions need a deviceToken")
        return self


class UnsubscribeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    endpoint: Optional[str] = None
    device_token: Optional[str] = Field(default=None, alias="deviceToken")

    @model_validator(mode="after")
    def _check_target(self) -> "UnsubscribeRequest":
        if not self.endpoint and not self.device_token:
            raise ValueError("endpoint or deviceToken is required")
        return self


class SubscriptionResponse(BaseModel):
    id: str
    platform: str
    endpoint: Optional[str] = None
    device_token: Optional[str] = None
    created_at: str


@router.post("/subscribe", status_code=status.HTTP_201_CREATED, response_model=SubscriptionResponse)
async def subscribe(
    request: SubscribeRequest,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Register (or re-register) a delivery endpoint for the caller."""
    repo = SubscriptionRepository(db)
    if request.platform == "web":
        sub = await repo.upsert_web(
            current_user_id,
            request.endpoint,
            request.keys.p256dh,
            request.keys.auth,
            user_agent=request.user_agent,
        )
    else:
        sub = await repo.upsert_native(
            current_user_id,
            request.platform,
            request.device_token,
            user_agent=request.user_agent,
        )
    return SubscriptionResponse(
        id=sub.id,
        platform=sub.platform,
        endpoint=sub.endpoint,
        device_token=sub.device_token,
        created_at=sub.created_at.isoformat(),
    )


@router.delete("/subscribe")
async def unsubscribe(
    request: UnsubscribeRequest,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    repo = SubscriptionRepository(db)
    if request.endpoint:
        removed = await repo.delete_by_endpoint(current_user_id, request.endpoint)
    else:
        removed = await repo.delete_by_device_token(current_user_id, request.device_token)
    return {"ok": True, "removed": removed}


@router.get("/vapid-public-key")
async def vapid_public_key():
    """Public application server key the browser needs to subscribe."""
    if not settings.web_push_configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Web push is not configured on this server (VAPID keys missing)",
        )
    return {"publicKey": settings.vapid_public_key}


@router.post("/test")
async def send_test_push(
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    dispatcher: DeliveryDispatcher = Depends(get_dispatcher),
):
    """Send a test notification to every endpoint the caller has registered."""
    if not dispatcher.is_configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Push notifications are not configured on this server",
        )
    total = await SubscriptionRepository(db).count_by_user(current_user_id)
    if total == 0:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No push subscriptions found. Enable push notifications first.",
        )
    sent = await dispatcher.deliver(
        current_user_id,
        DeliveryPayload(
            title="Test Push Notification",
            message="Your push notification pipeline is working end-to-end!",
            tag=f"{TAG_PREFIX}-test-{int(time.time() * 1000)}",
            url="/",
        ),
    )
    return {"sent": sent, "total": total}

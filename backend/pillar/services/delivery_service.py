"""
Delivery dispatcher: fans one payload out to every push subscription a user has.

Web (VAPID) and native (FCM) sends run concurrently, each isolated from the others and
bounded by its own timeout. Subscriptions the channel reports as permanently invalid are
pruned once the fan-out has finished; transient failures leave them in place.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from pillar.domain.common.errors import PushDeliveryError, PushGoneError
from pillar.domain.notifications.models import DeliveryPayload
from pillar.infra.db.repositories.subscription_repo import SubscriptionRepository
from pillar.infra.push.fcm import FcmSender
from pillar.infra.push.web_push import WebPushSender
from pillar.settings import settings

logger = logging.getLogger(__name__)


class SendOutcome(str, Enum):
    SENT = "sent"
    GONE = "gone"
    FAILED = "failed"


@dataclass(frozen=True)
class PushTarget:
    """Detached copy of a subscription row, safe to hand to a worker thread."""

    id: str
    platform: str
    endpoint: Optional[str] = None
    p256dh: Optional[str] = None
    auth: Optional[str] = None
    device_token: Optional[str] = None

    @classmethod
    def from_model(cls, model: Any) -> "PushTarget":
        return cls(
            id=model.id,
            platform=model.platform,
            endpoint=model.endpoint,
            p256dh=model.p256dh,
            auth=model.auth,
            device_token=model.device_token,
        )

    @property
    def is_native(self) -> bool:
        return self.platform in ("android", "ios")

    @property
    def label(self) -> str:
        return (self.device_token or self.endpoint or self.id)[:40]


def build_senders() -> tuple[Optional[WebPushSender], Optional[FcmSender]]:
    """Channel senders for the current settings; None for a channel that is not configured."""
    web = None
    if settings.web_push_configured:
        web = WebPushSender(
            settings.vapid_private_key,
            settings.vapid_subject,
            ttl=settings.push_ttl_seconds,
            timeout=settings.push_send_timeout_seconds,
        )
    native = None
    if settings.native_push_configured:
        native = FcmSender(settings.firebase_credentials_path, settings.firebase_service_account_base64)
    return web, native


class DeliveryDispatcher:
    """Per-session dispatcher. deliver() returns the number of endpoints reached."""

    def __init__(
        self,
        session: AsyncSession,
        web_sender: Optional[WebPushSender] = None,
        native_sender: Optional[FcmSender] = None,
        *,
        send_timeout: float = 10.0,
    ):
        self.subscriptions = SubscriptionRepository(session)
        self.web_sender = web_sender
        self.native_sender = native_sender
        self.send_timeout = send_timeout

    @classmethod
    def from_settings(cls, session: AsyncSession) -> "DeliveryDispatcher":
        web, native = build_senders()
        return cls(session, web, native, send_timeout=settings.push_send_timeout_seconds)

    @property
    def is_configured(self) -> bool:
        return self.web_sender is not None or self.native_sender is not None

    async def deliver(self, user_id: str, payload: DeliveryPayload) -> int:
        """Send payload to all of the user's subscriptions; prune the ones reported gone."""
        if not self.is_configured:
            return 0

        rows = await self.subscriptions.list_by_user(user_id)
        targets = []
        skipped = 0
        for row in rows:
            target = PushTarget.from_model(row)
            sender = self.native_sender if target.is_native else self.web_sender
            if sender is None:
                skipped += 1
                continue
            targets.append(target)
        if skipped:
            logger.debug("Skipped %s subscriptions on unconfigured channels for user %s", skipped, user_id)
        if not targets:
            return 0

        wire = payload.to_wire()
        outcomes = await asyncio.gather(*(self._send_one(target, wire) for target in targets))

        sent = sum(1 for outcome in outcomes if outcome is SendOutcome.SENT)
        gone = [target.id for target, outcome in zip(targets, outcomes) if outcome is SendOutcome.GONE]
        failed = sum(1 for outcome in outcomes if outcome is SendOutcome.FAILED)

        if gone:
            removed = await self.subscriptions.delete_many(gone)
            logger.info("Pruned %s invalid push subscriptions for user %s", removed, user_id)
        if gone or failed:
            logger.info(
                "Push delivery for user %s: %s sent, %s failed, %s removed (of %s)",
                user_id,
                sent,
                failed,
                len(gone),
                len(targets),
            )
        return sent

    async def _send_one(self, target: PushTarget, wire: dict[str, Any]) -> SendOutcome:
        try:
            if target.is_native:
                call = asyncio.to_thread(self.native_sender.send, target.device_token, wire)
            else:
                call = asyncio.to_thread(
                    self.web_sender.send, target.endpoint, target.p256dh, target.auth, wire
                )
            await asyncio.wait_for(call, timeout=self.send_timeout)
            return SendOutcome.SENT
        except PushGoneError as e:
            logger.info("Push target %s... is gone (%s)", target.label, e.reason)
            return SendOutcome.GONE
        except asyncio.TimeoutError:
            logger.warning("Push send to %s... timed out after %ss", target.label, self.send_timeout)
            return SendOutcome.FAILED
        except PushDeliveryError as e:
            logger.warning("Push send to %s... failed: %s", target.label, e)
            return SendOutcome.FAILED
        except Exception as e:
            logger.warning("Push send to %s... failed unexpectedly: %s", target.label, e)
            return SendOutcome.FAILED

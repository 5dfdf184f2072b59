"""Web push sender (VAPID) via pywebpush."""
import json
import logging
from typing import Any

from pywebpush import WebPushException, webpush

from pillar.domain.common.errors import PushDeliveryError, PushGoneError

logger = logging.getLogger(__name__)

# Push services answer 404/410 once a browser subscription has expired or been revoked
GONE_STATUS_CODES = (404, 410)


class WebPushSender:
    """Blocking sender; the dispatcher runs send() in a worker thread."""

    def __init__(
        self,
        vapid_private_key: str,
        vapid_subject: str,
        *,
        ttl: int = 86400,
        timeout: float = 10.0,
    ):
        self.vapid_private_key = vapid_private_key
        self.vapid_subject = vapid_subject
        self.ttl = ttl
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.vapid_private_key and self.vapid_subject)

    def send(self, endpoint: str, p256dh: str, auth: str, payload: dict[str, Any]) -> None:
        """
        Send one payload to one browser subscription.

        Raises:
            PushGoneError: the push service reported the subscription gone (404/410).
            PushDeliveryError: any other failure; the subscription should be kept.
        """
        subscription_info = {"endpoint": endpoint, "keys": {"p256dh": p256dh, "auth": auth}}
        try:
            webpush(
                subscription_info=subscription_info,
                data=json.dumps(payload),
                vapid_private_key=self.vapid_private_key,
                # webpush() adds aud/exp to the claims dict it is given
                vapid_claims={"sub": self.vapid_subject},
                ttl=self.ttl,
                timeout=self.timeout,
                headers={"Urgency": "high"},
            )
        except WebPushException as e:
            response = getattr(e, "response", None)
            status_code = getattr(response, "status_code", None)
            if status_code in GONE_STATUS_CODES:
                raise PushGoneError(endpoint, f"HTTP {status_code}") from e
            raise PushDeliveryError(str(e)) from e
        except Exception as e:
            raise PushDeliveryError(str(e)) from e
        logger.debug("Web push sent to %s...", endpoint[:40])

"""Native push sender via FCM (Firebase Cloud Messaging)."""
import base64
import json
import logging
import os
from typing import Any, Optional

import firebase_admin
from firebase_admin import credentials, exceptions, messaging

from pillar.domain.common.errors import PushDeliveryError, PushGoneError

logger = logging.getLogger(__name__)

ANDROID_CHANNEL_ID = "pillar-default"

_firebase_app = None


def _load_credentials(credentials_path: str, service_account_base64: str):
    if service_account_base64:
        info = json.loads(base64.b64decode(service_account_base64).decode("utf-8"))
        return credentials.Certificate(info)
    cred_path = credentials_path or os.environ.get("GOOGLE_APPLICATION_CREDENTIALS", "")
    if not cred_path:
        return None
    return credentials.Certificate(cred_path)


def get_firebase_app(credentials_path: str = "", service_account_base64: str = ""):
    """Lazy-init the Firebase default app. Returns None if no credentials or init fails."""
    global _firebase_app
    if _firebase_app is not None:
        return _firebase_app
    try:
        cred = _load_credentials(credentials_path, service_account_base64)
        if cred is None:
            logger.debug("Native push disabled: no Firebase credentials")
            return None
        _firebase_app = firebase_admin.initialize_app(cred)
        return _firebase_app
    except Exception as e:
        logger.warning("Firebase init failed (native push disabled): %s", e)
        return None


def is_invalid_token_error(error: Exception) -> bool:
    """Whether FCM rejected the token itself (uninstalled app, rotated token, wrong project)."""
    if isinstance(error, (messaging.UnregisteredError, messaging.SenderIdMismatchError)):
        return True
    if isinstance(error, exceptions.InvalidArgumentError):
        return "registration token" in str(error).lower()
    return False


def build_message(token: str, payload: dict[str, Any]) -> messaging.Message:
    """FCM message; data values must be strings, so nested values are JSON-encoded."""
    data = {}
    for key, value in payload.items():
        if key in ("title", "message"):
            continue
        data[key] = value if isinstance(value, str) else json.dumps(value)
    return messaging.Message(
        notification=messaging.Notification(title=payload.get("title"), body=payload.get("message")),
        data=data,
        token=token,
        android=messaging.AndroidConfig(
            priority="high",
            notification=messaging.AndroidNotification(
                channel_id=ANDROID_CHANNEL_ID,
                tag=payload.get("tag"),
            ),
        ),
        apns=messaging.APNSConfig(
            payload=messaging.APNSPayload(aps=messaging.Aps(sound="default")),
        ),
    )


class FcmSender:
    """Blocking sender; the dispatcher runs send() in a worker thread."""

    def __init__(self, credentials_path: str = "", service_account_base64: str = ""):
        self.credentials_path = credentials_path
        self.service_account_base64 = service_account_base64

    @property
    def is_configured(self) -> bool:
        return bool(self.credentials_path or self.service_account_base64)

    def _app(self) -> Optional[Any]:
        return get_firebase_app(self.credentials_path, self.service_account_base64)

    def send(self, token: str, payload: dict[str, Any]) -> None:
        """
        Send one payload to one device.

        Raises:
            PushGoneError: FCM reported the token unregistered or invalid.
            PushDeliveryError: any other failure, including missing Firebase initialisation.
        """
        app = self._app()
        if app is None:
            raise PushDeliveryError("Firebase is not initialised")
        try:
            messaging.send(build_message(token, payload), app=app)
        except Exception as e:
            if is_invalid_token_error(e):
                raise PushGoneError(token, type(e).__name__) from e
            raise PushDeliveryError(str(e)) from e
        logger.debug("Native push sent to token %s...", token[:20])

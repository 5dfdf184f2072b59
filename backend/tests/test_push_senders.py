"""Tests for the web push and FCM channel senders."""
import json
from unittest.mock import Mock, patch

import pytest
from firebase_admin import exceptions, messaging
from pywebpush import WebPushException

from pillar.domain.common.errors import PushDeliveryError, PushGoneError
from pillar.infra.push import fcm
from pillar.infra.push.fcm import FcmSender, build_message, is_invalid_token_error
from pillar.infra.push.web_push import WebPushSender

ENDPOINT = "https://fcm.googleapis.com/fcm/send/abc123"
PAYLOAD = {
    "title": "Task reminder",
    "message": '"Write report" needs your attention.',
    "tag": "pillar-n-1",
    "url": "/boards/b-1",
    "actions": [{"action": "complete", "title": "Mark Complete"}],
}


@pytest.fixture
def web_sender():
    return WebPushSender("private-key", "mailto:ops@example.com", ttl=3600, timeout=5.0)


def test_web_push_send_passes_vapid_details(web_sender):
    with patch("pillar.infra.push.web_push.webpush") as webpush:
        web_sender.send(ENDPOINT, "p256dh-key", "auth-key", PAYLOAD)

    kwargs = webpush.call_args.kwargs
    assert kwargs["subscription_info"] == {"endpoint": ENDPOINT, "keys": {"p256dh": "p256dh-key", "auth": "auth-key"}}
    assert json.loads(kwargs["data"]) == PAYLOAD
    assert kwargs["vapid_private_key"] == "private-key"
    assert kwargs["vapid_claims"] == {"sub": "mailto:ops@example.com"}
    assert kwargs["ttl"] == 3600


@pytest.mark.parametrize("status_code", [404, 410])
def test_web_push_expired_subscription_is_gone(web_sender, status_code):
    error = WebPushException("Push failed", response=Mock(status_code=status_code))
    with patch("pillar.infra.push.web_push.webpush", side_effect=error):
        with pytest.raises(PushGoneError) as excinfo:
            web_sender.send(ENDPOINT, "p256dh-key", "auth-key", PAYLOAD)
    assert excinfo.value.reason == f"HTTP {status_code}"


def test_web_push_server_error_is_transient(web_sender):
    error = WebPushException("Push failed", response=Mock(status_code=500))
    with patch("pillar.infra.push.web_push.webpush", side_effect=error):
        with pytest.raises(PushDeliveryError) as excinfo:
            web_sender.send(ENDPOINT, "p256dh-key", "auth-key", PAYLOAD)
    assert not isinstance(excinfo.value, PushGoneError)


def test_web_push_network_error_is_transient(web_sender):
    with patch("pillar.infra.push.web_push.webpush", side_effect=ConnectionError("reset")):
        with pytest.raises(PushDeliveryError):
            web_sender.send(ENDPOINT, "p256dh-key", "auth-key", PAYLOAD)


def test_web_sender_configuration():
    assert WebPushSender("key", "mailto:ops@example.com").is_configured
    assert not WebPushSender("", "mailto:ops@example.com").is_configured


def test_invalid_token_errors():
    assert is_invalid_token_error(messaging.UnregisteredError("Requested entity was not found."))
    assert is_invalid_token_error(messaging.SenderIdMismatchError("Sender mismatch"))
    assert is_invalid_token_error(
        exceptions.InvalidArgumentError("The registration token is not a valid FCM registration token")
    )
    assert not is_invalid_token_error(exceptions.InvalidArgumentError("Message body too large"))
    assert not is_invalid_token_error(exceptions.UnavailableError("Service unavailable"))
    assert not is_invalid_token_error(ValueError("boom"))


def test_build_message_stringifies_data():
    message = build_message("device-token", {**PAYLOAD, "notificationId": "n-1"})

    assert message.token == "device-token"
    assert message.notification.title == "Task reminder"
    assert message.notification.body == PAYLOAD["message"]
    assert message.data["tag"] == "pillar-n-1"
    assert message.data["notificationId"] == "n-1"
    assert json.loads(message.data["actions"]) == PAYLOAD["actions"]
    assert "title" not in message.data
    assert message.android.priority == "high"
    assert message.android.notification.channel_id == "pillar-default"
    assert message.android.notification.tag == "pillar-n-1"


def test_fcm_send_uses_initialised_app():
    app = object()
    with patch.object(fcm, "get_firebase_app", return_value=app), patch.object(fcm.messaging, "send") as send:
        FcmSender(credentials_path="/secrets/firebase.json").send("device-token", PAYLOAD)

    message = send.call_args.args[0]
    assert message.token == "device-token"
    assert send.call_args.kwargs["app"] is app


def test_fcm_unregistered_token_is_gone():
    error = messaging.UnregisteredError("Requested entity was not found.")
    with patch.object(fcm, "get_firebase_app", return_value=object()), patch.object(
        fcm.messaging, "send", side_effect=error
    ):
        with pytest.raises(PushGoneError) as excinfo:
            FcmSender(credentials_path="/secrets/firebase.json").send("device-token", PAYLOAD)
    assert excinfo.value.reason == "UnregisteredError"


def test_fcm_other_error_is_transient():
    with patch.object(fcm, "get_firebase_app", return_value=object()), patch.object(
        fcm.messaging, "send", side_effect=exceptions.UnavailableError("Service unavailable")
    ):
        with pytest.raises(PushDeliveryError) as excinfo:
            FcmSender(credentials_path="/secrets/firebase.json").send("device-token", PAYLOAD)
    assert not isinstance(excinfo.value, PushGoneError)


def test_fcm_without_app_fails():
    with patch.object(fcm, "get_firebase_app", return_value=None):
        with pytest.raises(PushDeliveryError):
            FcmSender(credentials_path="/secrets/firebase.json").send("device-token", PAYLOAD)


def test_get_firebase_app_without_credentials(monkeypatch):
    monkeypatch.setattr(fcm, "_firebase_app", None)
    monkeypatch.delenv("GOOGLE_APPLICATION_CREDENTIALS", raising=False)

    assert fcm.get_firebase_app() is None

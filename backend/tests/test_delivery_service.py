"""Tests for push fan-out and subscription pruning."""
import time
from unittest.mock import AsyncMock

import pytest

from conftest import USER_ID
from pillar.domain.common.errors import PushDeliveryError, PushGoneError
from pillar.domain.notifications.models import TASK_PUSH_ACTIONS, DeliveryPayload
from pillar.infra.db.repositories.subscription_repo import SubscriptionRepository
from pillar.infra.push.web_push import WebPushSender
from pillar.services.delivery_service import DeliveryDispatcher, PushTarget, build_senders


class FakeWebSender:
    def __init__(self, gone=(), failing=(), delay=0.0):
        self.gone = set(gone)
        self.failing = set(failing)
        self.delay = delay
        self.sent = []

    def send(self, endpoint, p256dh, auth, payload):
        if self.delay:
            time.sleep(self.delay)
        if endpoint in self.gone:
            raise PushGoneError(endpoint, "HTTP 410")
        if endpoint in self.failing:
            raise PushDeliveryError("HTTP 500")
        self.sent.append((endpoint, payload))


class FakeNativeSender:
    def __init__(self, gone=()):
        self.gone = set(gone)
        self.sent = []

    def send(self, token, payload):
        if token in self.gone:
            raise PushGoneError(token, "UnregisteredError")
        self.sent.append((token, payload))


def _payload() -> DeliveryPayload:
    return DeliveryPayload(
        title="Task is overdue",
        message='"Write report" is overdue and needs your attention.',
        notification_id="n-1",
        task_id="t-1",
        tag="pillar-n-1",
        url="/boards/b-1",
        actions=list(TASK_PUSH_ACTIONS),
        notification_type="overdue",
    )


@pytest.fixture
def subscriptions(db_session):
    return SubscriptionRepository(db_session)


async def _add_web(subscriptions, name, user_id=USER_ID):
    return await subscriptions.upsert_web(user_id, f"https://push.example.com/{name}", "p256dh-key", "auth-key")


async def test_deliver_sends_wire_payload_to_every_subscription(db_session, subscriptions):
    await _add_web(subscriptions, "a")
    await _add_web(subscriptions, "b")
    web = FakeWebSender()

    sent = await DeliveryDispatcher(db_session, web).deliver(USER_ID, _payload())

    assert sent == 2
    endpoint, wire = web.sent[0]
    assert endpoint.startswith("https://push.example.com/")
    assert wire["notificationId"] == "n-1"
    assert wire["notificationType"] == "overdue"
    assert wire["actions"] == [
        {"action": "complete", "title": "Mark Complete"},
        {"action": "snooze", "title": "Snooze 1 Day"},
    ]


async def test_gone_subscription_is_pruned(db_session, subscriptions):
    await _add_web(subscriptions, "alive")
    await _add_web(subscriptions, "expired")
    web = FakeWebSender(gone={"https://push.example.com/expired"})

    sent = await DeliveryDispatcher(db_session, web).deliver(USER_ID, _payload())

    assert sent == 1
    remaining = await subscriptions.list_by_user(USER_ID)
    assert [s.endpoint for s in remaining] == ["https://push.example.com/alive"]


async def test_transient_failure_keeps_subscription(db_session, subscriptions):
    await _add_web(subscriptions, "alive")
    await _add_web(subscriptions, "flaky")
    web = FakeWebSender(failing={"https://push.example.com/flaky"})

    sent = await DeliveryDispatcher(db_session, web).deliver(USER_ID, _payload())

    assert sent == 1
    assert await subscriptions.count_by_user(USER_ID) == 2


async def test_slow_send_times_out_without_pruning(db_session, subscriptions):
    await _add_web(subscriptions, "slow")
    web = FakeWebSender(delay=0.3)

    sent = await DeliveryDispatcher(db_session, web, send_timeout=0.05).deliver(USER_ID, _payload())

    assert sent == 0
    assert await subscriptions.count_by_user(USER_ID) == 1


async def test_unconfigured_dispatcher_does_nothing(db_session, subscriptions):
    await _add_web(subscriptions, "a")
    dispatcher = DeliveryDispatcher(db_session)
    dispatcher.subscriptions.list_by_user = AsyncMock(return_value=[])

    assert not dispatcher.is_configured
    assert await dispatcher.deliver(USER_ID, _payload()) == 0
    dispatcher.subscriptions.list_by_user.assert_not_called()


async def test_native_subscription_skipped_without_fcm(db_session, subscriptions):
    await _add_web(subscriptions, "a")
    await subscriptions.upsert_native(USER_ID, "android", "device-token-1")
    web = FakeWebSender()

    sent = await DeliveryDispatcher(db_session, web).deliver(USER_ID, _payload())

    assert sent == 1
    assert await subscriptions.count_by_user(USER_ID) == 2


async def test_native_and_web_fan_out_together(db_session, subscriptions):
    await _add_web(subscriptions, "a")
    await subscriptions.upsert_native(USER_ID, "ios", "device-token-ok")
    await subscriptions.upsert_native(USER_ID, "android", "device-token-stale")
    web = FakeWebSender()
    native = FakeNativeSender(gone={"device-token-stale"})

    sent = await DeliveryDispatcher(db_session, web, native).deliver(USER_ID, _payload())

    assert sent == 2
    assert [token for token, _ in native.sent] == ["device-token-ok"]
    remaining = {s.device_token or s.endpoint for s in await subscriptions.list_by_user(USER_ID)}
    assert remaining == {"https://push.example.com/a", "device-token-ok"}


async def test_user_without_subscriptions(db_session):
    assert await DeliveryDispatcher(db_session, FakeWebSender()).deliver(USER_ID, _payload()) == 0


async def test_upsert_web_moves_endpoint_to_new_user(subscriptions):
    await _add_web(subscriptions, "shared", user_id="user-a")
    await _add_web(subscriptions, "shared", user_id="user-b")

    assert await subscriptions.count_by_user("user-a") == 0
    assert await subscriptions.count_by_user("user-b") == 1


def test_push_target_label_and_platform():
    web = PushTarget(id="s-1", platform="web", endpoint="https://push.example.com/" + "x" * 60)
    native = PushTarget(id="s-2", platform="android", device_token="token")

    assert not web.is_native
    assert len(web.label) == 40
    assert native.is_native
    assert native.label == "token"


def test_build_senders_follows_settings(override_settings):
    override_settings({"vapid_public_key": "", "vapid_private_key": "", "vapid_subject": "", "push_enabled": False})
    assert build_senders() == (None, None)

    override_settings(
        {
            "vapid_public_key": "public",
            "vapid_private_key": "private",
            "vapid_subject": "mailto:ops@example.com",
        }
    )
    web, native = build_senders()
    assert isinstance(web, WebPushSender)
    assert web.vapid_subject == "mailto:ops@example.com"
    assert native is None

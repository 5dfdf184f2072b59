"""HTTP API tests: auth, inbox, preferences, push registration, task actions and the sweep."""
from datetime import timedelta

import jwt
import pytest
from httpx import ASGITransport, AsyncClient

from conftest import USER_ID
from pillar.api.deps import get_db, get_session_factory
from pillar.domain.common.types import utcnow
from pillar.infra.security.jwt import create_access_token
from pillar.main import app
from pillar.settings import settings

WEB_SUBSCRIPTION = {
    "endpoint": "https://fcm.googleapis.com/fcm/send/abc123",
    "keys": {"p256dh": "BNcRdreALRFXTkOOUHK1EtK2wtaz5Ry4YfYCA", "auth": "tBHItJI5svbpez7KI4CCXg"},
}


@pytest.fixture
async def client(session_factory):
    """API client authenticated as USER_ID, backed by the in-memory database."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    headers = {"Authorization": f"Bearer {create_access_token(USER_ID)}"}
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", headers=headers) as c:
        yield c
    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_session_factory, None)


# --- auth ------------------------------------------------------------------------


async def test_missing_token_is_rejected(client):
    response = await client.get("/v1/notifications", headers={"Authorization": ""})
    assert response.status_code == 401


async def test_invalid_token_is_rejected(client):
    response = await client.get("/v1/notifications", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


async def test_refresh_token_is_rejected(client):
    token = jwt.encode({"sub": USER_ID, "type": "refresh"}, settings.secret_key, algorithm=settings.algorithm)
    response = await client.get("/v1/notifications", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


# --- evaluation + inbox ------------------------------------------------------------


async def test_check_due_dates_and_inbox(client, make_task, set_prefs):
    await set_prefs(enable_daily_summary=False)
    task = await make_task(due_date=utcnow() - timedelta(days=1))

    response = await client.post("/v1/notifications/check-due-dates")
    assert response.status_code == 200
    assert response.json() == {"reminders": 0, "overdue": 1, "dailySummaries": 0}

    again = await client.post("/v1/notifications/check-due-dates")
    assert again.json()["overdue"] == 0

    listing = (await client.get("/v1/notifications")).json()
    assert len(listing) == 1
    notification = listing[0]
    assert notification["type"] == "overdue"
    assert notification["task_id"] == task.id
    assert notification["read"] is False
    assert notification["metadata"]["boardId"] == task.board_id
    assert isinstance(notification["timestamp"], int)

    assert (await client.get("/v1/notifications/unread-count")).json() == {"unread": 1}

    patched = await client.patch(f"/v1/notifications/{notification['id']}", json={"read": True})
    assert patched.status_code == 200
    assert patched.json()["read"] is True
    assert (await client.get("/v1/notifications/unread-count")).json() == {"unread": 0}
    assert (await client.get("/v1/notifications", params={"unread_only": True})).json() == []


async def test_dismissed_notification_is_hidden(client, make_task, set_prefs):
    await set_prefs(enable_daily_summary=False)
    await make_task(due_date=utcnow() - timedelta(days=1))
    await client.post("/v1/notifications/check-due-dates")
    notification_id = (await client.get("/v1/notifications")).json()[0]["id"]

    response = await client.patch(f"/v1/notifications/{notification_id}", json={"dismissed": True})

    assert response.status_code == 200
    assert (await client.get("/v1/notifications")).json() == []


async def test_read_all_and_delete(client, make_task, set_prefs):
    await set_prefs(enable_daily_summary=False)
    await make_task(due_date=utcnow() - timedelta(days=1))
    await make_task(due_date=utcnow() - timedelta(days=2))
    await client.post("/v1/notifications/check-due-dates")

    response = await client.post("/v1/notifications/read-all")
    assert response.json() == {"ok": True, "updated": 2}

    notification_id = (await client.get("/v1/notifications")).json()[0]["id"]
    assert (await client.delete(f"/v1/notifications/{notification_id}")).status_code == 200
    assert (await client.delete(f"/v1/notifications/{notification_id}")).status_code == 404
    assert (await client.get(f"/v1/notifications/{notification_id}")).status_code == 404


async def test_notification_limit_is_validated(client):
    response = await client.get("/v1/notifications", params={"limit": 500})
    assert response.status_code == 400


# --- preferences -----------------------------------------------------------------


async def test_preferences_defaults(client):
    response = await client.get("/v1/notifications/preferences")

    assert response.status_code == 200
    prefs = response.json()
    assert prefs["enableInAppNotifications"] is True
    assert prefs["enableBrowserPush"] is False
    assert prefs["quietHoursStart"] == "22:00"
    assert prefs["quietHoursEnd"] == "08:00"
    assert prefs["dailySummaryTime"] == "09:00"
    assert prefs["reminderTimings"] == [1440, 60, 15]
    assert prefs["dueDateReminders"] == [{"daysBefore": 1, "time": "09:00"}, {"daysBefore": 0, "time": "08:00"}]
    assert prefs["timezone"] == "UTC"
    assert "enable_in_app_notifications" not in prefs


async def test_preferences_partial_update(client):
    response = await client.patch(
        "/v1/notifications/preferences",
        json={"quiet_hours_enabled": True, "reminder_timings": [15, 60, 60], "unknown_field": 1},
    )

    assert response.status_code == 200
    prefs = response.json()
    assert prefs["quietHoursEnabled"] is True
    assert prefs["reminderTimings"] == [60, 15]
    assert prefs["dailySummaryTime"] == "09:00"


async def test_preferences_accept_camel_case_names(client):
    response = await client.patch(
        "/v1/notifications/preferences",
        json={"enableInAppNotifications": False, "quietHoursEnabled": True, "quietHoursStart": "22:30"},
    )

    assert response.status_code == 200
    prefs = response.json()
    assert prefs["enableInAppNotifications"] is False
    assert prefs["quietHoursEnabled"] is True
    assert prefs["quietHoursStart"] == "22:30"
    assert (await client.get("/v1/notifications/preferences")).json()["enableInAppNotifications"] is False


async def test_preferences_persist_due_date_reminders(client):
    reminders = [{"daysBefore": 2, "time": "10:00"}, {"daysBefore": 0, "time": "20:00"}]

    response = await client.patch("/v1/notifications/preferences", json={"dueDateReminders": reminders})

    assert response.status_code == 200
    assert response.json()["dueDateReminders"] == reminders
    assert (await client.get("/v1/notifications/preferences")).json()["dueDateReminders"] == reminders


@pytest.mark.parametrize(
    "body",
    [
        {"quiet_hours_start": "25:00"},
        {"daily_summary_time": "9am"},
        {"timezone": "Mars/Olympus_Mons"},
        {"reminder_timings": [-5]},
        {"quietHoursEnd": "8am"},
        {"dueDateReminders": [{"daysBefore": 1, "time": "25:00"}]},
        {"dueDateReminders": [{"daysBefore": -1, "time": "09:00"}]},
        {"dueDateReminders": [{"daysBefore": 1, "time": "09:00"}] * 11},
    ],
)
async def test_preferences_rejects_invalid_values(client, body):
    response = await client.patch("/v1/notifications/preferences", json=body)
    assert response.status_code == 400


async def test_detected_timezone_applies_once(client):
    first = await client.post("/v1/notifications/preferences/timezone", json={"timezone": "Asia/Tokyo"})
    second = await client.post("/v1/notifications/preferences/timezone", json={"timezone": "Europe/Paris"})

    assert first.json() == {"timezone": "Asia/Tokyo", "applied": True}
    assert second.json() == {"timezone": "Asia/Tokyo", "applied": False}


async def test_explicit_timezone_blocks_detection(client):
    await client.patch("/v1/notifications/preferences", json={"timezone": "America/New_York"})

    response = await client.post("/v1/notifications/preferences/timezone", json={"timezone": "Asia/Tokyo"})

    assert response.json() == {"timezone": "America/New_York", "applied": False}


async def test_detected_timezone_must_be_known(client):
    response = await client.post("/v1/notifications/preferences/timezone", json={"timezone": "Nowhere/Land"})
    assert response.status_code == 400


# --- push registration -------------------------------------------------------------


async def test_subscribe_web_is_an_upsert(client):
    first = await client.post("/v1/push/subscribe", json=WEB_SUBSCRIPTION)
    second = await client.post("/v1/push/subscribe", json=WEB_SUBSCRIPTION)

    assert first.status_code == 201
    assert first.json()["platform"] == "web"
    assert first.json()["endpoint"] == WEB_SUBSCRIPTION["endpoint"]
    assert second.json()["id"] == first.json()["id"]


async def test_subscribe_native(client):
    response = await client.post("/v1/push/subscribe", json={"platform": "android", "deviceToken": "fcm-token-1"})

    assert response.status_code == 201
    assert response.json()["device_token"] == "fcm-token-1"


@pytest.mark.parametrize(
    "body",
    [
        {**WEB_SUBSCRIPTION, "endpoint": "http://insecure.example.com/push"},
        {"endpoint": WEB_SUBSCRIPTION["endpoint"]},
        {"platform": "ios"},
    ],
)
async def test_subscribe_rejects_incomplete_registration(client, body):
    response = await client.post("/v1/push/subscribe", json=body)
    assert response.status_code == 400


async def test_unsubscribe(client):
    await client.post("/v1/push/subscribe", json=WEB_SUBSCRIPTION)

    first = await client.request("DELETE", "/v1/push/subscribe", json={"endpoint": WEB_SUBSCRIPTION["endpoint"]})
    second = await client.request("DELETE", "/v1/push/subscribe", json={"endpoint": WEB_SUBSCRIPTION["endpoint"]})

    assert first.json() == {"ok": True, "removed": True}
    assert second.json() == {"ok": True, "removed": False}


async def test_vapid_public_key(client, override_settings):
    override_settings({"vapid_public_key": "", "vapid_private_key": "", "vapid_subject": ""})
    assert (await client.get("/v1/push/vapid-public-key")).status_code == 503

    override_settings(
        {"vapid_public_key": "BPublicKey", "vapid_private_key": "private", "vapid_subject": "mailto:ops@example.com"}
    )
    response = await client.get("/v1/push/vapid-public-key")
    assert response.status_code == 200
    assert response.json() == {"publicKey": "BPublicKey"}


async def test_push_test_requires_configured_channel(client, override_settings):
    override_settings({"vapid_public_key": "", "vapid_private_key": "", "vapid_subject": "", "push_enabled": False})

    response = await client.post("/v1/push/test")

    assert response.status_code == 503


# --- task actions ------------------------------------------------------------------


async def test_snooze_route(client, make_task, reload_task):
    task = await make_task(due_date=utcnow() + timedelta(days=3))

    response = await client.post(f"/v1/tasks/{task.id}/snooze")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["snoozedUntil"].endswith("Z")
    assert (await reload_task(task.id)).reminder_at is not None


async def test_snooze_route_marks_notification(client, make_task, set_prefs):
    await set_prefs(enable_daily_summary=False)
    task = await make_task(due_date=utcnow() - timedelta(days=1))
    await client.post("/v1/notifications/check-due-dates")
    notification_id = (await client.get("/v1/notifications")).json()[0]["id"]

    response = await client.post(f"/v1/tasks/{task.id}/snooze", json={"notificationId": notification_id})

    assert response.status_code == 200
    notification = (await client.get(f"/v1/notifications/{notification_id}")).json()
    assert notification["read"] is True
    assert notification["snoozed_until"] is not None


async def test_complete_route(client, make_task):
    task = await make_task(due_date=utcnow() + timedelta(days=1), recurrence={"frequency": "daily", "interval": 1})

    response = await client.post(f"/v1/tasks/{task.id}/complete")

    assert response.status_code == 200
    body = response.json()
    assert body["task"]["column_id"] == "done"
    assert body["task"]["completed_at"] is not None
    assert body["next_occurrence"]["column_id"] == "todo"
    assert body["next_occurrence"]["completed_at"] is None


async def test_task_routes_404_for_unknown_task(client):
    assert (await client.post("/v1/tasks/missing/snooze")).status_code == 404
    assert (await client.post("/v1/tasks/missing/complete")).status_code == 404


# --- cron sweep ------------------------------------------------------------------


async def test_sweep_disabled_without_secret(client, override_settings):
    override_settings({"cron_secret": ""})

    response = await client.post("/v1/internal/notifications/sweep", headers={"X-Cron-Secret": "anything"})

    assert response.status_code == 503


async def test_sweep_rejects_wrong_secret(client, override_settings):
    override_settings({"cron_secret": "s3cret"})

    missing = await client.post("/v1/internal/notifications/sweep")
    wrong = await client.post("/v1/internal/notifications/sweep", headers={"X-Cron-Secret": "guess"})

    assert missing.status_code == 401
    assert wrong.status_code == 401


async def test_sweep_runs_all_users(client, override_settings, make_task, set_prefs):
    override_settings({"cron_secret": "s3cret", "sweep_concurrency": 1})
    await set_prefs(enable_daily_summary=False)
    await make_task(due_date=utcnow() - timedelta(days=1))

    response = await client.post("/v1/internal/notifications/sweep", headers={"X-Cron-Secret": "s3cret"})

    assert response.status_code == 200
    assert response.json() == {
        "notificationsCreated": 1,
        "reminders": 0,
        "overdue": 1,
        "dailySummaries": 0,
        "users": 1,
    }

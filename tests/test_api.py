"""API endpoint tests."""

from datetime import datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from uptime_monitor.models.monitor import MonitorStatus
from uptime_monitor.models.notification_log import NotificationKind
from uptime_monitor.models.status_check import StatusCheck


@pytest.fixture
async def client(test_app):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as c:
        yield c


async def _create_monitor(client, user_id, url="https://example.com", **extra):
    payload = {"user_id": user_id, "url": url, **extra}
    return await client.post("/api/v1/monitors", json=payload)


@pytest.mark.functional
class TestServiceEndpoints:

    async def test_root(self, client):
        response = await client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Uptime Monitor"
        assert data["status"] == "running"

    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["scheduler"] == "stopped"
        assert "version" in data
        assert "X-Request-ID" in response.headers

    async def test_metrics(self, client):
        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "uptime_monitor_probes_total" in response.text

    async def test_metrics_disabled(self, client, test_config):
        test_config.prometheus.enabled = False

        response = await client.get("/metrics")

        assert response.status_code == 404


@pytest.mark.functional
class TestUsers:

    async def test_create_and_get_user(self, client):
        response = await client.post("/api/v1/users", json={"email": "New@Example.com"})

        assert response.status_code == 201
        user = response.json()
        assert user["email"] == "new@example.com"

        response = await client.get(f"/api/v1/users/{user['id']}")
        assert response.status_code == 200
        assert response.json()["email"] == "new@example.com"

    async def test_duplicate_email(self, client, sample_user):
        response = await client.post("/api/v1/users", json={"email": sample_user.email})

        assert response.status_code == 400

    async def test_invalid_email(self, client):
        response = await client.post("/api/v1/users", json={"email": "nope"})

        assert response.status_code == 422

    async def test_unknown_user(self, client):
        response = await client.get("/api/v1/users/999")

        assert response.status_code == 404


@pytest.mark.functional
class TestMonitors:

    async def test_create_monitor_starts_pending_and_checks_in_background(
        self, client, sample_user, prober
    ):
        response = await _create_monitor(client, sample_user.id, url="example.com", name="Example")

        assert response.status_code == 201
        monitor = response.json()
        assert monitor["status"] == "pending"
        assert monitor["notifications_enabled"] is True

        # The background check ran once the response was sent
        assert prober.calls == ["example.com"]
        response = await client.get(f"/api/v1/monitors/{monitor['id']}")
        assert response.json()["status"] == "up"

    async def test_invalid_url(self, client, sample_user):
        response = await _create_monitor(client, sample_user.id, url="not a url")

        assert response.status_code == 400

    async def test_unknown_user(self, client):
        response = await _create_monitor(client, 999)

        assert response.status_code == 404

    async def test_duplicate_url_for_user(self, client, sample_user):
        await _create_monitor(client, sample_user.id)

        response = await _create_monitor(client, sample_user.id)

        assert response.status_code == 400

    async def test_list_monitors_by_user(self, client, sample_user, make_monitor):
        await make_monitor(url="https://a.example.com")
        await make_monitor(url="https://b.example.com")

        response = await client.get("/api/v1/monitors", params={"user_id": sample_user.id})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert [m["url"] for m in data["monitors"]] == ["https://a.example.com", "https://b.example.com"]

        response = await client.get("/api/v1/monitors", params={"user_id": sample_user.id + 1})
        assert response.json()["total"] == 0

    async def test_update_monitor(self, client, sample_monitor):
        response = await client.patch(
            f"/api/v1/monitors/{sample_monitor.id}",
            json={"name": "Renamed", "notifications_enabled": False}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Renamed"
        assert data["notifications_enabled"] is False
        assert data["url"] == sample_monitor.url

    async def test_get_missing_monitor(self, client):
        response = await client.get("/api/v1/monitors/999")

        assert response.status_code == 404

    async def test_delete_cascades_history_and_log(
        self, client, sample_monitor, history, store, db_session
    ):
        await history.record(sample_monitor.id, MonitorStatus.UP, 10, None)
        await store.log_notification(sample_monitor.id, "owner@example.com", NotificationKind.DOWN, True)

        response = await client.delete(f"/api/v1/monitors/{sample_monitor.id}")

        assert response.status_code == 204
        assert (await client.get(f"/api/v1/monitors/{sample_monitor.id}")).status_code == 404
        rows = (await db_session.execute(select(StatusCheck))).scalars().all()
        assert rows == []

    async def test_check_now(self, client, sample_monitor, prober):
        prober.script(sample_monitor.url, MonitorStatus.DOWN)

        response = await client.post(f"/api/v1/monitors/{sample_monitor.id}/check")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "down"
        assert data["status_code"] == 503
        assert data["error_message"] == "HTTP 503"

    async def test_check_now_missing_monitor(self, client):
        response = await client.post("/api/v1/monitors/999/check")

        assert response.status_code == 404


@pytest.mark.functional
class TestStatistics:

    async def test_stats(self, client, sample_monitor, history):
        await history.record(sample_monitor.id, MonitorStatus.UP, 100, None)
        await history.record(sample_monitor.id, MonitorStatus.DOWN, None, "Timeout")

        response = await client.get(f"/api/v1/monitors/{sample_monitor.id}/stats", params={"hours": 24})

        assert response.status_code == 200
        data = response.json()
        assert data["total_checks"] == 2
        assert data["uptime_percentage"] == 50.0
        assert data["avg_response_time"] == 100.0

    async def test_stats_hours_out_of_range(self, client, sample_monitor):
        response = await client.get(f"/api/v1/monitors/{sample_monitor.id}/stats", params={"hours": 0})

        assert response.status_code == 422

    async def test_stats_missing_monitor(self, client):
        response = await client.get("/api/v1/monitors/999/stats")

        assert response.status_code == 404

    async def test_history(self, client, sample_monitor, history):
        now = datetime.utcnow()
        await history.record(sample_monitor.id, MonitorStatus.UP, 1, None, checked_at=now - timedelta(minutes=2))
        await history.record(sample_monitor.id, MonitorStatus.DOWN, None, "Timeout", checked_at=now)

        response = await client.get(f"/api/v1/monitors/{sample_monitor.id}/history", params={"limit": 1})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert len(data["checks"]) == 1
        assert data["checks"][0]["status"] == "down"
        assert data["checks"][0]["error_message"] == "Timeout"

    async def test_notifications(self, client, sample_monitor, store):
        await store.log_notification(sample_monitor.id, "owner@example.com", NotificationKind.DOWN, False, "relay denied")

        response = await client.get(f"/api/v1/monitors/{sample_monitor.id}/notifications")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["notifications"][0]["notification_type"] == "down"
        assert data["notifications"][0]["success"] is False
        assert data["notifications"][0]["error_message"] == "relay denied"

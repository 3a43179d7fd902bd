"""Tests for the read API."""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from noc_poller.api import app, get_db
from noc_poller.models import Device, TrafficLog


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def routers(session_factory):
    now = datetime.now(timezone.utc)
    with session_factory() as db:
        db.add_all(
            [
                Device(id="a", name="core", ip_address="192.0.2.1", status="UP", community_string="secret"),
                Device(id="b", name="access", ip_address="192.0.2.2", status="DOWN"),
                Device(id="c", name="backup", ip_address="192.0.2.3"),
            ]
        )
        db.add_all(
            [
                TrafficLog(router_id="a", rx_bps=1, tx_bps=1, created_at=now - timedelta(hours=2)),
                TrafficLog(router_id="a", rx_bps=800, tx_bps=0, created_at=now - timedelta(minutes=5)),
                TrafficLog(
                    router_id="a",
                    rx_bps=12_500_000,
                    tx_bps=999,
                    sfp_rx_dbm=-23.0,
                    created_at=now - timedelta(minutes=1),
                ),
            ]
        )
        db.commit()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_list_devices_sorted_without_community(client, routers):
    body = client.get("/devices").json()

    assert [d["name"] for d in body] == ["access", "backup", "core"]
    assert all("community_string" not in d for d in body)


def test_device_summary(client, routers):
    assert client.get("/devices/summary").json() == {
        "total": 3,
        "up_count": 1,
        "down_count": 1,
        "unknown_count": 1,
    }


def test_traffic_window_oldest_first(client, routers):
    body = client.get("/devices/a/traffic", params={"minutes": 30}).json()

    assert [log["rx_bps"] for log in body] == [800, 12_500_000]


def test_latest_traffic_has_display_values(client, routers):
    body = client.get("/devices/a/traffic/latest").json()

    assert body["rx_display"] == "12.50 Mbps"
    assert body["tx_display"] == "999 bps"
    assert body["sfp_rx_dbm"] == -23.0
    assert body["signal_level"] == "warning"


def test_unknown_router_is_404(client, routers):
    assert client.get("/devices/zzz/traffic").status_code == 404
    assert client.get("/devices/zzz/traffic/latest").status_code == 404


def test_router_without_logs_has_no_latest(client, routers):
    assert client.get("/devices/b/traffic/latest").status_code == 404

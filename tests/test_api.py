"""
Tests for the HTTP routes.
"""

import os

import pytest
from fastapi.testclient import TestClient

from apgeist.config import settings
from apgeist.main import app
from apgeist.routes import interfaces as interfaces_routes
from apgeist.routes import provision as provision_routes
from apgeist.services.provision_store import ProvisionStore

from conftest import FakeNetwork, FakeSupervisor


AUTH = {"Authorization": f"Bearer {settings.admin_token}"}

BODY = {
    "ssid": "RadxaAP",
    "passphrase": "radxa123456",
    "ap_ip": "192.168.4.1",
    "dhcp_start": "192.168.4.2",
    "dhcp_end": "192.168.4.20",
    "channel": 7,
    "country_code": "PK",
}


@pytest.fixture
def client(make_orchestrator, test_settings):
    store = ProvisionStore(test_settings)
    app.dependency_overrides[provision_routes.get_orchestrator] = lambda: make_orchestrator()
    app.dependency_overrides[provision_routes.get_store] = lambda: store
    app.dependency_overrides[provision_routes.get_supervisor] = lambda: FakeSupervisor(active=["hostapd"])
    app.dependency_overrides[interfaces_routes.get_network] = lambda: FakeNetwork(interfaces=["wlan1", "wlan0", "eth0"])
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestAuth:
    def test_requires_token(self, client):
        assert client.get("/api/ap/status").status_code == 401

    def test_rejects_wrong_token(self, client):
        assert client.get("/api/ap/status", headers={"Authorization": "Bearer nope"}).status_code == 401


class TestProvisionRoutes:
    def test_provision(self, client, test_settings):
        resp = client.post("/api/ap/provision", json=BODY, headers=AUTH)
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["interface"] == "wlX"
        assert data["stages"][0] == {"name": "privilege", "status": "ok", "message": "", "warnings": []}

    def test_short_passphrase_rejected(self, client, test_settings):
        resp = client.post("/api/ap/provision", json={**BODY, "passphrase": "short"}, headers=AUTH)
        assert resp.status_code == 422
        assert not os.path.exists(test_settings.hostapd_conf)

    def test_status_after_provision(self, client):
        assert client.get("/api/ap/status", headers=AUTH).json() == {"last_report": None}
        client.post("/api/ap/provision", json=BODY, headers=AUTH)
        last = client.get("/api/ap/status", headers=AUTH).json()["last_report"]
        assert last["success"] is True

    def test_services(self, client):
        data = client.get("/api/ap/services", headers=AUTH).json()
        assert data == {"status": {"hostapd": "active", "dnsmasq": "inactive", "dhcpcd": "inactive"}}


class TestInterfaceRoutes:
    def test_lists_candidates(self, client):
        data = client.get("/api/interfaces/", headers=AUTH).json()
        assert [i["name"] for i in data["interfaces"]] == ["wlan0", "wlan1"]
        assert data["selected"] == "wlan0"
        assert data["interfaces"][0]["mode"] == "AP"
        assert [i["ap_capable"] for i in data["interfaces"]] == [True, True]

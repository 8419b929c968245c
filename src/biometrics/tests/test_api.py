"""Tests for the HTTP surface and the JSON-RPC tool endpoint."""

from __future__ import annotations

import json
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from src.biometrics.query import QueryEngine
from src.biometrics.service import BiometricsService
from src.biometrics.store import TimeSeriesStore
from src.biometrics.sync.coordinator import SyncCoordinator
from src.biometrics.tests.conftest import TEST_API_KEY, FakeClock, FakeSource
from src.biometrics.tools import TOOL_NAMES
from src.config import Settings
from src.main import create_app

AUTH = {"X-API-Key": TEST_API_KEY}


@pytest.fixture
def settings() -> Settings:
    return Settings(biometrics_api_key=TEST_API_KEY, sync_interval_seconds=0)


@pytest.fixture
def service(store: TimeSeriesStore, coordinator: SyncCoordinator, clock: FakeClock) -> BiometricsService:
    return BiometricsService(store=store, coordinator=coordinator, query=QueryEngine(store, clock=clock))


@pytest.fixture
def client(settings: Settings, service: BiometricsService) -> Iterator[TestClient]:
    with TestClient(create_app(settings=settings, service=service)) as test_client:
        yield test_client


def _rpc(client: TestClient, method: str, params: dict | None = None, rpc_id: int = 1) -> dict:
    body: dict = {"jsonrpc": "2.0", "id": rpc_id, "method": method}
    if params is not None:
        body["params"] = params
    response = client.post("/mcp", json=body)
    assert response.status_code == 200
    return response.json()


def _tool_result(reply: dict) -> dict:
    content = reply["result"]["content"]
    assert len(content) == 1 and content[0]["type"] == "text"
    return json.loads(content[0]["text"])


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


class TestPublicEndpoints:
    def test_health(self, client: TestClient) -> None:
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["has_data"] is False
        assert body["last_drive_sync"] is None

    def test_info_lists_tools(self, client: TestClient) -> None:
        body = client.get("/").json()
        assert body["tools"] == TOOL_NAMES
        assert "/mcp (POST)" in body["endpoints"].values()

    def test_sse_announces_mcp_endpoint(self, client: TestClient) -> None:
        response = client.get("/sse")
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.text == "event: endpoint\ndata: http://testserver/mcp\n\n"

    def test_readings_unknown_category(self, client: TestClient) -> None:
        assert client.get("/readings/blood_pressure").status_code == 404

    def test_readings_window_params(self, client: TestClient) -> None:
        assert client.get("/readings/heart_rate", params={"hours": 6}).json()["period_hours"] == 6
        assert client.get("/readings/sleep", params={"days": 3}).json()["period_days"] == 3
        # days is ignored for hourly categories
        assert client.get("/readings/stress", params={"days": 3}).json()["period_hours"] == 24

    def test_readings_huge_window(self, client: TestClient) -> None:
        response = client.get("/readings/sleep", params={"days": 1e6})
        assert response.status_code == 200
        assert response.json()["sessions"] == []

    def test_status(self, client: TestClient) -> None:
        body = client.get("/status").json()
        assert body["connected"] is True
        assert set(body["data_available"]) == {"heart_rate", "sleep", "steps", "stress"}


# ---------------------------------------------------------------------------
# API-key protected endpoints
# ---------------------------------------------------------------------------


class TestAuth:
    @pytest.mark.parametrize("path", ["/sync", "/push"])
    def test_missing_key(self, client: TestClient, path: str) -> None:
        response = client.post(path, json={})
        assert response.status_code == 401
        assert response.json() == {"detail": "Unauthorized"}

    def test_wrong_key(self, client: TestClient) -> None:
        assert client.post("/sync", headers={"X-API-Key": "nope"}).status_code == 401

    def test_bearer_key_accepted(self, client: TestClient) -> None:
        response = client.post("/sync", headers={"Authorization": f"Bearer {TEST_API_KEY}"})
        assert response.status_code == 200

    def test_debug_requires_key(self, client: TestClient) -> None:
        assert client.get("/debug/files").status_code == 401


class TestSyncEndpoint:
    def test_sync_reports_counts(self, client: TestClient) -> None:
        response = client.post("/sync", headers=AUTH)
        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "synced": {"heart_rate": 4, "sleep": 1, "steps": 3, "stress": 2},
        }

    def test_force_param(self, client: TestClient) -> None:
        client.post("/sync", headers=AUTH)
        again = client.post("/sync", headers=AUTH).json()
        forced = client.post("/sync", params={"force": "true"}, headers=AUTH).json()
        assert again["synced"]["heart_rate"] == 0
        assert forced["synced"]["heart_rate"] == 4

    def test_failure_is_500(self, client: TestClient, source: FakeSource) -> None:
        source.failing.add("hr-folder/heart_rate.csv")
        response = client.post("/sync", headers=AUTH)
        assert response.status_code == 500
        assert "Failed to download file" in response.json()["detail"]


class TestPushEndpoint:
    def test_single(self, client: TestClient) -> None:
        response = client.post(
            "/push",
            headers=AUTH,
            json={"type": "heart_rate", "timestamp": "2026-01-24T11:00:00Z", "data": {"bpm": 70}},
        )
        assert response.status_code == 200
        assert response.json() == {"success": True, "stored": 1, "type": "heart_rate"}

        latest = client.get("/readings/heart_rate").json()["latest"]
        assert latest == {"time": "2026-01-24T11:00:00.000Z", "bpm": 70}

    def test_batch(self, client: TestClient) -> None:
        response = client.post(
            "/push",
            headers=AUTH,
            json={"readings": [
                {"type": "steps", "timestamp": "2026-01-24T09:00:00+00:00", "data": {"count": 900}},
                {"type": "stress", "timestamp": "2026-01-24T09:00:00Z", "data": {"level": 40, "label": "normal"}},
            ]},
        )
        assert response.status_code == 200
        assert response.json() == {"success": True, "stored": 2}

    def test_invalid_json(self, client: TestClient) -> None:
        response = client.post("/push", headers={**AUTH, "Content-Type": "application/json"}, content=b"{nope")
        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid JSON"}

    def test_invalid_shape(self, client: TestClient) -> None:
        response = client.post(
            "/push",
            headers=AUTH,
            json={"type": "heart_rate", "timestamp": "2026-01-24T11:00:00Z", "data": {"bpm": "fast"}},
        )
        assert response.status_code == 400

    def test_unknown_type(self, client: TestClient) -> None:
        response = client.post(
            "/push", headers=AUTH, json={"type": "glucose", "timestamp": "2026-01-24T11:00:00Z", "data": {}}
        )
        assert response.status_code == 400


# ---------------------------------------------------------------------------
# JSON-RPC tools
# ---------------------------------------------------------------------------


class TestRpc:
    def test_initialize(self, client: TestClient) -> None:
        reply = _rpc(client, "initialize")
        assert reply["id"] == 1
        assert reply["result"]["protocolVersion"] == "2024-11-05"
        assert reply["result"]["serverInfo"] == {"name": "biometrics-cloud", "version": "3.0.0"}

    def test_tools_list(self, client: TestClient) -> None:
        tools = _rpc(client, "tools/list")["result"]["tools"]
        assert [t["name"] for t in tools] == TOOL_NAMES
        assert "hours" in tools[0]["inputSchema"]["properties"]

    def test_unknown_method(self, client: TestClient) -> None:
        reply = _rpc(client, "resources/list")
        assert reply["error"]["code"] == -32601
        assert "result" not in reply

    def test_unknown_tool(self, client: TestClient) -> None:
        reply = _rpc(client, "tools/call", {"name": "biometrics_glucose", "arguments": {}})
        assert reply["error"]["code"] == -32602

    def test_bad_argument_type(self, client: TestClient) -> None:
        reply = _rpc(client, "tools/call", {"name": "biometrics_heart_rate", "arguments": {"hours": "lots"}})
        assert reply["error"]["code"] == -32602

    @pytest.mark.parametrize("force", ["false", 1, "true"])
    def test_non_boolean_force_is_rejected(self, client: TestClient, force: object) -> None:
        _rpc(client, "tools/call", {"name": "biometrics_sync"})

        reply = _rpc(client, "tools/call", {"name": "biometrics_sync", "arguments": {"force": force}})

        assert reply["error"]["code"] == -32602
        again = _tool_result(_rpc(client, "tools/call", {"name": "biometrics_sync", "arguments": {"force": False}}))
        assert sum(again.values()) == 0

    def test_sync_then_query_tools(self, client: TestClient) -> None:
        synced = _tool_result(_rpc(client, "tools/call", {"name": "biometrics_sync"}))
        assert synced["heart_rate"] == 4

        heart = _tool_result(_rpc(client, "tools/call", {"name": "biometrics_heart_rate", "arguments": {"hours": 24}}))
        assert heart["latest"]["bpm"] == 78

        steps = _tool_result(_rpc(client, "tools/call", {"name": "biometrics_steps", "arguments": {}}))
        assert steps["history"] == [{"date": "2026-01-24", "steps": 310}]

        status = _tool_result(_rpc(client, "tools/call", {"name": "biometrics_status"}))
        assert status["data_available"]["stress"] is True

    def test_tool_failure_is_internal_error(self, client: TestClient, source: FakeSource) -> None:
        source.failing.add("hr-folder/heart_rate.csv")
        reply = _rpc(client, "tools/call", {"name": "biometrics_sync"})
        assert reply["error"]["code"] == -32603
        assert "Failed to download file" in reply["error"]["message"]

    def test_malformed_envelope(self, client: TestClient) -> None:
        response = client.post("/mcp", json={"jsonrpc": "2.0", "id": 9})
        assert response.json()["error"]["code"] == -32600

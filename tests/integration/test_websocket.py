"""Integration tests for the WebSocket transport and the health routes.

The application is built with ``create_app()`` around a ``SteamClient`` whose
HTTP client talks to ``FakeSteamAPI`` through an ``httpx.MockTransport``.
Starlette's ``TestClient`` runs the startup and shutdown hooks.

Network used::

    A (Alice) lists B, C;  B (Bob) lists A, D;  C (Carol) lists A;  D (Dave) lists B
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Iterator

import httpx
import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from steam_friend_graph.api.main import create_app
from steam_friend_graph.config.settings import get_settings
from steam_friend_graph.steam.client import SteamClient
from tests.fakes import TEST_API_KEY, FakeSteamAPI, make_id

A, B, C, D = (make_id(i) for i in (1, 2, 3, 4))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_steam() -> FakeSteamAPI:
    api = FakeSteamAPI()
    api.add_user(A, name="Alice", friends=[B, C], real_name="Alice Liddell", country="GB")
    api.add_user(B, name="Bob", friends=[A, D])
    api.add_user(C, name="Carol", friends=[A])
    api.add_user(D, name="Dave", friends=[B])
    api.vanity["alice"] = A
    return api


@pytest.fixture
def steam_client(fake_steam: FakeSteamAPI) -> Iterator[SteamClient]:
    http_client = httpx.AsyncClient(transport=fake_steam.transport())
    yield SteamClient(TEST_API_KEY, http_client=http_client)
    asyncio.run(http_client.aclose())


@pytest.fixture
def make_test_client(steam_client: SteamClient):
    """Return a factory building a started TestClient; settings are read at build time."""
    clients: list[TestClient] = []

    def _make() -> TestClient:
        get_settings.cache_clear()
        client = TestClient(create_app(steam_client=steam_client))
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)
    get_settings.cache_clear()


@pytest.fixture
def test_client(make_test_client) -> TestClient:
    return make_test_client()


def _call(ws, endpoint: str, steam_id: str = "") -> dict:
    ws.send_json({"endpoint": endpoint, "id": steam_id})
    return ws.receive_json()


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class TestProtocol:
    def test_ping(self, test_client: TestClient) -> None:
        with test_client.websocket_connect("/") as ws:
            assert _call(ws, "ping") == {
                "endpoint": "ping",
                "status": 0,
                "data": "pong",
                "err": "",
            }

    def test_unknown_endpoint(self, test_client: TestClient) -> None:
        """An unknown endpoint answers status 1 and keeps the connection open."""
        with test_client.websocket_connect("/") as ws:
            response = _call(ws, "deleteEverything")

            assert response["endpoint"] == "deleteEverything"
            assert response["status"] == 1
            assert response["err"] == "endpoint not found"
            assert _call(ws, "ping")["data"] == "pong"

    @pytest.mark.parametrize("raw", ["not json", '{"id": "x"}', '{"endpoint": ""}'])
    def test_malformed_frame(self, test_client: TestClient, raw: str) -> None:
        with test_client.websocket_connect("/") as ws:
            ws.send_text(raw)
            response = ws.receive_json()

            assert response["status"] == 1
            assert response["err"].startswith("malformed message")
            assert _call(ws, "ping")["status"] == 0

    def test_binary_frame_is_accepted(self, test_client: TestClient) -> None:
        """A JSON request sent as a binary frame is answered like a text frame."""
        with test_client.websocket_connect("/") as ws:
            ws.send_bytes(json.dumps({"endpoint": "ping", "id": ""}).encode("utf-8"))
            assert ws.receive_json()["data"] == "pong"

    def test_non_utf8_binary_frame_is_malformed(self, test_client: TestClient) -> None:
        with test_client.websocket_connect("/") as ws:
            ws.send_bytes(b"\xff\xfe\x00")
            response = ws.receive_json()

            assert response["status"] == 1
            assert response["err"].startswith("malformed message")
            assert _call(ws, "ping")["status"] == 0


# ---------------------------------------------------------------------------
# Acquisition endpoints
# ---------------------------------------------------------------------------


class TestAcquisition:
    def test_generate_graph_data(
        self, test_client: TestClient, fake_steam: FakeSteamAPI
    ) -> None:
        with test_client.websocket_connect("/") as ws:
            response = _call(ws, "generateGraphData", A)

        assert response["status"] == 0, response["err"]
        graph = response["data"]
        assert graph["rootId"] == A
        assert [node["id"] for node in graph["nodes"]] == [A, B, C, D]
        assert [node["label"] for node in graph["nodes"]] == [A, B, C, D]
        assert {edge["id"] for edge in graph["edges"]} == {
            f"{A}-{B}",
            f"{A}-{C}",
            f"{B}-{A}",
            f"{B}-{D}",
            f"{C}-{A}",
        }

    def test_generate_graph_data_from_vanity_name(self, test_client: TestClient) -> None:
        with test_client.websocket_connect("/") as ws:
            response = _call(ws, "generateGraphData", "alice")

        assert response["status"] == 0
        assert response["data"]["rootId"] == A

    def test_unresolvable_root_is_an_error_frame(self, test_client: TestClient) -> None:
        with test_client.websocket_connect("/") as ws:
            response = _call(ws, "generateGraphData", "nobody-here")

        assert response["status"] == 1
        assert "nobody-here" in response["err"]

    def test_generate_labels_after_graph(self, test_client: TestClient) -> None:
        with test_client.websocket_connect("/") as ws:
            _call(ws, "generateGraphData", A)
            response = _call(ws, "generateLabels")

        assert response["status"] == 0
        assert response["data"] == {
            A: "Alice (Alice Liddell) (GB)",
            B: "Bob",
            C: "Carol",
            D: "Dave",
        }

    def test_get_friend_profiles(self, test_client: TestClient) -> None:
        with test_client.websocket_connect("/") as ws:
            _call(ws, "generateGraphData", A)
            response = _call(ws, "getFriendProfiles", A)

        assert response["status"] == 0
        data = response["data"]
        assert [friend["steamid"] for friend in data["friends"]] == [B, C]
        assert data["friends"][0]["personaname"] == "Bob"
        assert data["profile"]["steamid"] == A
        assert data["profile"]["realname"] == "Alice Liddell"

    def test_get_friend_profiles_of_second_ring_is_empty(self, test_client: TestClient) -> None:
        with test_client.websocket_connect("/") as ws:
            _call(ws, "generateGraphData", A)
            response = _call(ws, "getFriendProfiles", D)

        assert response["status"] == 0
        assert response["data"]["friends"] == []
        assert response["data"]["profile"]["personaname"] == "Dave"

    def test_get_friend_profiles_unknown_id(self, test_client: TestClient) -> None:
        with test_client.websocket_connect("/") as ws:
            response = _call(ws, "getFriendProfiles", A)

        assert response["status"] == 1
        assert response["err"] == f"profile not found: {A}"

    def test_sessions_are_per_connection(self, test_client: TestClient) -> None:
        """A second connection does not see the first connection's graph."""
        with test_client.websocket_connect("/") as first:
            _call(first, "generateGraphData", A)
            with test_client.websocket_connect("/") as second:
                response = _call(second, "getFriendProfiles", A)

        assert response["status"] == 1

    def test_repeat_graph_within_ttl_costs_no_calls(
        self, test_client: TestClient, steam_client: SteamClient
    ) -> None:
        with test_client.websocket_connect("/") as ws:
            _call(ws, "generateGraphData", A)
            calls = steam_client.call_count
            response = _call(ws, "generateGraphData", A)

        assert response["status"] == 0
        assert steam_client.call_count == calls == 3


# ---------------------------------------------------------------------------
# Call ceiling
# ---------------------------------------------------------------------------


class TestCallCeiling:
    def test_exhausted_budget_refuses_new_work(
        self, make_test_client, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Past the ceiling, traversals fail and new connections close with 1013."""
        monkeypatch.setenv("MAX_REMOTE_CALLS", "2")
        client = make_test_client()

        with client.websocket_connect("/") as ws:
            assert _call(ws, "generateGraphData", A)["status"] == 0
            refused = _call(ws, "generateGraphData", B)
            assert refused["status"] == 1
            assert "budget" in refused["err"]
            # Work on the existing session is still served.
            assert _call(ws, "getFriendProfiles", A)["status"] == 0

        with client.websocket_connect("/") as ws:
            frame = ws.receive_json()
            assert frame["status"] == 1
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_json()

        assert exc_info.value.code == 1013

        health = client.get("/api/health").json()
        assert health["status"] == "exhausted"
        assert health["admitting"] is False


# ---------------------------------------------------------------------------
# Health and lifecycle
# ---------------------------------------------------------------------------


class TestHealth:
    def test_health_reports_call_accounting(self, test_client: TestClient) -> None:
        with test_client.websocket_connect("/") as ws:
            _call(ws, "generateGraphData", A)

        response = test_client.get("/api/health")

        assert response.status_code == 200
        assert "X-Request-ID" in response.headers
        assert response.json() == {
            "status": "ok",
            "remote_calls": 3,
            "max_remote_calls": 0,
            "admitting": True,
            "url_cache_size": 3,
            "profile_cache_size": 0,
        }

    def test_liveness(self, test_client: TestClient) -> None:
        assert test_client.get("/health").json() == {"status": "ok"}

    def test_shutdown_stops_scheduler_and_keeps_injected_client(
        self, steam_client: SteamClient
    ) -> None:
        get_settings.cache_clear()
        app = create_app(steam_client=steam_client)

        with TestClient(app):
            assert app.state.eviction_scheduler.running

        assert not app.state.eviction_scheduler.running
        assert app.state.steam_client is steam_client

# Tests for the reference order backend (hub + FastAPI routes).

import logging
import time
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from orderfeed.auth import create_token
from orderfeed.config import ServerConfig
from orderfeed.hub import Hub
from orderfeed.main import create_app
from orderfeed.timetoken import generate_token

CFG = ServerConfig(time_token_secret="tt-secret", jwt_secret="jwt-secret", time_window=60)
ORDER = {"id": "order-1", "item": "Webcam", "amount": 120}


def _token(secret=CFG.time_token_secret, offset=0):
    return generate_token(secret, CFG.time_window, time.time() + offset)


def _wait_for_subscriber(app, channel="default", authenticated=False, timeout=2.0):
    deadline = time.monotonic() + timeout
    while app.state.hub.count(channel, authenticated) == 0:
        if time.monotonic() > deadline:
            raise AssertionError("subscriber never registered")
        time.sleep(0.01)


@pytest.fixture
def app():
    return create_app(CFG)


@pytest.fixture
def client(app):
    return TestClient(app)


class TestHub:
    async def test_broadcast_reaches_matching_subscribers_only(self):
        hub = Hub()
        priv, pub, other = MagicMock(), MagicMock(), MagicMock()
        for ws in (priv, pub, other):
            ws.send_json = AsyncMock()
        hub.register(priv, "default", authenticated=True)
        hub.register(pub, "default", authenticated=False)
        hub.register(other, "alerts", authenticated=True)

        sent = await hub.broadcast(ORDER, "default", authenticated=True)

        assert sent == 1
        priv.send_json.assert_awaited_once_with(ORDER)
        pub.send_json.assert_not_awaited()
        other.send_json.assert_not_awaited()

    async def test_dead_subscriber_dropped(self):
        hub = Hub()
        good, dead = MagicMock(), MagicMock()
        good.send_json = AsyncMock()
        dead.send_json = AsyncMock(side_effect=RuntimeError("closed"))
        hub.register(good)
        hub.register(dead)

        assert await hub.broadcast(ORDER) == 1
        assert hub.count() == 1

    async def test_empty_channel(self):
        assert await Hub().broadcast(ORDER, "nobody") == 0

    def test_unregister_removes_empty_channel(self):
        hub = Hub()
        ws = MagicMock()
        hub.register(ws, "c", True)
        hub.unregister(ws, "c", True)
        assert (True, "c") not in hub.channels
        # second unregister is a no-op
        hub.unregister(ws, "c", True)


class TestHealth:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"ok": True}


class TestUpdateEndpoint:
    def test_token_required(self, client):
        resp = client.post("/update", json=ORDER)
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Token required"

    def test_wrong_secret(self, client):
        resp = client.post("/update", json=ORDER, headers={"X-API-Token": _token("nope")})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid or expired token"

    def test_expired_window(self, client):
        resp = client.post("/update", json=ORDER, headers={"X-API-Token": _token(offset=-600)})
        assert resp.status_code == 401

    def test_previous_window_tolerated(self, client):
        resp = client.post("/update", json=ORDER, headers={"X-API-Token": _token(offset=-60)})
        assert resp.status_code == 202

    def test_accepted(self, client):
        resp = client.post("/update?channel=default", json=ORDER, headers={"X-API-Token": _token()})
        assert resp.status_code == 202

    @pytest.mark.parametrize("body", [
        {"id": "", "item": "x", "amount": 1},
        {"id": "a", "item": "", "amount": 1},
        {"id": "a", "item": "x", "amount": 0},
        {"id": "a", "item": "x"},
        {"id": "a", "item": "x", "amount": "lots"},
    ])
    def test_invalid_order(self, client, body):
        resp = client.post("/update", json=body, headers={"X-API-Token": _token()})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Invalid order data"

    def test_invalid_json(self, client):
        resp = client.post("/update", content=b"{not json",
                           headers={"X-API-Token": _token(), "Content-Type": "application/json"})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Invalid JSON"


class TestFanOut:
    def test_private_update_reaches_authenticated_subscriber(self, app, client):
        jwt_token = create_token("demo-user-123", CFG.jwt_secret)
        with client.websocket_connect(f"/ws?token={jwt_token}&channel=orders") as ws:
            _wait_for_subscriber(app, "orders", authenticated=True)
            resp = client.post("/update?channel=orders", json=ORDER, headers={"X-API-Token": _token()})
            assert resp.status_code == 202
            assert ws.receive_json() == {"id": "order-1", "item": "Webcam", "amount": 120.0}

    def test_public_publish_reaches_public_subscriber(self, app, client):
        with client.websocket_connect("/ws/public") as ws:
            _wait_for_subscriber(app, "default", authenticated=False)
            resp = client.post("/publish?channel=default", json=ORDER)
            assert resp.status_code == 202
            assert ws.receive_json()["id"] == "order-1"

    def test_public_publish_skips_private_subscribers(self, app, client):
        jwt_token = create_token("demo-user-123", CFG.jwt_secret)
        with client.websocket_connect(f"/ws?token={jwt_token}"):
            _wait_for_subscriber(app, "default", authenticated=True)
            client.post("/publish", json=ORDER)
            assert app.state.hub.count("default", authenticated=False) == 0

    def test_private_ws_requires_token(self, client):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/ws"):
                pass

    def test_private_ws_rejects_bad_token(self, client):
        bad = create_token("demo-user-123", "wrong-secret")
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect(f"/ws?token={bad}"):
                pass

    def test_subscriber_frames_are_logged_text_or_binary(self, app, client, caplog):
        caplog.set_level(logging.INFO, logger="uvicorn.error")
        with client.websocket_connect("/ws/public") as ws:
            _wait_for_subscriber(app)
            ws.send_text("hello")
            ws.send_bytes(b"hi")
            # connection survives both and still receives fan-out
            client.post("/publish", json=ORDER)
            assert ws.receive_json()["id"] == "order-1"
        assert "Received message: 'hello'" in caplog.text
        assert "Received message: b'hi'" in caplog.text

    def test_disconnect_unregisters(self, app, client):
        with client.websocket_connect("/ws/public?channel=tmp"):
            _wait_for_subscriber(app, "tmp")
        deadline = time.monotonic() + 2
        while app.state.hub.count("tmp") and time.monotonic() < deadline:
            time.sleep(0.01)
        assert app.state.hub.count("tmp") == 0

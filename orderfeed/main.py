"""
Reference order-update backend
==============================
Local stand-in for the order service the demo tools talk to:

  POST /update   time-token protected, fan-out to authenticated subscribers
  POST /publish  fan-out to public subscribers
  WS   /ws       JWT in ``?token=``
  WS   /ws/public

Run with ``order-backend`` or ``uvicorn orderfeed.main:app``.
"""
from __future__ import annotations
import json, logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request, Response, WebSocket, status
from pydantic import ValidationError

from orderfeed.auth import get_claims_from_token, require_time_token
from orderfeed.config import ServerConfig, load_server_config
from orderfeed.hub import DEFAULT_CHANNEL, Hub
from orderfeed.schemas import Order

# Log via uvicorn so messages always show
log = logging.getLogger("uvicorn.error")


async def _read_order(request: Request) -> Order:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise HTTPException(status_code=400, detail="Invalid JSON")
    try:
        order = Order.model_validate(body)
    except ValidationError:
        raise HTTPException(status_code=400, detail="Invalid order data")
    if not order.is_valid():
        raise HTTPException(status_code=400, detail="Invalid order data")
    return order


async def _serve_subscriber(hub: Hub, ws: WebSocket, channel: str, authenticated: bool):
    await ws.accept()
    hub.register(ws, channel, authenticated)
    try:
        while True:
            message = await ws.receive()
            if message["type"] == "websocket.disconnect":
                break
            # text or binary frame, subscribers aren't expected to send either
            data = message.get("text")
            if data is None:
                data = message.get("bytes")
            log.info("Received message: %r", data)
    finally:
        hub.unregister(ws, channel, authenticated)


def create_app(cfg: Optional[ServerConfig] = None) -> FastAPI:
    app = FastAPI(title="Order Feed")
    app.state.config = cfg or load_server_config()
    app.state.hub = Hub()

    @app.get("/health")
    def health():
        return {"ok": True}

    @app.post("/update", status_code=status.HTTP_202_ACCEPTED)
    async def update(request: Request, channel: str = DEFAULT_CHANNEL,
                     _token: str = Depends(require_time_token)):
        order = await _read_order(request)
        sent = await app.state.hub.broadcast(order.model_dump(), channel or DEFAULT_CHANNEL, authenticated=True)
        log.info("Order %s -> private/%s (%d subscribers)", order.id, channel, sent)
        return Response(status_code=status.HTTP_202_ACCEPTED)

    @app.post("/publish", status_code=status.HTTP_202_ACCEPTED)
    async def publish(request: Request, channel: str = DEFAULT_CHANNEL):
        order = await _read_order(request)
        sent = await app.state.hub.broadcast(order.model_dump(), channel or DEFAULT_CHANNEL, authenticated=False)
        log.info("Order %s -> public/%s (%d subscribers)", order.id, channel, sent)
        return Response(status_code=status.HTTP_202_ACCEPTED)

    @app.websocket("/ws")
    async def ws_private(ws: WebSocket, token: str = "", channel: str = DEFAULT_CHANNEL):
        claims = get_claims_from_token(token, app.state.config.jwt_secret) if token else None
        if not claims:
            await ws.close(code=status.WS_1008_POLICY_VIOLATION)
            return
        log.info("Authenticated subscriber %s", claims.get("sub"))
        await _serve_subscriber(app.state.hub, ws, channel or DEFAULT_CHANNEL, authenticated=True)

    @app.websocket("/ws/public")
    async def ws_public(ws: WebSocket, channel: str = DEFAULT_CHANNEL):
        await _serve_subscriber(app.state.hub, ws, channel or DEFAULT_CHANNEL, authenticated=False)

    return app


app = create_app()


def run():
    import uvicorn

    cfg = app.state.config
    log.info("Server starting on :%s", cfg.port)
    uvicorn.run(app, host="0.0.0.0", port=cfg.port)

"""WebSocket endpoint delivering room events to browser clients.

Clients connect to ``/ws?token=JWT``. Signed-in sockets join ``user:<id>``
automatically; product rooms are joined with
``{"type": "subscribe:product", "product_id": 1}`` and left with
``unsubscribe:product``.
"""

import asyncio
import json

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from productbazar.auth.jwt import TokenError, verify_token
from productbazar.realtime.pubsub import get_redis, room_channel

logger = structlog.get_logger()
router = APIRouter()


def parse_client_message(raw: str) -> tuple[str, str | None]:
    """Turn a client frame into (action, room). Unknown frames give ("ignore", None)."""
    try:
        msg = json.loads(raw)
    except json.JSONDecodeError:
        return "ignore", None
    if not isinstance(msg, dict):
        return "ignore", None

    msg_type = msg.get("type")
    if msg_type == "ping":
        return "ping", None
    if msg_type in ("subscribe:product", "unsubscribe:product"):
        product_id = msg.get("product_id")
        if isinstance(product_id, int) or (isinstance(product_id, str) and product_id.isdigit()):
            action = "subscribe" if msg_type == "subscribe:product" else "unsubscribe"
            return action, f"product:{int(product_id)}"
    return "ignore", None


@router.websocket("/ws")
async def events_websocket(websocket: WebSocket):
    """Forward room events from Redis to the connected client."""
    user_id = None
    token = websocket.query_params.get("token")
    if token:
        try:
            user_id = verify_token(token)["sub"]
        except TokenError:
            await websocket.close(code=4001, reason="Invalid or expired token")
            return

    try:
        r = get_redis()
    except RuntimeError:
        await websocket.close(code=1013, reason="Realtime unavailable")
        return

    await websocket.accept()
    pubsub = r.pubsub()
    # Subscribe to a placeholder so listen() has a channel before any room is joined
    await pubsub.subscribe(room_channel("broadcast"))
    if user_id:
        await pubsub.subscribe(room_channel(f"user:{user_id}"))
    logger.info("websocket_connected", user_id=user_id)

    async def redis_listener():
        """Forward Redis messages to the WebSocket client."""
        try:
            async for message in pubsub.listen():
                if message["type"] == "message":
                    await websocket.send_text(message["data"])
        except asyncio.CancelledError:
            pass

    async def client_listener():
        """Handle room subscriptions and pings."""
        try:
            while True:
                action, room = parse_client_message(await websocket.receive_text())
                if action == "ping":
                    await websocket.send_text(json.dumps({"type": "pong"}))
                elif action == "subscribe":
                    await pubsub.subscribe(room_channel(room))
                elif action == "unsubscribe":
                    await pubsub.unsubscribe(room_channel(room))
        except (WebSocketDisconnect, asyncio.CancelledError):
            pass

    redis_task = asyncio.create_task(redis_listener())
    client_task = asyncio.create_task(client_listener())

    try:
        done, pending = await asyncio.wait(
            [redis_task, client_task],
            return_when=asyncio.FIRST_COMPLETED,
        )
        for task in pending:
            task.cancel()
    finally:
        await pubsub.unsubscribe()
        await pubsub.aclose()
        logger.info("websocket_disconnected", user_id=user_id)
        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.close()

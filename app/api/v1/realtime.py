"""Real-time notifications over WebSocket.

Clients send JSON commands:
  {"type": "join_disaster", "disaster_id": "..."}
  {"type": "leave_disaster", "disaster_id": "..."}
  {"type": "ping"}
and receive ``{"event": ..., "data": ...}`` messages.
"""

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.api.deps import Bus
from app.services.notifications import disaster_room

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def notifications_socket(ws: WebSocket, bus: Bus) -> None:
    await ws.accept()
    bus.connect(ws)
    logger.info("Client connected: %s", ws.client)
    try:
        while True:
            try:
                msg = await ws.receive_json()
            except (KeyError, ValueError):
                # binary frames carry no "text" member
                await ws.send_json({"event": "error", "data": {"detail": "Invalid JSON"}})
                continue
            if not isinstance(msg, dict):
                await ws.send_json({"event": "error", "data": {"detail": "Expected an object"}})
                continue

            msg_type = msg.get("type")
            disaster_id = msg.get("disaster_id")
            if msg_type == "ping":
                await ws.send_json({"event": "pong", "data": {}})
            elif msg_type in ("join_disaster", "leave_disaster") and disaster_id:
                room = disaster_room(str(disaster_id))
                if msg_type == "join_disaster":
                    bus.join(ws, room)
                    event = "joined"
                else:
                    bus.leave(ws, room)
                    event = "left"
                await ws.send_json({"event": event, "data": {"room": room}})
            else:
                await ws.send_json({
                    "event": "error",
                    "data": {"detail": f"Unsupported message: {msg_type!r}"},
                })
    except WebSocketDisconnect:
        logger.info("Client disconnected: %s", ws.client)
    finally:
        bus.disconnect(ws)

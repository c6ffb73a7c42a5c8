"""Notification bus: broadcast named events to WebSocket subscribers.

Every connected socket receives global events; sockets that joined a room
(``disaster_<id>``) also receive events scoped to that room. Delivery is
best-effort: a socket that fails to receive is dropped.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


def disaster_room(disaster_id: str) -> str:
    return f"disaster_{disaster_id}"


class NotificationBus:
    def __init__(self) -> None:
        self.active: set[WebSocket] = set()
        self.rooms: dict[str, set[WebSocket]] = defaultdict(set)

    def connect(self, ws: WebSocket) -> None:
        self.active.add(ws)

    def disconnect(self, ws: WebSocket) -> None:
        self.active.discard(ws)
        for room in list(self.rooms):
            self.leave(ws, room)

    def join(self, ws: WebSocket, room: str) -> None:
        self.rooms[room].add(ws)
        logger.info("Client joined room %s", room)

    def leave(self, ws: WebSocket, room: str) -> None:
        members = self.rooms.get(room)
        if members is None:
            return
        members.discard(ws)
        if not members:
            del self.rooms[room]

    async def broadcast(
        self, event: str, data: dict[str, Any], room: str | None = None
    ) -> int:
        """Send ``{"event", "data"}`` to a room (or everyone). Returns deliveries."""
        targets = set(self.rooms.get(room, ())) if room else set(self.active)
        message = {"event": event, "data": data}
        delivered = 0
        dead: set[WebSocket] = set()
        for ws in targets:
            try:
                await ws.send_json(message)
                delivered += 1
            except Exception:
                dead.add(ws)
        for ws in dead:
            logger.warning("Dropping unreachable socket during %s broadcast", event)
            self.disconnect(ws)
        return delivered

"""
Realtime Service
Tracks WebSocket connections per company room and pushes domain events to them
"""

import logging
from typing import Dict, Set

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

from .event_bus import DomainEvent

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Company-scoped rooms; a broadcast only ever reaches one room"""

    def __init__(self):
        self.rooms: Dict[str, Set[WebSocket]] = {}

    def join(self, room: str, websocket: WebSocket):
        self.rooms.setdefault(room, set()).add(websocket)
        logger.info(f"Client joined room {room} ({len(self.rooms[room])} connected)")

    def leave(self, websocket: WebSocket):
        for room in list(self.rooms):
            members = self.rooms[room]
            members.discard(websocket)
            if not members:
                del self.rooms[room]

    def connection_count(self, room: str) -> int:
        return len(self.rooms.get(room, ()))

    async def broadcast(self, room: str, event: str, data: dict):
        message = {"event": event, "data": jsonable_encoder(data)}
        dead = []
        for websocket in list(self.rooms.get(room, ())):
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.warning(f"Dropping dead connection in room {room}: {e}")
                dead.append(websocket)
        for websocket in dead:
            self.leave(websocket)

    async def handle_event(self, event: DomainEvent):
        """EventBus subscriber: route the event to its company's room."""
        await self.broadcast(event.company_id, event.name, event.payload)

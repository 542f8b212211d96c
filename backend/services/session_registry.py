# backend/services/session_registry.py

from __future__ import annotations

import logging
import uuid
from typing import Any, Callable, Dict, List, Optional, Protocol, Set

logger = logging.getLogger(__name__)


class Transport(Protocol):
    async def send_json(self, data: Any) -> None:
        ...


class Connection:
    """A live transport session with a unique id."""

    def __init__(self, transport: Transport, connection_id: Optional[str] = None) -> None:
        self.id = connection_id or uuid.uuid4().hex
        self.transport = transport

    async def emit(self, event: str, data: Any) -> None:
        await self.transport.send_json({"event": event, "data": data})

    def __repr__(self) -> str:
        return f"Connection({self.id})"


# ============================================================================
# SESSION REGISTRY
# ============================================================================

class SessionRegistry:
    """
    Tracks which live connection is in which room, for broadcast fan-out.

    Data Structures:
        rooms: Maps room -> Set of connection ids in that room
               Example: {"general": {"c1", "c2"}}

        connection_rooms: Maps connection id -> the one room it is in

        connections: Maps connection id -> Connection

    Concurrency:
        All connection tasks run on one event loop and join/leave never
        await, so each mutation is atomic with respect to other tasks.
        broadcast_to iterates over a snapshot of the member set, so
        concurrent joins/leaves in the same room never break a fan-out.

    Policy:
        A connection is in at most one room. Joining a room while in
        another leaves the old one first.

        on_drop is called with the id of every connection removed because
        a send to it failed.
    """

    def __init__(self, on_drop: Optional[Callable[[str], None]] = None) -> None:
        self.on_drop = on_drop
        self.rooms: Dict[str, Set[str]] = {}
        self.connection_rooms: Dict[str, str] = {}
        self.connections: Dict[str, Connection] = {}

    def join(self, room: str, connection: Connection) -> None:
        current = self.connection_rooms.get(connection.id)
        if current == room:
            return
        if current is not None:
            self.leave(connection.id)

        self.rooms.setdefault(room, set()).add(connection.id)
        self.connection_rooms[connection.id] = room
        self.connections[connection.id] = connection
        logger.info("→ %s joined '%s' (%d members)", connection.id, room, len(self.rooms[room]))

    def leave(self, connection_id: str) -> None:
        """Remove a connection from its room. No-op if it isn't in one."""
        room = self.connection_rooms.pop(connection_id, None)
        self.connections.pop(connection_id, None)
        if room is None:
            return

        members = self.rooms.get(room)
        if members is not None:
            members.discard(connection_id)
            # Clean up empty rooms from memory
            if not members:
                del self.rooms[room]
        logger.info("← %s left '%s'", connection_id, room)

    async def broadcast_to(self, room: str, payload: Any, exclude: Optional[str] = None) -> int:
        """
        Deliver a "chat message" event to every connection in a room.

        Args:
            room: Target room
            payload: Event data (JSON serializable)
            exclude: Connection id to skip

        Returns:
            Number of connections the payload was delivered to

        Error Handling:
            A failed send removes that connection from the registry;
            delivery to the others continues.
        """
        members = self.members(room)
        if not members:
            logger.info("[routing] Skipped broadcast: room=%s has 0 members", room)
            return 0

        delivered = 0
        disconnected: List[str] = []
        for connection_id in members:
            if connection_id == exclude:
                continue
            connection = self.connections.get(connection_id)
            # Left the room while we were sending to the others
            if connection is None or self.connection_rooms.get(connection_id) != room:
                continue
            try:
                await connection.emit("chat message", payload)
                delivered += 1
            except Exception as e:
                logger.error("Send error to %s: %s", connection_id, e)
                disconnected.append(connection_id)

        for connection_id in disconnected:
            self.leave(connection_id)
            if self.on_drop is not None:
                self.on_drop(connection_id)

        logger.info("📨 Broadcast to room %s: %d clients", room, delivered)
        return delivered

    def members(self, room: str) -> List[str]:
        return sorted(self.rooms.get(room, ()))

    def room_of(self, connection_id: str) -> Optional[str]:
        return self.connection_rooms.get(connection_id)

    @property
    def connection_count(self) -> int:
        return len(self.connection_rooms)

    @property
    def active_rooms(self) -> Dict[str, int]:
        return {room: len(members) for room, members in self.rooms.items()}

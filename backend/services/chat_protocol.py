# backend/services/chat_protocol.py

from __future__ import annotations

import asyncio
import enum
import logging
from collections import defaultdict
from typing import Any, Dict, Optional

from pydantic import ValidationError

from core.errors import AccessDenied, StoreUnavailable
from models.models import ChatMessageRequest, JoinRoomRequest
from services.access_guard import AccessGuard
from services.session_registry import Connection, SessionRegistry
from services.store import ChatStore

logger = logging.getLogger(__name__)

JOIN_ROOM = "join room"
CHAT_MESSAGE = "chat message"
CHAT_HISTORY = "chat history"
ERROR = "error"


class SessionState(str, enum.Enum):
    IDLE = "idle"
    IN_ROOM = "in_room"
    CLOSED = "closed"


# ============================================================================
# SHARED PROTOCOL SERVICES
# ============================================================================

class ChatProtocol:
    """
    Wires the access guard, store and session registry together and hands
    out one ChatSession per connection.

    Append + broadcast is serialized per room so observers see messages in
    the order they were persisted. Rooms never share a lock.
    """

    def __init__(self, store: ChatStore, registry: Optional[SessionRegistry] = None) -> None:
        self.store = store
        self.guard = AccessGuard(store)
        self.registry = registry or SessionRegistry()
        self.registry.on_drop = self._connection_dropped
        self.sessions: Dict[str, ChatSession] = {}
        self._room_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def open_session(self, connection: Connection, user_id: str = "anonymous") -> ChatSession:
        session = ChatSession(self, connection)
        self.sessions[connection.id] = session
        logger.info("✓ User %s connected as %s. Total: %d", user_id, connection.id, len(self.sessions))
        return session

    def room_lock(self, room: str) -> asyncio.Lock:
        return self._room_locks[room]

    def _forget(self, connection_id: str) -> None:
        self.sessions.pop(connection_id, None)

    def _connection_dropped(self, connection_id: str) -> None:
        session = self.sessions.get(connection_id)
        if session is not None:
            session.drop()


# ============================================================================
# PER-CONNECTION STATE MACHINE
# ============================================================================

class ChatSession:
    """
    IDLE --join ok--> IN_ROOM --disconnect--> CLOSED
    (any) --disconnect or failed broadcast send--> CLOSED

    Every event re-runs the access guard using the room/username carried in
    the event itself. Registry membership is for fan-out only, it never
    grants access.
    """

    def __init__(self, protocol: ChatProtocol, connection: Connection) -> None:
        self.protocol = protocol
        self.connection = connection
        self.state = SessionState.IDLE
        self.room: Optional[str] = None
        self.username: Optional[str] = None

    @property
    def closed(self) -> bool:
        return self.state is SessionState.CLOSED

    async def handle_event(self, event: Optional[str], data: Any) -> None:
        """
        Dispatch one inbound event. Never raises for per-event failures:
        they are reported to this connection and logged.
        """
        if self.closed:
            return

        try:
            if event == JOIN_ROOM:
                await self.join(JoinRoomRequest.model_validate(data))
            elif event == CHAT_MESSAGE:
                await self.send_message(ChatMessageRequest.model_validate(data))
            else:
                await self._emit(ERROR, f"Unknown event: {event}")
        except ValidationError as e:
            logger.warning("Invalid %r payload from %s: %s", event, self.connection.id, e.errors())
            await self._emit(ERROR, "Invalid payload")
        except AccessDenied:
            await self._emit(ERROR, AccessDenied.reason)
        except Exception:
            logger.exception("Unhandled error processing %r from %s", event, self.connection.id)

    async def join(self, request: JoinRoomRequest) -> None:
        room, username = request.room, request.username
        await self._authorize(room, username)

        self.protocol.registry.join(room, self.connection)
        self.state = SessionState.IN_ROOM
        self.room = room
        self.username = username
        logger.info("%s joined %s", username, room)

        try:
            history = await self.protocol.store.get_history(room)
        except Exception as e:
            # Join stands; the client just gets no history
            logger.error("❌ Error fetching chat history for %s: %s", room, e)
            history = []

        # Disconnected (or moved on) while history was loading
        if self.closed or self.room != room:
            return
        await self._emit(CHAT_HISTORY, [m.history_entry() for m in history])

    async def send_message(self, request: ChatMessageRequest) -> None:
        room, username = request.room, request.username
        await self._authorize(room, username)

        async with self.protocol.room_lock(room):
            try:
                stored = await self.protocol.store.append_message(room, username, request.message)
            except Exception as e:
                logger.error("❌ Error saving message to %s: %s", room, e)
                return
            await self.protocol.registry.broadcast_to(room, stored.broadcast_payload())

    async def disconnect(self) -> None:
        if self.closed:
            return
        self.state = SessionState.CLOSED
        self.protocol.registry.leave(self.connection.id)
        self.protocol._forget(self.connection.id)
        logger.info("✗ User %s disconnected. Total: %d", self.connection.id, len(self.protocol.sessions))

    def drop(self) -> None:
        """A send to this connection failed; it is gone from the registry."""
        if self.closed:
            return
        self.state = SessionState.CLOSED
        self.room = None
        self.protocol._forget(self.connection.id)
        logger.info("✗ User %s dropped after send failure. Total: %d", self.connection.id, len(self.protocol.sessions))

    async def _authorize(self, room: str, username: str) -> None:
        try:
            allowed = await self.protocol.guard.is_authorized(room, username)
        except StoreUnavailable as e:
            logger.error("❌ Access check failed for %s in %s: %s", username, room, e)
            raise AccessDenied() from e

        if not allowed:
            logger.warning("Access denied: %s -> %s", username, room)
            raise AccessDenied()

    async def _emit(self, event: str, data: Any) -> None:
        if self.closed:
            return
        try:
            await self.connection.emit(event, data)
        except Exception as e:
            logger.error("Send error to %s: %s", self.connection.id, e)

# backend/api/websocket.py

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from services.chat_protocol import ChatProtocol, ERROR
from services.session_registry import Connection

logger = logging.getLogger(__name__)

router = APIRouter()

# ============================================================================
# WEBSOCKET ENDPOINT
# ============================================================================

@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, user_id: str = "anonymous"):
    """
    WebSocket endpoint for room-gated chat.

    Every frame is a JSON envelope: {"event": "<name>", "data": <payload>}

    Client -> Server Events:
    ------------------------
    Join Room:
        {"event": "join room", "data": {"room": "general", "username": "alice"}}
        Response (joiner only): {"event": "chat history", "data": [
            {"username": "bob", "message": "hi", "timestamp": "..."}
        ]}

    Send Message:
        {"event": "chat message", "data": {"room": "general", "username": "alice", "message": "hello"}}
        Broadcast (whole room, sender included):
            {"event": "chat message", "data": {"username": "alice", "message": "hello"}}

    Server -> Client Errors:
    ------------------------
        {"event": "error", "data": "Access Denied"}
        {"event": "error", "data": "Invalid payload"}
        {"event": "error", "data": "Invalid JSON"}

    Lifecycle:
    ==========
    1. Client connects (user_id query parameter is for logs only)
    2. Client sends "join room"; access is checked against the room directory
    3. Each "chat message" is re-checked, persisted, then broadcast
    4. On disconnect, the connection is removed from its room

    Frames from one client are handled strictly in order.
    """
    protocol: ChatProtocol = websocket.app.state.chat_protocol

    await websocket.accept()
    session = protocol.open_session(Connection(websocket), user_id)

    try:
        while True:
            data = await websocket.receive_text()

            try:
                envelope = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_json({"event": ERROR, "data": "Invalid JSON"})
                continue

            if not isinstance(envelope, dict):
                await websocket.send_json({"event": ERROR, "data": "Invalid payload"})
                continue

            event = envelope.get("event")
            logger.debug("Websocket input: Event: %s, Connection: %s", event, session.connection.id)
            await session.handle_event(event, envelope.get("data"))

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error("WebSocket error: %s", e)
    finally:
        await session.disconnect()

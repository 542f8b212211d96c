# backend/services/store.py

from __future__ import annotations

import asyncio
import json
import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Protocol, Set

from core.errors import StoreUnavailable
from models.models import ChatMessage

logger = logging.getLogger(__name__)

# ============================================================================
# STORE INTERFACES
# ============================================================================

class RoomDirectory(Protocol):
    async def get_authorized_users(self, room: str) -> Optional[Set[str]]:
        """Authorized usernames for a room, or None if the room does not exist."""
        ...


class MessageStore(Protocol):
    async def append_message(self, room: str, username: str, message: str) -> ChatMessage:
        ...

    async def get_history(self, room: str) -> List[ChatMessage]:
        ...


class ChatStore(RoomDirectory, MessageStore, Protocol):
    """Room directory and message store behind one connection."""

    name: str

    async def connect(self) -> None:
        ...

    async def close(self) -> None:
        ...


# ============================================================================
# IN-MEMORY STORE
# ============================================================================

class InMemoryChatStore:
    """
    Room directory + message log held in process memory.

    Room access can be seeded from a JSON file mapping room name to a list
    of usernames:

        {
            "general": ["alice", "bob"],
            "random": ["alice"]
        }

    Messages are lost on restart. Use PostgresChatStore for durability.
    """

    name = "memory"

    def __init__(self, rooms_file: Optional[str] = None) -> None:
        self.rooms_file = rooms_file
        self.rooms: Dict[str, Set[str]] = {}
        self.messages: Dict[str, List[ChatMessage]] = {}
        self._last_timestamp: Optional[datetime] = None

    async def connect(self) -> None:
        if self.rooms_file:
            self.load_rooms(self.rooms_file)

    async def close(self) -> None:
        pass

    def load_rooms(self, path: str) -> None:
        """
        Load room access from a JSON file.

        A missing file leaves the directory empty; a malformed one is
        treated as a store failure.
        """
        if not os.path.exists(path):
            logger.warning("Rooms file %s not found - no rooms provisioned", path)
            return
        try:
            with open(path, "r") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise StoreUnavailable(f"Could not load rooms from {path}: {e}") from e

        if not isinstance(data, dict) or not all(
            isinstance(users, list) and all(isinstance(u, str) for u in users)
            for users in data.values()
        ):
            raise StoreUnavailable(f"{path} must map room names to lists of usernames")

        for room, users in data.items():
            self.set_authorized_users(room, users)
        logger.info("✓ Loaded %d rooms from %s", len(self.rooms), path)

    def set_authorized_users(self, room: str, users: Iterable[str]) -> None:
        """Provision (or replace) the authorized user set of a room."""
        self.rooms[room.lower()] = {u.lower() for u in users}

    def remove_room(self, room: str) -> None:
        self.rooms.pop(room.lower(), None)

    async def get_authorized_users(self, room: str) -> Optional[Set[str]]:
        users = self.rooms.get(room)
        return set(users) if users is not None else None

    async def append_message(self, room: str, username: str, message: str) -> ChatMessage:
        chat_message = ChatMessage(
            room=room,
            username=username,
            message=message,
            timestamp=self._next_timestamp(),
        )
        self.messages.setdefault(room, []).append(chat_message)
        # Yield like a real I/O call would
        await asyncio.sleep(0)
        return chat_message

    async def get_history(self, room: str) -> List[ChatMessage]:
        return list(self.messages.get(room, []))

    def _next_timestamp(self) -> datetime:
        # Strictly increasing even when the clock doesn't move between calls
        now = datetime.now(timezone.utc)
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now

# backend/services/access_guard.py

from __future__ import annotations

import logging

from core.errors import StoreUnavailable
from services.store import RoomDirectory

logger = logging.getLogger(__name__)


class AccessGuard:
    """
    Decides whether a username may join or post in a room.

    Consulted on every join AND every message - decisions are never cached,
    so revoking a user in the directory takes effect on their next send.
    """

    def __init__(self, directory: RoomDirectory) -> None:
        self.directory = directory

    async def is_authorized(self, room: str, username: str) -> bool:
        """
        Args:
            room: Room name (normalized again here)
            username: Username (normalized again here)

        Returns:
            False if the room does not exist or the user is not in its set

        Raises:
            StoreUnavailable: the directory could not be queried. Callers
                must treat this as a denial and log it.
        """
        room = room.lower()
        username = username.lower()

        try:
            users = await self.directory.get_authorized_users(room)
        except StoreUnavailable:
            raise
        except Exception as e:
            raise StoreUnavailable(f"Room directory lookup failed: {e}") from e

        if users is None:
            return False
        return username in users

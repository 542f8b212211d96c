# backend/services/postgres_store.py

from __future__ import annotations

import logging
import ssl
from typing import Any, List, Optional, Set

import asyncpg

from core.errors import StoreUnavailable
from models.models import ChatMessage

logger = logging.getLogger(__name__)

# One shared message table keyed by room. The room name is only ever bound
# as a query parameter, never formatted into SQL text.
CREATE_SCHEMA = """
    CREATE TABLE IF NOT EXISTS rooms (
        room_name TEXT PRIMARY KEY,
        users TEXT[] NOT NULL DEFAULT '{}'
    );
    CREATE TABLE IF NOT EXISTS chat_messages (
        id BIGSERIAL PRIMARY KEY,
        room TEXT NOT NULL,
        username TEXT NOT NULL,
        message TEXT NOT NULL,
        timestamp TIMESTAMPTZ NOT NULL DEFAULT now()
    );
    CREATE INDEX IF NOT EXISTS idx_chat_messages_room_timestamp
        ON chat_messages (room, timestamp, id);
"""

SELECT_USERS = "SELECT users FROM rooms WHERE room_name = $1"

INSERT_MESSAGE = """
    INSERT INTO chat_messages (room, username, message)
    VALUES ($1, $2, $3)
    RETURNING room, username, message, timestamp
"""

SELECT_HISTORY = """
    SELECT room, username, message, timestamp
    FROM chat_messages
    WHERE room = $1
    ORDER BY timestamp ASC, id ASC
"""


def ssl_for_url(database_url: str) -> Any:
    """
    Local databases run without TLS. Hosted ones get TLS without
    certificate verification (managed providers use self-signed chains).
    """
    if database_url.startswith("postgresql://localhost"):
        return False
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


class PostgresChatStore:
    """
    Room directory + message store on PostgreSQL via an asyncpg pool.

    Tables:
        rooms:          room_name -> users[] (provisioned externally)
        chat_messages:  (room, username, message, timestamp) log
    """

    name = "postgres"

    def __init__(
        self,
        database_url: str,
        min_size: int = 1,
        max_size: int = 10,
        auto_create_schema: bool = True,
        pool: Optional[Any] = None,
    ) -> None:
        self.database_url = database_url
        self.min_size = min_size
        self.max_size = max_size
        self.auto_create_schema = auto_create_schema
        self.pool = pool

    async def connect(self) -> None:
        """Create the pool and (optionally) the schema."""
        if self.pool is None:
            try:
                self.pool = await asyncpg.create_pool(
                    dsn=self.database_url,
                    min_size=self.min_size,
                    max_size=self.max_size,
                    ssl=ssl_for_url(self.database_url),
                )
            except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
                raise StoreUnavailable(f"Could not connect to PostgreSQL: {e}") from e

        if self.auto_create_schema:
            try:
                await self.pool.execute(CREATE_SCHEMA)
            except (OSError, asyncpg.PostgresError) as e:
                raise StoreUnavailable(f"Could not create schema: {e}") from e

        logger.info("✓ Connected to PostgreSQL")

    async def close(self) -> None:
        if self.pool is not None:
            await self.pool.close()
            self.pool = None
            logger.info("PostgreSQL pool closed")

    async def get_authorized_users(self, room: str) -> Optional[Set[str]]:
        row = await self._fetchrow(SELECT_USERS, room)
        if row is None:
            return None
        return {u.lower() for u in (row["users"] or [])}

    async def append_message(self, room: str, username: str, message: str) -> ChatMessage:
        row = await self._fetchrow(INSERT_MESSAGE, room, username, message)
        if row is None:
            raise StoreUnavailable("INSERT returned no row")
        return ChatMessage(**dict(row))

    async def get_history(self, room: str) -> List[ChatMessage]:
        rows = await self._fetch(SELECT_HISTORY, room)
        return [ChatMessage(**dict(row)) for row in rows]

    async def _fetchrow(self, query: str, *args: Any) -> Any:
        self._require_pool()
        try:
            return await self.pool.fetchrow(query, *args)
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            raise StoreUnavailable(str(e)) from e

    async def _fetch(self, query: str, *args: Any) -> List[Any]:
        self._require_pool()
        try:
            return await self.pool.fetch(query, *args)
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            raise StoreUnavailable(str(e)) from e

    def _require_pool(self) -> None:
        if self.pool is None:
            raise StoreUnavailable("Store is not connected")

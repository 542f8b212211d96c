"""Shared fixtures for the chat relay tests."""

from typing import Any, List

import pytest

from services.chat_protocol import ChatProtocol
from services.session_registry import Connection, SessionRegistry
from services.store import InMemoryChatStore


class FakeTransport:
    """Records every JSON frame sent to it."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: List[Any] = []
        self.fail = fail

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise ConnectionError("socket closed")
        self.sent.append(data)

    def events(self, name: str) -> List[Any]:
        return [frame["data"] for frame in self.sent if frame["event"] == name]


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def store() -> InMemoryChatStore:
    store = InMemoryChatStore()
    store.set_authorized_users("general", ["alice", "bob"])
    store.set_authorized_users("random", ["alice", "dave"])
    return store


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture
def protocol(store, registry) -> ChatProtocol:
    return ChatProtocol(store, registry)


@pytest.fixture
def make_connection():
    def _make(connection_id: str, fail: bool = False) -> Connection:
        return Connection(FakeTransport(fail=fail), connection_id=connection_id)

    return _make

"""Tests for InMemoryChatStore."""

import json

import pytest

from core.errors import StoreUnavailable
from services.store import InMemoryChatStore

pytestmark = pytest.mark.anyio


async def test_load_rooms_from_file(tmp_path) -> None:
    path = tmp_path / "rooms.json"
    path.write_text(json.dumps({"General": ["Alice", "bob"]}))
    store = InMemoryChatStore(rooms_file=str(path))

    await store.connect()

    assert await store.get_authorized_users("general") == {"alice", "bob"}


async def test_missing_rooms_file_leaves_directory_empty(tmp_path) -> None:
    store = InMemoryChatStore(rooms_file=str(tmp_path / "absent.json"))
    await store.connect()
    assert store.rooms == {}


async def test_malformed_rooms_file_raises(tmp_path) -> None:
    path = tmp_path / "rooms.json"
    path.write_text("{not json")
    with pytest.raises(StoreUnavailable):
        await InMemoryChatStore(rooms_file=str(path)).connect()


async def test_unknown_room_returns_none() -> None:
    assert await InMemoryChatStore().get_authorized_users("general") is None


async def test_timestamps_strictly_increase() -> None:
    store = InMemoryChatStore()
    stored = [await store.append_message("general", "alice", str(i)) for i in range(20)]
    timestamps = [m.timestamp for m in stored]
    assert timestamps == sorted(set(timestamps))


async def test_history_is_per_room() -> None:
    store = InMemoryChatStore()
    await store.append_message("general", "alice", "g")
    await store.append_message("random", "alice", "r")
    assert [m.message for m in await store.get_history("general")] == ["g"]
    assert await store.get_history("empty") == []


@pytest.mark.parametrize(
    "content",
    [
        {"general": "alice"},
        ["general", "alice"],
        {"general": ["alice", 7]},
    ],
)
async def test_rooms_file_with_wrong_shape_raises(tmp_path, content) -> None:
    path = tmp_path / "rooms.json"
    path.write_text(json.dumps(content))
    store = InMemoryChatStore(rooms_file=str(path))

    with pytest.raises(StoreUnavailable, match="lists of usernames"):
        await store.connect()
    assert store.rooms == {}

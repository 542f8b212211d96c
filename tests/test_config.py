"""Tests for settings and store selection."""

import logging

import pytest
from fastapi.testclient import TestClient

from core.config import Settings
from core.errors import ConfigurationError, StoreUnavailable
from core.logging import resolve_level, setup_logging
from main import build_store, create_app
from services.postgres_store import PostgresChatStore
from services.store import InMemoryChatStore


@pytest.fixture
def env(monkeypatch):
    for name in ("STORE_BACKEND", "DATABASE_URL", "ROOMS_FILE", "PORT", "DB_AUTO_CREATE_SCHEMA", "DB_POOL_MAX_SIZE", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("core.config.load_dotenv", lambda: None)
    return monkeypatch


def test_defaults(env) -> None:
    settings = Settings()
    assert settings.STORE_BACKEND == "postgres"
    assert settings.PORT == 10000
    assert settings.DB_AUTO_CREATE_SCHEMA is True


def test_postgres_without_database_url_is_fatal(env) -> None:
    with pytest.raises(ConfigurationError, match="DATABASE_URL"):
        build_store(Settings())


def test_unknown_backend_is_fatal(env) -> None:
    env.setenv("STORE_BACKEND", "mongo")
    with pytest.raises(ConfigurationError, match="mongo"):
        build_store(Settings())


def test_memory_backend(env) -> None:
    env.setenv("STORE_BACKEND", "memory")
    env.setenv("ROOMS_FILE", "seed.json")
    store = build_store(Settings())
    assert isinstance(store, InMemoryChatStore)
    assert store.rooms_file == "seed.json"


def test_postgres_backend(env) -> None:
    env.setenv("DATABASE_URL", "postgresql://localhost/chat")
    env.setenv("DB_POOL_MAX_SIZE", "3")
    store = build_store(Settings())
    assert isinstance(store, PostgresChatStore)
    assert store.max_size == 3
    assert store.pool is None

class UnreachableStore(InMemoryChatStore):
    async def connect(self) -> None:
        raise StoreUnavailable("connection refused")


def test_store_connect_failure_is_fatal_at_startup() -> None:
    app = create_app(store=UnreachableStore())
    with pytest.raises(ConfigurationError, match="connection refused"):
        with TestClient(app):
            pass
    assert not hasattr(app.state, "chat_protocol")


def test_log_level_from_env(env) -> None:
    env.setenv("LOG_LEVEL", "debug")
    assert Settings().LOG_LEVEL == "debug"
    assert resolve_level("debug") == logging.DEBUG
    assert resolve_level("nonsense") == logging.INFO
    assert resolve_level(None) == logging.INFO


def test_setup_logging_keeps_libraries_quiet() -> None:
    root = logging.getLogger()
    previous = root.level
    try:
        setup_logging("DEBUG")
        assert root.level == logging.DEBUG
        assert logging.getLogger("asyncpg").level == logging.WARNING
        assert logging.getLogger("uvicorn.access").level == logging.WARNING
    finally:
        root.setLevel(previous)

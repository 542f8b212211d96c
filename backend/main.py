# backend/main.py

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import Settings, settings as default_settings
from core.errors import ConfigurationError, StoreUnavailable
from core.logging import setup_logging, get_logger
from services.chat_protocol import ChatProtocol
from services.postgres_store import PostgresChatStore
from services.store import ChatStore, InMemoryChatStore
from api.routes import root, health
from api import websocket as websocket_module

# Configure logging first
setup_logging(default_settings.LOG_LEVEL)
logger = get_logger(__name__)


def build_store(settings: Settings) -> ChatStore:
    """Pick the store backend. Raises ConfigurationError on bad settings."""
    settings.validate()
    if settings.STORE_BACKEND == "memory":
        return InMemoryChatStore(rooms_file=settings.ROOMS_FILE)
    return PostgresChatStore(
        settings.DATABASE_URL,
        min_size=settings.DB_POOL_MIN_SIZE,
        max_size=settings.DB_POOL_MAX_SIZE,
        auto_create_schema=settings.DB_AUTO_CREATE_SCHEMA,
    )


def create_app(settings: Optional[Settings] = None, store: Optional[ChatStore] = None) -> FastAPI:
    settings = settings or default_settings

    # FastAPI app
    app = FastAPI(title="Room-gated Chat Relay")

    # CORS (relaxed for now – tighten in prod)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    # REST routes
    app.include_router(root.router)
    app.include_router(health.router)

    # WebSocket routes
    app.include_router(websocket_module.router)

    @app.on_event("startup")
    async def startup_event():
        logger.info("🚀 Application starting")
        chat_store = store or build_store(settings)
        try:
            await chat_store.connect()
        except StoreUnavailable as e:
            logger.error("❌ Store startup failed: %s", e)
            raise ConfigurationError(str(e)) from e

        app.state.chat_protocol = ChatProtocol(chat_store)
        logger.info("✓ Using %s store", chat_store.name)

    @app.on_event("shutdown")
    async def on_shutdown():
        protocol = getattr(app.state, "chat_protocol", None)
        if protocol is not None:
            await protocol.store.close()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host=default_settings.HOST, port=default_settings.PORT)

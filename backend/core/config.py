# backend/core/config.py
import os
from typing import Literal
from dotenv import load_dotenv

from core.errors import ConfigurationError


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """
    Setup environment variables.
        - STORE_BACKEND the store to use: "postgres" or "memory"
        - DATABASE_URL the PostgreSQL connection string (required for postgres)
        - ROOMS_FILE the JSON file seeding room access for the memory store
    """

    def __init__(self) -> None:
        # Load environment variables from the .env file
        load_dotenv()

        self.STORE_BACKEND: Literal["postgres", "memory"] = os.getenv("STORE_BACKEND", "postgres").lower()

        self.DATABASE_URL: str = os.getenv("DATABASE_URL", "")
        self.DB_POOL_MIN_SIZE: int = int(os.getenv("DB_POOL_MIN_SIZE", "1"))
        self.DB_POOL_MAX_SIZE: int = int(os.getenv("DB_POOL_MAX_SIZE", "10"))
        self.DB_AUTO_CREATE_SCHEMA: bool = _env_bool("DB_AUTO_CREATE_SCHEMA", "true")

        self.ROOMS_FILE: str = os.getenv("ROOMS_FILE", "rooms.json")

        self.HOST: str = os.getenv("HOST", "0.0.0.0")
        self.PORT: int = int(os.getenv("PORT", "10000"))

        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    def validate(self) -> None:
        """Raise ConfigurationError if the process must not start."""
        if self.STORE_BACKEND not in ("postgres", "memory"):
            raise ConfigurationError(f"Unknown STORE_BACKEND: {self.STORE_BACKEND!r}")
        if self.STORE_BACKEND == "postgres" and not self.DATABASE_URL:
            raise ConfigurationError("DATABASE_URL is not defined")


settings = Settings()

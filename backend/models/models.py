# backend/models/models.py
from datetime import datetime

from pydantic import BaseModel, field_validator


class ChatMessage(BaseModel):
    """A persisted message. Timestamp is assigned by the store, never the client."""

    room: str
    username: str
    message: str
    timestamp: datetime

    def history_entry(self) -> dict:
        return {
            "username": self.username,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }

    def broadcast_payload(self) -> dict:
        return {"username": self.username, "message": self.message}


class JoinRoomRequest(BaseModel):
    room: str
    username: str

    @field_validator("room", "username")
    @classmethod
    def normalize(cls, value: str) -> str:
        value = value.lower()
        if not value:
            raise ValueError("must not be empty")
        return value


class ChatMessageRequest(JoinRoomRequest):
    message: str

    @field_validator("message")
    @classmethod
    def non_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("message must not be empty")
        return value

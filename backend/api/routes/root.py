# backend/api/routes/root.py

from fastapi import APIRouter

router = APIRouter()


@router.get("/")
async def root():
    """
    Root endpoint - API information.
    """
    return {
        "message": "Room-gated chat relay",
        "version": "1.0",
        "events": {
            "inbound": ["join room", "chat message"],
            "outbound": ["chat history", "chat message", "error"],
        },
        "endpoints": {
            "websocket": "/ws",
            "health": "/health",
        },
    }

# backend/api/routes/health.py

from fastapi import APIRouter, Request

router = APIRouter()

@router.get("/health")
async def health(request: Request):
    """
    Health check endpoint.

    Returns:
        dict: Status, live connection count, active room count, store backend
    """
    protocol = request.app.state.chat_protocol
    return {
        "status": "healthy",
        "store": protocol.store.name,
        "connections": len(protocol.sessions),
        "active_rooms_with_members": len(protocol.registry.rooms),
    }

from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, WebSocket

from app.chat.api.dto import BaseResponse
from app.chat.api.handler import handle_history, handle_socket
from app.chat.service.framing import CLOSE_SERVER_ERROR
from app.chat.service.session_service import ChatRoom
from app.core.auth import require_admin_key
from app.core.logger import get_logger

chat_router = APIRouter(tags=["Chat"])
logger = get_logger("ChatRouter")


def get_room(request: Request) -> ChatRoom:
    """Dependency to get the room from app.state."""
    room = getattr(request.app.state, "robot", None)
    if room is None:
        raise HTTPException(status_code=503, detail="Chat room not available")
    return room


@chat_router.websocket("/ws")
async def chat_socket(
    websocket: WebSocket,
    name: Optional[str] = Query(default=None),
    secret: Optional[str] = Query(default=None),
):
    """Room WebSocket. Refused connections get one `[Connection Refused]` frame and close 1008."""
    await websocket.accept()
    room: Optional[ChatRoom] = getattr(websocket.app.state, "robot", None)
    if room is None:
        logger.error("WebSocket opened while the service is degraded")
        await websocket.close(code=CLOSE_SERVER_ERROR, reason="service unavailable")
        return
    await handle_socket(websocket, room, name, secret)


@chat_router.get("/robot/history", response_model=BaseResponse, dependencies=[Depends(require_admin_key)])
async def get_history(
    view: Literal["full", "context"] = Query(default="full", description="'context' drops ephemeral entries"),
    room: ChatRoom = Depends(get_room),
):
    history = await handle_history(room, view)
    return BaseResponse(
        status=True,
        message="History fetched successfully",
        data=history.model_dump(mode="json"),
    )


@chat_router.delete("/robot/memory", response_model=BaseResponse, dependencies=[Depends(require_admin_key)])
async def clear_memory(room: ChatRoom = Depends(get_room)):
    try:
        await room.clear_memory()
    except Exception as e:
        logger.error(f"Failed to clear memory: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to clear memory: {str(e)}")
    return BaseResponse(status=True, message="Memory cleared", data=None)

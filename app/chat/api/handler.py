from fastapi import WebSocket, WebSocketDisconnect

from app.chat.service.framing import CLOSE_SERVER_ERROR
from app.chat.service.session_service import ChatRoom
from app.chat.api.dto import HistoryMessage, HistoryResponse
from app.core.logger import get_logger

logger = get_logger("ChatSocket")


async def handle_socket(websocket: WebSocket, room: ChatRoom, name: str | None, secret: str | None) -> None:
    """Hand the accepted socket to the room and pump its frames until it closes."""
    try:
        session = await room.connect(websocket, name, secret)
    except Exception as e:
        logger.error(f"Failed to admit {name!r}: {e}")
        await websocket.close(code=CLOSE_SERVER_ERROR, reason="server error")
        return
    if session is None:
        return

    code = 1005
    reason = None
    try:
        while True:
            event = await websocket.receive()
            if event["type"] == "websocket.disconnect":
                code = event.get("code", 1005)
                reason = event.get("reason") or None
                break
            payload = event.get("text")
            if payload is None:
                payload = event.get("bytes") or b""
            await room.on_message(session.session_id, payload)
    except WebSocketDisconnect as e:
        code, reason = e.code, e.reason or None
    except Exception as e:
        logger.error(f"Socket loop for {session.identity} failed: {e}")
        code = CLOSE_SERVER_ERROR
    finally:
        await room.on_close(session.session_id, code, reason)


async def handle_history(room: ChatRoom, view: str) -> HistoryResponse:
    messages = await room.history(view)
    return HistoryResponse(
        view=view,
        count=len(messages),
        messages=[HistoryMessage(**m.model_dump(mode="json")) for m in messages],
    )

"""WebSocket router for live notifications."""
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.db import get_db
from app.services.websocket_manager import manager

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    db: AsyncSession = Depends(get_db),
):
    """
    WebSocket endpoint for live notifications.

    Clients connect with token as query parameter:
    ws://host/api/ws?token=<access_token>

    Message Types (Client -> Server):
    - ping: Keep-alive

    Message Types (Server -> Client):
    - connected: Handshake acknowledgement
    - notification: A notification was stored for this user
    - pong: Keep-alive reply
    """
    await websocket.accept()

    user = await deps.get_current_user_websocket(websocket, db)
    if not user:
        await websocket.send_json({
            "type": "error",
            "data": {"message": "Authentication failed", "code": "auth_failed"}
        })
        await websocket.close(code=1008, reason="Authentication failed")
        return

    user_id = user.id
    # Release the pooled connection; the socket may stay open for hours
    await db.close()

    await manager.connect(websocket, user_id)
    try:
        await websocket.send_json({"type": "connected", "data": {"user_id": user_id}})
        while True:
            message = await websocket.receive_json()
            if message.get("type") == "ping":
                await websocket.send_json({"type": "pong"})
    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected normally - User: {user_id}")
    except Exception as e:
        logger.error(f"WebSocket error - User: {user_id}: {e}", exc_info=True)
        try:
            await websocket.close(code=1011, reason="Internal server error")
        except RuntimeError:
            logger.debug(f"WebSocket for user {user_id} already closed")
    finally:
        await manager.disconnect(websocket, user_id)

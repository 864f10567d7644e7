# chatline/api/realtime.py

import asyncio
import json
from typing import Optional

from fastapi import APIRouter, Query, WebSocket

from chatline.core.notifier import envelope
from chatline.core.user import get_user
from chatline.infra.database import db_session
from chatline.utils.logger import logger

router = APIRouter()

CLOSE_UNKNOWN_USER = 4001
CLOSE_SUPERSEDED = 4000


def _user_exists(user_id: str) -> bool:
    with db_session() as db:
        return get_user(db, user_id) is not None


@router.websocket("/ws")
async def realtime_endpoint(websocket: WebSocket, user_id: Optional[str] = Query(None, alias="userId")):
    """
    Live connection for one user.

    Server -> client frames are `{"type": ..., "data": ...}`:
    `message.created` for new messages, `presence` with the online users,
    and `pong`. The only client frame acted on is `{"type": "ping"}`;
    binary and malformed frames are ignored.

    An unknown user is accepted and then closed with 4001, so the code
    reaches the client instead of a bare handshake 403.
    """
    registry = websocket.app.state.registry
    notifier = websocket.app.state.notifier

    if not user_id or not await asyncio.to_thread(_user_exists, user_id):
        logger.warning("WebSocket handshake rejected", extra={"user_id": user_id})
        await websocket.accept()
        await websocket.close(code=CLOSE_UNKNOWN_USER)
        return

    await websocket.accept()
    previous = registry.register(user_id, websocket)
    if previous is not None:
        try:
            await previous.close(code=CLOSE_SUPERSEDED)
        except RuntimeError:
            # Already closed on its side
            pass
    logger.info("WebSocket connected", extra={"user_id": user_id, "online": len(registry)})
    notifier.broadcast_presence()

    try:
        while True:
            # Still read after a server-side close, until the client answers it
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                continue
            try:
                frame = json.loads(raw)
            except ValueError:
                continue
            if isinstance(frame, dict) and frame.get("type") == "ping":
                notifier.send_to(user_id, envelope("pong"))
    finally:
        if registry.unregister(user_id, websocket):
            logger.info("WebSocket disconnected", extra={"user_id": user_id})
            notifier.broadcast_presence()

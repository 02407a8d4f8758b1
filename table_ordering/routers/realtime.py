from __future__ import annotations

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from table_ordering.core.config import WS_PATH
from table_ordering.core.realtime_events import PING, PONG
from table_ordering.services.broadcast import broadcast_channel

router = APIRouter(tags=["realtime"])
logger = logging.getLogger(__name__)


@router.websocket(WS_PATH)
async def realtime_socket(websocket: WebSocket):
    await broadcast_channel.connect(websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("ignoring malformed websocket message")
                continue

            message_type = message.get("type") if isinstance(message, dict) else None
            if message_type == PING:
                await broadcast_channel.reply(websocket, {"type": PONG})
                continue
            logger.info("ignoring websocket message", extra={"event_type": message_type})
    except WebSocketDisconnect:
        pass
    finally:
        broadcast_channel.disconnect(websocket)

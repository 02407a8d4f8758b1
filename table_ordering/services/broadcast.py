from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from threading import Lock
from typing import Any

from fastapi import WebSocket

from table_ordering.core.metrics import request_metrics

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class _Listener:
    websocket: WebSocket
    loop: asyncio.AbstractEventLoop
    send_lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class BroadcastChannel:
    """Fan-out of messages to every open WebSocket connection.

    No filtering, no replay and no acknowledgement: a listener that is not
    connected when a message is published never receives it. Each send is
    scheduled on the event loop that owns the connection, so synchronous
    request handlers running on the thread pool can publish safely.
    """

    def __init__(self) -> None:
        self._listeners: dict[int, _Listener] = {}
        self._lock = Lock()

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        listener = _Listener(websocket=websocket, loop=asyncio.get_running_loop())
        with self._lock:
            self._listeners[id(websocket)] = listener
        logger.info("websocket listener connected", extra={"listeners": self.listener_count})

    def disconnect(self, websocket: WebSocket) -> None:
        with self._lock:
            removed = self._listeners.pop(id(websocket), None)
        if removed is not None:
            logger.info("websocket listener disconnected", extra={"listeners": self.listener_count})

    def publish(self, message: dict[str, Any]) -> int:
        """Schedule ``message`` for every open listener; returns how many were targeted."""
        with self._lock:
            listeners = list(self._listeners.values())

        event_type = message.get("type")
        scheduled = 0
        for listener in listeners:
            send = self._send(listener, message)
            try:
                asyncio.run_coroutine_threadsafe(send, listener.loop)
                scheduled += 1
            except RuntimeError:
                # loop já encerrado: a conexão morreu sem passar pelo disconnect
                send.close()
                self.disconnect(listener.websocket)

        request_metrics.observe_broadcast(str(event_type))
        logger.info("broadcast published", extra={"event_type": event_type, "listeners": scheduled})
        return scheduled

    async def reply(self, websocket: WebSocket, message: dict[str, Any]) -> None:
        """Send to a single connection, serialized with broadcasts to it."""
        with self._lock:
            listener = self._listeners.get(id(websocket))
        if listener is None:
            await websocket.send_json(message)
            return
        async with listener.send_lock:
            await websocket.send_json(message)

    async def _send(self, listener: _Listener, message: dict[str, Any]) -> None:
        try:
            async with listener.send_lock:
                await listener.websocket.send_json(message)
        except Exception:
            logger.warning("dropping websocket listener after failed send", exc_info=True)
            self.disconnect(listener.websocket)


broadcast_channel = BroadcastChannel()

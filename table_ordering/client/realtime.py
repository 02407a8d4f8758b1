from __future__ import annotations

import asyncio
import inspect
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import websockets
from websockets.exceptions import WebSocketException

from table_ordering.core.realtime_events import PING

logger = logging.getLogger(__name__)

PING_INTERVAL_SECONDS = 30.0
RECONNECT_DELAY_SECONDS = 3.0
ALL_EVENTS = "*"

Handler = Callable[[Dict[str, Any]], Union[None, Awaitable[None]]]


class RealtimeListener:
    """Supervised connection to ``/ws`` that dispatches every received envelope.

    Reconnects after a fixed delay whenever the socket drops. ``max_attempts``
    caps the number of connection attempts (None means forever).
    """

    def __init__(
        self,
        url: str,
        *,
        connect: Optional[Callable[[str], Any]] = None,
        ping_interval: float = PING_INTERVAL_SECONDS,
        reconnect_delay: float = RECONNECT_DELAY_SECONDS,
        max_attempts: Optional[int] = None,
        on_connection_change: Optional[Callable[[bool], None]] = None,
    ):
        self.url = url
        self._connect = connect or websockets.connect
        self.ping_interval = ping_interval
        self.reconnect_delay = reconnect_delay
        self.max_attempts = max_attempts
        self._on_connection_change = on_connection_change
        self._handlers: Dict[str, List[Handler]] = {}
        self._stopped = asyncio.Event()
        self.connected = False
        self.attempts = 0

    def on(self, event_type: str, handler: Handler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)

    def stop(self) -> None:
        self._stopped.set()

    async def run(self) -> None:
        while not self._stopped.is_set():
            if self.max_attempts is not None and self.attempts >= self.max_attempts:
                logger.info("realtime listener giving up after %s attempts", self.attempts)
                return
            self.attempts += 1
            try:
                async with self._connect(self.url) as socket:
                    self._set_connected(True)
                    await self._consume(socket)
            except (OSError, WebSocketException, asyncio.TimeoutError) as exc:
                logger.warning("realtime connection lost attempt=%s error=%s", self.attempts, exc)
            finally:
                self._set_connected(False)

            if self._stopped.is_set():
                return
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.reconnect_delay)
            except asyncio.TimeoutError:
                pass

    async def _consume(self, socket) -> None:
        ping_task = asyncio.create_task(self._ping_loop(socket))
        stop_task = asyncio.create_task(self._stopped.wait())
        try:
            async for raw in _iterate_until(socket, stop_task):
                await self._dispatch(raw)
        finally:
            ping_task.cancel()
            stop_task.cancel()

    async def _ping_loop(self, socket) -> None:
        while True:
            await asyncio.sleep(self.ping_interval)
            try:
                await socket.send(json.dumps({"type": PING}))
            except (OSError, WebSocketException):
                return

    async def _dispatch(self, raw: Any) -> None:
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("ignoring malformed realtime message")
            return
        if not isinstance(message, dict):
            return

        event_type = message.get("type")
        handlers = self._handlers.get(str(event_type), []) + self._handlers.get(ALL_EVENTS, [])
        for handler in handlers:
            try:
                result = handler(message)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("realtime handler failed event_type=%s", event_type)

    def _set_connected(self, value: bool) -> None:
        if self.connected == value:
            return
        self.connected = value
        if self._on_connection_change is not None:
            self._on_connection_change(value)


async def _iterate_until(socket, stop_task: asyncio.Task):
    iterator = socket.__aiter__()
    while True:
        next_task = asyncio.ensure_future(iterator.__anext__())
        done, _ = await asyncio.wait({next_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        if next_task not in done:
            next_task.cancel()
            return
        try:
            yield next_task.result()
        except StopAsyncIteration:
            return

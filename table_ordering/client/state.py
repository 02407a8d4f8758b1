from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from table_ordering.client.api import ApiClient
from table_ordering.client.cart import Cart
from table_ordering.client.realtime import ALL_EVENTS, RealtimeListener
from table_ordering.client.staff_queue import StaffQueue
from table_ordering.client.tracker import OrderTracker

logger = logging.getLogger(__name__)


@dataclass
class AppState:
    """Client session state: cart, bound table, current order and the realtime feed.

    ``connect_realtime`` builds the ``/ws`` listener and routes every event to
    the tracker of the current order and to the staff queue, when present.
    ``connected`` follows the listener's connection changes.
    """

    api: ApiClient
    cart: Cart = field(default_factory=Cart)
    table_number: Optional[int] = None
    current_order: Optional[Dict[str, Any]] = None
    tracker: Optional[OrderTracker] = None
    staff_queue: Optional[StaffQueue] = None
    listener: Optional[RealtimeListener] = None
    connected: bool = False
    closed: bool = False
    _listener_task: Optional[asyncio.Task] = field(default=None, repr=False)

    def place_order(self, notes: str | None = None) -> Dict[str, Any]:
        payload = self.cart.to_checkout_payload(table_number=self.table_number, notes=notes)
        order = self.api.create_order(payload)
        self.track_order(order)
        self.cart.clear()
        logger.info("order placed number=%s table=%s", order.get("order_number"), self.table_number)
        return order

    def track_order(self, order: Dict[str, Any]) -> OrderTracker:
        self.current_order = order
        self.tracker = OrderTracker(self.api, order["order_number"], order)
        return self.tracker

    def watch_staff_queue(self, status_filter: Optional[str] = None) -> StaffQueue:
        self.staff_queue = StaffQueue(self.api, status_filter)
        self.staff_queue.refresh()
        return self.staff_queue

    def connect_realtime(self, url: str, **listener_options: Any) -> RealtimeListener:
        if self.closed:
            raise RuntimeError("AppState is closed")
        if self.listener is not None:
            self.listener.stop()
        self.listener = RealtimeListener(url, on_connection_change=self._set_connected, **listener_options)
        self.listener.on(ALL_EVENTS, self._route_event)
        return self.listener

    def start_realtime(self, url: str, **listener_options: Any) -> asyncio.Task:
        """Connect and run the listener as a task on the running event loop."""
        listener = self.connect_realtime(url, **listener_options)
        self._listener_task = asyncio.create_task(listener.run())
        return self._listener_task

    async def _route_event(self, message: Dict[str, Any]) -> None:
        if self.tracker is not None:
            await self.tracker.handle_event(message)
            self.current_order = self.tracker.order
        if self.staff_queue is not None:
            await self.staff_queue.handle_event(message)

    def _set_connected(self, value: bool) -> None:
        self.connected = value
        logger.info("realtime connection %s", "up" if value else "down")

    def close(self) -> None:
        if self.closed:
            return
        if self.listener is not None:
            self.listener.stop()
        if self._listener_task is not None and not self._listener_task.done():
            self._listener_task.cancel()
        self.cart.clear()
        self.table_number = None
        self.current_order = None
        self.tracker = None
        self.staff_queue = None
        self.listener = None
        self._listener_task = None
        self.connected = False
        self.api.close()
        self.closed = True

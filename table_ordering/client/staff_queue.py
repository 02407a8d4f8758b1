from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from table_ordering.client.api import ApiClient, ApiError
from table_ordering.core.order_status import NEXT_STATUS, ORDER_STATUSES, PREPARING, READY, SERVED
from table_ordering.core.realtime_events import ORDER_EVENT_TYPES

logger = logging.getLogger(__name__)

ACTION_LABELS = {
    PREPARING: "Start Preparing",
    READY: "Mark Ready",
    SERVED: "Mark Served",
}
COUNTED_STATUSES = ("pending", "preparing", "ready", "served")


def next_action(status: Optional[str]) -> Optional[Dict[str, str]]:
    target = NEXT_STATUS.get(status or "")
    if target is None:
        return None
    return {"status": target, "label": ACTION_LABELS[target]}


class StaffQueue:
    """Kitchen and floor queue; reloads the list on every order event."""

    def __init__(self, api: ApiClient, status_filter: Optional[str] = None):
        if status_filter is not None and status_filter not in ORDER_STATUSES:
            raise ValueError(f"Invalid status: {status_filter!r}")
        self.api = api
        self.status_filter = status_filter
        self.orders: List[Dict[str, Any]] = []
        self.last_error: Optional[str] = None

    def refresh(self) -> List[Dict[str, Any]]:
        try:
            self.orders = self.api.list_staff_orders(self.status_filter)
            self.last_error = None
        except ApiError as exc:
            self.last_error = exc.detail
            logger.warning("staff queue refresh failed error=%s", exc.detail)
        return self.orders

    def counts(self) -> Dict[str, int]:
        counts = {status: 0 for status in COUNTED_STATUSES}
        for order in self.orders:
            if order.get("status") in counts:
                counts[order["status"]] += 1
        counts["total"] = len(self.orders)
        return counts

    def advance(self, order_id: int) -> Optional[Dict[str, Any]]:
        order = next((entry for entry in self.orders if entry.get("id") == order_id), None)
        if order is None:
            raise LookupError(f"Order {order_id} is not in the queue")
        action = next_action(order.get("status"))
        if action is None:
            return None

        updated = self.api.update_order_status(order_id, action["status"])
        self.refresh()
        return updated

    async def handle_event(self, message: Dict[str, Any]) -> None:
        if message.get("type") in ORDER_EVENT_TYPES:
            # refetch síncrono (httpx) fora do loop de eventos
            await asyncio.to_thread(self.refresh)

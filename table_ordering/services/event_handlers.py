from __future__ import annotations

from table_ordering.core.realtime_events import NEW_ORDER, ORDER_STATUS_UPDATE
from table_ordering.services.broadcast import broadcast_channel
from table_ordering.services.event_bus import ORDER_CREATED, ORDER_STATUS_CHANGED, event_bus


def handle_order_created(payload: dict) -> None:
    broadcast_channel.publish({"type": NEW_ORDER, "data": payload["order"]})


def handle_order_status_changed(payload: dict) -> None:
    broadcast_channel.publish(
        {
            "type": ORDER_STATUS_UPDATE,
            "data": {
                "order_id": payload["order_id"],
                "order_number": payload.get("order_number"),
                "status": payload["status"],
            },
        }
    )


event_bus.subscribe(ORDER_CREATED, handle_order_created)
event_bus.subscribe(ORDER_STATUS_CHANGED, handle_order_status_changed)

from __future__ import annotations

from table_ordering.models.order import Order
from table_ordering.services.event_bus import ORDER_CREATED, ORDER_STATUS_CHANGED, event_bus
from table_ordering.services.serializers import order_to_dict


def build_status_payload(order: Order, previous_status: str | None = None) -> dict:
    return {
        "order_id": order.id,
        "order_number": order.order_number,
        "status": order.status,
        "previous_status": previous_status,
    }


def emit_order_created(order: Order) -> None:
    event_bus.emit(ORDER_CREATED, {"order": order_to_dict(order)})


def emit_order_status_changed(order: Order, previous_status: str | None) -> None:
    if previous_status and previous_status == order.status:
        return
    event_bus.emit(ORDER_STATUS_CHANGED, build_status_payload(order, previous_status=previous_status))

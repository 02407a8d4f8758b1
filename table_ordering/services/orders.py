import itertools
import logging
import time
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Iterable

from sqlalchemy import desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from table_ordering.core.config import ORDER_NUMBER_PREFIX, ORDER_STRICT_TRANSITIONS
from table_ordering.core.money import MAX_AMOUNT_CENTS, format_cents, to_cents
from table_ordering.core.order_status import PENDING, is_transition_allowed, normalize_order_status
from table_ordering.models.menu_item import MenuItem
from table_ordering.models.order import Order
from table_ordering.models.order_item import OrderItem
from table_ordering.services.order_events import emit_order_created, emit_order_status_changed
from table_ordering.services.tables import get_active_table, get_active_table_by_number

logger = logging.getLogger(__name__)

MAX_ITEM_QUANTITY = 999


class OrderError(Exception):
    pass


class OrderValidationError(OrderError, ValueError):
    pass


class OrderNotFoundError(OrderError, LookupError):
    pass


class InvalidTransitionError(OrderError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move order from {current} to {target}")
        self.current = current
        self.target = target


_sequence = itertools.count(1)
_sequence_lock = Lock()


def generate_order_number(now_ms: int | None = None) -> str:
    """Millisecond timestamp plus a process-wide sequence, unique within the same millisecond."""
    with _sequence_lock:
        seq = next(_sequence) % 10000
    millis = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{ORDER_NUMBER_PREFIX}-{millis}-{seq:04d}"


def _order_query(db: Session):
    return db.query(Order).options(
        selectinload(Order.order_items).joinedload(OrderItem.menu_item),
        joinedload(Order.table),
        joinedload(Order.customer),
    )


def _get(entry: Any, key: str, default=None):
    if isinstance(entry, dict):
        return entry.get(key, default)
    return getattr(entry, key, default)


def _normalize_line_items(items: Iterable[Any]) -> list[dict]:
    normalized: list[dict] = []
    for index, entry in enumerate(items):
        try:
            menu_item_id = int(_get(entry, "menu_item_id"))
        except (TypeError, ValueError) as exc:
            raise OrderValidationError(f"Item {index}: invalid menu item reference") from exc

        try:
            quantity = int(_get(entry, "quantity"))
        except (TypeError, ValueError) as exc:
            raise OrderValidationError(f"Item {index}: invalid quantity") from exc
        if quantity <= 0:
            raise OrderValidationError(f"Item {index}: quantity must be positive")
        if quantity > MAX_ITEM_QUANTITY:
            raise OrderValidationError(f"Item {index}: quantity must be at most {MAX_ITEM_QUANTITY}")

        try:
            unit_price_cents = to_cents(_get(entry, "unit_price"))
        except ValueError as exc:
            raise OrderValidationError(f"Item {index}: {exc}") from exc
        if unit_price_cents < 0:
            raise OrderValidationError(f"Item {index}: unit price must not be negative")

        expected_subtotal_cents = unit_price_cents * quantity
        if expected_subtotal_cents > MAX_AMOUNT_CENTS:
            raise OrderValidationError(f"Item {index}: subtotal exceeds {format_cents(MAX_AMOUNT_CENTS)}")
        declared_subtotal = _get(entry, "subtotal")
        if declared_subtotal is not None:
            try:
                declared_subtotal_cents = to_cents(declared_subtotal)
            except ValueError as exc:
                raise OrderValidationError(f"Item {index}: {exc}") from exc
            if declared_subtotal_cents != expected_subtotal_cents:
                raise OrderValidationError(
                    f"Item {index}: subtotal {format_cents(declared_subtotal_cents)} "
                    f"does not match {quantity} x {format_cents(unit_price_cents)}"
                )

        instructions = (_get(entry, "special_instructions") or "").strip() or None
        normalized.append(
            {
                "menu_item_id": menu_item_id,
                "quantity": quantity,
                "unit_price_cents": unit_price_cents,
                "subtotal_cents": expected_subtotal_cents,
                "special_instructions": instructions,
            }
        )
    return normalized


def _load_orderable_menu_items(db: Session, line_items: list[dict]) -> dict[int, MenuItem]:
    menu_item_ids = {entry["menu_item_id"] for entry in line_items}
    rows = db.query(MenuItem).filter(MenuItem.id.in_(menu_item_ids)).all()
    menu_items = {row.id: row for row in rows}

    for entry in line_items:
        menu_item = menu_items.get(entry["menu_item_id"])
        if menu_item is None or not menu_item.is_active or not menu_item.is_available:
            raise OrderValidationError(f"Menu item {entry['menu_item_id']} is not available")
        if menu_item.price_cents != entry["unit_price_cents"]:
            raise OrderValidationError(
                f"Price of menu item {menu_item.id} changed to {format_cents(menu_item.price_cents)}"
            )
    return menu_items


def _resolve_table_id(db: Session, table_id: int | None, table_number: int | None) -> int | None:
    if table_id is not None:
        return get_active_table(db, table_id).id
    if table_number is not None:
        return get_active_table_by_number(db, table_number).id
    return None


def create_order(
    db: Session,
    *,
    items: Iterable[Any],
    total_amount,
    table_id: int | None = None,
    table_number: int | None = None,
    customer_id: int | None = None,
    notes: str | None = None,
) -> Order:
    """Validate and persist an order with its items in one transaction, then emit NEW_ORDER.

    The declared total is checked against the server-side sum of line
    subtotals; any mismatch is rejected before anything is written.
    Raises OrderValidationError, TableNotFoundError or SQLAlchemyError.
    """
    line_items = _normalize_line_items(items)
    if not line_items:
        raise OrderValidationError("Order must contain at least one item")

    try:
        declared_total_cents = to_cents(total_amount)
    except ValueError as exc:
        raise OrderValidationError(str(exc)) from exc

    computed_total_cents = sum(entry["subtotal_cents"] for entry in line_items)
    if computed_total_cents > MAX_AMOUNT_CENTS:
        raise OrderValidationError(f"Order total exceeds {format_cents(MAX_AMOUNT_CENTS)}")
    if declared_total_cents != computed_total_cents:
        raise OrderValidationError(
            f"Total {format_cents(declared_total_cents)} does not match "
            f"items sum {format_cents(computed_total_cents)}"
        )

    menu_items = _load_orderable_menu_items(db, line_items)
    resolved_table_id = _resolve_table_id(db, table_id, table_number)

    prep_times = [
        menu_items[entry["menu_item_id"]].preparation_time
        for entry in line_items
        if menu_items[entry["menu_item_id"]].preparation_time
    ]

    order = Order(
        order_number=generate_order_number(),
        table_id=resolved_table_id,
        customer_id=customer_id,
        status=PENDING,
        total_cents=computed_total_cents,
        notes=(notes or "").strip() or None,
        estimated_time=max(prep_times) if prep_times else None,
    )

    try:
        db.add(order)
        db.flush()
        for entry in line_items:
            db.add(OrderItem(order_id=order.id, **entry))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("failed to persist order table_id=%s", resolved_table_id)
        raise

    order = _order_query(db).filter(Order.id == order.id).one()
    logger.info(
        "order created id=%s number=%s table_id=%s total=%s items=%s",
        order.id,
        order.order_number,
        order.table_id,
        format_cents(order.total_cents),
        len(line_items),
    )
    emit_order_created(order)
    return order


def get_order(db: Session, order_id: int) -> Order:
    order = _order_query(db).filter(Order.id == order_id).first()
    if not order:
        raise OrderNotFoundError(f"Order {order_id} not found")
    return order


def get_order_by_number(db: Session, order_number: str) -> Order:
    order = _order_query(db).filter(Order.order_number == order_number).first()
    if not order:
        raise OrderNotFoundError(f"Order {order_number} not found")
    return order


def list_orders(db: Session, status: str | None = None) -> list[Order]:
    query = _order_query(db)
    if status:
        try:
            query = query.filter(Order.status == normalize_order_status(status))
        except ValueError as exc:
            raise OrderValidationError(str(exc)) from exc
    return query.order_by(desc(Order.created_at), desc(Order.id)).all()


def advance_status(db: Session, order_id: int, status: str, *, strict: bool | None = None) -> Order:
    """Move the order to ``status`` and emit ORDER_STATUS_UPDATE.

    Setting the current status again is a no-op without an event. With
    ``strict`` (default: ORDER_STRICT_TRANSITIONS) only the forward/cancel
    transition table is accepted.
    """
    try:
        target = normalize_order_status(status)
    except ValueError as exc:
        raise OrderValidationError(str(exc)) from exc

    order = get_order(db, order_id)
    previous_status = order.status
    if previous_status == target:
        return order

    strict_mode = ORDER_STRICT_TRANSITIONS if strict is None else strict
    if not is_transition_allowed(previous_status, target, strict=strict_mode):
        raise InvalidTransitionError(previous_status, target)

    order.status = target
    order.updated_at = datetime.now(timezone.utc)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("failed to update order status id=%s", order_id)
        raise
    db.refresh(order)

    logger.info("order status changed id=%s %s -> %s", order.id, previous_status, order.status)
    emit_order_status_changed(order, previous_status)
    return order

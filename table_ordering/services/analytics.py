from __future__ import annotations

from datetime import datetime, time, timedelta, timezone

from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from table_ordering.core.order_status import CANCELLED
from table_ordering.models.menu_item import MenuItem
from table_ordering.models.order import Order
from table_ordering.models.order_item import OrderItem

POPULAR_ITEMS_WINDOW_DAYS = 7
POPULAR_ITEMS_LIMIT = 5


def _today_start(now: datetime | None = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return datetime.combine(now.date(), time.min, tzinfo=timezone.utc)


def todays_revenue_cents(db: Session, now: datetime | None = None) -> int:
    total = (
        db.query(func.coalesce(func.sum(Order.total_cents), 0))
        .filter(Order.created_at >= _today_start(now), Order.status != CANCELLED)
        .scalar()
    )
    return int(total or 0)


def todays_order_count(db: Session, now: datetime | None = None) -> int:
    count = (
        db.query(func.count(Order.id))
        .filter(Order.created_at >= _today_start(now), Order.status != CANCELLED)
        .scalar()
    )
    return int(count or 0)


def popular_items(
    db: Session,
    *,
    days: int = POPULAR_ITEMS_WINDOW_DAYS,
    limit: int = POPULAR_ITEMS_LIMIT,
    now: datetime | None = None,
) -> list[tuple[MenuItem, int]]:
    since = _today_start(now) - timedelta(days=days)
    quantity_sum = func.sum(OrderItem.quantity)
    rows = (
        db.query(MenuItem, quantity_sum.label("count"))
        .join(OrderItem, OrderItem.menu_item_id == MenuItem.id)
        .join(Order, Order.id == OrderItem.order_id)
        .filter(Order.created_at >= since)
        .group_by(MenuItem.id)
        .order_by(desc(quantity_sum), MenuItem.id.asc())
        .limit(limit)
        .all()
    )
    return [(menu_item, int(count or 0)) for menu_item, count in rows]

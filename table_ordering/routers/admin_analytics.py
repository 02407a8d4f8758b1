from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from table_ordering.core.database import get_db
from table_ordering.core.metrics import request_metrics
from table_ordering.core.money import format_cents
from table_ordering.deps import require_admin_user
from table_ordering.models.user import User
from table_ordering.services.analytics import popular_items, todays_order_count, todays_revenue_cents
from table_ordering.services.broadcast import broadcast_channel

router = APIRouter(prefix="/api/admin", tags=["admin-analytics"])


@router.get("/analytics")
def admin_analytics(db: Session = Depends(get_db), _user: User = Depends(require_admin_user)):
    return {
        "todays_revenue": format_cents(todays_revenue_cents(db)),
        "todays_order_count": todays_order_count(db),
        "popular_items": [
            {
                "id": item.id,
                "name": item.name,
                "price": format_cents(item.price_cents),
                "count": count,
            }
            for item, count in popular_items(db)
        ],
    }


@router.get("/metrics")
def admin_metrics(_user: User = Depends(require_admin_user)):
    return {
        "endpoints": request_metrics.snapshot(),
        "broadcasts": request_metrics.snapshot_broadcasts(),
        "websocket_listeners": broadcast_channel.listener_count,
    }

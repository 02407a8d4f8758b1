from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from table_ordering.core.database import get_db
from table_ordering.deps import require_staff_user
from table_ordering.models.user import User
from table_ordering.services.orders import (
    InvalidTransitionError,
    OrderNotFoundError,
    OrderValidationError,
    advance_status,
    get_order,
    list_orders,
)
from table_ordering.services.serializers import order_to_dict

router = APIRouter(prefix="/api/staff", tags=["staff"])
logger = logging.getLogger(__name__)


class StatusUpdate(BaseModel):
    status: str


@router.get("/orders")
def list_staff_orders(
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    _user: User = Depends(require_staff_user),
):
    try:
        orders = list_orders(db, status=status)
    except OrderValidationError as exc:
        raise HTTPException(status_code=400, detail="Invalid status") from exc
    return [order_to_dict(order) for order in orders]


@router.get("/orders/{order_id}")
def get_staff_order(
    order_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(require_staff_user),
):
    try:
        order = get_order(db, order_id)
    except OrderNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Order not found") from exc
    return order_to_dict(order)


@router.patch("/orders/{order_id}/status")
def update_order_status(
    order_id: int,
    payload: StatusUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_staff_user),
):
    try:
        order = advance_status(db, order_id, payload.status)
    except OrderValidationError as exc:
        raise HTTPException(status_code=400, detail="Invalid status") from exc
    except OrderNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Order not found") from exc
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=500, detail="Failed to update order status") from exc

    logger.info("staff status update order_id=%s status=%s user_id=%s", order.id, order.status, user.id)
    return order_to_dict(order)

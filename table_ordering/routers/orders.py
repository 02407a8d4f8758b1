from __future__ import annotations

import logging
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from table_ordering.core.database import get_db
from table_ordering.deps import get_optional_user
from table_ordering.models.user import User
from table_ordering.routers.tables import SESSION_TABLE_KEY
from table_ordering.services.orders import OrderNotFoundError, OrderValidationError, create_order, get_order_by_number
from table_ordering.services.serializers import order_to_dict
from table_ordering.services.tables import TableNotFoundError

router = APIRouter(prefix="/api", tags=["orders"])
logger = logging.getLogger(__name__)


class OrderItemIn(BaseModel):
    menu_item_id: int
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    special_instructions: Optional[str] = None


class OrderCreate(BaseModel):
    table_id: Optional[int] = None
    table_number: Optional[int] = None
    total_amount: Decimal
    items: List[OrderItemIn]
    notes: Optional[str] = None


@router.post("/orders", status_code=201)
def create_table_order(
    payload: OrderCreate,
    request: Request,
    db: Session = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
):
    table_number = payload.table_number
    if payload.table_id is None and table_number is None:
        # mesa vinculada na sessão pelo QR
        table_number = request.session.get(SESSION_TABLE_KEY)

    try:
        order = create_order(
            db,
            items=payload.items,
            total_amount=payload.total_amount,
            table_id=payload.table_id,
            table_number=table_number,
            customer_id=user.id if user is not None else None,
            notes=payload.notes,
        )
    except OrderValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except TableNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Table not found") from exc
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=500, detail="Failed to create order") from exc

    return order_to_dict(order)


@router.get("/orders/{order_number}")
def get_table_order(order_number: str, db: Session = Depends(get_db)):
    try:
        order = get_order_by_number(db, order_number)
    except OrderNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Order not found") from exc
    return order_to_dict(order)

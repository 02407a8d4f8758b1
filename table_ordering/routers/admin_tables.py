from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from table_ordering.core.database import get_db
from table_ordering.deps import require_admin_user
from table_ordering.models.user import User
from table_ordering.services.serializers import table_to_dict
from table_ordering.services.tables import (
    TableConflictError,
    TableNotFoundError,
    create_table,
    create_tables_bulk,
    deactivate_table,
    list_active_tables,
    update_table,
)

router = APIRouter(prefix="/api/admin/tables", tags=["admin-tables"])

MAX_BULK_TABLES = 200


class TableCreate(BaseModel):
    number: int
    qr_code: Optional[str] = None


class TableBulkCreate(BaseModel):
    start: int
    count: int = Field(..., ge=1, le=MAX_BULK_TABLES)


class TableUpdate(BaseModel):
    number: Optional[int] = None
    qr_code: Optional[str] = None
    is_active: Optional[bool] = None


@router.get("")
def admin_list_tables(db: Session = Depends(get_db), _user: User = Depends(require_admin_user)):
    return [table_to_dict(table) for table in list_active_tables(db)]


@router.post("", status_code=201)
def admin_create_table(
    payload: TableCreate,
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin_user),
):
    try:
        table = create_table(db, payload.number, qr_code=payload.qr_code)
    except TableConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return table_to_dict(table)


@router.post("/bulk", status_code=201)
def admin_create_tables_bulk(
    payload: TableBulkCreate,
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin_user),
):
    try:
        created, skipped = create_tables_bulk(db, payload.start, payload.count)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {
        "created": [table_to_dict(table) for table in created],
        "skipped": skipped,
    }


@router.patch("/{table_id}")
def admin_update_table(
    table_id: int,
    payload: TableUpdate,
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin_user),
):
    try:
        table = update_table(
            db,
            table_id,
            number=payload.number,
            qr_code=payload.qr_code,
            is_active=payload.is_active,
        )
    except TableNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Table not found") from exc
    except TableConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return table_to_dict(table)


@router.delete("/{table_id}", status_code=204)
def admin_delete_table(
    table_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin_user),
):
    try:
        deactivate_table(db, table_id)
    except TableNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Table not found") from exc
    return Response(status_code=204)

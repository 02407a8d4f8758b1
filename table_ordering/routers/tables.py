from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session

from table_ordering.core.database import get_db
from table_ordering.services.serializers import table_to_dict
from table_ordering.services.tables import TableNotFoundError, get_active_table_by_number, parse_table_number

router = APIRouter(prefix="/api", tags=["tables"])
logger = logging.getLogger(__name__)

SESSION_TABLE_KEY = "table_number"


class SessionTablePayload(BaseModel):
    table_number: int


def _parse_number_or_400(value) -> int:
    try:
        return parse_table_number(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.get("/tables/{number}")
def get_table(number: str, db: Session = Depends(get_db)):
    table_number = _parse_number_or_400(number)
    try:
        table = get_active_table_by_number(db, table_number)
    except TableNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Table not found") from exc
    return table_to_dict(table)


@router.get("/session/table")
def get_session_table(request: Request):
    return {SESSION_TABLE_KEY: request.session.get(SESSION_TABLE_KEY)}


@router.post("/session/table")
def bind_session_table(payload: SessionTablePayload, request: Request, db: Session = Depends(get_db)):
    table_number = _parse_number_or_400(payload.table_number)
    try:
        table = get_active_table_by_number(db, table_number)
    except TableNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Table not found") from exc

    request.session[SESSION_TABLE_KEY] = table.number
    logger.info("table bound to session table_number=%s", table.number)
    return {"success": True, SESSION_TABLE_KEY: table.number}

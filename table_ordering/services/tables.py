from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from table_ordering.core.config import PUBLIC_BASE_URL
from table_ordering.models.table import Table

logger = logging.getLogger(__name__)


class TableNotFoundError(LookupError):
    pass


class TableConflictError(ValueError):
    pass


def parse_table_number(value) -> int:
    """Accept an int or numeric string greater than zero."""
    if isinstance(value, bool):
        raise ValueError("Invalid table number")
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError) as exc:
        raise ValueError("Invalid table number") from exc
    if number <= 0:
        raise ValueError("Invalid table number")
    return number


def build_qr_code(number: int, base_url: str | None = None) -> str:
    return f"{(base_url or PUBLIC_BASE_URL).rstrip('/')}/?table={number}"


def get_active_table_by_number(db: Session, number: int) -> Table:
    table = db.query(Table).filter(Table.number == number, Table.is_active.is_(True)).first()
    if not table:
        raise TableNotFoundError(f"Table {number} not found")
    return table


def get_active_table(db: Session, table_id: int) -> Table:
    table = db.query(Table).filter(Table.id == table_id, Table.is_active.is_(True)).first()
    if not table:
        raise TableNotFoundError(f"Table id={table_id} not found")
    return table


def list_active_tables(db: Session) -> list[Table]:
    return db.query(Table).filter(Table.is_active.is_(True)).order_by(Table.number.asc()).all()


def _number_taken(db: Session, number: int, *, exclude_id: int | None = None) -> bool:
    query = db.query(Table.id).filter(Table.number == number, Table.is_active.is_(True))
    if exclude_id is not None:
        query = query.filter(Table.id != exclude_id)
    return query.first() is not None


def create_table(db: Session, number: int, qr_code: str | None = None) -> Table:
    number = parse_table_number(number)
    if _number_taken(db, number):
        raise TableConflictError(f"Table {number} already exists")

    table = Table(number=number, qr_code=qr_code or build_qr_code(number), is_active=True)
    db.add(table)
    db.commit()
    db.refresh(table)
    logger.info("table created id=%s number=%s", table.id, table.number)
    return table


def create_tables_bulk(db: Session, start: int, count: int) -> tuple[list[Table], list[int]]:
    start = parse_table_number(start)
    if count <= 0:
        raise ValueError("count must be positive")

    numbers = list(range(start, start + count))
    taken = {
        row.number
        for row in db.query(Table.number)
        .filter(Table.number.in_(numbers), Table.is_active.is_(True))
        .all()
    }
    created: list[Table] = []
    for number in numbers:
        if number in taken:
            continue
        table = Table(number=number, qr_code=build_qr_code(number), is_active=True)
        db.add(table)
        created.append(table)

    db.commit()
    for table in created:
        db.refresh(table)
    skipped = sorted(taken)
    logger.info("bulk tables created=%s skipped=%s", len(created), skipped)
    return created, skipped


def update_table(
    db: Session,
    table_id: int,
    *,
    number: int | None = None,
    qr_code: str | None = None,
    is_active: bool | None = None,
) -> Table:
    table = db.query(Table).filter(Table.id == table_id).first()
    if not table:
        raise TableNotFoundError(f"Table id={table_id} not found")

    new_number = parse_table_number(number) if number is not None else table.number
    becomes_active = table.is_active if is_active is None else is_active
    if becomes_active and _number_taken(db, new_number, exclude_id=table.id):
        raise TableConflictError(f"Table {new_number} already exists")

    if number is not None and new_number != table.number:
        table.number = new_number
        if qr_code is None:
            table.qr_code = build_qr_code(new_number)
    if qr_code is not None:
        table.qr_code = qr_code
    if is_active is not None:
        table.is_active = is_active

    db.commit()
    db.refresh(table)
    return table


def deactivate_table(db: Session, table_id: int) -> Table:
    table = db.query(Table).filter(Table.id == table_id).first()
    if not table:
        raise TableNotFoundError(f"Table id={table_id} not found")
    table.is_active = False
    db.commit()
    db.refresh(table)
    logger.info("table deactivated id=%s number=%s", table.id, table.number)
    return table

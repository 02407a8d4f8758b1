from __future__ import annotations

from contextvars import ContextVar


_REQUEST_ID_CTX: ContextVar[str | None] = ContextVar("request_id", default=None)
_USER_ID_CTX: ContextVar[str | None] = ContextVar("user_id", default=None)
_TABLE_NUMBER_CTX: ContextVar[str | None] = ContextVar("table_number", default=None)
# número ou id do pedido vindo da rota (/api/orders/{order_number}, /api/staff/orders/{order_id}/...)
_ORDER_REF_CTX: ContextVar[str | None] = ContextVar("order_ref", default=None)

_CONTEXT_VARS = {
    "request_id": _REQUEST_ID_CTX,
    "user_id": _USER_ID_CTX,
    "table_number": _TABLE_NUMBER_CTX,
    "order_ref": _ORDER_REF_CTX,
}


def set_request_context(
    *,
    request_id: str | None = None,
    user_id: str | None = None,
    table_number: str | None = None,
    order_ref: str | None = None,
) -> None:
    values = {"request_id": request_id, "user_id": user_id, "table_number": table_number, "order_ref": order_ref}
    for name, value in values.items():
        if value is not None:
            _CONTEXT_VARS[name].set(value)


def get_request_id() -> str | None:
    return _REQUEST_ID_CTX.get()


def get_user_id() -> str | None:
    return _USER_ID_CTX.get()


def get_table_number() -> str | None:
    return _TABLE_NUMBER_CTX.get()


def get_order_ref() -> str | None:
    return _ORDER_REF_CTX.get()


def request_context_snapshot() -> dict[str, str | None]:
    """Current values of every request-scoped field, keyed by log field name."""
    return {name: var.get() for name, var in _CONTEXT_VARS.items()}


def clear_request_context() -> None:
    for var in _CONTEXT_VARS.values():
        var.set(None)

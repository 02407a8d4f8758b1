from __future__ import annotations

PENDING = "pending"
PREPARING = "preparing"
READY = "ready"
SERVED = "served"
CANCELLED = "cancelled"

ORDER_STATUSES = (PENDING, PREPARING, READY, SERVED, CANCELLED)

# Kitchen progression shown to customers; cancelled sits outside of it.
PROGRESS_STAGES = (PENDING, PREPARING, READY, SERVED)

NEXT_STATUS = {
    PENDING: PREPARING,
    PREPARING: READY,
    READY: SERVED,
}

ALLOWED_TRANSITIONS = {
    PENDING: {PREPARING, CANCELLED},
    PREPARING: {READY, CANCELLED},
    READY: {SERVED, CANCELLED},
    SERVED: set(),
    CANCELLED: set(),
}


def normalize_order_status(status: str | None) -> str:
    # só os rótulos exatos; "PREPARING" ou " ready " são recusados
    if status not in ORDER_STATUSES:
        raise ValueError(f"Invalid status: {status!r}")
    return status


def is_transition_allowed(current: str | None, target: str, *, strict: bool) -> bool:
    if not strict:
        return target in ORDER_STATUSES
    return target in ALLOWED_TRANSITIONS.get(current or PENDING, set())

# table_ordering/deps.py
from __future__ import annotations

import logging
from typing import Iterable, Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from table_ordering.core.database import get_db
from table_ordering.models.user import User
from table_ordering.services.auth import STAFF_SESSION_COOKIE, decode_staff_session

logger = logging.getLogger(__name__)


def _normalize_role(role: str | None) -> str:
    return (role or "").strip().lower()


def _load_session_user(request: Request, db: Session) -> Optional[User]:
    token = request.cookies.get(STAFF_SESSION_COOKIE)
    if not token:
        return None

    payload = decode_staff_session(token)
    if not payload:
        return None

    user_id = payload.get("user_id")
    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        return None

    return db.query(User).filter(User.id == user_id, User.is_active.is_(True)).first()


def get_optional_user(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    """Logged-in user when there is one; anonymous customers may still order."""
    user = _load_session_user(request, db)
    if user is not None:
        request.state.user = user
    return user


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    if not request.cookies.get(STAFF_SESSION_COOKIE):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    user = _load_session_user(request, db)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session expired or invalid")

    request.state.user = user
    return user


def _log_access_denied(*, reason: str, user: User, request: Request, allowed: set[str]) -> None:
    logger.warning(
        "Access denied: reason=%s user_id=%s user_role=%s allowed=%s endpoint=%s %s",
        reason,
        getattr(user, "id", None),
        getattr(user, "role", None),
        sorted(allowed),
        request.method,
        request.url.path,
    )


def require_role(roles: Iterable[str]):
    allowed = {_normalize_role(role) for role in roles}
    # admin sempre pode o que staff pode
    if "staff" in allowed:
        allowed.add("admin")

    def _dependency(request: Request, user: User = Depends(get_current_user)) -> User:
        if _normalize_role(user.role) not in allowed:
            _log_access_denied(reason="role_denied", user=user, request=request, allowed=allowed)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return user

    return _dependency


require_staff_user = require_role(["staff"])
require_admin_user = require_role(["admin"])

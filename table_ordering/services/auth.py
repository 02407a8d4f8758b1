from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

from fastapi import Response
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from passlib.context import CryptContext

from table_ordering.core.config import (
    SESSION_COOKIE_SAMESITE,
    SESSION_COOKIE_SECURE,
    SESSION_MAX_AGE_SECONDS,
    SESSION_SECRET,
)

logger = logging.getLogger(__name__)

STAFF_SESSION_COOKIE = "staff_session"
STAFF_SESSION_SALT = "staff-session"

USER_ROLES = {"customer", "staff", "admin"}

# pbkdf2_sha256 gera os hashes novos; bcrypt fica só para verificar hashes legados
_pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return _pwd_context.verify(password, password_hash)
    except (ValueError, TypeError):
        logger.warning("unrecognized password hash format")
        return False


def _serializer() -> URLSafeTimedSerializer:
    if not SESSION_SECRET:
        raise RuntimeError("SESSION_SECRET is not configured")
    return URLSafeTimedSerializer(SESSION_SECRET, salt=STAFF_SESSION_SALT)


def create_staff_session(payload: Dict[str, Any]) -> str:
    if "exp" not in payload:
        payload = {**payload, "exp": int(time.time()) + SESSION_MAX_AGE_SECONDS}
    return _serializer().dumps(payload)


def decode_staff_session(token: str) -> Optional[Dict[str, Any]]:
    try:
        payload = _serializer().loads(token, max_age=SESSION_MAX_AGE_SECONDS)
    except (BadSignature, SignatureExpired, ValueError):
        return None
    exp = payload.get("exp")
    if exp is not None:
        try:
            if int(exp) < int(time.time()):
                return None
        except (TypeError, ValueError):
            return None
    return payload


def set_staff_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=STAFF_SESSION_COOKIE,
        value=token,
        max_age=SESSION_MAX_AGE_SECONDS,
        httponly=True,
        samesite=SESSION_COOKIE_SAMESITE,
        secure=SESSION_COOKIE_SECURE,
        path="/",
    )


def clear_staff_session_cookie(response: Response) -> None:
    response.delete_cookie(key=STAFF_SESSION_COOKIE, path="/")

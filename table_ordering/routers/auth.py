from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.orm import Session

from table_ordering.core.database import get_db
from table_ordering.deps import get_current_user
from table_ordering.models.user import User
from table_ordering.services.auth import (
    clear_staff_session_cookie,
    create_staff_session,
    set_staff_session_cookie,
    verify_password,
)
from table_ordering.services.serializers import user_to_dict

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger(__name__)


class LoginPayload(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)


@router.post("/login")
def login(payload: LoginPayload, response: Response, request: Request, db: Session = Depends(get_db)):
    normalized_email = payload.email.strip().lower()
    user = (
        db.query(User)
        .filter(func.lower(User.email) == normalized_email, User.is_active.is_(True))
        .first()
    )
    if user is None or not verify_password(payload.password, user.password_hash):
        logger.warning("login failed email=%s", normalized_email)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    token = create_staff_session({"user_id": user.id, "role": user.role})
    set_staff_session_cookie(response, token)
    request.state.user = user
    logger.info("login ok user_id=%s role=%s", user.id, user.role)
    return user_to_dict(user)


@router.post("/logout")
def logout(response: Response):
    clear_staff_session_cookie(response)
    return {"success": True}


@router.get("/user")
def current_user(user: User = Depends(get_current_user)):
    return user_to_dict(user)

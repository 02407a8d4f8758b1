from types import SimpleNamespace

import pytest
from fastapi import HTTPException
from starlette.requests import Request

from table_ordering.deps import require_admin_user, require_role, require_staff_user
from table_ordering.models.user import User
from table_ordering.services.auth import (
    STAFF_SESSION_COOKIE,
    create_staff_session,
    decode_staff_session,
    hash_password,
    verify_password,
)
from tests.fixtures_data import CUSTOMER_USER, STAFF_USER
from tests.support import build_client


def _build_request(path: str = "/api/staff/orders", method: str = "GET") -> Request:
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "query_string": b"",
        "headers": [],
        "path_params": {},
        "client": ("testclient", 50000),
        "server": ("testserver", 80),
        "scheme": "http",
    }
    return Request(scope)


def _add_user(session_factory, *, email, password, role):
    db = session_factory()
    user = User(email=email, password_hash=hash_password(password), role=role, is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    db.close()
    return user


def test_staff_dependency_accepts_staff_and_admin():
    request = _build_request()

    assert require_staff_user(request=request, user=SimpleNamespace(**STAFF_USER)).role == "staff"
    assert require_staff_user(request=request, user=SimpleNamespace(id=1, role="admin")).role == "admin"


def test_staff_dependency_denies_customers():
    with pytest.raises(HTTPException) as exc:
        require_staff_user(request=_build_request(), user=SimpleNamespace(**CUSTOMER_USER))

    assert exc.value.status_code == 403
    assert exc.value.detail == "Insufficient permissions"


def test_admin_dependency_denies_staff():
    with pytest.raises(HTTPException) as exc:
        require_admin_user(request=_build_request("/api/admin/tables"), user=SimpleNamespace(**STAFF_USER))

    assert exc.value.status_code == 403


def test_require_role_normalizes_role_names():
    dependency = require_role([" Admin "])

    assert dependency(request=_build_request(), user=SimpleNamespace(id=2, role="ADMIN")).id == 2


def test_password_hash_roundtrip_and_rejections():
    hashed = hash_password("s3nha-forte")

    assert hashed != "s3nha-forte"
    assert verify_password("s3nha-forte", hashed)
    assert not verify_password("errada", hashed)
    assert not verify_password("s3nha-forte", "not-a-hash")
    assert not verify_password("", hashed)


def test_staff_session_token_rejects_tampering_and_expiry():
    token = create_staff_session({"user_id": 3, "role": "staff"})

    assert decode_staff_session(token)["user_id"] == 3
    assert decode_staff_session(token + "x") is None
    assert decode_staff_session(create_staff_session({"user_id": 3, "exp": 1})) is None


def test_login_sets_cookie_and_unlocks_staff_routes():
    client, session_factory = build_client()
    _add_user(session_factory, email="garcom@example.com", password="segredo", role="staff")

    login = client.post("/api/auth/login", json={"email": "Garcom@Example.com", "password": "segredo"})

    assert login.status_code == 200
    assert login.json()["role"] == "staff"
    assert STAFF_SESSION_COOKIE in login.cookies
    assert client.get("/api/auth/user").json()["email"] == "garcom@example.com"
    assert client.get("/api/staff/orders").status_code == 200
    assert client.get("/api/admin/analytics").status_code == 403

    client.post("/api/auth/logout")
    client.cookies.clear()
    assert client.get("/api/auth/user").status_code == 401


def test_login_rejects_wrong_password_and_unknown_email():
    client, session_factory = build_client()
    _add_user(session_factory, email="chef@example.com", password="certa", role="staff")

    assert client.post("/api/auth/login", json={"email": "chef@example.com", "password": "errada"}).status_code == 401
    assert client.post("/api/auth/login", json={"email": "ninguem@example.com", "password": "x"}).status_code == 401


def test_customer_session_cannot_reach_staff_queue():
    client, session_factory = build_client()
    _add_user(session_factory, email="cliente@example.com", password="abc123", role="customer")
    client.post("/api/auth/login", json={"email": "cliente@example.com", "password": "abc123"})

    assert client.get("/api/staff/orders").status_code == 403


def test_invalid_session_cookie_is_rejected():
    client, _ = build_client()
    client.cookies.set(STAFF_SESSION_COOKIE, "forjado")

    assert client.get("/api/auth/user").status_code == 401

from __future__ import annotations

from types import SimpleNamespace
from typing import Optional, Sequence

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from starlette.middleware.sessions import SessionMiddleware

import table_ordering.models  # noqa: F401
import table_ordering.services.event_handlers  # noqa: F401
from table_ordering.core.database import Base, get_db
from table_ordering.deps import get_current_user
from table_ordering.models.menu_category import MenuCategory
from table_ordering.models.menu_item import MenuItem
from table_ordering.models.table import Table
from table_ordering.routers.admin_analytics import router as admin_analytics_router
from table_ordering.routers.admin_menu import router as admin_menu_router
from table_ordering.routers.admin_tables import router as admin_tables_router
from table_ordering.routers.auth import router as auth_router
from table_ordering.routers.menu import router as menu_router
from table_ordering.routers.orders import router as orders_router
from table_ordering.routers.realtime import router as realtime_router
from table_ordering.routers.staff import router as staff_router
from table_ordering.routers.tables import router as tables_router
from table_ordering.services.tables import build_qr_code
from tests.fixtures_data import CATEGORIES, MENU_ITEMS, TABLE_NUMBERS, UNAVAILABLE_MENU_ITEM


def build_session_factory(seed: bool = True):
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    if seed:
        db = TestingSessionLocal()
        for category in CATEGORIES:
            db.add(MenuCategory(is_active=True, **category))
        for item in MENU_ITEMS:
            db.add(MenuItem(is_active=True, is_available=True, **item))
        db.add(MenuItem(is_active=True, **UNAVAILABLE_MENU_ITEM))
        for number in TABLE_NUMBERS:
            db.add(Table(number=number, qr_code=build_qr_code(number), is_active=True))
        db.commit()
        db.close()

    return TestingSessionLocal


def build_app(session_factory, user: Optional[dict] = None, middleware: Sequence = ()) -> FastAPI:
    app = FastAPI()
    for middleware_class, options in middleware:
        app.add_middleware(middleware_class, **options)
    app.add_middleware(SessionMiddleware, secret_key="test-session-secret")
    for router in (
        menu_router,
        tables_router,
        orders_router,
        staff_router,
        admin_menu_router,
        admin_tables_router,
        admin_analytics_router,
        auth_router,
        realtime_router,
    ):
        app.include_router(router)

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    if user is not None:
        app.dependency_overrides[get_current_user] = lambda: SimpleNamespace(**user)
    return app


def build_client(user: Optional[dict] = None, seed: bool = True):
    session_factory = build_session_factory(seed=seed)
    return TestClient(build_app(session_factory, user=user)), session_factory

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import func
from starlette.middleware.sessions import SessionMiddleware

from table_ordering.core.config import (
    BOOTSTRAP_ADMIN_EMAIL,
    BOOTSTRAP_ADMIN_PASSWORD,
    CORS_ORIGINS,
    DATABASE_URL,
    IS_DEV,
    SESSION_COOKIE_SAMESITE,
    SESSION_COOKIE_SECURE,
    SESSION_MAX_AGE_SECONDS,
    SESSION_SECRET,
)
from table_ordering.core.database import Base, SessionLocal, engine
from table_ordering.core.logging_setup import configure_logging
from table_ordering.core.startup_checks import (
    ensure_migrations_applied,
    validate_database_environment,
    validate_session_secret,
)
from table_ordering.middleware.observability import ObservabilityMiddleware
import table_ordering.models  # garante que os models são importados antes do create_all
import table_ordering.services.event_handlers  # registra handlers do event bus

from table_ordering.models.user import User
from table_ordering.services.auth import hash_password
from table_ordering.routers.admin_analytics import router as admin_analytics_router
from table_ordering.routers.admin_menu import router as admin_menu_router
from table_ordering.routers.admin_tables import router as admin_tables_router
from table_ordering.routers.auth import router as auth_router
from table_ordering.routers.menu import router as menu_router
from table_ordering.routers.orders import router as orders_router
from table_ordering.routers.realtime import router as realtime_router
from table_ordering.routers.staff import router as staff_router
from table_ordering.routers.tables import router as tables_router

configure_logging()

logger = logging.getLogger(__name__)
BOOTSTRAP_PREFIX = "[ADMIN_BOOTSTRAP]"
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini")))


@asynccontextmanager
async def lifespan(_: FastAPI):
    _startup_tasks()
    yield


app = FastAPI(
    title="Table Ordering API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(ObservabilityMiddleware)
# mesa vinculada pelo QR fica no cookie "session" assinado (itsdangerous)
app.add_middleware(
    SessionMiddleware,
    secret_key=SESSION_SECRET or "unset-session-secret",
    max_age=SESSION_MAX_AGE_SECONDS,
    same_site=SESSION_COOKIE_SAMESITE,
    https_only=SESSION_COOKIE_SECURE,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _bootstrap_initial_admin() -> None:
    if not BOOTSTRAP_ADMIN_EMAIL or not BOOTSTRAP_ADMIN_PASSWORD:
        logger.info("%s skipped: configure BOOTSTRAP_ADMIN_EMAIL/BOOTSTRAP_ADMIN_PASSWORD", BOOTSTRAP_PREFIX)
        return

    email = BOOTSTRAP_ADMIN_EMAIL.lower()
    db = SessionLocal()
    try:
        existing = db.query(User).filter(func.lower(User.email) == email).first()
        if existing:
            logger.info("%s exists id=%s email=%s", BOOTSTRAP_PREFIX, existing.id, existing.email)
            return

        admin = User(
            email=email,
            first_name="Admin",
            password_hash=hash_password(BOOTSTRAP_ADMIN_PASSWORD),
            role="admin",
            is_active=True,
        )
        db.add(admin)
        db.commit()
        db.refresh(admin)
        logger.info("%s created id=%s email=%s", BOOTSTRAP_PREFIX, admin.id, admin.email)
    except Exception:
        logger.exception("%s ERROR bootstrap failed", BOOTSTRAP_PREFIX)
        raise
    finally:
        db.close()


def _startup_tasks() -> None:
    validate_database_environment()
    if not IS_DEV:
        validate_session_secret()

    if DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)

    ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
    _bootstrap_initial_admin()


app.include_router(menu_router)
app.include_router(tables_router)
app.include_router(orders_router)
app.include_router(staff_router)
app.include_router(admin_menu_router)
app.include_router(admin_tables_router)
app.include_router(admin_analytics_router)
app.include_router(auth_router)
app.include_router(realtime_router)


@app.get("/")
def root():
    return {"status": "ok", "service": "table-ordering"}


@app.get("/health")
def health():
    return {"status": "healthy"}

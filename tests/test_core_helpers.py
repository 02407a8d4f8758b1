import json
import logging
from decimal import Decimal

import pytest

from table_ordering.core.logging_setup import JsonFormatter
from table_ordering.core.money import MAX_AMOUNT_CENTS, format_cents, from_cents, to_cents
from table_ordering.core.order_status import is_transition_allowed, normalize_order_status
from table_ordering.core.request_context import clear_request_context, set_request_context
from table_ordering.core import startup_checks
from table_ordering.services.tables import build_qr_code, parse_table_number


def test_money_conversions():
    assert to_cents("120.50") == 12050
    assert to_cents(Decimal("30.5")) == 3050
    assert to_cents(45) == 4500
    assert from_cents(12050) == Decimal("120.50")
    assert format_cents(None) == "0.00"
    with pytest.raises(ValueError):
        to_cents("1.005")
    with pytest.raises(ValueError):
        to_cents("abc")
    with pytest.raises(ValueError):
        to_cents("NaN")


def test_to_cents_rejects_amounts_above_the_ceiling():
    assert to_cents("999999.99") == MAX_AMOUNT_CENTS
    assert to_cents("-999999.99") == -MAX_AMOUNT_CENTS
    for too_big in ("1000000.00", "1e30", "-1e30", Decimal("1E+999999")):
        with pytest.raises(ValueError):
            to_cents(too_big)


def test_status_normalization_and_policies():
    assert normalize_order_status("preparing") == "preparing"
    for bad in ("delivered", " Preparing ", "READY", "", None):
        with pytest.raises(ValueError):
            normalize_order_status(bad)

    assert is_transition_allowed("served", "pending", strict=False)
    assert not is_transition_allowed("served", "pending", strict=True)
    assert is_transition_allowed("ready", "cancelled", strict=True)
    assert not is_transition_allowed("pending", "ready", strict=True)


def test_table_number_parsing_and_qr_code():
    assert parse_table_number("7") == 7
    for bad in ("0", "-1", "abc", None, True):
        with pytest.raises(ValueError):
            parse_table_number(bad)
    assert build_qr_code(5, base_url="https://mesa.test/") == "https://mesa.test/?table=5"


def test_json_formatter_masks_secrets_and_adds_context():
    set_request_context(request_id="req-9", table_number="7", order_ref="ORD-1")
    record = logging.LogRecord("table_ordering", logging.INFO, __file__, 1, "login password=hunter2", None, None)
    record.event_type = "NEW_ORDER"

    payload = json.loads(JsonFormatter("%(message)s").format(record))
    clear_request_context()

    assert payload["message"] == "login password=***"
    assert payload["request_id"] == "req-9"
    assert payload["table_number"] == "7"
    assert payload["order_ref"] == "ORD-1"
    assert payload["event_type"] == "NEW_ORDER"


def test_sqlite_is_refused_in_production(monkeypatch):
    monkeypatch.setenv("ENV", "production")
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    monkeypatch.setattr(startup_checks, "DATABASE_URL", "sqlite:///./x.db")

    with pytest.raises(RuntimeError):
        startup_checks.validate_database_environment()


def test_missing_session_secret_fails_startup(monkeypatch):
    monkeypatch.setattr(startup_checks, "SESSION_SECRET", "")

    with pytest.raises(RuntimeError):
        startup_checks.validate_session_secret()


def test_migration_check_is_skipped_in_dev(monkeypatch, tmp_path):
    monkeypatch.setenv("ENV", "dev")
    monkeypatch.delenv("ENVIRONMENT", raising=False)

    startup_checks.ensure_migrations_applied(engine=None, alembic_config_path=tmp_path / "missing.ini")

import json
import logging

import pytest
from fastapi.testclient import TestClient

from table_ordering.core.logging_setup import JsonFormatter
from table_ordering.core.metrics import InMemoryRequestMetrics
from table_ordering.middleware.observability import ObservabilityMiddleware
from tests.fixtures_data import HAPPY_PATH_ORDER_PAYLOAD, STAFF_USER
from tests.support import build_app, build_session_factory


class JsonCaptureHandler(logging.Handler):
    """Formata no momento do emit, enquanto o contexto da requisição ainda vale."""

    def __init__(self):
        super().__init__(level=logging.INFO)
        self.setFormatter(JsonFormatter("%(message)s"))
        self.lines = []

    def emit(self, record):
        self.lines.append(json.loads(self.format(record)))


@pytest.fixture
def json_logs():
    handler = JsonCaptureHandler()
    package_logger = logging.getLogger("table_ordering")
    previous_level = package_logger.level
    package_logger.setLevel(logging.INFO)
    package_logger.addHandler(handler)
    yield handler.lines
    package_logger.removeHandler(handler)
    package_logger.setLevel(previous_level)


def _observed_client(metrics, user=None):
    app = build_app(
        build_session_factory(),
        user=user,
        middleware=[(ObservabilityMiddleware, {"metrics": metrics})],
    )
    return TestClient(app)


def test_metrics_are_keyed_by_route_template():
    metrics = InMemoryRequestMetrics()
    client = _observed_client(metrics)
    first = client.post("/api/orders", json=HAPPY_PATH_ORDER_PAYLOAD).json()
    second = client.post("/api/orders", json=HAPPY_PATH_ORDER_PAYLOAD).json()

    client.get(f"/api/orders/{first['order_number']}")
    client.get(f"/api/orders/{second['order_number']}")
    client.get("/api/orders/ORD-404")

    snapshot = metrics.snapshot()
    lookup = snapshot["GET /api/orders/{order_number}"]
    assert lookup["total_requests"] == 3
    assert lookup["error_count"] == 1
    assert snapshot["POST /api/orders"]["total_requests"] == 2
    assert not any(first["order_number"] in key for key in snapshot)


def test_unmatched_paths_fall_back_to_raw_path():
    metrics = InMemoryRequestMetrics()
    client = _observed_client(metrics)

    assert client.get("/nope").status_code == 404

    assert metrics.snapshot()["GET /nope"]["error_count"] == 1


def test_logs_carry_bound_table_and_request_id(json_logs):
    client = _observed_client(InMemoryRequestMetrics())
    client.post("/api/session/table", json={"table_number": 7})
    payload = {key: value for key, value in HAPPY_PATH_ORDER_PAYLOAD.items() if key != "table_number"}

    response = client.post("/api/orders", json=payload, headers={"X-Request-ID": "req-mesa-7"})

    assert response.status_code == 201
    assert response.headers["X-Request-ID"] == "req-mesa-7"
    created = next(line for line in json_logs if line["message"].startswith("order created"))
    assert created["request_id"] == "req-mesa-7"
    assert created["table_number"] == "7"


def test_logs_carry_order_reference_from_the_route(json_logs):
    client = _observed_client(InMemoryRequestMetrics(), user=STAFF_USER)
    order = client.post("/api/orders", json=HAPPY_PATH_ORDER_PAYLOAD).json()

    client.patch(f"/api/staff/orders/{order['id']}/status", json={"status": "preparing"})

    changed = next(line for line in json_logs if line["message"].startswith("order status changed"))
    assert changed["order_ref"] == str(order["id"])
    completed = [line for line in json_logs if line["message"] == "request completed"]
    assert completed[-1]["endpoint"] == "/api/staff/orders/{order_id}/status"
    assert completed[-1]["order_ref"] == str(order["id"])
    assert completed[0]["order_ref"] is None

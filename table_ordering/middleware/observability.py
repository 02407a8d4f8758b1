from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Match
from starlette.types import ASGIApp

from table_ordering.core.metrics import InMemoryRequestMetrics, request_metrics
from table_ordering.core.request_context import clear_request_context, set_request_context

logger = logging.getLogger(__name__)

ORDER_PATH_PARAMS = ("order_number", "order_id")


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Tag every request with an id and record it under its route template.

    Metrics are keyed by the route template, so ``/api/orders/ORD-1`` and
    ``/api/orders/ORD-2`` share one ``GET /api/orders/{order_number}`` entry.
    The SessionMiddleware must wrap this one for the bound table to show up.
    """

    def __init__(self, app: ASGIApp, metrics: InMemoryRequestMetrics | None = None):
        super().__init__(app)
        self.metrics = metrics or request_metrics

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        route_path, path_params = _match_route(request)
        endpoint = route_path or request.url.path
        method = request.method
        table_number = _extract_table_number(request)
        order_ref = _extract_order_ref(path_params)
        set_request_context(request_id=request_id, table_number=table_number, order_ref=order_ref)

        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            user_id = _extract_user_id(request)
            duration_ms = round((time.perf_counter() - start) * 1000, 2)

            set_request_context(user_id=user_id)
            self.metrics.observe(endpoint=endpoint, method=method, status_code=status_code, duration_ms=duration_ms)

            logger.info(
                "request completed",
                extra={
                    "request_id": request_id,
                    "user_id": user_id,
                    "table_number": table_number,
                    "order_ref": order_ref,
                    "endpoint": endpoint,
                    "method": method,
                    "status_code": status_code,
                    "duration_ms": duration_ms,
                },
            )

            if "response" in locals():
                response.headers["X-Request-ID"] = request_id

            clear_request_context()


def _match_route(request: Request) -> tuple[str | None, dict]:
    router = getattr(request.scope.get("app"), "router", None)
    for route in getattr(router, "routes", []):
        match, child_scope = route.matches(request.scope)
        if match == Match.FULL:
            return getattr(route, "path", None), child_scope.get("path_params", {})
    return None, {}


def _extract_order_ref(path_params: dict) -> str | None:
    for name in ORDER_PATH_PARAMS:
        value = path_params.get(name)
        if value is not None:
            return str(value)
    return None


def _extract_user_id(request: Request) -> str | None:
    user = getattr(request.state, "user", None)
    if user is None:
        return None
    user_id = getattr(user, "id", None)
    return str(user_id) if user_id is not None else None


def _extract_table_number(request: Request) -> str | None:
    # só existe quando o SessionMiddleware roda por fora deste
    if "session" not in request.scope:
        return None
    table_number = request.session.get("table_number")
    return str(table_number) if table_number is not None else None

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class ApiError(Exception):
    def __init__(self, status_code: int | None, detail: str):
        super().__init__(f"{status_code}: {detail}" if status_code else detail)
        self.status_code = status_code
        self.detail = detail


class NotFound(ApiError):
    pass


class ApiClient:
    """REST client for the dining room API: menu, tables, orders and the staff queue.

    Accepts either a base URL or a ready ``httpx.Client`` (a FastAPI
    ``TestClient`` works too, since it is one).
    """

    def __init__(self, base_url: str = "", *, http: httpx.Client | None = None, timeout: float = DEFAULT_TIMEOUT):
        self._owns_http = http is None
        self._http = http or httpx.Client(base_url=base_url, timeout=timeout)

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = self._http.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("request failed method=%s path=%s error=%s", method, path, exc)
            raise ApiError(None, str(exc)) from exc

        if response.status_code == 404:
            raise NotFound(404, _detail(response))
        if response.status_code >= 400:
            raise ApiError(response.status_code, _detail(response))
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def get_menu(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/menu")

    def get_categories(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/categories")

    def get_table(self, number: int) -> Dict[str, Any]:
        return self._request("GET", f"/api/tables/{number}")

    def bind_session_table(self, number: int) -> Dict[str, Any]:
        return self._request("POST", "/api/session/table", json={"table_number": number})

    def create_order(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/api/orders", json=payload)

    def get_order(self, order_number: str) -> Dict[str, Any]:
        return self._request("GET", f"/api/orders/{order_number}")

    def list_staff_orders(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {"status": status} if status else None
        return self._request("GET", "/api/staff/orders", params=params)

    def update_order_status(self, order_id: int, status: str) -> Dict[str, Any]:
        return self._request("PATCH", f"/api/staff/orders/{order_id}/status", json={"status": status})


def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and "detail" in body:
        return str(body["detail"])
    return str(body)

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from table_ordering.client.api import ApiClient, ApiError
from table_ordering.client.state import AppState
from table_ordering.client.storage import TABLE_NUMBER_KEY, LocalStore

logger = logging.getLogger(__name__)

TABLE_QUERY_PARAM = "table"


def _positive_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        number = int(str(value).strip())
    except ValueError:
        return None
    return number if number > 0 else None


def _with_table_param(url: str, table_number: Optional[int]) -> str:
    parts = urlsplit(url)
    query = [(key, value) for key, value in parse_qsl(parts.query, keep_blank_values=True) if key != TABLE_QUERY_PARAM]
    if table_number is not None:
        query.append((TABLE_QUERY_PARAM, str(table_number)))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


class TableSessionResolver:
    """Find the customer's table: the ``table`` URL parameter first, then the local store.

    Each candidate is validated against the server before it is accepted.
    When nothing validates, ``resolve`` returns None and the caller shows
    the manual table selection.
    """

    def __init__(self, api: ApiClient, store: LocalStore, state: AppState, url: str = ""):
        self.api = api
        self.store = store
        self.state = state
        self.url = url

    def resolve(self) -> Optional[int]:
        from_url = _positive_int(self._url_param())
        if from_url is not None and self._try_bind(from_url):
            return from_url

        stored_raw = self.store.get(TABLE_NUMBER_KEY)
        if stored_raw is not None:
            stored = _positive_int(stored_raw)
            if stored is not None and self._try_bind(stored):
                return stored
            logger.info("discarding invalid stored table value=%s", stored_raw)
            self.store.remove(TABLE_NUMBER_KEY)

        self.state.table_number = None
        return None

    def select(self, table_number: int) -> None:
        """Manual selection; raises ApiError when the table does not exist."""
        self.api.get_table(table_number)
        self._bind(table_number)

    def clear(self) -> None:
        self.store.remove(TABLE_NUMBER_KEY)
        self.state.table_number = None
        self.url = _with_table_param(self.url, None)

    def _url_param(self) -> Optional[str]:
        for key, value in parse_qsl(urlsplit(self.url).query):
            if key == TABLE_QUERY_PARAM:
                return value
        return None

    def _try_bind(self, table_number: int) -> bool:
        try:
            self.api.get_table(table_number)
        except ApiError as exc:
            logger.info("table %s rejected: %s", table_number, exc.detail)
            return False
        self._bind(table_number)
        return True

    def _bind(self, table_number: int) -> None:
        self.store.set(TABLE_NUMBER_KEY, table_number)
        self.state.table_number = table_number
        try:
            self.api.bind_session_table(table_number)
        except ApiError as exc:
            logger.warning("failed to bind table to server session table=%s error=%s", table_number, exc.detail)
        self.url = _with_table_param(self.url, table_number)

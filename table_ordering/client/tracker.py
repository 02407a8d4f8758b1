from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from table_ordering.client.api import ApiClient, ApiError
from table_ordering.core.order_status import CANCELLED, PROGRESS_STAGES
from table_ordering.core.realtime_events import ORDER_STATUS_UPDATE

logger = logging.getLogger(__name__)

REFRESH_INTERVAL_SECONDS = 10.0


class OrderTracker:
    def __init__(self, api: ApiClient, order_number: str, order: Optional[Dict[str, Any]] = None):
        self.api = api
        self.order_number = order_number
        self.order = order
        self.last_error: Optional[str] = None

    @property
    def status(self) -> Optional[str]:
        return self.order.get("status") if self.order else None

    @property
    def is_cancelled(self) -> bool:
        return self.status == CANCELLED

    @property
    def stage_index(self) -> Optional[int]:
        """Position on the progress bar; None when cancelled or unknown."""
        if self.status in PROGRESS_STAGES:
            return PROGRESS_STAGES.index(self.status)
        return None

    def progress(self) -> list[dict]:
        current = self.stage_index
        return [
            {"status": stage, "done": current is not None and index <= current, "current": index == current}
            for index, stage in enumerate(PROGRESS_STAGES)
        ]

    def refresh(self) -> Optional[Dict[str, Any]]:
        try:
            self.order = self.api.get_order(self.order_number)
            self.last_error = None
        except ApiError as exc:
            # mantém o último estado conhecido
            self.last_error = exc.detail
            logger.warning("order refresh failed number=%s error=%s", self.order_number, exc.detail)
        return self.order

    async def handle_event(self, message: Dict[str, Any]) -> None:
        if message.get("type") != ORDER_STATUS_UPDATE or not self.order:
            return
        data = message.get("data") or {}
        if data.get("order_id") != self.order.get("id"):
            return
        self.order = {**self.order, "status": data.get("status", self.order.get("status"))}

    async def poll_forever(self, interval: float = REFRESH_INTERVAL_SECONDS) -> None:
        while True:
            await asyncio.to_thread(self.refresh)
            await asyncio.sleep(interval)

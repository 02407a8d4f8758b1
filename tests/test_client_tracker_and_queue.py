import asyncio
import json

import pytest
from websockets.exceptions import ConnectionClosedError

from table_ordering.client.api import ApiClient, ApiError
from table_ordering.client.realtime import RealtimeListener
from table_ordering.client.state import AppState
from table_ordering.client.staff_queue import StaffQueue, next_action
from table_ordering.client.tracker import OrderTracker
from tests.fixtures_data import HAPPY_PATH_ORDER_PAYLOAD, STAFF_USER
from tests.support import build_client


class FlakyApi:
    """Devolve as respostas em sequência; ``ApiError`` na lista vira falha."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.status_updates = []

    def _next(self):
        response = self.responses.pop(0)
        if isinstance(response, ApiError):
            raise response
        return response

    def get_order(self, _order_number):
        return self._next()

    def list_staff_orders(self, _status=None):
        return self._next()

    def update_order_status(self, order_id, status):
        self.status_updates.append((order_id, status))
        return {"id": order_id, "status": status}


def test_tracker_follows_status_updates_for_its_order_only():
    client, _ = build_client(user=STAFF_USER)
    order = client.post("/api/orders", json=HAPPY_PATH_ORDER_PAYLOAD).json()
    tracker = OrderTracker(ApiClient(http=client), order["order_number"])
    tracker.refresh()
    assert tracker.stage_index == 0

    asyncio.run(tracker.handle_event({"type": "ORDER_STATUS_UPDATE", "data": {"order_id": order["id"] + 1, "status": "ready"}}))
    assert tracker.status == "pending"

    asyncio.run(tracker.handle_event({"type": "ORDER_STATUS_UPDATE", "data": {"order_id": order["id"], "status": "ready"}}))
    assert tracker.status == "ready"
    assert tracker.stage_index == 2
    assert [stage["done"] for stage in tracker.progress()] == [True, True, True, False]


def test_tracker_keeps_last_state_when_refresh_fails():
    api = FlakyApi([{"id": 1, "status": "preparing"}, ApiError(None, "offline")])
    tracker = OrderTracker(api, "ORD-1")

    tracker.refresh()
    tracker.refresh()

    assert tracker.status == "preparing"
    assert tracker.last_error == "offline"


def test_tracker_shows_cancelled_outside_progress():
    tracker = OrderTracker(FlakyApi([]), "ORD-2", order={"id": 2, "status": "cancelled"})

    assert tracker.is_cancelled
    assert tracker.stage_index is None
    assert not any(stage["done"] for stage in tracker.progress())


class CountingApi:
    def __init__(self):
        self.calls = 0

    def get_order(self, _order_number):
        self.calls += 1
        return {"id": 1, "status": "ready" if self.calls >= 2 else "pending"}


def test_tracker_poll_loop_refreshes_periodically():
    api = CountingApi()
    tracker = OrderTracker(api, "ORD-3")

    async def _scenario():
        task = asyncio.create_task(tracker.poll_forever(interval=0.01))
        for _ in range(200):
            if api.calls >= 2:
                break
            await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(_scenario())

    assert api.calls >= 2
    assert tracker.status == "ready"


def test_next_action_mapping():
    assert next_action("pending") == {"status": "preparing", "label": "Start Preparing"}
    assert next_action("preparing") == {"status": "ready", "label": "Mark Ready"}
    assert next_action("ready") == {"status": "served", "label": "Mark Served"}
    assert next_action("served") is None
    assert next_action("cancelled") is None


def test_staff_queue_counts_and_advance_against_server():
    client, _ = build_client(user=STAFF_USER)
    first = client.post("/api/orders", json=HAPPY_PATH_ORDER_PAYLOAD).json()
    client.post("/api/orders", json=HAPPY_PATH_ORDER_PAYLOAD)
    queue = StaffQueue(ApiClient(http=client))
    queue.refresh()

    assert queue.counts() == {"pending": 2, "preparing": 0, "ready": 0, "served": 0, "total": 2}

    updated = queue.advance(first["id"])

    assert updated["status"] == "preparing"
    assert queue.counts()["preparing"] == 1


def test_staff_queue_refreshes_on_events_and_keeps_list_on_failure():
    api = FlakyApi([[{"id": 1, "status": "pending"}], ApiError(503, "down")])
    queue = StaffQueue(api)

    async def _events():
        await queue.handle_event({"type": "NEW_ORDER", "data": {}})
        await queue.handle_event({"type": "PONG"})
        await queue.handle_event({"type": "ORDER_STATUS_UPDATE", "data": {}})

    asyncio.run(_events())

    assert queue.orders == [{"id": 1, "status": "pending"}]
    assert queue.last_error == "down"


def test_staff_queue_has_no_action_for_served_orders():
    api = FlakyApi([[{"id": 9, "status": "served"}]])
    queue = StaffQueue(api)
    queue.refresh()

    assert queue.advance(9) is None
    assert api.status_updates == []
    with pytest.raises(LookupError):
        queue.advance(10)


def test_staff_queue_rejects_unknown_filter():
    with pytest.raises(ValueError):
        StaffQueue(FlakyApi([]), status_filter="delivered")


class FakeSocket:
    def __init__(self, messages, fail_with=None):
        self.messages = list(messages)
        self.fail_with = fail_with
        self.sent = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *_exc):
        return False

    async def send(self, data):
        self.sent.append(json.loads(data))

    def __aiter__(self):
        return self

    async def __anext__(self):
        await asyncio.sleep(0.02)
        if self.messages:
            return self.messages.pop(0)
        if self.fail_with is not None:
            raise self.fail_with
        raise StopAsyncIteration


def test_listener_dispatches_pings_and_reconnects():
    sockets = [
        FakeSocket([json.dumps({"type": "NEW_ORDER", "data": {"id": 1}}), "garbage"], fail_with=ConnectionClosedError(None, None)),
        FakeSocket([json.dumps({"type": "ORDER_STATUS_UPDATE", "data": {"order_id": 1, "status": "ready"}})]),
    ]
    attempts = []

    def _connect(url):
        attempts.append(url)
        if len(attempts) == 2:
            raise OSError("refused")
        return sockets.pop(0)

    received = []
    connection_changes = []
    listener = RealtimeListener(
        "ws://api.test/ws",
        connect=_connect,
        ping_interval=0.01,
        reconnect_delay=0,
        max_attempts=3,
        on_connection_change=connection_changes.append,
    )
    listener.on("*", lambda message: received.append(message["type"]))

    asyncio.run(listener.run())

    assert received == ["NEW_ORDER", "ORDER_STATUS_UPDATE"]
    assert listener.attempts == 3
    assert connection_changes == [True, False, True, False]


def test_listener_handler_errors_do_not_stop_dispatch():
    socket = FakeSocket([json.dumps({"type": "NEW_ORDER"}), json.dumps({"type": "NEW_ORDER"})])
    seen = []

    def _broken(_message):
        raise RuntimeError("handler bug")

    async def _async_handler(message):
        seen.append(message["type"])

    listener = RealtimeListener("ws://api.test/ws", connect=lambda _url: socket, reconnect_delay=0, max_attempts=1)
    listener.on("NEW_ORDER", _broken)
    listener.on("NEW_ORDER", _async_handler)

    asyncio.run(listener.run())

    assert seen == ["NEW_ORDER", "NEW_ORDER"]


def test_listener_stop_ends_run():
    socket = FakeSocket([json.dumps({"type": "PONG"})] * 100)
    listener = RealtimeListener("ws://api.test/ws", connect=lambda _url: socket, reconnect_delay=0)

    async def _scenario():
        task = asyncio.create_task(listener.run())
        await asyncio.sleep(0.05)
        listener.stop()
        await asyncio.wait_for(task, timeout=1)

    asyncio.run(_scenario())

    assert listener.attempts == 1
    assert not listener.connected


def test_app_state_routes_realtime_events_to_tracker_and_queue():
    client, _ = build_client(user=STAFF_USER)
    state = AppState(api=ApiClient(http=client), table_number=3)
    state.cart.add({"id": 1, "name": "Picanha", "price": "45.00"}, quantity=2)
    order = state.place_order()
    queue = state.watch_staff_queue()
    assert state.tracker.status == "pending"
    assert queue.counts()["pending"] == 1

    client.patch(f"/api/staff/orders/{order['id']}/status", json={"status": "preparing"})
    socket = FakeSocket(
        [json.dumps({"type": "ORDER_STATUS_UPDATE", "data": {"order_id": order["id"], "status": "preparing"}})]
    )
    connected_during_dispatch = []
    listener = state.connect_realtime("ws://api.test/ws", connect=lambda _url: socket, reconnect_delay=0, max_attempts=1)
    listener.on("*", lambda _message: connected_during_dispatch.append(state.connected))

    asyncio.run(listener.run())

    assert connected_during_dispatch == [True]
    assert not state.connected
    assert state.tracker.status == "preparing"
    assert state.current_order["status"] == "preparing"
    assert queue.counts()["preparing"] == 1


def test_app_state_close_stops_the_realtime_task():
    client, _ = build_client()
    state = AppState(api=ApiClient(http=client))
    socket = FakeSocket([json.dumps({"type": "PONG"})] * 100)

    async def _scenario():
        task = state.start_realtime("ws://api.test/ws", connect=lambda _url: socket, reconnect_delay=0)
        await asyncio.sleep(0.05)
        assert state.connected
        state.close()
        await asyncio.wait_for(asyncio.gather(task, return_exceptions=True), timeout=1)
        return task

    task = asyncio.run(_scenario())

    assert task.done()
    assert not state.connected
    assert state.listener is None
    with pytest.raises(RuntimeError):
        state.connect_realtime("ws://api.test/ws")

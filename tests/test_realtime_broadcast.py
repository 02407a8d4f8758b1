import asyncio
from types import SimpleNamespace

from table_ordering.core.realtime_events import NEW_ORDER, ORDER_STATUS_UPDATE, PING, PONG
from table_ordering.services.broadcast import BroadcastChannel
from tests.fixtures_data import HAPPY_PATH_ORDER_PAYLOAD, STAFF_USER
from tests.support import build_client


def _handshake(ws):
    # garante que a conexão já está registrada no canal
    ws.send_json({"type": PING})
    assert ws.receive_json() == {"type": PONG}


def test_ping_gets_pong_and_garbage_is_ignored():
    client, _ = build_client()

    with client.websocket_connect("/ws") as ws:
        ws.send_text("not json")
        ws.send_json({"type": "SOMETHING_ELSE"})
        ws.send_json(["not", "an", "envelope"])
        _handshake(ws)


def test_new_order_is_broadcast_once_with_same_order_number():
    client, _ = build_client()

    with client.websocket_connect("/ws") as ws:
        _handshake(ws)
        order = client.post("/api/orders", json=HAPPY_PATH_ORDER_PAYLOAD).json()
        message = ws.receive_json()
        # o próximo frame tem que ser o PONG, não um segundo NEW_ORDER
        ws.send_json({"type": PING})
        next_frame = ws.receive_json()

    assert message["type"] == NEW_ORDER
    assert message["data"]["order_number"] == order["order_number"]
    assert message["data"]["total_amount"] == "120.50"
    assert next_frame == {"type": PONG}


def test_status_change_is_broadcast_to_every_listener():
    client, _ = build_client(user=STAFF_USER)
    order = client.post("/api/orders", json=HAPPY_PATH_ORDER_PAYLOAD).json()

    with client.websocket_connect("/ws") as first, client.websocket_connect("/ws") as second:
        _handshake(first)
        _handshake(second)
        response = client.patch(f"/api/staff/orders/{order['id']}/status", json={"status": "preparing"})
        first_message = first.receive_json()
        second_message = second.receive_json()

    assert response.status_code == 200
    expected = {
        "type": ORDER_STATUS_UPDATE,
        "data": {"order_id": order["id"], "order_number": order["order_number"], "status": "preparing"},
    }
    assert first_message == expected
    assert second_message == expected
    assert client.get(f"/api/orders/{order['order_number']}").json()["status"] == "preparing"


def test_order_creation_succeeds_without_listeners():
    client, _ = build_client()

    response = client.post("/api/orders", json=HAPPY_PATH_ORDER_PAYLOAD)

    assert response.status_code == 201


class _BrokenSocket:
    def __init__(self):
        self.accepted = False

    async def accept(self):
        self.accepted = True

    async def send_json(self, _message):
        raise RuntimeError("socket closed")


def test_failed_send_drops_listener():
    channel = BroadcastChannel()

    async def _scenario():
        socket = _BrokenSocket()
        await channel.connect(socket)
        assert channel.listener_count == 1
        channel.publish({"type": NEW_ORDER, "data": {}})
        for _ in range(5):
            await asyncio.sleep(0)

    asyncio.run(_scenario())

    assert channel.listener_count == 0


def test_publish_skips_listener_whose_loop_is_closed():
    channel = BroadcastChannel()
    loop = asyncio.new_event_loop()
    loop.close()
    socket = SimpleNamespace()
    channel._listeners[id(socket)] = SimpleNamespace(websocket=socket, loop=loop)

    assert channel.publish({"type": NEW_ORDER, "data": {}}) == 0
    assert channel.listener_count == 0

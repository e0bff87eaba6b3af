import json

import pytest
from starlette.websockets import WebSocketState

from geobench.api.websocket.manager import BroadcastHub, ClientConnection, WSMessage


class FailingWebSocket:
    client_state = WebSocketState.CONNECTED

    async def send_text(self, text):
        raise RuntimeError("socket closed")


@pytest.mark.asyncio
async def test_publish_reaches_only_room_members():
    hub = BroadcastHub()
    perf = await hub.open_queue(["performance"])
    bench = await hub.open_queue(["benchmark"])

    delivered = await hub.publish("benchmark", "benchmark-progress", {"id": "b1", "progress": 10.0, "round": 1})

    assert delivered == 1
    assert perf.drain() == []
    [message] = bench.drain()
    assert message.type == "benchmark-progress"
    assert message.data["progress"] == 10.0


@pytest.mark.asyncio
async def test_full_queue_drops_messages():
    hub = BroadcastHub(queue_size=2)
    subscriber = await hub.open_queue()

    for i in range(5):
        await hub.publish("performance", "performance-update", {"i": i})

    assert [m.data["i"] for m in subscriber.drain()] == [0, 1]
    assert subscriber.dropped == 3


@pytest.mark.asyncio
async def test_failed_websocket_send_disconnects_client():
    hub = BroadcastHub()
    hub._connections["client_x"] = ClientConnection(
        websocket=FailingWebSocket(), client_id="client_x", subscriptions={"performance"}
    )
    queue = await hub.open_queue(["performance"])

    delivered = await hub.broadcast_performance({"tps": 1})

    assert delivered == 1
    assert "client_x" not in hub._connections
    assert queue.drain()[0].type == "performance-update"


@pytest.mark.asyncio
async def test_joining_subscriber_gets_snapshot_and_status():
    hub = BroadcastHub()
    joined = []

    async def on_join(client_id):
        joined.append(client_id)

    hub.bind(
        snapshot_provider=lambda: {"estimated": False},
        status_provider=lambda: True,
        connect_hook=on_join,
    )
    subscriber = await hub.open_queue()

    messages = subscriber.drain()
    assert [m.type for m in messages] == ["performance-update", "monitoring-status"]
    assert messages[1].data == {"is_monitoring": True}
    assert joined == [subscriber.client_id]


@pytest.mark.asyncio
async def test_client_commands():
    hub = BroadcastHub()
    commands = []

    async def handler(command, data):
        commands.append(command)

    hub.bind(snapshot_provider=lambda: {}, command_handler=handler)
    subscriber = await hub.open_queue(["monitoring"])
    subscriber.drain()

    await hub.handle_client_message(subscriber.client_id, json.dumps({"type": "ping"}))
    await hub.handle_client_message(subscriber.client_id, json.dumps({"type": "subscribe", "rooms": ["benchmark", "bogus"]}))
    await hub.handle_client_message(subscriber.client_id, json.dumps({"type": "start-monitoring"}))
    await hub.handle_client_message(subscriber.client_id, json.dumps({"type": "request-snapshot"}))
    await hub.handle_client_message(subscriber.client_id, "not json")

    assert subscriber.subscriptions == {"monitoring", "benchmark"}
    assert [m.type for m in subscriber.drain()] == ["pong", "performance-update"]
    assert commands == ["start-monitoring"]

    await hub.handle_client_message(subscriber.client_id, json.dumps({"type": "unsubscribe", "channels": "benchmark"}))
    assert subscriber.subscriptions == {"monitoring"}


@pytest.mark.asyncio
async def test_stats_list_subscribers():
    hub = BroadcastHub(max_connections=5)
    subscriber = await hub.open_queue(["monitoring", "benchmark"])

    stats = hub.get_stats()

    assert stats["total_connections"] == 1
    assert stats["max_connections"] == 5
    assert stats["clients"][0]["client_id"] == subscriber.client_id
    assert stats["clients"][0]["subscriptions"] == ["benchmark", "monitoring"]


def test_message_serializes_to_json():
    payload = json.loads(WSMessage(type="pong", data={"n": 1}).to_json())
    assert payload["type"] == "pong"
    assert payload["data"] == {"n": 1}
    assert "timestamp" in payload

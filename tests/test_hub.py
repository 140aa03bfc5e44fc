from __future__ import annotations

import asyncio

from conftest import FakeWebSocket
from starlette.websockets import WebSocketState

from agentcast.broadcast.hub import BroadcastHub
from agentcast.processing.models import AgentStatus, TaskProgress


def test_connect_sends_handshake_with_client_id() -> None:
    hub = BroadcastHub()
    websocket = FakeWebSocket()

    client_id = asyncio.run(hub.connect(websocket))

    assert websocket.events() == [{"type": "connected", "clientId": client_id}]
    assert hub.connection_count == 1


def test_each_connection_gets_a_distinct_id() -> None:
    hub = BroadcastHub()

    async def scenario() -> tuple[str, str]:
        return await hub.connect(FakeWebSocket()), await hub.connect(FakeWebSocket())

    first, second = asyncio.run(scenario())

    assert first != second
    assert hub.connection_count == 2


def test_broadcast_without_observers_is_a_no_op() -> None:
    hub = BroadcastHub()

    asyncio.run(hub.broadcast({"type": "taskError", "data": {"taskId": 1, "error": "boom"}}))

    assert hub.connection_count == 0


def test_broadcast_reaches_every_observer() -> None:
    hub = BroadcastHub()
    observers = [FakeWebSocket(), FakeWebSocket()]
    progress = TaskProgress(
        task_id=4,
        progress=50.0,
        status="processing",
        agent_status=AgentStatus(venmo="active"),
    )

    async def scenario() -> None:
        for websocket in observers:
            await hub.connect(websocket)
        await hub.publish_progress(progress)

    asyncio.run(scenario())

    for websocket in observers:
        assert websocket.events()[-1] == {
            "type": "taskProgress",
            "data": {
                "taskId": 4,
                "progress": 50.0,
                "status": "processing",
                "agentStatus": {"supervisor": "idle", "phone": "idle", "venmo": "active"},
            },
        }


def test_failed_and_closed_connections_are_dropped_without_raising() -> None:
    hub = BroadcastHub()
    healthy = FakeWebSocket()
    broken = FakeWebSocket()
    closed = FakeWebSocket()

    async def scenario() -> None:
        for websocket in (healthy, broken, closed):
            await hub.connect(websocket)
        broken.fail_on_send = True
        closed.client_state = WebSocketState.DISCONNECTED
        await hub.publish_error(9, "oracle offline")
        await hub.publish_error(9, "second event")

    asyncio.run(scenario())

    assert hub.connection_count == 1
    assert [event["type"] for event in healthy.events()] == ["connected", "taskError", "taskError"]
    assert healthy.events()[1]["data"] == {"taskId": 9, "error": "oracle offline"}
    # Skipped observers are not retried.
    assert len(broken.events()) == 1
    assert len(closed.events()) == 1


def test_disconnect_is_idempotent() -> None:
    hub = BroadcastHub()

    async def scenario() -> None:
        client_id = await hub.connect(FakeWebSocket())
        await hub.disconnect(client_id)
        await hub.disconnect(client_id)

    asyncio.run(scenario())

    assert hub.connection_count == 0


def test_close_all_closes_open_connections() -> None:
    hub = BroadcastHub()
    websocket = FakeWebSocket()

    async def scenario() -> None:
        await hub.connect(websocket)
        await hub.close_all()

    asyncio.run(scenario())

    assert hub.connection_count == 0
    assert websocket.application_state == WebSocketState.DISCONNECTED

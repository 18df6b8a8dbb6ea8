import asyncio

import pytest
from starlette.websockets import WebSocketDisconnect

from lissan.services.event_bus import DomainEvent, EventBus, NEW_MESSAGE
from lissan.services.realtime_service import ConnectionManager


class FakeSocket:
    def __init__(self, broken=False):
        self.sent = []
        self.broken = broken

    async def send_json(self, data):
        if self.broken:
            raise RuntimeError("connection closed")
        self.sent.append(data)


def test_publish_reaches_every_subscriber():
    bus = EventBus()
    seen = []

    async def first(event):
        seen.append(("first", event.name))

    async def second(event):
        seen.append(("second", event.name))

    bus.subscribe(first)
    bus.subscribe(second)
    asyncio.run(bus.publish(DomainEvent(company_id="c1", name=NEW_MESSAGE, payload={})))

    assert seen == [("first", NEW_MESSAGE), ("second", NEW_MESSAGE)]


def test_failing_subscriber_does_not_stop_others():
    bus = EventBus()
    seen = []

    async def broken(event):
        raise RuntimeError("boom")

    async def healthy(event):
        seen.append(event.company_id)

    bus.subscribe(broken)
    bus.subscribe(healthy)
    asyncio.run(bus.publish(DomainEvent(company_id="c1", name=NEW_MESSAGE)))

    assert seen == ["c1"]


def test_unsubscribe():
    bus = EventBus()
    seen = []

    async def handler(event):
        seen.append(event)

    bus.subscribe(handler)
    bus.unsubscribe(handler)
    asyncio.run(bus.publish(DomainEvent(company_id="c1", name=NEW_MESSAGE)))

    assert seen == []


def test_broadcast_stays_in_one_room():
    manager = ConnectionManager()
    tenant_a = FakeSocket()
    tenant_b = FakeSocket()
    manager.join("company-a", tenant_a)
    manager.join("company-b", tenant_b)

    asyncio.run(manager.handle_event(DomainEvent(company_id="company-a", name=NEW_MESSAGE, payload={"conversationId": "x"})))

    assert tenant_a.sent == [{"event": NEW_MESSAGE, "data": {"conversationId": "x"}}]
    assert tenant_b.sent == []


def test_dead_sockets_are_pruned():
    manager = ConnectionManager()
    alive = FakeSocket()
    dead = FakeSocket(broken=True)
    manager.join("company-a", alive)
    manager.join("company-a", dead)

    asyncio.run(manager.broadcast("company-a", NEW_MESSAGE, {}))

    assert manager.connection_count("company-a") == 1
    assert alive.sent == [{"event": NEW_MESSAGE, "data": {}}]


def test_leave_empties_room():
    manager = ConnectionManager()
    socket = FakeSocket()
    manager.join("company-a", socket)

    manager.leave(socket)

    assert manager.connection_count("company-a") == 0
    assert manager.rooms == {}


def test_websocket_joins_own_room(app, client, register):
    account = register()
    company_id = account["company"]["id"]

    with client.websocket_connect(f"/ws?token={account['token']}") as websocket:
        websocket.send_json({"event": "join-room", "data": company_id})
        assert websocket.receive_json() == {"event": "joined-room", "data": company_id}
        assert app.state.connections.connection_count(company_id) == 1


def test_websocket_refuses_other_tenant_room(app, client, register):
    account = register()
    other = register()

    with client.websocket_connect(f"/ws?token={account['token']}") as websocket:
        websocket.send_json({"event": "join-room", "data": other["company"]["id"]})
        reply = websocket.receive_json()

    assert reply["event"] == "error"
    assert reply["data"] == {"message": "Not allowed to join this room"}
    assert app.state.connections.connection_count(other["company"]["id"]) == 0


def test_websocket_rejects_bad_token(client):
    with client.websocket_connect("/ws?token=not-a-jwt") as websocket:
        assert websocket.receive_json() == {"event": "error", "data": {"message": "Invalid token"}}
        with pytest.raises(WebSocketDisconnect):
            websocket.receive_json()

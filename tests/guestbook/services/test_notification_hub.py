import asyncio
import json
from datetime import datetime

from starlette.websockets import WebSocketState

from guestbook.services.notification_hub import NotificationHub, build_envelope


class _FakeWebSocket:
    def __init__(self, incoming=None, fail_on_send: bool = False, fail_on_receive: bool = False):
        self.incoming = list(incoming or [])
        self.fail_on_send = fail_on_send
        self.fail_on_receive = fail_on_receive
        self.sent: list[str] = []
        self.accepted = False
        self.closed = False
        self.client_state = WebSocketState.CONNECTING
        self.application_state = WebSocketState.CONNECTING
        self.open_connections_seen: list[int] = []
        self.hub = None

    async def accept(self):
        self.accepted = True
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED

    async def receive(self):
        if self.hub is not None:
            self.open_connections_seen.append(self.hub.connection_count)
        if self.fail_on_receive:
            raise RuntimeError('socket reset')
        message = self.incoming.pop(0)
        if message['type'] == 'websocket.disconnect':
            self.client_state = WebSocketState.DISCONNECTED
        return message

    async def send_text(self, payload: str):
        if self.fail_on_send:
            raise ConnectionError('peer went away')
        self.sent.append(payload)

    async def close(self, code: int = 1000):
        self.closed = True
        self.application_state = WebSocketState.DISCONNECTED


def test_broadcast_without_connections_returns_zero() -> None:
    hub = NotificationHub()

    delivered = asyncio.run(hub.broadcast(3, 'hello'))

    assert delivered == 0


def test_broadcast_sends_envelope_to_every_connection() -> None:
    hub = NotificationHub()
    first, second = _FakeWebSocket(), _FakeWebSocket()

    async def scenario():
        await hub.register(first)
        await hub.register(second)
        return await hub.broadcast(3, 'Tamu sudah datang')

    delivered = asyncio.run(scenario())

    assert delivered == 2
    for socket in (first, second):
        assert len(socket.sent) == 1
        envelope = json.loads(socket.sent[0])
        assert envelope['staffId'] == 3
        assert envelope['message'] == 'Tamu sudah datang'
        assert datetime.fromisoformat(envelope['timestamp']).tzinfo is not None


def test_broadcast_skips_failing_connection() -> None:
    hub = NotificationHub()
    broken, healthy = _FakeWebSocket(fail_on_send=True), _FakeWebSocket()

    async def scenario():
        await hub.register(broken)
        await hub.register(healthy)
        return await hub.broadcast(4, 'pesan')

    delivered = asyncio.run(scenario())

    assert delivered == 1
    assert len(healthy.sent) == 1
    assert broken.sent == []


def test_broadcast_drops_stalled_connection_without_delaying_others() -> None:
    class _StalledWebSocket(_FakeWebSocket):
        async def send_text(self, payload: str):
            await asyncio.sleep(3600)

    hub = NotificationHub(send_timeout=0.05)
    stalled, healthy = _StalledWebSocket(), _FakeWebSocket()

    async def scenario():
        await hub.register(stalled)
        await hub.register(healthy)
        return await asyncio.wait_for(hub.broadcast(3, 'pesan'), timeout=2)

    delivered = asyncio.run(scenario())

    assert delivered == 1
    assert len(healthy.sent) == 1
    assert hub.connection_count == 1


def test_broadcast_does_not_reach_unregistered_connection() -> None:
    hub = NotificationHub()
    gone, staying = _FakeWebSocket(), _FakeWebSocket()

    async def scenario():
        await hub.register(gone)
        await hub.register(staying)
        await hub.unregister(gone)
        return await hub.broadcast(3, 'pesan')

    delivered = asyncio.run(scenario())

    assert delivered == 1
    assert gone.sent == []
    assert hub.connection_count == 1


def test_accept_registers_until_peer_disconnects() -> None:
    hub = NotificationHub()
    socket = _FakeWebSocket(
        incoming=[
            {'type': 'websocket.receive', 'text': 'ping'},
            {'type': 'websocket.disconnect', 'code': 1000},
        ]
    )
    socket.hub = hub

    asyncio.run(hub.accept(socket))

    assert socket.accepted
    assert socket.open_connections_seen == [1, 1]
    assert hub.connection_count == 0
    assert socket.closed is False


def test_accept_releases_connection_after_error() -> None:
    hub = NotificationHub()
    socket = _FakeWebSocket(fail_on_receive=True)

    asyncio.run(hub.accept(socket))

    assert hub.connection_count == 0
    assert socket.closed is True


def test_concurrent_registration_and_broadcast() -> None:
    hub = NotificationHub()
    sockets = [_FakeWebSocket() for _ in range(50)]

    async def scenario():
        await asyncio.gather(*(hub.register(socket) for socket in sockets))
        results = await asyncio.gather(
            hub.broadcast(3, 'satu'),
            *(hub.unregister(socket) for socket in sockets[:25]),
            hub.broadcast(3, 'dua'),
        )
        return results[0], results[-1]

    first_delivered, second_delivered = asyncio.run(scenario())

    assert hub.connection_count == 25
    assert 25 <= first_delivered <= 50
    assert 25 <= second_delivered <= 50
    assert all(len(socket.sent) == 2 for socket in sockets[25:])


def test_build_envelope_uses_wire_field_names() -> None:
    envelope = build_envelope(7, 'halo')

    assert set(envelope) == {'staffId', 'message', 'timestamp'}
    assert envelope['staffId'] == 7

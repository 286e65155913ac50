"""
Tests for RelayHub fan-out, independent of any web server.
"""
import asyncio

import pytest
from starlette.websockets import WebSocketState

from loopjam.core import settings
from loopjam.runtime.relay import RelayHub


pytestmark = pytest.mark.anyio


class FakeSocket:
    def __init__(self, *, fail: bool = False, stall: bool = False):
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.fail = fail
        self.stall = stall
        self.received: list = []
        self.closed_with: int | None = None

    async def send_bytes(self, data: bytes) -> None:
        await self._deliver(data)

    async def send_text(self, data: str) -> None:
        await self._deliver(data)

    async def _deliver(self, data) -> None:
        if self.fail:
            raise RuntimeError("socket is gone")
        if self.stall:
            await asyncio.sleep(3600)
        self.received.append(data)

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.closed_with = code
        self.application_state = WebSocketState.DISCONNECTED


async def settle() -> None:
    for _ in range(50):
        await asyncio.sleep(0)


@pytest.fixture
def hub() -> RelayHub:
    return RelayHub(outbox_size=4, send_timeout_s=0.05)


class TestBroadcast:

    async def test_fans_out_to_everyone_but_sender(self, hub):
        a, b, c = (hub.connect(FakeSocket()) for _ in range(3))
        assert hub.broadcast(a, b"X") == 2
        assert a.outbox.empty()
        assert b.outbox.get_nowait() == b"X"
        assert c.outbox.get_nowait() == b"X"

    async def test_n_minus_one_deliveries(self, hub):
        peers = [hub.connect(FakeSocket()) for _ in range(6)]
        assert hub.broadcast(peers[2], b"clip") == 5

    async def test_alone_in_the_room(self, hub):
        a = hub.connect(FakeSocket())
        assert hub.broadcast(a, b"X") == 0

    async def test_skips_peers_that_are_not_ready(self, hub):
        a = hub.connect(FakeSocket())
        gone = FakeSocket()
        gone.client_state = WebSocketState.DISCONNECTED
        b = hub.connect(gone)
        assert hub.broadcast(a, b"X") == 0
        assert b.outbox.empty()

    async def test_full_outbox_drops_for_that_peer_only(self, hub):
        a, slow, fast = (hub.connect(FakeSocket()) for _ in range(3))
        for i in range(4):
            hub.broadcast(a, bytes([i]))
        while not fast.outbox.empty():
            fast.outbox.get_nowait()

        assert hub.broadcast(a, b"late") == 1
        assert slow.dropped == 1
        assert hub.dropped == 1
        assert fast.outbox.get_nowait() == b"late"

    async def test_disconnect_forgets_queued_payloads(self, hub):
        a, b = hub.connect(FakeSocket()), hub.connect(FakeSocket())
        hub.broadcast(a, b"X")
        hub.disconnect(b)
        hub.disconnect(b)
        assert b.outbox.empty()
        assert len(hub) == 1
        assert hub.broadcast(a, b"Y") == 0


class TestPump:

    async def test_delivers_in_order_and_unmodified(self, hub):
        a, b = hub.connect(FakeSocket()), hub.connect(FakeSocket())
        writer = asyncio.create_task(hub.pump(b))
        payloads = [b"\x00\xff\x10", "text frame", b"", bytes(range(256))]
        for p in payloads:
            hub.broadcast(a, p)
        await settle()
        writer.cancel()

        assert b.websocket.received == payloads
        assert b.delivered == 4
        assert hub.delivered == 4

    async def test_failed_peer_is_dropped_others_unaffected(self, hub):
        a = hub.connect(FakeSocket())
        broken = hub.connect(FakeSocket(fail=True))
        ok = hub.connect(FakeSocket())
        writers = [asyncio.create_task(hub.pump(p)) for p in (broken, ok)]

        assert hub.broadcast(a, b"X") == 2
        await settle()

        assert ok.websocket.received == [b"X"]
        assert broken.websocket.closed_with == 1011
        assert broken.websocket not in hub.peers
        assert writers[0].done()
        assert hub.broadcast(a, b"Y") == 1
        await settle()
        assert ok.websocket.received == [b"X", b"Y"]
        writers[1].cancel()

    async def test_stalled_peer_times_out(self, hub):
        a = hub.connect(FakeSocket())
        stalled = hub.connect(FakeSocket(stall=True))
        ok = hub.connect(FakeSocket())
        writers = [asyncio.create_task(hub.pump(p)) for p in (stalled, ok)]

        hub.broadcast(a, b"X")
        await settle()
        assert ok.websocket.received == [b"X"]

        await asyncio.sleep(0.2)
        assert stalled.websocket not in hub.peers
        assert len(hub) == 2
        writers[1].cancel()

    async def test_close_all(self, hub):
        sockets = [FakeSocket() for _ in range(3)]
        for s in sockets:
            hub.connect(s)
        await hub.close_all()
        assert len(hub) == 0
        assert all(s.closed_with == 1001 for s in sockets)


class TestLimits:

    async def test_explicit_values_are_kept(self):
        hub = RelayHub(outbox_size=0, send_timeout_s=0.0)
        assert hub.outbox_size == 0
        assert hub.send_timeout_s == 0.0

    async def test_defaults_come_from_settings(self):
        hub = RelayHub()
        assert hub.outbox_size == settings.RELAY_OUTBOX_SIZE
        assert hub.send_timeout_s == settings.RELAY_SEND_TIMEOUT_S

"""
Tests for LoopClient wiring and the relay client's offline behaviour.
"""
import logging

import pytest

from loopjam.client.app import LoopClient
from loopjam.client.capture import FileRecorder
from loopjam.client.engine import MixerEngine
from loopjam.client.loop import LoopSpec
from loopjam.client.relay_client import RelayClient
from loopjam.core.errors import RelayConnectionError
from loopjam.core.logging import setup_logging


pytestmark = pytest.mark.anyio


class FakeRelay:
    def __init__(self, incoming: list[bytes]):
        self.incoming = incoming
        self.sent: list[bytes] = []
        self.connected = False

    async def connect(self) -> None:
        self.connected = True

    async def send(self, blob: bytes) -> None:
        self.sent.append(blob)

    async def listen(self, on_blob) -> None:
        for blob in self.incoming:
            await on_blob(blob)


@pytest.fixture
def loop_client(loop_spec, wav_bytes):
    relay = FakeRelay([wav_bytes(2.4), b"garbage", wav_bytes(4.8)])
    return LoopClient(loop=loop_spec, relay=relay, recorder=FileRecorder())


class TestLoopClient:

    async def test_run_applies_remote_clips(self, loop_client):
        await loop_client.run()
        assert loop_client.relay.connected
        widths = [v.width_px for v in loop_client.session.track_views()]
        assert widths == [pytest.approx(200), pytest.approx(400)]
        assert all(t.source == "remote" for t in loop_client.session.tracks)
        assert loop_client.relay.sent == []

    async def test_recording_is_shared_and_heard_locally(self, loop_client, wav_bytes, tmp_path):
        path = tmp_path / "take.wav"
        path.write_bytes(wav_bytes(1.2))
        loop_client.capture.recorder.cue(path)

        await loop_client.capture.toggle()
        assert loop_client.is_recording
        await loop_client.capture.toggle()
        assert not loop_client.is_recording

        assert loop_client.relay.sent == [path.read_bytes()]
        assert len(loop_client.session.tracks) == 1
        assert loop_client.session.tracks[0].source == "local"

    async def test_default_engine_is_mixer(self, loop_client):
        assert isinstance(loop_client.engine, MixerEngine)
        assert loop_client.engine.samplerate == loop_client.loop.samplerate

    async def test_playback_through_mixer(self, loop_client):
        await loop_client.run()
        loop_client.session.play()
        out = loop_client.engine.render(loop_client.loop.samplerate)
        assert out.shape == (loop_client.loop.samplerate, 2)
        assert abs(out).max() > 0


class TestRelayClientOffline:

    async def test_send_without_connection(self):
        with pytest.raises(RelayConnectionError):
            await RelayClient("ws://localhost:1/v1/relay/ws").send(b"X")

    async def test_listen_without_connection(self):
        with pytest.raises(RelayConnectionError):
            await RelayClient("ws://localhost:1/v1/relay/ws").listen(lambda blob: None)

    async def test_connect_refused(self):
        client = RelayClient("ws://127.0.0.1:9/v1/relay/ws")
        with pytest.raises(RelayConnectionError):
            await client.connect()
        assert not client.connected

    async def test_relay_error_is_connection_error(self):
        with pytest.raises(ConnectionError):
            await RelayClient().send(b"X")


def test_setup_logging_is_idempotent():
    logger = setup_logging("debug")
    handlers = list(logger.handlers)
    try:
        assert setup_logging("warning") is logger
        assert logger.handlers == handlers
        assert logger.level == logging.WARNING
    finally:
        for handler in handlers:
            logger.removeHandler(handler)
        logger.setLevel(logging.NOTSET)

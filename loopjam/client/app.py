from __future__ import annotations

from loopjam.client.bridge import CaptureBridge
from loopjam.client.capture import CaptureController, FileRecorder, Recorder
from loopjam.client.decoder import Decoder, SoundfileDecoder
from loopjam.client.engine import MixerEngine, PlaybackEngine
from loopjam.client.loop import LoopSpec
from loopjam.client.relay_client import RelayClient
from loopjam.client.timeline import LoopSession


class LoopClient:
    """Wires one participant together: session, capture, bridge and relay connection."""

    def __init__(
        self,
        *,
        loop: LoopSpec | None = None,
        engine: PlaybackEngine | None = None,
        decoder: Decoder | None = None,
        recorder: Recorder | None = None,
        relay: RelayClient | None = None,
    ):
        self.loop = loop or LoopSpec.from_settings()
        self.engine = engine or MixerEngine(samplerate=self.loop.samplerate)
        self.session = LoopSession(self.loop, self.engine)
        self.relay = relay or RelayClient()
        self.bridge = CaptureBridge(
            self.session,
            decoder or SoundfileDecoder(samplerate=self.loop.samplerate),
            self.relay,
        )
        self.capture = CaptureController(recorder or FileRecorder(), self.bridge.on_recorded)

    @property
    def is_recording(self) -> bool:
        return self.capture.is_recording

    async def run(self) -> None:
        """Connect and apply incoming clips until the relay goes away."""
        if not self.relay.connected:
            await self.relay.connect()
        await self.relay.listen(self.bridge.on_received)

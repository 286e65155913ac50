from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from loopjam.client.decoder import Decoder
from loopjam.client.timeline import LoopSession, Track
from loopjam.core.errors import DecodeError, RelayConnectionError
from loopjam.schemas.timeline import TrackSource


class Outbound(Protocol):
    async def send(self, blob: bytes) -> None:
        ...


class CaptureBridge:
    """
    Routes finished clips into the local session and out to the relay.

    Local recordings are shared and added locally at the same time, so the
    recording is heard without waiting for a round trip and a network failure
    never costs the local track. Clips from the relay are only added locally.
    """

    def __init__(self, session: LoopSession, decoder: Decoder, outbound: Outbound):
        self.session = session
        self.decoder = decoder
        self.outbound = outbound
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def on_recorded(self, blob: bytes) -> Track | None:
        _, track = await asyncio.gather(self._share(blob), self.add_blob(blob, source="local"))
        return track

    async def on_received(self, blob: bytes) -> Track | None:
        return await self.add_blob(blob, source="remote")

    async def add_blob(self, blob: bytes, *, source: TrackSource) -> Track | None:
        try:
            clip = await self.decoder.decode(blob)
        except DecodeError as e:
            self.logger.warning("dropping %s clip (%d bytes): %s", source, len(blob), e)
            return None
        return self.session.add_clip(clip, source=source)

    async def _share(self, blob: bytes) -> None:
        try:
            await self.outbound.send(blob)
        except RelayConnectionError as e:
            self.logger.warning("could not share clip (%d bytes): %s", len(blob), e)

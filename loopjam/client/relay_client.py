from __future__ import annotations

import logging
from typing import Awaitable, Callable

import websockets

from loopjam.core import settings
from loopjam.core.errors import RelayConnectionError


class RelayClient:
    """
    One persistent connection to the relay.

    Clips go out as binary frames; every binary frame coming back is a clip
    recorded by another participant.
    """

    def __init__(self, url: str | None = None):
        self.url = url or settings.RELAY_URL
        self._ws = None
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def connect(self) -> None:
        try:
            self._ws = await websockets.connect(self.url, max_size=None)
        except (OSError, websockets.exceptions.WebSocketException) as e:
            raise RelayConnectionError(f"cannot reach relay at {self.url}: {e}") from e
        self.logger.info("connected to %s", self.url)

    async def close(self) -> None:
        ws, self._ws = self._ws, None
        if ws is not None:
            await ws.close()

    async def __aenter__(self) -> "RelayClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def send(self, blob: bytes) -> None:
        if self._ws is None:
            raise RelayConnectionError("not connected to relay")
        try:
            await self._ws.send(blob)
        except websockets.exceptions.ConnectionClosed as e:
            self._ws = None
            raise RelayConnectionError(f"relay connection closed: {e}") from e

    async def listen(self, on_blob: Callable[[bytes], Awaitable[object]]) -> None:
        """Feed every received clip to ``on_blob`` until the connection closes."""
        if self._ws is None:
            raise RelayConnectionError("not connected to relay")
        try:
            async for message in self._ws:
                if isinstance(message, str):
                    self.logger.debug("ignoring %d-char text frame", len(message))
                    continue
                await on_blob(message)
        except websockets.exceptions.ConnectionClosed as e:
            self.logger.info("relay connection closed: %s", e)
        self._ws = None

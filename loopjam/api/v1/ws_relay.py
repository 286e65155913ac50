from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, WebSocket

from loopjam.runtime.relay import RelayHub

router = APIRouter(prefix="/relay", tags=["relay-ws"])

logger = logging.getLogger(__name__)


def get_hub(websocket: WebSocket) -> RelayHub:
    return websocket.app.state.relay_hub


@router.websocket("/ws")
async def relay_ws(websocket: WebSocket):
    hub = get_hub(websocket)

    # registered before accept() so it is in the set by the time the client
    # sees the handshake complete
    peer = hub.connect(websocket)
    writer: asyncio.Task | None = None

    try:
        await websocket.accept()
        writer = asyncio.create_task(hub.pump(peer))

        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            payload = message.get("bytes")
            if payload is None:
                payload = message.get("text")
            if payload is None:
                continue

            queued = hub.broadcast(peer, payload)
            logger.debug("%s: %d-byte payload -> %d peer(s)", peer.conn_id, len(payload), queued)
    finally:
        hub.disconnect(peer)
        if writer is not None:
            writer.cancel()
            try:
                await writer
            except asyncio.CancelledError:
                pass

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Union

from starlette.websockets import WebSocket, WebSocketState

from loopjam.core import settings

# Binary frames stay binary and text frames stay text.
Payload = Union[bytes, str]


@dataclass(eq=False)
class Peer:
    """One live relay connection and its ordered outbound queue."""
    websocket: WebSocket
    outbox: asyncio.Queue[Payload]
    conn_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    delivered: int = 0
    dropped: int = 0

    @property
    def ready(self) -> bool:
        # the writer only starts after accept(), so queueing during the
        # handshake is safe
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state != WebSocketState.DISCONNECTED
        )


class RelayHub:
    """
    Fan-out broadcaster for the relay endpoint.

    Guarantees:
    - a payload is never sent back to the connection it came from
    - a payload reaches each other ready peer at most once, unmodified
    - payloads from one sender reach a given peer in the order they were sent
      (one queue + one writer per peer)
    - a slow peer never blocks the others: its queue is bounded and a full
      queue drops the new payload for that peer only
    - nothing is kept once a connection goes away, so late joiners get no history
    """

    def __init__(
        self,
        *,
        outbox_size: int | None = None,
        send_timeout_s: float | None = None,
    ):
        self.outbox_size = outbox_size if outbox_size is not None else settings.RELAY_OUTBOX_SIZE
        self.send_timeout_s = send_timeout_s if send_timeout_s is not None else settings.RELAY_SEND_TIMEOUT_S
        self.peers: dict[WebSocket, Peer] = {}
        self.delivered = 0
        self.dropped = 0
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def __len__(self) -> int:
        return len(self.peers)

    # ---------- registry ----------

    def connect(self, websocket: WebSocket) -> Peer:
        peer = Peer(websocket=websocket, outbox=asyncio.Queue(maxsize=self.outbox_size))
        self.peers[websocket] = peer
        self.logger.info("peer %s connected (%d online)", peer.conn_id, len(self.peers))
        return peer

    def disconnect(self, peer: Peer) -> None:
        if self.peers.pop(peer.websocket, None) is None:
            return
        # anything still queued for it is simply forgotten
        while not peer.outbox.empty():
            peer.outbox.get_nowait()
        self.logger.info("peer %s disconnected (%d online)", peer.conn_id, len(self.peers))

    # ---------- fan-out ----------

    def broadcast(self, sender: Peer, payload: Payload) -> int:
        """
        Queue ``payload`` for every ready peer except ``sender``.

        Never blocks and never raises for a recipient's sake. Returns the
        number of peers the payload was queued for.
        """
        queued = 0
        for peer in list(self.peers.values()):
            if peer is sender or not peer.ready:
                continue
            try:
                peer.outbox.put_nowait(payload)
            except asyncio.QueueFull:
                peer.dropped += 1
                self.dropped += 1
                self.logger.warning(
                    "peer %s outbox full, dropping %d-byte payload from %s",
                    peer.conn_id, len(payload), sender.conn_id,
                )
                continue
            queued += 1
        return queued

    async def pump(self, peer: Peer) -> None:
        """
        Drain ``peer``'s outbox onto its socket until it fails or is cancelled.

        A send error or timeout marks the peer dead: it is unregistered and
        closed, the remaining peers are unaffected.
        """
        while True:
            payload = await peer.outbox.get()
            try:
                await asyncio.wait_for(self._send(peer, payload), timeout=self.send_timeout_s)
            except Exception as e:
                self.logger.warning("peer %s send failed (%s), dropping it", peer.conn_id, type(e).__name__)
                self.disconnect(peer)
                await self._close_quietly(peer, code=1011, reason="send failed")
                return
            peer.delivered += 1
            self.delivered += 1

    async def _send(self, peer: Peer, payload: Payload) -> None:
        if isinstance(payload, bytes):
            await peer.websocket.send_bytes(payload)
        else:
            await peer.websocket.send_text(payload)

    async def _close_quietly(self, peer: Peer, *, code: int, reason: str) -> None:
        if peer.websocket.application_state != WebSocketState.CONNECTED:
            return
        try:
            await peer.websocket.close(code=code, reason=reason)
        except Exception as e:
            self.logger.debug("closing peer %s failed: %s", peer.conn_id, e)

    async def close_all(self, reason: str = "relay shutting down") -> None:
        for peer in list(self.peers.values()):
            self.disconnect(peer)
            await self._close_quietly(peer, code=1001, reason=reason)

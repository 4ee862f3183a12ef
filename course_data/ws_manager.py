"""WebSocket fan-out of published course deltas."""

from __future__ import annotations

import asyncio
import logging

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class WSConnectionManager:
    """Tracks delta-stream clients and sends every published delta to each."""

    def __init__(self) -> None:
        self._clients: set[WebSocket] = set()
        self.messages_sent = 0
        self.send_failures = 0

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._clients.add(websocket)
        logger.info("Delta stream client connected (%d total)", len(self._clients))

    def disconnect(self, websocket: WebSocket) -> None:
        if websocket in self._clients:
            self._clients.discard(websocket)
            logger.info("Delta stream client left (%d total)", len(self._clients))

    async def broadcast_text(self, text: str) -> None:
        """Send a serialized delta to all clients concurrently.

        A client whose send fails is disconnected.
        """
        if not self._clients:
            return
        clients = list(self._clients)
        outcomes = await asyncio.gather(
            *(ws.send_text(text) for ws in clients), return_exceptions=True
        )
        for ws, outcome in zip(clients, outcomes):
            if isinstance(outcome, Exception):
                self.send_failures += 1
                logger.debug("Send failed (%s), dropping client", outcome)
                self.disconnect(ws)
            else:
                self.messages_sent += 1

    @property
    def client_count(self) -> int:
        return len(self._clients)

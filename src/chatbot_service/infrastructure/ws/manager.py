"""In-process WebSocket observer registry."""
from __future__ import annotations

import asyncio
import logging

from fastapi import WebSocket

logger = logging.getLogger(__name__)

DEFAULT_SEND_TIMEOUT = 5.0
GOING_AWAY = 1001


class ConnectionManager:
    """Tracks attached observers and fans serialized events out to them.

    Implements application.ports.bus.Broadcaster. A failing or slow observer
    is logged and detached; it never delays delivery to the others beyond
    ``send_timeout``.
    """

    def __init__(self, send_timeout: float = DEFAULT_SEND_TIMEOUT) -> None:
        self._connections: set[WebSocket] = set()
        self._send_timeout = send_timeout

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, ws: WebSocket) -> None:
        await ws.accept()
        self._connections.add(ws)
        logger.info("Observer connected (total=%d)", len(self._connections))

    def disconnect(self, ws: WebSocket) -> None:
        if ws in self._connections:
            self._connections.discard(ws)
            logger.info("Observer disconnected (total=%d)", len(self._connections))

    async def send(self, ws: WebSocket, raw: str) -> bool:
        try:
            await asyncio.wait_for(ws.send_text(raw), timeout=self._send_timeout)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Error sending event to observer: %r", exc)
            return False
        return True

    async def broadcast(self, raw: str) -> None:
        """Send a serialized event to every attached observer."""
        targets = list(self._connections)
        if not targets:
            return
        results = await asyncio.gather(*(self.send(ws, raw) for ws in targets))
        for ws, delivered in zip(targets, results):
            if not delivered:
                self.disconnect(ws)

    async def close(self) -> None:
        targets = list(self._connections)
        self._connections.clear()
        for ws in targets:
            try:
                await ws.close(code=GOING_AWAY)
            except Exception:  # noqa: BLE001
                logger.debug("Observer already closed", exc_info=True)
        if targets:
            logger.info("Observer channel closed (%d observers)", len(targets))

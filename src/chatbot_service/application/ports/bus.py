from __future__ import annotations

from typing import Protocol


class Broadcaster(Protocol):
    """Outward fan-out of serialized events to attached observers."""

    @property
    def connection_count(self) -> int: ...

    async def broadcast(self, raw: str) -> None: ...

    async def close(self) -> None: ...

"""WebSocket message envelope models."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class WsInbound(BaseModel):
    """Observer → Server."""

    type: str  # status | ping
    data: dict[str, Any] = {}


class WsOutbound(BaseModel):
    """Server → Observer."""

    type: str  # connection | status | pong | <EventType>
    data: dict[str, Any] = {}
    timestamp: int

from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from chatbot_service.application.ports.clock import SystemClock
from chatbot_service.config import settings
from chatbot_service.domain.value_objects.enums import EventType
from chatbot_service.infrastructure.ws.manager import ConnectionManager
from chatbot_service.infrastructure.ws.protocol import WsInbound, WsOutbound
from chatbot_service.services.chatbot import Chatbot

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])

_clock = SystemClock()


def _envelope(event_type: str, data: dict[str, Any] | None = None) -> str:
    return WsOutbound(type=event_type, data=data or {}, timestamp=_clock.now_ms()).model_dump_json()


@router.websocket("/ws/events")
async def ws_events(websocket: WebSocket) -> None:
    chatbot: Chatbot = websocket.app.state.chatbot
    manager: ConnectionManager = websocket.app.state.ws_manager

    await manager.connect(websocket)
    await manager.send(
        websocket,
        _envelope(EventType.CONNECTION, {"status": "connected", "timestamp": _clock.now_ms()}),
    )

    heartbeat_task = asyncio.create_task(
        _heartbeat(websocket, manager), name="ws-observer-heartbeat",
    )
    try:
        await _read_loop(websocket, chatbot)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS observer error")
    finally:
        heartbeat_task.cancel()
        manager.disconnect(websocket)


async def _heartbeat(ws: WebSocket, manager: ConnectionManager) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    try:
        while True:
            await asyncio.sleep(interval)
            if not await manager.send(ws, _envelope("pong")):
                return
    except asyncio.CancelledError:
        pass


async def _read_loop(ws: WebSocket, chatbot: Chatbot) -> None:
    while True:
        raw = await ws.receive_text()
        try:
            msg = WsInbound.model_validate_json(raw)
        except Exception:
            logger.warning("Error parsing observer message")
            continue

        if msg.type == "ping":
            await ws.send_text(_envelope("pong"))

        elif msg.type == "status":
            await chatbot.events.publish(EventType.STATUS, dataclasses.asdict(chatbot.status()))

        else:
            logger.warning("Unknown observer message type: %s", msg.type)

"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Any, Sequence

import httpx
import pytest

from chatbot_service.application.exceptions import GenerationError
from chatbot_service.application.ports.transport import MessageHandler, StatusHandler
from chatbot_service.domain.entities.message import Message
from chatbot_service.domain.value_objects.enums import ConnectionStatus, MessageKind
from chatbot_service.domain.value_objects.reply import DialogueTurn, GeneratedReply
from chatbot_service.infrastructure.bus.event_bus import EventBus
from chatbot_service.services.chatbot import Chatbot
from chatbot_service.services.history_store import HistoryStore

BOT_JID = "15550001111@s.whatsapp.net"
USER_JID = "15557654321@s.whatsapp.net"


def make_message(
    *,
    body: str = "hello",
    sender: str = USER_JID,
    recipient: str | None = None,
    timestamp: int = 1_700_000_000_000,
    message_id: str | None = None,
) -> Message:
    return Message(
        id=message_id or f"wamid.{uuid.uuid4().hex[:12]}",
        sender=sender,
        recipient=recipient or sender,
        timestamp=timestamp,
        kind=MessageKind.TEXT,
        body=body,
    )


@dataclass
class ManualClock:
    now: int = 1_700_000_000_000

    def now_ms(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@dataclass
class FakeTransport:
    identity: str = BOT_JID
    status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    send_result: bool = True
    connect_error: Exception | None = None
    sent: list[tuple[str, str]] = field(default_factory=list)
    _message_handlers: list[MessageHandler] = field(default_factory=list)
    _status_handlers: list[StatusHandler] = field(default_factory=list)

    def is_connected(self) -> bool:
        return self.status is ConnectionStatus.READY

    def on_message(self, handler: MessageHandler) -> None:
        self._message_handlers.append(handler)

    def on_status_change(self, handler: StatusHandler) -> None:
        self._status_handlers.append(handler)

    async def _set_status(self, status: ConnectionStatus) -> None:
        self.status = status
        for handler in self._status_handlers:
            await handler(status)

    async def connect(self) -> None:
        if self.connect_error is not None:
            raise self.connect_error
        await self._set_status(ConnectionStatus.READY)

    async def send(self, chat_id: str, text: str) -> bool:
        if not self.send_result:
            return False
        self.sent.append((chat_id, text))
        return True

    async def disconnect(self) -> None:
        await self._set_status(ConnectionStatus.DISCONNECTED)

    async def deliver(self, message: Message) -> list[Any]:
        """Invoke every registered message handler, as an inbound message would."""
        return [await handler(message) for handler in self._message_handlers]


@dataclass
class FakeGenerator:
    name: str = "fake"
    reply_text: str = "Sure, happy to help."
    confidence: float = 0.9
    error: Exception | None = None
    config_valid: bool = True
    reachable: bool = True
    gate: asyncio.Event | None = None
    calls: list[tuple[str, list[DialogueTurn]]] = field(default_factory=list)
    closed: bool = False

    async def generate(self, user_text: str, turns: Sequence[DialogueTurn]) -> GeneratedReply:
        self.calls.append((user_text, list(turns)))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return GeneratedReply(text=self.reply_text, confidence=self.confidence, produced_at=0)

    def validate_configuration(self) -> bool:
        return self.config_valid

    async def test_connectivity(self) -> bool:
        return self.reachable

    async def aclose(self) -> None:
        self.closed = True


@dataclass
class RecordingBroadcaster:
    frames: list[str] = field(default_factory=list)
    connection_count: int = 0
    fail: bool = False
    closed: bool = False

    async def broadcast(self, raw: str) -> None:
        if self.fail:
            raise RuntimeError("observer channel down")
        self.frames.append(raw)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def broadcaster() -> RecordingBroadcaster:
    return RecordingBroadcaster()


@pytest.fixture
def chatbot(transport, generator, broadcaster, clock) -> Chatbot:
    return Chatbot(
        transport,
        generator,
        HistoryStore(50, clock=clock),
        EventBus(broadcaster, clock=clock),
        reply_delay_ms=0,
        clock=clock,
    )


def failing_generator(detail: str = "backend exploded") -> FakeGenerator:
    return FakeGenerator(error=GenerationError(detail))


PHONE_NUMBER_ID = "1234567890"


def webhook_payload(*messages: dict, contacts: list[dict] | None = None) -> dict:
    return {
        "object": "whatsapp_business_account",
        "entry": [{
            "id": "WABA_ID",
            "changes": [{
                "field": "messages",
                "value": {
                    "messaging_product": "whatsapp",
                    "metadata": {"phone_number_id": PHONE_NUMBER_ID},
                    "contacts": contacts or [],
                    "messages": list(messages),
                },
            }],
        }],
    }


def text_message(body: str, *, sender: str = "15557654321", msg_id: str = "wamid.1") -> dict:
    return {
        "from": sender,
        "id": msg_id,
        "timestamp": "1700000000",
        "type": "text",
        "text": {"body": body},
    }


class GraphApi:
    """Records Graph API calls and answers them; use with ``httpx.MockTransport``."""

    def __init__(self, *, connect_status: int = 200, send_status: int = 200) -> None:
        self.connect_status = connect_status
        self.send_status = send_status
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "GET":
            return httpx.Response(self.connect_status, json={"id": PHONE_NUMBER_ID})
        return httpx.Response(self.send_status, json={"messages": [{"id": "wamid.out"}]})

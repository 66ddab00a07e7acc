from __future__ import annotations

from typing import Any, Callable, Coroutine, Protocol

from chatbot_service.domain.entities.message import Message
from chatbot_service.domain.value_objects.enums import ConnectionStatus

MessageHandler = Callable[[Message], Coroutine[Any, Any, Any]]
StatusHandler = Callable[[ConnectionStatus], Coroutine[Any, Any, Any]]


class MessageTransport(Protocol):
    """Messaging network the bot listens and replies on.

    Message handlers are invoked once per inbound message, in arrival order.
    The transport is responsible for at-most-once delivery; the core does not
    deduplicate.
    """

    @property
    def identity(self) -> str:
        """Sender id the transport uses for the bot's own messages."""
        ...

    @property
    def status(self) -> ConnectionStatus: ...

    def is_connected(self) -> bool: ...

    def on_message(self, handler: MessageHandler) -> None: ...

    def on_status_change(self, handler: StatusHandler) -> None: ...

    async def connect(self) -> None: ...

    async def send(self, chat_id: str, text: str) -> bool: ...

    async def disconnect(self) -> None: ...

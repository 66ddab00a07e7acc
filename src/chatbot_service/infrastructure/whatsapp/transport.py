"""WhatsApp Cloud API transport: webhook ingress, Graph API egress."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from chatbot_service.application.exceptions import TransportUnavailableError
from chatbot_service.application.ports.transport import MessageHandler, StatusHandler
from chatbot_service.domain.entities.message import Message
from chatbot_service.domain.value_objects.enums import ConnectionStatus
from chatbot_service.infrastructure.whatsapp.parser import parse_webhook, phone_from_jid, to_jid

logger = logging.getLogger(__name__)

DEFAULT_GRAPH_BASE_URL = "https://graph.facebook.com"
DEFAULT_GRAPH_API_VERSION = "v18.0"
HTTP_TIMEOUT = 10.0


class MetaCloudTransport:
    """Implements application.ports.transport.MessageTransport.

    Inbound messages arrive through ``receive_webhook`` and each registered
    handler is scheduled as its own task, in arrival order, so the webhook
    can be acknowledged without waiting for a reply to be generated.
    """

    def __init__(
        self,
        phone_number_id: str,
        access_token: str,
        *,
        base_url: str = DEFAULT_GRAPH_BASE_URL,
        api_version: str = DEFAULT_GRAPH_API_VERSION,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._phone_number_id = phone_number_id
        self._access_token = access_token
        self._base_url = f"{base_url.rstrip('/')}/{api_version}"
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=HTTP_TIMEOUT)
        self._status = ConnectionStatus.DISCONNECTED
        self._message_handlers: list[MessageHandler] = []
        self._status_handlers: list[StatusHandler] = []
        self._pending: set[asyncio.Task[Any]] = set()

    @property
    def identity(self) -> str:
        return to_jid(self._phone_number_id)

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    def is_connected(self) -> bool:
        return self._status is ConnectionStatus.READY

    def on_message(self, handler: MessageHandler) -> None:
        self._message_handlers.append(handler)

    def on_status_change(self, handler: StatusHandler) -> None:
        self._status_handlers.append(handler)

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._access_token}"}

    async def _set_status(self, status: ConnectionStatus) -> None:
        self._status = status
        logger.info("WhatsApp connection status changed: %s", status)
        for handler in list(self._status_handlers):
            try:
                await handler(status)
            except Exception:
                logger.exception("Error in status handler")

    async def connect(self) -> None:
        """Verify the credentials against the Graph API and become ready."""
        await self._set_status(ConnectionStatus.CONNECTING)
        await self._set_status(ConnectionStatus.AUTHENTICATING)
        try:
            resp = await self._http.get(
                f"{self._base_url}/{self._phone_number_id}",
                headers=self._headers(),
            )
        except httpx.HTTPError as exc:
            await self._set_status(ConnectionStatus.DISCONNECTED)
            raise TransportUnavailableError(f"WhatsApp Cloud API unreachable: {exc}") from exc

        if resp.status_code >= 400:
            await self._set_status(ConnectionStatus.DISCONNECTED)
            raise TransportUnavailableError(
                f"WhatsApp Cloud API rejected credentials: {resp.status_code}"
            )

        await self._set_status(ConnectionStatus.CONNECTED)
        await self._set_status(ConnectionStatus.READY)

    async def send(self, chat_id: str, text: str) -> bool:
        if not self.is_connected():
            logger.error("WhatsApp transport unavailable (status=%s)", self._status)
            return False

        try:
            resp = await self._http.post(
                f"{self._base_url}/{self._phone_number_id}/messages",
                json={
                    "messaging_product": "whatsapp",
                    "to": phone_from_jid(chat_id),
                    "type": "text",
                    "text": {"body": text},
                },
                headers=self._headers(),
            )
        except httpx.HTTPError as exc:
            logger.error("Failed to send message to %s: %s", chat_id, exc)
            return False

        if resp.status_code >= 400:
            logger.error(
                "Failed to send message to %s: status=%d body=%s",
                chat_id, resp.status_code, resp.text,
            )
            return False

        logger.info("Message sent to %s (length=%d)", chat_id, len(text))
        return True

    async def receive_webhook(self, payload: dict[str, Any]) -> int:
        """Dispatch every inbound message of a webhook; returns how many."""
        messages = parse_webhook(payload)
        for message in messages:
            logger.info("Message received from %s: %.50s", message.sender, message.body)
            self._dispatch(message)
        return len(messages)

    def _dispatch(self, message: Message) -> None:
        for handler in self._message_handlers:
            task = asyncio.create_task(handler(message), name=f"wa-message-{message.id}")
            self._pending.add(task)
            task.add_done_callback(self._on_handler_done)

    def _on_handler_done(self, task: asyncio.Task[Any]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Error in message handler", exc_info=exc)

    async def drain(self) -> None:
        """Wait for in-flight message handlers to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def disconnect(self) -> None:
        await self.drain()
        if self._owns_http:
            await self._http.aclose()
        await self._set_status(ConnectionStatus.DISCONNECTED)
        logger.info("WhatsApp disconnected")

"""Message-processing pipeline: history, context, generation, reply, events."""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
import uuid

from chatbot_service.application.dto.history import HistoryStats
from chatbot_service.application.dto.processing import ChatbotStatus, ProcessingOutcome
from chatbot_service.application.exceptions import GenerationError
from chatbot_service.application.ports.clock import Clock, SystemClock
from chatbot_service.application.ports.generator import TextGenerator
from chatbot_service.application.ports.transport import MessageTransport
from chatbot_service.domain.entities.message import BOT_MESSAGE_PREFIX, Message
from chatbot_service.domain.value_objects.enums import ConnectionStatus, EventType, MessageKind
from chatbot_service.infrastructure.bus.event_bus import EventBus
from chatbot_service.services.context_builder import (
    DEFAULT_WINDOW_SIZE,
    build_dialogue_turns,
    extract_topics,
)
from chatbot_service.services.history_store import HistoryStore

logger = logging.getLogger(__name__)

BOT_SENDER_NAME = "AI Assistant"
BUSY_DETAIL = "message processing already in progress"
MS_PER_DAY = 24 * 60 * 60 * 1000


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


class Chatbot:
    """Wires transport events to history, generation and the event bus.

    At most one inbound message is processed at a time, system-wide. A
    message that arrives while another is in flight, including during the
    reply delay, is dropped rather than queued.
    """

    def __init__(
        self,
        transport: MessageTransport,
        generator: TextGenerator,
        history: HistoryStore,
        events: EventBus,
        *,
        reply_delay_ms: int = 1000,
        context_window: int = DEFAULT_WINDOW_SIZE,
        clock: Clock | None = None,
    ) -> None:
        self._transport = transport
        self._generator = generator
        self._history = history
        self._events = events
        self._reply_delay_ms = reply_delay_ms
        self._context_window = context_window
        self._clock = clock or SystemClock()
        self._busy = False

        transport.on_message(self.handle_incoming_message)
        transport.on_status_change(self._on_status_change)
        logger.info("Chatbot initialized (reply_delay=%dms)", reply_delay_ms)

    @property
    def transport(self) -> MessageTransport:
        return self._transport

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def is_busy(self) -> bool:
        return self._busy

    async def initialize(self) -> None:
        logger.info("Initializing chatbot...")
        await self._transport.connect()
        if not await self._generator.test_connectivity():
            raise GenerationError("AI service connection failed")
        logger.info("Chatbot initialized successfully")

    async def _on_status_change(self, status: ConnectionStatus) -> None:
        await self._events.publish(EventType.CONNECTION_STATUS_CHANGED, {"status": status})

    async def _publish_error(self, message: str, error: str) -> None:
        await self._events.publish(EventType.ERROR_OCCURRED, {"message": message, "error": error})

    async def handle_incoming_message(self, message: Message) -> ProcessingOutcome:
        if self._busy:
            logger.warning("Message processing already in progress, dropping %s", message.id)
            return ProcessingOutcome(success=False, elapsed_ms=0, error_detail=BUSY_DETAIL)

        self._busy = True
        start = time.perf_counter()
        try:
            outcome = await self._process(message, start)
        except Exception as exc:
            logger.exception("Error processing message %s", message.id)
            await self._publish_error("Error processing message", str(exc))
            outcome = ProcessingOutcome(
                success=False, elapsed_ms=_elapsed_ms(start), error_detail=str(exc),
            )
        finally:
            self._busy = False

        logger.info(
            "Message processing completed in %dms (success=%s)",
            outcome.elapsed_ms, outcome.success,
        )
        return outcome

    async def _process(self, message: Message, start: float) -> ProcessingOutcome:
        chat_id = message.recipient
        logger.info("Processing message from %s: %.50s", message.sender, message.body)
        await self._events.publish(EventType.MESSAGE_RECEIVED, message)

        self._history.append(chat_id, message)
        window = self._history.context_window(chat_id, self._context_window)
        turns = build_dialogue_turns(window, self._transport.identity, self._context_window)

        try:
            reply = await self._generator.generate(message.body, turns)
        except GenerationError as exc:
            logger.error("Message processing failed: %s", exc.detail)
            await self._publish_error("Failed to process message", exc.detail)
            return ProcessingOutcome(
                success=False, elapsed_ms=_elapsed_ms(start), error_detail=exc.detail,
            )
        reply = dataclasses.replace(reply, extracted_topics=extract_topics(window))
        await self._events.publish(EventType.AI_RESPONSE_GENERATED, reply)

        if self._reply_delay_ms > 0:
            await asyncio.sleep(self._reply_delay_ms / 1000)

        if not await self._transport.send(message.sender, reply.text):
            detail = f"failed to send reply to {message.sender}"
            logger.error("Failed to send WhatsApp response to %s", message.sender)
            await self._publish_error("Failed to send response", detail)
            return ProcessingOutcome(
                success=False,
                elapsed_ms=_elapsed_ms(start),
                reply_text=reply.text,
                error_detail=detail,
            )

        now = self._clock.now_ms()
        bot_message = Message(
            id=f"{BOT_MESSAGE_PREFIX}{now}-{uuid.uuid4().hex[:8]}",
            sender=self._transport.identity,
            recipient=message.sender,
            timestamp=now,
            kind=MessageKind.TEXT,
            body=reply.text,
            is_group=message.is_group,
            group_id=message.group_id,
            sender_name=BOT_SENDER_NAME,
        )
        self._history.append(chat_id, bot_message)
        await self._events.publish(EventType.MESSAGE_SENT, bot_message)
        logger.info("Response sent to %s (length=%d)", message.sender, len(reply.text))

        return ProcessingOutcome(
            success=True, elapsed_ms=_elapsed_ms(start), reply_text=reply.text,
        )

    def status(self) -> ChatbotStatus:
        return ChatbotStatus(
            transport_connected=self._transport.is_connected(),
            generator_config_valid=self._generator.validate_configuration(),
            observer_count=self._events.observer_count,
            busy=self._busy,
            total_conversations=self._history.total_conversations(),
            total_messages=self._history.total_messages(),
        )

    async def send_manual_message(self, chat_id: str, text: str) -> bool:
        return await self._transport.send(chat_id, text)

    def get_chat_history(self, chat_id: str, limit: int | None = None) -> list[Message]:
        if limit is None:
            return self._history.get(chat_id)
        return self._history.recent(chat_id, limit)

    def clear_chat_history(self, chat_id: str) -> None:
        self._history.clear(chat_id)

    def search_messages(self, chat_id: str, query: str) -> list[Message]:
        return self._history.search(chat_id, query)

    def get_messages_in_range(self, chat_id: str, start: int, end: int) -> list[Message]:
        return self._history.by_time_range(chat_id, start, end)

    def get_history_stats(self, chat_id: str) -> HistoryStats:
        return self._history.stats(chat_id)

    def export_chat_history(self, chat_id: str) -> str | None:
        return self._history.serialize(chat_id)

    def import_chat_history(self, chat_id: str, blob: str | bytes) -> None:
        self._history.deserialize(chat_id, blob)

    def cleanup_old_histories(self, max_age_days: int = 30) -> int:
        return self._history.evict_older_than(max_age_days * MS_PER_DAY)

    async def shutdown(self) -> None:
        logger.info("Shutting down chatbot...")
        try:
            await self._transport.disconnect()
        except Exception:
            logger.exception("Error disconnecting transport")
        try:
            await self._events.close()
        except Exception:
            logger.exception("Error closing observer channel")
        try:
            await self._generator.aclose()
        except Exception:
            logger.exception("Error closing generator client")
        logger.info("Chatbot shutdown completed")

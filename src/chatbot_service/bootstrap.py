"""Composition root: build the chatbot from settings."""
from __future__ import annotations

import logging

from chatbot_service.application.exceptions import ConfigurationError
from chatbot_service.application.ports.bus import Broadcaster
from chatbot_service.application.ports.clock import Clock, SystemClock
from chatbot_service.application.ports.generator import TextGenerator
from chatbot_service.application.ports.transport import MessageTransport
from chatbot_service.config import Settings
from chatbot_service.infrastructure.ai.factory import create_generator
from chatbot_service.infrastructure.bus.event_bus import EventBus
from chatbot_service.infrastructure.whatsapp.transport import MetaCloudTransport
from chatbot_service.infrastructure.ws.manager import ConnectionManager
from chatbot_service.services.chatbot import Chatbot
from chatbot_service.services.history_store import HistoryStore

logger = logging.getLogger(__name__)


def create_transport(settings: Settings) -> MetaCloudTransport:
    missing = [
        name
        for name in ("WHATSAPP_PHONE_NUMBER_ID", "WHATSAPP_ACCESS_TOKEN")
        if not getattr(settings, name)
    ]
    if missing:
        raise ConfigurationError(f"missing transport configuration: {', '.join(missing)}")
    return MetaCloudTransport(
        settings.WHATSAPP_PHONE_NUMBER_ID,
        settings.WHATSAPP_ACCESS_TOKEN,
        base_url=settings.WHATSAPP_GRAPH_BASE_URL,
        api_version=settings.WHATSAPP_GRAPH_API_VERSION,
    )


def build_chatbot(
    settings: Settings,
    *,
    transport: MessageTransport | None = None,
    generator: TextGenerator | None = None,
    broadcaster: Broadcaster | None = None,
    clock: Clock | None = None,
) -> Chatbot:
    """Assemble every component; raises ``ConfigurationError`` on bad settings."""
    clock = clock or SystemClock()
    generator = generator or create_generator(settings, clock)
    if not generator.validate_configuration():
        raise ConfigurationError(f"{generator.name} credential or model is not configured")
    transport = transport or create_transport(settings)

    logger.info(
        "Configuration loaded (provider=%s, max_history=%d, reply_delay=%dms)",
        generator.name, settings.MAX_HISTORY_LENGTH, settings.RESPONSE_DELAY_MS,
    )

    broadcaster = broadcaster or ConnectionManager(send_timeout=settings.WS_SEND_TIMEOUT_SECONDS)
    return Chatbot(
        transport,
        generator,
        HistoryStore(settings.MAX_HISTORY_LENGTH, clock=clock),
        EventBus(broadcaster, clock=clock),
        reply_delay_ms=settings.RESPONSE_DELAY_MS,
        context_window=settings.CONTEXT_WINDOW_SIZE,
        clock=clock,
    )

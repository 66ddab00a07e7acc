from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ProcessingOutcome:
    """Result of one processing attempt for an inbound message."""

    success: bool
    elapsed_ms: int
    reply_text: str | None = None
    error_detail: str | None = None


@dataclass(frozen=True, slots=True)
class ChatbotStatus:
    transport_connected: bool
    generator_config_valid: bool
    observer_count: int
    busy: bool
    total_conversations: int
    total_messages: int

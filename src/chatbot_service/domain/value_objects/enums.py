from __future__ import annotations

from enum import StrEnum


class MessageKind(StrEnum):
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"
    LOCATION = "location"
    CONTACT = "contact"


class ConnectionStatus(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    AUTHENTICATING = "authenticating"
    READY = "ready"


class EventType(StrEnum):
    MESSAGE_RECEIVED = "message_received"
    MESSAGE_SENT = "message_sent"
    CONNECTION_STATUS_CHANGED = "connection_status_changed"
    AI_RESPONSE_GENERATED = "ai_response_generated"
    ERROR_OCCURRED = "error_occurred"
    CONNECTION = "connection"
    STATUS = "status"


class GeneratorBackend(StrEnum):
    OPENAI = "openai"
    GEMINI = "gemini"


class Role(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"

from __future__ import annotations

from dataclasses import dataclass, field

from chatbot_service.domain.entities.message import Message


@dataclass(slots=True)
class ConversationHistory:
    """Messages of one conversation, oldest first.

    Only ``HistoryStore`` mutates instances; everything handed out of the
    store is a copy of ``messages``.
    """

    chat_id: str
    last_updated_at: int
    messages: list[Message] = field(default_factory=list)

from __future__ import annotations

from dataclasses import dataclass

from chatbot_service.domain.value_objects.enums import MessageKind

BOT_MESSAGE_PREFIX = "bot-"


@dataclass(frozen=True, slots=True)
class Message:
    id: str
    sender: str
    recipient: str
    timestamp: int
    kind: MessageKind
    body: str
    is_group: bool = False
    group_id: str | None = None
    sender_name: str | None = None

    @property
    def is_bot_origin(self) -> bool:
        return self.id.startswith(BOT_MESSAGE_PREFIX)

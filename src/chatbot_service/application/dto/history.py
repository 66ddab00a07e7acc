"""History statistics and the export/import document."""
from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel

from chatbot_service.domain.entities.history import ConversationHistory
from chatbot_service.domain.entities.message import Message
from chatbot_service.domain.value_objects.enums import MessageKind


@dataclass(frozen=True, slots=True)
class HistoryStats:
    count: int
    last_message_timestamp: int | None
    average_body_length: int


class MessageRecord(BaseModel):
    id: str
    sender: str
    recipient: str
    timestamp: int
    kind: MessageKind
    body: str
    is_group: bool = False
    group_id: str | None = None
    sender_name: str | None = None

    @classmethod
    def from_message(cls, message: Message) -> MessageRecord:
        return cls(
            id=message.id,
            sender=message.sender,
            recipient=message.recipient,
            timestamp=message.timestamp,
            kind=message.kind,
            body=message.body,
            is_group=message.is_group,
            group_id=message.group_id,
            sender_name=message.sender_name,
        )

    def to_message(self) -> Message:
        return Message(
            id=self.id,
            sender=self.sender,
            recipient=self.recipient,
            timestamp=self.timestamp,
            kind=self.kind,
            body=self.body,
            is_group=self.is_group,
            group_id=self.group_id,
            sender_name=self.sender_name,
        )


class HistorySnapshot(BaseModel):
    """Self-describing export of a single conversation."""

    chat_id: str
    last_updated_at: int
    messages: list[MessageRecord] = []

    @classmethod
    def from_history(cls, history: ConversationHistory) -> HistorySnapshot:
        return cls(
            chat_id=history.chat_id,
            last_updated_at=history.last_updated_at,
            messages=[MessageRecord.from_message(m) for m in history.messages],
        )

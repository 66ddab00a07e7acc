from __future__ import annotations

from pydantic import BaseModel, Field

from chatbot_service.domain.value_objects.enums import MessageKind


class SendMessageRequest(BaseModel):
    chat_id: str = Field(min_length=1)
    text: str = Field(min_length=1)


class SendMessageResponse(BaseModel):
    sent: bool


class MessageResponse(BaseModel):
    id: str
    sender: str
    recipient: str
    timestamp: int
    kind: MessageKind
    body: str
    is_group: bool
    group_id: str | None
    sender_name: str | None

    model_config = {"from_attributes": True}

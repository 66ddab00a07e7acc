from __future__ import annotations

from fastapi import APIRouter

from chatbot_service.api.deps import ChatbotDep
from chatbot_service.api.v1.schemas.message import SendMessageRequest, SendMessageResponse
from chatbot_service.application.exceptions import TransportUnavailableError

router = APIRouter(prefix="/api/v1/messages", tags=["messages"])


@router.post("", response_model=SendMessageResponse)
async def send_message(body: SendMessageRequest, chatbot: ChatbotDep) -> SendMessageResponse:
    """Send text through the transport without generating a reply."""
    if not chatbot.transport.is_connected():
        raise TransportUnavailableError(f"transport is {chatbot.transport.status}")
    sent = await chatbot.send_manual_message(body.chat_id, body.text)
    return SendMessageResponse(sent=sent)

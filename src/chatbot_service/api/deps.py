"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from chatbot_service.application.exceptions import NotFoundError
from chatbot_service.infrastructure.whatsapp.transport import MetaCloudTransport
from chatbot_service.services.chatbot import Chatbot


def get_chatbot(request: Request) -> Chatbot:
    return request.app.state.chatbot


ChatbotDep = Annotated[Chatbot, Depends(get_chatbot)]


def get_whatsapp_transport(chatbot: ChatbotDep) -> MetaCloudTransport:
    transport = chatbot.transport
    if not isinstance(transport, MetaCloudTransport):
        raise NotFoundError("WhatsApp webhook is not enabled")
    return transport


WhatsAppTransportDep = Annotated[MetaCloudTransport, Depends(get_whatsapp_transport)]

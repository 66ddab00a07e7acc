from __future__ import annotations

import sys

from fastapi import APIRouter, Query, Request, Response

from chatbot_service.api.deps import ChatbotDep
from chatbot_service.api.v1.schemas.message import MessageResponse
from chatbot_service.api.v1.schemas.status import CleanupResponse, HistoryStatsResponse
from chatbot_service.application.exceptions import NotFoundError, ValidationError
from chatbot_service.domain.entities.message import Message

router = APIRouter(prefix="/api/v1/chats", tags=["history"])


def _to_response(messages: list[Message]) -> list[MessageResponse]:
    return [MessageResponse.model_validate(m, from_attributes=True) for m in messages]


@router.get("/{chat_id}/messages", response_model=list[MessageResponse])
async def list_messages(
    chat_id: str,
    chatbot: ChatbotDep,
    limit: int | None = Query(None, ge=1),
    start: int | None = Query(None, ge=0),
    end: int | None = Query(None, ge=0),
) -> list[MessageResponse]:
    if start is None and end is None:
        return _to_response(chatbot.get_chat_history(chat_id, limit))

    lower = start if start is not None else 0
    upper = end if end is not None else sys.maxsize
    if lower > upper:
        raise ValidationError("start must not be after end")
    messages = chatbot.get_messages_in_range(chat_id, lower, upper)
    if limit is not None:
        messages = messages[-limit:]
    return _to_response(messages)


@router.delete("/{chat_id}/messages", status_code=204)
async def clear_messages(chat_id: str, chatbot: ChatbotDep) -> Response:
    chatbot.clear_chat_history(chat_id)
    return Response(status_code=204)


@router.get("/{chat_id}/messages/search", response_model=list[MessageResponse])
async def search_messages(
    chat_id: str,
    chatbot: ChatbotDep,
    q: str = Query(..., min_length=1),
) -> list[MessageResponse]:
    return _to_response(chatbot.search_messages(chat_id, q))


@router.get("/{chat_id}/stats", response_model=HistoryStatsResponse)
async def history_stats(chat_id: str, chatbot: ChatbotDep) -> HistoryStatsResponse:
    return HistoryStatsResponse.model_validate(chatbot.get_history_stats(chat_id))


@router.get("/{chat_id}/export")
async def export_history(chat_id: str, chatbot: ChatbotDep) -> Response:
    blob = chatbot.export_chat_history(chat_id)
    if blob is None:
        raise NotFoundError(f"no history for chat {chat_id}")
    return Response(content=blob, media_type="application/json")


@router.post("/{chat_id}/import", response_model=HistoryStatsResponse)
async def import_history(chat_id: str, request: Request, chatbot: ChatbotDep) -> HistoryStatsResponse:
    chatbot.import_chat_history(chat_id, await request.body())
    return HistoryStatsResponse.model_validate(chatbot.get_history_stats(chat_id))


@router.post("/cleanup", response_model=CleanupResponse)
async def cleanup_histories(
    chatbot: ChatbotDep,
    max_age_days: int = Query(30, ge=1),
) -> CleanupResponse:
    return CleanupResponse(removed=chatbot.cleanup_old_histories(max_age_days))

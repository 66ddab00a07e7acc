"""Behaviour shared by the generation backends."""
from __future__ import annotations

from typing import Sequence

from chatbot_service.domain.value_objects.enums import Role
from chatbot_service.domain.value_objects.reply import DialogueTurn, GeneratedReply

FALLBACK_REPLY = "I apologize, but I cannot generate a response at the moment."

CONFIDENCE_HIGH = 0.9
CONFIDENCE_MEDIUM = 0.7
CONFIDENCE_LOW = 0.5
CONFIDENCE_DEFAULT = 0.6


def with_user_turn(user_text: str, turns: Sequence[DialogueTurn]) -> list[DialogueTurn]:
    """Append the new user text unless the window already ends with it."""
    user_turn = DialogueTurn(role=Role.USER, content=user_text)
    result = list(turns)
    if not result or result[-1] != user_turn:
        result.append(user_turn)
    return result


def has_usable_text(text: str | None) -> bool:
    return bool(text and text.strip())


def make_reply(text: str | None, confidence: float, produced_at: int) -> GeneratedReply:
    """``extracted_topics`` is filled in by the orchestrator from the history window."""
    return GeneratedReply(
        text=text if text is not None and has_usable_text(text) else FALLBACK_REPLY,
        confidence=min(max(confidence, 0.0), 1.0),
        produced_at=produced_at,
    )

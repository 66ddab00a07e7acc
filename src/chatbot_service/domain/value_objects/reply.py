from __future__ import annotations

from dataclasses import dataclass, field

from chatbot_service.domain.value_objects.enums import Role


@dataclass(frozen=True, slots=True)
class DialogueTurn:
    role: Role
    content: str


@dataclass(frozen=True, slots=True)
class GeneratedReply:
    text: str
    confidence: float
    produced_at: int
    extracted_topics: list[str] = field(default_factory=list)

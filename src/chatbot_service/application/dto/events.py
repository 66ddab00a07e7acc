from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from chatbot_service.domain.value_objects.enums import EventType


@dataclass(frozen=True, slots=True)
class AppEvent:
    type: EventType
    data: Any
    timestamp: int

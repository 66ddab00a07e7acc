from __future__ import annotations

import dataclasses
import json
from enum import Enum
from typing import Any

from chatbot_service.application.dto.events import AppEvent


class _Encoder(json.JSONEncoder):
    def default(self, o: object) -> Any:
        if dataclasses.is_dataclass(o) and not isinstance(o, type):
            return dataclasses.asdict(o)
        if isinstance(o, Enum):
            return o.value
        return super().default(o)


def serialize_event(event: AppEvent) -> str:
    envelope = {"type": event.type, "data": event.data, "timestamp": event.timestamp}
    return json.dumps(envelope, cls=_Encoder)

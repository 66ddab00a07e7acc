from __future__ import annotations

from pydantic import BaseModel


class StatusResponse(BaseModel):
    transport_connected: bool
    generator_config_valid: bool
    observer_count: int
    busy: bool
    total_conversations: int
    total_messages: int

    model_config = {"from_attributes": True}


class HistoryStatsResponse(BaseModel):
    count: int
    last_message_timestamp: int | None
    average_body_length: int

    model_config = {"from_attributes": True}


class CleanupResponse(BaseModel):
    removed: int

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from chatbot_service.application.dto.events import AppEvent
from chatbot_service.domain.value_objects.enums import ConnectionStatus, EventType
from chatbot_service.domain.value_objects.reply import GeneratedReply
from chatbot_service.infrastructure.bus.event_bus import EventBus
from chatbot_service.infrastructure.bus.serializer import serialize_event
from tests.conftest import RecordingBroadcaster, make_message


@pytest.fixture
def bus(broadcaster, clock) -> EventBus:
    return EventBus(broadcaster, clock=clock)


@pytest.mark.asyncio
async def test_publish_broadcasts_envelope(bus, broadcaster, clock):
    event = await bus.publish(EventType.ERROR_OCCURRED, {"message": "x", "error": "y"})

    frame = json.loads(broadcaster.frames[0])
    assert frame == {
        "type": "error_occurred",
        "data": {"message": "x", "error": "y"},
        "timestamp": clock.now,
    }
    assert event.timestamp == clock.now


@pytest.mark.asyncio
async def test_dataclass_payloads_are_serialized(bus, broadcaster):
    message = make_message(body="hello")

    await bus.publish(EventType.MESSAGE_RECEIVED, message)
    await bus.publish(
        EventType.AI_RESPONSE_GENERATED,
        GeneratedReply(text="hi", confidence=0.9, produced_at=1, extracted_topics=["hello"]),
    )

    received, generated = (json.loads(f) for f in broadcaster.frames)
    assert received["data"]["body"] == "hello"
    assert received["data"]["kind"] == "text"
    assert generated["data"]["extracted_topics"] == ["hello"]


def test_enum_payload_is_written_as_its_value():
    event = AppEvent(EventType.CONNECTION_STATUS_CHANGED, {"status": ConnectionStatus.READY}, 5)

    assert json.loads(serialize_event(event)) == {
        "type": "connection_status_changed",
        "data": {"status": "ready"},
        "timestamp": 5,
    }


def test_unsupported_payload_type_is_rejected():
    event = AppEvent(EventType.ERROR_OCCURRED, {"at": datetime.now(timezone.utc)}, 5)

    with pytest.raises(TypeError):
        serialize_event(event)


@pytest.mark.asyncio
async def test_local_subscribers_run_in_order(bus):
    seen: list[str] = []

    async def async_handler(event):
        seen.append(f"async:{event.type}")

    bus.subscribe(EventType.MESSAGE_SENT, lambda event: seen.append(f"sync:{event.type}"))
    bus.subscribe(EventType.MESSAGE_SENT, async_handler)

    await bus.publish(EventType.MESSAGE_SENT, {})

    assert seen == ["sync:message_sent", "async:message_sent"]


@pytest.mark.asyncio
async def test_failing_subscriber_does_not_block_others(bus, broadcaster):
    seen: list[str] = []

    def broken(_event):
        raise RuntimeError("bad handler")

    bus.subscribe(EventType.STATUS, broken)
    bus.subscribe(EventType.STATUS, lambda event: seen.append("ok"))

    await bus.publish(EventType.STATUS, {})

    assert seen == ["ok"]
    assert len(broadcaster.frames) == 1


@pytest.mark.asyncio
async def test_unsubscribe(bus):
    seen: list[str] = []

    def handler(_event):
        seen.append("called")

    bus.subscribe(EventType.STATUS, handler)
    bus.unsubscribe(EventType.STATUS, handler)
    bus.unsubscribe(EventType.CONNECTION, handler)

    await bus.publish(EventType.STATUS, {})

    assert seen == []


@pytest.mark.asyncio
async def test_broadcast_failure_is_contained(clock):
    bus = EventBus(RecordingBroadcaster(fail=True), clock=clock)

    event = await bus.publish(EventType.STATUS, {})

    assert event.type is EventType.STATUS


@pytest.mark.asyncio
async def test_close_closes_broadcaster(bus, broadcaster):
    await bus.close()

    assert broadcaster.closed is True


def test_observer_count_reflects_broadcaster(bus, broadcaster):
    broadcaster.connection_count = 3

    assert bus.observer_count == 3

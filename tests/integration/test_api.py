"""Integration tests for the HTTP and WebSocket surface.

The app runs with its real wiring; only the Graph API (via ``httpx.MockTransport``)
and the text generator are faked.
"""
from __future__ import annotations

import hashlib
import hmac
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from chatbot_service.app import create_app
from chatbot_service.bootstrap import build_chatbot
from chatbot_service.config import settings
from chatbot_service.domain.value_objects.enums import EventType
from chatbot_service.infrastructure.whatsapp.transport import MetaCloudTransport
from chatbot_service.services.chatbot import Chatbot
from tests.conftest import FakeGenerator, GraphApi, make_message, text_message, webhook_payload

USER_JID = "15557654321@s.whatsapp.net"


@pytest.fixture
def graph_api() -> GraphApi:
    return GraphApi()


@pytest.fixture
def chatbot(graph_api) -> Chatbot:
    transport = MetaCloudTransport(
        settings.WHATSAPP_PHONE_NUMBER_ID,
        settings.WHATSAPP_ACCESS_TOKEN,
        base_url="https://graph.test",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(graph_api)),
    )
    return build_chatbot(settings, transport=transport, generator=FakeGenerator())


@pytest.fixture
def client(chatbot):
    with TestClient(create_app(chatbot=chatbot)) as client:
        yield client


def _seed(chatbot: Chatbot, *bodies: str) -> None:
    history = chatbot._history
    for i, body in enumerate(bodies):
        history.append(USER_JID, make_message(body=body, sender=USER_JID, timestamp=1_000 * (i + 1)))


def test_healthz(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_readyz_when_connected(client):
    resp = client.get("/readyz")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ready"}


def test_status(client, chatbot):
    _seed(chatbot, "one", "two")

    resp = client.get("/api/v1/status")

    assert resp.status_code == 200
    data = resp.json()
    assert data["transport_connected"] is True
    assert data["generator_config_valid"] is True
    assert data["busy"] is False
    assert data["total_conversations"] == 1
    assert data["total_messages"] == 2


def test_list_and_limit_messages(client, chatbot):
    _seed(chatbot, "one", "two", "three")

    all_messages = client.get(f"/api/v1/chats/{USER_JID}/messages").json()
    last_two = client.get(f"/api/v1/chats/{USER_JID}/messages", params={"limit": 2}).json()

    assert [m["body"] for m in all_messages] == ["one", "two", "three"]
    assert [m["body"] for m in last_two] == ["two", "three"]


def test_messages_in_time_range(client, chatbot):
    _seed(chatbot, "one", "two", "three")

    resp = client.get(f"/api/v1/chats/{USER_JID}/messages", params={"start": 2_000, "end": 3_000})

    assert [m["body"] for m in resp.json()] == ["two", "three"]


def test_messages_inverted_range_rejected(client):
    resp = client.get(f"/api/v1/chats/{USER_JID}/messages", params={"start": 5, "end": 1})
    assert resp.status_code == 422


def test_search_and_stats(client, chatbot):
    _seed(chatbot, "Weather today?", "thanks")

    found = client.get(f"/api/v1/chats/{USER_JID}/messages/search", params={"q": "WEATHER"})
    stats = client.get(f"/api/v1/chats/{USER_JID}/stats")

    assert [m["body"] for m in found.json()] == ["Weather today?"]
    assert stats.json() == {"count": 2, "last_message_timestamp": 2_000, "average_body_length": 10}


def test_clear_history(client, chatbot):
    _seed(chatbot, "one")

    resp = client.delete(f"/api/v1/chats/{USER_JID}/messages")

    assert resp.status_code == 204
    assert chatbot.get_chat_history(USER_JID) == []


def test_export_and_import(client, chatbot):
    _seed(chatbot, "one", "two")
    exported = client.get(f"/api/v1/chats/{USER_JID}/export")
    assert exported.status_code == 200
    assert exported.headers["content-type"].startswith("application/json")

    chatbot.clear_chat_history(USER_JID)
    imported = client.post(f"/api/v1/chats/{USER_JID}/import", content=exported.content)

    assert imported.status_code == 200
    assert imported.json()["count"] == 2


def test_export_unknown_chat_is_404(client):
    resp = client.get("/api/v1/chats/nobody@s.whatsapp.net/export")
    assert resp.status_code == 404


def test_import_chat_id_mismatch_is_422(client, chatbot):
    other = "other@s.whatsapp.net"
    _seed(chatbot, "one")
    chatbot._history.append(other, make_message(body="foreign", sender=other))
    before = chatbot.get_chat_history(USER_JID)
    blob = client.get(f"/api/v1/chats/{other}/export").content

    resp = client.post(f"/api/v1/chats/{USER_JID}/import", content=blob)

    assert resp.status_code == 422
    assert chatbot.get_chat_history(USER_JID) == before


def test_import_malformed_is_422(client):
    resp = client.post(f"/api/v1/chats/{USER_JID}/import", content=b"not json")
    assert resp.status_code == 422


def test_cleanup(client, chatbot):
    _seed(chatbot, "one")

    resp = client.post("/api/v1/chats/cleanup", params={"max_age_days": 30})

    assert resp.status_code == 200
    assert resp.json() == {"removed": 0}


def test_manual_send(client, graph_api):
    resp = client.post("/api/v1/messages", json={"chat_id": USER_JID, "text": "hello"})

    assert resp.status_code == 200
    assert resp.json() == {"sent": True}
    body = json.loads(graph_api.requests[-1].content)
    assert body["to"] == "15557654321"
    assert body["text"] == {"body": "hello"}


def test_manual_send_requires_text(client):
    resp = client.post("/api/v1/messages", json={"chat_id": USER_JID, "text": ""})
    assert resp.status_code == 422


def test_webhook_verification(client):
    ok = client.get("/webhooks/whatsapp", params={
        "hub.mode": "subscribe",
        "hub.verify_token": settings.WHATSAPP_VERIFY_TOKEN,
        "hub.challenge": "12345",
    })
    bad = client.get("/webhooks/whatsapp", params={
        "hub.mode": "subscribe",
        "hub.verify_token": "wrong",
        "hub.challenge": "12345",
    })

    assert ok.status_code == 200
    assert ok.text == "12345"
    assert bad.status_code == 403


def test_webhook_message_is_answered(chatbot, graph_api):
    with TestClient(create_app(chatbot=chatbot)) as client:
        resp = client.post("/webhooks/whatsapp", json=webhook_payload(text_message("hi bot")))
        assert resp.status_code == 200
        assert resp.json() == {"received": 1}

    # Shutdown drains in-flight handlers.
    history = chatbot.get_chat_history(USER_JID)
    assert [m.body for m in history] == ["hi bot", "Sure, happy to help."]
    sent = json.loads(graph_api.requests[-1].content)
    assert sent["to"] == "15557654321"


def test_webhook_rejects_bad_signature(client, monkeypatch):
    monkeypatch.setattr(settings, "WHATSAPP_APP_SECRET", "s3cret")

    resp = client.post(
        "/webhooks/whatsapp",
        content=b"{}",
        headers={"X-Hub-Signature-256": "sha256=deadbeef"},
    )

    assert resp.status_code == 401


def test_webhook_accepts_good_signature(client, monkeypatch):
    monkeypatch.setattr(settings, "WHATSAPP_APP_SECRET", "s3cret")
    body = json.dumps({"object": "whatsapp_business_account", "entry": []}).encode()
    signature = "sha256=" + hmac.new(b"s3cret", body, hashlib.sha256).hexdigest()

    resp = client.post(
        "/webhooks/whatsapp",
        content=body,
        headers={"X-Hub-Signature-256": signature, "Content-Type": "application/json"},
    )

    assert resp.status_code == 200
    assert resp.json() == {"received": 0}


def test_webhook_invalid_json_is_422(client):
    resp = client.post("/webhooks/whatsapp", content=b"{oops")
    assert resp.status_code == 422


def test_ws_connection_and_status(client):
    with client.websocket_connect("/ws/events") as ws:
        hello = ws.receive_json()
        assert hello["type"] == "connection"
        assert hello["data"]["status"] == "connected"

        ws.send_json({"type": "ping"})
        assert ws.receive_json()["type"] == "pong"

        ws.send_json({"type": "status"})
        status = ws.receive_json()
        assert status["type"] == "status"
        assert status["data"]["transport_connected"] is True
        assert status["data"]["observer_count"] == 1


def test_ws_receives_message_events(chatbot):
    with TestClient(create_app(chatbot=chatbot)) as client:
        with client.websocket_connect("/ws/events") as ws:
            ws.receive_json()
            client.post("/webhooks/whatsapp", json=webhook_payload(text_message("hello")))

            types = [ws.receive_json()["type"] for _ in range(3)]

    assert types == ["message_received", "ai_response_generated", "message_sent"]


def test_ws_keepalive_pong_is_sent_unprompted(client, monkeypatch):
    monkeypatch.setattr(settings, "WS_HEARTBEAT_SECONDS", 0.05)

    with client.websocket_connect("/ws/events") as ws:
        assert ws.receive_json()["type"] == "connection"
        keepalive = ws.receive_json()

    assert keepalive["type"] == "pong"
    assert keepalive["data"] == {}
    assert "pong" not in {event_type.value for event_type in EventType}

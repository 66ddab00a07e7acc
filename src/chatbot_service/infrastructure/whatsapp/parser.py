"""Normalize WhatsApp Cloud API webhook payloads into ``Message`` objects.

Payload structure::

    {
      "object": "whatsapp_business_account",
      "entry": [{
        "changes": [{
          "value": {
            "metadata": {"phone_number_id": "..."},
            "contacts": [{"wa_id": "PHONE", "profile": {"name": "..."}}],
            "messages": [{"from": "PHONE", "id": "MSG_ID", "timestamp": "1700000000",
                          "type": "text", "text": {"body": "..."}}]
          },
          "field": "messages"
        }]
      }]
    }
"""
from __future__ import annotations

import logging
from typing import Any, Iterator

from chatbot_service.domain.entities.message import Message
from chatbot_service.domain.value_objects.enums import MessageKind

logger = logging.getLogger(__name__)

JID_SUFFIX = "@s.whatsapp.net"

_KINDS: dict[str, MessageKind] = {
    "text": MessageKind.TEXT,
    "image": MessageKind.IMAGE,
    "video": MessageKind.VIDEO,
    "audio": MessageKind.AUDIO,
    "voice": MessageKind.AUDIO,
    "document": MessageKind.DOCUMENT,
    "location": MessageKind.LOCATION,
    "contacts": MessageKind.CONTACT,
}


def to_jid(phone: str) -> str:
    return phone if "@" in phone else f"{phone}{JID_SUFFIX}"


def phone_from_jid(jid: str) -> str:
    return jid.split("@", 1)[0]


def extract_body(raw: dict[str, Any]) -> str | None:
    """Text carried by a message: text body, media caption or document name."""
    kind = raw.get("type")
    section = raw.get(kind) if isinstance(kind, str) else None
    if not isinstance(section, dict):
        return None
    if kind == "text":
        return section.get("body") or None
    if kind in ("image", "video"):
        return section.get("caption") or None
    if kind == "document":
        return section.get("caption") or section.get("filename") or None
    return None


def parse_message(raw: dict[str, Any], display_names: dict[str, str] | None = None) -> Message | None:
    """Convert one webhook message, or ``None`` when it carries no usable text."""
    kind = _KINDS.get(raw.get("type", ""))
    message_id = raw.get("id")
    sender_phone = raw.get("from")
    if kind is None or not message_id or not sender_phone:
        return None

    body = extract_body(raw)
    if not body:
        return None

    try:
        timestamp = int(raw.get("timestamp", 0)) * 1000
    except (TypeError, ValueError):
        timestamp = 0

    jid = to_jid(sender_phone)
    return Message(
        id=message_id,
        sender=jid,
        recipient=jid,
        timestamp=timestamp,
        kind=kind,
        body=body,
        is_group=False,
        group_id=None,
        sender_name=(display_names or {}).get(sender_phone),
    )


def _iter_values(payload: dict[str, Any]) -> Iterator[dict[str, Any]]:
    entries = payload.get("entry")
    if not isinstance(entries, list):
        return
    for entry in entries:
        changes = entry.get("changes") if isinstance(entry, dict) else None
        if not isinstance(changes, list):
            continue
        for change in changes:
            value = change.get("value") if isinstance(change, dict) else None
            if isinstance(value, dict):
                yield value


def parse_webhook(payload: dict[str, Any]) -> list[Message]:
    """Every text-bearing inbound message in a webhook, in payload order.

    Delivery ``statuses`` and messages without text are skipped.
    """
    messages: list[Message] = []
    for value in _iter_values(payload):
        display_names = {
            contact["wa_id"]: contact.get("profile", {}).get("name")
            for contact in value.get("contacts") or []
            if isinstance(contact, dict) and contact.get("wa_id")
        }
        for raw in value.get("messages") or []:
            if not isinstance(raw, dict):
                continue
            message = parse_message(raw, display_names)
            if message is None:
                logger.debug("Skipping webhook message of type %s", raw.get("type"))
                continue
            messages.append(message)
    return messages

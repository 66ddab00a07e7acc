from __future__ import annotations

import json
import logging

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse

from chatbot_service.api.deps import WhatsAppTransportDep
from chatbot_service.application.exceptions import ValidationError
from chatbot_service.config import settings
from chatbot_service.infrastructure.whatsapp.signature import (
    SIGNATURE_HEADER,
    SignatureVerificationError,
    verify_signature,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.get("/whatsapp", response_class=PlainTextResponse)
async def verify_webhook(
    mode: str | None = Query(None, alias="hub.mode"),
    token: str | None = Query(None, alias="hub.verify_token"),
    challenge: str = Query("", alias="hub.challenge"),
) -> str:
    """Subscription handshake performed by Meta when the webhook is registered."""
    if mode == "subscribe" and settings.WHATSAPP_VERIFY_TOKEN and token == settings.WHATSAPP_VERIFY_TOKEN:
        return challenge
    logger.warning("WhatsApp webhook verification failed (mode=%s)", mode)
    raise HTTPException(status_code=403, detail="verification failed")


@router.post("/whatsapp")
async def receive_webhook(request: Request, transport: WhatsAppTransportDep) -> dict[str, int]:
    raw = await request.body()
    if settings.WHATSAPP_APP_SECRET:
        try:
            verify_signature(raw, request.headers.get(SIGNATURE_HEADER), settings.WHATSAPP_APP_SECRET)
        except SignatureVerificationError as exc:
            logger.warning("Rejected WhatsApp webhook: %s", exc)
            raise HTTPException(status_code=401, detail=str(exc)) from exc

    try:
        payload = json.loads(raw)
    except ValueError as exc:
        raise ValidationError("invalid JSON payload") from exc
    if not isinstance(payload, dict):
        raise ValidationError("payload must be a JSON object")

    received = await transport.receive_webhook(payload)
    return {"received": received}

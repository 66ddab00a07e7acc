from __future__ import annotations

import logging
import time
from typing import Any, Sequence

import httpx

from chatbot_service.application.exceptions import GenerationError
from chatbot_service.application.ports.clock import Clock, SystemClock
from chatbot_service.domain.value_objects.enums import Role
from chatbot_service.domain.value_objects.reply import DialogueTurn, GeneratedReply
from chatbot_service.infrastructure.ai.base import (
    CONFIDENCE_DEFAULT,
    CONFIDENCE_HIGH,
    CONFIDENCE_LOW,
    CONFIDENCE_MEDIUM,
    make_reply,
    with_user_turn,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

# Used when the candidate carries no finish reason at all.
UNSIGNALLED_CONFIDENCE = CONFIDENCE_HIGH

# Synthetic finish reason for a prompt rejected before any candidate was produced.
PROMPT_BLOCKED = "PROMPT_BLOCKED"

_FINISH_REASON_CONFIDENCE: dict[str, float] = {
    "STOP": CONFIDENCE_HIGH,
    "MAX_TOKENS": CONFIDENCE_MEDIUM,
    "SAFETY": CONFIDENCE_LOW,
    "RECITATION": CONFIDENCE_LOW,
    "BLOCKLIST": CONFIDENCE_LOW,
    "PROHIBITED_CONTENT": CONFIDENCE_LOW,
    PROMPT_BLOCKED: CONFIDENCE_LOW,
}

_ROLE_NAMES = {Role.USER: "user", Role.ASSISTANT: "model"}


def confidence_for(finish_reason: str | None) -> float:
    if finish_reason is None:
        return UNSIGNALLED_CONFIDENCE
    return _FINISH_REASON_CONFIDENCE.get(finish_reason, CONFIDENCE_DEFAULT)


class GeminiGenerator:
    """Gemini ``generateContent`` backend over plain HTTP."""

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        system_prompt: str,
        max_tokens: int,
        temperature: float,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._system_prompt = system_prompt
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._base_url = base_url.rstrip("/")
        self._clock = clock or SystemClock()
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        logger.info("Gemini generator initialized (model=%s)", model)

    def _build_payload(self, turns: Sequence[DialogueTurn]) -> dict[str, Any]:
        return {
            "systemInstruction": {"parts": [{"text": self._system_prompt}]},
            "contents": [
                {"role": _ROLE_NAMES[turn.role], "parts": [{"text": turn.content}]}
                for turn in turns
            ],
            "generationConfig": {
                "temperature": self._temperature,
                "maxOutputTokens": self._max_tokens,
            },
        }

    async def generate(
        self,
        user_text: str,
        turns: Sequence[DialogueTurn],
    ) -> GeneratedReply:
        start = time.perf_counter()
        payload = self._build_payload(with_user_turn(user_text, turns))
        logger.debug("Generating Gemini response (turns=%d)", len(payload["contents"]))

        try:
            resp = await self._http.post(
                f"{self._base_url}/models/{self._model}:generateContent",
                json=payload,
                headers={"x-goog-api-key": self._api_key},
            )
        except httpx.HTTPError as exc:
            logger.error("Error generating Gemini response: %s", exc)
            raise GenerationError(f"Failed to generate Gemini response: {exc}") from exc

        if resp.status_code >= 400:
            logger.error("Gemini API error: status=%d body=%s", resp.status_code, resp.text)
            raise GenerationError(f"Gemini API error: {resp.status_code} - {resp.text}")

        text, finish_reason = self._parse_response(resp)
        logger.info(
            "Gemini response generated in %.1fms (finish_reason=%s)",
            (time.perf_counter() - start) * 1000, finish_reason,
        )
        return make_reply(text, confidence_for(finish_reason), self._clock.now_ms())

    @staticmethod
    def _parse_response(resp: httpx.Response) -> tuple[str | None, str | None]:
        try:
            data = resp.json()
        except ValueError as exc:
            raise GenerationError(f"Malformed Gemini response: {exc}") from exc
        if not isinstance(data, dict):
            raise GenerationError("Malformed Gemini response: expected an object")

        candidates = data.get("candidates") or []
        if not isinstance(candidates, list):
            raise GenerationError("Malformed Gemini response: candidates is not a list")
        if not candidates:
            feedback = data.get("promptFeedback")
            block_reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
            if block_reason:
                logger.warning("Gemini blocked the prompt: %s", block_reason)
                return None, PROMPT_BLOCKED
            return None, None

        candidate = candidates[0]
        content = candidate.get("content") if isinstance(candidate, dict) else None
        if content is not None and not isinstance(content, dict):
            raise GenerationError("Malformed Gemini response: content is not an object")

        parts = (content or {}).get("parts") or []
        text = "".join(
            part["text"] for part in parts
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        )
        finish_reason = candidate.get("finishReason") if isinstance(candidate, dict) else None
        return text or None, finish_reason

    def validate_configuration(self) -> bool:
        if not self._api_key:
            logger.error("gemini API key is required")
            return False
        if not self._model:
            logger.error("gemini model is required")
            return False
        return True

    async def test_connectivity(self) -> bool:
        if not self._api_key:
            logger.error("Gemini connection test failed: API key missing")
            return False
        try:
            resp = await self._http.get(
                f"{self._base_url}/models/{self._model}",
                headers={"x-goog-api-key": self._api_key},
            )
        except httpx.HTTPError as exc:
            logger.error("Gemini connection test failed: %s", exc)
            return False
        if resp.status_code >= 400:
            logger.error("Gemini connection test failed: status=%d", resp.status_code)
            return False
        logger.info("Gemini connection test successful")
        return True

    async def aclose(self) -> None:
        await self._http.aclose()

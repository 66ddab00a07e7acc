from __future__ import annotations

import logging
import time
from typing import Any, Sequence

import openai
from openai import AsyncOpenAI

from chatbot_service.application.exceptions import GenerationError
from chatbot_service.application.ports.clock import Clock, SystemClock
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

_FINISH_REASON_CONFIDENCE: dict[str, float] = {
    "stop": CONFIDENCE_HIGH,
    "length": CONFIDENCE_MEDIUM,
    "content_filter": CONFIDENCE_LOW,
}


def confidence_for(finish_reason: str | None) -> float:
    if finish_reason is None:
        return CONFIDENCE_DEFAULT
    return _FINISH_REASON_CONFIDENCE.get(finish_reason, CONFIDENCE_DEFAULT)


class OpenAIGenerator:
    """Chat Completions backend through the official SDK."""

    name = "openai"

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        system_prompt: str,
        max_tokens: int,
        temperature: float,
        base_url: str | None = None,
        timeout: float = 60.0,
        client: Any | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._system_prompt = system_prompt
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._clock = clock or SystemClock()
        self._client = client
        if self._client is None and api_key:
            self._client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout)
        logger.info("OpenAI generator initialized (model=%s)", model)

    async def generate(
        self,
        user_text: str,
        turns: Sequence[DialogueTurn],
    ) -> GeneratedReply:
        if self._client is None:
            raise GenerationError("OpenAI API key is not configured")

        start = time.perf_counter()
        messages = [{"role": "system", "content": self._system_prompt}]
        messages.extend(
            {"role": turn.role.value, "content": turn.content}
            for turn in with_user_turn(user_text, turns)
        )
        logger.debug("Generating OpenAI response (turns=%d)", len(messages) - 1)

        try:
            completion = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                max_tokens=self._max_tokens,
                temperature=self._temperature,
            )
        except openai.OpenAIError as exc:
            logger.error("Error generating OpenAI response: %s", exc)
            raise GenerationError(f"Failed to generate OpenAI response: {exc}") from exc

        try:
            choice = completion.choices[0] if completion.choices else None
            text = choice.message.content if choice is not None and choice.message else None
            finish_reason = choice.finish_reason if choice is not None else None
        except (AttributeError, TypeError) as exc:
            raise GenerationError(f"Malformed OpenAI response: {exc}") from exc

        logger.info(
            "OpenAI response generated in %.1fms (finish_reason=%s)",
            (time.perf_counter() - start) * 1000, finish_reason,
        )
        return make_reply(text, confidence_for(finish_reason), self._clock.now_ms())

    def validate_configuration(self) -> bool:
        if not self._api_key:
            logger.error("openai API key is required")
            return False
        if not self._model:
            logger.error("openai model is required")
            return False
        return True

    async def test_connectivity(self) -> bool:
        if self._client is None:
            logger.error("OpenAI connection test failed: API key missing")
            return False
        try:
            await self._client.models.list()
        except openai.OpenAIError as exc:
            logger.error("OpenAI connection test failed: %s", exc)
            return False
        logger.info("OpenAI connection test successful")
        return True

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()

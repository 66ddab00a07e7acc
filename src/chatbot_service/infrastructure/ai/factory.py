from __future__ import annotations

from chatbot_service.application.ports.clock import Clock
from chatbot_service.application.ports.generator import TextGenerator
from chatbot_service.config import Settings
from chatbot_service.domain.value_objects.enums import GeneratorBackend
from chatbot_service.infrastructure.ai.gemini_generator import GeminiGenerator
from chatbot_service.infrastructure.ai.openai_generator import OpenAIGenerator


def create_generator(settings: Settings, clock: Clock | None = None) -> TextGenerator:
    """Build the backend selected by ``AI_PROVIDER``."""
    backend = GeneratorBackend(settings.AI_PROVIDER)
    if backend is GeneratorBackend.GEMINI:
        return GeminiGenerator(
            settings.GEMINI_API_KEY,
            settings.GEMINI_MODEL,
            system_prompt=settings.AI_SYSTEM_PROMPT,
            max_tokens=settings.AI_MAX_TOKENS,
            temperature=settings.AI_TEMPERATURE,
            base_url=settings.GEMINI_BASE_URL,
            timeout=settings.AI_REQUEST_TIMEOUT_SECONDS,
            clock=clock,
        )
    return OpenAIGenerator(
        settings.OPENAI_API_KEY,
        settings.OPENAI_MODEL,
        system_prompt=settings.AI_SYSTEM_PROMPT,
        max_tokens=settings.AI_MAX_TOKENS,
        temperature=settings.AI_TEMPERATURE,
        base_url=settings.OPENAI_BASE_URL,
        timeout=settings.AI_REQUEST_TIMEOUT_SECONDS,
        clock=clock,
    )

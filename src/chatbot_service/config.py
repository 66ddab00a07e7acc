from __future__ import annotations

from typing import Literal

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful WhatsApp AI assistant. You should:\n"
    "- Be friendly and conversational\n"
    "- Provide helpful and accurate responses\n"
    "- Keep responses concise but informative\n"
    "- Use appropriate emojis when suitable\n"
    "- Ask clarifying questions when needed\n"
    "- Maintain context from the conversation history"
)


class Settings(BaseSettings):
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    AI_PROVIDER: Literal["openai", "gemini"] = "openai"
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-3.5-turbo"
    OPENAI_BASE_URL: str | None = None
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-pro"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    AI_MAX_TOKENS: int = 150
    AI_TEMPERATURE: float = Field(default=0.7, ge=0.0, le=2.0)
    AI_SYSTEM_PROMPT: str = DEFAULT_SYSTEM_PROMPT
    AI_REQUEST_TIMEOUT_SECONDS: float = 60.0

    MAX_HISTORY_LENGTH: int = Field(default=50, ge=1)
    RESPONSE_DELAY_MS: int = Field(default=1000, ge=0)
    CONTEXT_WINDOW_SIZE: int = Field(default=10, ge=1)
    HISTORY_MAX_AGE_DAYS: int = Field(default=30, ge=1)
    HISTORY_SWEEP_INTERVAL_SECONDS: float = 3600.0

    WHATSAPP_PHONE_NUMBER_ID: str = ""
    WHATSAPP_ACCESS_TOKEN: str = ""
    WHATSAPP_GRAPH_BASE_URL: str = "https://graph.facebook.com"
    WHATSAPP_GRAPH_API_VERSION: str = "v18.0"
    WHATSAPP_VERIFY_TOKEN: str = ""
    WHATSAPP_APP_SECRET: str = ""

    CORS_ORIGINS: list[str] = ["*"]

    WS_HEARTBEAT_SECONDS: int = 30
    WS_SEND_TIMEOUT_SECONDS: float = 5.0

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()

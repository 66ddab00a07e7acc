from __future__ import annotations

import asyncio
import logging
import os
import signal
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chatbot_service.api.v1.routers import health, history, messages, webhooks, ws
from chatbot_service.application.exceptions import (
    GenerationError,
    NotFoundError,
    TransportUnavailableError,
    ValidationError,
)
from chatbot_service.bootstrap import build_chatbot
from chatbot_service.config import settings
from chatbot_service.services.chatbot import Chatbot
from chatbot_service.workers.history_sweeper import run_history_sweeper

logger = logging.getLogger(__name__)


def _on_unhandled_exception(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
    """Log, then ask the server for a graceful shutdown."""
    logger.error(
        "Unhandled exception: %s", context.get("message"), exc_info=context.get("exception"),
    )
    os.kill(os.getpid(), signal.SIGTERM)


def create_app(chatbot: Chatbot | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Startup / shutdown lifecycle."""
        bot = chatbot or build_chatbot(settings)
        app.state.chatbot = bot
        app.state.ws_manager = bot.events.broadcaster

        try:
            await bot.initialize()
        except Exception:
            logger.exception("Failed to initialize chatbot")
            await bot.shutdown()
            raise

        sweeper = asyncio.create_task(
            run_history_sweeper(
                bot,
                settings.HISTORY_SWEEP_INTERVAL_SECONDS,
                settings.HISTORY_MAX_AGE_DAYS,
            ),
            name="history-sweeper",
        )
        loop = asyncio.get_running_loop()
        previous_handler = loop.get_exception_handler()
        loop.set_exception_handler(_on_unhandled_exception)
        logger.info("Chatbot is running")

        yield

        loop.set_exception_handler(previous_handler)
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass
        await bot.shutdown()

    app = FastAPI(
        title="WhatsApp AI Chatbot",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(history.router)
    app.include_router(messages.router)
    app.include_router(webhooks.router)
    app.include_router(ws.router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def _not_found(_req: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": exc.detail})

    @app.exception_handler(ValidationError)
    async def _validation(_req: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": exc.detail})

    @app.exception_handler(GenerationError)
    async def _generation(_req: Request, exc: GenerationError) -> JSONResponse:
        return JSONResponse(status_code=502, content={"detail": exc.detail})

    @app.exception_handler(TransportUnavailableError)
    async def _transport(_req: Request, exc: TransportUnavailableError) -> JSONResponse:
        return JSONResponse(status_code=503, content={"detail": exc.detail})

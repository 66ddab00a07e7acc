"""History sweeper: periodically evicts conversations nobody touched recently."""
from __future__ import annotations

import asyncio
import logging

from chatbot_service.services.chatbot import Chatbot

logger = logging.getLogger(__name__)


def sweep_once(chatbot: Chatbot, max_age_days: int) -> int:
    removed = chatbot.cleanup_old_histories(max_age_days)
    if removed:
        logger.info("History sweep removed %d conversations", removed)
    return removed


async def run_history_sweeper(
    chatbot: Chatbot,
    interval_seconds: float,
    max_age_days: int,
) -> None:
    logger.info(
        "History sweeper started (interval=%.0fs, max_age=%dd)",
        interval_seconds,
        max_age_days,
    )
    while True:
        try:
            sweep_once(chatbot, max_age_days)
        except Exception:
            logger.exception("History sweeper loop error")
        await asyncio.sleep(interval_seconds)

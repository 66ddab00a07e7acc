"""In-memory, bounded, per-conversation message history."""
from __future__ import annotations

import logging
import threading

import pydantic

from chatbot_service.application.dto.history import HistorySnapshot, HistoryStats
from chatbot_service.application.exceptions import InternalStoreError, ValidationError
from chatbot_service.application.ports.clock import Clock, SystemClock
from chatbot_service.domain.entities.history import ConversationHistory
from chatbot_service.domain.entities.message import Message

logger = logging.getLogger(__name__)

DEFAULT_MAX_LENGTH = 50


class HistoryStore:
    """Owns one sliding-window buffer of at most ``max_length`` messages per chat.

    A single lock guards the conversation map and is held for one operation
    only. Callers are the message pipeline, the HTTP history handlers and the
    periodic eviction sweep, interleaving on the event loop between operations.
    """

    def __init__(
        self,
        max_length: int = DEFAULT_MAX_LENGTH,
        clock: Clock | None = None,
    ) -> None:
        if max_length < 1:
            raise ValueError("max_length must be positive")
        self._max_length = max_length
        self._clock = clock or SystemClock()
        self._histories: dict[str, ConversationHistory] = {}
        self._lock = threading.Lock()
        logger.info("History store initialized (max_length=%d)", max_length)

    @property
    def max_length(self) -> int:
        return self._max_length

    def append(self, chat_id: str, message: Message) -> None:
        """Append a message, dropping the oldest ones beyond ``max_length``.

        Never raises: history is best-effort, faults are logged and swallowed.
        """
        try:
            if not chat_id:
                raise InternalStoreError("empty chat id")
            now = self._clock.now_ms()
            with self._lock:
                history = self._histories.get(chat_id)
                if history is None:
                    history = ConversationHistory(chat_id=chat_id, last_updated_at=now)
                    self._histories[chat_id] = history
                history.messages.append(message)
                if len(history.messages) > self._max_length:
                    del history.messages[: len(history.messages) - self._max_length]
                history.last_updated_at = now
                length = len(history.messages)
            logger.debug(
                "Message %s added to chat %s (length=%d)", message.id, chat_id, length,
            )
        except Exception:
            logger.exception("Error adding message to chat history %s", chat_id)

    def get(self, chat_id: str) -> list[Message]:
        with self._lock:
            history = self._histories.get(chat_id)
            return list(history.messages) if history else []

    def recent(self, chat_id: str, n: int = 10) -> list[Message]:
        """Last ``min(n, len)`` messages, oldest first."""
        if n <= 0:
            return []
        return self.get(chat_id)[-n:]

    def context_window(self, chat_id: str, n: int = 10) -> list[Message]:
        """Exactly the tail used to ground generation, in chronological order."""
        return self.recent(chat_id, n)

    def clear(self, chat_id: str) -> None:
        with self._lock:
            removed = self._histories.pop(chat_id, None) is not None
        if removed:
            logger.info("Chat history cleared: %s", chat_id)

    def search(self, chat_id: str, query: str) -> list[Message]:
        needle = query.lower()
        return [m for m in self.get(chat_id) if needle in m.body.lower()]

    def by_time_range(self, chat_id: str, start: int, end: int) -> list[Message]:
        return [m for m in self.get(chat_id) if start <= m.timestamp <= end]

    def stats(self, chat_id: str) -> HistoryStats:
        messages = self.get(chat_id)
        if not messages:
            return HistoryStats(count=0, last_message_timestamp=None, average_body_length=0)
        total_length = sum(len(m.body) for m in messages)
        return HistoryStats(
            count=len(messages),
            last_message_timestamp=max(m.timestamp for m in messages),
            average_body_length=round(total_length / len(messages)),
        )

    def chat_ids(self) -> list[str]:
        with self._lock:
            return list(self._histories)

    def total_conversations(self) -> int:
        with self._lock:
            return len(self._histories)

    def total_messages(self) -> int:
        with self._lock:
            return sum(len(h.messages) for h in self._histories.values())

    def last_updated_at(self, chat_id: str) -> int | None:
        with self._lock:
            history = self._histories.get(chat_id)
            return history.last_updated_at if history else None

    def evict_older_than(self, max_age_ms: int) -> int:
        """Drop every conversation not updated within ``max_age_ms``."""
        cutoff = self._clock.now_ms() - max_age_ms
        with self._lock:
            stale = [
                chat_id
                for chat_id, history in self._histories.items()
                if history.last_updated_at < cutoff
            ]
            for chat_id in stale:
                del self._histories[chat_id]
        if stale:
            logger.info("Evicted %d stale chat histories", len(stale))
        return len(stale)

    def serialize(self, chat_id: str) -> str | None:
        with self._lock:
            history = self._histories.get(chat_id)
            if history is None:
                return None
            snapshot = HistorySnapshot.from_history(history)
        return snapshot.model_dump_json(indent=2)

    def deserialize(self, chat_id: str, blob: str | bytes) -> None:
        """Replace the history of ``chat_id`` with an exported snapshot.

        Raises ``ValidationError`` on a malformed blob or when the embedded chat
        id differs from ``chat_id``; existing state is untouched in that case.
        """
        try:
            snapshot = HistorySnapshot.model_validate_json(blob)
        except pydantic.ValidationError as exc:
            raise ValidationError(f"malformed history export: {exc}") from exc

        if snapshot.chat_id != chat_id:
            logger.error(
                "Chat id mismatch in imported history: expected %s, got %s",
                chat_id, snapshot.chat_id,
            )
            raise ValidationError(
                f"chat id mismatch: expected {chat_id!r}, got {snapshot.chat_id!r}"
            )

        messages = [record.to_message() for record in snapshot.messages]
        history = ConversationHistory(
            chat_id=chat_id,
            last_updated_at=snapshot.last_updated_at,
            messages=messages[-self._max_length:],
        )
        with self._lock:
            self._histories[chat_id] = history
        logger.info("Chat history imported: %s (%d messages)", chat_id, len(history.messages))

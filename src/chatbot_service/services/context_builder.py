"""Derive the generator's dialogue window and salient topics from history."""
from __future__ import annotations

from typing import Sequence

from chatbot_service.domain.entities.message import Message
from chatbot_service.domain.value_objects.enums import Role
from chatbot_service.domain.value_objects.reply import DialogueTurn

DEFAULT_WINDOW_SIZE = 10
DEFAULT_TOPIC_WINDOW = 5
DEFAULT_MAX_TOPICS = 5
MIN_TOPIC_LENGTH = 4

STOP_WORDS: frozenset[str] = frozenset({
    "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with",
    "by", "is", "are", "was", "were", "be", "been", "have", "has", "had",
    "do", "does", "did", "will", "would", "could", "should", "may", "might",
    "can", "this", "that", "these", "those", "i", "you", "he", "she", "it",
    "we", "they", "me", "him", "her", "us", "them", "my", "your", "his",
    "its", "our", "their", "mine", "yours", "hers", "ours",
    "theirs", "a", "an", "if", "then", "else",
    "when", "from", "up", "about", "into", "through", "during",
    "before", "after", "above", "below", "between", "among", "under",
    "over", "inside", "outside", "within", "without", "against", "toward",
    "towards", "upon", "across", "behind", "beneath", "beside", "beyond",
    "near", "off", "out", "past", "since",
    "throughout", "underneath", "until",
})


def build_dialogue_turns(
    messages: Sequence[Message],
    bot_id: str,
    window_size: int = DEFAULT_WINDOW_SIZE,
) -> list[DialogueTurn]:
    """Role-tag the last ``window_size`` messages, oldest first.

    Messages sent by ``bot_id`` become ``assistant`` turns, everything else is
    ``user``. Blank bodies are dropped after the window is taken, so the
    result can be shorter than ``window_size``.
    """
    if window_size <= 0:
        return []
    turns: list[DialogueTurn] = []
    for message in messages[-window_size:]:
        if not message.body.strip():
            continue
        role = Role.ASSISTANT if message.sender == bot_id else Role.USER
        turns.append(DialogueTurn(role=role, content=message.body))
    return turns


def extract_topics(
    messages: Sequence[Message],
    window_size: int = DEFAULT_TOPIC_WINDOW,
    max_topics: int = DEFAULT_MAX_TOPICS,
) -> list[str]:
    """First ``max_topics`` salient tokens of the last ``window_size`` messages.

    Tokens are lowercased whitespace splits longer than three characters and
    not in ``STOP_WORDS``, in chronological then left-to-right order. Repeats
    are kept. Blank messages still count towards the window.
    """
    if window_size <= 0 or max_topics <= 0:
        return []
    topics: list[str] = []
    for message in messages[-window_size:]:
        for word in message.body.lower().split():
            if len(word) < MIN_TOPIC_LENGTH or word in STOP_WORDS:
                continue
            topics.append(word)
            if len(topics) == max_topics:
                return topics
    return topics

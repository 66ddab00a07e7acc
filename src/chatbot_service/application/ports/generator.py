from __future__ import annotations

from typing import Protocol, Sequence

from chatbot_service.domain.value_objects.reply import DialogueTurn, GeneratedReply


class TextGenerator(Protocol):
    """Text-generation backend.

    ``generate`` receives turns that are already role-tagged and windowed and
    must not re-window them. Backend failures raise ``GenerationError``; a
    successful call without usable text yields the fallback apology instead.
    """

    name: str

    async def generate(
        self,
        user_text: str,
        turns: Sequence[DialogueTurn],
    ) -> GeneratedReply: ...

    def validate_configuration(self) -> bool: ...

    async def test_connectivity(self) -> bool: ...

    async def aclose(self) -> None: ...

"""Protocol definitions for the generation service collaborators.

These protocols define contracts for the AI generator and the generation store,
allowing the orchestrator to be wired against any implementation (or a test double).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from flashcards_ai.models.flashcards import Flashcard, GenerationErrorLog, GenerationRecord


class FlashcardGenerator(Protocol):
    """Anything that turns source text into flashcards."""

    @property
    def model_name(self) -> str:
        """Model identifier recorded alongside each generation."""
        ...

    async def send_request(self, user_input: str) -> list[Flashcard]:
        """Generate flashcards from ``user_input``."""
        ...


class GenerationRepository(Protocol):
    """Protocol for generation persistence operations."""

    async def save_generation(self, record: GenerationRecord) -> GenerationRecord:
        """Persist a generation record.

        Returns:
            The stored record, with its ``id`` populated.

        """
        ...

    async def save_error_log(self, entry: GenerationErrorLog) -> None:
        """Persist a failed generation attempt."""
        ...

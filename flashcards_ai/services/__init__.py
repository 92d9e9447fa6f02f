"""Application services."""

from flashcards_ai.services.generation_service import (
    GenerationFailedError,
    GenerationService,
)

__all__ = ["GenerationFailedError", "GenerationService"]

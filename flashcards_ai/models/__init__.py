from .flashcards import (
    CreateGenerationCommand,
    Flashcard,
    FlashcardProposal,
    FlashcardSource,
    GenerationErrorLog,
    GenerationRecord,
    GenerationResult,
    hash_source_text,
)

__all__ = [
    "CreateGenerationCommand",
    "Flashcard",
    "FlashcardProposal",
    "FlashcardSource",
    "GenerationErrorLog",
    "GenerationRecord",
    "GenerationResult",
    "hash_source_text",
]

"""Flashcard and generation records exchanged with the generation service."""

from __future__ import annotations

import hashlib
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

SOURCE_TEXT_MIN_LENGTH = 1000
SOURCE_TEXT_MAX_LENGTH = 10000


class FlashcardSource(str, Enum):
    AI_FULL = "ai-full"
    AI_EDITED = "ai-edited"
    MANUAL = "manual"


class Flashcard(BaseModel):
    """A generated question/answer pair. Length limits belong to the caller."""

    model_config = ConfigDict(frozen=True)

    front: str
    back: str


class FlashcardProposal(Flashcard):
    source: FlashcardSource = FlashcardSource.AI_FULL


class CreateGenerationCommand(BaseModel):
    source_text: str = Field(
        min_length=SOURCE_TEXT_MIN_LENGTH,
        max_length=SOURCE_TEXT_MAX_LENGTH,
    )

    @property
    def source_text_hash(self) -> str:
        return hash_source_text(self.source_text)


class GenerationRecord(BaseModel):
    id: int | None = None
    model: str
    source_text_hash: str
    source_text_length: int
    generation_duration_ms: int
    generated_count: int


class GenerationErrorLog(BaseModel):
    id: int | None = None
    error_code: str
    error_message: str
    model: str
    source_text_hash: str
    source_text_length: int


class GenerationResult(BaseModel):
    generation: GenerationRecord
    flashcards: list[FlashcardProposal]


def hash_source_text(text: str) -> str:
    """SHA-256 hex digest used to correlate generations without storing the text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()

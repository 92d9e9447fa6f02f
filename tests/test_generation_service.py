"""Tests for the generation orchestrator using in-memory collaborators."""

from __future__ import annotations

import itertools
import logging
from unittest.mock import AsyncMock

import pytest
from pydantic import ValidationError

from flashcards_ai.adapters.openrouter.exceptions import ErrorKind, OpenRouterServiceError
from flashcards_ai.models.flashcards import (
    SOURCE_TEXT_MAX_LENGTH,
    SOURCE_TEXT_MIN_LENGTH,
    CreateGenerationCommand,
    Flashcard,
    FlashcardSource,
    GenerationErrorLog,
    GenerationRecord,
    hash_source_text,
)
from flashcards_ai.services.generation_service import (
    USER_FACING_FAILURE_MESSAGE,
    GenerationFailedError,
    GenerationService,
)

SOURCE_TEXT = "Mitochondria are the powerhouse of the cell. " * 30


class InMemoryGenerationRepository:
    def __init__(self) -> None:
        self.generations: list[GenerationRecord] = []
        self.error_logs: list[GenerationErrorLog] = []
        self._ids = itertools.count(1)

    async def save_generation(self, record: GenerationRecord) -> GenerationRecord:
        stored = record.model_copy(update={"id": next(self._ids)})
        self.generations.append(stored)
        return stored

    async def save_error_log(self, entry: GenerationErrorLog) -> None:
        self.error_logs.append(entry)


class StaticFlashcardGenerator:
    """Returns placeholder cards without calling any API."""

    model_name = "test/static-model"

    def __init__(self, count: int = 3, error: Exception | None = None) -> None:
        self.count = count
        self.error = error
        self.inputs: list[str] = []

    async def send_request(self, user_input: str) -> list[Flashcard]:
        self.inputs.append(user_input)
        if self.error is not None:
            raise self.error
        return [
            Flashcard(front=f"Question {i}", back=f"Answer {i}") for i in range(1, self.count + 1)
        ]


def _clock(*ticks: float):
    values = iter(ticks)
    return lambda: next(values)


class TestCreateGenerationCommand:
    def test_length_bounds(self) -> None:
        CreateGenerationCommand(source_text="x" * SOURCE_TEXT_MIN_LENGTH)
        CreateGenerationCommand(source_text="x" * SOURCE_TEXT_MAX_LENGTH)

        with pytest.raises(ValidationError):
            CreateGenerationCommand(source_text="x" * (SOURCE_TEXT_MIN_LENGTH - 1))
        with pytest.raises(ValidationError):
            CreateGenerationCommand(source_text="x" * (SOURCE_TEXT_MAX_LENGTH + 1))

    def test_hash_is_sha256_hex(self) -> None:
        command = CreateGenerationCommand(source_text=SOURCE_TEXT)

        assert command.source_text_hash == hash_source_text(SOURCE_TEXT)
        assert len(command.source_text_hash) == 64


class TestGenerationService:
    @pytest.mark.asyncio
    async def test_successful_generation_is_recorded(self) -> None:
        repository = InMemoryGenerationRepository()
        generator = StaticFlashcardGenerator(count=3)
        service = GenerationService(generator, repository, clock=_clock(10.0, 12.5))

        result = await service.create_generation(CreateGenerationCommand(source_text=SOURCE_TEXT))

        assert generator.inputs == [SOURCE_TEXT]
        assert result.generation.id == 1
        assert result.generation.model == "test/static-model"
        assert result.generation.generated_count == 3
        assert result.generation.generation_duration_ms == 2500
        assert result.generation.source_text_length == len(SOURCE_TEXT)
        assert result.generation.source_text_hash == hash_source_text(SOURCE_TEXT)
        assert [card.front for card in result.flashcards] == [
            "Question 1",
            "Question 2",
            "Question 3",
        ]
        assert all(card.source is FlashcardSource.AI_FULL for card in result.flashcards)
        assert repository.generations == [result.generation]
        assert repository.error_logs == []

    @pytest.mark.asyncio
    async def test_service_error_is_logged_with_its_code(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        repository = InMemoryGenerationRepository()
        cause = OpenRouterServiceError(ErrorKind.API_ERROR, "Service down", status_code=503)
        service = GenerationService(StaticFlashcardGenerator(error=cause), repository)

        with caplog.at_level(logging.ERROR), pytest.raises(GenerationFailedError) as exc_info:
            await service.create_generation(CreateGenerationCommand(source_text=SOURCE_TEXT))

        error = exc_info.value
        assert error.error_code == "API_ERROR_503"
        assert error.user_message == USER_FACING_FAILURE_MESSAGE
        assert error.__cause__ is cause
        assert repository.generations == []
        [entry] = repository.error_logs
        assert entry.error_code == "API_ERROR_503"
        assert entry.error_message == "Service down"
        assert entry.model == "test/static-model"
        assert entry.source_text_hash == hash_source_text(SOURCE_TEXT)
        assert entry.source_text_length == len(SOURCE_TEXT)
        assert any(
            r.getMessage() == "generation_failed" and r.correlation_id == error.correlation_id
            for r in caplog.records
        )

    @pytest.mark.asyncio
    async def test_unexpected_error_uses_generic_code(self) -> None:
        repository = InMemoryGenerationRepository()
        service = GenerationService(
            StaticFlashcardGenerator(error=RuntimeError("socket closed")), repository
        )

        with pytest.raises(GenerationFailedError) as exc_info:
            await service.create_generation(CreateGenerationCommand(source_text=SOURCE_TEXT))

        assert exc_info.value.error_code == "GENERATION_FAILED"
        assert repository.error_logs[0].error_message == "socket closed"

    @pytest.mark.asyncio
    async def test_user_message_hides_internal_details(self) -> None:
        cause = OpenRouterServiceError(
            ErrorKind.SCHEMA_VALIDATION_ERROR,
            "Response does not match expected schema at 'flashcards[0].back'",
        )
        service = GenerationService(
            StaticFlashcardGenerator(error=cause), InMemoryGenerationRepository()
        )

        with pytest.raises(GenerationFailedError) as exc_info:
            await service.create_generation(CreateGenerationCommand(source_text=SOURCE_TEXT))

        assert "flashcards[0]" not in exc_info.value.user_message

    @pytest.mark.asyncio
    async def test_repository_failure_is_reported_as_generation_failure(self) -> None:
        repository = AsyncMock()
        repository.save_generation.side_effect = RuntimeError("database is locked")
        service = GenerationService(StaticFlashcardGenerator(), repository)

        with pytest.raises(GenerationFailedError) as exc_info:
            await service.create_generation(CreateGenerationCommand(source_text=SOURCE_TEXT))

        assert exc_info.value.error_code == "GENERATION_FAILED"
        repository.save_error_log.assert_awaited_once()
        entry = repository.save_error_log.await_args.args[0]
        assert entry.error_message == "database is locked"

    @pytest.mark.asyncio
    async def test_error_log_write_failure_still_reports_generation_failure(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        repository = AsyncMock()
        repository.save_error_log.side_effect = RuntimeError("db down")
        cause = OpenRouterServiceError(ErrorKind.API_ERROR, "Service down", status_code=503)
        service = GenerationService(StaticFlashcardGenerator(error=cause), repository)

        with caplog.at_level(logging.ERROR), pytest.raises(GenerationFailedError) as exc_info:
            await service.create_generation(CreateGenerationCommand(source_text=SOURCE_TEXT))

        error = exc_info.value
        assert error.error_code == "API_ERROR_503"
        assert error.__cause__ is cause
        assert error.user_message == USER_FACING_FAILURE_MESSAGE
        messages = [r.getMessage() for r in caplog.records]
        assert "generation_error_log_failed" in messages
        assert "generation_failed" in messages

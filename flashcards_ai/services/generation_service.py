"""Generation orchestrator: calls the AI client, records results and failures."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from flashcards_ai.adapters.openrouter.exceptions import OpenRouterServiceError
from flashcards_ai.core.logging_utils import generate_correlation_id
from flashcards_ai.models.flashcards import (
    FlashcardProposal,
    FlashcardSource,
    GenerationErrorLog,
    GenerationRecord,
    GenerationResult,
)

if TYPE_CHECKING:
    from flashcards_ai.models.flashcards import CreateGenerationCommand
    from flashcards_ai.protocols import FlashcardGenerator, GenerationRepository

logger = logging.getLogger(__name__)

GENERIC_FAILURE_CODE = "GENERATION_FAILED"
USER_FACING_FAILURE_MESSAGE = (
    "We couldn't generate flashcards right now. Please try again in a moment."
)


class GenerationFailedError(Exception):
    """Raised to callers when a generation could not be completed.

    ``user_message`` is safe to show to end users; ``error_code`` and the chained
    cause carry the diagnostic detail.
    """

    def __init__(self, error_code: str, correlation_id: str) -> None:
        super().__init__(f"Generation failed ({error_code}, cid={correlation_id})")
        self.error_code = error_code
        self.correlation_id = correlation_id
        self.user_message = USER_FACING_FAILURE_MESSAGE


class GenerationService:
    def __init__(
        self,
        generator: FlashcardGenerator,
        repository: GenerationRepository,
        *,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._generator = generator
        self._repository = repository
        self._clock = clock

    async def create_generation(self, command: CreateGenerationCommand) -> GenerationResult:
        source_text = command.source_text
        source_hash = command.source_text_hash
        source_length = len(source_text)
        model = self._generator.model_name

        started = self._clock()
        try:
            flashcards = await self._generator.send_request(source_text)
            duration_ms = int((self._clock() - started) * 1000)

            record = await self._repository.save_generation(
                GenerationRecord(
                    model=model,
                    source_text_hash=source_hash,
                    source_text_length=source_length,
                    generation_duration_ms=duration_ms,
                    generated_count=len(flashcards),
                )
            )
        except Exception as exc:
            error_code = exc.code if isinstance(exc, OpenRouterServiceError) else GENERIC_FAILURE_CODE
            error_message = exc.message if isinstance(exc, OpenRouterServiceError) else str(exc)
            correlation_id = generate_correlation_id()

            try:
                await self._repository.save_error_log(
                    GenerationErrorLog(
                        error_code=error_code,
                        error_message=error_message or type(exc).__name__,
                        model=model,
                        source_text_hash=source_hash,
                        source_text_length=source_length,
                    )
                )
            except Exception:
                logger.exception(
                    "generation_error_log_failed",
                    extra={"correlation_id": correlation_id, "error_code": error_code},
                )

            logger.error(
                "generation_failed",
                extra={
                    "correlation_id": correlation_id,
                    "error_code": error_code,
                    "model": model,
                    "source_text_length": source_length,
                },
            )
            raise GenerationFailedError(error_code, correlation_id) from exc

        logger.info(
            "generation_completed",
            extra={
                "generation_id": record.id,
                "model": model,
                "generated_count": record.generated_count,
                "latency_ms": record.generation_duration_ms,
            },
        )
        return GenerationResult(
            generation=record,
            flashcards=[
                FlashcardProposal(front=card.front, back=card.back, source=FlashcardSource.AI_FULL)
                for card in flashcards
            ],
        )

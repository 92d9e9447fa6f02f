"""OpenRouter flashcard generation client built from modular components."""

from __future__ import annotations

import itertools
import json
import logging
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, NoReturn

import httpx
from pydantic import ValidationError

from flashcards_ai.adapters.openrouter.error_handler import RetryController, raise_for_status
from flashcards_ai.adapters.openrouter.exceptions import ErrorKind, OpenRouterServiceError
from flashcards_ai.adapters.openrouter.payload_logger import PayloadLogger
from flashcards_ai.adapters.openrouter.request_builder import RequestBuilder
from flashcards_ai.adapters.openrouter.response_processor import ResponseProcessor
from flashcards_ai.adapters.openrouter.schema_validator import validate_schema
from flashcards_ai.config.generation import GenerationConfig
from flashcards_ai.core.logging_utils import redact_secret
from flashcards_ai.models.flashcards import Flashcard

if TYPE_CHECKING:
    from types import TracebackType

    from flashcards_ai.core.backoff import SleepFunc

API_URL = "https://openrouter.ai/api/v1/chat/completions"


class OpenRouterClient:
    """Generates flashcards from free text through the OpenRouter chat completions API."""

    _provider_name = "openrouter"

    def __init__(
        self,
        api_key: str,
        config: Mapping[str, Any] | GenerationConfig | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        http_referer: str | None = None,
        x_title: str | None = None,
        timeout_sec: float = 60.0,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        sleep: SleepFunc | None = None,
        logger: logging.Logger | None = None,
        payload_field: str = "flashcards",
        debug_payloads: bool = False,
        log_truncate_length: int = 1000,
    ) -> None:
        self._logger = logger or logging.getLogger(__name__)

        if not isinstance(api_key, str) or not api_key.strip():
            self._raise_logged(
                OpenRouterServiceError(ErrorKind.MISSING_API_KEY, "API key is required")
            )

        self._api_key = api_key.strip()
        self._config = GenerationConfig().merge(config)
        self._timeout = timeout_sec
        self._payload_field = payload_field
        self._http_client = http_client
        self._owns_http_client = http_client is None

        self.request_builder = RequestBuilder(
            api_key=self._api_key,
            http_referer=http_referer,
            x_title=x_title,
        )
        self.retry_controller = RetryController(
            max_attempts=max_attempts,
            base_delay=base_delay,
            sleep=sleep,
            logger=self._logger,
        )
        self.payload_logger = PayloadLogger(
            debug_payloads=debug_payloads,
            log_truncate_length=log_truncate_length,
            logger=self._logger,
        )

    @property
    def provider_name(self) -> str:
        return self._provider_name

    @property
    def model_name(self) -> str:
        return self._config.model_name

    def get_configuration(self) -> GenerationConfig:
        """Return a deep copy of the current configuration."""
        return self._config.model_copy(deep=True)

    def set_configuration(self, partial: Mapping[str, Any] | GenerationConfig) -> None:
        """Merge ``partial`` into the configuration.

        The stored config is replaced, never mutated, so requests already in flight
        keep the snapshot they started with.
        """
        self._config = self._config.merge(partial)
        self._logger.info(
            "openrouter_configuration_updated",
            extra={"model": self._config.model_name},
        )

    async def send_request(self, user_input: str) -> list[Flashcard]:
        """Generate flashcards for ``user_input``.

        Requires a JSON ``response_format``; text responses are only available
        through :meth:`request_payload`.

        Raises:
            OpenRouterServiceError: On invalid input, a non-JSON response format, API
                failure, exhausted retries or a response that cannot be turned into
                flashcards.

        """
        try:
            if not self._config.response_format.is_json:
                raise OpenRouterServiceError(
                    ErrorKind.RESPONSE_PARSING_ERROR,
                    "Flashcards need a JSON response format, got "
                    f"'{self._config.response_format.type}'; use request_payload for text",
                    details={"response_format_type": self._config.response_format.type},
                )
            payload = await self._request_payload(user_input)
            return self._extract_flashcards(payload)
        except OpenRouterServiceError as exc:
            self._raise_logged(exc)

    async def request_payload(self, user_input: str) -> Any:
        """Return the normalized (and, for strict schemas, validated) response payload."""
        try:
            return await self._request_payload(user_input)
        except OpenRouterServiceError as exc:
            self._raise_logged(exc)

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._http_client is not None and self._owns_http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> OpenRouterClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_http_client = True
        return self._http_client

    async def _request_payload(self, user_input: str) -> Any:
        if not isinstance(user_input, str) or not user_input.strip():
            raise OpenRouterServiceError(ErrorKind.MISSING_USER_INPUT, "User input is required")

        config = self._config
        headers = self.request_builder.build_headers()
        body = self.request_builder.build_request_body(config, user_input)
        self.payload_logger.log_request_payload(
            self.request_builder.get_redacted_headers(headers), body
        )

        client = self._get_http_client()
        attempts = itertools.count(1)
        total_chars = sum(len(message["content"]) for message in body["messages"])

        async def call() -> httpx.Response:
            attempt = next(attempts)
            self.payload_logger.log_request(
                model=config.model_name, attempt=attempt, total_chars=total_chars
            )
            started = time.perf_counter()
            response = await client.post(API_URL, headers=headers, json=body)
            self.payload_logger.log_response(
                status=response.status_code,
                latency_ms=int((time.perf_counter() - started) * 1000),
                model=config.model_name,
                attempt=attempt,
            )
            try:
                raise_for_status(response)
            except OpenRouterServiceError as exc:
                # error bodies may echo the key; scrub before the retry log sees it
                self._scrub(exc)
                raise
            return response

        response = await self.retry_controller.run(call)
        data = self._decode_body(response)
        self.payload_logger.log_response_payload(data)

        processor = ResponseProcessor(
            payload_field=self._payload_field,
            json_mode=config.response_format.is_json,
        )
        truncated, finish_reason, native_finish_reason = processor.is_completion_truncated(data)
        if truncated:
            self._logger.warning(
                "completion_truncated",
                extra={
                    "model": config.model_name,
                    "finish_reason": finish_reason,
                    "native_finish_reason": native_finish_reason,
                },
            )

        payload = processor.normalize(data)

        response_format = config.response_format
        if response_format.is_json and response_format.is_strict:
            validate_schema(payload, response_format.json_schema.schema_)

        return payload

    def _decode_body(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise OpenRouterServiceError(
                ErrorKind.JSON_PARSE_ERROR,
                "Failed to parse API response body as JSON",
                details={"content": response.text, "error": str(exc)},
            ) from exc

    def _extract_flashcards(self, payload: Any) -> list[Flashcard]:
        items = payload.get(self._payload_field) if isinstance(payload, Mapping) else None
        if not isinstance(items, list) or not items:
            raise OpenRouterServiceError(
                ErrorKind.RESPONSE_PARSING_ERROR,
                f"Response payload has no '{self._payload_field}' list",
                details={"payload_type": type(payload).__name__},
            )

        flashcards: list[Flashcard] = []
        for index, item in enumerate(items):
            try:
                flashcards.append(Flashcard.model_validate(item))
            except ValidationError as exc:
                raise OpenRouterServiceError(
                    ErrorKind.RESPONSE_PARSING_ERROR,
                    f"Invalid flashcard at index {index}",
                    details={
                        "index": index,
                        "errors": exc.errors(include_url=False, include_input=False),
                    },
                ) from exc
        return flashcards

    def _scrub(self, error: OpenRouterServiceError) -> None:
        secret = getattr(self, "_api_key", None)
        error.message = redact_secret(error.message, secret)
        error.details = redact_secret(error.details, secret)
        error.args = (error.message,)

    def _raise_logged(self, error: OpenRouterServiceError) -> NoReturn:
        """Scrub the API key from ``error`` and its causes, log it once and raise it."""
        link: BaseException | None = error
        while isinstance(link, OpenRouterServiceError):
            self._scrub(link)
            link = link.__cause__
        self._logger.error("openrouter_service_error", extra=error.to_log_context())
        raise error

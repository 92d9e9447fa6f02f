"""Error classification and retry logic for OpenRouter API calls."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, TypeVar

import httpx

from flashcards_ai.adapters.openrouter.exceptions import ErrorKind, OpenRouterServiceError
from flashcards_ai.core.backoff import SleepFunc, sleep_backoff

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

# Raw transport failures that are worth another attempt. Anything else that is not an
# OpenRouterServiceError is treated as a programming error and propagates untouched.
RETRYABLE_TRANSPORT_ERRORS: tuple[type[BaseException], ...] = (
    httpx.TransportError,
    TimeoutError,
    OSError,
)

_STATUS_MESSAGES: dict[int, str] = {
    400: "Invalid or missing request parameters",
    401: "Authentication failed",
    402: "Insufficient account balance",
    403: "Access forbidden",
    404: "Requested resource not found",
    408: "Request timeout",
    429: "Rate limit exceeded",
}


def get_error_message(status_code: int, data: Any) -> str:
    """Return a human-friendly error message for an HTTP status.

    Common statuses map to stable messages; a message from the API payload
    (string or nested ``{error: {message}}``) is appended when present.
    """
    payload_message: str | None = None
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict):
            msg = err.get("message")
            if isinstance(msg, str) and msg:
                payload_message = msg
        elif isinstance(err, str) and err:
            payload_message = err

    if status_code == 500:
        base = "Internal server error"
    elif status_code > 500:
        base = f"HTTP {status_code} error"
    else:
        base = _STATUS_MESSAGES.get(status_code, f"HTTP {status_code} error")

    if payload_message:
        return f"{base}: {payload_message}"
    return base


def raise_for_status(response: httpx.Response) -> None:
    """Convert a non-2xx response into an ``API_ERROR`` carrying the status code."""
    if response.is_success:
        return

    try:
        data: Any = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError):
        data = {}

    status_code = response.status_code
    raise OpenRouterServiceError(
        ErrorKind.API_ERROR,
        f"API request failed with status {status_code}: {get_error_message(status_code, data)}",
        details=data,
        status_code=status_code,
    )


class RetryController:
    """Runs a network call with bounded attempts and linear backoff.

    State machine: ``Idle -> Attempting -> {Success | Retrying -> Attempting | Failed}``.
    ``Retrying`` only exists inside :meth:`run`.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        sleep: SleepFunc | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if max_attempts < 1:
            msg = f"max_attempts must be at least 1 (got {max_attempts})"
            raise ValueError(msg)
        if base_delay < 0:
            msg = f"base_delay must be non-negative (got {base_delay})"
            raise ValueError(msg)
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._sleep = sleep
        self._logger = logger or logging.getLogger(__name__)

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def is_retryable(self, error: BaseException) -> bool:
        """Return True when ``error`` should trigger another attempt."""
        if isinstance(error, OpenRouterServiceError):
            return error.is_server_error
        return isinstance(error, RETRYABLE_TRANSPORT_ERRORS)

    async def run(self, call: Callable[[], Awaitable[T]]) -> T:
        """Invoke ``call`` until it succeeds, fails terminally or attempts run out."""
        attempt = 0
        last_error: BaseException | None = None

        while attempt < self._max_attempts:
            try:
                return await call()
            except OpenRouterServiceError as exc:
                if not self.is_retryable(exc):
                    raise
                last_error = exc
            except RETRYABLE_TRANSPORT_ERRORS as exc:
                last_error = exc

            attempt += 1
            if attempt >= self._max_attempts:
                break

            delay = await sleep_backoff(attempt, self._base_delay, self._sleep)
            self._logger.warning(
                "openrouter_retry",
                extra={
                    "attempt": attempt,
                    "max_attempts": self._max_attempts,
                    "delay_sec": delay,
                    "error": _describe_error(last_error),
                },
            )

        raise OpenRouterServiceError(
            ErrorKind.MAX_RETRIES_EXCEEDED,
            f"Request failed after {self._max_attempts} attempts",
            details={
                "attempts": attempt,
                "last_error_code": _error_code(last_error),
                "last_error": _describe_error(last_error),
            },
        ) from last_error


def _error_code(error: BaseException | None) -> str | None:
    if error is None:
        return None
    if isinstance(error, OpenRouterServiceError):
        return error.code
    return type(error).__name__


def _describe_error(error: BaseException | None) -> str | None:
    if error is None:
        return None
    if isinstance(error, OpenRouterServiceError):
        return error.message
    return str(error) or type(error).__name__

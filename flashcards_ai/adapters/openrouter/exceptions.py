"""Error type shared by every OpenRouter client component."""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Failure categories raised by the flashcard generation client."""

    MISSING_API_KEY = "MISSING_API_KEY"
    MISSING_USER_INPUT = "MISSING_USER_INPUT"
    API_ERROR = "API_ERROR"
    MISSING_CHOICES = "MISSING_CHOICES"
    MISSING_CONTENT = "MISSING_CONTENT"
    INVALID_RESPONSE_FORMAT = "INVALID_RESPONSE_FORMAT"
    JSON_PARSE_ERROR = "JSON_PARSE_ERROR"
    SCHEMA_VALIDATION_ERROR = "SCHEMA_VALIDATION_ERROR"
    RESPONSE_PARSING_ERROR = "RESPONSE_PARSING_ERROR"
    MAX_RETRIES_EXCEEDED = "MAX_RETRIES_EXCEEDED"


class OpenRouterServiceError(Exception):
    """Single tagged error for the generation client.

    ``kind`` selects the category, ``details`` carries an opaque diagnostic payload
    (never the API key) and ``status_code`` is set for ``API_ERROR`` only.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        details: Any = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details
        self.status_code = status_code

    @property
    def code(self) -> str:
        """Short code for logs, e.g. ``API_ERROR_503`` or ``MISSING_CONTENT``."""
        if self.kind is ErrorKind.API_ERROR and self.status_code is not None:
            return f"{self.kind.value}_{self.status_code}"
        return self.kind.value

    @property
    def is_server_error(self) -> bool:
        return (
            self.kind is ErrorKind.API_ERROR
            and self.status_code is not None
            and 500 <= self.status_code < 600
        )

    def to_log_context(self) -> dict[str, Any]:
        """Return a flat dict suitable for ``logging`` ``extra=`` fields."""
        return {
            "error_code": self.code,
            "error_message": self.message,
            "details": self.details,
            "status_code": self.status_code,
        }

    def __repr__(self) -> str:
        return f"OpenRouterServiceError(code={self.code!r}, message={self.message!r})"

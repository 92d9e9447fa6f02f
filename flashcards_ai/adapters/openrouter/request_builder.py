"""Request builder for OpenRouter API calls."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from flashcards_ai.config.generation import GenerationConfig

RESERVED_PAYLOAD_KEYS = frozenset({"model", "messages", "response_format"})

DEFAULT_HTTP_REFERER = "https://openrouter.ai"
DEFAULT_X_TITLE = "10xcards"


class RequestBuilder:
    """Builds HTTP headers and request bodies for the chat completions endpoint."""

    def __init__(
        self,
        api_key: str,
        http_referer: str | None = None,
        x_title: str | None = None,
    ) -> None:
        self._api_key = api_key
        self._http_referer = http_referer
        self._x_title = x_title
        self._logger = logging.getLogger(__name__)

    def build_headers(self) -> dict[str, str]:
        """Build HTTP headers for the request."""
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self._http_referer or DEFAULT_HTTP_REFERER,
            "X-Title": self._x_title or DEFAULT_X_TITLE,
        }

    def build_messages(self, config: GenerationConfig, user_input: str) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": config.system_message},
            {"role": "user", "content": user_input},
        ]

    def build_request_body(self, config: GenerationConfig, user_input: str) -> dict[str, Any]:
        """Build a fresh request body for one call.

        ``model_params`` are spread as top-level keys. Keys that would overwrite
        ``model``, ``messages`` or ``response_format`` are dropped.
        """
        body: dict[str, Any] = {
            "model": config.model_name,
            "messages": self.build_messages(config, user_input),
            "response_format": config.response_format.to_payload(),
        }

        dropped = sorted(key for key in config.model_params if key in RESERVED_PAYLOAD_KEYS)
        if dropped:
            self._logger.warning("reserved_model_params_ignored", extra={"params": dropped})

        for key, value in config.model_params.items():
            if key not in RESERVED_PAYLOAD_KEYS:
                body[key] = value

        return body

    def get_redacted_headers(self, headers: dict[str, str]) -> dict[str, str]:
        """Get headers with sensitive information redacted."""
        redacted_headers = dict(headers)
        if "Authorization" in redacted_headers:
            redacted_headers["Authorization"] = "REDACTED"
        return redacted_headers

"""Response normalizer for OpenRouter-compatible chat completion envelopes."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from flashcards_ai.adapters.openrouter.exceptions import ErrorKind, OpenRouterServiceError


def _parse_json_content(content: str) -> Any:
    try:
        return json.loads(content)
    except (json.JSONDecodeError, TypeError) as exc:
        raise OpenRouterServiceError(
            ErrorKind.JSON_PARSE_ERROR,
            "Failed to parse JSON response",
            details={"content": content, "error": str(exc)},
        ) from exc


@dataclass(frozen=True, slots=True)
class DirectEnvelope:
    """Payload field is already present at the top level."""

    payload_field: str

    def matches(self, response: Mapping[str, Any]) -> bool:
        return self.payload_field in response

    def extract(self, response: Mapping[str, Any], json_mode: bool) -> Any:
        return response


@dataclass(frozen=True, slots=True)
class ContentEnvelope:
    """Top-level ``content`` string holding the serialized payload."""

    def matches(self, response: Mapping[str, Any]) -> bool:
        return isinstance(response.get("content"), str)

    def extract(self, response: Mapping[str, Any], json_mode: bool) -> Any:
        content = response["content"]
        if not json_mode:
            return {"content": content}
        return _parse_json_content(content)


@dataclass(frozen=True, slots=True)
class ChoicesEnvelope:
    """OpenAI-style ``choices[0].message.content`` envelope."""

    payload_field: str

    def matches(self, response: Mapping[str, Any]) -> bool:
        choices = response.get("choices")
        return isinstance(choices, list) and len(choices) > 0

    def extract(self, response: Mapping[str, Any], json_mode: bool) -> Any:
        first = response["choices"][0]
        message = first.get("message") if isinstance(first, Mapping) else None
        content = message.get("content") if isinstance(message, Mapping) else None

        if isinstance(content, str) and content.strip():
            if not json_mode:
                return {"content": content}
            return _parse_json_content(content)

        if isinstance(content, Mapping) and self.payload_field in content:
            return content

        raise OpenRouterServiceError(
            ErrorKind.MISSING_CONTENT,
            "Missing content in API response",
            details={"choice": first},
        )


class ResponseProcessor:
    """Collapses the known provider envelopes into one canonical payload."""

    def __init__(self, payload_field: str = "flashcards", json_mode: bool = True) -> None:
        self._payload_field = payload_field
        self._json_mode = json_mode
        self._envelopes: tuple[DirectEnvelope | ContentEnvelope | ChoicesEnvelope, ...] = (
            DirectEnvelope(payload_field),
            ContentEnvelope(),
            ChoicesEnvelope(payload_field),
        )

    @property
    def payload_field(self) -> str:
        return self._payload_field

    def normalize(self, raw_response: Any) -> Any:
        """Extract the canonical payload from ``raw_response``.

        Envelopes are tried in order: direct payload, string ``content``, then
        ``choices``. The first one whose predicate matches produces the result.
        """
        if not isinstance(raw_response, Mapping):
            raise OpenRouterServiceError(
                ErrorKind.INVALID_RESPONSE_FORMAT,
                "Invalid API response format",
                details={"type": type(raw_response).__name__},
            )

        for envelope in self._envelopes:
            if envelope.matches(raw_response):
                return envelope.extract(raw_response, self._json_mode)

        if "content" in raw_response:
            raise OpenRouterServiceError(
                ErrorKind.MISSING_CONTENT,
                "Missing content in API response",
                details={"content_type": type(raw_response.get("content")).__name__},
            )

        raise OpenRouterServiceError(
            ErrorKind.MISSING_CHOICES,
            "No choices in API response",
            details={"keys": sorted(str(key) for key in raw_response)},
        )

    def is_completion_truncated(self, data: Any) -> tuple[bool, str | None, str | None]:
        """Inspect response metadata and determine if the completion was truncated."""
        if not isinstance(data, Mapping):
            return False, None, None
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            return False, None, None

        first = choices[0] if isinstance(choices[0], Mapping) else {}
        finish_reason = first.get("finish_reason")
        native_finish_reason = first.get("native_finish_reason")

        finish_reason_str = finish_reason if isinstance(finish_reason, str) else None
        native_reason_str = native_finish_reason if isinstance(native_finish_reason, str) else None

        truncated = False
        if finish_reason_str:
            truncated = finish_reason_str.lower() in {"length", "max_tokens"}

        if native_reason_str and not truncated:
            normalized_native = native_reason_str.replace("-", "_").lower()
            if any(term in normalized_native for term in ("max_token", "length")):
                truncated = True

        return truncated, finish_reason_str, native_reason_str

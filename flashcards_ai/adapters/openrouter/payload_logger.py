"""Payload logging for OpenRouter API requests and responses."""

from __future__ import annotations

import logging
from typing import Any

from flashcards_ai.core.logging_utils import truncate_log_content


class PayloadLogger:
    """Handles request and response payload logging for debugging."""

    def __init__(
        self,
        debug_payloads: bool = False,
        log_truncate_length: int = 1000,
        logger: logging.Logger | None = None,
    ) -> None:
        self._debug_payloads = debug_payloads
        self._log_truncate_length = log_truncate_length
        self._logger = logger or logging.getLogger(__name__)

    @property
    def debug_payloads(self) -> bool:
        return self._debug_payloads

    def log_request_payload(self, redacted_headers: dict[str, str], body: dict[str, Any]) -> None:
        """Log compact request preview when payload debugging is enabled.

        Callers must pass headers that already went through redaction.
        """
        if not self._debug_payloads:
            return

        messages = body.get("messages") or []
        rf = body.get("response_format")
        message_summaries = [
            {
                "role": msg.get("role", "?"),
                "len": len(str(msg.get("content", ""))),
                "preview": truncate_log_content(str(msg.get("content", "")), 120),
            }
            for msg in messages[:2]
        ]

        self._logger.debug(
            "openrouter_request_payload",
            extra={
                "headers": redacted_headers,
                "body_preview": {
                    "model": body.get("model"),
                    "temperature": body.get("temperature"),
                    "max_tokens": body.get("max_tokens"),
                    "response_format_type": rf.get("type") if isinstance(rf, dict) else None,
                    "sample_messages": message_summaries,
                },
            },
        )

    def log_response_payload(self, data: Any) -> None:
        """Log a compact response preview when payload debugging is enabled."""
        if not self._debug_payloads or not isinstance(data, dict):
            return

        content_preview = None
        finish_reason = None
        choices = data.get("choices")
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            first = choices[0]
            finish_reason = first.get("finish_reason")
            message = first.get("message")
            if isinstance(message, dict) and isinstance(message.get("content"), str):
                content_preview = truncate_log_content(
                    message["content"], self._log_truncate_length
                )
        elif isinstance(data.get("content"), str):
            content_preview = truncate_log_content(data["content"], self._log_truncate_length)

        self._logger.debug(
            "openrouter_response_payload",
            extra={
                "preview": {
                    "id": data.get("id"),
                    "model": data.get("model"),
                    "usage": data.get("usage"),
                    "finish_reason": finish_reason,
                    "content_preview": content_preview,
                }
            },
        )

    def log_request(self, *, model: str, attempt: int, total_chars: int) -> None:
        """Log concise request metadata for observability."""
        self._logger.debug(
            "openrouter_request",
            extra={"model": model, "attempt": attempt, "total_chars": total_chars},
        )

    def log_response(self, *, status: int, latency_ms: int, model: str, attempt: int) -> None:
        """Log concise response metadata for observability."""
        self._logger.debug(
            "openrouter_response",
            extra={
                "status": status,
                "latency_ms": latency_ms,
                "model": model,
                "attempt": attempt,
            },
        )

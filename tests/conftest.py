"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

TEST_API_KEY = "sk-or-test-key-0123456789"

Handler = Callable[[httpx.Request], httpx.Response]


class SleepRecorder:
    """Stand-in for ``asyncio.sleep`` that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class RecordingTransport:
    """Serves queued responses and keeps every request it received."""

    def __init__(self, *responses: httpx.Response | Exception | Handler) -> None:
        self._responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self._responses:
            msg = f"Unexpected request #{len(self.requests)} to {request.url}"
            raise AssertionError(msg)
        item = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(request)
        return item

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def json_body(self, index: int = -1) -> dict[str, Any]:
        return json.loads(self.requests[index].content)


def completion(content: Any, **extra: Any) -> dict[str, Any]:
    """Chat completion envelope with ``content`` as the first choice's message."""
    if not isinstance(content, str):
        content = json.dumps(content)
    choice: dict[str, Any] = {
        "index": 0,
        "message": {"role": "assistant", "content": content},
        "finish_reason": "stop",
    }
    return {
        "id": "gen-123",
        "model": "openai/gpt-4o-mini",
        "choices": [choice],
        "usage": {"prompt_tokens": 100, "completion_tokens": 50},
        **extra,
    }


SAMPLE_FLASHCARDS: dict[str, Any] = {
    "flashcards": [
        {"front": "What is the capital of France?", "back": "Paris"},
        {"front": "What is 2 + 2?", "back": "4"},
    ]
}


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_http_client() -> Callable[..., httpx.AsyncClient]:
    def _factory(transport: RecordingTransport) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(transport))

    return _factory


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Remove configuration variables that would leak in from the developer's shell."""
    for name in (
        "OPENROUTER_API_KEY",
        "OPENROUTER_MODEL",
        "OPENROUTER_HTTP_REFERER",
        "OPENROUTER_X_TITLE",
        "OPENROUTER_TIMEOUT_SEC",
        "OPENROUTER_MAX_ATTEMPTS",
        "OPENROUTER_RETRY_BASE_DELAY",
        "OPENROUTER_TEMPERATURE",
        "OPENROUTER_MAX_TOKENS",
        "OPENROUTER_TOP_P",
        "LOG_LEVEL",
        "LOG_FILE",
        "LOG_USE_LOGURU",
        "DEBUG_PAYLOADS",
        "LOG_TRUNCATE_LENGTH",
    ):
        # setenv first so variables written by the code under test are undone too
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch

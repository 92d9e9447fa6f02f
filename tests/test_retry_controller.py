"""Tests for HTTP error classification and the retry/backoff controller."""

from __future__ import annotations

import httpx
import pytest
from conftest import SleepRecorder

from flashcards_ai.adapters.openrouter.error_handler import (
    RetryController,
    get_error_message,
    raise_for_status,
)
from flashcards_ai.adapters.openrouter.exceptions import ErrorKind, OpenRouterServiceError
from flashcards_ai.core.backoff import linear_delay, sleep_backoff


def _api_error(status: int) -> OpenRouterServiceError:
    return OpenRouterServiceError(ErrorKind.API_ERROR, f"HTTP {status}", status_code=status)


class _Script:
    """Async callable that raises or returns the scripted outcomes in order."""

    def __init__(self, *outcomes: object) -> None:
        self._outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self) -> object:
        outcome = self._outcomes[min(self.calls, len(self._outcomes) - 1)]
        self.calls += 1
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class TestBackoff:
    @pytest.mark.parametrize(("attempt", "expected"), [(1, 1.0), (2, 2.0), (3, 3.0)])
    def test_linear_delay(self, attempt: int, expected: float) -> None:
        assert linear_delay(attempt) == expected

    def test_custom_base_delay(self) -> None:
        assert linear_delay(3, base_delay=0.5) == 1.5

    @pytest.mark.asyncio
    async def test_sleep_backoff_uses_injected_sleep(self, sleep_recorder: SleepRecorder) -> None:
        delay = await sleep_backoff(2, base_delay=1.5, sleep=sleep_recorder)

        assert delay == 3.0
        assert sleep_recorder.delays == [3.0]


class TestErrorMessages:
    def test_known_status(self) -> None:
        assert get_error_message(401, {}) == "Authentication failed"

    def test_payload_message_is_appended(self) -> None:
        data = {"error": {"message": "No credits"}}

        assert get_error_message(402, data) == "Insufficient account balance: No credits"

    def test_server_errors(self) -> None:
        assert get_error_message(500, None) == "Internal server error"
        assert get_error_message(503, {"error": "busy"}) == "HTTP 503 error: busy"

    def test_raise_for_status_success(self) -> None:
        raise_for_status(httpx.Response(200, json={}))

    def test_raise_for_status_carries_status_and_body(self) -> None:
        body = {"error": {"message": "Service down"}}

        with pytest.raises(OpenRouterServiceError) as exc_info:
            raise_for_status(httpx.Response(503, json=body))

        error = exc_info.value
        assert error.kind is ErrorKind.API_ERROR
        assert error.status_code == 503
        assert error.code == "API_ERROR_503"
        assert error.details == body
        assert error.message == "API request failed with status 503: HTTP 503 error: Service down"

    def test_raise_for_status_non_json_body(self) -> None:
        with pytest.raises(OpenRouterServiceError) as exc_info:
            raise_for_status(httpx.Response(502, text="<html>Bad gateway</html>"))

        assert exc_info.value.details == {}
        assert exc_info.value.is_server_error


class TestRetryController:
    @pytest.mark.asyncio
    async def test_success_on_first_attempt_does_not_sleep(
        self, sleep_recorder: SleepRecorder
    ) -> None:
        call = _Script("ok")
        controller = RetryController(sleep=sleep_recorder)

        assert await controller.run(call) == "ok"
        assert call.calls == 1
        assert sleep_recorder.delays == []

    @pytest.mark.asyncio
    async def test_recovers_after_server_errors(self, sleep_recorder: SleepRecorder) -> None:
        call = _Script(_api_error(500), _api_error(500), "ok")
        controller = RetryController(max_attempts=3, sleep=sleep_recorder)

        assert await controller.run(call) == "ok"
        assert call.calls == 3
        assert sleep_recorder.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_exhaustion_raises_max_retries_exceeded(
        self, sleep_recorder: SleepRecorder
    ) -> None:
        last = _api_error(503)
        call = _Script(_api_error(500), _api_error(502), last)
        controller = RetryController(max_attempts=3, sleep=sleep_recorder)

        with pytest.raises(OpenRouterServiceError) as exc_info:
            await controller.run(call)

        error = exc_info.value
        assert error.kind is ErrorKind.MAX_RETRIES_EXCEEDED
        assert error.__cause__ is last
        assert error.details["attempts"] == 3
        assert error.details["last_error_code"] == "API_ERROR_503"
        assert call.calls == 3
        assert sleep_recorder.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 401, 402, 404, 429])
    async def test_client_errors_are_terminal(
        self, sleep_recorder: SleepRecorder, status: int
    ) -> None:
        call = _Script(_api_error(status), "never")
        controller = RetryController(sleep=sleep_recorder)

        with pytest.raises(OpenRouterServiceError) as exc_info:
            await controller.run(call)

        assert exc_info.value.status_code == status
        assert call.calls == 1
        assert sleep_recorder.delays == []

    @pytest.mark.asyncio
    async def test_non_api_service_errors_are_terminal(self, sleep_recorder: SleepRecorder) -> None:
        call = _Script(OpenRouterServiceError(ErrorKind.MISSING_CONTENT, "empty"), "never")

        with pytest.raises(OpenRouterServiceError) as exc_info:
            await RetryController(sleep=sleep_recorder).run(call)

        assert exc_info.value.kind is ErrorKind.MISSING_CONTENT
        assert call.calls == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            httpx.ConnectError("connection refused"),
            httpx.ReadTimeout("timed out"),
            TimeoutError(),
            ConnectionResetError("reset"),
        ],
    )
    async def test_transport_errors_are_retried(
        self, sleep_recorder: SleepRecorder, error: Exception
    ) -> None:
        call = _Script(error, "ok")

        assert await RetryController(sleep=sleep_recorder).run(call) == "ok"
        assert call.calls == 2
        assert sleep_recorder.delays == [1.0]

    @pytest.mark.asyncio
    async def test_transport_exhaustion_chains_last_error(
        self, sleep_recorder: SleepRecorder
    ) -> None:
        error = httpx.ConnectError("connection refused")
        call = _Script(error)

        with pytest.raises(OpenRouterServiceError) as exc_info:
            await RetryController(max_attempts=2, sleep=sleep_recorder).run(call)

        assert exc_info.value.kind is ErrorKind.MAX_RETRIES_EXCEEDED
        assert exc_info.value.details["last_error_code"] == "ConnectError"
        assert exc_info.value.__cause__ is error
        assert call.calls == 2
        assert sleep_recorder.delays == [1.0]

    @pytest.mark.asyncio
    async def test_unexpected_exceptions_propagate(self, sleep_recorder: SleepRecorder) -> None:
        call = _Script(KeyError("bug"), "never")

        with pytest.raises(KeyError):
            await RetryController(sleep=sleep_recorder).run(call)

        assert call.calls == 1

    @pytest.mark.asyncio
    async def test_single_attempt_never_sleeps(self, sleep_recorder: SleepRecorder) -> None:
        call = _Script(_api_error(500))

        with pytest.raises(OpenRouterServiceError) as exc_info:
            await RetryController(max_attempts=1, sleep=sleep_recorder).run(call)

        assert exc_info.value.kind is ErrorKind.MAX_RETRIES_EXCEEDED
        assert sleep_recorder.delays == []

    @pytest.mark.parametrize(("attempts", "delay"), [(0, 1.0), (3, -1.0)])
    def test_rejects_invalid_arguments(self, attempts: int, delay: float) -> None:
        with pytest.raises(ValueError):
            RetryController(max_attempts=attempts, base_delay=delay)

    @pytest.mark.asyncio
    async def test_each_retry_is_logged(
        self, sleep_recorder: SleepRecorder, caplog: pytest.LogCaptureFixture
    ) -> None:
        call = _Script(_api_error(500), _api_error(500), "ok")

        with caplog.at_level("WARNING"):
            await RetryController(sleep=sleep_recorder).run(call)

        retries = [record for record in caplog.records if record.getMessage() == "openrouter_retry"]
        assert [record.attempt for record in retries] == [1, 2]
        assert [record.delay_sec for record in retries] == [1.0, 2.0]

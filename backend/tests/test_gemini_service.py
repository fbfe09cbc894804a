"""
StudioGen Backend - Gemini Service Unit Tests (Mocked)
========================================================

What:  Circuit breaker, error classification, response extraction and the
       retry / breaker wrapper around the google-genai client.
How:   The SDK client is replaced by a MagicMock; no network calls are made.

What we test:
    ✅ Circuit breaker state machine
    ✅ Transient vs permanent error classification
    ✅ Inline image → data URL, text extraction
    ✅ Transient failures retried, permanent ones not
    ✅ Open circuit fails fast without touching the client
"""

import base64
import time
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from google.genai import errors as genai_errors
from tenacity import wait_none

from studiogen.exceptions import CircuitBreakerOpenError, LLMServiceError
from studiogen.services.gemini_service import (
    CircuitBreaker,
    GeminiService,
    extract_image_data_url,
    extract_text,
    is_transient_error,
)
from studiogen.services.llm_base import ImageInput


def _image_response(data: bytes = b"\x89PNG fake", mime_type: str = "image/png"):
    part = SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type=mime_type), text=None)
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))])


def _text_response(*texts: str):
    parts = [SimpleNamespace(inline_data=None, text=text) for text in texts]
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=parts))])


def _service_with_client(generate_content: AsyncMock, threshold: int = 5) -> GeminiService:
    service = GeminiService()
    service.circuit_breaker = CircuitBreaker(failure_threshold=threshold, recovery_timeout=60)
    client = MagicMock()
    client.aio.models.generate_content = generate_content
    service._client = client
    return service


@pytest.fixture
def no_retry_wait():
    with patch.object(GeminiService._call_with_retry.retry, "wait", wait_none()):
        yield


class TestCircuitBreaker:
    def test_initial_state_is_closed(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        assert cb.state == CircuitBreaker.CLOSED
        assert cb.failure_count == 0

    def test_stays_closed_under_threshold(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        for _ in range(4):
            cb.record_failure()
        assert cb.state == CircuitBreaker.CLOSED
        assert cb.can_execute()

    def test_opens_at_threshold_and_rejects(self):
        cb = CircuitBreaker(failure_threshold=3, recovery_timeout=60)
        for _ in range(3):
            cb.record_failure()
        assert cb.state == CircuitBreaker.OPEN
        with pytest.raises(CircuitBreakerOpenError) as exc_info:
            cb.can_execute()
        assert 1 <= exc_info.value.recovery_time <= 60

    def test_half_open_after_recovery_timeout(self):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        cb.record_failure()
        time.sleep(0.01)
        assert cb.can_execute()
        assert cb.state == CircuitBreaker.HALF_OPEN

    def test_half_open_failure_reopens(self):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        cb.record_failure()
        cb.can_execute()
        cb.record_failure()
        assert cb.state == CircuitBreaker.OPEN

    def test_half_open_success_closes(self):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        cb.record_failure()
        cb.can_execute()
        cb.record_success()
        assert cb.state == CircuitBreaker.CLOSED
        assert cb.failure_count == 0


class TestErrorClassification:
    def test_network_errors_are_transient(self):
        assert is_transient_error(ConnectionError("reset"))
        assert is_transient_error(TimeoutError())
        assert is_transient_error(httpx.ConnectError("refused"))

    def test_server_and_rate_limit_errors_are_transient(self):
        overloaded = genai_errors.APIError(
            503, {"error": {"code": 503, "message": "overloaded", "status": "UNAVAILABLE"}}
        )
        throttled = genai_errors.APIError(
            429, {"error": {"code": 429, "message": "quota", "status": "RESOURCE_EXHAUSTED"}}
        )
        assert is_transient_error(overloaded)
        assert is_transient_error(throttled)

    def test_client_errors_are_permanent(self):
        bad_request = genai_errors.APIError(
            400, {"error": {"code": 400, "message": "bad", "status": "INVALID_ARGUMENT"}}
        )
        assert not is_transient_error(bad_request)
        assert not is_transient_error(ValueError("nope"))


class TestResponseExtraction:
    def test_inline_bytes_become_data_url(self):
        url = extract_image_data_url(_image_response(b"abc", "image/webp"))
        assert url == f"data:image/webp;base64,{base64.b64encode(b'abc').decode()}"

    def test_text_only_response_has_no_image(self):
        assert extract_image_data_url(_text_response("sorry")) is None

    def test_empty_candidates(self):
        assert extract_image_data_url(SimpleNamespace(candidates=[])) is None
        assert extract_text(SimpleNamespace(candidates=None)) is None

    def test_text_parts_are_joined(self):
        assert extract_text(_text_response("[{", '"id": "1"}]')) == '[{"id": "1"}]'


class TestGeminiService:
    @pytest.mark.asyncio
    async def test_generate_image_returns_data_url(self):
        generate = AsyncMock(return_value=_image_response(b"img"))
        service = _service_with_client(generate)

        result = await service.generate_image("remove it", ImageInput(data=b"in", mime_type="image/png"))

        assert result.startswith("data:image/png;base64,")
        kwargs = generate.call_args.kwargs
        assert kwargs["model"] == service.image_model
        assert kwargs["config"].response_modalities == ["IMAGE"]
        # image part first, prompt last
        assert len(kwargs["contents"]) == 2

    @pytest.mark.asyncio
    async def test_generate_text_uses_text_model(self):
        generate = AsyncMock(return_value=_text_response("hello"))
        service = _service_with_client(generate)

        result = await service.generate_text("describe", response_mime_type="application/json")

        assert result == "hello"
        kwargs = generate.call_args.kwargs
        assert kwargs["model"] == service.text_model
        assert kwargs["config"].response_mime_type == "application/json"

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self, no_retry_wait):
        generate = AsyncMock(side_effect=[ConnectionError("reset"), _image_response()])
        service = _service_with_client(generate)

        result = await service.generate_image("prompt")

        assert result is not None
        assert generate.await_count == 2
        assert service.circuit_breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_permanent_failure_is_not_retried(self, no_retry_wait):
        generate = AsyncMock(side_effect=ValueError("bad request"))
        service = _service_with_client(generate)

        with pytest.raises(LLMServiceError):
            await service.generate_image("prompt")

        assert generate.await_count == 1
        assert service.circuit_breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_open_circuit_fails_fast(self, no_retry_wait):
        generate = AsyncMock(side_effect=ConnectionError("reset"))
        service = _service_with_client(generate, threshold=1)

        with pytest.raises(LLMServiceError):
            await service.generate_image("prompt")
        with pytest.raises(CircuitBreakerOpenError):
            await service.generate_image("prompt")

        assert generate.await_count == 3
        assert service.circuit_state == CircuitBreaker.OPEN

    @pytest.mark.asyncio
    async def test_client_errors_do_not_open_circuit(self, no_retry_wait):
        bad_request = genai_errors.APIError(
            400, {"error": {"code": 400, "message": "bad", "status": "INVALID_ARGUMENT"}}
        )
        generate = AsyncMock(side_effect=bad_request)
        service = _service_with_client(generate, threshold=1)

        for _ in range(3):
            with pytest.raises(LLMServiceError) as exc_info:
                await service.generate_image("prompt")
            assert exc_info.value.retry_after is None

        assert generate.await_count == 3
        assert service.circuit_state == CircuitBreaker.CLOSED

    @pytest.mark.asyncio
    async def test_missing_api_key_is_reported(self):
        service = GeminiService()
        with patch("studiogen.services.gemini_service.settings.gemini_api_key", ""):
            with pytest.raises(LLMServiceError, match="not configured"):
                await service.generate_image("prompt")

    @pytest.mark.asyncio
    async def test_health_check_false_on_error(self):
        service = GeminiService()
        client = MagicMock()
        client.aio.models.get = AsyncMock(side_effect=ConnectionError("down"))
        service._client = client
        assert await service.health_check() is False

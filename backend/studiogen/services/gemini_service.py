"""
StudioGen Backend - Google Gemini Service Implementation
==========================================================

What:  Concrete ImageModelService using the google-genai async client for
       image generation/editing (gemini-2.5-flash-image) and short text
       analysis (gemini-2.5-flash).
How:   Builds multimodal contents (image part first, then the prompt), asks
       for IMAGE output where needed, and returns the first inline image as a
       data URL. Every call goes through a circuit breaker and tenacity retry.
Who:   Singleton used by GenerationService and the health endpoint.

Resilience Strategy:
    1. Tenacity retry with exponential backoff + jitter, transient errors only
       (connection failures, timeouts, HTTP 429 and 5xx from the API)
    2. Per-attempt timeout (GEMINI_TIMEOUT_SECONDS)
    3. Circuit breaker shared by all requests of the worker process
    4. Duration logging per call (never the payloads)
"""

import asyncio
import base64
import logging
import time
import uuid
from typing import Any, List, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from studiogen.config import settings
from studiogen.exceptions import CircuitBreakerOpenError, LLMServiceError
from studiogen.services.llm_base import ImageInput, ImageModelService

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker Implementation
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    Circuit breaker around the Gemini client.

    State Machine:
        CLOSED (normal operation)
            → On failure: increment failure_count
            → When failure_count >= threshold: transition to OPEN

        OPEN (rejecting all requests)
            → All calls raise CircuitBreakerOpenError immediately
            → After recovery_timeout seconds: transition to HALF_OPEN

        HALF_OPEN (testing recovery)
            → Allow the next request through
            → On success: transition to CLOSED (reset failure_count)
            → On failure: transition back to OPEN (reset timer)

    Not shared across processes: each uvicorn worker keeps its own state.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Check if a request is allowed through.

        Raises:
            CircuitBreakerOpenError if OPEN and the recovery timeout hasn't elapsed.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = time.monotonic() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info(
                    "Circuit breaker transitioning to HALF_OPEN after %.1fs",
                    elapsed,
                )
                self.state = self.HALF_OPEN
                return True
            remaining = max(1, int(self.recovery_timeout - elapsed))
            raise CircuitBreakerOpenError(recovery_time=remaining)

        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker transitioning to CLOSED (service recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.monotonic()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker returning to OPEN (test request failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


# ══════════════════════════════════════════════════════════════════════════
# Error classification
# ══════════════════════════════════════════════════════════════════════════

def is_transient_error(exc: BaseException) -> bool:
    """Errors worth retrying: network trouble, timeouts, rate limits, 5xx."""
    if isinstance(exc, (ConnectionError, TimeoutError, asyncio.TimeoutError, httpx.TransportError)):
        return True
    if isinstance(exc, genai_errors.APIError):
        code = getattr(exc, "code", None) or 0
        return code == 429 or code >= 500
    return False


def extract_image_data_url(response: Any) -> Optional[str]:
    """First inline image of the first candidate as a data URL, or None."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None
    content = candidates[0].content
    for part in (content.parts if content and content.parts else []):
        inline = part.inline_data
        if inline is None or not inline.data:
            continue
        data = inline.data
        encoded = data if isinstance(data, str) else base64.b64encode(data).decode("ascii")
        return f"data:{inline.mime_type or 'image/png'};base64,{encoded}"
    return None


def extract_text(response: Any) -> Optional[str]:
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None
    content = candidates[0].content
    parts = content.parts if content and content.parts else []
    text = "".join(part.text for part in parts if getattr(part, "text", None))
    return text.strip() or None


# ══════════════════════════════════════════════════════════════════════════
# Gemini Service
# ══════════════════════════════════════════════════════════════════════════

class GeminiService(ImageModelService):
    """
    Google Gemini implementation of ImageModelService.

    Error Handling Chain:
        API call fails → tenacity retries transient errors (backoff + jitter)
        → retries exhausted or non-transient error → record breaker failure
        → LLMServiceError (503) to the caller
        → threshold reached → later calls rejected instantly (OPEN)
        → recovery timeout → one trial call (HALF_OPEN)
    """

    def __init__(self):
        self._client: Optional[genai.Client] = None
        self.image_model = settings.gemini_image_model
        self.text_model = settings.gemini_text_model
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )
        logger.info(
            "GeminiService initialized with image_model=%s, text_model=%s, "
            "circuit_breaker(threshold=%d, recovery=%ds)",
            self.image_model,
            self.text_model,
            settings.cb_failure_threshold,
            settings.cb_recovery_timeout,
        )

    @property
    def client(self) -> genai.Client:
        """Created on first use; the SDK refuses to build a client without a key."""
        if self._client is None:
            if not settings.gemini_api_key:
                raise LLMServiceError(message="AI image service is not configured")
            self._client = genai.Client(api_key=settings.gemini_api_key)
        return self._client

    @property
    def circuit_state(self) -> str:
        return self.circuit_breaker.state

    # ── Public API ────────────────────────────────────────────────────────
    async def generate_image(self, prompt: str, image: Optional[ImageInput] = None) -> Optional[str]:
        response = await self._generate(
            model=self.image_model,
            contents=self._build_contents(prompt, image),
            config=types.GenerateContentConfig(response_modalities=["IMAGE"]),
            operation="generate_image",
        )
        return extract_image_data_url(response)

    async def generate_text(
        self,
        prompt: str,
        image: Optional[ImageInput] = None,
        response_mime_type: Optional[str] = None,
    ) -> Optional[str]:
        config = None
        if response_mime_type:
            config = types.GenerateContentConfig(response_mime_type=response_mime_type)
        response = await self._generate(
            model=self.text_model,
            contents=self._build_contents(prompt, image),
            config=config,
            operation="generate_text",
        )
        return extract_text(response)

    async def health_check(self) -> bool:
        """Fetches the configured model's metadata (no generation quota used)."""
        try:
            await asyncio.wait_for(
                self.client.aio.models.get(model=self.image_model),
                timeout=10,
            )
            return True
        except Exception as e:
            logger.warning("Gemini health check failed: %s", e)
            return False

    # ── Internals ─────────────────────────────────────────────────────────
    @staticmethod
    def _build_contents(prompt: str, image: Optional[ImageInput]) -> List[types.Part]:
        parts: List[types.Part] = []
        if image is not None:
            parts.append(types.Part.from_bytes(data=image.data, mime_type=image.mime_type))
        parts.append(types.Part.from_text(text=prompt))
        return parts

    async def _generate(
        self,
        model: str,
        contents: List[types.Part],
        config: Optional[types.GenerateContentConfig],
        operation: str,
    ) -> Any:
        """
        Circuit breaker + retry wrapper around one generate_content call.

        Raises:
            CircuitBreakerOpenError: circuit is open
            LLMServiceError: the call failed after all retry attempts
        """
        call_id = uuid.uuid4().hex[:8]
        client = self.client
        self.circuit_breaker.can_execute()

        logger.info("[%s] Starting Gemini %s (model=%s)", call_id, operation, model)
        try:
            response = await self._call_with_retry(client, model, contents, config, call_id)
        except Exception as e:
            # Rejected requests say nothing about the upstream health
            if is_transient_error(e):
                self.circuit_breaker.record_failure()
            logger.error(
                "[%s] Gemini %s failed: %s: %s",
                call_id,
                operation,
                type(e).__name__,
                e,
            )
            raise LLMServiceError(
                message="AI image service is temporarily unavailable. Please try again later.",
                retry_after=settings.retry_max_wait if is_transient_error(e) else None,
                context={"call_id": call_id, "error_type": type(e).__name__},
            )

        self.circuit_breaker.record_success()
        return response

    @retry(
        retry=retry_if_exception(is_transient_error),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _call_with_retry(
        self,
        client: genai.Client,
        model: str,
        contents: List[types.Part],
        config: Optional[types.GenerateContentConfig],
        call_id: str,
    ) -> Any:
        """
        One attempt at the API call; tenacity re-invokes it on transient errors.

        Kept separate from _generate so the circuit breaker check is not retried.
        """
        start_time = time.monotonic()
        try:
            response = await asyncio.wait_for(
                client.aio.models.generate_content(
                    model=model,
                    contents=contents,
                    config=config,
                ),
                timeout=settings.gemini_timeout_seconds,
            )
        except Exception as e:
            logger.warning(
                "[%s] Gemini API call failed after %.0fms: %s",
                call_id,
                (time.monotonic() - start_time) * 1000,
                e,
            )
            raise

        logger.info(
            "[%s] Gemini call completed in %.0fms",
            call_id,
            (time.monotonic() - start_time) * 1000,
        )
        return response


# ── Singleton Instance ────────────────────────────────────────────────────
# Shared so the circuit breaker state spans all requests
gemini_service = GeminiService()

"""
OCR Bridge

Recognizes text in images and scanned PDFs using the Claude Vision API.

Used twice by the pipeline:
- directly for JPG/PNG uploads
- as the fallback for PDFs whose embedded text is near-empty (scanned PDFs)

Key behaviors:
- Large images are downscaled with Pillow before upload
- Token budget is checked before every API call
- Rate-limited / overloaded responses are retried (3 attempts total)
- Billing / quota exhaustion is never retried and surfaces as OcrQuotaExceeded
- Calls go through the OCR circuit breaker
"""

import asyncio
import base64
import io
from typing import Awaitable, Callable, Optional

import anthropic
import pybreaker
import structlog
from PIL import Image

from contractlens.config import settings
from contractlens.services.cost_control import TokenBudgetTracker
from contractlens.services.extraction.detector import PDF_MIME_TYPE
from contractlens.services.extraction.errors import (
    OcrQuotaExceeded,
    OcrServiceUnavailable,
)
from contractlens.services.monitoring.circuit_breakers import get_ocr_breaker
from contractlens.services.retry import RetryExhausted, retry_with_backoff


logger = structlog.get_logger(__name__)


OCR_PROMPT = """Extract all text from this contract document accurately.

Rules:
- Transcribe the text exactly as written, in reading order
- Keep headings, clause numbers and list numbering on their own lines
- Do not summarize, translate or comment
- If no text is visible, return an empty response"""

# Status codes that mean "try again shortly"
TRANSIENT_STATUS_CODES = {429, 500, 502, 503, 504, 529}


def _error_type(exc: anthropic.APIStatusError) -> Optional[str]:
    body = exc.body if isinstance(exc.body, dict) else {}
    error = body.get("error")
    if isinstance(error, dict):
        return error.get("type")
    return body.get("type")


def is_quota_error(exc: BaseException) -> bool:
    """True for billing / credit exhaustion; these are never retried."""
    if not isinstance(exc, anthropic.APIStatusError):
        return False
    if exc.status_code == 402 or _error_type(exc) == "billing_error":
        return True
    return "credit balance" in str(exc).lower()


def is_transient_ocr_error(exc: BaseException) -> bool:
    """True for rate-limited, overloaded or dropped-connection failures."""
    if is_quota_error(exc):
        return False
    if isinstance(exc, anthropic.APIConnectionError):
        return True
    if isinstance(exc, anthropic.APIStatusError):
        return exc.status_code in TRANSIENT_STATUS_CODES
    return False


class OcrBridge:
    """
    Claude Vision OCR with retry, budget and circuit-breaker handling.

    Usage:
        bridge = OcrBridge(token_budget=TokenBudgetTracker())
        text = await bridge.recognize(image_bytes, "image/png")
    """

    def __init__(
        self,
        token_budget: Optional[TokenBudgetTracker] = None,
        claude_client: Optional[anthropic.Anthropic] = None,
        breaker: Optional[pybreaker.CircuitBreaker] = None,
        max_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        jitter_seconds: Optional[float] = None,
        max_image_size_kb: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize OCR bridge.

        Args:
            token_budget: Budget for this extraction (fresh tracker if not provided)
            claude_client: Optional Anthropic client (created lazily if not provided)
            breaker: Circuit breaker (shared OCR breaker if not provided)
            max_attempts: Total attempts on transient failures (default 3)
            backoff_seconds: Delay between attempts (default 1s)
            jitter_seconds: Random extra delay per attempt (default 0.25s)
            max_image_size_kb: Images above this are downscaled before upload
            sleep: Awaitable sleep used between attempts
        """
        self.token_budget = token_budget or TokenBudgetTracker()
        self._claude_client = claude_client
        self._breaker = breaker
        self.max_attempts = max_attempts or settings.ocr_max_attempts
        self.backoff_seconds = (
            settings.ocr_backoff_seconds if backoff_seconds is None else backoff_seconds
        )
        self.jitter_seconds = (
            settings.ocr_backoff_jitter_seconds if jitter_seconds is None else jitter_seconds
        )
        self.max_image_size_kb = max_image_size_kb or settings.ocr_max_image_size_kb
        self._sleep = sleep

    @property
    def claude_client(self) -> anthropic.Anthropic:
        """Lazy-initialize Claude client on first use."""
        if self._claude_client is None:
            self._claude_client = anthropic.Anthropic(
                api_key=settings.anthropic_api_key,
                max_retries=0,  # retries are handled here
            )
        return self._claude_client

    @property
    def breaker(self) -> pybreaker.CircuitBreaker:
        if self._breaker is None:
            self._breaker = get_ocr_breaker()
        return self._breaker

    async def recognize(self, data: bytes, mime_type: str, estimated_pages: int = 1) -> str:
        """
        Recognize all text in an image or PDF.

        Args:
            data: Raw file bytes
            mime_type: image/jpeg, image/png, image/gif, image/webp or application/pdf
            estimated_pages: Page count used for the token estimate

        Returns:
            Recognized text (may be empty if nothing legible was found)

        Raises:
            OcrQuotaExceeded: Billing quota or extraction token budget exhausted
            OcrServiceUnavailable: Transient failures exhausted the retries,
                                   the circuit is open, or a non-transient API error
        """
        log = logger.bind(mime_type=mime_type, size_bytes=len(data))

        estimated_tokens = self.token_budget.estimate_pages(estimated_pages)
        if not self.token_budget.fits_pages(estimated_pages):
            raise OcrQuotaExceeded(
                "This document needs more text recognition than your plan allows. "
                "Upgrade your plan to continue."
            )

        if mime_type != PDF_MIME_TYPE:
            data, mime_type = self._shrink_image(data, mime_type, log)

        content_block = self._content_block(data, mime_type)
        attempts = 0

        async def call_claude():
            nonlocal attempts
            attempts += 1
            return await asyncio.to_thread(self.breaker.call, self._create_message, content_block)

        log.info("calling_claude_vision", estimated_tokens=estimated_tokens)

        try:
            message = await retry_with_backoff(
                call_claude,
                max_attempts=self.max_attempts,
                is_retryable=is_transient_ocr_error,
                backoff_seconds=self.backoff_seconds,
                jitter_seconds=self.jitter_seconds,
                sleep=self._sleep,
                operation_name="claude_ocr",
            )
        except RetryExhausted as e:
            log.error("ocr_retries_exhausted", attempts=e.attempts, error=str(e.last_exception))
            raise OcrServiceUnavailable(attempts=e.attempts) from e.last_exception
        except pybreaker.CircuitBreakerError as e:
            log.error("ocr_circuit_open", attempts=attempts)
            raise OcrServiceUnavailable(attempts=attempts) from e
        except anthropic.APIError as e:
            if is_quota_error(e):
                log.warning("ocr_quota_exceeded", error=str(e))
                raise OcrQuotaExceeded() from e
            log.error("ocr_request_failed", error=str(e), error_type=type(e).__name__)
            raise OcrServiceUnavailable(attempts=attempts) from e

        self.token_budget.add_usage(
            message.usage.input_tokens, message.usage.output_tokens
        )

        text = "".join(
            block.text for block in message.content if getattr(block, "type", None) == "text"
        )
        log.info(
            "claude_vision_response",
            attempts=attempts,
            input_tokens=message.usage.input_tokens,
            output_tokens=message.usage.output_tokens,
            text_length=len(text),
        )
        return text

    def _create_message(self, content_block: dict):
        return self.claude_client.messages.create(
            model=settings.anthropic_model,
            max_tokens=settings.ocr_max_tokens,
            messages=[
                {
                    "role": "user",
                    "content": [
                        content_block,
                        {"type": "text", "text": OCR_PROMPT},
                    ],
                }
            ],
        )

    @staticmethod
    def _content_block(data: bytes, mime_type: str) -> dict:
        encoded = base64.standard_b64encode(data).decode("utf-8")
        block_type = "document" if mime_type == PDF_MIME_TYPE else "image"
        return {
            "type": block_type,
            "source": {
                "type": "base64",
                "media_type": mime_type,
                "data": encoded,
            },
        }

    def _shrink_image(self, data: bytes, mime_type: str, log) -> tuple:
        """
        Downscale large images to max 1500px on the longest side.

        Returns the bytes to send and their media type. PNG stays PNG; other
        formats are re-encoded as JPEG. Images under the size limit, and
        images Pillow cannot decode, are returned unchanged.
        """
        size_kb = len(data) / 1024
        if size_kb <= self.max_image_size_kb:
            return data, mime_type

        try:
            with Image.open(io.BytesIO(data)) as img:
                max_size = 1500
                ratio = min(max_size / img.width, max_size / img.height)
                if ratio >= 1:
                    return data, mime_type

                new_size = (int(img.width * ratio), int(img.height * ratio))
                resized = img.resize(new_size, Image.LANCZOS)

                buffer = io.BytesIO()
                if mime_type == "image/png":
                    resized.save(buffer, format="PNG")
                else:
                    resized.convert("RGB").save(buffer, format="JPEG", quality=85)
                    mime_type = "image/jpeg"
        except OSError as e:
            log.warning("image_resize_failed", error=str(e))
            return data, mime_type

        log.info(
            "image_resized",
            original_size_kb=round(size_kb, 1),
            resized_size_kb=round(buffer.tell() / 1024, 1),
            new_size=new_size,
        )
        return buffer.getvalue(), mime_type


__all__ = [
    "OcrBridge",
    "OCR_PROMPT",
    "is_quota_error",
    "is_transient_ocr_error",
]

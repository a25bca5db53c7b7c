"""
Tests for OcrBridge (Claude Vision OCR)

Tests cover:
- Retry on rate-limited / overloaded responses (3 attempts total)
- Quota exhaustion fails immediately without retries
- Non-transient API errors are not retried
- Token budget and circuit breaker short-circuits
- Only service-side failures count toward opening the circuit
- Request shape for images vs PDFs, image downscaling
"""

import asyncio
import base64
import io
from types import SimpleNamespace
from unittest.mock import AsyncMock

import anthropic
import httpx
import pybreaker
import pytest
from PIL import Image

from contractlens.services.cost_control import TokenBudgetTracker
from contractlens.services.extraction.errors import OcrQuotaExceeded, OcrServiceUnavailable
from contractlens.services.extraction.ocr_bridge import (
    OcrBridge,
    is_quota_error,
    is_transient_ocr_error,
)
from contractlens.services.monitoring.circuit_breakers import create_ocr_breaker, is_caller_error


def _status_error(cls, status, body=None):
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    response = httpx.Response(status, request=request)
    return cls(message=f"HTTP {status}", response=response, body=body)


def rate_limited():
    return _status_error(anthropic.RateLimitError, 429)


def overloaded():
    return _status_error(
        anthropic.InternalServerError, 529,
        body={"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}},
    )


def billing_exhausted():
    return _status_error(
        anthropic.APIStatusError, 402,
        body={"type": "error", "error": {"type": "billing_error", "message": "Quota exhausted"}},
    )


def bad_request():
    return _status_error(
        anthropic.BadRequestError, 400,
        body={"type": "error", "error": {"type": "invalid_request_error", "message": "Bad image"}},
    )


def claude_message(text):
    return SimpleNamespace(
        content=[SimpleNamespace(type="text", text=text)],
        usage=SimpleNamespace(input_tokens=1200, output_tokens=300),
    )


class FakeMessages:
    """Returns or raises queued outcomes, one per create() call."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def make_bridge(outcomes, **kwargs):
    messages = FakeMessages(outcomes)
    kwargs.setdefault("breaker", pybreaker.CircuitBreaker(fail_max=100))
    kwargs.setdefault("sleep", AsyncMock())
    bridge = OcrBridge(
        claude_client=SimpleNamespace(messages=messages),
        **kwargs,
    )
    return bridge, messages


def recognize(bridge, data=b"\x89PNG fake", mime_type="image/png", **kwargs):
    return asyncio.run(bridge.recognize(data, mime_type, **kwargs))


class TestErrorClassification:

    def test_rate_limit_is_transient(self):
        assert is_transient_ocr_error(rate_limited())

    def test_overloaded_is_transient(self):
        assert is_transient_ocr_error(overloaded())

    def test_connection_error_is_transient(self):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        assert is_transient_ocr_error(anthropic.APIConnectionError(request=request))

    def test_billing_is_quota_not_transient(self):
        error = billing_exhausted()
        assert is_quota_error(error)
        assert not is_transient_ocr_error(error)

    def test_low_credit_balance_is_quota(self):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        error = anthropic.BadRequestError(
            message="Your credit balance is too low to access the Anthropic API.",
            response=httpx.Response(400, request=request),
            body=None,
        )
        assert is_quota_error(error)

    def test_bad_request_is_neither(self):
        error = bad_request()
        assert not is_quota_error(error)
        assert not is_transient_ocr_error(error)

    def test_plain_exception_is_neither(self):
        assert not is_transient_ocr_error(ValueError("x"))
        assert not is_quota_error(ValueError("x"))


class TestRecognizeRetries:

    def test_success_after_two_transient_failures(self):
        bridge, messages = make_bridge([rate_limited(), overloaded(), claude_message("ARTICLE 1")])

        assert recognize(bridge) == "ARTICLE 1"
        assert len(messages.calls) == 3
        assert bridge._sleep.await_count == 2

    def test_transient_failures_exhaust_retries(self):
        bridge, messages = make_bridge([rate_limited(), rate_limited(), rate_limited()])

        with pytest.raises(OcrServiceUnavailable) as excinfo:
            recognize(bridge)

        assert len(messages.calls) == 3
        assert excinfo.value.attempts == 3
        assert isinstance(excinfo.value.__cause__, anthropic.RateLimitError)

    def test_quota_fails_on_first_attempt(self):
        bridge, messages = make_bridge([billing_exhausted(), claude_message("never")])

        with pytest.raises(OcrQuotaExceeded):
            recognize(bridge)

        assert len(messages.calls) == 1
        bridge._sleep.assert_not_awaited()

    def test_non_transient_error_not_retried(self):
        bridge, messages = make_bridge([bad_request(), claude_message("never")])

        with pytest.raises(OcrServiceUnavailable) as excinfo:
            recognize(bridge)

        assert len(messages.calls) == 1
        assert excinfo.value.attempts == 1


class TestRecognizeGuards:

    def test_token_budget_exhausted_is_quota(self):
        bridge, messages = make_bridge(
            [claude_message("never")],
            token_budget=TokenBudgetTracker(max_tokens=1000),
        )

        with pytest.raises(OcrQuotaExceeded):
            recognize(bridge)

        assert messages.calls == []

    def test_usage_recorded(self):
        budget = TokenBudgetTracker(max_tokens=100000)
        bridge, _ = make_bridge([claude_message("text")], token_budget=budget)

        recognize(bridge)

        assert budget.used_tokens == 1500

    def test_open_circuit_fails_fast(self):
        breaker = pybreaker.CircuitBreaker(fail_max=100)
        breaker.open()
        bridge, messages = make_bridge([claude_message("never")], breaker=breaker)

        with pytest.raises(OcrServiceUnavailable):
            recognize(bridge)

        assert messages.calls == []

    def test_empty_response_is_empty_text(self):
        message = SimpleNamespace(content=[], usage=SimpleNamespace(input_tokens=10, output_tokens=0))
        bridge, _ = make_bridge([message])
        assert recognize(bridge) == ""


class TestRequestShape:

    def test_image_block(self):
        bridge, messages = make_bridge([claude_message("text")])

        recognize(bridge, data=b"jpeg-bytes", mime_type="image/jpeg")

        block = messages.calls[0]["messages"][0]["content"][0]
        assert block["type"] == "image"
        assert block["source"]["media_type"] == "image/jpeg"
        assert base64.b64decode(block["source"]["data"]) == b"jpeg-bytes"

    def test_pdf_document_block(self):
        bridge, messages = make_bridge([claude_message("text")])

        recognize(bridge, data=b"%PDF-1.7 scanned", mime_type="application/pdf")

        block = messages.calls[0]["messages"][0]["content"][0]
        assert block["type"] == "document"
        assert block["source"]["media_type"] == "application/pdf"

    def test_large_image_downscaled(self):
        buffer = io.BytesIO()
        Image.new("RGB", (3000, 2000), color=(200, 200, 200)).save(buffer, format="PNG")
        bridge, messages = make_bridge([claude_message("text")], max_image_size_kb=1)

        recognize(bridge, data=buffer.getvalue(), mime_type="image/png")

        sent = base64.b64decode(messages.calls[0]["messages"][0]["content"][0]["source"]["data"])
        with Image.open(io.BytesIO(sent)) as img:
            assert img.size == (1500, 1000)

    def test_small_image_untouched(self):
        bridge, messages = make_bridge([claude_message("text")])

        recognize(bridge, data=b"tiny", mime_type="image/png")

        sent = base64.b64decode(messages.calls[0]["messages"][0]["content"][0]["source"]["data"])
        assert sent == b"tiny"

    def test_large_gif_reencoded_as_jpeg(self):
        buffer = io.BytesIO()
        Image.effect_noise((3000, 2000), 64).save(buffer, format="GIF")
        bridge, messages = make_bridge([claude_message("text")], max_image_size_kb=1)

        recognize(bridge, data=buffer.getvalue(), mime_type="image/gif")

        source = messages.calls[0]["messages"][0]["content"][0]["source"]
        assert source["media_type"] == "image/jpeg"
        with Image.open(io.BytesIO(base64.b64decode(source["data"]))) as img:
            assert img.format == "JPEG"
            assert img.size == (1500, 1000)


class TestCircuitBreaker:
    """OCR breaker built the way the service builds it."""

    def test_caller_errors_are_excluded(self):
        assert is_caller_error(billing_exhausted())
        assert is_caller_error(bad_request())
        assert not is_caller_error(rate_limited())
        assert not is_caller_error(overloaded())
        assert not is_caller_error(ValueError("x"))

    def test_repeated_quota_errors_stay_quota(self):
        breaker = create_ocr_breaker(fail_max=5)
        bridge, messages = make_bridge([billing_exhausted() for _ in range(7)], breaker=breaker)

        for _ in range(7):
            with pytest.raises(OcrQuotaExceeded):
                recognize(bridge)

        assert len(messages.calls) == 7
        assert breaker.current_state == "closed"
        assert breaker.fail_counter == 0

    def test_repeated_bad_requests_do_not_open(self):
        breaker = create_ocr_breaker(fail_max=5)
        bridge, messages = make_bridge([bad_request() for _ in range(6)], breaker=breaker)

        for _ in range(6):
            with pytest.raises(OcrServiceUnavailable):
                recognize(bridge)

        assert len(messages.calls) == 6
        assert breaker.current_state == "closed"

    def test_overloaded_service_opens_circuit(self):
        breaker = create_ocr_breaker(fail_max=5)
        bridge, messages = make_bridge([overloaded() for _ in range(9)], breaker=breaker)

        for _ in range(3):
            with pytest.raises(OcrServiceUnavailable):
                recognize(bridge)

        # 3 attempts, then 2 more before the fifth failure trips the breaker
        assert len(messages.calls) == 5
        assert breaker.current_state == "open"

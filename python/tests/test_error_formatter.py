"""Tests for user-facing error formatting.

Hygiene properties checked over a spread of inputs:
- message is never empty, never a bare status code, never over 200 chars
- message never echoes raw vendor text or "[object Object]"
- a suggestion, when present, contains an action word and is <= 150 chars
"""

import re

import httpx
import pytest

from mentormind.client.error_formatter import (
    ACTION_WORDS,
    DEFAULT_ERROR,
    ERROR_PATTERNS,
    MAX_MESSAGE_LENGTH,
    MAX_SUGGESTION_LENGTH,
    format_error,
    is_retryable_error,
)
from mentormind.services.llm.errors import ErrorKind, ProviderError

HYGIENE_INPUTS = [
    "",
    "500",
    "401",
    "[object Object]",
    "Error: 429 Too Many Requests",
    "x" * 5000,
    '{"error": {"type": "overloaded_error", "message": "Overloaded"}}',
    "Traceback (most recent call last):\n  File 'x.py', line 1",
    "fetch failed",
    "The operation was aborted",
    "insufficient_coins",
    "something nobody anticipated",
    {"error": "rate limit exceeded", "code": 429, "isRetryable": True},
    {"error": "credential invalid", "code": 401, "isRetryable": False},
    {"message": "weird", "code": 418},
    {"error": {"nested": True}},
    {},
    None,
    42,
    ValueError("boom"),
    RuntimeError(""),
    ProviderError(ErrorKind.NETWORK_INTERRUPTED),
    ProviderError(ErrorKind.UNRECOGNIZED, status_code=500),
    httpx.ConnectError("connection refused"),
]


class TestHygiene:
    @pytest.mark.parametrize("raw", HYGIENE_INPUTS)
    def test_message_hygiene(self, raw):
        formatted = format_error(raw)

        assert formatted.message
        assert not re.fullmatch(r"\s*\d{3}\s*", formatted.message)
        assert "[object Object]" not in formatted.message
        assert len(formatted.message) <= MAX_MESSAGE_LENGTH

    @pytest.mark.parametrize("raw", HYGIENE_INPUTS)
    def test_suggestion_hygiene(self, raw):
        formatted = format_error(raw)

        if formatted.suggestion is not None:
            lowered = formatted.suggestion.lower()
            assert any(word in lowered for word in ACTION_WORDS)
            assert len(formatted.suggestion) <= MAX_SUGGESTION_LENGTH

    @pytest.mark.parametrize("pattern", ERROR_PATTERNS, ids=lambda p: p.name)
    def test_every_pattern_is_hygienic(self, pattern):
        assert len(pattern.message) <= MAX_MESSAGE_LENGTH
        assert any(word in pattern.suggestion.lower() for word in ACTION_WORDS)
        assert len(pattern.suggestion) <= MAX_SUGGESTION_LENGTH

    def test_vendor_text_is_never_echoed(self):
        formatted = format_error("Internal error: sk-secret-value leaked in upstream trace")
        assert "sk-secret-value" not in formatted.message


class TestClassification:
    @pytest.mark.parametrize(
        "raw,expected_message,retryable",
        [
            ({"error": "x", "code": 401}, "Unable to authenticate with the AI service.", False),
            ({"error": "x", "code": 429}, "You've made too many requests.", True),
            ({"error": "x", "code": 503}, "The AI service is temporarily unavailable.", True),
            ({"error": "x", "code": 400}, "Unable to process your request.", True),
            ({"error": "x", "code": 502}, "Something went wrong on our end.", True),
        ],
    )
    def test_code_wins(self, raw, expected_message, retryable):
        formatted = format_error(raw)
        assert formatted.message == expected_message
        assert formatted.is_retryable is retryable

    def test_code_beats_contradicting_text(self):
        formatted = format_error({"error": "rate limit exceeded", "code": 401})
        assert formatted.message == "Unable to authenticate with the AI service."

    @pytest.mark.parametrize(
        "text,name",
        [
            ("Invalid API key provided", "auth"),
            ("RATE LIMIT hit", "rate_limit"),
            ("server is overloaded", "unavailable"),
            ("network error while reading", "network"),
            ("request timed out", "network"),
            ("Not enough coins", "coins"),
            ("user aborted the request", "cancelled"),
            ("malformed payload", "bad_request"),
            ("internal server error", "server"),
        ],
    )
    def test_text_patterns(self, text, name):
        expected = next(p for p in ERROR_PATTERNS if p.name == name)
        assert format_error(text).message == expected.message

    def test_network_interrupted_event(self):
        formatted = format_error(
            {"error": "network connection interrupted", "isRetryable": True}
        )
        assert formatted.message == "Connection to the AI service was interrupted."
        assert formatted.is_retryable is True

    def test_provider_error_kind(self):
        formatted = format_error(ProviderError(ErrorKind.NETWORK_INTERRUPTED))
        assert formatted.message == "Connection to the AI service was interrupted."

    def test_cancelled_is_not_retryable(self):
        assert is_retryable_error(ProviderError(ErrorKind.CANCELLED)) is False

    def test_transport_error_is_network(self):
        formatted = format_error(httpx.ReadTimeout("read timed out"))
        assert formatted.message == "Connection to the AI service was interrupted."

    def test_http_status_error_uses_status(self):
        request = httpx.Request("POST", "http://test/ai-helper")
        response = httpx.Response(503, request=request)
        exc = httpx.HTTPStatusError("503", request=request, response=response)

        assert format_error(exc).message == "The AI service is temporarily unavailable."

    def test_unknown_falls_back_to_default(self):
        assert format_error("something nobody anticipated") == DEFAULT_ERROR

    def test_to_dict(self):
        out = format_error({"error": "x", "code": 429}).to_dict()
        assert out == {
            "message": "You've made too many requests.",
            "isRetryable": True,
            "suggestion": "Please wait a moment before trying again.",
        }

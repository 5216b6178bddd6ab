"""User-facing error formatting for the chat client.

Turns anything that went wrong during a chat turn (a wire `error` event, a
transport exception, a plain string) into a FormattedError:

- message: short, friendly, never raw vendor text, never a bare status code
- suggestion: one actionable next step (contains an action word)
- is_retryable: whether offering "retry" makes sense

Status codes win over text. Text is matched case-insensitively against an
ordered pattern table; the first hit wins.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import httpx

from mentormind.services.llm.errors import ErrorKind, ProviderError

MAX_MESSAGE_LENGTH = 200
MAX_SUGGESTION_LENGTH = 150

ACTION_WORDS = (
    "try",
    "check",
    "wait",
    "contact",
    "please",
    "start",
    "send",
    "rephrase",
    "verify",
)


@dataclass(frozen=True)
class FormattedError:
    message: str
    is_retryable: bool
    suggestion: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"message": self.message, "isRetryable": self.is_retryable}
        if self.suggestion:
            out["suggestion"] = self.suggestion
        return out


@dataclass(frozen=True)
class ErrorPattern:
    name: str
    patterns: tuple[str | re.Pattern[str], ...]
    message: str
    suggestion: str
    is_retryable: bool

    def matches(self, text: str) -> bool:
        for pattern in self.patterns:
            if isinstance(pattern, str):
                if pattern in text:
                    return True
            elif pattern.search(text):
                return True
        return False

    def formatted(self) -> FormattedError:
        return FormattedError(
            message=self.message, suggestion=self.suggestion, is_retryable=self.is_retryable
        )


ERROR_PATTERNS: tuple[ErrorPattern, ...] = (
    ErrorPattern(
        name="auth",
        patterns=(
            "401",
            "unauthorized",
            "invalid api key",
            "authentication",
            "api key is invalid",
            re.compile(r"api.?key.*missing"),
            re.compile(r"invalid.*key"),
        ),
        message="Unable to authenticate with the AI service.",
        suggestion="Please check your API key configuration in settings.",
        is_retryable=False,
    ),
    ErrorPattern(
        name="rate_limit",
        patterns=(
            "429",
            "rate limit",
            "too many requests",
            "quota exceeded",
            re.compile(r"rate.?limit"),
            re.compile(r"too.?many"),
        ),
        message="You've made too many requests.",
        suggestion="Please wait a moment before trying again.",
        is_retryable=True,
    ),
    ErrorPattern(
        name="unavailable",
        patterns=(
            "503",
            "service unavailable",
            "overloaded",
            "temporarily unavailable",
            re.compile(r"service.*unavailable"),
            re.compile(r"server.*overloaded"),
        ),
        message="The AI service is temporarily unavailable.",
        suggestion="Please try again in a few moments.",
        is_retryable=True,
    ),
    ErrorPattern(
        name="network",
        patterns=(
            "network",
            "connection",
            "timeout",
            "fetch failed",
            "failed to fetch",
            re.compile(r"network.*error"),
            re.compile(r"connection.*refused"),
            re.compile(r"timed?.?out"),
        ),
        message="Connection to the AI service was interrupted.",
        suggestion="Please check your internet connection and try again.",
        is_retryable=True,
    ),
    ErrorPattern(
        name="coins",
        patterns=(
            "insufficient_coins",
            "not enough coins",
            "coin shortage",
            re.compile(r"coins?.?required"),
        ),
        message="You don't have enough coins for this request.",
        suggestion="Start a study session to earn more coins (1 coin per second of study).",
        is_retryable=False,
    ),
    ErrorPattern(
        name="cancelled",
        patterns=(
            "aborted",
            "cancelled",
            "canceled",
            re.compile(r"request.*abort"),
        ),
        message="Request was cancelled.",
        suggestion="You can send a new message when ready.",
        is_retryable=False,
    ),
    ErrorPattern(
        name="bad_request",
        patterns=(
            "400",
            "bad request",
            "invalid request",
            "malformed",
            re.compile(r"invalid.*request"),
        ),
        message="Unable to process your request.",
        suggestion="Please try rephrasing your message.",
        is_retryable=True,
    ),
    ErrorPattern(
        name="server",
        patterns=(
            "500",
            "internal server error",
            "server error",
            re.compile(r"internal.*error"),
        ),
        message="Something went wrong on our end.",
        suggestion="Please try again. If the problem persists, contact support.",
        is_retryable=True,
    ),
)

_BY_NAME = {p.name: p for p in ERROR_PATTERNS}

DEFAULT_ERROR = FormattedError(
    message="An unexpected error occurred.",
    suggestion="Please try again. If the problem persists, contact support.",
    is_retryable=True,
)

# Kinds that carry no status code of their own
_KIND_TO_PATTERN = {
    ErrorKind.CREDENTIAL_INVALID: "auth",
    ErrorKind.RATE_LIMITED: "rate_limit",
    ErrorKind.SERVICE_UNAVAILABLE: "unavailable",
    ErrorKind.BAD_REQUEST: "bad_request",
    ErrorKind.SERVER_ERROR: "server",
    ErrorKind.NETWORK_INTERRUPTED: "network",
    ErrorKind.INSUFFICIENT_FUNDS: "coins",
    ErrorKind.CANCELLED: "cancelled",
}


def _pattern_for_code(code: int) -> ErrorPattern | None:
    if code == 401:
        return _BY_NAME["auth"]
    if code == 429:
        return _BY_NAME["rate_limit"]
    if code == 503:
        return _BY_NAME["unavailable"]
    if code == 400:
        return _BY_NAME["bad_request"]
    if code >= 500:
        return _BY_NAME["server"]
    return None


def _as_code(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


def _describe(error: Any) -> tuple[str, int | None, ErrorKind | None]:
    """Extract (text, status code, kind) from any supported error shape."""
    if error is None:
        return "", None, None
    if isinstance(error, ProviderError):
        return error.message, error.status_code, error.kind
    if isinstance(error, httpx.HTTPStatusError):
        return str(error), error.response.status_code, None
    if isinstance(error, httpx.TransportError):
        return str(error) or type(error).__name__, None, ErrorKind.NETWORK_INTERRUPTED
    if isinstance(error, Mapping):
        text = error.get("error") or error.get("message") or ""
        code = _as_code(error.get("code", error.get("status_code")))
        return text if isinstance(text, str) else "", code, None
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__, None, None
    return str(error), None, None


def format_error(error: Any) -> FormattedError:
    """Format an error for display.

    Args:
        error: A string, an exception, a ProviderError, or a mapping such as the
            `error` wire event payload ({"error", "code", "isRetryable"}).

    Returns:
        FormattedError; DEFAULT_ERROR when nothing matches.
    """
    text, code, kind = _describe(error)

    if code is not None:
        pattern = _pattern_for_code(code)
        if pattern is not None:
            return pattern.formatted()

    if kind is not None and kind in _KIND_TO_PATTERN:
        return _BY_NAME[_KIND_TO_PATTERN[kind]].formatted()

    normalized = text.lower()
    for pattern in ERROR_PATTERNS:
        if pattern.matches(normalized):
            return pattern.formatted()

    return DEFAULT_ERROR


def is_retryable_error(error: Any) -> bool:
    return format_error(error).is_retryable

"""LLM error taxonomy and vendor error mapping.

Every failure that leaves an adapter is a ProviderError carrying one ErrorKind,
the HTTP-ish status code (when there is one) and a retryable flag. The mapping
from vendor failures happens once, in map_provider_error, at the adapter
boundary; nothing downstream re-reads raw vendor text.

Status routing:
- 401 -> credential_invalid, not retryable
- 429 -> rate_limited, retryable
- 503 or a vendor "overloaded" body -> service_unavailable, retryable
- 400 -> bad_request, retryable
- other >= 500 -> server_error with that status, retryable
- anything else -> substring matching, then a generic retryable 500
"""

from enum import Enum

import httpx

from mentormind.logging import get_logger

logger = get_logger(__name__)


class ErrorKind(str, Enum):
    """Normalized failure classifications."""

    CREDENTIAL_INVALID = "credential_invalid"
    RATE_LIMITED = "rate_limited"
    SERVICE_UNAVAILABLE = "service_unavailable"
    BAD_REQUEST = "bad_request"
    SERVER_ERROR = "server_error"
    NETWORK_INTERRUPTED = "network_interrupted"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    CANCELLED = "cancelled"
    UNRECOGNIZED = "unrecognized"


# Short, vendor-neutral messages. These are what crosses the wire.
KIND_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.CREDENTIAL_INVALID: "credential invalid",
    ErrorKind.RATE_LIMITED: "rate limit exceeded",
    ErrorKind.SERVICE_UNAVAILABLE: "service unavailable",
    ErrorKind.BAD_REQUEST: "bad request",
    ErrorKind.SERVER_ERROR: "server error",
    ErrorKind.NETWORK_INTERRUPTED: "network connection interrupted",
    ErrorKind.INSUFFICIENT_FUNDS: "insufficient coins",
    ErrorKind.CANCELLED: "request cancelled",
    ErrorKind.UNRECOGNIZED: "unexpected error",
}

NON_RETRYABLE_KINDS = frozenset(
    {ErrorKind.CREDENTIAL_INVALID, ErrorKind.INSUFFICIENT_FUNDS, ErrorKind.CANCELLED}
)

# Lowercase substring checks for failures without a usable status code
_TEXT_RULES: tuple[tuple[tuple[str, ...], int], ...] = (
    (("unauthorized", "authentication"), 401),
    (("rate limit",), 429),
    (("unavailable", "overloaded"), 503),
)


class ProviderError(Exception):
    """Normalized adapter failure.

    Attributes:
        kind: The ErrorKind classification
        message: Vendor-neutral message, safe to send to clients
        status_code: Status code for the kind, None for transport/cancel failures
        retryable: Whether the caller may retry the same request
        provider: Vendor id that produced the error (if known)
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str | None = None,
        *,
        status_code: int | None = None,
        retryable: bool | None = None,
        provider: str | None = None,
    ):
        self.kind = kind
        self.message = message or KIND_MESSAGES[kind]
        self.status_code = status_code
        self.retryable = (kind not in NON_RETRYABLE_KINDS) if retryable is None else retryable
        self.provider = provider
        super().__init__(self.message)

    def to_wire(self) -> dict:
        """Payload for the `error` stream event."""
        payload: dict = {"error": self.message, "isRetryable": self.retryable}
        if self.status_code is not None:
            payload["code"] = self.status_code
        return payload


class ConfigurationError(Exception):
    """No model or platform credential is configured; not retryable."""


def kind_for_status(status_code: int) -> ErrorKind | None:
    """Direct status classification, None when the status alone says nothing."""
    if status_code == 401:
        return ErrorKind.CREDENTIAL_INVALID
    if status_code == 429:
        return ErrorKind.RATE_LIMITED
    if status_code == 503:
        return ErrorKind.SERVICE_UNAVAILABLE
    if status_code == 400:
        return ErrorKind.BAD_REQUEST
    if status_code >= 500:
        return ErrorKind.SERVER_ERROR
    return None


def error_from_status(
    status_code: int, body_text: str = "", provider: str | None = None
) -> ProviderError:
    """Classify a vendor HTTP error response."""
    lowered = body_text.lower()

    if status_code != 401 and "overloaded" in lowered:
        return ProviderError(ErrorKind.SERVICE_UNAVAILABLE, status_code=503, provider=provider)

    kind = kind_for_status(status_code)
    if kind is not None:
        return ProviderError(kind, status_code=status_code, provider=provider)

    return error_from_text(lowered, provider=provider)


def error_from_text(text: str, provider: str | None = None) -> ProviderError:
    """Classify free text by lowercase substrings, else a generic retryable 500."""
    lowered = text.lower()
    for needles, status_code in _TEXT_RULES:
        if any(needle in lowered for needle in needles):
            return error_from_status(status_code, provider=provider)
    return ProviderError(ErrorKind.UNRECOGNIZED, status_code=500, retryable=True, provider=provider)


def map_provider_error(exc: BaseException, provider: str | None = None) -> ProviderError:
    """Single mapping step from any adapter-side exception into the taxonomy."""
    if isinstance(exc, ProviderError):
        if exc.provider is None:
            exc.provider = provider
        return exc

    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        try:
            body_text = response.text
        except httpx.ResponseNotRead:
            body_text = ""
        return error_from_status(response.status_code, body_text, provider=provider)

    if isinstance(exc, httpx.TransportError):
        return ProviderError(ErrorKind.NETWORK_INTERRUPTED, provider=provider)

    logger.warning(
        "unclassified_provider_error",
        provider=provider,
        error_type=type(exc).__name__,
    )
    return error_from_text(str(exc), provider=provider)

"""API error definitions.

All JSON API errors are defined here with their corresponding HTTP status codes.
Streaming chat failures do not use these; they travel as `error` wire events.
"""

from enum import Enum


class ApiErrorCode(str, Enum):
    """Standardized error codes for the API.

    Format: E_CATEGORY_NAME
    """

    # Authentication errors (401)
    E_UNAUTHENTICATED = "E_UNAUTHENTICATED"

    # Payment required (402)
    E_INSUFFICIENT_COINS = "E_INSUFFICIENT_COINS"

    # Not found errors (404)
    E_NOT_FOUND = "E_NOT_FOUND"
    E_KEY_NOT_FOUND = "E_KEY_NOT_FOUND"

    # Validation errors (400)
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_KEY_PROVIDER_INVALID = "E_KEY_PROVIDER_INVALID"
    E_KEY_INVALID_FORMAT = "E_KEY_INVALID_FORMAT"

    # Server errors
    E_AI_NOT_CONFIGURED = "E_AI_NOT_CONFIGURED"  # 503
    E_INTERNAL = "E_INTERNAL"  # 500


ERROR_CODE_TO_STATUS: dict[ApiErrorCode, int] = {
    ApiErrorCode.E_UNAUTHENTICATED: 401,
    ApiErrorCode.E_INSUFFICIENT_COINS: 402,
    ApiErrorCode.E_NOT_FOUND: 404,
    ApiErrorCode.E_KEY_NOT_FOUND: 404,
    ApiErrorCode.E_INVALID_REQUEST: 400,
    ApiErrorCode.E_KEY_PROVIDER_INVALID: 400,
    ApiErrorCode.E_KEY_INVALID_FORMAT: 400,
    ApiErrorCode.E_AI_NOT_CONFIGURED: 503,
    ApiErrorCode.E_INTERNAL: 500,
}


class ApiError(Exception):
    """Base exception for API errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        status_code: HTTP status code (derived from code)
    """

    def __init__(self, code: ApiErrorCode, message: str):
        self.code = code
        self.message = message
        self.status_code = ERROR_CODE_TO_STATUS.get(code, 500)
        super().__init__(message)


class NotFoundError(ApiError):
    """Resource not found error."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_NOT_FOUND, message: str = "Not found"):
        super().__init__(code, message)


class InsufficientCoinsError(ApiError):
    """Raised by the ledger when a charge exceeds the balance."""

    def __init__(self, balance: int, amount: int):
        self.balance = balance
        self.amount = amount
        super().__init__(
            ApiErrorCode.E_INSUFFICIENT_COINS,
            f"Insufficient coins: balance {balance}, required {amount}",
        )

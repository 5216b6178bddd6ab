"""Session tokens: mint and verify caller JWTs.

- HS256 signed with MENTORMIND_SESSION_SIGNING_KEY (dev fallback in local/test)
- Claims: iss=mentormind, aud=mentormind-api, sub=user_id, iat, exp
- iss/aud prevent accepting tokens minted for other services
"""

import base64
import time
from uuid import UUID

import jwt

from mentormind.config import get_settings
from mentormind.errors import ApiError, ApiErrorCode
from mentormind.logging import get_logger

logger = get_logger(__name__)

SESSION_TOKEN_ISSUER = "mentormind"
SESSION_TOKEN_AUDIENCE = "mentormind-api"
SESSION_TOKEN_TTL_SECONDS = 60 * 60 * 24


def _get_signing_key_bytes() -> bytes:
    """Decode the base64-encoded signing key to raw bytes."""
    key_b64 = get_settings().effective_session_signing_key
    try:
        key_bytes = base64.b64decode(key_b64)
    except Exception as e:
        raise ValueError(f"MENTORMIND_SESSION_SIGNING_KEY is not valid base64: {e}") from e
    if len(key_bytes) < 32:
        raise ValueError(
            f"MENTORMIND_SESSION_SIGNING_KEY must be at least 32 bytes, got {len(key_bytes)}"
        )
    return key_bytes


def mint_session_token(user_id: UUID, ttl_seconds: int = SESSION_TOKEN_TTL_SECONDS) -> str:
    """Mint a session token for user_id (tooling and tests)."""
    now = int(time.time())
    payload = {
        "iss": SESSION_TOKEN_ISSUER,
        "aud": SESSION_TOKEN_AUDIENCE,
        "sub": str(user_id),
        "iat": now,
        "exp": now + ttl_seconds,
    }
    return jwt.encode(payload, _get_signing_key_bytes(), algorithm="HS256")


def verify_session_token(token: str) -> UUID:
    """Verify a session token and return the caller's user id.

    Raises:
        ApiError: E_UNAUTHENTICATED on any verification failure.
    """
    try:
        payload = jwt.decode(
            token,
            _get_signing_key_bytes(),
            algorithms=["HS256"],
            issuer=SESSION_TOKEN_ISSUER,
            audience=SESSION_TOKEN_AUDIENCE,
            options={"require": ["exp", "iss", "aud", "sub"]},
        )
    except jwt.ExpiredSignatureError as err:
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Session token has expired") from err
    except jwt.InvalidTokenError as e:
        logger.warning("session_token_invalid", error_type=type(e).__name__)
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid session token") from e

    try:
        return UUID(payload["sub"])
    except ValueError as e:
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid session token subject") from e

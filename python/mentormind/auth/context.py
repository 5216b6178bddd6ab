"""Caller identity for request handlers.

Provides:
- AuthContext: explicit caller identity threaded into services
- get_auth_context: dependency; anonymous when no Authorization header
- require_user: dependency; E_UNAUTHENTICATED unless a valid token is present
"""

from dataclasses import dataclass
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Request

from mentormind.auth.session_token import verify_session_token
from mentormind.errors import ApiError, ApiErrorCode
from mentormind.logging import set_user_id

AUTHORIZATION_HEADER = "authorization"


@dataclass(frozen=True)
class AuthContext:
    """Caller identity; user_id is None for anonymous callers."""

    user_id: UUID | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


def _extract_bearer_token(request: Request) -> str | None:
    header = request.headers.get(AUTHORIZATION_HEADER)
    if header is None:
        return None
    parts = header.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Malformed Authorization header")
    return parts[1].strip()


def get_auth_context(request: Request) -> AuthContext:
    """Resolve the caller from an optional bearer token.

    Raises:
        ApiError: E_UNAUTHENTICATED if a token is present but invalid.
    """
    token = _extract_bearer_token(request)
    if token is None:
        return AuthContext()
    user_id = verify_session_token(token)
    set_user_id(str(user_id))
    return AuthContext(user_id=user_id)


def require_user(auth: Annotated[AuthContext, Depends(get_auth_context)]) -> AuthContext:
    """Like get_auth_context, but anonymous callers are rejected."""
    if not auth.is_authenticated:
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Authentication required")
    return auth

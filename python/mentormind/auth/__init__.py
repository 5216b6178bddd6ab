"""Caller authentication.

Session tokens are HS256 JWTs; an absent token means an anonymous caller.
"""

from mentormind.auth.context import AuthContext, get_auth_context, require_user
from mentormind.auth.session_token import mint_session_token, verify_session_token

__all__ = [
    "AuthContext",
    "get_auth_context",
    "require_user",
    "mint_session_token",
    "verify_session_token",
]

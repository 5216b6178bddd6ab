"""Log guard utilities.

- hash_text: stable SHA-256 hex digest for log correlation
- safe_kv: blocks forbidden keys at the call site

Never logged:
- API keys (plaintext or decrypted)
- Bearer / session tokens
- Rendered prompts and message content

Allowed derivatives carry a suffix: _chars, _length, _sha256, _hash.
"""

import hashlib
import os

import structlog

FORBIDDEN_KEYS = frozenset(
    {
        "prompt",
        "system_prompt",
        "content",
        "messages",
        "api_key",
        "bearer",
        "token",
        "secret",
        "password",
        "raw_body",
    }
)

REDACTED_SUFFIXES = ("_sha256", "_hash", "_length", "_chars")


def hash_text(value: str) -> str:
    """SHA-256 hex digest of a string."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def _has_redacted_suffix(key: str) -> bool:
    return any(key.endswith(suffix) for suffix in REDACTED_SUFFIXES)


def safe_kv(*, _env: str | None = None, **kwargs) -> dict:
    """Validate that no forbidden keys are present unless already redacted.

    Raises ValueError in local/test if a forbidden key is used. In staging/prod
    the violation is logged and the kwargs are returned unchanged.

    Usage:
        logger.info("llm.stream.started", **safe_kv(
            provider="anthropic",
            prompt_chars=1234,   # OK: _chars suffix
            # prompt="hello",    # BLOCKED
        ))

    Args:
        _env: Override for MENTORMIND_ENV (test-only). If None, reads from env.
        **kwargs: Keyword arguments to validate and return.
    """
    violations = [key for key in kwargs if key in FORBIDDEN_KEYS and not _has_redacted_suffix(key)]

    if violations:
        msg = f"Forbidden log keys without redacted suffix: {violations}"
        env = _env or os.environ.get("MENTORMIND_ENV", "local")
        if env in ("local", "test"):
            raise ValueError(msg)
        structlog.get_logger(__name__).warning("safe_kv_violation", forbidden_keys=violations)

    return kwargs

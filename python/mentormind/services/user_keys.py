"""User API key (BYOK) service layer.

Handles credential management and the credential store used by the gateway:
- List the user's credential (safe fields only)
- Store (overwrite) the user's single credential with encryption
- Revoke (wipe ciphertext, retain fingerprint)
- SqlCredentialStore: active-credential lookup and usage recording

Each user has at most ONE credential row. Storing a key for a different
provider overwrites the previous one.

Security invariants:
- Plaintext keys never persist beyond request scope
- Never log plaintext keys
- encrypted_key, key_nonce, master_key_version never returned to clients
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from mentormind.db.models import UserApiKey
from mentormind.errors import ApiError, ApiErrorCode
from mentormind.logging import get_logger
from mentormind.schemas.keys import UserApiKeyOut
from mentormind.services.crypto import encrypt_api_key

logger = get_logger(__name__)

# Valid providers (lowercase only)
VALID_PROVIDERS = frozenset({"anthropic", "openai", "openrouter"})

MIN_KEY_LENGTH = 20


def _to_out(key: UserApiKey) -> UserApiKeyOut:
    return UserApiKeyOut.model_validate(key)


def _get_user_key(db: Session, user_id: UUID) -> UserApiKey | None:
    return db.scalars(select(UserApiKey).where(UserApiKey.user_id == user_id)).first()


def list_user_keys(db: Session, user_id: UUID) -> list[UserApiKeyOut]:
    """List the user's stored credential(s); empty when none was ever stored."""
    key = _get_user_key(db, user_id)
    return [_to_out(key)] if key else []


def normalize_provider(provider: str) -> str:
    """Lowercase provider id.

    Raises:
        ApiError: E_KEY_PROVIDER_INVALID if provider is unknown.
    """
    provider = provider.strip().lower()
    if provider not in VALID_PROVIDERS:
        raise ApiError(
            ApiErrorCode.E_KEY_PROVIDER_INVALID,
            f"Unknown provider: {provider}. Must be one of: {', '.join(sorted(VALID_PROVIDERS))}",
        )
    return provider


def validate_key_input(provider: str, api_key: str) -> tuple[str, str]:
    """Normalize provider and key, or raise the matching ApiError.

    Raises:
        ApiError: E_KEY_PROVIDER_INVALID if provider is unknown.
        ApiError: E_KEY_INVALID_FORMAT if the key is too short or contains whitespace.
    """
    provider = normalize_provider(provider)

    api_key = api_key.strip()
    if len(api_key) < MIN_KEY_LENGTH:
        raise ApiError(ApiErrorCode.E_KEY_INVALID_FORMAT, "API key too short")
    if any(c.isspace() for c in api_key):
        raise ApiError(ApiErrorCode.E_KEY_INVALID_FORMAT, "API key contains whitespace")

    return provider, api_key


def store_user_key(
    db: Session,
    user_id: UUID,
    provider: str,
    api_key: str,
    model_id: str,
    base_url: str | None = None,
) -> tuple[UserApiKeyOut, bool]:
    """Store the user's credential, overwriting any existing one.

    On overwrite: new nonce and ciphertext, new fingerprint, reactivated,
    usage counters reset, revoked_at cleared.

    Returns:
        Tuple of (UserApiKeyOut, is_created).

    Raises:
        ApiError: E_KEY_PROVIDER_INVALID / E_KEY_INVALID_FORMAT.
    """
    provider, api_key = validate_key_input(provider, api_key)
    ciphertext, nonce, version, fingerprint = encrypt_api_key(api_key)

    key = _get_user_key(db, user_id)
    is_created = key is None
    if key is None:
        key = UserApiKey(user_id=user_id)
        db.add(key)

    key.provider = provider
    key.encrypted_key = ciphertext
    key.key_nonce = nonce
    key.master_key_version = version
    key.key_fingerprint = fingerprint
    key.model_id = model_id
    key.base_url = base_url
    key.is_active = True
    key.last_used_at = None
    key.usage_count = 0
    key.revoked_at = None

    db.flush()
    db.commit()

    logger.info(
        "user_key_created" if is_created else "user_key_updated",
        user_id=str(user_id),
        provider=provider,
        fingerprint=fingerprint,
    )
    return _to_out(key), is_created


def revoke_user_key(db: Session, user_id: UUID, key_id: UUID) -> None:
    """Revoke a user's credential.

    Wipes encrypted_key, key_nonce and master_key_version, deactivates the row
    and keeps key_fingerprint. Idempotent.

    Raises:
        ApiError: E_KEY_NOT_FOUND if the key doesn't exist or isn't owned by the user.
    """
    key = db.scalars(
        select(UserApiKey).where(UserApiKey.id == key_id, UserApiKey.user_id == user_id)
    ).first()

    if not key:
        raise ApiError(ApiErrorCode.E_KEY_NOT_FOUND, "API key not found")

    if key.revoked_at is not None:
        logger.info("user_key_revoke_idempotent", user_id=str(user_id), key_id=str(key_id))
        return

    key.encrypted_key = None
    key.key_nonce = None
    key.master_key_version = None
    key.is_active = False
    key.revoked_at = datetime.now(UTC)

    db.flush()
    db.commit()

    logger.info(
        "user_key_revoked",
        user_id=str(user_id),
        key_id=str(key_id),
        fingerprint=key.key_fingerprint,
    )


# =============================================================================
# Credential store port
# =============================================================================


@dataclass(frozen=True)
class StoredCredential:
    """Encrypted active credential as read from storage."""

    key_id: UUID
    provider: str
    encrypted_key: bytes
    key_nonce: bytes
    master_key_version: int
    model_id: str
    base_url: str | None = None

    def __repr__(self) -> str:
        return f"StoredCredential(key_id={self.key_id!r}, provider={self.provider!r})"


class CredentialStore(Protocol):
    def get_active_credential(self, user_id: UUID) -> StoredCredential | None: ...

    def record_usage(self, key_id: UUID) -> None: ...


class SqlCredentialStore:
    """CredentialStore over user_api_keys; opens a short session per call."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def get_active_credential(self, user_id: UUID) -> StoredCredential | None:
        with self._session_factory() as db:
            key = _get_user_key(db, user_id)
            if (
                key is None
                or not key.is_active
                or key.encrypted_key is None
                or key.key_nonce is None
                or key.master_key_version is None
            ):
                return None
            return StoredCredential(
                key_id=key.id,
                provider=key.provider,
                encrypted_key=key.encrypted_key,
                key_nonce=key.key_nonce,
                master_key_version=key.master_key_version,
                model_id=key.model_id,
                base_url=key.base_url,
            )

    def record_usage(self, key_id: UUID) -> None:
        """Bump last_used_at and usage_count; failures are logged and swallowed."""
        try:
            with self._session_factory() as db:
                key = db.get(UserApiKey, key_id)
                if key is None:
                    return
                key.last_used_at = datetime.now(UTC)
                key.usage_count = (key.usage_count or 0) + 1
                db.commit()
        except Exception as e:
            logger.warning(
                "byok_usage_record_failed",
                key_id=str(key_id),
                error_type=type(e).__name__,
            )

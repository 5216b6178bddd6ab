"""Encryption at rest for BYOK credentials.

Authenticated symmetric encryption via PyNaCl SecretBox (XSalsa20-Poly1305).

- Master key: base64, 32 bytes, read from MENTORMIND_KEY_ENCRYPTION_KEY
- Nonce: 24 random bytes per secret, stored beside the ciphertext
- Fingerprint: last 4 characters, the only part of a key ever shown or logged
- Decryption fails loudly on a wrong key, wrong nonce or tampered ciphertext
"""

import base64
import os
from functools import lru_cache

from nacl.exceptions import CryptoError as NaclCryptoError
from nacl.secret import SecretBox

from mentormind.logging import get_logger

logger = get_logger(__name__)

MASTER_KEY_ENV = "MENTORMIND_KEY_ENCRYPTION_KEY"
NONCE_SIZE = SecretBox.NONCE_SIZE
MASTER_KEY_SIZE = SecretBox.KEY_SIZE

CURRENT_MASTER_KEY_VERSION = 1


class CryptoError(Exception):
    """Raised when cryptographic operations fail."""


@lru_cache(maxsize=1)
def _get_master_key() -> bytes:
    key_b64 = os.environ.get(MASTER_KEY_ENV)
    if not key_b64:
        raise CryptoError(f"{MASTER_KEY_ENV} environment variable is not set")

    try:
        key = base64.b64decode(key_b64, validate=True)
    except ValueError as e:
        raise CryptoError(f"{MASTER_KEY_ENV} is not valid base64: {e}") from e

    if len(key) != MASTER_KEY_SIZE:
        raise CryptoError(f"{MASTER_KEY_ENV} must be {MASTER_KEY_SIZE} bytes, got {len(key)} bytes")

    return key


def require_master_key() -> bytes:
    """Load and validate the master encryption key (cached).

    Raises:
        CryptoError: If the key is missing or invalid.
    """
    return _get_master_key()


def clear_master_key_cache() -> None:
    """Forget the cached master key (tests, key rotation)."""
    _get_master_key.cache_clear()


def generate_nonce() -> bytes:
    return os.urandom(NONCE_SIZE)


def encrypt_secretbox(plaintext: bytes, nonce: bytes) -> bytes:
    """Encrypt with the master key; returns ciphertext + 16-byte tag (nonce excluded)."""
    if len(nonce) != NONCE_SIZE:
        raise ValueError(f"Nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")

    box = SecretBox(require_master_key())
    return box.encrypt(plaintext, nonce=nonce).ciphertext


def decrypt_secretbox(ciphertext: bytes, nonce: bytes) -> bytes:
    """Decrypt ciphertext produced by encrypt_secretbox.

    Raises:
        CryptoError: Wrong key, wrong nonce or tampered data.
        ValueError: If nonce is wrong size.
    """
    if len(nonce) != NONCE_SIZE:
        raise ValueError(f"Nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")

    box = SecretBox(require_master_key())
    try:
        return box.decrypt(ciphertext, nonce=nonce)
    except NaclCryptoError as e:
        logger.error("decryption_failed", error_type=type(e).__name__)
        raise CryptoError("Decryption failed") from e


def compute_key_fingerprint(api_key: str) -> str:
    """Last 4 characters of the key, safe for display and logs."""
    if len(api_key) < 4:
        return api_key
    return api_key[-4:]


def encrypt_api_key(plaintext: str) -> tuple[bytes, bytes, int, str]:
    """Encrypt an API key for storage.

    Returns:
        Tuple of (ciphertext, nonce, master_key_version, fingerprint)
    """
    nonce = generate_nonce()
    ciphertext = encrypt_secretbox(plaintext.encode("utf-8"), nonce)
    return ciphertext, nonce, CURRENT_MASTER_KEY_VERSION, compute_key_fingerprint(plaintext)


def decrypt_api_key(ciphertext: bytes, nonce: bytes, version: int) -> str:
    """Decrypt an API key from storage.

    Raises:
        CryptoError: If version is unknown or decryption fails.
    """
    if version != CURRENT_MASTER_KEY_VERSION:
        raise CryptoError(f"Unknown key version: {version}")

    return decrypt_secretbox(ciphertext, nonce).decode("utf-8")

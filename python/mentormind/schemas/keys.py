"""User API key and model catalog schemas.

- No secrets ever leave the backend
- Keys are encrypted at rest
- Responses never include encrypted_key, key_nonce, master_key_version
- Fingerprint is the last 4 chars of the original key
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Valid providers - must match user_keys.VALID_PROVIDERS
VALID_PROVIDERS = {"anthropic", "openai", "openrouter"}
KeyProvider = Literal["anthropic", "openai", "openrouter"]


# =============================================================================
# Model Catalog Schemas
# =============================================================================


class ModelOut(BaseModel):
    """Display metadata for a selectable model."""

    id: str
    name: str
    description: str
    badge: str | None = None

    model_config = ConfigDict(frozen=True)


# =============================================================================
# User API Key Schemas
# =============================================================================


def _normalize_api_key(v: str) -> str:
    """Strip ends; reject short keys and internal whitespace."""
    v = v.strip()
    if len(v) < 20:
        raise ValueError("API key too short")
    if any(c.isspace() for c in v):
        raise ValueError("API key contains whitespace")
    return v


class UserApiKeyOut(BaseModel):
    """Safe view of a stored credential.

    SECURITY: encrypted_key, key_nonce and master_key_version are never present.
    """

    id: UUID
    provider: str
    key_fingerprint: str
    model_id: str
    base_url: str | None = None
    is_active: bool
    created_at: datetime
    last_used_at: datetime | None = None
    usage_count: int = 0
    revoked_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class UserApiKeyCreate(BaseModel):
    """Request schema for storing the caller's credential.

    Each caller has a single active credential; storing a new one overwrites it,
    even when the provider changes.
    """

    provider: str = Field(..., description="anthropic, openai or openrouter")
    api_key: str = Field(..., min_length=1)
    model_id: str = Field(..., min_length=1, max_length=200)
    base_url: str | None = Field(default=None, max_length=500)


class KeyValidateRequest(BaseModel):
    """Request schema for POST /keys/validate."""

    provider: KeyProvider
    api_key: str = Field(..., min_length=1)
    base_url: str | None = Field(default=None, max_length=500)

    @field_validator("api_key")
    @classmethod
    def validate_api_key_format(cls, v: str) -> str:
        return _normalize_api_key(v)


class KeyValidateOut(BaseModel):
    provider: str
    valid: bool


class ProviderModelsOut(BaseModel):
    """Response schema for GET /keys/models."""

    provider: str
    models: list[str]

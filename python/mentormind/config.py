"""Application settings loaded from environment variables.

Environment Configuration:
    MENTORMIND_ENV: Deployment environment (local | test | staging | prod)
    DATABASE_URL: SQLAlchemy connection string (required)

Secrets (required in staging/prod):
    MENTORMIND_KEY_ENCRYPTION_KEY: Base64 32-byte master key for stored BYOK credentials
    MENTORMIND_SESSION_SIGNING_KEY: Base64 HS256 key (>= 32 bytes) for caller session tokens

Platform inference (optional, enables platform-billed models):
    PLATFORM_INFERENCE_URL: Base URL of the OpenAI-compatible inference endpoint
    PLATFORM_KEY_GPT_OSS / PLATFORM_KEY_CLAUDE / PLATFORM_KEY_NOVA_LITE / PLATFORM_KEY_NOVA_PRO
    PLATFORM_ALLOWED_MODELS: Comma-separated allow-list applied on top of configured keys
"""

from enum import Enum
from functools import lru_cache
from typing import Annotated

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


# Development-only signing key, never accepted in staging/prod.
DEV_SESSION_SIGNING_KEY = "bWVudG9ybWluZC1sb2NhbC1zZXNzaW9uLXNpZ25pbmcta2V5IQ=="


class Settings(BaseSettings):
    """Application configuration.

    Validation rules:
    - DATABASE_URL is always required
    - MENTORMIND_KEY_ENCRYPTION_KEY and MENTORMIND_SESSION_SIGNING_KEY are
      required in staging and prod
    """

    mentormind_env: Environment = Field(default=Environment.LOCAL, alias="MENTORMIND_ENV")
    database_url: Annotated[str, Field(alias="DATABASE_URL")]

    key_encryption_key: str | None = Field(default=None, alias="MENTORMIND_KEY_ENCRYPTION_KEY")
    session_signing_key: str | None = Field(default=None, alias="MENTORMIND_SESSION_SIGNING_KEY")

    # Platform inference endpoint and per-model keys
    platform_inference_url: str | None = Field(default=None, alias="PLATFORM_INFERENCE_URL")
    platform_key_gpt_oss: str | None = Field(default=None, alias="PLATFORM_KEY_GPT_OSS")
    platform_key_claude: str | None = Field(default=None, alias="PLATFORM_KEY_CLAUDE")
    platform_key_nova_lite: str | None = Field(default=None, alias="PLATFORM_KEY_NOVA_LITE")
    platform_key_nova_pro: str | None = Field(default=None, alias="PLATFORM_KEY_NOVA_PRO")
    platform_allowed_models: str | None = Field(default=None, alias="PLATFORM_ALLOWED_MODELS")

    # Coin ledger
    initial_coin_balance: int = Field(default=500, alias="INITIAL_COIN_BALANCE", ge=0)

    llm_connect_timeout_s: float = Field(default=10.0, alias="LLM_CONNECT_TIMEOUT_S", gt=0)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Ensure secrets are present outside local/test."""
        if self.mentormind_env in (Environment.STAGING, Environment.PROD):
            missing = []
            if not self.key_encryption_key:
                missing.append("MENTORMIND_KEY_ENCRYPTION_KEY")
            if not self.session_signing_key:
                missing.append("MENTORMIND_SESSION_SIGNING_KEY")
            if missing:
                raise ValueError(
                    f"{', '.join(missing)} required for "
                    f"MENTORMIND_ENV={self.mentormind_env.value}"
                )
        return self

    @property
    def effective_session_signing_key(self) -> str:
        """Return the session signing key, falling back to the dev key locally."""
        return self.session_signing_key or DEV_SESSION_SIGNING_KEY

    @property
    def platform_model_keys(self) -> dict[str, str | None]:
        """Platform key per catalog model id."""
        return {
            "gpt-oss-120b": self.platform_key_gpt_oss,
            "claude-4-5-haiku": self.platform_key_claude,
            "nova-lite": self.platform_key_nova_lite,
            "nova-pro": self.platform_key_nova_pro,
        }

    @property
    def allowed_model_list(self) -> list[str]:
        """Parse the comma-separated allow-list."""
        if self.platform_allowed_models:
            return [m.strip() for m in self.platform_allowed_models.split(",") if m.strip()]
        return []


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()

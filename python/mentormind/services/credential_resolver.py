"""Per-request credential resolution (BYOK vs platform).

Resolution order:
1. No caller identity -> platform credential.
2. Caller has an active stored credential -> decrypt it -> BYOK.
   The request's explicit (non-"auto") model wins over the stored model.
3. No stored credential, or ANY lookup/decrypt failure -> platform credential.

A missing platform credential is the only fatal outcome (ConfigurationError).

This module does blocking DB work; the async gateway calls it through
starlette's run_in_threadpool.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal
from uuid import UUID

from mentormind.auth.context import AuthContext
from mentormind.logging import get_logger
from mentormind.schemas.chat import AUTO_MODEL_ID
from mentormind.services.crypto import decrypt_api_key
from mentormind.services.llm.errors import ConfigurationError
from mentormind.services.llm.types import ProviderDescriptor
from mentormind.services.models import PLATFORM_PROVIDER_LABEL
from mentormind.services.user_keys import CredentialStore

logger = get_logger(__name__)

PlatformFactory = Callable[[str], ProviderDescriptor]


@dataclass(frozen=True)
class ByokCredential:
    """The caller's own key; requests billed to it are coin-exempt."""

    provider: str
    api_key: str
    model_id: str
    base_url: str | None = None
    key_id: UUID | None = None
    is_byok: Literal[True] = True

    @property
    def provider_label(self) -> str:
        return self.provider

    def to_descriptor(self) -> ProviderDescriptor:
        return ProviderDescriptor(
            provider=self.provider,  # type: ignore[arg-type]
            api_key=self.api_key,
            model_id=self.model_id,
            base_url=self.base_url,
        )

    def __repr__(self) -> str:
        return f"ByokCredential(provider={self.provider!r}, model_id={self.model_id!r})"


@dataclass(frozen=True)
class PlatformCredential:
    """A platform key; requests billed to it keep their coin charge."""

    descriptor: ProviderDescriptor
    is_byok: Literal[False] = False

    @property
    def model_id(self) -> str:
        return self.descriptor.model_id

    @property
    def provider_label(self) -> str:
        return PLATFORM_PROVIDER_LABEL

    def to_descriptor(self) -> ProviderDescriptor:
        return self.descriptor


Credential = ByokCredential | PlatformCredential


def _platform(model_id: str, platform_factory: PlatformFactory | None) -> PlatformCredential:
    if platform_factory is None:
        raise ConfigurationError("No platform credential is configured")
    return PlatformCredential(descriptor=platform_factory(model_id))


def resolve_credential(
    auth: AuthContext,
    model_id: str,
    *,
    store: CredentialStore | None,
    platform_factory: PlatformFactory | None,
    requested_model_id: str | None = None,
) -> Credential:
    """Decide which credential pays for this request.

    Args:
        auth: Caller identity.
        model_id: Model chosen by the router (used for platform credentials).
        store: Credential store; None disables BYOK lookup.
        platform_factory: Builds the platform descriptor for a model id.
        requested_model_id: Client's explicit model id; wins over the stored BYOK model.

    Raises:
        ConfigurationError: If the platform credential is needed but not configured.
    """
    if not auth.is_authenticated or store is None:
        return _platform(model_id, platform_factory)

    try:
        stored = store.get_active_credential(auth.user_id)
        if stored is not None:
            api_key = decrypt_api_key(
                stored.encrypted_key, stored.key_nonce, stored.master_key_version
            )
            explicit = (
                requested_model_id
                if requested_model_id and requested_model_id != AUTO_MODEL_ID
                else None
            )
            credential = ByokCredential(
                provider=stored.provider,
                api_key=api_key,
                model_id=explicit or stored.model_id,
                base_url=stored.base_url,
                key_id=stored.key_id,
            )
            logger.info(
                "credential_resolved",
                key_mode="byok",
                provider=credential.provider,
                model_id=credential.model_id,
            )
            return credential
    except Exception as e:
        logger.warning(
            "byok_lookup_failed",
            user_id=str(auth.user_id),
            error_type=type(e).__name__,
        )

    credential = _platform(model_id, platform_factory)
    logger.info("credential_resolved", key_mode="platform", model_id=credential.model_id)
    return credential

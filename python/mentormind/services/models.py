"""Platform model catalog.

A catalog model is available iff a platform key is configured for it AND
(when PLATFORM_ALLOWED_MODELS is set) it is on the allow-list. Availability
is always reported in canonical catalog order, which is also the order the
router falls back through.

Platform models are all served by one OpenAI-compatible inference endpoint;
each model has its own key.

BYOK callers pick a vendor model instead; `list_byok_models` lists what a
provider offers.
"""

import httpx

from mentormind.config import Settings
from mentormind.schemas.chat import AUTO_MODEL_ID
from mentormind.schemas.keys import ModelOut
from mentormind.services.llm.errors import ConfigurationError
from mentormind.services.llm.factory import list_provider_models
from mentormind.services.llm.types import ProviderDescriptor
from mentormind.services.user_keys import normalize_provider

# Canonical order
ALL_MODELS: tuple[ModelOut, ...] = (
    ModelOut(
        id="gpt-oss-120b",
        name="GPT OSS 120B",
        description="OpenAI OSS model kept as a reliable fallback option",
    ),
    ModelOut(
        id="claude-4-5-haiku",
        name="Claude 4.5 Haiku",
        description="Balanced reasoning model recommended for most study help",
        badge="Recommended",
    ),
    ModelOut(
        id="nova-lite",
        name="Nova Lite",
        description="Fast and efficient for quick responses",
        badge="Fast",
    ),
    ModelOut(
        id="nova-pro",
        name="Nova Pro",
        description="Balanced performance for most tasks",
        badge="Pro",
    ),
)

CANONICAL_MODEL_IDS: tuple[str, ...] = tuple(m.id for m in ALL_MODELS)

AUTO_MODEL = ModelOut(
    id=AUTO_MODEL_ID,
    name="Smart Auto Route",
    description="Picks a model from your message and study context",
)

PLATFORM_PROVIDER_LABEL = "platform"


def get_available_models(settings: Settings) -> list[str]:
    """Configured (and allowed) platform model ids, in canonical order."""
    keys = settings.platform_model_keys
    allowed = set(settings.allowed_model_list)
    return [
        model_id
        for model_id in CANONICAL_MODEL_IDS
        if keys.get(model_id) and (not allowed or model_id in allowed)
    ]


def list_model_info(settings: Settings) -> list[ModelOut]:
    """Catalog entries for GET /models: the auto entry, then available models."""
    available = set(get_available_models(settings))
    return [AUTO_MODEL] + [m for m in ALL_MODELS if m.id in available]


def build_platform_credential(model_id: str, settings: Settings) -> ProviderDescriptor:
    """Descriptor for a platform-billed model.

    Raises:
        ConfigurationError: If the endpoint or the model's key is not configured.
    """
    if not settings.platform_inference_url:
        raise ConfigurationError("PLATFORM_INFERENCE_URL is not configured")

    api_key = settings.platform_model_keys.get(model_id)
    if not api_key:
        raise ConfigurationError(f"No platform key configured for model: {model_id}")

    return ProviderDescriptor(
        provider="openai",
        api_key=api_key,
        model_id=model_id,
        base_url=f"{settings.platform_inference_url.rstrip('/')}/v1",
    )


async def list_byok_models(
    provider: str,
    http_client: httpx.AsyncClient,
    api_key: str | None = None,
    base_url: str | None = None,
) -> list[str]:
    """Vendor model ids for the BYOK model picker.

    Raises:
        ApiError: E_KEY_PROVIDER_INVALID if provider is unknown.
    """
    provider = normalize_provider(provider)
    api_key = api_key.strip() if api_key else None
    return await list_provider_models(provider, http_client, api_key=api_key, base_url=base_url)

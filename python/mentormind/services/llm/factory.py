"""Provider factory: descriptor in, adapter out.

Adapters are cheap, per-request objects bound to the shared httpx client.
"""

import httpx

from mentormind.services.llm.adapter import ProviderAdapter
from mentormind.services.llm.anthropic_adapter import AnthropicAdapter
from mentormind.services.llm.errors import ConfigurationError
from mentormind.services.llm.openai_adapter import OpenAIAdapter, OpenRouterAdapter
from mentormind.services.llm.types import ProviderDescriptor

ADAPTER_CLASSES: dict[str, type[ProviderAdapter]] = {
    "anthropic": AnthropicAdapter,
    "openai": OpenAIAdapter,
    "openrouter": OpenRouterAdapter,
}

SUPPORTED_PROVIDERS = tuple(ADAPTER_CLASSES)


def create_adapter(descriptor: ProviderDescriptor, client: httpx.AsyncClient) -> ProviderAdapter:
    """Instantiate the adapter variant for descriptor.provider.

    Raises:
        ConfigurationError: If the provider is unknown.
    """
    adapter_cls = ADAPTER_CLASSES.get(descriptor.provider)
    if adapter_cls is None:
        raise ConfigurationError(f"Unsupported provider: {descriptor.provider}")
    return adapter_cls(client, descriptor)


async def validate_provider_key(
    provider: str,
    api_key: str,
    client: httpx.AsyncClient,
    base_url: str | None = None,
) -> bool:
    """Check the key with a throwaway adapter; never raises for vendor failures."""
    adapter = create_adapter(
        ProviderDescriptor(provider=provider, api_key=api_key, model_id="", base_url=base_url),
        client,
    )
    return await adapter.validate_key()


async def list_provider_models(
    provider: str,
    client: httpx.AsyncClient,
    api_key: str | None = None,
    base_url: str | None = None,
) -> list[str]:
    """Model ids for a provider.

    Without a key this is the provider's common list; with one the vendor is
    asked, falling back to the common list on any failure.
    """
    adapter = create_adapter(
        ProviderDescriptor(
            provider=provider, api_key=api_key or "", model_id="", base_url=base_url
        ),
        client,
    )
    if not api_key:
        return list(adapter.common_models)
    return await adapter.list_models()

"""
Provider Registry — Names to Classes, Configs to Fallback Chains
=================================================================
The chain is configured as an ordered list of provider names. Built-in
providers register on first lookup; their SDKs load on first call.
"""

from __future__ import annotations

from typing import Type

from lancards.providers.base import BaseProvider, ProviderConfig

# ─────────────────────────────────────────────────────────────
#  Registry
# ─────────────────────────────────────────────────────────────

BUILTIN_PROVIDERS = ["gemini", "openai", "anthropic", "ollama", "offline"]

_REGISTRY: dict[str, Type[BaseProvider]] = {}


def register_provider(name: str, provider_class: Type[BaseProvider]):
    """Register a provider class under a name."""
    _REGISTRY[name.lower()] = provider_class


def get_provider(config: ProviderConfig) -> BaseProvider:
    """Instantiate a provider from config.

    Built-in names are imported on first use.

    Raises:
        ValueError: If the provider is not supported.
    """
    name = config.provider_name.lower()

    if name not in _REGISTRY:
        _try_lazy_import(name)

    if name not in _REGISTRY:
        available = list(_REGISTRY.keys()) or ["(none registered)"]
        raise ValueError(
            f"Unknown provider '{name}'. Available: {available}. "
            f"Install the provider's SDK or register a custom provider."
        )

    return _REGISTRY[name](config)


def build_chain(configs: list[ProviderConfig]) -> list[BaseProvider]:
    """Instantiate an ordered fallback chain from configs."""
    return [get_provider(config) for config in configs]


def list_providers() -> list[str]:
    """List all registered provider names."""
    for name in BUILTIN_PROVIDERS:
        if name not in _REGISTRY:
            _try_lazy_import(name)
    return sorted(_REGISTRY.keys())


def _try_lazy_import(name: str):
    """Import and register a built-in provider.

    The SDKs themselves are imported on first use inside each provider,
    so registering never needs them installed.
    """
    if name == "gemini":
        from lancards.providers.gemini_provider import GeminiProvider
        register_provider("gemini", GeminiProvider)
    elif name == "openai":
        from lancards.providers.openai_provider import OpenAIProvider
        register_provider("openai", OpenAIProvider)
    elif name == "anthropic":
        from lancards.providers.anthropic_provider import AnthropicProvider
        register_provider("anthropic", AnthropicProvider)
    elif name == "ollama":
        from lancards.providers.ollama_provider import OllamaProvider
        register_provider("ollama", OllamaProvider)
    elif name == "offline":
        from lancards.providers.offline_provider import OfflineProvider
        register_provider("offline", OfflineProvider)

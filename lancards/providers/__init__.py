"""
Generation Provider Layer
==========================
Provider-agnostic interface for card generation.
Supports Gemini, OpenAI, Anthropic, Ollama, and a deterministic offline provider.
"""

from lancards.providers.base import (
    BaseProvider, ImageInput, ProviderConfig, ProviderErrorKind, ProviderKind,
    ProviderResponse, classify_error,
)
from lancards.providers.registry import (
    build_chain, get_provider, list_providers, register_provider,
)

__all__ = [
    "BaseProvider", "ImageInput", "ProviderConfig", "ProviderErrorKind",
    "ProviderKind", "ProviderResponse", "classify_error",
    "build_chain", "get_provider", "list_providers", "register_provider",
]

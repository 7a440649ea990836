"""
Generation Provider Base — Abstract Interface
==============================================
Provider-agnostic interface for card generation.
All providers (Gemini, OpenAI, Anthropic, Ollama, Offline) implement this.

Contract:
    generate(system_prompt, user_prompt, schema=None, images=None)
        -> ProviderResponse

A provider never raises from generate(). Failures come back as a
ProviderResponse with `error` set and an `error_kind` the orchestrator
uses to decide whether to advance the fallback chain.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Any


class ProviderKind(Enum):
    """The closed set of provider strategies."""

    STRUCTURED = "structured"      # native response-schema enforcement
    CHAT_SCHEMA = "chat_schema"    # chat completion with a JSON schema format
    REASONING = "reasoning"        # reasoning-effort model, schema via prompt
    OFFLINE = "offline"            # deterministic, never fails


class ProviderErrorKind(Enum):
    UNAVAILABLE = "unavailable"            # not configured, SDK missing, overloaded
    AUTH_FAILURE = "auth_failure"          # rejected credentials
    TRANSPORT = "transport"                # network / timeout / unexpected API error
    CAPABILITY_MISMATCH = "capability"     # e.g. images or schema not supported
    MALFORMED_OUTPUT = "malformed"         # text came back but no card field was recoverable


@dataclass
class ProviderConfig:
    """Configuration for a generation provider.

    Only populate the fields that apply to your chosen backend.
    """

    provider_name: str          # "gemini", "openai", "anthropic", "ollama", "offline"
    model: str = ""             # Model name (e.g., "gemini-2.0-flash", "gpt-4o")
    api_key: str = ""           # API key (not needed for Ollama / offline)
    base_url: str = ""          # Custom endpoint (for Ollama, proxies, etc.)
    temperature: float = 0.4
    max_tokens: int = 2048
    timeout: float = 60.0       # Per-request timeout in seconds
    reasoning_effort: str = "medium"   # "low" | "medium" | "high"
    extra: dict[str, Any] = field(default_factory=dict)  # Provider-specific options


@dataclass
class ImageInput:
    """An image sent alongside the prompt (image-grounded generation)."""

    data: bytes
    mime_type: str = "image/jpeg"


@dataclass
class ProviderResponse:
    """Standardized response from any provider."""

    content: str                # The generated text
    model: str = ""             # Which model was actually used
    provider: str = ""          # Which provider backend
    tokens_used: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    finish_reason: str = ""     # "stop", "length", "error", etc.
    raw_response: Any = None    # The raw provider response object
    error: Optional[str] = None
    error_kind: Optional[ProviderErrorKind] = None

    @property
    def success(self) -> bool:
        return self.error is None and len(self.content) > 0


def classify_error(exc: BaseException) -> ProviderErrorKind:
    """Map an SDK or transport exception onto a ProviderErrorKind.

    Works from HTTP status codes where the SDK exposes them (openai and
    anthropic use `status_code`, google-genai uses `code`) and falls
    back to the exception type.
    """
    if isinstance(exc, ImportError):
        return ProviderErrorKind.UNAVAILABLE

    status = getattr(exc, "status_code", None)
    if not isinstance(status, int):
        status = getattr(exc, "code", None)
    if isinstance(status, int):
        if status in (401, 403):
            return ProviderErrorKind.AUTH_FAILURE
        if status in (400, 404, 415, 422):
            return ProviderErrorKind.CAPABILITY_MISMATCH
        if status == 429 or status >= 500:
            return ProviderErrorKind.UNAVAILABLE

    name = type(exc).__name__.lower()
    if "auth" in name or "permission" in name:
        return ProviderErrorKind.AUTH_FAILURE
    if "timeout" in name or "connection" in name:
        return ProviderErrorKind.TRANSPORT
    if isinstance(exc, (ConnectionError, TimeoutError, OSError)):
        return ProviderErrorKind.TRANSPORT
    return ProviderErrorKind.TRANSPORT


class BaseProvider(ABC):
    """Abstract base class for generation providers.

    All providers must implement:
        - generate(): Send system + user prompt, get raw text back
        - is_available(): Check if the provider is configured
    """

    kind: ProviderKind = ProviderKind.CHAT_SCHEMA
    supports_schema: bool = False
    supports_images: bool = False

    def __init__(self, config: ProviderConfig):
        self.config = config

    @abstractmethod
    def generate(self, system_prompt: str, user_prompt: str,
                 schema: Optional[dict] = None,
                 images: Optional[list[ImageInput]] = None) -> ProviderResponse:
        """Generate a response from the model.

        Args:
            system_prompt: The instruction prompt.
            user_prompt: The user turn (destination + verbatim question).
            schema: JSON schema the output must follow, if enforceable.
            images: Images for image-grounded generation.

        Returns:
            ProviderResponse with the raw generated text.
        """
        ...

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the provider is configured and reachable."""
        ...

    def failure(self, exc: BaseException, kind: Optional[ProviderErrorKind] = None) -> ProviderResponse:
        return ProviderResponse(
            content="",
            model=self.config.model,
            provider=self.name,
            finish_reason="error",
            error=str(exc) or type(exc).__name__,
            error_kind=kind or classify_error(exc),
        )

    def unsupported_images(self) -> ProviderResponse:
        return ProviderResponse(
            content="",
            model=self.config.model,
            provider=self.name,
            finish_reason="error",
            error=f"{self.name} does not accept images",
            error_kind=ProviderErrorKind.CAPABILITY_MISMATCH,
        )

    @property
    def name(self) -> str:
        return self.config.provider_name

    @property
    def model(self) -> str:
        return self.config.model

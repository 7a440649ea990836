"""
Gemini Provider — Google AI, Structured Output
===============================================
Uses the google-genai SDK with a native response schema, so the model
is constrained to emit the card JSON directly.
Install: pip install google-genai
"""

from __future__ import annotations

from typing import Optional

from lancards.providers.base import (
    BaseProvider, ImageInput, ProviderConfig, ProviderKind, ProviderResponse,
)


class GeminiProvider(BaseProvider):
    """Google Gemini provider (structured-schema strategy)."""

    DEFAULT_MODEL = "gemini-2.0-flash"

    kind = ProviderKind.STRUCTURED
    supports_schema = True
    supports_images = True

    def __init__(self, config: ProviderConfig):
        super().__init__(config)
        if not config.model:
            config.model = self.DEFAULT_MODEL
        self._client = None

    def _get_client(self):
        if self._client is None:
            try:
                from google import genai
                self._client = genai.Client(api_key=self.config.api_key)
            except ImportError:
                raise ImportError(
                    "Gemini provider requires 'google-genai'. "
                    "Install with: pip install google-genai"
                )
        return self._client

    def generate(self, system_prompt: str, user_prompt: str,
                 schema: Optional[dict] = None,
                 images: Optional[list[ImageInput]] = None) -> ProviderResponse:
        try:
            from google.genai import types as genai_types

            client = self._get_client()
            config_kwargs = {
                "temperature": self.config.temperature,
                "max_output_tokens": self.config.max_tokens,
            }
            if system_prompt:
                config_kwargs["system_instruction"] = system_prompt
            if schema:
                config_kwargs["response_mime_type"] = "application/json"
                config_kwargs["response_schema"] = schema
            gen_config = genai_types.GenerateContentConfig(**config_kwargs)

            contents = [
                genai_types.Part.from_bytes(data=image.data, mime_type=image.mime_type)
                for image in images or []
            ]
            contents.append(user_prompt)

            response = client.models.generate_content(
                model=self.config.model,
                contents=contents,
                config=gen_config,
            )

            usage = getattr(response, "usage_metadata", None)
            return ProviderResponse(
                content=response.text or "",
                model=self.config.model,
                provider=self.name,
                tokens_used=(getattr(usage, "total_token_count", 0) or 0) if usage else 0,
                raw_response=response,
                finish_reason="stop",
            )
        except Exception as e:
            return self.failure(e)

    def is_available(self) -> bool:
        return bool(self.config.api_key)

"""
OpenAI Provider — Chat Completions with a JSON Schema
======================================================
Uses the openai SDK. The card schema is sent as a `json_schema`
response format so the reply is a single JSON object.
Install: pip install openai
"""

from __future__ import annotations

import base64
import copy
from typing import Optional

from lancards.providers.base import (
    BaseProvider, ImageInput, ProviderConfig, ProviderKind, ProviderResponse,
)


def strict_json_schema(schema: dict) -> dict:
    """Adapt a schema to OpenAI's strict mode.

    Strict mode wants additionalProperties=false on every object and does
    not accept item-count bounds, so those are dropped (the orchestrator
    normalizes the bullet count anyway).
    """
    adapted = copy.deepcopy(schema)

    def _walk(node):
        if not isinstance(node, dict):
            return
        node.pop("minItems", None)
        node.pop("maxItems", None)
        if node.get("type") == "object":
            node["additionalProperties"] = False
            for child in node.get("properties", {}).values():
                _walk(child)
        if node.get("type") == "array":
            _walk(node.get("items"))

    _walk(adapted)
    return adapted


class OpenAIProvider(BaseProvider):
    """OpenAI provider (chat-completion-with-JSON-schema strategy)."""

    DEFAULT_MODEL = "gpt-4o"

    kind = ProviderKind.CHAT_SCHEMA
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
                import openai
                kwargs = {"api_key": self.config.api_key, "timeout": self.config.timeout}
                if self.config.base_url:
                    kwargs["base_url"] = self.config.base_url
                self._client = openai.OpenAI(**kwargs)
            except ImportError:
                raise ImportError(
                    "OpenAI provider requires 'openai'. "
                    "Install with: pip install openai"
                )
        return self._client

    def _user_content(self, user_prompt: str, images: Optional[list[ImageInput]]):
        if not images:
            return user_prompt
        parts = [{"type": "text", "text": user_prompt}]
        for image in images:
            encoded = base64.b64encode(image.data).decode("ascii")
            parts.append({
                "type": "image_url",
                "image_url": {"url": f"data:{image.mime_type};base64,{encoded}"},
            })
        return parts

    def generate(self, system_prompt: str, user_prompt: str,
                 schema: Optional[dict] = None,
                 images: Optional[list[ImageInput]] = None) -> ProviderResponse:
        try:
            client = self._get_client()

            messages = []
            if system_prompt:
                messages.append({"role": "system", "content": system_prompt})
            messages.append({"role": "user", "content": self._user_content(user_prompt, images)})

            kwargs = {
                "model": self.config.model,
                "messages": messages,
                "temperature": self.config.temperature,
                "max_tokens": self.config.max_tokens,
            }
            if schema:
                kwargs["response_format"] = {
                    "type": "json_schema",
                    "json_schema": {
                        "name": "cultural_card",
                        "schema": strict_json_schema(schema),
                        "strict": True,
                    },
                }

            response = client.chat.completions.create(**kwargs)

            choice = response.choices[0] if response.choices else None
            usage = response.usage

            return ProviderResponse(
                content=(choice.message.content or "") if choice else "",
                model=self.config.model,
                provider=self.name,
                tokens_used=(usage.total_tokens if usage else 0),
                prompt_tokens=(usage.prompt_tokens if usage else 0),
                completion_tokens=(usage.completion_tokens if usage else 0),
                finish_reason=(choice.finish_reason if choice else "error"),
                raw_response=response,
            )
        except Exception as e:
            return self.failure(e)

    def is_available(self) -> bool:
        return bool(self.config.api_key)

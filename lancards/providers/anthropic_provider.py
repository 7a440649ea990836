"""
Anthropic Provider — Reasoning Effort via Extended Thinking
============================================================
Uses the anthropic SDK. The configured reasoning effort is turned into
an extended-thinking token budget; the card format is requested in the
system prompt since the Messages API has no response schema.
Install: pip install anthropic
"""

from __future__ import annotations

import base64
from typing import Optional

from lancards.providers.base import (
    BaseProvider, ImageInput, ProviderConfig, ProviderKind, ProviderResponse,
)

THINKING_BUDGETS = {
    "low": 1024,
    "medium": 4096,
    "high": 16384,
}

# Room left for the visible answer on top of the thinking budget.
ANSWER_TOKENS = 2048


class AnthropicProvider(BaseProvider):
    """Anthropic provider (reasoning-effort strategy)."""

    DEFAULT_MODEL = "claude-sonnet-4-20250514"

    kind = ProviderKind.REASONING
    supports_schema = False
    supports_images = True

    def __init__(self, config: ProviderConfig):
        super().__init__(config)
        if not config.model:
            config.model = self.DEFAULT_MODEL
        self._client = None

    def _get_client(self):
        if self._client is None:
            try:
                import anthropic
                kwargs = {"api_key": self.config.api_key, "timeout": self.config.timeout}
                if self.config.base_url:
                    kwargs["base_url"] = self.config.base_url
                self._client = anthropic.Anthropic(**kwargs)
            except ImportError:
                raise ImportError(
                    "Anthropic provider requires 'anthropic'. "
                    "Install with: pip install anthropic"
                )
        return self._client

    @property
    def thinking_budget(self) -> int:
        effort = (self.config.reasoning_effort or "medium").lower()
        return THINKING_BUDGETS.get(effort, THINKING_BUDGETS["medium"])

    def _user_content(self, user_prompt: str, images: Optional[list[ImageInput]]):
        if not images:
            return user_prompt
        parts = []
        for image in images:
            parts.append({
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": image.mime_type,
                    "data": base64.b64encode(image.data).decode("ascii"),
                },
            })
        parts.append({"type": "text", "text": user_prompt})
        return parts

    def generate(self, system_prompt: str, user_prompt: str,
                 schema: Optional[dict] = None,
                 images: Optional[list[ImageInput]] = None) -> ProviderResponse:
        try:
            client = self._get_client()

            budget = self.thinking_budget
            kwargs = {
                "model": self.config.model,
                "max_tokens": max(self.config.max_tokens, budget + ANSWER_TOKENS),
                "messages": [{"role": "user", "content": self._user_content(user_prompt, images)}],
                "thinking": {"type": "enabled", "budget_tokens": budget},
            }
            if system_prompt:
                kwargs["system"] = system_prompt

            response = client.messages.create(**kwargs)

            content = ""
            if response.content:
                content = "".join(
                    block.text for block in response.content
                    if getattr(block, "type", "text") == "text" and hasattr(block, "text")
                )

            return ProviderResponse(
                content=content,
                model=self.config.model,
                provider=self.name,
                tokens_used=(response.usage.input_tokens + response.usage.output_tokens
                             if response.usage else 0),
                prompt_tokens=(response.usage.input_tokens if response.usage else 0),
                completion_tokens=(response.usage.output_tokens if response.usage else 0),
                finish_reason=response.stop_reason or "stop",
                raw_response=response,
            )
        except Exception as e:
            return self.failure(e)

    def is_available(self) -> bool:
        return bool(self.config.api_key)

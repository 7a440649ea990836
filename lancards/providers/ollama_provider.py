"""
Ollama Provider — Schema-Constrained Local Models
==================================================
Uses HTTP requests to Ollama's chat API. The card schema goes in the
`format` field, which Ollama enforces as structured output.
Install: https://ollama.com (no pip dependency needed)
"""

from __future__ import annotations

import base64
import json
import urllib.error
import urllib.request
from typing import Optional

from lancards.providers.base import (
    BaseProvider, ImageInput, ProviderConfig, ProviderErrorKind, ProviderKind,
    ProviderResponse,
)


class OllamaProvider(BaseProvider):
    """Card generation on a local Ollama server.

    Plain urllib against /api/chat. Unavailable until the server answers
    /api/tags and lists the configured model.
    """

    DEFAULT_MODEL = "llama3.1"
    DEFAULT_BASE_URL = "http://localhost:11434"

    kind = ProviderKind.CHAT_SCHEMA
    supports_schema = True
    supports_images = True   # with a vision model such as llava

    def __init__(self, config: ProviderConfig):
        super().__init__(config)
        if not config.model:
            config.model = self.DEFAULT_MODEL
        if not config.base_url:
            config.base_url = self.DEFAULT_BASE_URL

    def generate(self, system_prompt: str, user_prompt: str,
                 schema: Optional[dict] = None,
                 images: Optional[list[ImageInput]] = None) -> ProviderResponse:
        try:
            url = f"{self.config.base_url}/api/chat"

            user_message = {"role": "user", "content": user_prompt}
            if images:
                user_message["images"] = [
                    base64.b64encode(image.data).decode("ascii") for image in images
                ]

            messages = []
            if system_prompt:
                messages.append({"role": "system", "content": system_prompt})
            messages.append(user_message)

            payload = {
                "model": self.config.model,
                "messages": messages,
                "stream": False,
                "options": {
                    "temperature": self.config.temperature,
                    "num_predict": self.config.max_tokens,
                },
            }
            if schema:
                payload["format"] = schema

            data = json.dumps(payload).encode("utf-8")
            req = urllib.request.Request(
                url,
                data=data,
                headers={"Content-Type": "application/json"},
                method="POST",
            )

            with urllib.request.urlopen(req, timeout=self.config.timeout) as resp:
                result = json.loads(resp.read().decode("utf-8"))

            return ProviderResponse(
                content=result.get("message", {}).get("content", ""),
                model=self.config.model,
                provider=self.name,
                tokens_used=result.get("eval_count", 0) + result.get("prompt_eval_count", 0),
                prompt_tokens=result.get("prompt_eval_count", 0),
                completion_tokens=result.get("eval_count", 0),
                finish_reason="stop" if result.get("done") else "length",
                raw_response=result,
            )
        except urllib.error.HTTPError as e:
            kind = ProviderErrorKind.CAPABILITY_MISMATCH if e.code in (400, 404) else ProviderErrorKind.UNAVAILABLE
            return self.failure(e, kind)
        except urllib.error.URLError as e:
            return self.failure(
                ConnectionError(f"Cannot reach Ollama at {self.config.base_url}: {e}"),
                ProviderErrorKind.TRANSPORT,
            )
        except Exception as e:
            return self.failure(e)

    def is_available(self) -> bool:
        """Check if Ollama is running and the model is available."""
        try:
            url = f"{self.config.base_url}/api/tags"
            req = urllib.request.Request(url, method="GET")
            with urllib.request.urlopen(req, timeout=5) as resp:
                result = json.loads(resp.read().decode("utf-8"))
            models = [m.get("name", "") for m in result.get("models", [])]
            return any(self.config.model in m for m in models)
        except Exception:
            return False

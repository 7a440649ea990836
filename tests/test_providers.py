"""
LanCards Test Suite — Generation Providers
===========================================
Each provider is exercised against a mocked SDK client or transport, so
no API keys or network access are needed.

Usage:
    python -m pytest tests/test_providers.py -v
"""
import sys
import os
import io
import json
import unittest
import urllib.error
from types import SimpleNamespace
from unittest import mock

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from lancards.extractor import CARD_SCHEMA, ExtractionTier, extract
from lancards.models import CulturalCategory
from lancards.prompts import PromptBuilder
from lancards.providers import (
    ImageInput, ProviderConfig, ProviderErrorKind, ProviderKind, classify_error,
    get_provider, list_providers,
)
from lancards.providers.anthropic_provider import AnthropicProvider
from lancards.providers.gemini_provider import GeminiProvider
from lancards.providers.offline_provider import OfflineProvider, canned_card
from lancards.providers.ollama_provider import OllamaProvider
from lancards.providers.openai_provider import OpenAIProvider, strict_json_schema

CARD_JSON = json.dumps({
    "title": "Gift Etiquette",
    "category": "Gift Giving & Entertainment",
    "nameCard": "Gift\n贈り物",
    "keyKnowledge": ["🎁 a", "🎀 b", "🙏 c", "🚫 d"],
    "culturalInsights": "Gifts matter.",
}, ensure_ascii=False)


class StatusError(Exception):
    def __init__(self, status_code):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


# ─────────────────────────────────────────────
#  Error Classification
# ─────────────────────────────────────────────

class TestClassifyError(unittest.TestCase):

    def test_status_codes(self):
        self.assertEqual(classify_error(StatusError(401)), ProviderErrorKind.AUTH_FAILURE)
        self.assertEqual(classify_error(StatusError(403)), ProviderErrorKind.AUTH_FAILURE)
        self.assertEqual(classify_error(StatusError(400)), ProviderErrorKind.CAPABILITY_MISMATCH)
        self.assertEqual(classify_error(StatusError(429)), ProviderErrorKind.UNAVAILABLE)
        self.assertEqual(classify_error(StatusError(503)), ProviderErrorKind.UNAVAILABLE)

    def test_missing_sdk_is_unavailable(self):
        self.assertEqual(classify_error(ImportError("no sdk")), ProviderErrorKind.UNAVAILABLE)

    def test_network_errors_are_transport(self):
        self.assertEqual(classify_error(ConnectionError()), ProviderErrorKind.TRANSPORT)
        self.assertEqual(classify_error(TimeoutError()), ProviderErrorKind.TRANSPORT)
        self.assertEqual(classify_error(RuntimeError("?")), ProviderErrorKind.TRANSPORT)


# ─────────────────────────────────────────────
#  Registry
# ─────────────────────────────────────────────

class TestRegistry(unittest.TestCase):

    def test_builtins_registered(self):
        names = list_providers()
        for name in ("gemini", "openai", "anthropic", "ollama", "offline"):
            self.assertIn(name, names)

    def test_get_provider_kinds(self):
        self.assertIsInstance(get_provider(ProviderConfig("gemini")), GeminiProvider)
        self.assertEqual(get_provider(ProviderConfig("openai")).kind, ProviderKind.CHAT_SCHEMA)
        self.assertEqual(get_provider(ProviderConfig("anthropic")).kind, ProviderKind.REASONING)
        self.assertEqual(get_provider(ProviderConfig("offline")).kind, ProviderKind.OFFLINE)

    def test_unknown_provider(self):
        with self.assertRaises(ValueError):
            get_provider(ProviderConfig("nonexistent"))


# ─────────────────────────────────────────────
#  SDK Providers
# ─────────────────────────────────────────────

class TestOpenAIProvider(unittest.TestCase):

    def _provider(self, response=None, error=None):
        provider = OpenAIProvider(ProviderConfig("openai", api_key="sk-test"))
        client = mock.MagicMock()
        if error is not None:
            client.chat.completions.create.side_effect = error
        else:
            client.chat.completions.create.return_value = response
        provider._client = client
        return provider, client

    def test_generate_with_schema(self):
        response = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=CARD_JSON), finish_reason="stop")],
            usage=SimpleNamespace(total_tokens=30, prompt_tokens=20, completion_tokens=10),
        )
        provider, client = self._provider(response)
        result = provider.generate("system", "user", schema=CARD_SCHEMA)

        self.assertTrue(result.success)
        self.assertEqual(result.content, CARD_JSON)
        self.assertEqual(result.tokens_used, 30)
        kwargs = client.chat.completions.create.call_args.kwargs
        self.assertEqual(kwargs["model"], "gpt-4o")
        self.assertEqual(kwargs["response_format"]["type"], "json_schema")
        self.assertTrue(kwargs["response_format"]["json_schema"]["strict"])
        self.assertEqual(kwargs["messages"][0], {"role": "system", "content": "system"})

    def test_images_sent_as_data_urls(self):
        response = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="{}"), finish_reason="stop")],
            usage=None,
        )
        provider, client = self._provider(response)
        provider.generate("s", "u", images=[ImageInput(b"\x89PNG", "image/png")])
        content = client.chat.completions.create.call_args.kwargs["messages"][-1]["content"]
        self.assertEqual(content[0], {"type": "text", "text": "u"})
        self.assertTrue(content[1]["image_url"]["url"].startswith("data:image/png;base64,"))

    def test_failure_is_returned_not_raised(self):
        provider, _ = self._provider(error=StatusError(401))
        result = provider.generate("s", "u")
        self.assertFalse(result.success)
        self.assertEqual(result.error_kind, ProviderErrorKind.AUTH_FAILURE)

    def test_strict_schema_adaptation(self):
        adapted = strict_json_schema(CARD_SCHEMA)
        self.assertFalse(adapted["additionalProperties"])
        self.assertNotIn("minItems", adapted["properties"]["keyKnowledge"])
        self.assertIn("minItems", CARD_SCHEMA["properties"]["keyKnowledge"])

    def test_availability_needs_key(self):
        self.assertFalse(OpenAIProvider(ProviderConfig("openai")).is_available())


class TestGeminiProvider(unittest.TestCase):

    def test_generate_uses_response_schema(self):
        provider = GeminiProvider(ProviderConfig("gemini", api_key="g-test"))
        client = mock.MagicMock()
        client.models.generate_content.return_value = SimpleNamespace(
            text=CARD_JSON, usage_metadata=SimpleNamespace(total_token_count=42))
        provider._client = client

        result = provider.generate("system", "user", schema=CARD_SCHEMA)

        self.assertTrue(result.success)
        self.assertEqual(result.tokens_used, 42)
        kwargs = client.models.generate_content.call_args.kwargs
        self.assertEqual(kwargs["model"], "gemini-2.0-flash")
        self.assertEqual(kwargs["contents"], ["user"])
        self.assertEqual(kwargs["config"].response_mime_type, "application/json")

    def test_sdk_error_becomes_failure(self):
        provider = GeminiProvider(ProviderConfig("gemini", api_key="g-test"))
        client = mock.MagicMock()
        client.models.generate_content.side_effect = StatusError(503)
        provider._client = client
        result = provider.generate("s", "u", schema=CARD_SCHEMA)
        self.assertEqual(result.error_kind, ProviderErrorKind.UNAVAILABLE)


class TestAnthropicProvider(unittest.TestCase):

    def _provider(self, effort="medium"):
        provider = AnthropicProvider(ProviderConfig("anthropic", api_key="a-test",
                                                    reasoning_effort=effort))
        client = mock.MagicMock()
        client.messages.create.return_value = SimpleNamespace(
            content=[
                SimpleNamespace(type="thinking", thinking="Let me think..."),
                SimpleNamespace(type="text", text=CARD_JSON),
            ],
            usage=SimpleNamespace(input_tokens=100, output_tokens=50),
            stop_reason="end_turn",
        )
        provider._client = client
        return provider, client

    def test_only_text_blocks_returned(self):
        provider, _ = self._provider()
        result = provider.generate("system", "user")
        self.assertEqual(result.content, CARD_JSON)
        self.assertEqual(result.tokens_used, 150)

    def test_effort_sets_thinking_budget(self):
        for effort, budget in (("low", 1024), ("medium", 4096), ("high", 16384)):
            provider, client = self._provider(effort)
            provider.generate("s", "u")
            kwargs = client.messages.create.call_args.kwargs
            self.assertEqual(kwargs["thinking"], {"type": "enabled", "budget_tokens": budget})
            self.assertGreater(kwargs["max_tokens"], budget)
            self.assertNotIn("temperature", kwargs)

    def test_no_native_schema(self):
        self.assertFalse(AnthropicProvider.supports_schema)


class TestOllamaProvider(unittest.TestCase):

    def _urlopen(self, payload):
        response = mock.MagicMock()
        response.read.return_value = json.dumps(payload).encode("utf-8")
        response.__enter__.return_value = response
        return response

    def test_schema_sent_as_format(self):
        provider = OllamaProvider(ProviderConfig("ollama"))
        reply = {"message": {"content": CARD_JSON}, "done": True,
                 "eval_count": 5, "prompt_eval_count": 7}
        with mock.patch("urllib.request.urlopen", return_value=self._urlopen(reply)) as urlopen:
            result = provider.generate("s", "u", schema=CARD_SCHEMA,
                                       images=[ImageInput(b"img")])

        self.assertTrue(result.success)
        self.assertEqual(result.tokens_used, 12)
        request = urlopen.call_args.args[0]
        body = json.loads(request.data.decode("utf-8"))
        self.assertEqual(request.full_url, "http://localhost:11434/api/chat")
        self.assertEqual(body["format"], CARD_SCHEMA)
        self.assertEqual(body["messages"][-1]["images"], ["aW1n"])

    def test_unreachable_is_transport(self):
        provider = OllamaProvider(ProviderConfig("ollama"))
        with mock.patch("urllib.request.urlopen", side_effect=urllib.error.URLError("refused")):
            result = provider.generate("s", "u")
        self.assertEqual(result.error_kind, ProviderErrorKind.TRANSPORT)

    def test_unknown_model_is_capability_mismatch(self):
        provider = OllamaProvider(ProviderConfig("ollama"))
        error = urllib.error.HTTPError("http://x", 404, "not found", {}, io.BytesIO(b""))
        with mock.patch("urllib.request.urlopen", side_effect=error):
            result = provider.generate("s", "u")
        self.assertEqual(result.error_kind, ProviderErrorKind.CAPABILITY_MISMATCH)


# ─────────────────────────────────────────────
#  Offline Provider
# ─────────────────────────────────────────────

class TestOfflineProvider(unittest.TestCase):

    def setUp(self):
        self.provider = OfflineProvider()
        self.builder = PromptBuilder()

    def _ask(self, destination, question):
        prompt = self.builder.build(destination, question)
        return self.provider.generate(prompt.system, prompt.user)

    def test_always_available_and_succeeds(self):
        self.assertTrue(self.provider.is_available())
        self.assertTrue(self._ask("Nowhere", "anything at all").success)

    def test_output_is_strict_card_json(self):
        insight = extract(self._ask("Japan", "How do I greet people?").content)
        self.assertEqual(insight.tier, ExtractionTier.STRICT)
        self.assertEqual(insight.category, CulturalCategory.GREETING_CUSTOMS.value)
        self.assertEqual(insight.name_card, "Respect\n尊敬")

    def test_keyword_selection(self):
        self.assertEqual(canned_card("Germany", "business meeting tips")["category"],
                         CulturalCategory.BUSINESS_ETIQUETTE.value)
        self.assertEqual(canned_card("Germany", "What should I eat?")["category"],
                         CulturalCategory.DINING_CULTURE.value)
        self.assertEqual(canned_card("Germany", "weather?")["category"],
                         CulturalCategory.SOCIAL_CUSTOMS.value)

    def test_deterministic(self):
        self.assertEqual(self._ask("Korea", "gift ideas").content,
                         self._ask("Korea", "gift ideas").content)

    def test_every_answer_has_four_bullets(self):
        for question in ("hello", "meeting", "food", "gift", "other"):
            self.assertEqual(len(canned_card("France", question)["keyKnowledge"]), 4)


if __name__ == "__main__":
    unittest.main(verbosity=2)

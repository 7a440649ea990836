"""
LanCards Test Suite — Generation Orchestrator
==============================================
Fallback chain, extraction fallbacks, defaults, bilingual splitting,
progress and cancellation. Uses mock providers to avoid API calls.

Usage:
    python -m pytest tests/test_orchestrator.py -v
    python tests/test_orchestrator.py
"""
import sys
import os
import json
import threading
import time
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from lancards.errors import GenerationCancelled, GenerationFailed, ValidationError
from lancards.extractor import ExtractionTier
from lancards.models import CulturalCategory, Destination
from lancards.orchestrator import (
    PHASE_ANALYZING, PHASE_COMPLETE, PHASE_GENERATING, PHASE_IDLE, PHASE_PROCESSING,
    CancellationToken, GenerationOrchestrator,
)
from lancards.providers.base import (
    BaseProvider, ProviderConfig, ProviderErrorKind, ProviderKind, ProviderResponse,
)
from lancards.providers.offline_provider import OfflineProvider


# ─────────────────────────────────────────────
#  Mock Provider
# ─────────────────────────────────────────────

class MockProvider(BaseProvider):
    """Mock provider that returns predictable responses."""

    kind = ProviderKind.CHAT_SCHEMA
    supports_schema = True
    supports_images = False

    def __init__(self, response_text="", error_kind=None, name="mock", on_call=None):
        super().__init__(ProviderConfig(provider_name=name, model="mock-model"))
        self.response_text = response_text
        self.error_kind = error_kind
        self.on_call = on_call
        self.call_count = 0
        self.last_schema = None
        self.last_user = ""

    def generate(self, system_prompt, user_prompt, schema=None, images=None):
        self.call_count += 1
        self.last_schema = schema
        self.last_user = user_prompt
        if self.on_call:
            self.on_call()
        if self.error_kind is not None:
            return ProviderResponse(content="", provider=self.name, error="Mock failure",
                                    error_kind=self.error_kind)
        return ProviderResponse(content=self.response_text, provider=self.name, model="mock-model")

    def is_available(self) -> bool:
        return True


GREETING = {
    "title": "Business Greeting Etiquette",
    "category": "Greeting Customs & Personal Space",
    "nameCard": "Respect\n尊敬",
    "keyKnowledge": [
        "🙇 Offer a slight bow",
        "👴 Wait for the senior person",
        "⏳ Don't rush the greeting",
        "🤝 Use a gentle grip",
    ],
    "culturalInsights": "The bow shows respect and hierarchy awareness.",
}


def _json(data):
    return json.dumps(data, ensure_ascii=False)


# ─────────────────────────────────────────────
#  Happy Path
# ─────────────────────────────────────────────

class TestGenerate(unittest.TestCase):

    def test_strict_response_used_exactly(self):
        provider = MockProvider(_json(GREETING))
        orchestrator = GenerationOrchestrator([provider])
        result = orchestrator.generate_with_report("Japan", "How do I greet?")
        card = result.card

        self.assertEqual(card.title, GREETING["title"])
        self.assertEqual(card.category, CulturalCategory.GREETING_CUSTOMS)
        self.assertEqual(card.name_card_app, "Respect")
        self.assertEqual(card.name_card_local, "尊敬")
        self.assertEqual(card.key_knowledge, GREETING["keyKnowledge"])
        self.assertEqual(card.cultural_insights, GREETING["culturalInsights"])
        self.assertEqual(card.question, "How do I greet?")
        self.assertEqual(card.destination, "Japan")
        self.assertTrue(card.is_ai_generated)
        self.assertEqual(card.problems(), [])

        self.assertEqual(result.report.tier, ExtractionTier.STRICT)
        self.assertEqual(result.report.defaulted, [])
        self.assertEqual(result.report.provider, "mock")

    def test_strict_bullets_without_glyphs_kept_verbatim(self):
        bullets = ["Bow slightly", "Wait for seniors", "Use both hands", "Be patient"]
        data = dict(GREETING, keyKnowledge=bullets, title="  Spaced title ")
        card = GenerationOrchestrator([MockProvider(_json(data))]).generate("Japan", "q")
        self.assertEqual(card.key_knowledge, bullets)
        self.assertEqual(card.title, "  Spaced title ")

    def test_schema_passed_to_schema_providers(self):
        provider = MockProvider(_json(GREETING))
        GenerationOrchestrator([provider]).generate("Japan", "q")
        self.assertEqual(provider.last_schema["required"],
                         ["title", "category", "nameCard", "keyKnowledge", "culturalInsights"])

    def test_destination_object_uses_country(self):
        provider = MockProvider(_json(dict(GREETING, nameCard="Respect")))
        destination = Destination(name="Tokyo office", flag="🇯🇵", country="Japan")
        card = GenerationOrchestrator([provider]).generate(destination, "q")
        self.assertIn("Destination: Tokyo office", provider.last_user)
        self.assertEqual(card.name_card_local, "尊敬")

    def test_single_segment_without_translation(self):
        provider = MockProvider(_json(dict(GREETING, nameCard="Serendipity")))
        card = GenerationOrchestrator([provider]).generate("Japan", "q")
        self.assertEqual(card.name_card_app, "Serendipity")
        self.assertIsNone(card.name_card_local)

    def test_unknown_category_defaults_to_social_customs(self):
        provider = MockProvider(_json(dict(GREETING, category="Business Etiquette")))
        card = GenerationOrchestrator([provider]).generate("Japan", "q")
        self.assertEqual(card.category, CulturalCategory.SOCIAL_CUSTOMS)

    def test_recovered_bullets_normalized_to_four(self):
        data = dict(GREETING, keyKnowledge=["DON'T be late", "DO: bring cards", "Smile",
                                            "a", "b", "c"])
        card = GenerationOrchestrator([MockProvider(_json(data))]).generate("Japan", "q")
        self.assertEqual(len(card.key_knowledge), 4)
        self.assertEqual(card.key_knowledge[0], "🚫 DON'T be late")
        self.assertEqual(card.key_knowledge[1], "✅ DO: bring cards")
        self.assertEqual(card.key_knowledge[2], "👋 Smile")


# ─────────────────────────────────────────────
#  Extraction Fallbacks
# ─────────────────────────────────────────────

class TestExtractionFallbacks(unittest.TestCase):

    def test_malformed_json_recovers_fields(self):
        text = _json(GREETING)[:-60]
        result = GenerationOrchestrator([MockProvider(text)]).generate_with_report("Japan", "q")
        card = result.card

        self.assertEqual(card.title, GREETING["title"])
        self.assertEqual(card.name_card_app, "Respect")
        self.assertEqual(card.key_knowledge, GREETING["keyKnowledge"])
        self.assertTrue(card.cultural_insights)
        self.assertEqual(result.report.tier, ExtractionTier.PATTERN)
        self.assertEqual(result.report.defaulted, ["culturalInsights"])

    def test_unparseable_text_advances_the_chain(self):
        refusing = MockProvider("I'm sorry, I can't help with that.")
        offline = OfflineProvider()
        result = GenerationOrchestrator([refusing, offline]).generate_with_report(
            "Japan", "How should I bow?")

        self.assertEqual(refusing.call_count, 1)
        self.assertEqual(result.report.provider, "offline")
        self.assertEqual(result.report.tier, ExtractionTier.STRICT)
        self.assertEqual(result.report.attempts[0].error_kind, ProviderErrorKind.MALFORMED_OUTPUT)
        self.assertFalse(result.report.attempts[0].success)
        self.assertEqual(result.card.title, "Business Greeting Etiquette")

    def test_unparseable_text_from_last_provider_fully_defaulted(self):
        orchestrator = GenerationOrchestrator([MockProvider("Sorry, no idea.")], ensure_offline=False)
        result = orchestrator.generate_with_report("Germany", "q")
        card = result.card
        self.assertEqual(card.category, CulturalCategory.SOCIAL_CUSTOMS)
        self.assertEqual(len(card.key_knowledge), 4)
        self.assertIn("Germany", card.cultural_insights)
        self.assertEqual(card.name_card_app, "Relationships")
        self.assertEqual(result.report.tier, ExtractionTier.NONE)
        self.assertEqual(len(result.report.defaulted), 5)


# ─────────────────────────────────────────────
#  Fallback Chain
# ─────────────────────────────────────────────

class TestFallbackChain(unittest.TestCase):

    def test_failures_advance_in_order(self):
        first = MockProvider(error_kind=ProviderErrorKind.UNAVAILABLE, name="first")
        second = MockProvider(error_kind=ProviderErrorKind.AUTH_FAILURE, name="second")
        third = MockProvider(_json(GREETING), name="third")
        report = GenerationOrchestrator([first, second, third]).generate_with_report("Japan", "q").report

        self.assertEqual((first.call_count, second.call_count, third.call_count), (1, 1, 1))
        self.assertEqual(report.provider, "third")
        self.assertEqual([a.success for a in report.attempts], [False, False, True])
        self.assertTrue(report.used_fallback)

    def test_success_stops_the_chain(self):
        first = MockProvider(_json(GREETING), name="first")
        second = MockProvider(_json(GREETING), name="second")
        GenerationOrchestrator([first, second]).generate("Japan", "q")
        self.assertEqual(second.call_count, 0)

    def test_total_failure_lands_on_offline(self):
        providers = [MockProvider(error_kind=kind, name=kind.value) for kind in ProviderErrorKind]
        result = GenerationOrchestrator(providers).generate_with_report(
            "Japan", "How should I greet my partner?")
        card = result.card

        self.assertEqual(result.report.provider, "offline")
        self.assertEqual(len(card.key_knowledge), 4)
        self.assertIn(card.category, list(CulturalCategory))
        self.assertEqual(card.name_card_local, "尊敬")

    def test_offline_appended_once(self):
        orchestrator = GenerationOrchestrator([MockProvider(), OfflineProvider()])
        self.assertEqual(len(orchestrator.providers), 2)
        orchestrator = GenerationOrchestrator([MockProvider()])
        self.assertEqual(orchestrator.providers[-1].kind, ProviderKind.OFFLINE)

    def test_exhausted_chain_without_offline(self):
        failing = MockProvider(error_kind=ProviderErrorKind.TRANSPORT)
        orchestrator = GenerationOrchestrator([failing], ensure_offline=False)
        events = []
        with self.assertRaises(GenerationFailed) as ctx:
            orchestrator.generate("Japan", "q", on_progress=events.append)
        self.assertEqual(len(ctx.exception.attempts), 1)
        self.assertEqual(events[-1].phase, PHASE_IDLE)
        self.assertIn("Failed to generate cultural card", events[-1].error_message)

    def test_provider_that_raises_is_treated_as_failure(self):
        def boom():
            raise ConnectionError("socket closed")
        crashing = MockProvider(_json(GREETING), on_call=boom)
        report = GenerationOrchestrator([crashing]).generate_with_report("Japan", "q").report
        self.assertEqual(report.attempts[0].error_kind, ProviderErrorKind.TRANSPORT)
        self.assertEqual(report.provider, "offline")

    def test_image_skips_providers_without_vision(self):
        blind = MockProvider(_json(GREETING))
        result = GenerationOrchestrator([blind]).generate_from_image_with_report("Japan", b"jpeg-bytes")
        self.assertEqual(blind.call_count, 0)
        self.assertEqual(result.report.attempts[0].error_kind,
                         ProviderErrorKind.CAPABILITY_MISMATCH)
        self.assertEqual(len(result.card.key_knowledge), 4)

    def test_image_card(self):
        card = GenerationOrchestrator([]).generate_from_image("Japan", b"jpeg-bytes")
        self.assertEqual(len(card.key_knowledge), 4)


# ─────────────────────────────────────────────
#  Validation, Progress, Cancellation
# ─────────────────────────────────────────────

class TestValidationAndProgress(unittest.TestCase):

    def test_empty_question_fails_before_providers(self):
        provider = MockProvider(_json(GREETING))
        orchestrator = GenerationOrchestrator([provider])
        for question in ("", "   ", None):
            with self.assertRaises(ValidationError):
                orchestrator.generate("Japan", question)
        self.assertEqual(provider.call_count, 0)

    def test_empty_image_rejected(self):
        with self.assertRaises(ValidationError):
            GenerationOrchestrator([]).generate_from_image("Japan", b"")

    def test_progress_phases(self):
        orchestrator = GenerationOrchestrator([MockProvider(_json(GREETING))])
        events = []
        orchestrator.generate("Japan", "q", on_progress=events.append)
        self.assertEqual([e.phase for e in events],
                         [PHASE_ANALYZING, PHASE_GENERATING, PHASE_PROCESSING, PHASE_COMPLETE])
        self.assertFalse(events[-1].is_active)
        self.assertEqual(events[-1].provider, "mock")

    def test_concurrent_calls_report_only_their_own_progress(self):
        barrier = threading.Barrier(2, timeout=5)
        orchestrator = GenerationOrchestrator([MockProvider(_json(GREETING), on_call=barrier.wait)])
        seen = {"a": [], "b": []}
        results = {}

        def run(key):
            results[key] = orchestrator.generate_with_report(
                "Japan", f"question {key}", on_progress=seen[key].append)

        threads = [threading.Thread(target=run, args=(key,)) for key in seen]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        expected = [PHASE_ANALYZING, PHASE_GENERATING, PHASE_PROCESSING, PHASE_COMPLETE]
        self.assertEqual([e.phase for e in seen["a"]], expected)
        self.assertEqual([e.phase for e in seen["b"]], expected)
        self.assertEqual(results["a"].card.question, "question a")
        self.assertEqual(results["b"].card.question, "question b")
        self.assertIsNot(results["a"].report, results["b"].report)

    def test_broken_progress_callback_does_not_break_generation(self):
        def broken(progress):
            raise RuntimeError("observer crashed")
        card = GenerationOrchestrator([]).generate("Japan", "hello", on_progress=broken)
        self.assertEqual(len(card.key_knowledge), 4)

    def test_cancel_during_generation(self):
        token = CancellationToken()
        provider = MockProvider(_json(GREETING), on_call=token.cancel)
        events = []
        with self.assertRaises(GenerationCancelled):
            GenerationOrchestrator([provider]).generate("Japan", "q", cancel_token=token,
                                                        on_progress=events.append)
        self.assertEqual(events[-1].phase, PHASE_IDLE)

    def test_cancelled_before_start(self):
        token = CancellationToken()
        token.cancel()
        provider = MockProvider(_json(GREETING))
        with self.assertRaises(GenerationCancelled):
            GenerationOrchestrator([provider]).generate("Japan", "q", cancel_token=token)
        self.assertEqual(provider.call_count, 0)

    def test_expired_deadline_goes_to_offline(self):
        token = CancellationToken(timeout=0.000001)
        provider = MockProvider(_json(GREETING))
        time.sleep(0.01)
        result = GenerationOrchestrator([provider]).generate_with_report(
            "Japan", "hello", cancel_token=token)
        self.assertEqual(provider.call_count, 0)
        self.assertEqual(result.report.provider, "offline")
        self.assertEqual(len(result.card.key_knowledge), 4)


class TestEveryCategory(unittest.TestCase):

    def test_every_category_yields_valid_card(self):
        for category in CulturalCategory:
            data = dict(GREETING, category=category.value, keyKnowledge=["one"])
            card = GenerationOrchestrator([MockProvider(_json(data))]).generate("Korea", "q")
            self.assertEqual(card.category, category)
            self.assertEqual(len(card.key_knowledge), 4)
            self.assertEqual(card.problems(), [])


if __name__ == "__main__":
    unittest.main(verbosity=2)

"""
LanCards Test Suite — Configuration and Pipeline Wiring
========================================================
Usage:
    python -m pytest tests/test_pipeline.py -v
"""
import sys
import os
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest import mock

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from lancards.config import DEFAULT_CHAIN, PipelineConfig
from lancards.errors import ValidationError
from lancards.orchestrator import PHASE_COMPLETE, GenerationOrchestrator
from lancards.pipeline import VoiceCardPipeline, build_orchestrator
from lancards.providers.base import ProviderKind
from lancards.store import ContentStore


# ─────────────────────────────────────────────
#  Configuration
# ─────────────────────────────────────────────

class TestPipelineConfig(unittest.TestCase):

    def test_defaults_from_empty_env(self):
        config = PipelineConfig.from_env({})
        self.assertEqual(config.provider_chain, list(DEFAULT_CHAIN))
        self.assertEqual(config.reasoning_effort, "medium")
        self.assertEqual(config.generation_timeout, 60.0)
        self.assertEqual(config.api_keys, {})
        self.assertEqual(config.data_path.name, "destinations.json")

    def test_reads_environment(self):
        config = PipelineConfig.from_env({
            "LANCARDS_DATA_PATH": "/tmp/cards.json",
            "LANCARDS_PROVIDER_CHAIN": " Anthropic , ollama ",
            "LANCARDS_REASONING_EFFORT": "HIGH",
            "LANCARDS_GENERATION_TIMEOUT": "12.5",
            "LANCARDS_LEVEL_BARS": "8",
            "GOOGLE_API_KEY": "g-key",
            "LANCARDS_OLLAMA_MODEL": "llama3.2",
            "OLLAMA_BASE_URL": "http://gpu-box:11434",
        })
        self.assertEqual(config.data_path, Path("/tmp/cards.json"))
        self.assertEqual(config.provider_chain, ["anthropic", "ollama"])
        self.assertEqual(config.reasoning_effort, "high")
        self.assertEqual(config.generation_timeout, 12.5)
        self.assertEqual(config.level_bars, 8)
        self.assertEqual(config.api_keys, {"gemini": "g-key"})
        self.assertEqual(config.models, {"ollama": "llama3.2"})

    def test_bad_values_fall_back(self):
        config = PipelineConfig.from_env({
            "LANCARDS_REASONING_EFFORT": "extreme",
            "LANCARDS_SAMPLE_RATE": "fast",
        })
        self.assertEqual(config.reasoning_effort, "medium")
        self.assertEqual(config.sample_rate, 16000)

    def test_provider_configs_end_with_offline(self):
        config = PipelineConfig(provider_chain=["openai", "openai", "ollama"],
                                api_keys={"openai": "sk"}, ollama_base_url="http://x")
        configs = config.provider_configs()
        self.assertEqual([c.provider_name for c in configs], ["openai", "ollama", "offline"])
        self.assertEqual(configs[0].api_key, "sk")
        self.assertEqual(configs[1].base_url, "http://x")
        self.assertEqual(configs[2].base_url, "")

    def test_build_orchestrator(self):
        orchestrator = build_orchestrator(PipelineConfig(provider_chain=["gemini"]))
        self.assertEqual([p.name for p in orchestrator.providers], ["gemini", "offline"])
        self.assertIs(orchestrator.providers[-1].kind, ProviderKind.OFFLINE)


# ─────────────────────────────────────────────
#  Voice Card Pipeline
# ─────────────────────────────────────────────

class TestVoiceCardPipeline(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.store = ContentStore(os.path.join(self.tmpdir, "destinations.json"))
        self.session = mock.MagicMock()
        self.pipeline = VoiceCardPipeline(self.session, GenerationOrchestrator([]), self.store)

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_transcript_becomes_saved_card(self):
        japan = self.store.find_destination("Japan")
        self.session.stop.return_value = "Any tips for a business meeting?"

        self.pipeline.start_recording()
        card = self.pipeline.stop_and_generate(japan)

        self.session.start.assert_called_once_with()
        self.session.finish_processing.assert_called_once_with(True)
        self.assertEqual(card.question, "Any tips for a business meeting?")
        self.assertEqual(self.store.get_destination(japan.id).cultural_cards[-1].id, card.id)

    def test_plain_name_is_not_saved(self):
        self.session.stop.return_value = "How do I greet people?"
        card = self.pipeline.stop_and_generate("Korea")
        self.assertEqual(card.destination, "Korea")
        self.assertEqual(sum(len(d.cultural_cards) for d in self.store.destinations), 4)

    def test_empty_transcript_marks_session_failed(self):
        self.session.stop.return_value = ""
        with self.assertRaises(ValidationError):
            self.pipeline.stop_and_generate("Japan")
        self.session.finish_processing.assert_called_once_with(False)

    def test_unexpected_error_marks_session_failed(self):
        japan = self.store.find_destination("Japan")
        self.session.stop.return_value = "Any tips for a business meeting?"
        with mock.patch.object(self.store, "add_card", side_effect=KeyError(japan.id)):
            with self.assertRaises(KeyError):
                self.pipeline.stop_and_generate(japan)
        self.session.finish_processing.assert_called_once_with(False)

    def test_progress_reaches_the_caller(self):
        self.session.stop.return_value = "How do I greet people?"
        events = []
        self.pipeline.stop_and_generate("Korea", on_progress=events.append)
        self.assertEqual(events[-1].phase, PHASE_COMPLETE)
        self.assertEqual(events[-1].provider, "offline")


if __name__ == "__main__":
    unittest.main(verbosity=2)

"""
Voice Card Pipeline — Record, Transcribe, Generate, Save
=========================================================
Wires a TranscriptionSession to a GenerationOrchestrator and, when
given one, a ContentStore:

    pipeline.start_recording()
    card = pipeline.stop_and_generate(destination)

Also holds the factories that build each piece from a PipelineConfig.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from lancards.audio_input import SoundDeviceSource
from lancards.audio_levels import AudioLevelMeter
from lancards.config import PipelineConfig
from lancards.models import CulturalCard, Destination
from lancards.orchestrator import CancellationToken, GenerationOrchestrator, ProgressCallback
from lancards.prompts import PromptBuilder
from lancards.providers.registry import build_chain
from lancards.recognizers import OpenAIStreamingRecognizer
from lancards.store import ContentStore
from lancards.transcription import TranscriptionSession

logger = logging.getLogger(__name__)


def build_orchestrator(config: PipelineConfig) -> GenerationOrchestrator:
    providers = build_chain(config.provider_configs())
    logger.info("Provider chain: %s", " -> ".join(p.name for p in providers))
    return GenerationOrchestrator(
        providers,
        builder=PromptBuilder(app_language=config.app_language),
        timeout=config.generation_timeout,
    )


def build_store(config: PipelineConfig) -> ContentStore:
    return ContentStore(config.data_path)


def build_session(config: PipelineConfig) -> TranscriptionSession:
    recognizer = OpenAIStreamingRecognizer(
        api_key=config.api_keys.get("openai", ""),
        sample_rate=config.sample_rate,
    )
    return TranscriptionSession(
        recognizer,
        SoundDeviceSource(sample_rate=config.sample_rate),
        meter=AudioLevelMeter(bars=config.level_bars),
    )


class VoiceCardPipeline:
    """Spoken question in, saved cultural card out."""

    def __init__(self, session: TranscriptionSession, orchestrator: GenerationOrchestrator,
                 store: Optional[ContentStore] = None):
        self.session = session
        self.orchestrator = orchestrator
        self.store = store

    @classmethod
    def from_config(cls, config: PipelineConfig) -> VoiceCardPipeline:
        return cls(build_session(config), build_orchestrator(config), build_store(config))

    def start_recording(self):
        self.session.start()

    def stop_and_generate(self, destination: Union[str, Destination],
                          cancel_token: Optional[CancellationToken] = None,
                          on_progress: Optional[ProgressCallback] = None) -> CulturalCard:
        """Stop recording and turn the transcript into a card.

        The card is added to the store when `destination` is a stored
        Destination. Any failure leaves the session in ERROR and is
        re-raised.
        """
        transcript = self.session.stop()
        try:
            card = self.orchestrator.generate(destination, transcript, cancel_token, on_progress)
            if self.store is not None and isinstance(destination, Destination):
                self.store.add_card(destination.id, card)
        except Exception:
            self.session.finish_processing(False)
            raise
        self.session.finish_processing(True)
        return card

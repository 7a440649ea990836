"""
LanCards — Spoken Questions to Cultural Insight Cards
======================================================
Records a question about a destination's business culture, transcribes
it live, and turns it into a structured bilingual card through a chain
of interchangeable generation providers.

Architecture:
    Capture:     AudioLevelMeter, TranscriptionSession, SpeechRecognizer
    Generation:  PromptBuilder, providers, GenerationOrchestrator, ResponseExtractor
    Content:     CulturalCard, Destination, ContentStore, migration
"""

__version__ = "0.1.0"

from lancards.audio_levels import AudioLevelMeter
from lancards.errors import (
    LanCardsError, PermissionDenied, RecordingError, RecognizerInterrupted,
    RecognizerUnavailable, ValidationError, GenerationFailed, GenerationCancelled,
    PersistenceFailure,
)
from lancards.extractor import extract, PartialInsight, ExtractionTier
from lancards.models import CardType, CulturalCategory, CulturalCard, Destination
from lancards.orchestrator import (
    CancellationToken, GenerationOrchestrator, GenerationProgress, GenerationReport, GenerationResult,
)
from lancards.prompts import PromptBuilder
from lancards.store import ContentStore
from lancards.transcription import TranscriptionSession, TranscriptionState

__all__ = [
    "AudioLevelMeter",
    "LanCardsError", "PermissionDenied", "RecordingError", "RecognizerInterrupted",
    "RecognizerUnavailable", "ValidationError", "GenerationFailed", "GenerationCancelled",
    "PersistenceFailure",
    "extract", "PartialInsight", "ExtractionTier",
    "CardType", "CulturalCategory", "CulturalCard", "Destination",
    "CancellationToken", "GenerationOrchestrator", "GenerationProgress", "GenerationReport",
    "GenerationResult",
    "PromptBuilder", "ContentStore",
    "TranscriptionSession", "TranscriptionState",
]

"""
Generation Orchestrator — Question to Cultural Card
====================================================
Sequences PromptBuilder → provider chain → ResponseExtractor → card
assembly, and reports progress to the caller of each generate() call.

Pipeline:
    1. Validate the question (empty input fails before any provider runs)
    2. Build prompts for the destination's country
    3. Try providers strictly in order until one returns usable text.
       Unavailable, auth, transport and capability failures advance the
       chain, and so does text with no recoverable card field (unless it
       came from the last provider). The offline provider at the end
       never fails.
    4. Extract card fields from the text (strict → pattern → none)
    5. Strict output is used as decoded. Otherwise every missing field
       gets a category default and the bullets are normalized to four.
       The bilingual name card is split in both cases.
    6. Return the card. Persisting it is the caller's job.

Progress goes to the optional `on_progress` callback of the call that
produced it; the orchestrator itself keeps no per-call state, so one
instance can serve concurrent requests.

Usage:
    from lancards.orchestrator import GenerationOrchestrator
    from lancards.providers import ProviderConfig, build_chain

    orchestrator = GenerationOrchestrator(build_chain([ProviderConfig("gemini", api_key=key)]))
    card = orchestrator.generate("Japan", "How should I greet my business partner?")

    result = orchestrator.generate_with_report("Japan", "Tipping?", on_progress=print)
    result.card, result.report.provider
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

from lancards.defaults import default_insight, defaults_for, normalize_key_knowledge
from lancards.errors import GenerationCancelled, GenerationFailed, ValidationError
from lancards.events import Signal
from lancards.extractor import CARD_SCHEMA, ExtractionTier, PartialInsight, extract
from lancards.localization import local_name, split_bilingual
from lancards.models import CulturalCard, CulturalCategory, Destination
from lancards.prompts import Prompt, PromptBuilder
from lancards.providers.base import (
    BaseProvider, ImageInput, ProviderErrorKind, ProviderKind, ProviderResponse,
)
from lancards.providers.offline_provider import OfflineProvider

logger = logging.getLogger(__name__)

PHASE_IDLE = ""
PHASE_ANALYZING = "Analyzing your question..."
PHASE_GENERATING = "Generating cultural insight..."
PHASE_PROCESSING = "Processing response..."
PHASE_COMPLETE = "Complete!"

ProgressCallback = Callable[["GenerationProgress"], None]


# ─────────────────────────────────────────────────────────────
#  Data Structures
# ─────────────────────────────────────────────────────────────

class CancellationToken:
    """Cancel flag plus an optional overall deadline.

    cancel() aborts generation with GenerationCancelled. A passed
    deadline only stops further network providers; the offline provider
    still answers.
    """

    def __init__(self, timeout: Optional[float] = None):
        self._event = threading.Event()
        self.deadline = time.monotonic() + timeout if timeout else None

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def raise_if_cancelled(self):
        if self.cancelled:
            raise GenerationCancelled("Generation was cancelled")


@dataclass
class GenerationProgress:
    phase: str = PHASE_IDLE
    error_message: Optional[str] = None
    provider: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.phase not in (PHASE_IDLE, PHASE_COMPLETE)


@dataclass
class ProviderAttempt:
    provider: str
    kind: ProviderKind
    success: bool
    error: Optional[str] = None
    error_kind: Optional[ProviderErrorKind] = None
    elapsed: float = 0.0


@dataclass
class GenerationReport:
    """Diagnostics for one generate() call."""

    provider: Optional[str] = None
    attempts: list[ProviderAttempt] = field(default_factory=list)
    tier: ExtractionTier = ExtractionTier.NONE
    defaulted: list[str] = field(default_factory=list)   # card fields filled from defaults

    @property
    def used_fallback(self) -> bool:
        return len(self.attempts) > 1


@dataclass
class GenerationResult:
    card: CulturalCard
    report: GenerationReport


# ─────────────────────────────────────────────────────────────
#  Card assembly
# ─────────────────────────────────────────────────────────────

def assemble_card(insight: PartialInsight, destination: str, country: str,
                  question: Optional[str] = None) -> tuple[CulturalCard, list[str]]:
    """Build a complete card from extracted fields.

    A STRICT insight is taken verbatim: its four bullets are not
    re-prefixed and its text is not trimmed. Returns the card and the
    JSON names of the fields that had to be defaulted.
    """
    strict = insight.tier is ExtractionTier.STRICT
    defaulted = []

    if insight.category is None:
        defaulted.append("category")
    category = CulturalCategory.from_label(insight.category)
    fallback = defaults_for(category)

    title = insight.title or ""
    if not title.strip():
        defaulted.append("title")
        title = fallback.title
    elif not strict:
        title = title.strip()

    app, local = split_bilingual(insight.name_card, country)
    if app is None:
        defaulted.append("nameCard")
        app = fallback.concept
        local = local_name(app, country)

    if strict:
        key_knowledge = list(insight.key_knowledge)
    else:
        if insight.key_knowledge is None:
            defaulted.append("keyKnowledge")
        key_knowledge = normalize_key_knowledge(insight.key_knowledge, category)

    insights = insight.cultural_insights or ""
    if not insights.strip():
        defaulted.append("culturalInsights")
        insights = default_insight(category, destination)
    elif not strict:
        insights = insights.strip()

    card = CulturalCard.ai_generated(
        title=title,
        category=category,
        name_card_app=app,
        name_card_local=local,
        key_knowledge=key_knowledge,
        cultural_insights=insights,
        destination=destination,
        question=question,
    )
    return card, defaulted


def _resolve_destination(destination: Union[str, Destination]) -> tuple[str, str]:
    if isinstance(destination, Destination):
        return destination.name, destination.country or destination.name
    name = (destination or "").strip()
    return name, name


# ─────────────────────────────────────────────────────────────
#  Orchestrator
# ─────────────────────────────────────────────────────────────

class GenerationOrchestrator:
    """Runs the provider fallback chain and assembles cards.

    Stateless between calls: progress and the report belong to the
    call that produced them.
    """

    def __init__(self, providers: list[BaseProvider], builder: Optional[PromptBuilder] = None,
                 timeout: Optional[float] = 60.0, ensure_offline: bool = True):
        self.providers = list(providers)
        if ensure_offline and not any(p.kind is ProviderKind.OFFLINE for p in self.providers):
            self.providers.append(OfflineProvider())
        self.builder = builder or PromptBuilder()
        self.timeout = timeout

    # ── Public API ──────────────────────────────────────────

    def generate(self, destination: Union[str, Destination], user_question: str,
                 cancel_token: Optional[CancellationToken] = None,
                 on_progress: Optional[ProgressCallback] = None) -> CulturalCard:
        """Generate one card answering `user_question` for `destination`.

        Raises:
            ValidationError: empty question or destination.
            GenerationCancelled: the token was cancelled.
            GenerationFailed: every provider failed (only possible without
                the offline provider in the chain).
        """
        return self.generate_with_report(destination, user_question, cancel_token, on_progress).card

    def generate_with_report(self, destination: Union[str, Destination], user_question: str,
                             cancel_token: Optional[CancellationToken] = None,
                             on_progress: Optional[ProgressCallback] = None) -> GenerationResult:
        """Like generate(), but also returns which provider answered and how."""
        name, country = _resolve_destination(destination)
        question = (user_question or "").strip()
        if not question:
            raise ValidationError("Please ask a question before generating a card.")
        if not name:
            raise ValidationError("A destination is required to generate a card.")

        def prompt_for(provider: BaseProvider) -> Prompt:
            return self.builder.build(name, question, country=country,
                                      schema_enforced=provider.supports_schema)

        return self._run(name, country, question, prompt_for, None, cancel_token, on_progress)

    def generate_from_image(self, destination: Union[str, Destination], image_bytes: bytes,
                            question: Optional[str] = None, mime_type: str = "image/jpeg",
                            cancel_token: Optional[CancellationToken] = None,
                            on_progress: Optional[ProgressCallback] = None) -> CulturalCard:
        """Generate a card about a photo (menu, gift, gesture, sign...)."""
        return self.generate_from_image_with_report(
            destination, image_bytes, question, mime_type, cancel_token, on_progress).card

    def generate_from_image_with_report(self, destination: Union[str, Destination],
                                        image_bytes: bytes, question: Optional[str] = None,
                                        mime_type: str = "image/jpeg",
                                        cancel_token: Optional[CancellationToken] = None,
                                        on_progress: Optional[ProgressCallback] = None,
                                        ) -> GenerationResult:
        name, country = _resolve_destination(destination)
        if not image_bytes:
            raise ValidationError("An image is required for image-based generation.")
        if not name:
            raise ValidationError("A destination is required to generate a card.")
        images = [ImageInput(data=image_bytes, mime_type=mime_type)]

        def prompt_for(provider: BaseProvider) -> Prompt:
            return self.builder.build_image(name, question, country=country,
                                            schema_enforced=provider.supports_schema)

        return self._run(name, country, (question or "").strip() or None, prompt_for, images,
                         cancel_token, on_progress)

    # ── Internals ───────────────────────────────────────────

    def _run(self, name, country, question, prompt_for, images, cancel_token,
             on_progress) -> GenerationResult:
        token = cancel_token or CancellationToken(self.timeout)
        report = GenerationReport()
        progress = Signal("generation")
        if on_progress is not None:
            progress.subscribe(on_progress)

        def publish(phase: str, error_message: Optional[str] = None,
                    provider: Optional[str] = None):
            progress.emit(GenerationProgress(phase=phase, error_message=error_message,
                                             provider=provider))

        try:
            publish(PHASE_ANALYZING)
            token.raise_if_cancelled()

            publish(PHASE_GENERATING)
            response, insight = self._call_chain(prompt_for, images, token, report)
            token.raise_if_cancelled()

            publish(PHASE_PROCESSING, provider=response.provider)
            card, defaulted = assemble_card(insight, name, country, question)
            report.defaulted = defaulted
            if defaulted:
                logger.info("Defaulted fields from %s output: %s", response.provider, defaulted)

            token.raise_if_cancelled()
            publish(PHASE_COMPLETE, provider=response.provider)
            return GenerationResult(card=card, report=report)
        except GenerationCancelled:
            logger.info("Generation cancelled")
            publish(PHASE_IDLE)
            raise
        except GenerationFailed as e:
            publish(PHASE_IDLE, error_message=f"Failed to generate cultural card: {e}")
            raise

    def _call_chain(self, prompt_for, images, token: CancellationToken,
                    report: GenerationReport) -> tuple[ProviderResponse, PartialInsight]:
        last = len(self.providers) - 1
        for index, provider in enumerate(self.providers):
            token.raise_if_cancelled()
            offline = provider.kind is ProviderKind.OFFLINE
            if token.expired and not offline:
                logger.warning("Deadline passed; skipping %s", provider.name)
                report.attempts.append(ProviderAttempt(
                    provider.name, provider.kind, False, "deadline exceeded",
                    ProviderErrorKind.UNAVAILABLE))
                continue

            started = time.monotonic()
            response = self._invoke(provider, prompt_for(provider), images)
            elapsed = time.monotonic() - started

            if response.success:
                insight = extract(response.content)
                if insight.tier is ExtractionTier.NONE and index < last:
                    report.attempts.append(ProviderAttempt(
                        provider.name, provider.kind, False, "no card fields in response",
                        ProviderErrorKind.MALFORMED_OUTPUT, elapsed))
                    logger.warning("Provider %s returned no recoverable card fields", provider.name)
                    continue

                report.attempts.append(ProviderAttempt(provider.name, provider.kind, True,
                                                       elapsed=elapsed))
                report.provider = provider.name
                report.tier = insight.tier
                if len(report.attempts) > 1:
                    logger.info("Card generated by fallback provider %s", provider.name)
                return response, insight

            kind = response.error_kind or ProviderErrorKind.TRANSPORT
            error = response.error or "empty response"
            report.attempts.append(ProviderAttempt(provider.name, provider.kind, False, error,
                                                   kind, elapsed))
            logger.warning("Provider %s failed (%s): %s", provider.name, kind.value, error)

        summary = "; ".join(f"{a.provider}: {a.error}" for a in report.attempts) or "no providers configured"
        raise GenerationFailed(f"All providers failed ({summary})", attempts=report.attempts)

    def _invoke(self, provider: BaseProvider, prompt: Prompt,
                images: Optional[list[ImageInput]]) -> ProviderResponse:
        if images and not provider.supports_images:
            return provider.unsupported_images()
        if provider.kind is not ProviderKind.OFFLINE and not provider.is_available():
            return ProviderResponse(
                content="", provider=provider.name, model=provider.model,
                finish_reason="error", error=f"{provider.name} is not configured",
                error_kind=ProviderErrorKind.UNAVAILABLE,
            )
        schema = CARD_SCHEMA if provider.supports_schema else None
        logger.debug("Calling %s (%s)", provider.name, provider.kind.value)
        try:
            return provider.generate(prompt.system, prompt.user, schema=schema, images=images)
        except Exception as e:
            return provider.failure(e)

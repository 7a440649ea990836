"""
Card Migration — Legacy Cards to the Structured Shape
=====================================================
Older files hold cards with only a type, a title and free-text content
(or an AI card with a single-language name card). On load each such card
is rebuilt in the current shape:

    category   — inferred from the title, else from the legacy type
    name card  — existing name card, else the concept the title suggests
    bullets    — the content split into sentences, glyph-prefixed, padded to four
    insights   — the legacy content

Only records missing the current keys are touched, and manual cards
never are. A migrated card keeps its id, date and question, and is
written back with every current key, so running it twice is the same
as running it once.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from typing import Optional

from lancards.defaults import default_insight, defaults_for, normalize_key_knowledge
from lancards.localization import split_bilingual, local_name
from lancards.models import KEY_KNOWLEDGE_COUNT, CulturalCard, CulturalCategory, Destination

logger = logging.getLogger(__name__)

# First match wins; more specific topics come first.
TITLE_PATTERNS: list[tuple[re.Pattern, CulturalCategory, str]] = [
    (re.compile(r"bow|greet|handshake|hello|introduc", re.I), CulturalCategory.GREETING_CUSTOMS, "Respect"),
    (re.compile(r"punctual|time|schedul|late|deadline", re.I), CulturalCategory.TIME_MANAGEMENT, "Time"),
    (re.compile(r"dining|dinner|table|food|meal|eat|drink|tipping", re.I), CulturalCategory.DINING_CULTURE, "Dining"),
    (re.compile(r"gift|present", re.I), CulturalCategory.GIFT_GIVING, "Gift"),
    (re.compile(r"hierarch|senior|decision|boss|rank", re.I), CulturalCategory.HIERARCHY, "Hierarchy"),
    (re.compile(r"communicat|gesture|eye contact|silence|direct|language", re.I), CulturalCategory.COMMUNICATION, "Communication"),
    (re.compile(r"card|business|meeting|protocol|dress", re.I), CulturalCategory.BUSINESS_ETIQUETTE, "Protocol"),
    (re.compile(r"relationship|trust|social|custom|friend", re.I), CulturalCategory.SOCIAL_CUSTOMS, "Relationships"),
]

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?。])\s+|\n+")
_BULLET_PREFIX = re.compile(r"^\s*(?:[-*•·]|\d+[.)])\s*")


def infer_from_title(title: str) -> Optional[tuple[CulturalCategory, str]]:
    """(category, concept) suggested by a legacy title, or None."""
    for pattern, category, concept in TITLE_PATTERNS:
        if pattern.search(title or ""):
            return category, concept
    return None


def segment_content(content: str) -> list[str]:
    """Split free text into bullet-sized sentences."""
    segments = []
    for piece in _SENTENCE_SPLIT.split(content or ""):
        piece = _BULLET_PREFIX.sub("", piece).strip()
        if piece:
            segments.append(piece)
    return segments


def needs_migration(record: dict) -> bool:
    """Whether a card record as read from disk is in a legacy shape.

    Current files always write `nameCardApp` and `isAIGenerated`, even
    as null or false. A record missing either key predates the
    structured shape. A record that says `isAIGenerated: false` is a
    manual card and is never upgraded.
    """
    if record.get("isAIGenerated") is False:
        return False
    return "nameCardApp" not in record or "isAIGenerated" not in record


def _is_structured(card: CulturalCard) -> bool:
    return (
        card.is_ai_generated
        and card.category is not None
        and card.name_card_app is not None
        and card.key_knowledge is not None
        and len(card.key_knowledge) == KEY_KNOWLEDGE_COUNT
        and bool(card.cultural_insights)
    )


def migrate_card(card: CulturalCard, country: str) -> CulturalCard:
    """Return a legacy card in the current shape (the same object if already current)."""
    if _is_structured(card):
        return card

    inferred = infer_from_title(card.title)
    category = card.category or (inferred[0] if inferred else card.type.category)

    app, local = card.name_card_app, card.name_card_local
    if app is None:
        app, local = split_bilingual(card.name_card, country)
    if app is None:
        app = inferred[1] if inferred else defaults_for(category).concept
        local = local_name(app, country)

    bullets = card.key_knowledge
    if bullets is None:
        bullets = segment_content(card.content)
    key_knowledge = normalize_key_knowledge(bullets, category)

    insights = card.cultural_insights or card.content.strip() or default_insight(category, country)

    return dataclasses.replace(
        card,
        category=category,
        name_card=app,
        name_card_app=app,
        name_card_local=local,
        key_knowledge=key_knowledge,
        cultural_insights=insights,
        is_ai_generated=True,
        destination=card.destination or country,
    )


def migrate_destinations(destinations: list[Destination], raw: list[dict]) -> int:
    """Migrate the cards whose records in `raw` are legacy. Returns how many changed.

    `raw` is the decoded JSON the destinations were built from, in the
    same order. last_updated is left alone: migration is not an edit.
    """
    changed = 0
    for destination, record in zip(destinations, raw):
        card_records = record.get("culturalCards") or []
        for index, (card, card_record) in enumerate(zip(destination.cultural_cards, card_records)):
            if not needs_migration(card_record):
                continue
            migrated = migrate_card(card, destination.country)
            if migrated is not card:
                destination.cultural_cards[index] = migrated
                changed += 1
                logger.debug("Migrated card %r in %s", card.title, destination.name)
    if changed:
        logger.info("Migrated %d legacy cards", changed)
    return changed

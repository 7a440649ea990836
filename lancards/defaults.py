"""
Category Defaults — Deterministic Fill-ins for Missing Card Fields
===================================================================
When generated text cannot supply a field, the card gets a fixed,
category-appropriate value instead of a blank. Migration uses the same
tables to pad legacy cards into the structured shape.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from lancards.models import CulturalCategory, KEY_KNOWLEDGE_COUNT, has_glyph


@dataclass(frozen=True)
class CategoryDefaults:
    concept: str             # app-language name card
    title: str
    key_knowledge: tuple     # four glyph-prefixed bullets
    insight: str             # formatted with {destination}


DEFAULTS: dict[CulturalCategory, CategoryDefaults] = {
    CulturalCategory.BUSINESS_ETIQUETTE: CategoryDefaults(
        concept="Protocol",
        title="Business Meeting Protocols",
        key_knowledge=(
            "⏰ Arrive on time or slightly early to show respect",
            "📇 Bring business cards and exchange them properly",
            "🙊 Don't interrupt senior members during presentations",
            "👔 Consider hierarchy before making decisions",
        ),
        insight=(
            "Business meetings in {destination} follow cultural protocols that signal "
            "respect and professionalism. Preparation and attention to hierarchy, timing "
            "and communication style help build strong business relationships."
        ),
    ),
    CulturalCategory.SOCIAL_CUSTOMS: CategoryDefaults(
        concept="Relationships",
        title="Cultural Business Insight",
        key_knowledge=(
            "🔍 Research local customs before important interactions",
            "🤝 Show genuine interest in cultural traditions",
            "🚫 Don't make assumptions based on stereotypes",
            "👀 Watch for subtle social cues and non-verbal communication",
        ),
        insight=(
            "Understanding cultural nuances in {destination} requires attention to both "
            "explicit customs and subtle social cues. Taking time to learn and appreciate "
            "local customs shows professionalism and leads to stronger partnerships."
        ),
    ),
    CulturalCategory.COMMUNICATION: CategoryDefaults(
        concept="Communication",
        title="Communication Styles",
        key_knowledge=(
            "👂 Listen carefully for what is implied as well as what is said",
            "🗣️ Match the level of directness your counterparts use",
            "🤐 Avoid gestures whose meaning you are unsure of",
            "📝 Confirm important agreements in writing",
        ),
        insight=(
            "Communication in {destination} carries cultural expectations about "
            "directness, silence and body language. Adapting your style shows respect "
            "and prevents misunderstandings in negotiations."
        ),
    ),
    CulturalCategory.GIFT_GIVING: CategoryDefaults(
        concept="Gift",
        title="Business Gift Etiquette",
        key_knowledge=(
            "🎁 Choose modest, good-quality gifts",
            "🎀 Pay attention to wrapping and presentation",
            "🙏 Offer and receive gifts politely",
            "🚫 Avoid gifts with unlucky numbers or associations",
        ),
        insight=(
            "Gift giving in {destination} is a way to build goodwill. The choice, "
            "presentation and timing of a gift often matter as much as the gift itself."
        ),
    ),
    CulturalCategory.DINING_CULTURE: CategoryDefaults(
        concept="Dining",
        title="Business Dining Etiquette",
        key_knowledge=(
            "🍽️ Wait for the host to begin eating or drinking",
            "🥢 Try local dishes to show cultural appreciation",
            "⏳ Build rapport before discussing business",
            "🙅 Don't refuse offered food or drink without a polite explanation",
        ),
        insight=(
            "Business dining in {destination} is an important relationship-building "
            "activity. How you handle table manners and conversation reflects your "
            "respect for local culture."
        ),
    ),
    CulturalCategory.TIME_MANAGEMENT: CategoryDefaults(
        concept="Time",
        title="Punctuality and Scheduling",
        key_knowledge=(
            "⏰ Confirm meeting times in advance",
            "📅 Respect the agenda and scheduled end time",
            "🚦 Learn how strictly deadlines are treated locally",
            "📞 Let your counterpart know early if you will be late",
        ),
        insight=(
            "Attitudes toward time in {destination} shape how meetings are planned and "
            "run. Matching local expectations around punctuality signals reliability."
        ),
    ),
    CulturalCategory.HIERARCHY: CategoryDefaults(
        concept="Hierarchy",
        title="Hierarchy and Decision Making",
        key_knowledge=(
            "👔 Identify the senior decision maker early",
            "🙇 Address senior people first and with titles",
            "⏳ Allow time for internal consensus before expecting answers",
            "🚫 Don't bypass your counterpart's chain of command",
        ),
        insight=(
            "Decision making in {destination} follows its own expectations about "
            "seniority and consensus. Respecting the hierarchy speeds up agreement."
        ),
    ),
    CulturalCategory.GREETING_CUSTOMS: CategoryDefaults(
        concept="Respect",
        title="Business Greeting Etiquette",
        key_knowledge=(
            "👋 Follow the local greeting style when you meet",
            "👴 Let the senior person initiate the greeting",
            "📏 Respect expected personal space",
            "🏷️ Use titles and surnames until invited otherwise",
        ),
        insight=(
            "Greetings in {destination} set the tone for the whole relationship. The "
            "right greeting, distance and form of address show respect from the first "
            "moment."
        ),
    ),
}


def defaults_for(category: CulturalCategory) -> CategoryDefaults:
    return DEFAULTS[category]


def default_insight(category: CulturalCategory, destination: str) -> str:
    return DEFAULTS[category].insight.format(destination=destination or "this destination")


def with_glyph(bullet: str, category: CulturalCategory) -> str:
    """Prefix a bullet with a glyph unless it already opens with one."""
    bullet = bullet.strip()
    if has_glyph(bullet):
        return bullet
    upper = bullet.upper()
    if upper.startswith("DON'T") or upper.startswith("DON’T") or upper.startswith("DO NOT"):
        glyph = "🚫"
    elif upper.startswith("DO:") or upper.startswith("DO "):
        glyph = "✅"
    else:
        glyph = category.emoji
    return f"{glyph} {bullet}"


def normalize_key_knowledge(bullets: Optional[list[str]],
                            category: CulturalCategory) -> list[str]:
    """Exactly four glyph-prefixed bullets: extras dropped, gaps filled from defaults."""
    cleaned = [with_glyph(b, category) for b in (bullets or []) if b and b.strip()]
    cleaned = cleaned[:KEY_KNOWLEDGE_COUNT]
    for fallback in DEFAULTS[category].key_knowledge:
        if len(cleaned) >= KEY_KNOWLEDGE_COUNT:
            break
        if fallback not in cleaned:
            cleaned.append(fallback)
    return cleaned

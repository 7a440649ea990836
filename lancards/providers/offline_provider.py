"""
Offline Provider — Deterministic Terminal Fallback
===================================================
Answers from canned content chosen by keywords in the question. It has
no network, no credentials and no failure path, which is what lets the
fallback chain always terminate. Tests use it as a fixed oracle.
"""

from __future__ import annotations

import json
from typing import Optional

from lancards.localization import local_name
from lancards.models import CulturalCategory
from lancards.prompts import parse_user_prompt
from lancards.providers.base import (
    BaseProvider, ImageInput, ProviderConfig, ProviderKind, ProviderResponse,
)


_GREETINGS = {
    "japan": {
        "title": "Business Greeting Etiquette",
        "category": CulturalCategory.GREETING_CUSTOMS.value,
        "concept": "Respect",
        "keyKnowledge": [
            "🙇 Offer a slight bow while extending your hand for a handshake",
            "👴 Wait for the senior person to initiate the greeting",
            "⏳ Don't rush the greeting - allow time for proper acknowledgment",
            "🤝 Use a gentle grip; firm handshakes can feel aggressive",
        ],
        "culturalInsights": (
            "In Japanese business culture, the bow (ojigi) is the traditional greeting "
            "that shows respect and hierarchy awareness. The depth and duration of your "
            "bow should reflect the status of the person you're greeting - deeper bows "
            "for senior executives, lighter bows for peers. Many Japanese businesspeople "
            "now expect handshakes when meeting international colleagues, creating a "
            "hybrid approach."
        ),
    },
    "germany": {
        "title": "German Business Greetings",
        "category": CulturalCategory.GREETING_CUSTOMS.value,
        "concept": "Greeting",
        "keyKnowledge": [
            "🤝 Use a firm handshake with direct eye contact",
            "🏷️ Address people by their title and surname initially",
            "🚫 Don't use first names unless explicitly invited",
            "⏱️ Keep small talk brief during business greetings",
        ],
        "culturalInsights": (
            "German business culture values directness and efficiency in greetings. A "
            "firm handshake with direct eye contact is the standard, accompanied by "
            "formal titles and surnames until invited to use first names. Germans keep "
            "personal and professional boundaries clear during initial meetings."
        ),
    },
}


def _meeting(destination: str) -> dict:
    return {
        "title": "Business Meeting Protocols",
        "category": CulturalCategory.BUSINESS_ETIQUETTE.value,
        "concept": "Meeting",
        "keyKnowledge": [
            "⏰ Arrive on time or slightly early to show respect",
            "📇 Bring business cards and exchange them properly",
            "🙊 Don't interrupt senior members during presentations",
            "👔 Don't make decisions without considering hierarchy",
        ],
        "culturalInsights": (
            f"Business meetings in {destination} follow specific cultural protocols that "
            "demonstrate respect and professionalism. Understanding hierarchy, timing, and "
            "communication styles is crucial for successful interactions. Preparation and "
            "attention to cultural nuances can make the difference between building strong "
            "business relationships and missing opportunities."
        ),
    }


def _dining(destination: str) -> dict:
    return {
        "title": "Business Dining Etiquette",
        "category": CulturalCategory.DINING_CULTURE.value,
        "concept": "Dining",
        "keyKnowledge": [
            "🍽️ Wait for the host to begin eating or drinking",
            "🥢 Try local dishes to show cultural appreciation",
            "⏳ Don't discuss business immediately - build rapport first",
            "🙅 Don't refuse offered food or drink without polite explanation",
        ],
        "culturalInsights": (
            f"Business dining in {destination} is an important relationship-building "
            "activity with specific etiquette rules. Understanding proper table manners, "
            "gift-giving customs, and conversation topics can strengthen business "
            "partnerships."
        ),
    }


def _gift(destination: str) -> dict:
    return {
        "title": "Business Gift Etiquette",
        "category": CulturalCategory.GIFT_GIVING.value,
        "concept": "Gift",
        "keyKnowledge": [
            "🎁 Choose modest, good-quality gifts",
            "🎀 Pay attention to wrapping and presentation",
            "🙏 Offer and receive gifts politely",
            "🚫 Avoid gifts with unlucky numbers or associations",
        ],
        "culturalInsights": (
            f"Gift giving in {destination} is a way to build goodwill with business "
            "partners. The choice, presentation and timing of a gift often matter as much "
            "as the gift itself."
        ),
    }


def _general(destination: str) -> dict:
    return {
        "title": "Cultural Business Insight",
        "category": CulturalCategory.SOCIAL_CUSTOMS.value,
        "concept": "Relationships",
        "keyKnowledge": [
            "🔍 Research local customs before important interactions",
            "🤝 Show genuine interest in cultural traditions",
            "🚫 Don't make assumptions based on stereotypes",
            "👀 Don't ignore subtle social cues or non-verbal communication",
        ],
        "culturalInsights": (
            f"Understanding cultural nuances in {destination} requires attention to both "
            "explicit customs and subtle social cues. Business relationships are built on "
            "mutual respect and cultural awareness. Taking time to learn and demonstrate "
            "appreciation for local customs shows professionalism and can lead to "
            "stronger, more successful business partnerships."
        ),
    }


def canned_card(destination: str, question: str) -> dict:
    """The card JSON (as a dict) the offline provider answers with."""
    query = question.lower()
    if "greet" in query or "hello" in query or "bow" in query:
        entry = _GREETINGS.get(destination.lower()) or dict(
            _general(destination), category=CulturalCategory.GREETING_CUSTOMS.value,
            title="Business Greeting Etiquette", concept="Greeting",
        )
    elif "meeting" in query or "business" in query:
        entry = _meeting(destination)
    elif "food" in query or "eat" in query or "dining" in query or "dinner" in query:
        entry = _dining(destination)
    elif "gift" in query or "present" in query:
        entry = _gift(destination)
    else:
        entry = _general(destination)

    concept = entry["concept"]
    local = local_name(concept, destination)
    return {
        "title": entry["title"],
        "category": entry["category"],
        "nameCard": f"{concept}\n{local}" if local else concept,
        "keyKnowledge": list(entry["keyKnowledge"]),
        "culturalInsights": entry["culturalInsights"],
    }


class OfflineProvider(BaseProvider):
    """Deterministic offline provider. Never fails."""

    kind = ProviderKind.OFFLINE
    supports_schema = False
    supports_images = True   # ignores the image, answers from the prompt text

    def __init__(self, config: Optional[ProviderConfig] = None):
        super().__init__(config or ProviderConfig(provider_name="offline", model="canned"))
        if not self.config.model:
            self.config.model = "canned"

    def generate(self, system_prompt: str, user_prompt: str,
                 schema: Optional[dict] = None,
                 images: Optional[list[ImageInput]] = None) -> ProviderResponse:
        destination, question = parse_user_prompt(user_prompt)
        card = canned_card(destination or "this destination", question)
        return ProviderResponse(
            content=json.dumps(card, ensure_ascii=False, indent=2),
            model=self.config.model,
            provider=self.name,
            finish_reason="stop",
        )

    def is_available(self) -> bool:
        return True

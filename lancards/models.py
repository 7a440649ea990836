"""
Card Models — Destinations and Cultural Cards
==============================================
The entities every other layer agrees on.

Components:
    CardType          — Legacy card kinds (manual cards, display compatibility)
    CulturalCategory  — Closed set of eight categories for structured cards
    CulturalCard      — One insight card (manual or AI-generated)
    Destination       — A country the user is preparing for, with its cards

Serialization:
    Cards and destinations serialize to plain dicts with camelCase keys
    (the persisted file format). Dates are ISO-8601 strings. Optional
    fields are always written, as null when absent, and any missing or
    unrecognised optional field decodes as None instead of failing.
"""

from __future__ import annotations

import unicodedata
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


KEY_KNOWLEDGE_COUNT = 4


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def format_date(value: datetime) -> str:
    return value.isoformat()


def parse_date(value: Optional[str]) -> datetime:
    """Parse an ISO-8601 string; accepts a trailing 'Z' for UTC."""
    if not value:
        return utc_now()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def has_glyph(text: str) -> bool:
    """True if the text opens with a symbol such as an emoji."""
    text = text.lstrip()
    return bool(text) and unicodedata.category(text[0]) in ("So", "Sk", "Sm")


# ─────────────────────────────────────────────────────────────
#  Enumerations
# ─────────────────────────────────────────────────────────────

class CardType(Enum):
    """Legacy card type. Authoritative for manual (non-AI) cards."""

    BUSINESS_ETIQUETTE = "business_etiquette"
    SOCIAL_CUSTOMS = "social_customs"
    DINING_CULTURE = "dining_culture"
    COMMUNICATION = "communication"
    GIFT_GIVING = "gift_giving"
    QUICK_FACTS = "quick_facts"

    @property
    def title(self) -> str:
        return _CARD_TYPE_INFO[self][0]

    @property
    def emoji(self) -> str:
        return _CARD_TYPE_INFO[self][1]

    @property
    def description(self) -> str:
        return _CARD_TYPE_INFO[self][2]

    @property
    def category(self) -> CulturalCategory:
        """Closest structured category, used when migrating manual cards."""
        return _CARD_TYPE_CATEGORY[self]


_CARD_TYPE_INFO = {
    CardType.BUSINESS_ETIQUETTE: ("Business Etiquette", "💼", "Meeting protocols, dress codes, punctuality"),
    CardType.SOCIAL_CUSTOMS: ("Social Customs", "🤝", "Greetings, conversation topics, personal space"),
    CardType.DINING_CULTURE: ("Dining Culture", "🍽️", "Table manners, tipping, dining customs"),
    CardType.COMMUNICATION: ("Communication", "💬", "Direct vs. indirect, gestures, eye contact"),
    CardType.GIFT_GIVING: ("Gift Giving", "🎁", "Appropriate gifts, presentation, occasions"),
    CardType.QUICK_FACTS: ("Quick Facts", "⚡", "Key phrases, important numbers, cultural notes"),
}


class CulturalCategory(Enum):
    """The eight categories a structured card can belong to.

    Values are the exact labels the generation prompt asks for.
    """

    BUSINESS_ETIQUETTE = "Business Etiquette & Meeting Protocols"
    SOCIAL_CUSTOMS = "Social Customs & Relationship Building"
    COMMUNICATION = "Communication Styles & Non-verbal Cues"
    GIFT_GIVING = "Gift Giving & Entertainment"
    DINING_CULTURE = "Dining Etiquette & Food Culture"
    TIME_MANAGEMENT = "Time Management & Scheduling"
    HIERARCHY = "Hierarchy & Decision Making"
    GREETING_CUSTOMS = "Greeting Customs & Personal Space"

    @property
    def title(self) -> str:
        return self.value

    @property
    def emoji(self) -> str:
        return _CATEGORY_EMOJI[self]

    @property
    def card_type(self) -> CardType:
        return _CATEGORY_CARD_TYPE[self]

    @classmethod
    def from_label(cls, label: Optional[str]) -> CulturalCategory:
        """Map a label to a category by exact match.

        Anything that is not one of the eight labels becomes
        SOCIAL_CUSTOMS, so callers always get a valid category.
        """
        for category in cls:
            if category.value == label:
                return category
        return cls.SOCIAL_CUSTOMS


_CATEGORY_EMOJI = {
    CulturalCategory.BUSINESS_ETIQUETTE: "💼",
    CulturalCategory.SOCIAL_CUSTOMS: "🤝",
    CulturalCategory.COMMUNICATION: "💬",
    CulturalCategory.GIFT_GIVING: "🎁",
    CulturalCategory.DINING_CULTURE: "🍽️",
    CulturalCategory.TIME_MANAGEMENT: "⏰",
    CulturalCategory.HIERARCHY: "👔",
    CulturalCategory.GREETING_CUSTOMS: "👋",
}

_CATEGORY_CARD_TYPE = {
    CulturalCategory.BUSINESS_ETIQUETTE: CardType.BUSINESS_ETIQUETTE,
    CulturalCategory.HIERARCHY: CardType.BUSINESS_ETIQUETTE,
    CulturalCategory.SOCIAL_CUSTOMS: CardType.SOCIAL_CUSTOMS,
    CulturalCategory.GREETING_CUSTOMS: CardType.SOCIAL_CUSTOMS,
    CulturalCategory.COMMUNICATION: CardType.COMMUNICATION,
    CulturalCategory.GIFT_GIVING: CardType.GIFT_GIVING,
    CulturalCategory.DINING_CULTURE: CardType.DINING_CULTURE,
    CulturalCategory.TIME_MANAGEMENT: CardType.QUICK_FACTS,
}

_CARD_TYPE_CATEGORY = {
    CardType.BUSINESS_ETIQUETTE: CulturalCategory.BUSINESS_ETIQUETTE,
    CardType.SOCIAL_CUSTOMS: CulturalCategory.SOCIAL_CUSTOMS,
    CardType.DINING_CULTURE: CulturalCategory.DINING_CULTURE,
    CardType.COMMUNICATION: CulturalCategory.COMMUNICATION,
    CardType.GIFT_GIVING: CulturalCategory.GIFT_GIVING,
    CardType.QUICK_FACTS: CulturalCategory.TIME_MANAGEMENT,
}


def _enum_or_none(enum_cls, value):
    try:
        return enum_cls(value) if value is not None else None
    except ValueError:
        return None


# ─────────────────────────────────────────────────────────────
#  Cultural Card
# ─────────────────────────────────────────────────────────────

@dataclass
class CulturalCard:
    """A single insight card.

    Structured cards (is_ai_generated=True) carry a category, a bilingual
    name card, exactly four key-knowledge bullets and an insights
    paragraph. Manual cards only carry the legacy type/title/content.
    Cards are never edited in place; regeneration creates a new card that
    replaces the old one by id.
    """

    type: CardType
    title: str
    content: str
    id: str = field(default_factory=new_id)
    date_added: datetime = field(default_factory=utc_now)

    category: Optional[CulturalCategory] = None
    name_card: Optional[str] = None          # legacy single-field name card
    name_card_app: Optional[str] = None      # name in the user's language
    name_card_local: Optional[str] = None    # name in the destination's language
    key_knowledge: Optional[list[str]] = None
    cultural_insights: Optional[str] = None
    question: Optional[str] = None           # the question that produced the card
    is_ai_generated: bool = False
    destination: Optional[str] = None

    @classmethod
    def manual(cls, type: CardType, title: str, content: str) -> CulturalCard:
        return cls(type=type, title=title, content=content)

    @classmethod
    def ai_generated(cls, title: str, category: CulturalCategory,
                     name_card_app: Optional[str], name_card_local: Optional[str],
                     key_knowledge: list[str], cultural_insights: str,
                     destination: str, question: Optional[str] = None) -> CulturalCard:
        return cls(
            type=category.card_type,
            title=title,
            content=cultural_insights,
            category=category,
            name_card=name_card_app,
            name_card_app=name_card_app,
            name_card_local=name_card_local,
            key_knowledge=list(key_knowledge),
            cultural_insights=cultural_insights,
            question=question,
            is_ai_generated=True,
            destination=destination,
        )

    @property
    def bilingual_name(self) -> Optional[str]:
        """The name card as one "<app>\\n<local>" string."""
        if not self.name_card_app:
            return self.name_card
        if self.name_card_local:
            return f"{self.name_card_app}\n{self.name_card_local}"
        return self.name_card_app

    def problems(self) -> list[str]:
        """Invariant violations, empty when the card is consistent."""
        issues = []
        if self.is_ai_generated:
            if not self.key_knowledge or len(self.key_knowledge) != KEY_KNOWLEDGE_COUNT:
                count = len(self.key_knowledge or [])
                issues.append(f"card {self.id}: expected {KEY_KNOWLEDGE_COUNT} key knowledge items, found {count}")
            if not self.cultural_insights:
                issues.append(f"card {self.id}: cultural insights are empty")
            if self.category is None:
                issues.append(f"card {self.id}: structured card has no category")
        return issues

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "content": self.content,
            "dateAdded": format_date(self.date_added),
            "category": self.category.value if self.category else None,
            "nameCard": self.name_card,
            "nameCardApp": self.name_card_app,
            "nameCardLocal": self.name_card_local,
            "keyKnowledge": list(self.key_knowledge) if self.key_knowledge is not None else None,
            "culturalInsights": self.cultural_insights,
            "question": self.question,
            "isAIGenerated": self.is_ai_generated,
            "destination": self.destination,
        }

    @classmethod
    def from_dict(cls, data: dict) -> CulturalCard:
        category = _enum_or_none(CulturalCategory, data.get("category"))
        card_type = _enum_or_none(CardType, data.get("type"))
        if card_type is None:
            card_type = category.card_type if category else CardType.QUICK_FACTS

        key_knowledge = data.get("keyKnowledge")
        if key_knowledge is not None:
            if isinstance(key_knowledge, list):
                key_knowledge = [str(item) for item in key_knowledge]
            else:
                key_knowledge = None

        return cls(
            id=data.get("id") or new_id(),
            type=card_type,
            title=data.get("title") or "",
            content=data.get("content") or "",
            date_added=parse_date(data.get("dateAdded")),
            category=category,
            name_card=data.get("nameCard"),
            name_card_app=data.get("nameCardApp"),
            name_card_local=data.get("nameCardLocal"),
            key_knowledge=key_knowledge,
            cultural_insights=data.get("culturalInsights"),
            question=data.get("question"),
            is_ai_generated=bool(data.get("isAIGenerated", False)),
            destination=data.get("destination"),
        )


# ─────────────────────────────────────────────────────────────
#  Destination
# ─────────────────────────────────────────────────────────────

@dataclass
class Destination:
    """A country and the ordered cards collected for it.

    The id never changes after creation. last_updated is refreshed on
    every card add, remove or replace.
    """

    name: str
    flag: str
    country: str = ""
    cultural_cards: list[CulturalCard] = field(default_factory=list)
    id: str = field(default_factory=new_id)
    date_added: datetime = field(default_factory=utc_now)
    last_updated: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        if not self.country:
            self.country = self.name

    def add_card(self, card: CulturalCard):
        self.cultural_cards.append(card)
        self.last_updated = utc_now()

    def remove_card(self, card_id: str) -> Optional[CulturalCard]:
        """Remove a card by id. Returns the removed card, or None."""
        for index, card in enumerate(self.cultural_cards):
            if card.id == card_id:
                return self.remove_card_at(index)
        return None

    def remove_card_at(self, index: int) -> Optional[CulturalCard]:
        if not 0 <= index < len(self.cultural_cards):
            return None
        removed = self.cultural_cards.pop(index)
        self.last_updated = utc_now()
        return removed

    def replace_card(self, card: CulturalCard) -> bool:
        """Swap in a regenerated card with the same id, keeping its position."""
        for index, existing in enumerate(self.cultural_cards):
            if existing.id == card.id:
                self.cultural_cards[index] = card
                self.last_updated = utc_now()
                return True
        return False

    def get_card(self, card_id: str) -> Optional[CulturalCard]:
        for card in self.cultural_cards:
            if card.id == card_id:
                return card
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "flag": self.flag,
            "country": self.country,
            "culturalCards": [card.to_dict() for card in self.cultural_cards],
            "dateAdded": format_date(self.date_added),
            "lastUpdated": format_date(self.last_updated),
        }

    @classmethod
    def from_dict(cls, data: dict) -> Destination:
        name = data.get("name") or ""
        return cls(
            id=data.get("id") or new_id(),
            name=name,
            flag=data.get("flag") or "",
            country=data.get("country") or name,
            cultural_cards=[CulturalCard.from_dict(c) for c in data.get("culturalCards") or []],
            date_added=parse_date(data.get("dateAdded")),
            last_updated=parse_date(data.get("lastUpdated")),
        )


# ─────────────────────────────────────────────────────────────
#  Sample Data
# ─────────────────────────────────────────────────────────────

def sample_destinations() -> list[Destination]:
    """Fresh copies of the destinations seeded on first launch."""
    japan = Destination(name="Japan", flag="🇯🇵", country="Japan")
    japan.add_card(CulturalCard.ai_generated(
        title="Business Card Exchange",
        category=CulturalCategory.BUSINESS_ETIQUETTE,
        name_card_app="Protocol",
        name_card_local="礼儀",
        key_knowledge=[
            "👥 Present and receive business cards with both hands",
            "👀 Take time to read the card before putting it away",
            "✍️ Never write on someone's business card in their presence",
            "🙏 Show respect for the person's identity and position",
        ],
        cultural_insights=(
            "Business card exchange in Japan is a formal ritual that reflects respect "
            "and hierarchy awareness. The card represents the person's identity and "
            "status, so treating it with care demonstrates your understanding of "
            "Japanese business culture and attention to proper etiquette."
        ),
        destination="Japan",
    ))
    japan.add_card(CulturalCard.ai_generated(
        title="Bowing Etiquette",
        category=CulturalCategory.GREETING_CUSTOMS,
        name_card_app="Respect",
        name_card_local="尊敬",
        key_knowledge=[
            "🙇 Bowing depth reflects hierarchy and respect levels",
            "👴 Wait for the senior person to initiate the greeting",
            "⏱️ Hold the bow for an appropriate duration",
            "🤝 Some situations may combine bowing with handshakes",
        ],
        cultural_insights=(
            "Bowing remains an important part of Japanese business culture, especially "
            "in formal situations. The depth and duration of your bow should reflect the "
            "status of the person you're greeting. A slight bow of the head is "
            "appropriate for foreigners, but understanding the nuances shows cultural "
            "awareness and respect."
        ),
        destination="Japan",
    ))

    germany = Destination(name="Germany", flag="🇩🇪", country="Germany")
    germany.add_card(CulturalCard.ai_generated(
        title="Punctuality",
        category=CulturalCategory.TIME_MANAGEMENT,
        name_card_app="Time",
        name_card_local="Zeit",
        key_knowledge=[
            "⏰ Arrive exactly on time or slightly early",
            "📅 Respect scheduled meeting times strictly",
            "🚫 Being late is considered disrespectful and unprofessional",
            "⚡ Germans value efficiency and time management",
        ],
        cultural_insights=(
            "German business culture places extremely high value on punctuality and time "
            "management. Arriving late to meetings or appointments is seen as "
            "disrespectful and unprofessional. This reflects the broader cultural values "
            "of efficiency, reliability, and respect for others' time."
        ),
        destination="Germany",
    ))
    germany.add_card(CulturalCard.ai_generated(
        title="Table Manners",
        category=CulturalCategory.DINING_CULTURE,
        name_card_app="Dining",
        name_card_local="Speisen",
        key_knowledge=[
            "👐 Keep your hands visible on the table",
            "🍽️ Wait for the host to say 'Guten Appetit' before eating",
            "🥔 Don't cut potatoes with a knife - use your fork",
            "🍞 Break bread with your hands, don't cut it",
        ],
        cultural_insights=(
            "German dining etiquette emphasizes proper table manners and respect for food "
            "traditions. Understanding these customs shows cultural awareness and helps "
            "build better business relationships during important meals and social "
            "gatherings."
        ),
        destination="Germany",
    ))
    return [japan, germany]

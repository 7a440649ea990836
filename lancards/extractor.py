"""
Response Extractor — Free-Form Model Text to Card Fields
=========================================================
Pure functions: text in, PartialInsight out. No I/O, never raises.

Extraction tiers, tried in order:
    STRICT   — the whole text decodes as the exact card schema
    PATTERN  — per-field recovery from malformed text:
                 scalar matcher  "<key>": "<value>"
                 array matcher   "<key>": [ "...", "..." ]
    NONE     — nothing recoverable; every field is left absent

Each pattern strategy returns a partial dict of fields. Results are
merged left to right: the first strategy to produce a field wins. The
tier reached is recorded on the result so callers can see how far the
text degraded.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from lancards.models import KEY_KNOWLEDGE_COUNT

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
#  Card Schema
# ─────────────────────────────────────────────────────────────

# JSON field names -> PartialInsight attribute names
CARD_FIELDS: dict[str, str] = {
    "title": "title",
    "category": "category",
    "nameCard": "name_card",
    "keyKnowledge": "key_knowledge",
    "culturalInsights": "cultural_insights",
}

# Older prompt formats named two of the fields differently.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "keyKnowledge": ("practicalTips",),
    "culturalInsights": ("insight",),
}

SCALAR_FIELDS = ("title", "category", "nameCard", "culturalInsights")
ARRAY_FIELDS = ("keyKnowledge",)

CARD_SCHEMA: dict = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "category": {"type": "string"},
        "nameCard": {"type": "string"},
        "keyKnowledge": {
            "type": "array",
            "items": {"type": "string"},
            "minItems": KEY_KNOWLEDGE_COUNT,
            "maxItems": KEY_KNOWLEDGE_COUNT,
        },
        "culturalInsights": {"type": "string"},
    },
    "required": list(CARD_FIELDS),
}


class ExtractionTier(Enum):
    STRICT = "strict"
    PATTERN = "pattern"
    NONE = "none"


@dataclass
class PartialInsight:
    """Card fields recovered from model text; any of them may be absent."""

    title: Optional[str] = None
    category: Optional[str] = None
    name_card: Optional[str] = None
    key_knowledge: Optional[list[str]] = None
    cultural_insights: Optional[str] = None
    tier: ExtractionTier = ExtractionTier.NONE
    recovered: list[str] = field(default_factory=list)   # JSON names, in recovery order

    @property
    def missing_fields(self) -> list[str]:
        return [name for name, attr in CARD_FIELDS.items() if getattr(self, attr) is None]

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields

    def as_dict(self) -> dict:
        return {name: getattr(self, attr) for name, attr in CARD_FIELDS.items()}


# ─────────────────────────────────────────────────────────────
#  Tier 1 — Strict decode
# ─────────────────────────────────────────────────────────────

def strip_code_fence(text: str) -> str:
    """Remove a surrounding ```json ... ``` fence if the model added one."""
    content = text.strip()
    if content.startswith("```"):
        lines = content.split("\n")
        end = len(lines)
        for i in range(len(lines) - 1, 0, -1):
            if lines[i].strip() == "```":
                end = i
                break
        return "\n".join(lines[1:end]).strip()
    return content


def decode_strict(text: str) -> Optional[dict]:
    """Decode text against the exact card schema, or return None."""
    try:
        data = json.loads(strip_code_fence(text))
    except (json.JSONDecodeError, TypeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None

    for name in SCALAR_FIELDS:
        if not isinstance(data.get(name), str):
            return None
    bullets = data.get("keyKnowledge")
    if not isinstance(bullets, list) or len(bullets) != KEY_KNOWLEDGE_COUNT:
        return None
    if not all(isinstance(b, str) for b in bullets):
        return None
    return {name: data[name] for name in CARD_FIELDS}


# ─────────────────────────────────────────────────────────────
#  Tier 2 — Pattern recovery
# ─────────────────────────────────────────────────────────────

_STRING_BODY = r'"((?:[^"\\]|\\.)*)"'
_STRING_RE = re.compile(_STRING_BODY, re.DOTALL)


def _unescape(raw: str) -> str:
    try:
        return json.loads(f'"{raw}"', strict=False)
    except (json.JSONDecodeError, ValueError):
        return raw.replace('\\"', '"').replace("\\n", "\n")


def _key_names(name: str) -> tuple[str, ...]:
    return (name,) + FIELD_ALIASES.get(name, ())


def extract_scalar(text: str, name: str) -> Optional[str]:
    """Find "<name>": "<value>" (or an alias) and return the decoded value."""
    for key in _key_names(name):
        pattern = re.compile(r'"' + re.escape(key) + r'"\s*:\s*' + _STRING_BODY, re.DOTALL)
        match = pattern.search(text)
        if match:
            return _unescape(match.group(1)).strip()
    return None


def extract_array(text: str, name: str) -> Optional[list[str]]:
    """Find "<name>": [ ... ] and return its quoted strings, trimmed.

    Scans string by string so brackets and commas inside an item are
    harmless, and tolerates an array that was cut off before its ']'.
    """
    for key in _key_names(name):
        opener = re.compile(r'"' + re.escape(key) + r'"\s*:\s*\[')
        match = opener.search(text)
        if not match:
            continue

        items = []
        pos = match.end()
        while pos < len(text):
            char = text[pos]
            if char == "]":
                break
            if char == '"':
                string_match = _STRING_RE.match(text, pos)
                if not string_match:
                    break
                value = _unescape(string_match.group(1)).strip()
                if value:
                    items.append(value)
                pos = string_match.end()
                continue
            pos += 1
        if items:
            return items
    return None


def _scalar_strategy(name: str) -> Callable[[str], dict]:
    def strategy(text: str) -> dict:
        value = extract_scalar(text, name)
        return {name: value} if value else {}
    return strategy


def _array_strategy(name: str) -> Callable[[str], dict]:
    def strategy(text: str) -> dict:
        value = extract_array(text, name)
        return {name: value} if value else {}
    return strategy


PATTERN_STRATEGIES: list[Callable[[str], dict]] = (
    [_scalar_strategy(name) for name in SCALAR_FIELDS]
    + [_array_strategy(name) for name in ARRAY_FIELDS]
)


def merge_partials(partials: list[dict]) -> dict:
    """Left-to-right merge: the first partial to supply a field keeps it."""
    merged: dict = {}
    for partial in partials:
        for name, value in partial.items():
            if value is not None and name not in merged:
                merged[name] = value
    return merged


# ─────────────────────────────────────────────────────────────
#  Entry point
# ─────────────────────────────────────────────────────────────

def _to_insight(values: dict, tier: ExtractionTier) -> PartialInsight:
    insight = PartialInsight(tier=tier)
    for name, attr in CARD_FIELDS.items():
        if name in values:
            setattr(insight, attr, values[name])
            insight.recovered.append(name)
    return insight


def extract(raw_text: Optional[str]) -> PartialInsight:
    """Recover card fields from raw model text. Never raises."""
    text = raw_text or ""

    strict = decode_strict(text)
    if strict is not None:
        logger.debug("Extraction tier: strict")
        return _to_insight(strict, ExtractionTier.STRICT)

    recovered = merge_partials([strategy(text) for strategy in PATTERN_STRATEGIES])
    if recovered:
        insight = _to_insight(recovered, ExtractionTier.PATTERN)
        logger.info("Strict decode failed; recovered %s, missing %s",
                    insight.recovered, insight.missing_fields)
        return insight

    logger.warning("Nothing recoverable in provider output (%d chars)", len(text))
    return PartialInsight(tier=ExtractionTier.NONE)


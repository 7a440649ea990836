"""
Localization Tables — Local-Language Names and Speech Codes
============================================================
Backfills the local-language half of a name card when generated text
only carries the app-language half, and tells the speech collaborator
which voice to use for a destination.

Lookups are keyed by (concept, country). A miss returns None: the
local name stays absent rather than guessed.
"""

from __future__ import annotations

from typing import Optional


# concept (lowercase, app language) -> local-language name
_JAPAN = {
    "protocol": "礼儀",
    "respect": "尊敬",
    "time": "時間",
    "punctuality": "時間厳守",
    "dining": "食事",
    "gift": "贈り物",
    "communication": "コミュニケーション",
    "hierarchy": "上下関係",
    "greeting": "挨拶",
    "relationships": "人間関係",
    "harmony": "和",
    "meeting": "会議",
    "business card": "名刺",
    "trust": "信頼",
}

_GERMANY = {
    "protocol": "Protokoll",
    "respect": "Respekt",
    "time": "Zeit",
    "punctuality": "Pünktlichkeit",
    "dining": "Speisen",
    "gift": "Geschenk",
    "communication": "Kommunikation",
    "hierarchy": "Hierarchie",
    "greeting": "Begrüßung",
    "relationships": "Beziehungen",
    "harmony": "Harmonie",
    "meeting": "Besprechung",
    "business card": "Visitenkarte",
    "trust": "Vertrauen",
}

_CHINA = {
    "protocol": "礼仪",
    "respect": "尊重",
    "time": "时间",
    "punctuality": "守时",
    "dining": "用餐",
    "gift": "礼物",
    "communication": "沟通",
    "hierarchy": "等级",
    "greeting": "问候",
    "relationships": "关系",
    "harmony": "和谐",
    "meeting": "会议",
    "business card": "名片",
    "trust": "信任",
    "face": "面子",
}

_KOREA = {
    "protocol": "예절",
    "respect": "존경",
    "time": "시간",
    "punctuality": "시간 엄수",
    "dining": "식사",
    "gift": "선물",
    "communication": "소통",
    "hierarchy": "위계",
    "greeting": "인사",
    "relationships": "관계",
    "harmony": "조화",
    "meeting": "회의",
    "business card": "명함",
    "trust": "신뢰",
}

_FRANCE = {
    "protocol": "Protocole",
    "respect": "Respect",
    "time": "Temps",
    "punctuality": "Ponctualité",
    "dining": "Repas",
    "gift": "Cadeau",
    "communication": "Communication",
    "hierarchy": "Hiérarchie",
    "greeting": "Salutation",
    "relationships": "Relations",
    "harmony": "Harmonie",
    "meeting": "Réunion",
    "business card": "Carte de visite",
    "trust": "Confiance",
}

_SPAIN = {
    "protocol": "Protocolo",
    "respect": "Respeto",
    "time": "Tiempo",
    "punctuality": "Puntualidad",
    "dining": "Comida",
    "gift": "Regalo",
    "communication": "Comunicación",
    "hierarchy": "Jerarquía",
    "greeting": "Saludo",
    "relationships": "Relaciones",
    "harmony": "Armonía",
    "meeting": "Reunión",
    "business card": "Tarjeta de visita",
    "trust": "Confianza",
}

LOCAL_NAMES: dict[str, dict[str, str]] = {
    "japan": _JAPAN,
    "germany": _GERMANY,
    "china": _CHINA,
    "korea": _KOREA,
    "france": _FRANCE,
    "spain": _SPAIN,
}

_COUNTRY_ALIASES = {
    "south korea": "korea",
    "republic of korea": "korea",
    "deutschland": "germany",
    "nippon": "japan",
    "prc": "china",
    "mainland china": "china",
    "mexico": "spain",
    "argentina": "spain",
    "colombia": "spain",
}

_LANGUAGE_CODES = {
    "japan": "ja-JP",
    "germany": "de-DE",
    "china": "zh-CN",
    "korea": "ko-KR",
    "france": "fr-FR",
    "spain": "es-ES",
    "mexico": "es-MX",
    "italy": "it-IT",
    "brazil": "pt-BR",
}

DEFAULT_LANGUAGE_CODE = "en-US"


def normalize_country(country: Optional[str]) -> str:
    key = (country or "").strip().lower()
    return _COUNTRY_ALIASES.get(key, key)


def local_name(concept: Optional[str], country: Optional[str]) -> Optional[str]:
    """Local-language name for a concept, or None when the table has no entry."""
    if not concept:
        return None
    table = LOCAL_NAMES.get(normalize_country(country))
    if not table:
        return None
    return table.get(concept.strip().lower())


def language_code_for(country: Optional[str]) -> str:
    """BCP-47 speech code for a destination (en-US when unknown)."""
    key = (country or "").strip().lower()
    if key in _LANGUAGE_CODES:
        return _LANGUAGE_CODES[key]
    return _LANGUAGE_CODES.get(normalize_country(key), DEFAULT_LANGUAGE_CODE)


def local_language_text(bilingual: str) -> str:
    """The text to speak from a "<app>\\n<local>" name: second line if present."""
    lines = bilingual.split("\n")
    if len(lines) > 1 and lines[1].strip():
        return lines[1].strip()
    return lines[0].strip() if lines else bilingual


def split_bilingual(text: Optional[str], country: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    """Split a name card on its newline into (app, local).

    With only one segment, the local half comes from the table or stays
    None.
    """
    if text is None:
        return None, None
    segments = [line.strip() for line in text.split("\n") if line.strip()]
    if not segments:
        return None, None
    app = segments[0]
    if len(segments) > 1:
        return app, segments[1]
    return app, local_name(app, country)

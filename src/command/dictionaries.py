"""Spanish dictionaries for herd categories and command filler words.

These mappings are used by the extractors and should remain small and deterministic. All terms
are stored already normalized (lowercase, no diacritics).
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from src.command.normalize import normalize
from src.command.schema import HerdCategory

CATEGORY_SYNONYMS: dict[HerdCategory, tuple[str, ...]] = {
    HerdCategory.TERNEROS: ("terneros", "ternero"),
    HerdCategory.TERNERAS: ("terneras", "ternera"),
    HerdCategory.TERNEROS_DESTETADOS: ("terneros destetados", "destetados"),
    HerdCategory.VAQUILLONAS: ("vaquillonas", "vaquillona"),
    HerdCategory.VACAS: ("vacas", "vaca"),
    HerdCategory.TOROS: ("toros", "toro"),
    HerdCategory.NOVILLOS: ("novillos", "novillo"),
    HerdCategory.VIENTRES: ("vientres", "vientre"),
    HerdCategory.CORDEROS: ("corderos", "cordero"),
    HerdCategory.OVEJAS: ("ovejas", "oveja"),
    HerdCategory.CARNEROS: ("carneros", "carnero"),
}

CATEGORY_LABELS: dict[HerdCategory, str] = {
    HerdCategory.TERNEROS: "Terneros",
    HerdCategory.TERNERAS: "Terneras",
    HerdCategory.TERNEROS_DESTETADOS: "Terneros destetados",
    HerdCategory.VAQUILLONAS: "Vaquillonas",
    HerdCategory.VACAS: "Vacas",
    HerdCategory.TOROS: "Toros",
    HerdCategory.NOVILLOS: "Novillos",
    HerdCategory.VIENTRES: "Vientres",
    HerdCategory.CORDEROS: "Corderos",
    HerdCategory.OVEJAS: "Ovejas",
    HerdCategory.CARNEROS: "Carneros",
}

# Words that never belong to a product name ("vacunar 40 vacas con aftosa el 2026-02-01").
FILLER_WORDS: frozenset[str] = frozenset(
    {
        "a",
        "al",
        "con",
        "de",
        "del",
        "dosis",
        "el",
        "en",
        "hoy",
        "la",
        "las",
        "lote",
        "los",
        "para",
        "y",
    }
)


@dataclass(frozen=True)
class CategoryMatch:
    """A concrete synonym matched to a canonical herd category."""

    category: HerdCategory
    phrase: str


_CATEGORY_MATCHES: list[CategoryMatch] = sorted(
    (
        CategoryMatch(category=category, phrase=phrase)
        for category, phrases in CATEGORY_SYNONYMS.items()
        for phrase in phrases
    ),
    key=lambda m: (-len(m.phrase), m.phrase),
)

_CATEGORY_PATTERNS: list[tuple[CategoryMatch, re.Pattern[str]]] = [
    (match, re.compile(rf"\b{re.escape(match.phrase)}\b")) for match in _CATEGORY_MATCHES
]

CATEGORY_TERMS: frozenset[str] = frozenset(
    word for phrases in CATEGORY_SYNONYMS.values() for phrase in phrases for word in phrase.split()
)


def find_category(text: str) -> HerdCategory | None:
    """Detect the first herd category mentioned in text.

    On equal positions the longer synonym wins, so "terneros destetados" is not read as
    "terneros" ("entore de vacas con 3 toros" is VACAS).
    """

    normalized = normalize(text)
    best: tuple[int, CategoryMatch] | None = None
    for match, pattern in _CATEGORY_PATTERNS:
        found = pattern.search(normalized)
        if found is None:
            continue
        if best is None or found.start() < best[0]:
            best = (found.start(), match)
    return best[1].category if best else None

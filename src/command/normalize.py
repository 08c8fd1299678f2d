"""Text normalization for keyword matching and entity-name comparison."""

from __future__ import annotations

import unicodedata


def normalize(text: str | None) -> str:
    """Lowercase and strip diacritics ("Potrero Ñandú" -> "potrero nandu").

    Punctuation and spacing are preserved so extractors can still anchor on separators such as
    ":" or ",".
    """

    decomposed = unicodedata.normalize("NFD", text or "")
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.lower()

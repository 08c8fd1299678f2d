"""Fuzzy resolution of free-text names against a catalog of named entities.

Resolution prefers an explicit "not sure" over a silent guess: when two catalog entries both
clear the similarity threshold the result is ambiguous and no match is returned.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from src.command.normalize import normalize
from src.command.schema import NameEntity

DEFAULT_THRESHOLD = 0.72
MAX_ALTERNATIVES = 3


@dataclass(frozen=True)
class Resolution:
    """Resolver outcome: a single match, or `None` plus the closest candidates."""

    match: NameEntity | None
    alternatives: list[NameEntity] = field(default_factory=list)

    @property
    def is_ambiguous(self) -> bool:
        return self.match is None and len(self.alternatives) > 1


def levenshtein(a: str, b: str) -> int:
    """Edit distance with unit cost for insertion, deletion and substitution."""

    if len(a) < len(b):
        a, b = b, a

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + cost,
                )
            )
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """Normalized similarity in [0, 1]; 1.0 means identical strings."""

    max_len = max(len(a), len(b), 1)
    return 1 - levenshtein(a, b) / max_len


def resolve(
        query: str,
        catalog: Sequence[NameEntity],
        threshold: float = DEFAULT_THRESHOLD,
) -> Resolution:
    """Resolve `query` to one catalog entry.

    Rules:
        - an exact normalized match always wins, with no alternatives;
        - otherwise the best fuzzy score must reach `threshold`;
        - if the runner-up also reaches `threshold` the query is ambiguous.

    Unresolved results carry the top candidates (best first) as `alternatives`.
    """

    normalized = normalize(query).strip()
    for item in catalog:
        if normalize(item.name).strip() == normalized:
            return Resolution(match=item)

    scored = sorted(
        ((similarity(normalized, normalize(item.name).strip()), item) for item in catalog),
        key=lambda pair: pair[0],
        reverse=True,
    )
    if not scored:
        return Resolution(match=None)

    alternatives = [item for _, item in scored[:MAX_ALTERNATIVES]]
    best_score, best_item = scored[0]
    if best_score < threshold:
        return Resolution(match=None, alternatives=alternatives)
    if len(scored) > 1 and scored[1][0] >= threshold:
        return Resolution(match=None, alternatives=alternatives)
    return Resolution(match=best_item)

"""Command interpreter: ordered intent dispatch and result assembly.

Every rule in `RULES` is tested against the normalized text; there is no early return. When
more than one rule matches, the intent and confidence of the last match win while proposed
operations and warnings of all matches are kept in rule order. The keyword prefixes are
mutually exclusive for real instructions, so this only matters for crafted input.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field

from src.command import extractors
from src.command.dates import Clock, utc_now
from src.command.extractors import Extraction, ExtractionContext
from src.command.normalize import normalize
from src.command.resolver import DEFAULT_THRESHOLD
from src.command.schema import (
    UNKNOWN_INTENT,
    Intent,
    ParseContext,
    ParseResult,
    ProposedOperation,
)

logger = logging.getLogger(__name__)

TokenFactory = Callable[[], str]
Predicate = Callable[[str], bool]
Extractor = Callable[[str, ExtractionContext], Extraction]

UNKNOWN_CONFIDENCE = 0.2
UNKNOWN_INTENT_ERROR = "No se pudo reconocer la intención."


def _starts_with(*prefixes: str) -> Predicate:
    def predicate(normalized: str) -> bool:
        return normalized.startswith(prefixes)

    return predicate


@dataclass(frozen=True)
class Rule:
    """A keyword guard paired with the extractor it unlocks."""

    name: str
    predicate: Predicate
    extract: Extractor


RULES: tuple[Rule, ...] = (
    Rule("move", _starts_with("mover"), extractors.extract_move),
    Rule("vaccination", _starts_with("vacunar"), extractors.extract_vaccination),
    Rule("deworming", _starts_with("desparasitar"), extractors.extract_deworming),
    Rule("treatment", _starts_with("tratar", "tratamiento"), extractors.extract_treatment),
    Rule("breeding_start", _starts_with("iniciar entore"), extractors.extract_breeding_start),
    Rule("weaning", _starts_with("destetar"), extractors.extract_weaning),
    Rule("branding", _starts_with("yerra"), extractors.extract_branding),
    Rule(
        "slaughter_shipment",
        _starts_with("enviar a frigor"),
        extractors.extract_slaughter_shipment,
    ),
)


def new_confirmation_token() -> str:
    return str(uuid.uuid4())


@dataclass
class CommandInterpreter:
    """Interpret Spanish livestock instructions into reviewable operations.

    The clock and token factory are injectable so results are reproducible under test.
    """

    threshold: float = DEFAULT_THRESHOLD
    clock: Clock = utc_now
    token_factory: TokenFactory = new_confirmation_token
    rules: tuple[Rule, ...] = field(default=RULES)

    def parse(self, text: str, context: ParseContext) -> ParseResult:
        """Parse one instruction against a fresh catalog snapshot. Never raises on bad text."""

        normalized = normalize(text).strip()
        ctx = ExtractionContext(catalog=context, threshold=self.threshold, now=self.clock())

        intent: Intent = UNKNOWN_INTENT
        confidence = UNKNOWN_CONFIDENCE
        operations: list[ProposedOperation] = []
        warnings: list[str] = []
        edits_needed: list[str] = []

        for rule in self.rules:
            if not rule.predicate(normalized):
                continue
            extraction = rule.extract(text, ctx)
            intent = extraction.type
            confidence = extraction.confidence
            operations.append(
                ProposedOperation(
                    type=extraction.type,
                    occurred_at=extraction.occurred_at,
                    payload=extraction.payload,
                )
            )
            warnings.extend(extraction.warnings)
            edits_needed.extend(extraction.edits_needed)

        errors = [UNKNOWN_INTENT_ERROR] if intent == UNKNOWN_INTENT else []

        result = ParseResult(
            intent=intent,
            confidence=confidence,
            proposed_operations=operations,
            warnings=warnings,
            errors=errors,
            edits_needed=edits_needed or None,
            confirmation_token=self.token_factory(),
        )
        logger.debug(
            "parsed intent=%s confidence=%.2f warnings=%d",
            result.intent,
            result.confidence,
            len(result.warnings),
        )
        return result


def parse_command(
        text: str,
        context: ParseContext,
        *,
        threshold: float = DEFAULT_THRESHOLD,
) -> ParseResult:
    """Parse text into a `ParseResult` (convenience wrapper)."""

    return CommandInterpreter(threshold=threshold).parse(text, context)

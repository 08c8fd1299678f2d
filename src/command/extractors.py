"""Per-intent extraction rules.

Each extractor reads one kind of instruction and returns an `Extraction`: the proposed payload
plus warnings for every field it could not fill. Missing fields never abort extraction; the
operation is still proposed with `None` placeholders so the operator can complete it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.command.dates import resolve_date
from src.command.dictionaries import CATEGORY_TERMS, FILLER_WORDS, find_category
from src.command.normalize import normalize
from src.command.resolver import Resolution, resolve
from src.command.schema import HerdCategory, NameEntity, OperationType, ParseContext


@dataclass(frozen=True)
class ExtractionContext:
    """Inputs shared by all extractors for one parse call."""

    catalog: ParseContext
    threshold: float
    now: datetime


@dataclass
class Extraction:
    """Partial parse produced by a single extractor."""

    type: OperationType
    confidence: float
    occurred_at: datetime
    payload: dict[str, Any]
    warnings: list[str] = field(default_factory=list)
    edits_needed: list[str] = field(default_factory=list)


# A standalone integer of up to nine digits: "120" counts, "2ml", "170kg", "15/11", "16:00" and
# "2026-02-01" do not.
_QTY_TOKEN_RE = re.compile(r"(?<![\w/.:,-])(\d{1,9})(?![\w/.:-])")
_DOSE_RE = re.compile(r"(\d+(?:\.\d+)?\s?ml)\b", re.IGNORECASE)
_WORD_RE = re.compile(r"^[^\W\d_]+$")
_TOKEN_STRIP = ".,;:!?¡¿()\"'"

_MOVE_SPLIT_RE = re.compile(r"\s(?:al|hasta)\s+", re.IGNORECASE)
_MOVE_ORIGIN_RE = re.compile(
    r"\b(?:desde|del|de\s+la|de\s+los|de\s+las|de)\s+(?:(?:el|la|los|las)\s+)?(?P<name>.+)$",
    re.IGNORECASE,
)
_MOVE_DESTINATION_RE = re.compile(
    r"^(?P<name>[^,]+?)(?:\s+hoy\b|\s+el\s+\d|\s*,|$)",
    re.IGNORECASE,
)

_BULLS_RE = re.compile(r"con\s+(\d{1,9})\s+toros", re.IGNORECASE)
_BREEDING_FROM_RE = re.compile(r"desde\s+(\S+)\s+hasta", re.IGNORECASE)
_BREEDING_TO_RE = re.compile(r"hasta\s+(\S+)", re.IGNORECASE)

_HERD_CODE_RE = re.compile(r"lote\s+([a-z0-9-]+)", re.IGNORECASE)
_WEIGHT_RE = re.compile(r"peso\s+(\d{1,9})(?!\d)", re.IGNORECASE)

_BRANDING_QTY_RE = re.compile(r"yerra\s+(\d{1,9})(?!\d)", re.IGNORECASE)
_CASTRATE_RE = re.compile(r"castrar\s+(\d{1,9})(?!\d)", re.IGNORECASE)

_CONSIGNOR_RE = re.compile(r"consignatario\s+([^:]+):", re.IGNORECASE)
_SLAUGHTERHOUSE_RE = re.compile(r"frigor[ií]fico\s+(.+?)\s+por\b", re.IGNORECASE)
_SHIPMENT_ITEM_RE = re.compile(
    r"(?<!\d)(?P<qty>\d{1,9})\s+(?P<words>[^\W\d_]+(?:\s+[^\W\d_]+)*?)\s+a\s+"
    r"(?P<price>\d{1,9}(?:\.\d{1,9})?)(?!\d)",
    re.IGNORECASE,
)

SHIPMENT_ALLOCATION_WARNING = "Se requiere asignar lotes para confirmar la consignación."
SHIPMENT_ALLOCATION_EDIT = "Asignar herd_id a cada ítem antes de confirmar."


def first_quantity(text: str) -> int | None:
    match = _QTY_TOKEN_RE.search(text)
    return int(match.group(1)) if match else None


def _int_group(pattern: re.Pattern[str], text: str) -> int | None:
    match = pattern.search(text)
    return int(match.group(1)) if match else None


def _number(raw: str) -> int | float:
    return float(raw) if "." in raw else int(raw)


def _alternatives_warning(label: str, resolution: Resolution) -> list[str]:
    if not resolution.is_ambiguous:
        return []
    names = ", ".join(item.name for item in resolution.alternatives)
    return [f"{label} ambiguo, posibles coincidencias: {names}."]


def _resolve_name(name: str, catalog: list[NameEntity], threshold: float) -> Resolution:
    if not name:
        return Resolution(match=None)
    return resolve(name, catalog, threshold)


def extract_product(text: str) -> str | None:
    """Pick the product words following the verb.

    Quantities, "lote", category words and connectors before the product are skipped; the
    product ends at the next number, dose, connector or category word.
    """

    words: list[str] = []
    for raw_token in text.split()[1:]:
        token = raw_token.strip(_TOKEN_STRIP)
        key = normalize(token)
        is_word = bool(_WORD_RE.match(token)) and key != "ml"
        is_noise = key in FILLER_WORDS or key in CATEGORY_TERMS
        if not words:
            if is_word and not is_noise:
                words.append(token)
            continue
        if not is_word or is_noise:
            break
        words.append(token)
    return " ".join(words) or None


def extract_move(text: str, ctx: ExtractionContext) -> Extraction:
    """"Mover 120 terneros del Potrero 3 al Potrero 7 hoy"."""

    category = find_category(text)

    parts = _MOVE_SPLIT_RE.split(text, maxsplit=1)
    origin_segment = parts[0]
    destination_segment = parts[1] if len(parts) > 1 else ""

    origin_match = _MOVE_ORIGIN_RE.search(origin_segment)
    destination_match = _MOVE_DESTINATION_RE.search(destination_segment)
    # Head count comes before the origin, so "Potrero 3" is never read as 3 head.
    qty = first_quantity(origin_segment[: origin_match.start()] if origin_match else origin_segment)
    from_name = origin_match.group("name").strip() if origin_match else ""
    to_name = destination_match.group("name").strip() if destination_match else ""

    origin = _resolve_name(from_name, ctx.catalog.paddocks, ctx.threshold)
    destination = _resolve_name(to_name, ctx.catalog.paddocks, ctx.threshold)

    warnings: list[str] = []
    if not qty:
        warnings.append("Falta cantidad a mover.")
    if category is None:
        warnings.append("Falta categoría del lote.")
    if origin.match is None:
        warnings.append("No se pudo identificar el potrero de origen.")
        warnings.extend(_alternatives_warning("Potrero de origen", origin))
    if destination.match is None:
        warnings.append("No se pudo identificar el potrero de destino.")
        warnings.extend(_alternatives_warning("Potrero de destino", destination))

    return Extraction(
        type=OperationType.MOVE,
        confidence=0.7,
        occurred_at=resolve_date(text, now=ctx.now),
        payload={
            "qty": qty,
            "category": category,
            "fromPaddockId": origin.match.id if origin.match else None,
            "toPaddockId": destination.match.id if destination.match else None,
        },
        warnings=warnings,
    )


def _extract_health(
        text: str,
        ctx: ExtractionContext,
        *,
        op_type: OperationType,
        confidence: float,
        default_product: str | None,
        missing_category_warning: str,
) -> Extraction:
    category = find_category(text)
    dose = _DOSE_RE.search(text)

    warnings: list[str] = []
    if category is None:
        warnings.append(missing_category_warning)

    return Extraction(
        type=op_type,
        confidence=confidence,
        occurred_at=resolve_date(text, now=ctx.now),
        payload={
            "qty": first_quantity(text),
            "category": category,
            "product": extract_product(text) or default_product,
            "dose": dose.group(1) if dose else None,
        },
        warnings=warnings,
    )


def extract_vaccination(text: str, ctx: ExtractionContext) -> Extraction:
    """"Vacunar 45 vaquillonas clostridiosis 5ml"."""

    return _extract_health(
        text,
        ctx,
        op_type=OperationType.VACCINATION,
        confidence=0.65,
        default_product=None,
        missing_category_warning="Falta categoría del lote a vacunar.",
    )


def extract_deworming(text: str, ctx: ExtractionContext) -> Extraction:
    return _extract_health(
        text,
        ctx,
        op_type=OperationType.DEWORMING,
        confidence=0.65,
        default_product="desparasitación",
        missing_category_warning="Falta categoría del lote a desparasitar.",
    )


def extract_treatment(text: str, ctx: ExtractionContext) -> Extraction:
    return _extract_health(
        text,
        ctx,
        op_type=OperationType.TREATMENT,
        confidence=0.6,
        default_product="tratamiento",
        missing_category_warning="Falta categoría del lote en tratamiento.",
    )


def extract_breeding_start(text: str, ctx: ExtractionContext) -> Extraction:
    """"Iniciar entore de vacas con 3 toros desde 15/11 hasta 15/01"."""

    from_match = _BREEDING_FROM_RE.search(text)
    to_match = _BREEDING_TO_RE.search(text)
    end_at = resolve_date(to_match.group(1) if to_match else None, now=ctx.now)

    return Extraction(
        type=OperationType.BREEDING_START,
        confidence=0.7,
        occurred_at=resolve_date(from_match.group(1) if from_match else None, now=ctx.now),
        payload={
            "category": find_category(text) or HerdCategory.VACAS,
            "bulls": _int_group(_BULLS_RE, text),
            "endAt": end_at.isoformat(),
        },
    )


def extract_weaning(text: str, ctx: ExtractionContext) -> Extraction:
    """"Destetar 85 terneros del lote VAC-2025-01, peso 170kg"."""

    category = find_category(text)
    to_category = (
        HerdCategory.VAQUILLONAS
        if category == HerdCategory.TERNERAS
        else HerdCategory.TERNEROS_DESTETADOS
    )
    herd_match = _HERD_CODE_RE.search(text)

    warnings: list[str] = []
    if category is None:
        warnings.append("Falta categoría del lote a destetar.")

    return Extraction(
        type=OperationType.WEANING,
        confidence=0.75,
        occurred_at=resolve_date(text, now=ctx.now),
        payload={
            "qty": first_quantity(text),
            "category": category,
            "toCategory": to_category,
            "herdCode": herd_match.group(1).upper() if herd_match else None,
            "avgWeightKg": _int_group(_WEIGHT_RE, text),
        },
        warnings=warnings,
    )


def extract_branding(text: str, ctx: ExtractionContext) -> Extraction:
    """"Yerra 60 terneros, castrar 30, hoy"."""

    return Extraction(
        type=OperationType.BRANDING,
        confidence=0.7,
        occurred_at=resolve_date(text, now=ctx.now),
        payload={
            "qty": _int_group(_BRANDING_QTY_RE, text),
            "castrateQty": _int_group(_CASTRATE_RE, text),
        },
    )


def extract_slaughter_shipment(text: str, ctx: ExtractionContext) -> Extraction:
    """"Enviar a frigorífico Las Moras por consignatario Pérez: 35 novillos a 620, 12 vacas a 480".

    Never auto-applicable: every line item still needs a concrete herd assigned by a human.
    """

    consignor_match = _CONSIGNOR_RE.search(text)
    slaughterhouse_match = _SLAUGHTERHOUSE_RE.search(text)
    consignor = _resolve_name(
        consignor_match.group(1).strip() if consignor_match else "",
        ctx.catalog.consignors,
        ctx.threshold,
    )
    slaughterhouse = _resolve_name(
        slaughterhouse_match.group(1).strip() if slaughterhouse_match else "",
        ctx.catalog.slaughterhouses,
        ctx.threshold,
    )

    items = [
        {
            "qty": int(match.group("qty")),
            "category": find_category(match.group("words")),
            "unitPrice": _number(match.group("price")),
            "herdId": None,
        }
        for match in _SHIPMENT_ITEM_RE.finditer(text)
    ]

    warnings: list[str] = []
    if consignor.match is None:
        warnings.append("Consignatario no identificado.")
    if slaughterhouse.match is None:
        warnings.append("Frigorífico no identificado.")
    if any(item["category"] is None for item in items):
        warnings.append("Faltan categorías en los ítems.")
    warnings.append(SHIPMENT_ALLOCATION_WARNING)

    return Extraction(
        type=OperationType.SLAUGHTER_SHIPMENT,
        confidence=0.8,
        occurred_at=resolve_date(text, now=ctx.now),
        payload={
            "consignorId": consignor.match.id if consignor.match else None,
            "slaughterhouseId": slaughterhouse.match.id if slaughterhouse.match else None,
            "items": items,
        },
        warnings=warnings,
        edits_needed=[SHIPMENT_ALLOCATION_EDIT],
    )

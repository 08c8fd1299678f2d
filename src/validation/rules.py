"""Confirm-time business rules.

Every rule is a pure function returning a list of `ValidationError` (empty means valid). Rules
never raise and never touch storage; the confirm step decides whether the errors block the
mutation. They are necessary but not sufficient under concurrency: the store must still apply
stock decrements as conditional writes.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.validation.schema import (
    Herd,
    Paddock,
    PaddockStatus,
    ValidationCode,
    ValidationError,
)


class SlaughterConfirmItem(BaseModel):
    """A shipment line item with the herd the operator allocated to it."""

    model_config = ConfigDict(extra="ignore", alias_generator=to_camel, populate_by_name=True)

    herd_id: str | None = None
    qty: int = Field(default=0)


def validate_move(qty: int, to_paddock: Paddock) -> list[ValidationError]:
    """Quantity must be positive and the destination paddock active.

    The origin paddock is not checked: an inactive origin may still be emptied.
    """

    errors: list[ValidationError] = []
    if qty <= 0:
        errors.append(
            ValidationError(
                code=ValidationCode.INVALID_QTY,
                message="La cantidad a mover debe ser positiva.",
                path="qty",
            )
        )
    if to_paddock.status != PaddockStatus.ACTIVE:
        errors.append(
            ValidationError(
                code=ValidationCode.PADDOCK_INACTIVE,
                message="El potrero de destino está inactivo.",
                path="toPaddockId",
            )
        )
    return errors


def validate_no_negative_qty(current_qty: int, delta: int) -> list[ValidationError]:
    if current_qty + delta < 0:
        return [
            ValidationError(
                code=ValidationCode.NEGATIVE_QTY,
                message="La cantidad resultante no puede ser negativa.",
                path="qty",
            )
        ]
    return []


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are stored as UTC.
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def validate_occurred_at(occurred_at: datetime, last_event_at: datetime) -> list[ValidationError]:
    """Events for a herd must be applied in non-decreasing time order."""

    if _as_utc(occurred_at) < _as_utc(last_event_at):
        return [
            ValidationError(
                code=ValidationCode.OUT_OF_ORDER,
                message="La fecha de operación es anterior al último evento.",
                path="occurredAt",
            )
        ]
    return []


def validate_slaughter_confirm(
        items: Sequence[SlaughterConfirmItem],
        herd_states: Mapping[str, Herd],
) -> list[ValidationError]:
    """Every line item needs a positive quantity and an existing herd with enough stock.

    A non-positive quantity is reported once for the whole list; herd problems are reported per
    item with an indexed path (`items.<i>.herdId`).
    """

    errors: list[ValidationError] = []

    if any(item.qty <= 0 for item in items):
        errors.append(
            ValidationError(
                code=ValidationCode.INVALID_QTY,
                message="Cada ítem debe tener cantidad positiva.",
                path="items",
            )
        )

    for index, item in enumerate(items):
        if not item.herd_id:
            errors.append(
                ValidationError(
                    code=ValidationCode.MISSING_HERD,
                    message="Debe asignar un lote a cada ítem antes de confirmar.",
                    path=f"items.{index}.herdId",
                )
            )
            continue

        herd = herd_states.get(item.herd_id)
        if herd is None:
            errors.append(
                ValidationError(
                    code=ValidationCode.HERD_NOT_FOUND,
                    message="Lote no encontrado para el ítem.",
                    path=f"items.{index}.herdId",
                )
            )
            continue

        if herd.qty < item.qty:
            errors.append(
                ValidationError(
                    code=ValidationCode.INSUFFICIENT_STOCK,
                    message="No hay stock suficiente para el lote seleccionado.",
                    path=f"items.{index}.qty",
                )
            )

    return errors

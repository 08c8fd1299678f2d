"""Apply an operator-approved operation.

The confirm step re-reads current state, runs the validation rules and only then writes. All
writes of one confirmation share a transaction: a blocking error or a lost stock race rolls
everything back and is reported as data, never as an exception.

The confirmation token is recorded but not checked against the previewed parse result; callers
that need authorization must bind token and payload themselves.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.command.schema import Intent, OperationType, ParseResult, ProposedOperation
from src.confirm.store import StockConflictError, StockStore
from src.validation.rules import (
    SlaughterConfirmItem,
    validate_move,
    validate_no_negative_qty,
    validate_occurred_at,
    validate_slaughter_confirm,
)
from src.validation.schema import ConfirmCode, ValidationCode, ValidationError

logger = logging.getLogger(__name__)

HEALTH_OPERATIONS = frozenset(
    {OperationType.VACCINATION, OperationType.DEWORMING, OperationType.TREATMENT}
)


class ConfirmRequest(BaseModel):
    """What the operator approved, possibly after editing the proposed payloads."""

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    establishment_id: str = Field(min_length=1)
    confirmation_token: str
    intent: Intent
    proposed_operations: list[ProposedOperation] = Field(default_factory=list)

    @classmethod
    def from_parse_result(cls, establishment_id: str, result: ParseResult) -> ConfirmRequest:
        return cls(
            establishment_id=establishment_id,
            confirmation_token=result.confirmation_token,
            intent=result.intent,
            proposed_operations=list(result.proposed_operations),
        )


@dataclass(frozen=True)
class ConfirmOutcome:
    applied: bool
    created_event_ids: list[str] = field(default_factory=list)
    errors: list[ValidationError] = field(default_factory=list)
    summary: str = ""


class _Rejected(Exception):
    def __init__(self, errors: list[ValidationError]) -> None:
        super().__init__(", ".join(e.code for e in errors))
        self.errors = errors


def _as_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _invalid_payload(message: str, path: str | None = None) -> list[ValidationError]:
    return [ValidationError(code=ConfirmCode.INVALID_PAYLOAD, message=message, path=path)]


Handler = Callable[[str, ProposedOperation], Awaitable[list[str]]]


class ConfirmService:
    """Validate and apply confirmed operations through a `StockStore`."""

    def __init__(self, store: StockStore) -> None:
        self.store = store
        self._handlers: dict[OperationType, Handler] = {
            OperationType.MOVE: self._apply_move,
            OperationType.SLAUGHTER_SHIPMENT: self._apply_slaughter_shipment,
        }
        for op_type in HEALTH_OPERATIONS:
            self._handlers[op_type] = self._apply_health_event

    async def confirm(self, request: ConfirmRequest) -> ConfirmOutcome:
        """Apply every proposed operation of the request, or none of them."""

        created: list[str] = []
        try:
            async with self.store.transaction():
                for operation in request.proposed_operations:
                    handler = self._handlers.get(operation.type)
                    if handler is None:
                        continue
                    created.extend(await handler(request.establishment_id, operation))

                await self.store.record_confirmation(
                    request.establishment_id,
                    request.confirmation_token,
                    str(request.intent),
                    created,
                )
        except _Rejected as exc:
            logger.info("confirm rejected intent=%s codes=%s", request.intent, exc)
            return ConfirmOutcome(
                applied=False,
                errors=exc.errors,
                summary="La operación no se aplicó.",
            )
        except StockConflictError as exc:
            logger.info("confirm lost stock race intent=%s reason=%s", request.intent, exc)
            return ConfirmOutcome(
                applied=False,
                errors=[
                    ValidationError(
                        code=ValidationCode.INSUFFICIENT_STOCK,
                        message="El stock cambió mientras se confirmaba la operación.",
                        path="qty",
                    )
                ],
                summary="La operación no se aplicó.",
            )

        logger.info("confirm applied intent=%s events=%d", request.intent, len(created))
        return ConfirmOutcome(
            applied=True,
            created_event_ids=created,
            summary=(
                "Operaciones confirmadas y aplicadas."
                if created
                else "Confirmación guardada sin operaciones automáticas."
            ),
        )

    async def _apply_move(self, establishment_id: str, operation: ProposedOperation) -> list[str]:
        payload = operation.payload
        qty = _as_int(payload.get("qty"))
        category = payload.get("category")
        from_id = payload.get("fromPaddockId")
        to_id = payload.get("toPaddockId")
        if qty is None or not category or not from_id or not to_id:
            raise _Rejected(
                _invalid_payload(
                    "No se pudo confirmar el movimiento porque faltan datos en la previsualización."
                )
            )

        from_paddock = await self.store.get_paddock(establishment_id, from_id)
        to_paddock = await self.store.get_paddock(establishment_id, to_id)
        if from_paddock is None or to_paddock is None:
            raise _Rejected(
                [
                    ValidationError(
                        code=ConfirmCode.PADDOCK_NOT_FOUND,
                        message="Potrero no encontrado.",
                        path="fromPaddockId" if from_paddock is None else "toPaddockId",
                    )
                ]
            )

        errors = validate_move(qty, to_paddock)
        if errors:
            raise _Rejected(errors)

        herd = await self.store.find_herd(establishment_id, from_id, str(category))
        if herd is None:
            raise _Rejected(
                [
                    ValidationError(
                        code=ValidationCode.HERD_NOT_FOUND,
                        message="No hay lote de esa categoría en el potrero de origen.",
                        path="fromPaddockId",
                    )
                ]
            )

        errors = validate_no_negative_qty(herd.qty, -qty)
        errors += validate_occurred_at(operation.occurred_at, herd.last_event_at)
        if errors:
            raise _Rejected(errors)

        if await self.store.decrement_herd(herd.id, qty, operation.occurred_at) is None:
            raise StockConflictError(herd.id, qty)
        await self.store.add_to_paddock(
            establishment_id, to_id, herd, qty, operation.occurred_at
        )
        movement_id = await self.store.insert_movement(
            establishment_id, from_id, to_id, herd.category, qty, operation.occurred_at
        )
        return [movement_id]

    async def _apply_health_event(
            self,
            establishment_id: str,
            operation: ProposedOperation,
    ) -> list[str]:
        payload = operation.payload
        qty = _as_int(payload.get("qty"))
        if qty is None or not payload.get("category") or not payload.get("product"):
            raise _Rejected(
                _invalid_payload(
                    "No se pudo confirmar el evento sanitario porque faltan datos en la "
                    "previsualización."
                )
            )
        if qty <= 0:
            raise _Rejected(
                [
                    ValidationError(
                        code=ValidationCode.INVALID_QTY,
                        message="La cantidad debe ser positiva.",
                        path="qty",
                    )
                ]
            )

        event_id = await self.store.insert_health_event(
            establishment_id,
            operation.type,
            {**payload, "qty": qty},
            operation.occurred_at,
        )
        return [event_id]

    async def _apply_slaughter_shipment(
            self,
            establishment_id: str,
            operation: ProposedOperation,
    ) -> list[str]:
        raw_items = operation.payload.get("items") or []
        if not isinstance(raw_items, list) or not raw_items:
            raise _Rejected(_invalid_payload("La consignación no tiene ítems.", "items"))

        items = [SlaughterConfirmItem.model_validate(item) for item in raw_items]
        herd_ids = {item.herd_id for item in items if item.herd_id}
        herd_states = await self.store.get_herds(establishment_id, herd_ids)

        errors = validate_slaughter_confirm(items, herd_states)
        for herd in herd_states.values():
            errors += validate_occurred_at(operation.occurred_at, herd.last_event_at)
        if errors:
            raise _Rejected(errors)

        for item in items:
            assert item.herd_id is not None
            if await self.store.decrement_herd(item.herd_id, item.qty, operation.occurred_at) is None:
                raise StockConflictError(item.herd_id, item.qty)

        shipment_id = await self.store.insert_slaughter_shipment(
            establishment_id, operation.payload, operation.occurred_at
        )
        return [shipment_id]

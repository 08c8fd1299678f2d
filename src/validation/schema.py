"""Persisted-state models read at confirm time, and the structured validation error."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.command.schema import HerdCategory


class HerdSpecies(StrEnum):
    BOVINO = "BOVINO"
    OVINO = "OVINO"


class ReproductiveStatus(StrEnum):
    VACIA = "VACIA"
    PRENADA = "PRENADA"
    ENTORADA = "ENTORADA"
    NA = "NA"


class HerdStatus(StrEnum):
    ACTIVE = "ACTIVE"
    EGRESSED = "EGRESSED"
    CLOSED = "CLOSED"


class PaddockStatus(StrEnum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class ValidationCode(StrEnum):
    """Closed set of reasons a business rule can block a confirmation."""

    INVALID_QTY = "INVALID_QTY"
    PADDOCK_INACTIVE = "PADDOCK_INACTIVE"
    NEGATIVE_QTY = "NEGATIVE_QTY"
    OUT_OF_ORDER = "OUT_OF_ORDER"
    MISSING_HERD = "MISSING_HERD"
    HERD_NOT_FOUND = "HERD_NOT_FOUND"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"


class ConfirmCode(StrEnum):
    """Reasons the confirm step rejects a request before any business rule runs."""

    INVALID_PAYLOAD = "INVALID_PAYLOAD"
    PADDOCK_NOT_FOUND = "PADDOCK_NOT_FOUND"


class _StateModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class Paddock(_StateModel):
    id: str
    name: str
    status: PaddockStatus


class Herd(_StateModel):
    """A tracked group of animals of one category within an establishment."""

    id: str
    code: str
    qty: int = Field(ge=0)
    category: HerdCategory
    species: HerdSpecies
    reproductive_status: ReproductiveStatus = ReproductiveStatus.NA
    current_paddock_id: str | None = None
    status: HerdStatus = HerdStatus.ACTIVE
    last_event_at: datetime


class ValidationError(_StateModel):
    """A structured, enumerable failure reason returned to the confirm caller."""

    model_config = ConfigDict(frozen=True)

    code: ValidationCode | ConfirmCode
    message: str
    path: str | None = None

"""Command interpretation schema (Pydantic models).

These models are the contract between the interpreter and the confirm step. A `ParseResult` is
built once per interpretation call and never mutated afterwards; the confirm step receives it
unchanged or with user edits applied to the proposed payloads.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class OperationType(StrEnum):
    """Operation kinds an instruction can describe."""

    MOVE = "MOVE"
    VACCINATION = "VACCINATION"
    DEWORMING = "DEWORMING"
    TREATMENT = "TREATMENT"
    BREEDING_START = "BREEDING_START"
    BREEDING_END = "BREEDING_END"
    WEANING = "WEANING"
    BRANDING = "BRANDING"
    SHIPMENT = "SHIPMENT"
    SLAUGHTER_SHIPMENT = "SLAUGHTER_SHIPMENT"


class HerdCategory(StrEnum):
    """Fixed herd categories (Spanish ranch vocabulary)."""

    TERNEROS = "TERNEROS"
    TERNERAS = "TERNERAS"
    TERNEROS_DESTETADOS = "TERNEROS_DESTETADOS"
    VAQUILLONAS = "VAQUILLONAS"
    VACAS = "VACAS"
    TOROS = "TOROS"
    NOVILLOS = "NOVILLOS"
    VIENTRES = "VIENTRES"
    CORDEROS = "CORDEROS"
    OVEJAS = "OVEJAS"
    CARNEROS = "CARNEROS"


UNKNOWN_INTENT = "UNKNOWN"

Intent = OperationType | Literal["UNKNOWN"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class NameEntity(_CamelModel):
    """A catalog row (paddock, consignor or slaughterhouse)."""

    id: str
    name: str


class ParseContext(_CamelModel):
    """Entity universe the resolver may match against.

    Supplied fresh by the caller for every parse call.
    """

    paddocks: list[NameEntity] = Field(default_factory=list)
    consignors: list[NameEntity] = Field(default_factory=list)
    slaughterhouses: list[NameEntity] = Field(default_factory=list)


class ProposedOperation(_CamelModel):
    """One candidate mutation; `payload` shape depends on `type`."""

    type: OperationType
    occurred_at: datetime
    payload: dict[str, Any] = Field(default_factory=dict)
    herds_affected: list[str] | None = None


class ParseResult(_CamelModel):
    """Outcome of interpreting one instruction, shown to the operator for review."""

    intent: Intent
    confidence: float = Field(ge=0.0, le=1.0)
    proposed_operations: list[ProposedOperation] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    edits_needed: list[str] | None = None
    confirmation_token: str = Field(min_length=1)

    @model_validator(mode="after")
    def validate_semantics(self) -> ParseResult:
        """An unknown intent is the only failure, and the only result without operations."""

        unknown = self.intent == UNKNOWN_INTENT
        if bool(self.errors) != unknown:
            raise ValueError("errors must be non-empty exactly when intent is UNKNOWN")
        if (not self.proposed_operations) != unknown:
            raise ValueError("proposed_operations must be empty exactly when intent is UNKNOWN")
        if self.edits_needed is not None and not self.edits_needed:
            raise ValueError("edits_needed must be omitted when empty")
        return self

    @property
    def is_unknown(self) -> bool:
        return self.intent == UNKNOWN_INTENT

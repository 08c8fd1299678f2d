"""Storage contract the confirm step depends on.

Implementations must make `decrement_herd` an atomically conditioned write ("decrement only if
enough stock remains"). The pure validators run against a snapshot read moments earlier, so two
concurrent confirmations can both pass validation; only the conditional write keeps stock from
being overdrawn.
"""

from __future__ import annotations

from collections.abc import Iterable
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Any, Protocol

from src.command.schema import OperationType
from src.validation.schema import Herd, Paddock


class StockConflictError(RuntimeError):
    """Raised when a conditional stock write finds less stock than was validated."""

    def __init__(self, herd_id: str, requested: int) -> None:
        super().__init__(f"herd {herd_id} no longer has {requested} head available")
        self.herd_id = herd_id
        self.requested = requested


class StockStore(Protocol):
    """Persistence collaborator used by `ConfirmService`."""

    def transaction(self) -> AbstractAsyncContextManager[Any]:
        """Scope in which all writes of one confirmation commit or roll back together."""
        ...

    async def get_paddock(self, establishment_id: str, paddock_id: str) -> Paddock | None:
        ...

    async def find_herd(
            self,
            establishment_id: str,
            paddock_id: str,
            category: str,
    ) -> Herd | None:
        """Return the active herd of `category` currently in `paddock_id`, if any."""
        ...

    async def get_herds(self, establishment_id: str, herd_ids: Iterable[str]) -> dict[str, Herd]:
        ...

    async def decrement_herd(self, herd_id: str, qty: int, occurred_at: datetime) -> int | None:
        """Subtract `qty` only if at least `qty` remains; return the new qty or `None`."""
        ...

    async def add_to_paddock(
            self,
            establishment_id: str,
            paddock_id: str,
            source: Herd,
            qty: int,
            occurred_at: datetime,
    ) -> str:
        """Add head of `source.category` to the paddock's herd (created if missing)."""
        ...

    async def insert_movement(
            self,
            establishment_id: str,
            from_paddock_id: str,
            to_paddock_id: str,
            category: str,
            qty: int,
            occurred_at: datetime,
    ) -> str:
        ...

    async def insert_health_event(
            self,
            establishment_id: str,
            event_type: OperationType,
            payload: dict[str, Any],
            occurred_at: datetime,
    ) -> str:
        ...

    async def insert_slaughter_shipment(
            self,
            establishment_id: str,
            payload: dict[str, Any],
            occurred_at: datetime,
    ) -> str:
        ...

    async def record_confirmation(
            self,
            establishment_id: str,
            confirmation_token: str,
            intent: str,
            created_event_ids: list[str],
    ) -> None:
        ...

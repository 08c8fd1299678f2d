"""Postgres implementation of the confirm-step `StockStore`.

All statements are parameterized. Stock decrements are conditional UPDATEs (`qty >= requested`)
so concurrent confirmations cannot overdraw a herd even when both passed validation.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Any

from psycopg import AsyncConnection
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from src.command.schema import OperationType
from src.validation.schema import Herd, Paddock

_HERD_COLUMNS = """
    id, code, qty, category, species, reproductive_status,
    current_paddock_id, status, last_event_at
"""


def _new_id() -> str:
    return str(uuid.uuid4())


class PostgresStockStore:
    """`StockStore` bound to one async connection."""

    def __init__(self, conn: AsyncConnection) -> None:
        self._conn = conn

    def transaction(self) -> AbstractAsyncContextManager[Any]:
        return self._conn.transaction()

    async def get_paddock(self, establishment_id: str, paddock_id: str) -> Paddock | None:
        async with self._conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(
                """
                SELECT id, name, status
                FROM paddocks
                WHERE establishment_id = %s
                  AND id = %s
                """,
                (establishment_id, paddock_id),
            )
            row = await cur.fetchone()
        return Paddock.model_validate(row) if row else None

    async def find_herd(
            self,
            establishment_id: str,
            paddock_id: str,
            category: str,
    ) -> Herd | None:
        async with self._conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(
                f"""
                SELECT {_HERD_COLUMNS}
                FROM herds
                WHERE establishment_id = %s
                  AND current_paddock_id = %s
                  AND category = %s
                  AND status = 'ACTIVE'
                ORDER BY qty DESC, id
                LIMIT 1
                """,  # noqa: S608 (column list is a module constant)
                (establishment_id, paddock_id, category),
            )
            row = await cur.fetchone()
        return Herd.model_validate(row) if row else None

    async def get_herds(self, establishment_id: str, herd_ids: Iterable[str]) -> dict[str, Herd]:
        ids = sorted(set(herd_ids))
        if not ids:
            return {}

        async with self._conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(
                f"""
                SELECT {_HERD_COLUMNS}
                FROM herds
                WHERE establishment_id = %s
                  AND id = ANY(%s)
                """,  # noqa: S608 (column list is a module constant)
                (establishment_id, ids),
            )
            rows = await cur.fetchall()
        herds = [Herd.model_validate(row) for row in rows]
        return {herd.id: herd for herd in herds}

    async def decrement_herd(self, herd_id: str, qty: int, occurred_at: datetime) -> int | None:
        async with self._conn.cursor() as cur:
            await cur.execute(
                """
                UPDATE herds
                SET qty           = qty - %s,
                    last_event_at = GREATEST(last_event_at, %s),
                    updated_at    = NOW()
                WHERE id = %s
                  AND qty >= %s
                RETURNING qty
                """,
                (qty, occurred_at, herd_id, qty),
            )
            row = await cur.fetchone()
        return int(row[0]) if row else None

    async def add_to_paddock(
            self,
            establishment_id: str,
            paddock_id: str,
            source: Herd,
            qty: int,
            occurred_at: datetime,
    ) -> str:
        async with self._conn.cursor() as cur:
            await cur.execute(
                """
                UPDATE herds
                SET qty           = qty + %s,
                    last_event_at = GREATEST(last_event_at, %s),
                    updated_at    = NOW()
                WHERE id = (SELECT id
                            FROM herds
                            WHERE establishment_id = %s
                              AND current_paddock_id = %s
                              AND category = %s
                              AND status = 'ACTIVE'
                            ORDER BY id
                            LIMIT 1)
                RETURNING id
                """,
                (qty, occurred_at, establishment_id, paddock_id, source.category),
            )
            row = await cur.fetchone()
            if row:
                return str(row[0])

            herd_id = _new_id()
            await cur.execute(
                """
                INSERT INTO herds (id, establishment_id, code, qty, category, species,
                                   reproductive_status, current_paddock_id, status, last_event_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, 'ACTIVE', %s)
                """,
                (
                    herd_id,
                    establishment_id,
                    f"{source.code}-{herd_id[:4].upper()}",
                    qty,
                    source.category,
                    source.species,
                    source.reproductive_status,
                    paddock_id,
                    occurred_at,
                ),
            )
        return herd_id

    async def insert_movement(
            self,
            establishment_id: str,
            from_paddock_id: str,
            to_paddock_id: str,
            category: str,
            qty: int,
            occurred_at: datetime,
    ) -> str:
        movement_id = _new_id()
        await self._conn.execute(
            """
            INSERT INTO herd_movements (id, establishment_id, from_paddock_id, to_paddock_id,
                                        category, qty, occurred_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            """,
            (movement_id, establishment_id, from_paddock_id, to_paddock_id, category, qty,
             occurred_at),
        )
        return movement_id

    async def insert_health_event(
            self,
            establishment_id: str,
            event_type: OperationType,
            payload: dict[str, Any],
            occurred_at: datetime,
    ) -> str:
        event_id = _new_id()
        await self._conn.execute(
            """
            INSERT INTO health_events (id, establishment_id, type, category, qty, product, dose,
                                       occurred_at, status, source)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, 'COMPLETED', 'COMMAND')
            """,
            (
                event_id,
                establishment_id,
                str(event_type),
                str(payload["category"]),
                int(payload["qty"]),
                str(payload["product"]),
                payload.get("dose"),
                occurred_at,
            ),
        )
        return event_id

    async def insert_slaughter_shipment(
            self,
            establishment_id: str,
            payload: dict[str, Any],
            occurred_at: datetime,
    ) -> str:
        shipment_id = _new_id()
        await self._conn.execute(
            """
            INSERT INTO slaughter_shipments (id, establishment_id, consignor_id, slaughterhouse_id,
                                             items, occurred_at)
            VALUES (%s, %s, %s, %s, %s, %s)
            """,
            (
                shipment_id,
                establishment_id,
                payload.get("consignorId"),
                payload.get("slaughterhouseId"),
                Jsonb(payload.get("items") or []),
                occurred_at,
            ),
        )
        return shipment_id

    async def record_confirmation(
            self,
            establishment_id: str,
            confirmation_token: str,
            intent: str,
            created_event_ids: list[str],
    ) -> None:
        await self._conn.execute(
            """
            INSERT INTO confirmations (id, establishment_id, confirmation_token, intent,
                                       created_event_ids)
            VALUES (%s, %s, %s, %s, %s)
            """,
            (_new_id(), establishment_id, confirmation_token, intent, Jsonb(created_event_ids)),
        )

"""Integration tests against a real Postgres database.

These tests exercise catalog loading and the confirm step end to end:
interpreter -> catalog snapshot -> validation -> conditional writes.

They are skipped if `DATABASE_URL` is not configured or the DB is unreachable.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import AsyncIterator, Iterator
from datetime import UTC, datetime
from typing import LiteralString, NoReturn, cast

import psycopg
import pytest
from dotenv import load_dotenv
from psycopg import AsyncConnection, sql

from src.command.parser import CommandInterpreter
from src.command.schema import OperationType, ProposedOperation
from src.confirm.service import ConfirmRequest, ConfirmService
from src.db.catalog import load_parse_context
from src.db.connection import connect_utc, ensure_utc
from src.db.migrate import list_migration_files
from src.db.stock import PostgresStockStore
from src.validation.schema import ValidationCode

EST = "est-it"
NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)
LAST_EVENT = datetime(2026, 1, 1, tzinfo=UTC)


def _skip(reason: str) -> NoReturn:
    pytest.skip(reason)


def _require_database_url() -> str:
    load_dotenv(".env")
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        _skip("DATABASE_URL is not set; skipping integration tests")
    return database_url


def _seed(conn: psycopg.Connection) -> None:
    with conn.cursor() as cur:
        cur.executemany(
            "INSERT INTO paddocks (id, establishment_id, name, status) VALUES (%s, %s, %s, %s)",
            [
                ("p3", EST, "Potrero 3", "ACTIVE"),
                ("p7", EST, "Potrero 7", "ACTIVE"),
                ("p9", EST, "Potrero 9", "INACTIVE"),
                ("other-p3", "est-other", "Potrero 3", "ACTIVE"),
            ],
        )
        cur.execute(
            "INSERT INTO consignors (id, establishment_id, name) VALUES (%s, %s, %s)",
            ("c-perez", EST, "Pérez"),
        )
        cur.execute(
            "INSERT INTO slaughterhouses (id, establishment_id, name) VALUES (%s, %s, %s)",
            ("s-moras", EST, "Las Moras"),
        )
        cur.executemany(
            """
            INSERT INTO herds (id, establishment_id, code, qty, category, species,
                               current_paddock_id, last_event_at)
            VALUES (%s, %s, %s, %s, %s, 'BOVINO', %s, %s)
            """,
            [
                ("h-terneros", EST, "TER-01", 120, "TERNEROS", "p3", LAST_EVENT),
                ("h-novillos", EST, "NOV-01", 40, "NOVILLOS", "p3", LAST_EVENT),
            ],
        )


@pytest.fixture
def prepared_schema() -> Iterator[str]:
    """Create an isolated schema, run migrations, and seed one establishment."""

    database_url = _require_database_url()
    schema = f"it_{uuid.uuid4().hex}"

    try:
        conn_ctx = connect_utc(database_url)
    except psycopg.OperationalError as exc:
        _skip(f"Postgres is unreachable ({exc}); skipping integration tests")

    with conn_ctx as conn:
        with conn.transaction():
            conn.execute(
                sql.SQL("CREATE SCHEMA {}").format(sql.Identifier(schema)),
                prepare=False,
            )
            conn.execute(
                sql.SQL("SET search_path TO {}").format(sql.Identifier(schema)),
                prepare=False,
            )
            for file_path in list_migration_files():
                sql_text = file_path.read_text(encoding="utf-8")
                conn.execute(cast(LiteralString, sql_text), prepare=False)
            _seed(conn)

    yield schema

    with psycopg.connect(database_url) as conn:
        with conn.transaction():
            conn.execute(
                sql.SQL("DROP SCHEMA IF EXISTS {} CASCADE").format(sql.Identifier(schema)),
                prepare=False,
            )


@pytest.fixture
async def conn(prepared_schema: str) -> AsyncIterator[AsyncConnection]:
    """Async connection scoped to the test schema, session timezone locked to UTC."""

    database_url = _require_database_url()
    connection = await AsyncConnection.connect(database_url)
    try:
        await ensure_utc(connection)
        await connection.execute(
            sql.SQL("SET search_path TO {}").format(sql.Identifier(prepared_schema)),
            prepare=False,
        )
        await connection.commit()
        yield connection
    finally:
        await connection.close()


async def _scalar(conn: AsyncConnection, query: LiteralString, *params: object) -> object:
    async with conn.cursor() as cur:
        await cur.execute(query, params)
        row = await cur.fetchone()
    await conn.commit()
    assert row is not None
    return row[0]


@pytest.mark.asyncio
async def test_session_timezone_is_utc(conn: AsyncConnection) -> None:
    assert await _scalar(conn, "SHOW TimeZone") == "UTC"


@pytest.mark.asyncio
async def test_catalog_contains_only_active_rows_of_the_establishment(
        conn: AsyncConnection,
) -> None:
    context = await load_parse_context(conn, EST)

    assert [(p.id, p.name) for p in context.paddocks] == [("p3", "Potrero 3"), ("p7", "Potrero 7")]
    assert [c.id for c in context.consignors] == ["c-perez"]
    assert [s.id for s in context.slaughterhouses] == ["s-moras"]


@pytest.mark.asyncio
async def test_parsed_move_is_persisted(conn: AsyncConnection) -> None:
    context = await load_parse_context(conn, EST)
    await conn.commit()
    interpreter = CommandInterpreter(clock=lambda: NOW)
    result = interpreter.parse("Mover 50 terneros del Potrero 3 al Potrero 7 hoy", context)

    outcome = await ConfirmService(PostgresStockStore(conn)).confirm(
        ConfirmRequest.from_parse_result(EST, result)
    )

    assert outcome.applied, outcome.errors
    assert await _scalar(conn, "SELECT qty FROM herds WHERE id = %s", "h-terneros") == 70
    assert await _scalar(
        conn,
        "SELECT qty FROM herds WHERE current_paddock_id = %s AND category = %s",
        "p7",
        "TERNEROS",
    ) == 50
    assert await _scalar(conn, "SELECT count(*) FROM herd_movements") == 1
    assert await _scalar(
        conn, "SELECT confirmation_token FROM confirmations"
    ) == result.confirmation_token


@pytest.mark.asyncio
async def test_rejected_move_writes_nothing(conn: AsyncConnection) -> None:
    request = ConfirmRequest(
        establishment_id=EST,
        confirmation_token="token-it",
        intent=OperationType.MOVE,
        proposed_operations=[
            ProposedOperation(
                type=OperationType.MOVE,
                occurred_at=NOW,
                payload={
                    "qty": 10,
                    "category": "TERNEROS",
                    "fromPaddockId": "p3",
                    "toPaddockId": "p9",
                },
            )
        ],
    )

    outcome = await ConfirmService(PostgresStockStore(conn)).confirm(request)

    assert [e.code for e in outcome.errors] == [ValidationCode.PADDOCK_INACTIVE]
    assert await _scalar(conn, "SELECT qty FROM herds WHERE id = %s", "h-terneros") == 120
    assert await _scalar(conn, "SELECT count(*) FROM confirmations") == 0


@pytest.mark.asyncio
async def test_conditional_decrement_refuses_to_overdraw(conn: AsyncConnection) -> None:
    store = PostgresStockStore(conn)

    async with store.transaction():
        assert await store.decrement_herd("h-novillos", 41, NOW) is None
        assert await store.decrement_herd("h-novillos", 40, NOW) == 0

    assert await _scalar(conn, "SELECT qty FROM herds WHERE id = %s", "h-novillos") == 0


@pytest.mark.asyncio
async def test_allocated_slaughter_shipment_is_persisted(conn: AsyncConnection) -> None:
    context = await load_parse_context(conn, EST)
    await conn.commit()
    result = CommandInterpreter(clock=lambda: NOW).parse(
        "Enviar a frigorífico Las Moras por consignatario Pérez: 35 novillos a 620", context
    )
    [operation] = result.proposed_operations
    items = [{**operation.payload["items"][0], "herdId": "h-novillos"}]
    edited = operation.model_copy(update={"payload": {**operation.payload, "items": items}})
    request = ConfirmRequest.from_parse_result(EST, result).model_copy(
        update={"proposed_operations": [edited]}
    )

    outcome = await ConfirmService(PostgresStockStore(conn)).confirm(request)

    assert outcome.applied, outcome.errors
    assert await _scalar(conn, "SELECT qty FROM herds WHERE id = %s", "h-novillos") == 5
    stored_items = await _scalar(conn, "SELECT items FROM slaughter_shipments")
    assert stored_items == [
        {"qty": 35, "category": "NOVILLOS", "unitPrice": 620, "herdId": "h-novillos"}
    ]

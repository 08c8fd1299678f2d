"""Async Postgres pool shared by catalog loading and the confirm step."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from dotenv import load_dotenv
from psycopg import AsyncConnection
from psycopg.pq import TransactionStatus
from psycopg_pool import AsyncConnectionPool

from src.db.connection import ensure_utc, require_database_url

POOL_NAME = "herd-commands"


def create_pool(
        database_url: str | None = None,
        *,
        min_size: int = 1,
        max_size: int | None = None,
        timeout: float = 30.0,
) -> AsyncConnectionPool:
    """Create an async pool that is not opened yet (`await pool.open()` at startup).

    Without `database_url`, `.env` is loaded and `DATABASE_URL` is read.
    """

    if database_url is None:
        load_dotenv(".env")
        database_url = require_database_url()

    return AsyncConnectionPool(
        conninfo=database_url,
        min_size=min_size,
        max_size=max_size,
        timeout=timeout,
        name=POOL_NAME,
        open=False,
        configure=ensure_utc,
    )


@asynccontextmanager
async def get_conn(pool: AsyncConnectionPool) -> AsyncIterator[AsyncConnection]:
    """Acquire a UTC connection; work left uncommitted on release is rolled back.

    Catalog reads never commit, so they do not hand the pool a connection mid-transaction.
    """

    async with pool.connection() as conn:
        await ensure_utc(conn)
        try:
            yield conn
        finally:
            if conn.info.transaction_status != TransactionStatus.IDLE:
                await conn.rollback()

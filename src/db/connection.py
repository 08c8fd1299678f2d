"""Postgres session helpers.

Herd events are ordered by `last_event_at` across connections, so every session runs in UTC.
"""

from __future__ import annotations

import os

import psycopg
from psycopg import AsyncConnection

UTC_SESSION_SQL = "SET TIME ZONE 'UTC'"


def require_database_url() -> str:
    """Read `DATABASE_URL` from the environment or raise a clear error."""

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise RuntimeError("DATABASE_URL is required (set it in .env or environment)")
    return database_url


def connect_utc(database_url: str) -> psycopg.Connection:
    """Open a sync connection (migrations, test fixtures) with the session in UTC."""

    conn = psycopg.connect(database_url)
    conn.execute(UTC_SESSION_SQL, prepare=False)
    return conn


async def ensure_utc(conn: AsyncConnection) -> None:
    """Switch an async session to UTC unless the server already reports it."""

    if conn.info.parameter_status("TimeZone") == "UTC":
        return

    async with conn.cursor() as cur:
        await cur.execute(UTC_SESSION_SQL, prepare=False)
    # `SET` opens a transaction when autocommit is off; leave the connection idle.
    await conn.commit()

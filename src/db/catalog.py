"""Catalog snapshot loading for the command interpreter.

The interpreter never caches catalogs: callers load a fresh `ParseContext` for every parse call.
Only active rows are offered for name resolution.
"""

from __future__ import annotations

from typing import LiteralString

from psycopg import AsyncConnection

from src.command.schema import NameEntity, ParseContext

# Allowlisted statements; table names are never built from input.
_ACTIVE_PADDOCKS_SQL: LiteralString = """
    SELECT id, name
    FROM paddocks
    WHERE establishment_id = %s
      AND status = 'ACTIVE'
    ORDER BY name, id
"""

_ACTIVE_CONSIGNORS_SQL: LiteralString = """
    SELECT id, name
    FROM consignors
    WHERE establishment_id = %s
      AND status = 'ACTIVE'
    ORDER BY name, id
"""

_ACTIVE_SLAUGHTERHOUSES_SQL: LiteralString = """
    SELECT id, name
    FROM slaughterhouses
    WHERE establishment_id = %s
      AND status = 'ACTIVE'
    ORDER BY name, id
"""


async def _fetch_entities(
        conn: AsyncConnection,
        query: LiteralString,
        establishment_id: str,
) -> list[NameEntity]:
    async with conn.cursor() as cur:
        await cur.execute(query, (establishment_id,))
        rows = await cur.fetchall()
    return [NameEntity(id=str(row[0]), name=str(row[1])) for row in rows]


async def load_parse_context(conn: AsyncConnection, establishment_id: str) -> ParseContext:
    """Load active paddocks, consignors and slaughterhouses of one establishment."""

    return ParseContext(
        paddocks=await _fetch_entities(conn, _ACTIVE_PADDOCKS_SQL, establishment_id),
        consignors=await _fetch_entities(conn, _ACTIVE_CONSIGNORS_SQL, establishment_id),
        slaughterhouses=await _fetch_entities(conn, _ACTIVE_SLAUGHTERHOUSES_SQL, establishment_id),
    )

"""Application composition root.

Wires configuration, the DB pool and the command interpreter into the two calls a transport
layer needs: preview an instruction, then confirm what the operator approved.
"""

from __future__ import annotations

from dataclasses import dataclass

from psycopg_pool import AsyncConnectionPool

from src.command.parser import CommandInterpreter
from src.command.schema import ParseResult
from src.config.settings import Settings
from src.confirm.service import ConfirmOutcome, ConfirmRequest, ConfirmService
from src.db.catalog import load_parse_context
from src.db.pool import create_pool, get_conn
from src.db.stock import PostgresStockStore


@dataclass(frozen=True)
class App:
    """Shared application dependencies."""

    settings: Settings
    pool: AsyncConnectionPool
    interpreter: CommandInterpreter

    async def preview(self, establishment_id: str, text: str) -> ParseResult:
        """Interpret `text` against the establishment's current catalog. Writes nothing."""

        async with get_conn(self.pool) as conn:
            context = await load_parse_context(conn, establishment_id)
        return self.interpreter.parse(text, context)

    async def confirm(self, request: ConfirmRequest) -> ConfirmOutcome:
        async with get_conn(self.pool) as conn:
            return await ConfirmService(PostgresStockStore(conn)).confirm(request)


def create_app(settings: Settings) -> App:
    """Create the application container.

    Note:
        The returned DB pool is not opened. Call `await app.pool.open()` at startup.
    """

    pool = create_pool(settings.database_url, max_size=10)
    interpreter = CommandInterpreter(threshold=settings.fuzzy_match_threshold)
    return App(settings=settings, pool=pool, interpreter=interpreter)

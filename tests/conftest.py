"""Pytest configuration and shared fixtures.

The repository uses a flat `src/` layout; this conftest makes `import src...` work when running
`pytest` without installing the package.
"""

from __future__ import annotations

import sys
from datetime import UTC, datetime
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from src.command.parser import CommandInterpreter  # noqa: E402
from src.command.schema import NameEntity, ParseContext  # noqa: E402


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


@pytest.fixture
def context() -> ParseContext:
    """Catalog snapshot of one establishment (ids are stable for assertions)."""

    return ParseContext(
        paddocks=[
            NameEntity(id="paddock-3", name="Potrero 3"),
            NameEntity(id="paddock-7", name="Potrero 7"),
            NameEntity(id="paddock-loma", name="Loma Azul"),
        ],
        consignors=[
            NameEntity(id="consignor-perez", name="Pérez"),
            NameEntity(id="consignor-san-miguel", name="San Miguel"),
        ],
        slaughterhouses=[
            NameEntity(id="slaughterhouse-las-moras", name="Las Moras"),
            NameEntity(id="slaughterhouse-frigo-sur", name="Frigo Sur"),
        ],
    )


@pytest.fixture
def interpreter(now: datetime) -> CommandInterpreter:
    """Interpreter with a frozen clock so dates in assertions are stable."""

    return CommandInterpreter(clock=lambda: now)

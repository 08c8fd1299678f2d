"""Loose Spanish date resolution (UTC).

Operators write dates the way they speak: "hoy", "2026-02-01", "15/11" or "15 de noviembre".
Anything unrecognized resolves to "now" so the operation can still be previewed and corrected.

Day and month numbers are not range-checked. Out-of-range values roll over the calendar
("45/13" is 45 days into January of the following year) rather than failing.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import UTC, datetime, time, timedelta

import dateparser
from dateparser.conf import Settings as DateparserSettings

from src.command.normalize import normalize

Clock = Callable[[], datetime]

_DATEPARSER_SETTINGS = DateparserSettings().replace(
    STRICT_PARSING=True,
    DATE_ORDER="DMY",
    TIMEZONE="UTC",
    TO_TIMEZONE="UTC",
    RETURN_AS_TIMEZONE_AWARE=True,
)

_ES_MONTH_NAMES: tuple[str, ...] = (
    "enero",
    "febrero",
    "marzo",
    "abril",
    "mayo",
    "junio",
    "julio",
    "agosto",
    "septiembre",
    "setiembre",
    "octubre",
    "noviembre",
    "diciembre",
)
_ES_MONTH_PATTERN = "|".join(_ES_MONTH_NAMES)

_ISO_DATE_RE = re.compile(r"(?P<y>[1-9]\d{3})-(?P<m>\d{2})-(?P<d>\d{2})")
_DAY_MONTH_RE = re.compile(r"(?P<d>\d{1,2})/(?P<m>\d{1,2})")
_LONG_DATE_RE = re.compile(
    rf"\b(?P<d>\d{{1,2}})\s+de\s+(?P<m>{_ES_MONTH_PATTERN})(?:\s+(?:de|del)\s+(?P<y>\d{{4}}))?\b"
)


def utc_now() -> datetime:
    return datetime.now(UTC)


def _calendar_date(year: int, month: int, day: int) -> datetime | None:
    """Build a UTC midnight, rolling month/day overflow into later dates.

    Returns `None` when the rolled-over date falls outside the supported calendar.
    """

    extra_years, month_index = divmod(month - 1, 12)
    try:
        first = datetime(year + extra_years, month_index + 1, 1, tzinfo=UTC)
        return first + timedelta(days=day - 1)
    except (OverflowError, ValueError):
        return None


def _parse_long_date(fragment: str) -> datetime | None:
    dt = dateparser.parse(fragment, languages=["es"], settings=_DATEPARSER_SETTINGS)
    if not dt:
        return None
    return datetime.combine(dt.date(), time.min, tzinfo=UTC)


def resolve_date(raw: str | None = None, *, now: datetime | None = None) -> datetime:
    """Map a loose date expression to a concrete UTC timestamp.

    Rules, in order:
        - no input or "hoy" -> `now`;
        - an ISO `YYYY-MM-DD` substring -> that day;
        - a `D/M` substring -> that day in the current year;
        - a `D de <mes> [de YYYY]` substring -> that day;
        - anything else, or a date rolled past year 9999 -> `now`.
    """

    current = now or utc_now()
    value = normalize(raw).strip()
    if not value or "hoy" in value:
        return current

    match = _ISO_DATE_RE.search(value)
    if match:
        resolved = _calendar_date(
            int(match.group("y")), int(match.group("m")), int(match.group("d"))
        )
        return resolved or current

    match = _DAY_MONTH_RE.search(value)
    if match:
        resolved = _calendar_date(current.year, int(match.group("m")), int(match.group("d")))
        return resolved or current

    match = _LONG_DATE_RE.search(value)
    if match:
        year = match.group("y") or str(current.year)
        parsed = _parse_long_date(f"{match.group('d')} de {match.group('m')} de {year}")
        if parsed is not None:
            return parsed

    return current

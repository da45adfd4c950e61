"""Timestamp parsing and Spanish-locale display formatting.

All functions take the viewer timezone and the reference "now" as
explicit arguments so that output is deterministic under test.

Public API
----------
- ``TimelineError``          – Base exception for timeline processing errors.
- ``InvalidTimestampError``  – Raised when a timestamp cannot be parsed.
- ``FormattingContext``      – Injected clock / timezone / locale.
- ``parse_timestamp()``      – ISO-8601 → aware ``datetime`` in the viewer tz.
- ``format_time()``          – ``HH:MM`` (24 h).
- ``format_date()``          – ``dd/mm/yyyy``.
- ``format_long_date()``     – ``lunes, 3 de junio de 2024``.
- ``relative_time_string()`` – ``Hace 5 minutos`` / ``Ayer`` / ``""``.
- ``format_local_time()``    – ``HH:MM`` or ``---`` for missing/bad input.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone, tzinfo
from typing import Any, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import pandas as pd

logger = logging.getLogger(__name__)

TimezoneLike = Union[tzinfo, str, None]


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class TimelineError(Exception):
    """Base exception for clinical timeline processing errors."""


class InvalidTimestampError(TimelineError):
    """Raised when an event timestamp is empty or cannot be parsed."""


# ---------------------------------------------------------------------------
# Spanish locale tables
# ---------------------------------------------------------------------------

SUPPORTED_LOCALES: set[str] = {"es", "es-ES", "es_ES"}

SPANISH_WEEKDAYS: list[str] = [
    "lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo",
]

SPANISH_MONTHS: list[str] = [
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
]

MISSING_TIME_MARKER: str = "---"

# Date, optional time, optional UTC offset.  Anything else (including the
# "now" / "today" keywords pandas understands) is not a timestamp.
_ISO_TIMESTAMP_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}"
    r"(?:[T ]\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?"
    r"(?:[Zz]|[+-]\d{2}(?::?\d{2})?)?)?$"
)


# ---------------------------------------------------------------------------
# Timezone / context
# ---------------------------------------------------------------------------

def resolve_timezone(tz: TimezoneLike) -> tzinfo:
    """Return a ``tzinfo`` for *tz* (``None`` → UTC, str → IANA zone).

    Raises
    ------
    ValueError
        If *tz* is a name unknown to the zone database.
    """
    if tz is None:
        return timezone.utc
    if isinstance(tz, tzinfo):
        return tz
    try:
        return ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {tz!r}") from exc


@dataclass
class FormattingContext:
    """Clock, timezone and locale used to render display fields.

    Parameters
    ----------
    now : datetime, optional
        Reference instant for relative times.  Defaults to the wall clock
        at construction; a naive value is read in *tz*.
    tz : tzinfo or str, optional
        Viewer timezone (default UTC).
    locale : str
        Display locale.  Only Spanish is supported.
    """

    now: Optional[datetime] = None
    tz: TimezoneLike = None
    locale: str = "es"
    zone: tzinfo = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.locale not in SUPPORTED_LOCALES:
            raise ValueError(
                f"Unsupported locale {self.locale!r}; expected one of "
                f"{sorted(SUPPORTED_LOCALES)}"
            )
        self.zone = resolve_timezone(self.tz)
        if self.now is None:
            self.now = datetime.now(self.zone)
        elif self.now.tzinfo is None:
            self.now = self.now.replace(tzinfo=self.zone)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def parse_timestamp(value: Any, tz: TimezoneLike = None) -> datetime:
    """Parse an ISO-8601 timestamp into an aware datetime in *tz*.

    Naive timestamps are read as wall-clock time in *tz*.

    Raises
    ------
    InvalidTimestampError
        If *value* is empty or not a recognisable timestamp.
    """
    zone = resolve_timezone(tz)

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    else:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise InvalidTimestampError("Empty timestamp")
        if not isinstance(value, str) or not _ISO_TIMESTAMP_RE.match(value.strip()):
            raise InvalidTimestampError(f"Not an ISO-8601 timestamp: {value!r}")
        try:
            stamp = pd.Timestamp(value.strip())
        except (ValueError, TypeError, OverflowError) as exc:
            raise InvalidTimestampError(f"Unparseable timestamp {value!r}") from exc
        if pd.isna(stamp):
            raise InvalidTimestampError(f"Unparseable timestamp {value!r}")
        parsed = stamp.to_pydatetime()

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=zone)
    return parsed.astimezone(zone)


# ---------------------------------------------------------------------------
# Absolute formatting
# ---------------------------------------------------------------------------

def format_time(moment: datetime) -> str:
    return moment.strftime("%H:%M")


def format_date(moment: datetime) -> str:
    return moment.strftime("%d/%m/%Y")


def format_long_date(day: date) -> str:
    """Render *day* as ``"lunes, 3 de junio de 2024"``."""
    weekday = SPANISH_WEEKDAYS[day.weekday()]
    month = SPANISH_MONTHS[day.month - 1]
    return f"{weekday}, {day.day} de {month} de {day.year}"


def format_local_time(value: Any, tz: TimezoneLike = None) -> str:
    """Return ``HH:MM`` in *tz*, or ``"---"`` when *value* is missing or bad."""
    if not value:
        return MISSING_TIME_MARKER
    try:
        return format_time(parse_timestamp(value, tz))
    except InvalidTimestampError:
        logger.debug("Cannot format time for %r", value)
        return MISSING_TIME_MARKER


# ---------------------------------------------------------------------------
# Relative formatting
# ---------------------------------------------------------------------------

def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def relative_time_string(moment: datetime, now: datetime) -> str:
    """Spanish relative phrase for *moment* seen from *now*.

    Thresholds: under a minute → ``"Justo ahora"``; under an hour →
    minutes; under a day → hours; one day → ``"Ayer"``; under a week →
    days; anything older → ``""`` so the caller shows the absolute date.
    Each unit is rounded half-up from the previous one.
    """
    diff_sec = _round_half_up((now - moment).total_seconds())
    diff_min = _round_half_up(diff_sec / 60)
    diff_hr = _round_half_up(diff_min / 60)
    diff_days = _round_half_up(diff_hr / 24)

    if diff_sec < 60:
        return "Justo ahora"
    if diff_min < 60:
        unit = "minuto" if diff_min == 1 else "minutos"
        return f"Hace {diff_min} {unit}"
    if diff_hr < 24:
        unit = "hora" if diff_hr == 1 else "horas"
        return f"Hace {diff_hr} {unit}"
    if diff_days == 1:
        return "Ayer"
    if diff_days < 7:
        return f"Hace {diff_days} días"
    return ""

"""Grouping of events and sessions by local calendar day.

Day keys are computed from the wall-clock date in the viewer timezone,
never by truncating the UTC ISO string, so an event at
``2024-06-03T23:30:00Z`` seen from UTC-5 lands on ``2024-06-03``.

Public API
----------
- ``get_local_date_key(timestamp, tz)``     – ``"YYYY-MM-DD"`` in the viewer tz.
- ``group_by_local_date(events, tz)``       – Events per day, newest day first.
- ``group_sessions_by_date(sessions, ...)`` – Session records per day.
- ``format_date_for_display(date_key)``     – Long Spanish date for a key.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import Any, Iterable, Mapping, TypeVar

from ..events.formatting import (
    InvalidTimestampError,
    TimezoneLike,
    format_long_date,
    parse_timestamp,
    resolve_timezone,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _field_value(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def _sorted_newest_first(groups: dict[str, list[T]]) -> dict[str, list[T]]:
    return dict(sorted(groups.items(), key=lambda item: item[0], reverse=True))


def get_local_date_key(timestamp: Any, tz: TimezoneLike = None) -> str:
    """Return the ``YYYY-MM-DD`` local calendar day of *timestamp*.

    Raises
    ------
    InvalidTimestampError
        If *timestamp* cannot be parsed.
    """
    return parse_timestamp(timestamp, tz).date().isoformat()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def group_by_local_date(
    events: Iterable[T],
    tz: TimezoneLike = None,
) -> dict[str, list[T]]:
    """Bucket events by the local day of their ``timestamp``.

    Parameters
    ----------
    events : iterable
        Annotated events, or any records exposing ``timestamp`` as an
        attribute or mapping key.
    tz : tzinfo or str, optional
        Viewer timezone (default UTC).

    Returns
    -------
    dict[str, list]
        ``date key → events``, most recent day first.  Within a day the
        input order is kept.  Events whose timestamp cannot be parsed are
        logged and left out.
    """
    zone = resolve_timezone(tz)
    groups: dict[str, list[T]] = {}

    for event in events:
        timestamp = _field_value(event, "timestamp")
        try:
            key = get_local_date_key(timestamp, zone)
        except InvalidTimestampError as exc:
            logger.warning(
                "Cannot group event %s by date: %s",
                _field_value(event, "id"), exc,
            )
            continue
        groups.setdefault(key, []).append(event)

    return _sorted_newest_first(groups)


def group_sessions_by_date(
    sessions: Iterable[T],
    date_field: str = "scheduled_for",
    tz: TimezoneLike = None,
) -> dict[str, list[T]]:
    """Bucket session records by the local day of *date_field*.

    Sessions without a value for *date_field* are skipped silently;
    sessions with an unparseable value are skipped with a warning.
    """
    zone = resolve_timezone(tz)
    groups: dict[str, list[T]] = {}

    for session in sessions:
        value = _field_value(session, date_field)
        if not value:
            continue
        try:
            key = get_local_date_key(value, zone)
        except InvalidTimestampError as exc:
            logger.warning("Cannot group session by %s: %s", date_field, exc)
            continue
        logger.debug("Session %s=%r grouped under %s", date_field, value, key)
        groups.setdefault(key, []).append(session)

    return _sorted_newest_first(groups)


def format_date_for_display(date_key: str) -> str:
    """Render a ``YYYY-MM-DD`` key as ``"lunes, 3 de junio de 2024"``.

    The day is anchored at local noon so the weekday cannot drift across
    a daylight-saving or timezone boundary.  Keys that are not valid
    dates are returned unchanged.
    """
    try:
        day = date.fromisoformat(date_key)
    except (TypeError, ValueError):
        return date_key
    return format_long_date(datetime.combine(day, time(12, 0)))

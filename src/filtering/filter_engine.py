"""Compound filtering of annotated clinical events.

An event passes when it satisfies every active constraint of the
:class:`FilterState`: event type, confidence floor, calendar-day range in
the viewer timezone, and free-text search over description and details.

Filtering is a pure projection.  It never touches ``related_events``, so
a surviving event may still reference an event that was filtered out;
relationship context is kept on purpose.

Public API
----------
- ``apply_filters(events, filters, tz)``     – Filtered copy of the list.
- ``event_passes_filters(event, filters, tz)`` – Single-event predicate.
- ``count_active_filters(filters)``          – Number of active constraints.
- ``toggle_event_type(filters, event_type)`` – Add/remove a type constraint.
- ``clear_filters()``                        – Filter state with nothing active.
- ``event_counts(events)``                   – Totals per event type and category.
- ``confidence_label(confidence)``           – Spanish confidence level.
- ``CONFIDENCE_PRESETS``                     – Threshold options for the filter panel.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import replace
from datetime import datetime, time, tzinfo
from typing import Any, Iterable, Optional

from ..events.formatting import (
    InvalidTimestampError,
    TimezoneLike,
    parse_timestamp,
    resolve_timezone,
)
from ..events.schema import AnnotatedEvent, FilterState

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Confidence levels
# ---------------------------------------------------------------------------

CONFIDENCE_PRESETS: list[tuple[float, str]] = [
    (0.0, "Todos"),
    (0.5, "Moderada o superior (>50%)"),
    (0.7, "Buena o superior (>70%)"),
    (0.9, "Sólo alta confianza (>90%)"),
]

# (minimum percentage, label), checked in order.
CONFIDENCE_LEVELS: list[tuple[int, str]] = [
    (90, "Muy alta"),
    (75, "Alta"),
    (60, "Moderada"),
]

UNKNOWN_CONFIDENCE_LABEL: str = "Desconocido"
LOW_CONFIDENCE_LABEL: str = "Baja"


def confidence_label(confidence: Any) -> str:
    """Return the Spanish confidence level for a score in ``[0, 1]``."""
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        return UNKNOWN_CONFIDENCE_LABEL
    percentage = math.floor(confidence * 100 + 0.5)
    for minimum, label in CONFIDENCE_LEVELS:
        if percentage >= minimum:
            return label
    return LOW_CONFIDENCE_LABEL


# ---------------------------------------------------------------------------
# Predicate
# ---------------------------------------------------------------------------

def _day_bounds(
    filters: FilterState, zone: tzinfo
) -> tuple[Optional[datetime], Optional[datetime]]:
    """Start of the first day and end of the last day, in *zone*."""
    start = end = None
    if filters.date_range.start is not None:
        start = datetime.combine(filters.date_range.start, time.min, tzinfo=zone)
    if filters.date_range.end is not None:
        end = datetime.combine(filters.date_range.end, time.max, tzinfo=zone)
    return start, end


def _matches_search(event: AnnotatedEvent, needle: str) -> bool:
    if needle in event.description.lower():
        return True
    return bool(event.details) and needle in event.details.lower()


def _passes(
    event: AnnotatedEvent,
    filters: FilterState,
    zone: tzinfo,
    start: Optional[datetime],
    end: Optional[datetime],
) -> bool:
    if filters.event_types and event.normalized_type not in filters.event_types:
        return False

    if event.confidence < filters.confidence_threshold:
        return False

    if start is not None or end is not None:
        try:
            moment = parse_timestamp(event.timestamp, zone)
        except InvalidTimestampError:
            logger.debug("Excluding event %s from date range: bad timestamp", event.id)
            return False
        if start is not None and moment < start:
            return False
        if end is not None and moment > end:
            return False

    if filters.search_text and not _matches_search(event, filters.search_text.lower()):
        return False

    return True


def event_passes_filters(
    event: AnnotatedEvent,
    filters: FilterState,
    tz: TimezoneLike = None,
) -> bool:
    """Return ``True`` if *event* satisfies every constraint of *filters*."""
    zone = resolve_timezone(tz)
    start, end = _day_bounds(filters, zone)
    return _passes(event, filters, zone, start, end)


def apply_filters(
    events: Iterable[AnnotatedEvent],
    filters: FilterState,
    tz: TimezoneLike = None,
) -> list[AnnotatedEvent]:
    """Return the events that satisfy *filters*, in input order.

    Parameters
    ----------
    events : iterable of AnnotatedEvent
        Annotated events.  Not modified.
    filters : FilterState
        Constraints to apply.  ``date_range`` days are interpreted in *tz*:
        the start day from 00:00, the end day through 23:59:59.999999.
        Events with an unparseable timestamp fail an active date range.
    tz : tzinfo or str, optional
        Viewer timezone (default UTC).

    Returns
    -------
    list[AnnotatedEvent]
        The passing events (same objects, links untouched).  Applying the
        same filters to the result returns the same list.
    """
    zone = resolve_timezone(tz)
    start, end = _day_bounds(filters, zone)
    return [event for event in events if _passes(event, filters, zone, start, end)]


# ---------------------------------------------------------------------------
# Filter-state helpers
# ---------------------------------------------------------------------------

def count_active_filters(filters: FilterState) -> int:
    """Number of active constraints (a date range counts once)."""
    count = 0
    if filters.event_types:
        count += 1
    if filters.confidence_threshold > 0:
        count += 1
    if filters.date_range.is_active:
        count += 1
    if filters.search_text:
        count += 1
    return count


def toggle_event_type(filters: FilterState, event_type: str) -> FilterState:
    """Return *filters* with *event_type* added, or removed if present."""
    event_type = event_type.lower()
    if event_type in filters.event_types:
        types = filters.event_types - {event_type}
    else:
        types = filters.event_types | {event_type}
    return replace(filters, event_types=types)


def clear_filters() -> FilterState:
    return FilterState()


# ---------------------------------------------------------------------------
# Counts
# ---------------------------------------------------------------------------

def event_counts(events: Iterable[AnnotatedEvent]) -> dict[str, int]:
    """Count events per lower-cased event type and per category.

    Meant to be computed over the full, unfiltered collection so that the
    filter panel shows totals rather than filtered subsets.
    """
    counts: Counter[str] = Counter()
    for event in events:
        counts[event.normalized_type] += 1
        counts[event.category] += 1
    return dict(counts)

"""Event normalisation: stable ids, display fields, and categories.

Turns the raw session event log into :class:`AnnotatedEvent` objects
ready for consolidation, correlation and filtering.

Public API
----------
- ``normalize_events(events, context)`` – Annotate a whole event log.
- ``normalize_event(event, index, context)`` – Annotate a single event.
- ``event_category(event_type)``        – Closed type → category mapping.
- ``translate_description(event_type, description)`` – Spanish display phrase.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional, Union

from pydantic import ValidationError

from .formatting import (
    FormattingContext,
    InvalidTimestampError,
    format_date,
    format_time,
    parse_timestamp,
    relative_time_string,
)
from .schema import (
    DEFAULT_CATEGORY,
    EVENT_CATEGORIES,
    INVALID_DATE_MARKER,
    TRANSLATED_DESCRIPTIONS,
    TRANSLATED_MARKERS,
    AnnotatedEvent,
    RawEvent,
)

logger = logging.getLogger(__name__)

EventInput = Union[RawEvent, Mapping[str, Any]]


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def event_category(event_type: str) -> str:
    """Return the display category for *event_type* (``"other"`` if unknown)."""
    return EVENT_CATEGORIES.get(event_type.lower(), DEFAULT_CATEGORY)


def translate_description(event_type: str, description: str) -> str:
    """Return the Spanish display phrase for an event.

    Descriptions that already contain a translated marker are returned
    unchanged; otherwise the fixed phrase for the event type is used,
    falling back to the original description for unknown types.
    """
    if any(marker in description for marker in TRANSLATED_MARKERS):
        return description
    return TRANSLATED_DESCRIPTIONS.get(event_type.lower(), description)


# ---------------------------------------------------------------------------
# Normalisation
# ---------------------------------------------------------------------------

def _coerce_raw_event(record: EventInput, index: int) -> Optional[RawEvent]:
    """Validate *record* into a :class:`RawEvent`, or ``None`` if malformed."""
    if isinstance(record, RawEvent):
        return record
    try:
        return RawEvent.model_validate(dict(record))
    except (ValidationError, TypeError, ValueError) as exc:
        logger.warning("Skipping malformed event at position %d: %s", index, exc)
        return None


def normalize_event(
    event: RawEvent,
    index: int,
    context: FormattingContext,
) -> AnnotatedEvent:
    """Annotate a single validated event.

    An unparseable timestamp does not raise: the formatted date and time
    become ``INVALID_DATE_MARKER``, the relative time is empty, and a
    warning is logged.
    """
    event_id = event.id or f"event-{index}"

    try:
        moment = parse_timestamp(event.timestamp, context.zone)
    except InvalidTimestampError as exc:
        logger.warning("Invalid timestamp for event %s: %s", event_id, exc)
        formatted_date = formatted_time = INVALID_DATE_MARKER
        relative = ""
    else:
        formatted_date = format_date(moment)
        formatted_time = format_time(moment)
        relative = relative_time_string(moment, context.now)

    return AnnotatedEvent(
        id=event_id,
        event_type=event.event_type,
        description=event.description,
        timestamp=event.timestamp,
        confidence=event.confidence,
        details=event.details,
        metadata=dict(event.metadata) if event.metadata is not None else None,
        component_refs=list(event.component_refs) if event.component_refs else None,
        formatted_date=formatted_date,
        formatted_time=formatted_time,
        relative_time=relative,
        category=event_category(event.event_type),
        translated_description=translate_description(
            event.event_type, event.description
        ),
    )


def normalize_events(
    events: Iterable[EventInput],
    context: Optional[FormattingContext] = None,
) -> list[AnnotatedEvent]:
    """Annotate every event of a session log.

    Parameters
    ----------
    events : iterable of RawEvent or dict
        The session's event log, in input order.  Dicts are validated
        into :class:`RawEvent`; a record that fails validation is logged
        and skipped without aborting the batch.
    context : FormattingContext, optional
        Clock, timezone and locale.  Defaults to the wall clock in UTC.

    Returns
    -------
    list[AnnotatedEvent]
        One annotated event per valid input record.  Events without an
        ``id`` get ``"event-<position>"``.
    """
    context = context or FormattingContext()

    annotated: list[AnnotatedEvent] = []
    for index, record in enumerate(events):
        raw = _coerce_raw_event(record, index)
        if raw is None:
            continue
        annotated.append(normalize_event(raw, index, context))

    logger.debug("Normalised %d events", len(annotated))
    return annotated

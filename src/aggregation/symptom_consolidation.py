"""Consolidation of repeated symptom mentions.

A consultation often mentions the same symptom several times ("fiebre
(38.5°C)", later "fiebre (39°C)").  These are merged into one
representative event carrying an occurrence counter and the highest
confidence seen.

Public API
----------
- ``symptom_merge_key(details)``       – Normalised text identifying a symptom.
- ``deduplicate_events(events)``       – Merge repeated symptoms, unique ids.
- ``consolidate_raw_events(events)``   – Normalise then deduplicate.
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Iterable, Optional

from ..events.formatting import FormattingContext
from ..events.normalizer import EventInput, normalize_events
from ..events.schema import AnnotatedEvent

logger = logging.getLogger(__name__)

_PARENTHESISED = re.compile(r"\([^)]*\)")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def symptom_merge_key(details: Optional[str]) -> Optional[str]:
    """Return the merge key for a symptom's *details*.

    Parenthesised content is removed, then the text is lower-cased and
    trimmed.  Returns ``None`` when nothing remains.
    """
    if not details:
        return None
    key = _PARENTHESISED.sub("", details).lower().strip()
    return key or None


class _IdAllocator:
    """Hands out collection-unique ids in input order."""

    def __init__(self) -> None:
        self._used: set[str] = set()

    def allocate(self, event: AnnotatedEvent, index: int) -> str:
        base = event.id or f"{event.event_type}-{event.timestamp}"
        candidate = base
        if candidate in self._used:
            candidate = f"{base}-{index}"
            suffix = 1
            while candidate in self._used:
                candidate = f"{base}-{index}-{suffix}"
                suffix += 1
        self._used.add(candidate)
        return candidate


def _copy_event(event: AnnotatedEvent, event_id: str) -> AnnotatedEvent:
    return replace(
        event,
        id=event_id,
        metadata=dict(event.metadata) if event.metadata is not None else None,
        related_events=list(event.related_events),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def deduplicate_events(events: Iterable[AnnotatedEvent]) -> list[AnnotatedEvent]:
    """Merge repeated symptom mentions into single representative events.

    Only ``symptom`` events with a non-empty merge key take part.  The
    first occurrence of a key becomes the representative; each later
    occurrence raises its ``confidence`` to the maximum seen and
    increments ``metadata["occurrences"]`` (which starts at 1).

    All other events, including symptoms without ``details``, pass
    through unmerged.  Every output event gets a collection-unique id:
    the event's own id (or ``"<event_type>-<timestamp>"``), suffixed
    with its input position on collision.

    Parameters
    ----------
    events : iterable of AnnotatedEvent
        Normalised events, in input order.  Not modified.

    Returns
    -------
    list[AnnotatedEvent]
        Symptom representatives in first-seen order, followed by all
        other events in input order.
    """
    representatives: dict[str, AnnotatedEvent] = {}
    others: list[AnnotatedEvent] = []
    ids = _IdAllocator()
    merged = 0

    for index, event in enumerate(events):
        key = symptom_merge_key(event.details) if event.is_symptom else None

        if key is None:
            others.append(_copy_event(event, ids.allocate(event, index)))
            continue

        representative = representatives.get(key)
        if representative is None:
            representative = _copy_event(event, ids.allocate(event, index))
            representative.metadata = {**(representative.metadata or {}), "occurrences": 1}
            representatives[key] = representative
            continue

        representative.confidence = max(representative.confidence, event.confidence)
        representative.metadata["occurrences"] = representative.occurrences + 1
        merged += 1
        logger.debug(
            "Merged symptom %r (event at position %d) into %s",
            key, index, representative.id,
        )

    if merged:
        logger.info(
            "Consolidated %d repeated symptom mentions into %d symptoms",
            merged, len(representatives),
        )

    return [*representatives.values(), *others]


def consolidate_raw_events(
    events: Iterable[EventInput],
    context: Optional[FormattingContext] = None,
) -> list[AnnotatedEvent]:
    """Normalise a raw event log and merge repeated symptoms."""
    return deduplicate_events(normalize_events(events, context))

"""End-to-end consultation timeline builder.

Orchestrates normalisation, symptom consolidation, relationship
resolution, filtering and date grouping for one consultation's event log.

Public API
----------
- ``ClinicalTimeline``                        – Derived views over one event log.
- ``build_clinical_timeline(events, ...)``   – Convenience constructor.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

import pandas as pd

from ..events.formatting import FormattingContext
from ..events.normalizer import EventInput, normalize_events
from ..events.schema import AnnotatedEvent, FilterState
from ..filtering.filter_engine import apply_filters, event_counts
from .date_grouping import group_by_local_date
from .relationships import resolve_relationships
from .symptom_consolidation import deduplicate_events

logger = logging.getLogger(__name__)

META_COLUMNS: list[str] = ["_id", "_event_type", "_category", "_timestamp"]


class ClinicalTimeline:
    """Processed, filtered and grouped views of a consultation's events.

    The event log is processed once at construction:

    1. **Normalise** — ids, Spanish display fields, categories.
    2. **Consolidate** — merge repeated symptom mentions.
    3. **Correlate** — link diagnoses to the symptoms in their evidence.

    Filtered and grouped views are derived from the current
    :class:`FilterState` and cached until :meth:`set_filters` is called.

    Parameters
    ----------
    events : iterable of RawEvent or dict
        The consultation's event log.  Never modified.
    context : FormattingContext, optional
        Clock, timezone and locale (default: wall clock, UTC, Spanish).
    filters : FilterState, optional
        Initial filters (default: nothing active).
    """

    def __init__(
        self,
        events: Iterable[EventInput],
        context: Optional[FormattingContext] = None,
        filters: Optional[FilterState] = None,
    ) -> None:
        self.context = context or FormattingContext()
        self.raw_events: list[EventInput] = list(events)
        self._filters = filters or FilterState()
        self._filtered: Optional[list[AnnotatedEvent]] = None
        self.expanded_events: dict[str, bool] = {}

        normalised = normalize_events(self.raw_events, self.context)
        consolidated = deduplicate_events(normalised)
        self.processed_events: list[AnnotatedEvent] = resolve_relationships(consolidated)

        logger.info(
            "Timeline built: %d raw events → %d processed events",
            len(self.raw_events), len(self.processed_events),
        )

    # -- Filters -------------------------------------------------------------

    @property
    def filters(self) -> FilterState:
        return self._filters

    def set_filters(self, filters: FilterState) -> None:
        """Replace the current filters and drop the cached filtered view."""
        self._filters = filters
        self._filtered = None

    @property
    def filtered_events(self) -> list[AnnotatedEvent]:
        if self._filtered is None:
            self._filtered = apply_filters(
                self.processed_events, self._filters, self.context.zone
            )
        return self._filtered

    @property
    def event_counts(self) -> dict[str, int]:
        """Totals per event type and category, ignoring the filters."""
        return event_counts(self.processed_events)

    @property
    def grouped_events(self) -> dict[str, list[AnnotatedEvent]]:
        """Filtered events by local day, most recent day first."""
        return group_by_local_date(self.filtered_events, self.context.zone)

    def get_event(self, event_id: str) -> Optional[AnnotatedEvent]:
        for event in self.processed_events:
            if event.id == event_id:
                return event
        return None

    # -- Expansion state -----------------------------------------------------

    def toggle_event_expansion(self, event_id: str) -> bool:
        """Flip the expanded flag of one event and return its new value."""
        expanded = not self.expanded_events.get(event_id, False)
        self.expanded_events[event_id] = expanded
        return expanded

    def toggle_all_events(self, expanded: bool) -> None:
        self.expanded_events = {
            event.id: expanded for event in self.processed_events
        }

    # -- Export --------------------------------------------------------------

    def to_dataframe(self) -> pd.DataFrame:
        """Return the filtered events as a table.

        Metadata columns (``_id``, ``_event_type``, ``_category``,
        ``_timestamp``) come first, followed by the display columns in
        alphabetical order.  An empty timeline gives an empty frame.
        """
        if not self.filtered_events:
            return pd.DataFrame()

        rows: list[dict[str, Any]] = []
        for event in self.filtered_events:
            rows.append({
                "_id": event.id,
                "_event_type": event.event_type,
                "_category": event.category,
                "_timestamp": event.timestamp,
                "description": event.description,
                "translated_description": event.translated_description,
                "details": event.details,
                "confidence": event.confidence,
                "occurrences": event.occurrences,
                "formatted_date": event.formatted_date,
                "formatted_time": event.formatted_time,
                "relative_time": event.relative_time,
                "related_event_ids": event.related_event_ids,
                "expanded": self.expanded_events.get(event.id, False),
            })

        df = pd.DataFrame(rows)
        feature_cols = sorted(c for c in df.columns if not c.startswith("_"))
        return df[META_COLUMNS + feature_cols]


def build_clinical_timeline(
    events: Iterable[EventInput],
    context: Optional[FormattingContext] = None,
    filters: Optional[FilterState] = None,
) -> ClinicalTimeline:
    """Build a :class:`ClinicalTimeline` for a consultation's event log."""
    if not events:
        logger.warning("No events provided for timeline")
    return ClinicalTimeline(events, context=context, filters=filters)

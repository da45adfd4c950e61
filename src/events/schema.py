"""Clinical event schema, vocabularies, and filter state.

Defines the input record shape received from the session event log, the
annotated event produced by the timeline pipeline, and the user-selected
filter constraints.

Public API
----------
- ``RawEvent``              – Validated input event (immutable).
- ``AnnotatedEvent``        – Event enriched with display fields and links.
- ``DateRange``             – Inclusive calendar-day range.
- ``FilterState``           – Compound filter constraints.
- ``EVENT_CATEGORIES``      – Closed mapping event type → category.
- ``TRANSLATED_DESCRIPTIONS`` – Fixed Spanish phrase per event type.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional

from pydantic import BaseModel, ConfigDict


# ---------------------------------------------------------------------------
# Vocabularies
# ---------------------------------------------------------------------------

KNOWN_EVENT_TYPES: list[str] = [
    "symptom",
    "diagnosis",
    "recording",
    "vital_sign",
    "medication",
    "procedure",
    "lab_result",
]

DEFAULT_CATEGORY: str = "other"

EVENT_CATEGORIES: dict[str, str] = {
    "symptom": "clinical_findings",
    "vital_sign": "clinical_findings",
    "lab_result": "clinical_findings",
    "diagnosis": "diagnoses",
    "recording": "recordings",
    "procedure": "procedures",
    "medication": "treatments",
}

# Labels shown next to the event-type toggles of the filter panel.
EVENT_TYPE_LABELS: dict[str, str] = {
    "symptom": "Síntomas",
    "diagnosis": "Diagnósticos",
    "recording": "Grabaciones",
    "vital_sign": "Signos Vitales",
    "medication": "Medicamentos",
    "procedure": "Procedimientos",
}

TRANSLATED_DESCRIPTIONS: dict[str, str] = {
    "symptom": "Síntoma reportado",
    "diagnosis": "Diagnóstico establecido",
    "recording": "Grabación creada",
    "vital_sign": "Signo vital",
    "medication": "Medicación",
    "procedure": "Procedimiento",
    "lab_result": "Resultado de laboratorio",
}

# A description containing one of these is already in Spanish.
TRANSLATED_MARKERS: tuple[str, ...] = ("reportado", "establecido", "creada")

INVALID_DATE_MARKER: str = "Fecha inválida"


# ---------------------------------------------------------------------------
# RawEvent — one record of the session event log
# ---------------------------------------------------------------------------

class RawEvent(BaseModel):
    """Clinical event as delivered by the data-fetching layer.

    ``confidence`` is deliberately not range-checked: out-of-range values
    are an upstream data-quality issue and flow through unchanged.
    """

    event_type: str
    description: str
    timestamp: str  # ISO-8601
    confidence: float
    details: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    component_refs: Optional[list[str]] = None
    id: Optional[str] = None

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        json_schema_extra={
            "examples": [
                {
                    "event_type": "symptom",
                    "description": "Síntoma reportado",
                    "timestamp": "2024-06-03T14:30:00Z",
                    "confidence": 0.85,
                    "details": "fiebre (38.5°C)",
                }
            ]
        },
    )

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> list[RawEvent]:
        """Validate a list of plain dicts (e.g. a decoded REST payload)."""
        return [cls.model_validate(dict(record)) for record in records]


# ---------------------------------------------------------------------------
# AnnotatedEvent — pipeline output
# ---------------------------------------------------------------------------

@dataclass
class AnnotatedEvent:
    """Clinical event enriched for display and correlation.

    Attributes
    ----------
    id : str
        Collection-unique identifier.  Supplied upstream when available,
        otherwise derived from the event's position (not stable across
        re-fetches).
    event_type, description, timestamp, confidence, details, metadata,
    component_refs
        Copied from the :class:`RawEvent`.
    formatted_date : str
        ``dd/mm/yyyy`` in the viewer timezone, or ``INVALID_DATE_MARKER``.
    formatted_time : str
        ``HH:MM`` (24 h) in the viewer timezone, or ``INVALID_DATE_MARKER``.
    relative_time : str
        Spanish relative phrase ("Hace 5 minutos"), empty when older than
        a week or when the timestamp is invalid.
    category : str
        Value of ``EVENT_CATEGORIES`` (``"other"`` for unknown types).
    translated_description : str
        Spanish display phrase.
    related_events : list[AnnotatedEvent]
        Diagnoses linked to a symptom or symptoms linked to a diagnosis.
        Always defined; empty when no relationship was found.
    """

    id: str
    event_type: str
    description: str
    timestamp: str
    confidence: float
    details: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    component_refs: Optional[list[str]] = None
    formatted_date: str = ""
    formatted_time: str = ""
    relative_time: str = ""
    category: str = DEFAULT_CATEGORY
    translated_description: str = ""
    related_events: list[AnnotatedEvent] = field(
        default_factory=list, repr=False, compare=False
    )

    # -- Convenience helpers -------------------------------------------------

    @property
    def normalized_type(self) -> str:
        return self.event_type.lower()

    @property
    def is_symptom(self) -> bool:
        return self.normalized_type == "symptom"

    @property
    def is_diagnosis(self) -> bool:
        return self.normalized_type == "diagnosis"

    @property
    def occurrences(self) -> int:
        """Number of merged mentions (1 when never deduplicated)."""
        if not self.metadata:
            return 1
        return int(self.metadata.get("occurrences", 1))

    @property
    def related_event_ids(self) -> list[str]:
        return [related.id for related in self.related_events]

    def to_dict(self) -> dict[str, Any]:
        """Return a flat dict; related events are referenced by id only."""
        return {
            "id": self.id,
            "event_type": self.event_type,
            "description": self.description,
            "timestamp": self.timestamp,
            "confidence": self.confidence,
            "details": self.details,
            "metadata": dict(self.metadata) if self.metadata else None,
            "component_refs": self.component_refs,
            "formatted_date": self.formatted_date,
            "formatted_time": self.formatted_time,
            "relative_time": self.relative_time,
            "category": self.category,
            "translated_description": self.translated_description,
            "occurrences": self.occurrences,
            "related_event_ids": self.related_event_ids,
        }


# ---------------------------------------------------------------------------
# Filter state
# ---------------------------------------------------------------------------

_CALENDAR_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _coerce_date(value: Any) -> Optional[date]:
    """Return the calendar day picked in the filter panel.

    Only calendar dates are accepted: a ``date``, a naive ``datetime``
    (its wall-clock day) or a ``YYYY-MM-DD`` string.  Instants (ISO
    datetime strings, aware datetimes) raise ``ValueError``.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            raise ValueError(f"Expected a calendar date, got aware datetime {value!r}")
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not _CALENDAR_DATE_RE.match(value.strip()):
        raise ValueError(f"Expected a calendar date, got {value!r}")
    return date.fromisoformat(value.strip())


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of calendar days in the viewer timezone."""

    start: Optional[date] = None
    end: Optional[date] = None

    @property
    def is_active(self) -> bool:
        return self.start is not None or self.end is not None


@dataclass(frozen=True)
class FilterState:
    """User-selected constraints narrowing the displayed events.

    An empty ``event_types`` set means "no type filter".
    """

    event_types: frozenset[str] = frozenset()
    confidence_threshold: float = 0.0
    date_range: DateRange = field(default_factory=DateRange)
    search_text: str = ""

    def __post_init__(self) -> None:
        # Accept a single name or any iterable of names; membership is
        # case-insensitive.
        types = self.event_types
        if isinstance(types, str):
            types = [types]
        object.__setattr__(
            self, "event_types", frozenset(t.lower() for t in types)
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FilterState:
        """Build a filter state from the UI dict shape.

        Accepts either snake_case or the camelCase keys used by the filter
        panel (``eventTypes``, ``confidenceThreshold``, ``dateRange``,
        ``searchText``).  ``eventTypes`` may be a single name.  Dates may
        be ``YYYY-MM-DD`` strings.

        Raises
        ------
        ValueError
            If a date in the range is not a calendar date.
        """
        date_range = data.get("date_range", data.get("dateRange")) or {}
        return cls(
            event_types=data.get("event_types", data.get("eventTypes")) or (),
            confidence_threshold=float(
                data.get("confidence_threshold", data.get("confidenceThreshold")) or 0.0
            ),
            date_range=DateRange(
                start=_coerce_date(date_range.get("start")),
                end=_coerce_date(date_range.get("end")),
            ),
            search_text=data.get("search_text", data.get("searchText")) or "",
        )

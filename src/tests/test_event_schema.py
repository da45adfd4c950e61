"""Tests for src/events/schema.py — event and filter models."""

from datetime import date, datetime, timezone

import pytest
from pydantic import ValidationError

from src.events.schema import (
    EVENT_CATEGORIES,
    KNOWN_EVENT_TYPES,
    TRANSLATED_DESCRIPTIONS,
    AnnotatedEvent,
    DateRange,
    FilterState,
    RawEvent,
)


# ---------------------------------------------------------------------------
# Tests: vocabularies
# ---------------------------------------------------------------------------

class TestVocabularies:

    def test_every_known_type_has_category_and_phrase(self):
        for event_type in KNOWN_EVENT_TYPES:
            assert event_type in EVENT_CATEGORIES
            assert event_type in TRANSLATED_DESCRIPTIONS


# ---------------------------------------------------------------------------
# Tests: RawEvent
# ---------------------------------------------------------------------------

class TestRawEvent:

    def test_minimal(self):
        event = RawEvent(
            event_type="symptom",
            description="Fiebre",
            timestamp="2024-06-03T10:00:00Z",
            confidence=0.8,
        )
        assert event.details is None
        assert event.metadata is None
        assert event.id is None

    def test_extra_keys_ignored(self):
        event = RawEvent.model_validate({
            "event_type": "symptom",
            "description": "Fiebre",
            "timestamp": "2024-06-03T10:00:00Z",
            "confidence": 0.8,
            "expanded": True,
        })
        assert not hasattr(event, "expanded")

    def test_frozen(self):
        event = RawEvent(
            event_type="symptom", description="Fiebre",
            timestamp="2024-06-03T10:00:00Z", confidence=0.8,
        )
        with pytest.raises(ValidationError):
            event.confidence = 0.1

    def test_confidence_not_range_checked(self):
        event = RawEvent(
            event_type="symptom", description="Fiebre",
            timestamp="2024-06-03T10:00:00Z", confidence=3.5,
        )
        assert event.confidence == 3.5

    def test_missing_required_field(self):
        with pytest.raises(ValidationError):
            RawEvent.model_validate({"event_type": "symptom", "confidence": 0.5})

    def test_from_records(self):
        events = RawEvent.from_records([
            {"event_type": "symptom", "description": "a",
             "timestamp": "2024-06-03T10:00:00Z", "confidence": 0.5},
            {"event_type": "diagnosis", "description": "b",
             "timestamp": "2024-06-03T11:00:00Z", "confidence": 0.9,
             "metadata": {"supporting_evidence": ["a"]}},
        ])
        assert [e.event_type for e in events] == ["symptom", "diagnosis"]
        assert events[1].metadata == {"supporting_evidence": ["a"]}


# ---------------------------------------------------------------------------
# Tests: AnnotatedEvent
# ---------------------------------------------------------------------------

class TestAnnotatedEvent:

    def _event(self, **kwargs) -> AnnotatedEvent:
        defaults = dict(
            id="e1", event_type="Symptom", description="Fiebre",
            timestamp="2024-06-03T10:00:00Z", confidence=0.8,
        )
        defaults.update(kwargs)
        return AnnotatedEvent(**defaults)

    def test_type_helpers(self):
        event = self._event()
        assert event.normalized_type == "symptom"
        assert event.is_symptom
        assert not event.is_diagnosis

    def test_occurrences_default(self):
        assert self._event().occurrences == 1
        assert self._event(metadata={"occurrences": 4}).occurrences == 4

    def test_to_dict_references_related_by_id(self):
        diagnosis = self._event(id="d1", event_type="diagnosis")
        symptom = self._event(id="s1")
        symptom.related_events = [diagnosis]
        diagnosis.related_events = [symptom]

        data = symptom.to_dict()
        assert data["related_event_ids"] == ["d1"]
        assert data["occurrences"] == 1
        assert "related_events" not in data

    def test_repr_does_not_recurse(self):
        a = self._event(id="a")
        b = self._event(id="b")
        a.related_events = [b]
        b.related_events = [a]
        assert "related_events" not in repr(a)


# ---------------------------------------------------------------------------
# Tests: FilterState / DateRange
# ---------------------------------------------------------------------------

class TestFilterState:

    def test_defaults(self):
        filters = FilterState()
        assert filters.event_types == frozenset()
        assert filters.confidence_threshold == 0.0
        assert filters.date_range == DateRange()
        assert filters.search_text == ""

    def test_event_types_lowercased(self):
        assert FilterState(event_types=["Diagnosis", "SYMPTOM"]).event_types == frozenset(
            {"diagnosis", "symptom"}
        )

    def test_date_range_active(self):
        assert not DateRange().is_active
        assert DateRange(end=date(2024, 6, 3)).is_active

    def test_from_dict_accepts_datetimes(self):
        filters = FilterState.from_dict({
            "dateRange": {"start": datetime(2024, 6, 1, 15, 0), "end": date(2024, 6, 3)},
        })
        assert filters.date_range == DateRange(start=date(2024, 6, 1), end=date(2024, 6, 3))

    def test_single_event_type_string(self):
        assert FilterState(event_types="Diagnosis").event_types == frozenset({"diagnosis"})
        filters = FilterState.from_dict({"eventTypes": "diagnosis"})
        assert filters.event_types == frozenset({"diagnosis"})

    @pytest.mark.parametrize(
        "value",
        [
            "2024-06-03T23:30:00Z",
            "2024-06-03T23:30:00-05:00",
            datetime(2024, 6, 3, 23, 30, tzinfo=timezone.utc),
            20240603,
        ],
    )
    def test_from_dict_rejects_instants(self, value):
        with pytest.raises(ValueError):
            FilterState.from_dict({"dateRange": {"start": value}})

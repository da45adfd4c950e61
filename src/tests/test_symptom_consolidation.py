"""Tests for src/aggregation/symptom_consolidation.py — repeated symptom merging.

Covers:
- Merge key normalisation (parentheses stripped, case, whitespace)
- Two / three mentions of one symptom → one event, occurrence count, max confidence
- Representative keeps the first occurrence's id and position
- Non-symptoms and detail-less symptoms are never merged
- Output order: symptom representatives first, then the rest
- Id uniqueness with collisions and missing ids
- Inputs are not mutated
- consolidate_raw_events convenience wrapper
"""

from datetime import datetime, timezone

import pytest

from src.aggregation.symptom_consolidation import (
    consolidate_raw_events,
    deduplicate_events,
    symptom_merge_key,
)
from src.events.formatting import FormattingContext
from src.events.schema import AnnotatedEvent


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_event(
    event_id: str = "e1",
    event_type: str = "symptom",
    details=None,
    confidence: float = 0.5,
    timestamp: str = "2024-06-03T10:00:00Z",
    metadata=None,
) -> AnnotatedEvent:
    """Create an AnnotatedEvent with sensible defaults."""
    return AnnotatedEvent(
        id=event_id,
        event_type=event_type,
        description="Síntoma reportado",
        timestamp=timestamp,
        confidence=confidence,
        details=details,
        metadata=metadata,
    )


# ---------------------------------------------------------------------------
# Tests: symptom_merge_key
# ---------------------------------------------------------------------------

class TestSymptomMergeKey:

    def test_parentheses_removed(self):
        assert symptom_merge_key("fiebre (38.5°C)") == "fiebre"

    def test_case_and_whitespace(self):
        assert symptom_merge_key("  Fiebre (39°C) ") == "fiebre"

    def test_all_parenthesised_groups_removed(self):
        assert symptom_merge_key("tos (seca) nocturna (leve)") == "tos  nocturna"

    @pytest.mark.parametrize("details", [None, "", "(solo paréntesis)", "   "])
    def test_no_key(self, details):
        assert symptom_merge_key(details) is None


# ---------------------------------------------------------------------------
# Tests: merging
# ---------------------------------------------------------------------------

class TestMerging:
    """Repeated symptom mentions collapse into one representative."""

    def test_two_mentions_merged(self):
        events = [
            _make_event("s1", details="fiebre (38.5°C)", confidence=0.6),
            _make_event("s2", details="fiebre (39°C)", confidence=0.8),
        ]
        result = deduplicate_events(events)
        assert len(result) == 1
        assert result[0].confidence == 0.8
        assert result[0].metadata["occurrences"] == 2
        assert result[0].occurrences == 2

    def test_three_mentions_first_highest(self):
        events = [
            _make_event("s1", details="Cefalea", confidence=0.9),
            _make_event("s2", details="cefalea (frontal)", confidence=0.4),
            _make_event("s3", details="CEFALEA", confidence=0.7),
        ]
        result = deduplicate_events(events)
        assert len(result) == 1
        assert result[0].confidence == 0.9
        assert result[0].occurrences == 3

    def test_single_mention_counts_one(self):
        result = deduplicate_events([_make_event("s1", details="tos")])
        assert result[0].metadata == {"occurrences": 1}

    def test_representative_is_first_occurrence(self):
        events = [
            _make_event("s1", details="fiebre (38°C)", timestamp="2024-06-03T09:00:00Z"),
            _make_event("s2", details="fiebre (39°C)", timestamp="2024-06-03T11:00:00Z"),
        ]
        result = deduplicate_events(events)
        assert result[0].id == "s1"
        assert result[0].details == "fiebre (38°C)"
        assert result[0].timestamp == "2024-06-03T09:00:00Z"

    def test_existing_metadata_kept(self):
        events = [
            _make_event("s1", details="fiebre", metadata={"severity": "alta"}),
            _make_event("s2", details="fiebre"),
        ]
        result = deduplicate_events(events)
        assert result[0].metadata == {"severity": "alta", "occurrences": 2}

    def test_distinct_symptoms_kept_apart(self):
        events = [
            _make_event("s1", details="fiebre"),
            _make_event("s2", details="tos"),
            _make_event("s3", details="fiebre"),
        ]
        result = deduplicate_events(events)
        assert [e.id for e in result] == ["s1", "s2"]
        assert [e.occurrences for e in result] == [2, 1]


class TestPassThrough:
    """Events that never take part in merging."""

    def test_non_symptoms_not_merged(self):
        events = [
            _make_event("d1", event_type="diagnosis", details="gripe"),
            _make_event("d2", event_type="diagnosis", details="gripe"),
        ]
        result = deduplicate_events(events)
        assert [e.id for e in result] == ["d1", "d2"]
        assert all(e.metadata is None for e in result)

    def test_symptoms_without_details_not_merged(self):
        events = [
            _make_event("s1", details=None),
            _make_event("s2", details=""),
        ]
        result = deduplicate_events(events)
        assert [e.id for e in result] == ["s1", "s2"]

    def test_output_order(self):
        events = [
            _make_event("m1", event_type="medication"),
            _make_event("s1", details="fiebre"),
            _make_event("d1", event_type="diagnosis"),
            _make_event("s2", details="tos"),
        ]
        result = deduplicate_events(events)
        assert [e.id for e in result] == ["s1", "s2", "m1", "d1"]

    def test_symptom_type_case_insensitive(self):
        events = [
            _make_event("s1", event_type="Symptom", details="fiebre"),
            _make_event("s2", event_type="SYMPTOM", details="fiebre"),
        ]
        assert len(deduplicate_events(events)) == 1

    def test_empty_input(self):
        assert deduplicate_events([]) == []


# ---------------------------------------------------------------------------
# Tests: ids
# ---------------------------------------------------------------------------

class TestIdUniqueness:

    def test_colliding_ids_suffixed(self):
        events = [
            _make_event("x", event_type="diagnosis"),
            _make_event("x", event_type="medication"),
            _make_event("x", event_type="procedure"),
        ]
        result = deduplicate_events(events)
        assert [e.id for e in result] == ["x", "x-1", "x-2"]

    def test_symptom_collides_with_non_symptom(self):
        events = [
            _make_event("x", event_type="diagnosis"),
            _make_event("x", details="fiebre"),
        ]
        result = deduplicate_events(events)
        ids = [e.id for e in result]
        assert sorted(ids) == ["x", "x-1"]
        assert result[0].id == "x-1"  # symptom representative listed first

    def test_missing_id_uses_type_and_timestamp(self):
        events = [_make_event("", event_type="recording", timestamp="2024-06-03T10:00:00Z")]
        assert deduplicate_events(events)[0].id == "recording-2024-06-03T10:00:00Z"

    def test_suffix_never_reuses_taken_id(self):
        events = [
            _make_event("a-1", event_type="diagnosis"),
            _make_event("a", event_type="diagnosis"),
            _make_event("a", event_type="diagnosis"),
        ]
        ids = [e.id for e in deduplicate_events(events)]
        assert len(set(ids)) == 3

    def test_ids_unique_over_mixed_collection(self):
        events = [
            _make_event("e", details="fiebre"),
            _make_event("e", details="fiebre (39)"),
            _make_event("e", event_type="diagnosis"),
            _make_event("e", details="tos"),
            _make_event("", event_type="recording"),
            _make_event("", event_type="recording"),
        ]
        ids = [e.id for e in deduplicate_events(events)]
        assert len(ids) == len(set(ids))
        assert all(ids)


# ---------------------------------------------------------------------------
# Tests: purity
# ---------------------------------------------------------------------------

class TestPurity:

    def test_inputs_not_mutated(self):
        first = _make_event("s1", details="fiebre", confidence=0.3, metadata={"k": 1})
        second = _make_event("s2", details="fiebre", confidence=0.9)
        deduplicate_events([first, second])
        assert first.confidence == 0.3
        assert first.metadata == {"k": 1}
        assert second.metadata is None


class TestConsolidateRawEvents:

    def test_from_raw_dicts(self):
        context = FormattingContext(now=datetime(2024, 6, 10, tzinfo=timezone.utc))
        raw = [
            {"event_type": "symptom", "description": "Fiebre", "confidence": 0.6,
             "timestamp": "2024-06-03T10:00:00Z", "details": "fiebre (38.5°C)"},
            {"event_type": "symptom", "description": "Fiebre", "confidence": 0.8,
             "timestamp": "2024-06-03T11:00:00Z", "details": "fiebre (39°C)"},
        ]
        result = consolidate_raw_events(raw, context)
        assert len(result) == 1
        assert result[0].id == "event-0"
        assert result[0].confidence == 0.8
        assert result[0].occurrences == 2

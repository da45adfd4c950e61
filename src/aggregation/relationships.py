"""Symptom ↔ diagnosis relationship inference.

A diagnosis event may carry ``metadata["supporting_evidence"]``, a list of
free-text snippets.  A symptom is related to the diagnosis when the core
text of its ``details`` (everything before the first ``(``) literally
occurs, case-insensitively, inside one of those snippets.  Links are
always recorded on both sides.

The heuristic is plain substring containment and will miss paraphrases;
any change to it is an algorithm change, not a bug fix.

Public API
----------
- ``evidence_match_prefix(details)``        – Core symptom text used for matching.
- ``evidence_mentions_symptom(evidence, symptom)`` – Single match test.
- ``resolve_relationships(events)``         – Annotate events with links.
- ``find_event_relationships(events)``      – Same links keyed by event id.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, Optional

from ..events.schema import AnnotatedEvent

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------

def evidence_match_prefix(details: Optional[str]) -> Optional[str]:
    """Lower-cased text of *details* before the first ``(``, trimmed.

    Returns ``None`` when there is nothing to match against.
    """
    if not details:
        return None
    prefix = details.lower().split("(", 1)[0].strip()
    return prefix or None


def evidence_mentions_symptom(evidence: str, symptom: AnnotatedEvent) -> bool:
    prefix = evidence_match_prefix(symptom.details)
    if prefix is None:
        return False
    return prefix in evidence.lower()


def _supporting_evidence(diagnosis: AnnotatedEvent) -> list[str]:
    """Return the evidence strings of a diagnosis (empty if absent)."""
    if not diagnosis.metadata:
        return []
    evidence = diagnosis.metadata.get("supporting_evidence")
    if evidence is None:
        return []
    if not isinstance(evidence, (list, tuple)):
        logger.debug(
            "Ignoring non-list supporting_evidence on diagnosis %s", diagnosis.id
        )
        return []
    return [item for item in evidence if isinstance(item, str)]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def resolve_relationships(events: Iterable[AnnotatedEvent]) -> list[AnnotatedEvent]:
    """Link diagnoses to the symptoms their supporting evidence mentions.

    Returns copies of *events* (same order) with ``related_events``
    recomputed from scratch: a diagnosis lists every matched symptom, and
    every matched symptom lists each diagnosis that matched it.  Events
    without any relationship keep an empty list.  Only diagnosis ↔ symptom
    pairs are considered.

    Parameters
    ----------
    events : iterable of AnnotatedEvent
        Normalised (usually deduplicated) events.  Not modified.

    Returns
    -------
    list[AnnotatedEvent]
        The annotated copies.
    """
    linked = [replace(event, related_events=[]) for event in events]
    symptoms = [event for event in linked if event.is_symptom]

    link_count = 0
    for diagnosis in linked:
        if not diagnosis.is_diagnosis:
            continue
        evidence = _supporting_evidence(diagnosis)
        if not evidence:
            continue

        matched = [
            symptom for symptom in symptoms
            if any(evidence_mentions_symptom(text, symptom) for text in evidence)
        ]
        if not matched:
            continue

        diagnosis.related_events = list(matched)
        for symptom in matched:
            symptom.related_events.append(diagnosis)
        link_count += len(matched)

    if link_count:
        logger.debug("Resolved %d symptom-diagnosis links", link_count)
    return linked


def find_event_relationships(
    events: Iterable[AnnotatedEvent],
) -> dict[str, list[AnnotatedEvent]]:
    """Return ``event id → related events`` for every linked event."""
    return {
        event.id: event.related_events
        for event in resolve_relationships(events)
        if event.related_events
    }

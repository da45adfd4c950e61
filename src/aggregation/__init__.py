"""Consultation-level aggregation: symptom consolidation, relationships, date grouping.

Public API
----------
- :func:`deduplicate_events` — Merge repeated symptom mentions
- :func:`resolve_relationships` — Link diagnoses and the symptoms they cite
- :func:`group_by_local_date` — Events per local day, newest first
- :func:`group_sessions_by_date` — Session records per local day
- :func:`format_date_for_display` — Long Spanish date for a day key
- :class:`ClinicalTimeline` — End-to-end timeline for one consultation
"""

from .symptom_consolidation import deduplicate_events
from .relationships import resolve_relationships
from .date_grouping import format_date_for_display, group_by_local_date, group_sessions_by_date
from .timeline import ClinicalTimeline, build_clinical_timeline

__all__ = [
    "deduplicate_events",
    "resolve_relationships",
    "group_by_local_date",
    "group_sessions_by_date",
    "format_date_for_display",
    "ClinicalTimeline",
    "build_clinical_timeline",
]

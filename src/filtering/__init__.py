"""Filtering of annotated clinical events.

Public API
----------
- :func:`apply_filters` — Compound filter over an annotated event list
- :func:`event_counts` — Totals per event type and category
- :func:`count_active_filters` — Number of active constraints
"""

from .filter_engine import apply_filters, count_active_filters, event_counts

__all__ = [
    "apply_filters",
    "count_active_filters",
    "event_counts",
]

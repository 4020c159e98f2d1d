"""
Journal feature module.

- Entry: immutable daily-reflection record
- EntryStore: local JSON persistence with atomic writes, backup and restore
- export: JSON and CSV renderings
"""

from deepreview.features.journal.models import Entry, ReviewStatus, Weather
from deepreview.features.journal.store import (
    EntryStore,
    IntegrityReport,
    IntegrityStatus,
    StoreState,
)

__all__ = [
    "Entry",
    "ReviewStatus",
    "Weather",
    "EntryStore",
    "IntegrityReport",
    "IntegrityStatus",
    "StoreState",
]

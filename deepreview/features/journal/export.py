"""JSON and CSV renderings of journal entries."""

import csv
import io
import json
from datetime import datetime, timezone
from typing import Iterable, Optional

from deepreview.features.journal.models import Entry, REFLECTION_FIELDS

CSV_HEADER = (
    "Date",
    "Weather",
    "Mood Base",
    "Energy Source",
    "Time Observation",
    "Emotion Exploration",
    "Cognitive Breakthrough (Growth)",
    "Cognitive Breakthrough (Old Pattern)",
    "Tomorrow Plan (Avoid)",
    "Tomorrow Plan (Seed)",
    "Free Writing",
    "Daily Metaphor",
)


def _newest_first(entries: Iterable[Entry]) -> list[Entry]:
    return sorted(entries, key=lambda e: e.date, reverse=True)


def to_json(entries: Iterable[Entry]) -> str:
    """Pretty-printed JSON array with ISO 8601 dates."""
    records = [entry.to_record() for entry in entries]
    return json.dumps(records, indent=2, ensure_ascii=False)


def export_envelope(
    entries: Iterable[Entry],
    app_version: str,
    export_date: Optional[datetime] = None,
) -> str:
    """Full export document: metadata plus every entry."""
    records = [entry.to_record() for entry in entries]
    exported_at = export_date or datetime.now(timezone.utc)
    payload = {
        "exportDate": exported_at.isoformat(),
        "reviews": records,
        "totalCount": len(records),
        "appVersion": app_version,
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)


def to_csv(entries: Iterable[Entry]) -> str:
    """
    Twelve-column CSV, newest entry first.

    The header row is plain; every data value is double-quoted with embedded
    quotes doubled, so commas and newlines inside reflections survive.
    """
    buffer = io.StringIO()
    csv.writer(buffer, lineterminator="\n").writerow(CSV_HEADER)
    rows = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for entry in _newest_first(entries):
        rows.writerow([
            entry.date.isoformat(),
            entry.weather.description,
            entry.mood_base,
            *(getattr(entry, name) for name in REFLECTION_FIELDS),
        ])
    return buffer.getvalue()

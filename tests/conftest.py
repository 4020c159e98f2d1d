"""
Shared pytest fixtures.

Every store lives in its own tmp_path data directory and sees a frozen
"today" so streak and month statistics are deterministic.
"""
import json
import time
import uuid
from datetime import date, timedelta

import pytest

from deepreview.features.journal.models import Entry, Weather
from deepreview.features.journal.store import EntryStore

# A Wednesday, mid-month.
TODAY = date(2026, 3, 18)


def days_ago(n: int) -> date:
    return TODAY - timedelta(days=n)


def make_entry(day: date = TODAY, **fields) -> Entry:
    defaults = dict(
        date=day,
        user_name="Mira",
        weather=Weather.CLOUDY,
        mood_base="soft orange",
        energy_source="long talk with an old friend",
        time_observation="the afternoon vanished into email",
    )
    defaults.update(fields)
    return Entry(**defaults)


def write_records(path, records) -> None:
    path.write_text(json.dumps(records), encoding="utf-8")


def record(entry_id=None, day: date = TODAY, **fields) -> dict:
    """Raw on-disk record, for files the store did not write itself."""
    data = {
        "id": str(entry_id or uuid.uuid4()),
        "date": day.isoformat(),
        "userName": "Mira",
        "weather": "sunny",
        "moodBase": "",
        "energySource": "",
        "timeObservation": "",
        "emotionExploration": "",
        "cognitiveBreakthroughGood": "",
        "cognitiveBreakthroughBad": "",
        "tomorrowPlanAvoid": "",
        "tomorrowPlanSeed": "",
        "freeWriting": "",
        "dailyMetaphor": "",
        "createdAt": "2026-03-18T20:00:00+00:00",
        "updatedAt": "2026-03-18T20:00:00+00:00",
    }
    data.update(fields)
    return data


@pytest.fixture()
def data_dir(tmp_path):
    return tmp_path / "journal"


@pytest.fixture()
def store(data_dir):
    return EntryStore(data_dir=data_dir, today=lambda: TODAY)


@pytest.fixture()
def local_tz(monkeypatch):
    """Switch the process-local timezone, e.g. local_tz("CST-8") for UTC+8."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")

    def use(tz: str) -> None:
        monkeypatch.setenv("TZ", tz)
        time.tzset()

    yield use
    monkeypatch.undo()
    time.tzset()

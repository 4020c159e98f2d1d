"""
Journal entry models.

An Entry is one day's reflection: nine free-text reflection fields plus
weather, mood and an optional AI analysis attached after the fact. Entries
are immutable; changes produce new values via with_analysis/with_changes.

On disk the keys are camelCase (`userName`, `energySource`, ...) and dates
are ISO 8601 strings.
"""

import datetime as dt
import uuid
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class Weather(str, Enum):
    """Fixed set of weather choices on the form."""
    SUNNY = "sunny"
    CLOUDY = "cloudy"
    RAINY = "rainy"
    SNOWY = "snowy"
    WINDY = "windy"
    FOGGY = "foggy"

    @property
    def symbol(self) -> str:
        return _WEATHER_SYMBOLS[self]

    @property
    def description(self) -> str:
        return self.value.capitalize()


_WEATHER_SYMBOLS = {
    Weather.SUNNY: "☀️",
    Weather.CLOUDY: "☁️",
    Weather.RAINY: "🌧️",
    Weather.SNOWY: "❄️",
    Weather.WINDY: "💨",
    Weather.FOGGY: "🌫️",
}


class ReviewStatus(str, Enum):
    """Per-entry progress derived from completion_percentage."""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# Order matters: CSV columns and the analysis prompt follow it.
REFLECTION_FIELDS = (
    "energy_source",
    "time_observation",
    "emotion_exploration",
    "cognitive_breakthrough_good",
    "cognitive_breakthrough_bad",
    "tomorrow_plan_avoid",
    "tomorrow_plan_seed",
    "free_writing",
    "daily_metaphor",
)

# The longest free-text fields; keyword search covers these.
SEARCHABLE_FIELDS = (
    "energy_source",
    "time_observation",
    "emotion_exploration",
    "free_writing",
    "daily_metaphor",
)

# An entry counts toward the store's completion rate when these are filled.
COMPLETION_RATE_FIELDS = (
    "cognitive_breakthrough_good",
    "cognitive_breakthrough_bad",
    "free_writing",
)


def _is_filled(value: str) -> bool:
    return bool(value and value.strip())


class Entry(BaseModel):
    """One persisted daily-reflection record."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        use_enum_values=False,
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    date: dt.date = Field(default_factory=dt.date.today)
    user_name: str = ""

    weather: Weather = Weather.SUNNY
    mood_base: str = ""

    energy_source: str = ""
    time_observation: str = ""
    emotion_exploration: str = ""
    cognitive_breakthrough_good: str = ""
    cognitive_breakthrough_bad: str = ""
    tomorrow_plan_avoid: str = ""
    tomorrow_plan_seed: str = ""
    free_writing: str = ""
    daily_metaphor: str = ""

    created_at: dt.datetime = Field(default_factory=utcnow)
    updated_at: dt.datetime = Field(default_factory=utcnow)

    ai_analysis: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _default_updated_at(cls, data: Any) -> Any:
        """A freshly built entry has updated_at == created_at."""
        if not isinstance(data, dict):
            return data
        has_created = "created_at" in data or "createdAt" in data
        has_updated = "updated_at" in data or "updatedAt" in data
        if has_updated:
            return data
        data = dict(data)
        if has_created:
            data["updated_at"] = data.get("created_at", data.get("createdAt"))
        else:
            now = utcnow()
            data["created_at"] = now
            data["updated_at"] = now
        return data

    @field_validator("date", mode="before")
    @classmethod
    def _coerce_date(cls, value: Any) -> Any:
        # Older files stored a full UTC timestamp; the day is the local one.
        if isinstance(value, str) and "T" in value:
            value = dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
        if isinstance(value, dt.datetime):
            if value.tzinfo is not None:
                value = value.astimezone()
            return value.date()
        return value

    # ------------------------------------------------------------------
    # Derived fields
    # ------------------------------------------------------------------

    @property
    def reflections(self) -> dict[str, str]:
        return {name: getattr(self, name) for name in REFLECTION_FIELDS}

    @property
    def completion_percentage(self) -> float:
        """Fraction of the nine reflection fields that are non-blank."""
        filled = sum(1 for value in self.reflections.values() if _is_filled(value))
        return filled / len(REFLECTION_FIELDS)

    @property
    def status(self) -> ReviewStatus:
        percentage = self.completion_percentage
        if percentage == 0:
            return ReviewStatus.NOT_STARTED
        if percentage < 1.0:
            return ReviewStatus.IN_PROGRESS
        return ReviewStatus.COMPLETED

    @property
    def counts_as_complete(self) -> bool:
        """Completion-rate policy: growth, old-pattern and free writing all filled."""
        return all(_is_filled(getattr(self, name)) for name in COMPLETION_RATE_FIELDS)

    @property
    def has_analysis(self) -> bool:
        return self.ai_analysis is not None

    @property
    def formatted_date(self) -> str:
        d = self.date
        return f"{d:%A}, {d:%B} {d.day}, {d.year}"

    def is_today(self, today: Optional[dt.date] = None) -> bool:
        return self.date == (today or dt.date.today())

    def matches(self, keyword: str) -> bool:
        """Case-insensitive substring match over the searchable fields."""
        needle = keyword.casefold()
        return any(needle in getattr(self, name).casefold() for name in SEARCHABLE_FIELDS)

    # ------------------------------------------------------------------
    # Updates (new values, never in place)
    # ------------------------------------------------------------------

    def with_changes(self, **changes: Any) -> "Entry":
        """Return a validated copy with the given fields replaced."""
        if "id" in changes or "created_at" in changes:
            raise ValueError("id and created_at are fixed at creation")
        data = self.model_dump()
        data.update(changes)
        if "updated_at" not in changes:
            data["updated_at"] = utcnow()
        return Entry.model_validate(data)

    def with_analysis(self, text: str) -> "Entry":
        return self.with_changes(ai_analysis=text)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_record(self) -> dict[str, Any]:
        """JSON-ready dict using on-disk keys; aiAnalysis omitted when absent."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Entry":
        return cls.model_validate(record)

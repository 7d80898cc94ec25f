"""Workout, plan and reminder models.

Durations are seconds (floats, so wall-clock arithmetic stays exact).
Weekdays use the 1 = Sunday … 7 = Saturday numbering used by calendar
notification triggers; 0 means "not chosen yet".
"""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class IntervalKind(str, Enum):
    WARMUP = "warmup"
    HIGH_INTENSITY = "high_intensity"
    REST = "rest"


class Interval(BaseModel):
    """One timed segment of a workout."""

    model_config = ConfigDict(frozen=True)

    name: str
    duration: float = Field(ge=0, description="Duration in seconds")
    kind: IntervalKind


class IntervalPlan(BaseModel):
    """The full ordered sequence of intervals for one session."""

    model_config = ConfigDict(frozen=True)

    intervals: tuple[Interval, ...] = Field(min_length=1)

    def __len__(self) -> int:
        return len(self.intervals)

    def __getitem__(self, index: int) -> Interval:
        return self.intervals[index]

    @property
    def total_duration(self) -> float:
        return sum(interval.duration for interval in self.intervals)

    @property
    def high_intensity_count(self) -> int:
        return sum(1 for i in self.intervals if i.kind is IntervalKind.HIGH_INTENSITY)

    def round_number(self, index: int) -> int:
        """1-based round of the interval at ``index`` among intervals of its kind.

        "High Intensity (2/4)" and "Rest (2/4)" labels are built from this.
        Warmup is always round 1.
        """
        kind = self.intervals[index].kind
        return sum(1 for i in self.intervals[: index + 1] if i.kind is kind)


# ---------------------------------------------------------------------------
# Reminders and permissions
# ---------------------------------------------------------------------------


class ReminderMode(str, Enum):
    EVERY_X_DAYS = "every_x_days"
    WEEKLY_WEEKDAY = "weekly_weekday"

    @property
    def title(self) -> str:
        if self is ReminderMode.EVERY_X_DAYS:
            return "Every X Days"
        return "Weekly on a Day"


class ReminderConfig(BaseModel):
    """Reminder policy inputs. Out-of-range values are clamped, never rejected."""

    model_config = ConfigDict(frozen=True)

    mode: ReminderMode = ReminderMode.EVERY_X_DAYS
    every_x_days: int = 2
    weekday: int = Field(default=0, description="1 = Sunday … 7 = Saturday, 0 = unset")
    enabled: bool = False

    @field_validator("every_x_days", mode="before")
    @classmethod
    def _clamp_days(cls, value: int) -> int:
        return min(max(int(value), 1), 30)

    @field_validator("weekday", mode="before")
    @classmethod
    def _clamp_weekday(cls, value: int) -> int:
        value = int(value)
        return value if 1 <= value <= 7 else 0


class PermissionState(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    UNKNOWN = "unknown"
    UNAVAILABLE = "unavailable"


# ---------------------------------------------------------------------------
# Workout log
# ---------------------------------------------------------------------------


class WorkoutType(str, Enum):
    NORWEGIAN_4X4 = "Norwegian 4x4"
    RUN = "Run"
    CYCLE = "Cycle"
    ROW = "Row"
    SWIM = "Swim"
    ELLIPTICAL = "Elliptical"
    STAIR_CLIMBER = "Stair Climber"
    HIIT = "HIIT"
    HIKE = "Hike"
    STRENGTH = "Strength"
    OTHER = "Other"

    @classmethod
    def from_legacy(cls, name: str | None) -> "WorkoutType":
        """Map a stored type string to a type; anything unrecognised is Norwegian 4x4."""
        if not name:
            return cls.NORWEGIAN_4X4
        wanted = name.strip().casefold()
        for member in cls:
            if wanted in (member.value.casefold(), member.name.casefold()):
                return member
        return cls.NORWEGIAN_4X4


class WorkoutLogEntry(BaseModel):
    """A completed workout. Serialised with camelCase keys."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    id: UUID
    completed_at: datetime
    workout_type: WorkoutType
    notes: str

    @field_validator("notes")
    @classmethod
    def _trim_notes(cls, value: str) -> str:
        return value.strip()

    @classmethod
    def create(
        cls,
        completed_at: datetime,
        workout_type: WorkoutType = WorkoutType.NORWEGIAN_4X4,
        notes: str = "",
    ) -> "WorkoutLogEntry":
        return cls(
            id=uuid4(),
            completed_at=completed_at,
            workout_type=workout_type,
            notes=notes,
        )

"""Configuration management for n4x4.

Two layers:

* ``AppSettings`` — process configuration loaded from ``.env`` in the current
  directory, with environment variables taking highest priority.
* ``WorkoutSettings`` — the user's workout and reminder preferences, persisted
  as scalar keys in the key-value store and loaded/saved explicitly.

Run `n4x4 settings` to view or change the workout settings.
"""

import json
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import (
    BaseModel,
    ConfigDict,
    SecretStr,
    ValidationError,
    ValidationInfo,
    field_validator,
)
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

from n4x4.models.workout import ReminderConfig, ReminderMode
from n4x4.services import KeyValueStore

_LOCAL_ENV = Path(".env")


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_LOCAL_ENV),
        env_file_encoding="utf-8",
        env_prefix="N4X4_",
        extra="ignore",
    )

    # JSON file backing the key-value store (settings + workout log blob).
    data_file: Path = Path.home() / ".n4x4.json"
    log_level: str = "WARNING"

    # Optional Intervals.icu account used as the health data service.
    intervals_api_key: SecretStr | None = None
    intervals_athlete_id: str = "i0"
    intervals_base_url: str = "https://intervals.icu"


def get_settings() -> AppSettings:
    return AppSettings()


# ---------------------------------------------------------------------------
# Persisted workout settings
# ---------------------------------------------------------------------------

# Field name → (minimum, maximum). Every write is clamped into range.
_INT_RANGES: dict[str, tuple[int, int]] = {
    "number_of_intervals": (1, 10),
    "workout_reminder_days": (1, 30),
    "user_age": (13, 100),
}
_DURATION_RANGES: dict[str, tuple[float, float]] = {
    "warmup_duration": (0, 600),
    "high_intensity_duration": (60, 600),
    "rest_duration": (60, 600),
}

PLAN_FIELDS = frozenset(
    {"number_of_intervals", "warmup_duration", "high_intensity_duration", "rest_duration"}
)
REMINDER_FIELDS = frozenset(
    {
        "workout_reminders_enabled",
        "workout_reminder_mode",
        "workout_reminder_days",
        "workout_reminder_weekday",
    }
)


class WorkoutSettings(BaseModel):
    """User preferences. Keys in the store are the camelCase field aliases."""

    model_config = ConfigDict(
        validate_assignment=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    number_of_intervals: int = 4
    warmup_duration: float = 5 * 60
    high_intensity_duration: float = 4 * 60
    rest_duration: float = 3 * 60
    alarm_enabled: bool = True
    user_age: int = 35

    notifications_enabled: bool = False
    notification_permission_requested: bool = False

    workout_reminders_enabled: bool = False
    workout_reminder_mode: ReminderMode = ReminderMode.EVERY_X_DAYS
    workout_reminder_days: int = 2
    workout_reminder_weekday: int = 0

    health_enabled: bool = False
    health_permission_requested: bool = False

    @field_validator(*_INT_RANGES, mode="before")
    @classmethod
    def _clamp_int(cls, value: Any, info: ValidationInfo) -> int:
        low, high = _INT_RANGES[info.field_name]
        return min(max(int(value), low), high)

    @field_validator(*_DURATION_RANGES, mode="before")
    @classmethod
    def _clamp_duration(cls, value: Any, info: ValidationInfo) -> float:
        low, high = _DURATION_RANGES[info.field_name]
        return min(max(float(value), low), high)

    @field_validator("workout_reminder_weekday", mode="before")
    @classmethod
    def _clamp_weekday(cls, value: Any) -> int:
        value = int(value)
        return value if 1 <= value <= 7 else 0

    @property
    def reminder_config(self) -> ReminderConfig:
        return ReminderConfig(
            mode=self.workout_reminder_mode,
            every_x_days=self.workout_reminder_days,
            weekday=self.workout_reminder_weekday,
            enabled=self.workout_reminders_enabled,
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, store: KeyValueStore) -> "WorkoutSettings":
        """Read every stored field; missing or unreadable keys keep their default."""
        settings = cls()
        for name, field in cls.model_fields.items():
            key = field.alias or name
            raw = store.get(key)
            if raw is None:
                continue
            try:
                value = json.loads(raw)
            except json.JSONDecodeError:
                value = raw
            try:
                setattr(settings, name, value)
            except (ValidationError, TypeError, ValueError):
                logger.warning(f"Ignoring unreadable setting {key}={raw!r}")
        return settings

    def save(self, store: KeyValueStore) -> None:
        for key, value in self.model_dump(mode="json", by_alias=True).items():
            store.set(key, json.dumps(value))

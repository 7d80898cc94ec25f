"""Notification intents exchanged with the notification service.

Every notification the engine can ask for has a fixed identifier, so
scheduling the same identifier twice replaces the earlier request and
cancelling an absent identifier is harmless.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class NotificationId(str, Enum):
    NEXT_INTERVAL = "n4x4.next-interval"
    EVERY_X_DAYS_REMINDER = "n4x4.reminder.every-x-days"
    WEEKLY_REMINDER = "n4x4.reminder.weekly"
    MISSED_WORKOUT_FOLLOW_UP = "n4x4.reminder.missed-workout"


# Identifiers owned by the reminder policy (everything except the timer's own).
REMINDER_IDS: tuple[NotificationId, ...] = (
    NotificationId.EVERY_X_DAYS_REMINDER,
    NotificationId.WEEKLY_REMINDER,
    NotificationId.MISSED_WORKOUT_FOLLOW_UP,
)


class CalendarMatch(BaseModel):
    """Calendar trigger; unset fields match any value (as in a cron field)."""

    model_config = ConfigDict(frozen=True)

    weekday: int | None = Field(default=None, description="1 = Sunday … 7 = Saturday")
    year: int | None = None
    month: int | None = None
    day: int | None = None
    hour: int = 0
    minute: int = 0


class ScheduleIntent(BaseModel):
    """Ask the notification service to deliver a notification later."""

    model_config = ConfigDict(frozen=True)

    id: NotificationId
    title: str
    body: str
    fire_after_seconds: float | None = None
    calendar_match: CalendarMatch | None = None
    repeats: bool = False

    @model_validator(mode="after")
    def _one_trigger(self) -> "ScheduleIntent":
        if (self.fire_after_seconds is None) == (self.calendar_match is None):
            raise ValueError("exactly one of fire_after_seconds or calendar_match is required")
        return self


class CancelIntent(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: NotificationId

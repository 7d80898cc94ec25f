"""Workout reminder policy.

Two mutually exclusive recurring reminders:

* every X days — a repeating interval trigger of ``X * 86400`` seconds;
* weekly on a weekday — a repeating calendar trigger at ``REMINDER_HOUR``,
  plus a one-shot "missed workout" follow-up the next morning when nothing
  was logged on the scheduled day.

``decide`` is pure: it returns the intents to apply and never touches the
notification service. Every decision cancels all reminder identifiers before
scheduling, so applying the same decision twice is harmless and switching
mode can never leave the other mode's reminder behind.
"""

from collections.abc import Iterable
from datetime import date, datetime, time, timedelta

from loguru import logger
from pydantic import BaseModel, Field

from n4x4.models.intents import (
    REMINDER_IDS,
    CalendarMatch,
    CancelIntent,
    NotificationId,
    ScheduleIntent,
)
from n4x4.models.workout import (
    PermissionState,
    ReminderConfig,
    ReminderMode,
    WorkoutLogEntry,
)

SECONDS_PER_DAY = 86400
REMINDER_HOUR = 18
FOLLOW_UP_HOUR = 9

# Index 0 is the "not set" placeholder; 1 = Sunday.
WEEKDAY_TITLES = (
    "Not set",
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)

REMINDER_TITLE = "Time for your N4x4 workout"
FOLLOW_UP_TITLE = "Missed your N4x4 workout?"


class ReminderDecision(BaseModel):
    """What the notification service should do, and the config it implies."""

    schedule: list[ScheduleIntent] = Field(default_factory=list)
    cancel: list[CancelIntent] = Field(default_factory=list)
    config: ReminderConfig
    force_disabled: bool = Field(
        default=False,
        description="Permission is denied or unavailable; the reminder toggle must go off.",
    )
    needs_permission: bool = Field(
        default=False,
        description="Reminders are on but permission was never asked for.",
    )
    scheduled_date: date | None = Field(
        default=None, description="Weekly mode: the workout day the follow-up watches."
    )


# ---------------------------------------------------------------------------
# Weekday helpers
# ---------------------------------------------------------------------------


def weekday_of(day: date) -> int:
    """1 = Sunday … 7 = Saturday."""
    return day.isoweekday() % 7 + 1


def weekday_title(weekday: int) -> str:
    if 1 <= weekday <= 7:
        return WEEKDAY_TITLES[weekday]
    return WEEKDAY_TITLES[0]


def resolve_weekday(weekday: int, now: datetime) -> int:
    """An unset (or out-of-range) weekday becomes today's weekday."""
    if 1 <= weekday <= 7:
        return weekday
    return weekday_of(now.date())


def scheduled_workout_date(weekday: int, now: datetime) -> date:
    """The workout day whose follow-up is still ahead of ``now``.

    That is the most recent occurrence of ``weekday`` (today included) while
    its follow-up morning has not passed, otherwise next week's occurrence.
    """
    today = now.date()
    candidate = today - timedelta(days=(weekday_of(today) - weekday) % 7)
    follow_up_at = datetime.combine(
        candidate + timedelta(days=1), time(FOLLOW_UP_HOUR), tzinfo=now.tzinfo
    )
    if now < follow_up_at:
        return candidate
    return candidate + timedelta(days=7)


def next_weekly_fire(weekday: int, now: datetime) -> datetime:
    """Next moment the weekly calendar trigger will match."""
    today = now.date()
    days_ahead = (weekday - weekday_of(today)) % 7
    fire = datetime.combine(
        today + timedelta(days=days_ahead), time(REMINDER_HOUR), tzinfo=now.tzinfo
    )
    if fire <= now:
        fire += timedelta(days=7)
    return fire


def _local_date(ts: datetime, now: datetime) -> date:
    if ts.tzinfo is None:
        return ts.date()
    if now.tzinfo is None:
        return ts.astimezone().date()
    return ts.astimezone(now.tzinfo).date()


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------


def decide(
    config: ReminderConfig,
    permission: PermissionState,
    now: datetime,
    log_entries: Iterable[WorkoutLogEntry] = (),
) -> ReminderDecision:
    """Compute the reminder intents for ``config``.

    Args:
        config: Current reminder settings. Only the active mode's parameters
            are used; the other mode's values are carried along untouched.
        permission: Notification permission as last reported by the service.
        now: Decision time (local wall clock, naive or aware).
        log_entries: Completed workouts, consulted for the weekly follow-up.
    """
    cancel = [CancelIntent(id=notification_id) for notification_id in REMINDER_IDS]

    if not config.enabled:
        return ReminderDecision(cancel=cancel, config=config)

    if permission is not PermissionState.GRANTED:
        if permission in (PermissionState.DENIED, PermissionState.UNAVAILABLE):
            logger.info(f"Notification permission {permission.value}; disabling reminders")
            return ReminderDecision(
                cancel=cancel,
                config=config.model_copy(update={"enabled": False}),
                force_disabled=True,
            )
        return ReminderDecision(cancel=cancel, config=config, needs_permission=True)

    if config.mode is ReminderMode.EVERY_X_DAYS:
        days = config.every_x_days
        reminder = ScheduleIntent(
            id=NotificationId.EVERY_X_DAYS_REMINDER,
            title=REMINDER_TITLE,
            body=f"It's been {days} day{'s' if days != 1 else ''}. "
            "Keep the momentum going with a 4x4 session.",
            fire_after_seconds=days * SECONDS_PER_DAY,
            repeats=True,
        )
        return ReminderDecision(schedule=[reminder], cancel=cancel, config=config)

    weekday = resolve_weekday(config.weekday, now)
    resolved = config.model_copy(update={"weekday": weekday})
    schedule = [
        ScheduleIntent(
            id=NotificationId.WEEKLY_REMINDER,
            title=REMINDER_TITLE,
            body=f"It's {weekday_title(weekday)}, your 4x4 day. Let's go!",
            calendar_match=CalendarMatch(weekday=weekday, hour=REMINDER_HOUR),
            repeats=True,
        )
    ]

    scheduled = scheduled_workout_date(weekday, now)
    done = any(_local_date(entry.completed_at, now) == scheduled for entry in log_entries)
    if done:
        logger.debug(f"Workout logged on {scheduled}; no follow-up needed")
    else:
        follow_up_day = scheduled + timedelta(days=1)
        schedule.append(
            ScheduleIntent(
                id=NotificationId.MISSED_WORKOUT_FOLLOW_UP,
                title=FOLLOW_UP_TITLE,
                body="No workout logged yesterday. A quick session today keeps the streak alive.",
                calendar_match=CalendarMatch(
                    year=follow_up_day.year,
                    month=follow_up_day.month,
                    day=follow_up_day.day,
                    hour=FOLLOW_UP_HOUR,
                ),
                repeats=False,
            )
        )

    return ReminderDecision(
        schedule=schedule,
        cancel=cancel,
        config=resolved,
        scheduled_date=scheduled,
    )

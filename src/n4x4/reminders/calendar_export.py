"""Render a reminder decision as an iCalendar feed.

For machines without a notification daemon: import the .ics file into any
calendar app and it will raise the same reminders. Recurring intents become
RRULE events; the missed-workout follow-up becomes a single event.
"""

from datetime import datetime, timedelta

from icalendar import Calendar, Event

from n4x4.models.intents import ScheduleIntent
from n4x4.reminders.scheduler import SECONDS_PER_DAY, ReminderDecision, next_weekly_fire

_PRODID = "-//n4x4//Workout Reminders//EN"
_EVENT_LENGTH = timedelta(minutes=30)

# RFC 5545 BYDAY codes indexed by 1 = Sunday … 7 = Saturday.
_BYDAY = ("", "SU", "MO", "TU", "WE", "TH", "FR", "SA")


def _event_for(intent: ScheduleIntent, now: datetime) -> Event:
    event = Event()
    event.add("uid", f"{intent.id.value}@n4x4")
    event.add("dtstamp", now)
    event.add("summary", intent.title)
    event.add("description", intent.body)

    match = intent.calendar_match
    seconds = intent.fire_after_seconds or 0.0
    if match is not None and match.weekday is not None:
        start = next_weekly_fire(match.weekday, now)
        event.add("rrule", {"freq": "WEEKLY", "byday": _BYDAY[match.weekday]})
    elif match is not None and match.year and match.month and match.day:
        start = datetime(
            match.year, match.month, match.day, match.hour, match.minute, tzinfo=now.tzinfo
        )
    elif intent.repeats and seconds >= SECONDS_PER_DAY:
        days = int(seconds // SECONDS_PER_DAY)
        start = now + timedelta(days=days)
        event.add("rrule", {"freq": "DAILY", "interval": days})
    else:
        start = now + timedelta(seconds=seconds)

    event.add("dtstart", start)
    event.add("dtend", start + _EVENT_LENGTH)
    return event


def reminders_to_ics(decision: ReminderDecision, now: datetime) -> bytes:
    """Return the decision's scheduled reminders as an .ics document."""
    cal = Calendar()
    cal.add("prodid", _PRODID)
    cal.add("version", "2.0")
    for intent in decision.schedule:
        cal.add_component(_event_for(intent, now))
    return cal.to_ical()

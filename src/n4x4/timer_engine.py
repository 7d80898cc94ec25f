"""Interval timer that reconciles against wall-clock time.

The engine never counts down by decrementing per tick. It stores the moment
the current interval ends and recomputes its position from ``now`` whenever
it is called. A host that was suspended for an arbitrary time (phone asleep,
process frozen) therefore recovers the exact position with one ``reconcile``
call, crossing as many interval boundaries as elapsed.

All operations take ``now`` explicitly; the engine has no clock and does no
locking. Callers must serialise access to a single engine.

Side effects (alarm, notifications, health sync) are not performed here.
They are emitted as ``TimerEvent`` objects to subscribed listeners.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from loguru import logger

from n4x4.models.intents import CancelIntent, NotificationId, ScheduleIntent
from n4x4.models.workout import Interval, IntervalPlan

ALARM_SOUND_ID = "alarm"
NEXT_INTERVAL_TITLE = "N4x4 Interval"


class TimerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    FINISHED = "finished"


class TimerEventKind(str, Enum):
    INTERVAL_CHANGED = "interval_changed"
    WORKOUT_FINISHED = "workout_finished"
    ALARM = "alarm"
    SCHEDULE_NOTIFICATION = "schedule_notification"
    CANCEL_NOTIFICATION = "cancel_notification"


@dataclass(frozen=True)
class TimerEvent:
    kind: TimerEventKind
    index: int
    intent: ScheduleIntent | CancelIntent | None = None
    # Set on workout_finished: when the last interval actually ended, and the
    # time of the call that noticed it (later than `at` after a suspension).
    at: datetime | None = None
    now: datetime | None = None


TimerListener = Callable[[TimerEvent], None]


@dataclass
class TimerSession:
    """Mutable position within a plan.

    ``running`` implies ``interval_end_at`` is set. While paused the end time
    is cleared and ``time_remaining`` holds the frozen countdown.
    """

    plan: IntervalPlan
    current_index: int = 0
    running: bool = False
    interval_end_at: datetime | None = None
    session_started_at: datetime | None = None
    time_remaining: float = 0.0
    finished: bool = False

    @classmethod
    def fresh(cls, plan: IntervalPlan) -> "TimerSession":
        return cls(plan=plan, time_remaining=plan[0].duration)


class TimerEngine:
    def __init__(self, plan: IntervalPlan) -> None:
        self._session = TimerSession.fresh(plan)
        self._listeners: list[TimerListener] = []

    # ------------------------------------------------------------------
    # Read-only view
    # ------------------------------------------------------------------

    @property
    def session(self) -> TimerSession:
        return self._session

    @property
    def plan(self) -> IntervalPlan:
        return self._session.plan

    @property
    def current_index(self) -> int:
        return self._session.current_index

    @property
    def running(self) -> bool:
        return self._session.running

    @property
    def time_remaining(self) -> float:
        return self._session.time_remaining

    @property
    def interval_end_at(self) -> datetime | None:
        return self._session.interval_end_at

    @property
    def session_started_at(self) -> datetime | None:
        return self._session.session_started_at

    @property
    def state(self) -> TimerState:
        s = self._session
        if s.finished:
            return TimerState.FINISHED
        if s.running:
            return TimerState.RUNNING
        if s.session_started_at is None and s.current_index == 0:
            return TimerState.IDLE
        return TimerState.PAUSED

    @property
    def current_interval(self) -> Interval | None:
        index = self._session.current_index
        if 0 <= index < len(self.plan):
            return self.plan[index]
        return None

    @property
    def next_interval(self) -> Interval | None:
        index = self._session.current_index + 1
        if 0 < index < len(self.plan):
            return self.plan[index]
        return None

    @property
    def round_number(self) -> int:
        return self.plan.round_number(self._session.current_index)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def subscribe(self, listener: TimerListener) -> None:
        self._listeners.append(listener)

    def _emit(
        self,
        kind: TimerEventKind,
        intent: ScheduleIntent | CancelIntent | None = None,
        at: datetime | None = None,
        now: datetime | None = None,
    ) -> None:
        event = TimerEvent(
            kind=kind, index=self._session.current_index, intent=intent, at=at, now=now
        )
        for listener in self._listeners:
            listener(event)

    def _cancel_next_interval_notification(self) -> None:
        self._emit(
            TimerEventKind.CANCEL_NOTIFICATION,
            CancelIntent(id=NotificationId.NEXT_INTERVAL),
        )

    def _reschedule_next_interval_notification(self) -> None:
        self._cancel_next_interval_notification()
        upcoming = self.next_interval
        if not self._session.running or upcoming is None:
            return
        self._emit(
            TimerEventKind.SCHEDULE_NOTIFICATION,
            ScheduleIntent(
                id=NotificationId.NEXT_INTERVAL,
                title=NEXT_INTERVAL_TITLE,
                body=f"Next interval: {upcoming.name} is starting.",
                fire_after_seconds=max(self._session.time_remaining, 0.0),
            ),
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def start(self, now: datetime) -> None:
        """Start or resume the countdown. No-op when running or finished."""
        s = self._session
        if s.finished:
            logger.debug("Ignoring start: workout already finished")
            return
        if s.running:
            return

        s.running = True
        if s.session_started_at is None:
            s.session_started_at = now
        if s.interval_end_at is None:
            s.interval_end_at = now + timedelta(seconds=s.time_remaining)

        # A transition reschedules on its own
        if not self.reconcile(now) and s.running:
            self._reschedule_next_interval_notification()

    def pause(self, now: datetime) -> None:
        """Toggle: freeze a running countdown, or resume a stopped one."""
        s = self._session
        if not s.running:
            self.start(now)
            return

        # Absorb boundaries crossed since the last tick before freezing
        self.reconcile(now)
        end = s.interval_end_at
        if not s.running or end is None:
            return

        s.time_remaining = max(0.0, (end - now).total_seconds())
        s.running = False
        s.interval_end_at = None
        self._cancel_next_interval_notification()

    def skip(self, now: datetime) -> None:
        """Advance one interval immediately, exactly as a natural boundary would.

        A running skip first catches up to `now`, so it advances from the
        wall-clock position. A skip while stopped moves the position without
        starting a countdown. Skipping the last interval finishes the workout.
        """
        s = self._session
        if s.finished:
            return

        self._emit(TimerEventKind.ALARM)
        if s.running:
            self.reconcile(now, play_alarm=False)
            if s.finished:
                return
        if s.current_index + 1 >= len(s.plan):
            self._finish(now, now)
            return

        s.current_index += 1
        s.time_remaining = s.plan[s.current_index].duration
        s.interval_end_at = now + timedelta(seconds=s.time_remaining) if s.running else None
        self._emit(TimerEventKind.INTERVAL_CHANGED)
        self._reschedule_next_interval_notification()

    def tick(self, now: datetime) -> bool:
        return self.reconcile(now)

    def resume_from_background(self, now: datetime) -> bool:
        """Catch up after the host was suspended, without replaying stale alarms."""
        return self.reconcile(now, play_alarm=False)

    def reconcile(self, now: datetime, play_alarm: bool = True) -> bool:
        """Bring the session position in line with ``now``.

        Walks forward from the current interval's end, adding each following
        interval's duration, for as long as ``now`` is at or past the cursor.
        Any number of boundaries may be crossed in one call; running off the
        end of the plan finishes the workout. Calling again with the same
        ``now`` changes nothing.

        Returns:
            True when at least one interval boundary was crossed.
        """
        s = self._session
        if not s.running:
            return False

        if not 0 <= s.current_index < len(s.plan) or s.interval_end_at is None:
            logger.warning(
                f"Stopping timer: no valid interval at index {s.current_index} "
                f"(plan has {len(s.plan)}, end={s.interval_end_at})"
            )
            s.running = False
            s.interval_end_at = None
            self._cancel_next_interval_notification()
            return False

        if now < s.interval_end_at:
            s.time_remaining = (s.interval_end_at - now).total_seconds()
            return False

        cursor = s.current_index
        cursor_end = s.interval_end_at
        while now >= cursor_end:
            if cursor + 1 >= len(s.plan):
                if play_alarm:
                    self._emit(TimerEventKind.ALARM)
                self._finish(cursor_end, now)
                return True
            cursor += 1
            cursor_end += timedelta(seconds=s.plan[cursor].duration)

        s.current_index = cursor
        s.interval_end_at = cursor_end
        s.time_remaining = (cursor_end - now).total_seconds()
        if play_alarm:
            self._emit(TimerEventKind.ALARM)
        self._emit(TimerEventKind.INTERVAL_CHANGED)
        self._reschedule_next_interval_notification()
        return True

    def reset(self) -> None:
        """Back to index 0 of the current plan, stopped, nothing pending."""
        self._session = TimerSession.fresh(self._session.plan)
        self._cancel_next_interval_notification()

    def load_plan(self, plan: IntervalPlan) -> None:
        """Swap in a rebuilt plan. Position is meaningless across plans, so reset."""
        self._session = TimerSession.fresh(plan)
        self._cancel_next_interval_notification()

    def _finish(self, ended_at: datetime, now: datetime) -> None:
        s = self._session
        s.running = False
        s.interval_end_at = None
        s.time_remaining = 0.0
        s.finished = True
        logger.info("Workout finished")
        self._cancel_next_interval_notification()
        self._emit(TimerEventKind.WORKOUT_FINISHED, at=ended_at, now=now)

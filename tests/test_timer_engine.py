"""Tests for the wall-clock interval timer."""

from datetime import datetime, timedelta

import pytest

from n4x4.models.intents import NotificationId
from n4x4.plan_builder import build_plan
from n4x4.timer_engine import TimerEngine, TimerEvent, TimerEventKind, TimerState

T0 = datetime(2026, 2, 18, 10, 0, 0)


def at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


@pytest.fixture()
def events() -> list[TimerEvent]:
    return []


@pytest.fixture()
def engine(events: list[TimerEvent]) -> TimerEngine:
    # High Intensity 10s, Rest 10s, High Intensity 10s
    timer = TimerEngine(build_plan(warmup=0, high_intensity=10, rest=10, repeat_count=2))
    timer.subscribe(events.append)
    return timer


def kinds(events: list[TimerEvent]) -> list[TimerEventKind]:
    return [e.kind for e in events]


# ---------------------------------------------------------------------------
# start / initial state
# ---------------------------------------------------------------------------


class TestStart:
    def test_initial_state_is_idle(self, engine: TimerEngine) -> None:
        assert engine.state is TimerState.IDLE
        assert engine.current_index == 0
        assert engine.time_remaining == 10
        assert engine.interval_end_at is None

    def test_start_sets_end_time(self, engine: TimerEngine) -> None:
        engine.start(T0)
        assert engine.state is TimerState.RUNNING
        assert engine.interval_end_at == at(10)
        assert engine.session_started_at == T0

    def test_start_schedules_next_interval_notification(
        self, engine: TimerEngine, events: list[TimerEvent]
    ) -> None:
        engine.start(T0)
        scheduled = [e for e in events if e.kind is TimerEventKind.SCHEDULE_NOTIFICATION]
        assert len(scheduled) == 1
        intent = scheduled[0].intent
        assert intent is not None
        assert intent.id is NotificationId.NEXT_INTERVAL
        assert intent.fire_after_seconds == 10  # type: ignore[union-attr]
        assert "Rest" in intent.body  # type: ignore[union-attr]

    def test_start_twice_is_noop(self, engine: TimerEngine, events: list[TimerEvent]) -> None:
        engine.start(T0)
        events.clear()
        engine.start(at(3))
        assert events == []
        assert engine.interval_end_at == at(10)

    def test_session_start_kept_across_resume(self, engine: TimerEngine) -> None:
        engine.start(T0)
        engine.pause(at(2))
        engine.start(at(60))
        assert engine.session_started_at == T0


# ---------------------------------------------------------------------------
# reconcile
# ---------------------------------------------------------------------------


class TestReconcile:
    def test_before_boundary_only_updates_remaining(
        self, engine: TimerEngine, events: list[TimerEvent]
    ) -> None:
        engine.start(T0)
        events.clear()
        assert engine.reconcile(at(4)) is False
        assert engine.current_index == 0
        assert engine.time_remaining == 6
        assert events == []

    def test_exactly_at_boundary_advances(self, engine: TimerEngine) -> None:
        engine.start(T0)
        assert engine.reconcile(at(10)) is True
        assert engine.current_index == 1
        assert engine.time_remaining == 10
        assert engine.interval_end_at == at(20)

    def test_catch_up_across_several_intervals(self, engine: TimerEngine) -> None:
        engine.start(T0)
        assert engine.reconcile(at(25)) is True
        assert engine.current_index == 2
        assert engine.time_remaining == 5
        assert engine.interval_end_at == at(30)
        assert engine.state is TimerState.RUNNING

    def test_alarm_fires_once_per_call(
        self, engine: TimerEngine, events: list[TimerEvent]
    ) -> None:
        engine.start(T0)
        events.clear()
        engine.reconcile(at(25))
        assert kinds(events).count(TimerEventKind.ALARM) == 1
        assert kinds(events).count(TimerEventKind.INTERVAL_CHANGED) == 1

    def test_idempotent(self, engine: TimerEngine, events: list[TimerEvent]) -> None:
        engine.start(T0)
        engine.reconcile(at(25))
        snapshot = (engine.current_index, engine.interval_end_at, engine.time_remaining)
        events.clear()
        assert engine.reconcile(at(25)) is False
        assert (engine.current_index, engine.interval_end_at, engine.time_remaining) == snapshot
        assert events == []

    def test_finishes_far_past_end(self, engine: TimerEngine, events: list[TimerEvent]) -> None:
        engine.start(T0)
        events.clear()
        assert engine.reconcile(at(10_000)) is True
        assert engine.state is TimerState.FINISHED
        assert engine.running is False
        assert engine.time_remaining == 0
        assert engine.interval_end_at is None
        finished = [e for e in events if e.kind is TimerEventKind.WORKOUT_FINISHED]
        assert len(finished) == 1
        assert finished[0].at == at(30)
        assert finished[0].now == at(10_000)
        assert kinds(events).count(TimerEventKind.ALARM) == 1

    def test_finishes_exactly_at_total_duration(self, engine: TimerEngine) -> None:
        engine.start(T0)
        engine.reconcile(at(30))
        assert engine.state is TimerState.FINISHED
        assert engine.time_remaining == 0

    def test_remaining_stays_within_interval(self, engine: TimerEngine) -> None:
        engine.start(T0)
        for seconds in (1, 9.5, 10, 14, 19.999, 21, 29):
            engine.tick(at(seconds))
            assert 0 <= engine.time_remaining <= engine.plan[engine.current_index].duration

    def test_not_running_is_noop(self, engine: TimerEngine) -> None:
        assert engine.reconcile(at(100)) is False
        assert engine.state is TimerState.IDLE

    def test_silent_resume_from_background(
        self, engine: TimerEngine, events: list[TimerEvent]
    ) -> None:
        engine.start(T0)
        events.clear()
        assert engine.resume_from_background(at(25)) is True
        assert engine.current_index == 2
        assert TimerEventKind.ALARM not in kinds(events)

    def test_silent_resume_past_end_still_finishes(
        self, engine: TimerEngine, events: list[TimerEvent]
    ) -> None:
        engine.start(T0)
        events.clear()
        engine.resume_from_background(at(500))
        assert engine.state is TimerState.FINISHED
        assert TimerEventKind.ALARM not in kinds(events)
        assert TimerEventKind.WORKOUT_FINISHED in kinds(events)

    def test_last_interval_schedules_nothing(
        self, engine: TimerEngine, events: list[TimerEvent]
    ) -> None:
        engine.start(T0)
        events.clear()
        engine.reconcile(at(25))
        assert TimerEventKind.SCHEDULE_NOTIFICATION not in kinds(events)
        assert TimerEventKind.CANCEL_NOTIFICATION in kinds(events)

    def test_catch_up_with_warmup(self) -> None:
        timer = TimerEngine(build_plan(warmup=10, high_intensity=10, rest=10, repeat_count=2))
        timer.start(T0)
        timer.reconcile(at(25))
        assert timer.current_index == 2
        assert timer.current_interval is not None
        assert timer.current_interval.name == "Rest"
        assert timer.time_remaining == 5

    def test_zero_length_rest_is_crossed(self) -> None:
        timer = TimerEngine(build_plan(warmup=0, high_intensity=10, rest=0, repeat_count=2))
        timer.start(T0)
        timer.reconcile(at(10))
        assert timer.current_index == 2
        assert timer.time_remaining == 10


class TestInvalidState:
    def test_index_out_of_range_stops(self, engine: TimerEngine) -> None:
        engine.start(T0)
        engine.session.current_index = 99
        assert engine.reconcile(at(1)) is False
        assert engine.running is False
        assert engine.interval_end_at is None

    def test_missing_end_time_stops(self, engine: TimerEngine) -> None:
        engine.start(T0)
        engine.session.interval_end_at = None
        assert engine.tick(at(1)) is False
        assert engine.running is False


# ---------------------------------------------------------------------------
# pause
# ---------------------------------------------------------------------------


class TestPause:
    def test_pause_freezes_remaining(self, engine: TimerEngine) -> None:
        engine.start(T0)
        engine.pause(at(3))
        assert engine.state is TimerState.PAUSED
        assert engine.time_remaining == 7
        assert engine.interval_end_at is None

    def test_paused_time_does_not_count(self, engine: TimerEngine) -> None:
        engine.start(T0)
        engine.pause(at(3))
        engine.tick(at(500))
        assert engine.current_index == 0
        assert engine.time_remaining == 7

    def test_pause_twice_resumes(self, engine: TimerEngine) -> None:
        engine.start(T0)
        engine.pause(at(3))
        engine.pause(at(100))
        assert engine.state is TimerState.RUNNING
        assert engine.interval_end_at == at(107)

    def test_pause_absorbs_crossed_boundary(self, engine: TimerEngine) -> None:
        engine.start(T0)
        engine.pause(at(12))
        assert engine.current_index == 1
        assert engine.time_remaining == 8

    def test_pause_cancels_next_interval_notification(
        self, engine: TimerEngine, events: list[TimerEvent]
    ) -> None:
        engine.start(T0)
        events.clear()
        engine.pause(at(3))
        assert kinds(events) == [TimerEventKind.CANCEL_NOTIFICATION]

    def test_pause_from_idle_starts(self, engine: TimerEngine) -> None:
        engine.pause(T0)
        assert engine.state is TimerState.RUNNING
        assert engine.interval_end_at == at(10)


# ---------------------------------------------------------------------------
# skip
# ---------------------------------------------------------------------------


class TestSkip:
    def test_skip_while_running(self, engine: TimerEngine, events: list[TimerEvent]) -> None:
        engine.start(T0)
        events.clear()
        engine.skip(at(3))
        assert engine.current_index == 1
        assert engine.time_remaining == 10
        assert engine.interval_end_at == at(13)
        assert TimerEventKind.ALARM in kinds(events)
        assert TimerEventKind.INTERVAL_CHANGED in kinds(events)

    def test_skip_after_gap_starts_from_wall_clock_position(
        self, engine: TimerEngine, events: list[TimerEvent]
    ) -> None:
        engine.start(T0)
        events.clear()
        engine.skip(at(15))
        assert engine.current_index == 2
        assert engine.time_remaining == 10
        assert engine.interval_end_at == at(25)
        assert kinds(events).count(TimerEventKind.ALARM) == 1

    def test_skip_after_gap_inside_last_interval_finishes(
        self, engine: TimerEngine, events: list[TimerEvent]
    ) -> None:
        engine.start(T0)
        events.clear()
        engine.skip(at(25))
        assert engine.state is TimerState.FINISHED
        finished = [e for e in events if e.kind is TimerEventKind.WORKOUT_FINISHED]
        assert finished[0].at == at(25)

    def test_skip_after_workout_already_ran_out(
        self, engine: TimerEngine, events: list[TimerEvent]
    ) -> None:
        engine.start(T0)
        events.clear()
        engine.skip(at(40))
        assert engine.state is TimerState.FINISHED
        finished = [e for e in events if e.kind is TimerEventKind.WORKOUT_FINISHED]
        assert len(finished) == 1
        assert finished[0].at == at(30)
        assert finished[0].now == at(40)
        assert kinds(events).count(TimerEventKind.ALARM) == 1

    def test_skip_while_paused_does_not_start(self, engine: TimerEngine) -> None:
        engine.start(T0)
        engine.pause(at(3))
        engine.skip(at(4))
        assert engine.current_index == 1
        assert engine.time_remaining == 10
        assert engine.interval_end_at is None
        assert engine.running is False

    def test_resume_after_paused_skip(self, engine: TimerEngine) -> None:
        engine.start(T0)
        engine.pause(at(3))
        engine.skip(at(4))
        engine.start(at(50))
        assert engine.interval_end_at == at(60)

    def test_skip_from_idle_moves_position(self, engine: TimerEngine) -> None:
        engine.skip(T0)
        assert engine.current_index == 1
        assert engine.state is TimerState.PAUSED

    def test_skip_last_interval_finishes(
        self, engine: TimerEngine, events: list[TimerEvent]
    ) -> None:
        engine.start(T0)
        engine.skip(at(1))
        engine.skip(at(2))
        events.clear()
        engine.skip(at(3))
        assert engine.state is TimerState.FINISHED
        finished = [e for e in events if e.kind is TimerEventKind.WORKOUT_FINISHED]
        assert finished[0].at == at(3)

    def test_skip_and_start_after_finish_are_noops(self, engine: TimerEngine) -> None:
        engine.start(T0)
        engine.reconcile(at(1000))
        engine.skip(at(1001))
        engine.start(at(1002))
        assert engine.state is TimerState.FINISHED
        assert engine.running is False


# ---------------------------------------------------------------------------
# reset / load_plan
# ---------------------------------------------------------------------------


class TestReset:
    def test_reset_returns_to_idle(self, engine: TimerEngine) -> None:
        engine.start(T0)
        engine.reconcile(at(25))
        engine.reset()
        assert engine.state is TimerState.IDLE
        assert engine.current_index == 0
        assert engine.time_remaining == 10
        assert engine.session_started_at is None

    def test_reset_after_finish(self, engine: TimerEngine) -> None:
        engine.start(T0)
        engine.reconcile(at(1000))
        engine.reset()
        engine.start(at(2000))
        assert engine.state is TimerState.RUNNING

    def test_load_plan_resets_position(self, engine: TimerEngine) -> None:
        engine.start(T0)
        engine.reconcile(at(15))
        engine.load_plan(build_plan(warmup=60, high_intensity=60, rest=60, repeat_count=3))
        assert engine.state is TimerState.IDLE
        assert engine.current_index == 0
        assert engine.time_remaining == 60
        assert len(engine.plan) == 6


class TestView:
    def test_current_and_next_interval(self, engine: TimerEngine) -> None:
        assert engine.current_interval is not None
        assert engine.current_interval.name == "High Intensity"
        assert engine.next_interval is not None
        assert engine.next_interval.name == "Rest"

    def test_round_number(self, engine: TimerEngine) -> None:
        engine.start(T0)
        engine.reconcile(at(25))
        assert engine.round_number == 2
        assert engine.next_interval is None

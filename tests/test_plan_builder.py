"""Tests for building interval plans from settings."""

from n4x4.config import WorkoutSettings
from n4x4.models.workout import IntervalKind
from n4x4.plan_builder import (
    MIN_HIGH_INTENSITY_SECONDS,
    build_plan,
    build_plan_from_settings,
)


def _kinds(plan) -> list[IntervalKind]:  # type: ignore[no-untyped-def]
    return [interval.kind for interval in plan.intervals]


class TestBuildPlan:
    def test_standard_four_by_four(self) -> None:
        plan = build_plan(warmup=300, high_intensity=240, rest=180, repeat_count=4)
        assert len(plan) == 8
        assert _kinds(plan) == [
            IntervalKind.WARMUP,
            IntervalKind.HIGH_INTENSITY,
            IntervalKind.REST,
            IntervalKind.HIGH_INTENSITY,
            IntervalKind.REST,
            IntervalKind.HIGH_INTENSITY,
            IntervalKind.REST,
            IntervalKind.HIGH_INTENSITY,
        ]
        assert plan.total_duration == 300 + 4 * 240 + 3 * 180

    def test_names(self) -> None:
        plan = build_plan(60, 60, 60, 2)
        assert [i.name for i in plan.intervals] == [
            "Warm Up",
            "High Intensity",
            "Rest",
            "High Intensity",
        ]

    def test_no_warmup_when_zero(self) -> None:
        plan = build_plan(warmup=0, high_intensity=240, rest=180, repeat_count=4)
        assert len(plan) == 7
        assert plan[0].kind is IntervalKind.HIGH_INTENSITY

    def test_single_repeat_has_no_rest(self) -> None:
        plan = build_plan(warmup=0, high_intensity=240, rest=180, repeat_count=1)
        assert _kinds(plan) == [IntervalKind.HIGH_INTENSITY]

    def test_ends_on_high_intensity(self) -> None:
        plan = build_plan(120, 240, 180, 6)
        assert plan[len(plan) - 1].kind is IntervalKind.HIGH_INTENSITY
        assert plan.high_intensity_count == 6


class TestClamping:
    def test_repeat_count_below_one(self) -> None:
        plan = build_plan(warmup=0, high_intensity=60, rest=60, repeat_count=0)
        assert len(plan) == 1

    def test_negative_repeat_count_with_warmup(self) -> None:
        plan = build_plan(warmup=30, high_intensity=60, rest=60, repeat_count=-3)
        assert _kinds(plan) == [IntervalKind.WARMUP, IntervalKind.HIGH_INTENSITY]

    def test_negative_warmup_means_none(self) -> None:
        plan = build_plan(warmup=-10, high_intensity=60, rest=60, repeat_count=2)
        assert plan[0].kind is IntervalKind.HIGH_INTENSITY

    def test_negative_rest_is_zero_length_but_kept(self) -> None:
        plan = build_plan(warmup=0, high_intensity=60, rest=-5, repeat_count=3)
        rests = [i for i in plan.intervals if i.kind is IntervalKind.REST]
        assert len(rests) == 2
        assert all(r.duration == 0 for r in rests)

    def test_high_intensity_never_zero(self) -> None:
        plan = build_plan(warmup=0, high_intensity=0, rest=60, repeat_count=2)
        assert plan[0].duration == MIN_HIGH_INTENSITY_SECONDS

    def test_deterministic(self) -> None:
        assert build_plan(300, 240, 180, 4) == build_plan(300, 240, 180, 4)


class TestRoundNumber:
    def test_rounds_count_per_kind(self) -> None:
        plan = build_plan(300, 240, 180, 4)
        assert plan.round_number(0) == 1  # warm up
        assert plan.round_number(1) == 1
        assert plan.round_number(2) == 1
        assert plan.round_number(3) == 2
        assert plan.round_number(7) == 4


class TestFromSettings:
    def test_defaults(self) -> None:
        plan = build_plan_from_settings(WorkoutSettings())
        assert len(plan) == 8
        assert plan[0].duration == 300
        assert plan[1].duration == 240
        assert plan[2].duration == 180

    def test_uses_number_of_intervals(self) -> None:
        settings = WorkoutSettings(number_of_intervals=2, warmup_duration=0)
        plan = build_plan_from_settings(settings)
        assert len(plan) == 3

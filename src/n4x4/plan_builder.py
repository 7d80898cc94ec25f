"""Build an interval plan from duration settings.

A plan is an optional warm-up followed by ``repeat_count`` high-intensity
intervals with a rest between each pair:

    [Warm Up] High Intensity, Rest, High Intensity, ..., High Intensity

Bad inputs are clamped rather than rejected, so building never fails.
"""

from n4x4.config import WorkoutSettings
from n4x4.models.workout import Interval, IntervalKind, IntervalPlan

MIN_HIGH_INTENSITY_SECONDS = 1.0

WARMUP_NAME = "Warm Up"
HIGH_INTENSITY_NAME = "High Intensity"
REST_NAME = "Rest"


def build_plan(
    warmup: float,
    high_intensity: float,
    rest: float,
    repeat_count: int,
) -> IntervalPlan:
    """Return the ordered plan for one session.

    Args:
        warmup: Warm-up seconds; 0 (or less) means no warm-up interval.
        high_intensity: Seconds per high-intensity interval, at least
            ``MIN_HIGH_INTENSITY_SECONDS``.
        rest: Seconds per rest interval, negative values become 0.
        repeat_count: Number of high-intensity intervals, at least 1.
    """
    warmup = max(float(warmup), 0.0)
    high_intensity = max(float(high_intensity), MIN_HIGH_INTENSITY_SECONDS)
    rest = max(float(rest), 0.0)
    repeat_count = max(int(repeat_count), 1)

    intervals: list[Interval] = []
    if warmup > 0:
        intervals.append(Interval(name=WARMUP_NAME, duration=warmup, kind=IntervalKind.WARMUP))

    for i in range(1, repeat_count + 1):
        intervals.append(
            Interval(
                name=HIGH_INTENSITY_NAME,
                duration=high_intensity,
                kind=IntervalKind.HIGH_INTENSITY,
            )
        )
        # No rest after the final high-intensity interval
        if i < repeat_count:
            intervals.append(Interval(name=REST_NAME, duration=rest, kind=IntervalKind.REST))

    return IntervalPlan(intervals=tuple(intervals))


def build_plan_from_settings(settings: WorkoutSettings) -> IntervalPlan:
    return build_plan(
        warmup=settings.warmup_duration,
        high_intensity=settings.high_intensity_duration,
        rest=settings.rest_duration,
        repeat_count=settings.number_of_intervals,
    )

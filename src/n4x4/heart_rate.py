"""Heart-rate targets for Norwegian 4x4 intervals.

Maximum heart rate is estimated as ``220 - age``. High-intensity intervals
aim for 85–95 % of it, recovery for 60–70 %. At age 40: max 180 BPM,
high intensity 153–171 BPM, recovery 108–126 BPM.
"""

from typing import NamedTuple

MIN_AGE = 13
MAX_AGE = 100


class BpmRange(NamedTuple):
    low: int
    high: int

    def __str__(self) -> str:
        return f"{self.low}-{self.high} BPM"


def _clamp_age(age: int) -> int:
    return min(max(age, MIN_AGE), MAX_AGE)


def max_heart_rate(age: int) -> int:
    return 220 - _clamp_age(age)


def _target(age: int, low: float, high: float) -> BpmRange:
    mhr = max_heart_rate(age)
    return BpmRange(round(mhr * low), round(mhr * high))


def high_intensity_target(age: int) -> BpmRange:
    return _target(age, 0.85, 0.95)


def recovery_target(age: int) -> BpmRange:
    return _target(age, 0.60, 0.70)

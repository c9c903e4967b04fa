import math
from typing import Iterable, Optional


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (12.5 -> 13).

    Python's round() uses banker's rounding, which would grade 12.5% as 12.
    """
    return int(math.floor(value + 0.5))


def percentage(part: int, whole: int) -> int:
    """Whole-number percentage of part/whole, 0 when whole is 0."""
    if whole <= 0:
        return 0
    return round_half_up(100 * part / whole)


def mean(values: Iterable[float]) -> Optional[float]:
    values = list(values)
    if not values:
        return None
    return sum(values) / len(values)


def rounded_mean(values: Iterable[float]) -> Optional[int]:
    """Mean rounded half-up, so pass thresholds compare whole percentages."""
    average = mean(values)
    return None if average is None else round_half_up(average)

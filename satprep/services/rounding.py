"""Integer rounding shared by the scoring formulas."""

import math


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (2.5 -> 3).

    Python's round() sends halves to the even neighbour, which would
    turn 12.5-day intervals into 12 and 44.5 mastery into 44.
    """
    return int(math.floor(value + 0.5))

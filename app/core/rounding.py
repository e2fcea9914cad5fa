"""
Half-up rounding helpers.

Python's round() is banker's rounding (round(12.5) == 12); progress
percentages and questionnaire scores are reported with the usual
half-up convention instead.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[int, float, Decimal]


def round_half_up(value: Number, places: int = 0) -> Decimal:
    exponent = Decimal(1).scaleb(-places)
    return Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP)


def percentage(done: int, total: int) -> int:
    """Integer share of `done` in `total` (0-100). 0 when total is 0."""
    if total <= 0:
        return 0
    return int(round_half_up(Decimal(done) * 100 / Decimal(total)))

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal


def round_half_up(value: float, digits: int = 0) -> float | int:
    """Round the float's exact value with ties away from zero (``round`` would pick the even digit).

    Returns an ``int`` when ``digits`` is 0.
    """
    rounded = Decimal(value).quantize(Decimal(1).scaleb(-digits), rounding=ROUND_HALF_UP)
    return int(rounded) if digits == 0 else float(rounded)


def format_fixed(value: float, digits: int) -> str:
    return f"{round_half_up(value, digits):.{digits}f}"

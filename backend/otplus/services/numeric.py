"""Numeric coercion and rounding helpers shared by the analysis services."""
import math
from typing import Any, Iterable, Optional

from otplus.config import CURRENCY_PRECISION, HOURS_PRECISION


def to_finite(value: Any) -> Optional[float]:
    """
    Coerce ``value`` to a finite float, or return None.

    Accepts ints, floats and numeric strings.  Booleans, NaN, ±Infinity,
    non-numeric strings and every other type are treated as absent.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def first_finite(values: Iterable[Any]) -> Optional[float]:
    """Return the first value in ``values`` that coerces to a finite float."""
    for value in values:
        number = to_finite(value)
        if number is not None:
            return number
    return None


def safe_round(value: float, decimals: int) -> float:
    """Round half away from zero; non-finite input rounds to 0.0."""
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return 0.0
    factor = 10 ** decimals
    scaled = abs(value) * factor + 1e-9
    rounded = math.floor(scaled + 0.5) / factor
    return math.copysign(rounded, value) if rounded else 0.0


def round_hours(value: float) -> float:
    return safe_round(value, HOURS_PRECISION)


def round_money(value: float) -> float:
    return safe_round(value, CURRENCY_PRECISION)


def finite_product(*factors: float) -> float:
    """Multiply ``factors``; a non-finite result is zeroed."""
    result = 1.0
    for factor in factors:
        result *= factor
    return result if math.isfinite(result) else 0.0

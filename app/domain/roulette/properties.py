# app/domain/roulette/properties.py
from __future__ import annotations

from typing import Any, Dict

from app.domain.common.errors import InvalidNumber
from app.domain.common.types import Color, Parity

MIN_NUMBER = 0
MAX_NUMBER = 36

# European wheel; black is the complement within 1-36
RED_NUMBERS = frozenset({1, 3, 5, 7, 9, 12, 14, 16, 18, 19, 21, 23, 25, 27, 30, 32, 34, 36})


def is_valid_number(n: Any) -> bool:
    # bool is an int subclass; True must not pass as 1
    if isinstance(n, bool) or not isinstance(n, int):
        return False
    return MIN_NUMBER <= n <= MAX_NUMBER


def validate_number(n: Any) -> int:
    if not is_valid_number(n):
        raise InvalidNumber(n)
    return n


def color_of(n: int) -> Color:
    validate_number(n)
    if n == 0:
        return "Green"
    return "Red" if n in RED_NUMBERS else "Black"


def parity_of(n: int) -> Parity:
    validate_number(n)
    if n == 0:
        return "None"
    return "Even" if n % 2 == 0 else "Odd"


def properties_of(n: int) -> Dict[str, Any]:
    return {"number": n, "color": color_of(n), "parity": parity_of(n)}

# app/domain/common/errors.py
"""
Exceptions raised by the roulette domain.

Phase/precondition rejections are not exceptions: coordinator operations
return False for those. These classes cover bad input, a full queue and
store failures.
"""
from __future__ import annotations


class RouletteError(Exception):
    pass


class InvalidNumber(RouletteError, ValueError):
    def __init__(self, value):
        self.value = value
        super().__init__(f"Invalid roulette number: {value!r}. Must be 0-36.")


class QueueFull(RouletteError):
    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Queue full: {size}/{limit}")


class StoreError(RouletteError):
    pass

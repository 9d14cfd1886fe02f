# app/domain/common/types.py
from __future__ import annotations

from enum import Enum
from typing import Literal

Color = Literal["Red", "Black", "Green"]
Parity = Literal["Odd", "Even", "None"]


class GameRunState(str, Enum):
    """Gates whether the round/spin phase machine may progress."""

    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"

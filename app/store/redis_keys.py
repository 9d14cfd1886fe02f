# app/store/redis_keys.py
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RK:
    """
    Redis key builder. One game per deployment; `prefix` only separates
    deployments sharing a Redis database.
    """
    prefix: str = "roulette"

    # ---- Spin results ----
    def spin(self, spin_id: str) -> str:
        return f"{self.prefix}:spin:{spin_id}"  # HASH

    def spins(self) -> str:
        return f"{self.prefix}:spins"  # ZSET spin_id -> occurred_at ms

    # ---- Audit ----
    def audit(self) -> str:
        return f"{self.prefix}:audit"  # LIST entries JSON, newest first

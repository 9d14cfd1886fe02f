import asyncio
from typing import List, Optional

import pytest

from app.store.models import AuditLogEntry, SpinResult


class FakeClock:
    def __init__(self, now: int = 1_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeStore:
    """In-memory stand-in for RedisResultStore."""

    def __init__(self, configured: bool = True):
        self.configured = configured
        self.results: List[SpinResult] = []  # oldest first
        self.audit: List[AuditLogEntry] = []
        self.write_calls = 0
        self.fail_writes = 0  # next N writes raise
        self.reject_writes = False
        self.fail_reads = False
        self.gate: Optional[asyncio.Event] = None
        self._seq = 0

    def is_configured(self) -> bool:
        return self.configured

    def add_result(self, number: int, color: str, parity: str) -> SpinResult:
        self._seq += 1
        res = SpinResult(id=f"s{self._seq}", number=number, color=color, parity=parity, occurred_at=self._seq)
        self.results.append(res)
        return res

    async def store_spin_result(self, number, color, parity, done_by="System"):
        self.write_calls += 1
        await asyncio.sleep(0)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_writes:
            self.fail_writes -= 1
            raise ConnectionError("store down")
        if self.reject_writes:
            return False
        self.add_result(number, color, parity).done_by = done_by
        return True

    async def get_result(self, spin_id):
        return next((r for r in self.results if r.id == spin_id), None)

    async def get_recent_results(self, limit=5, include_deleted=False):
        if self.fail_reads:
            raise ConnectionError("store down")
        rows = [r for r in reversed(self.results) if include_deleted or not r.is_deleted]
        return rows[:limit]

    async def soft_delete(self, spin_id):
        r = await self.get_result(spin_id)
        if r is None:
            return False
        r.is_deleted = True
        r.deleted_at = 1
        return True

    async def restore(self, spin_id):
        r = await self.get_result(spin_id)
        if r is None:
            return False
        r.is_deleted = False
        r.deleted_at = None
        return True

    async def hard_delete(self, spin_id):
        r = await self.get_result(spin_id)
        if r is None:
            return False
        self.results.remove(r)
        return True

    async def append_audit(self, entry):
        self.audit.append(entry)

    async def get_recent_audit(self, limit=20):
        return list(reversed(self.audit))[:limit]

    def actions(self) -> List[str]:
        return [e.action for e in self.audit]


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def clock():
    return FakeClock()

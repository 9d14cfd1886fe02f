# app/store/redis_repo.py
from __future__ import annotations

import logging
import uuid
from typing import Callable, List, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.store.redis_keys import RK
from app.store.models import AuditLogEntry, SpinResult
from app.util.timeutil import now_ms

logger = logging.getLogger(__name__)


class RedisResultStore:
    """
    Spin-result history and admin audit log.

    Constructed with r=None when no Redis is configured: reads then return
    nothing, writes return False and audit entries are only logged.
    """

    def __init__(
        self,
        r: Optional[Redis],
        *,
        prefix: str = "roulette",
        audit_max_entries: int = 10000,
        clock: Callable[[], int] = now_ms,
    ):
        self.r = r
        self.rk = RK(prefix)
        self.audit_max_entries = audit_max_entries
        self._clock = clock

    def is_configured(self) -> bool:
        return self.r is not None

    def _dec(self, x):
            """Decode redis bytes -> str; pass through str/int/None safely."""
            if x is None:
                return None
            if isinstance(x, bytes):
                return x.decode("utf-8")
            return x

    def _dec_map(self, d: dict) -> dict:
            return {self._dec(k): self._dec(v) for k, v in d.items()}

    def _to_result(self, spin_id: str, raw: dict) -> SpinResult:
        norm = self._dec_map(raw)
        deleted_at = norm.get("deleted_at")
        return SpinResult(
            id=spin_id,
            number=int(norm["number"]),
            color=norm["color"],
            parity=norm["parity"],
            done_by=norm.get("done_by") or "System",
            is_deleted=norm.get("is_deleted") == "1",
            deleted_at=int(deleted_at) if deleted_at else None,
            occurred_at=int(norm["occurred_at"]),
        )

    # ----------------------------
    # Spin results
    # ----------------------------
    async def store_spin_result(self, number: int, color: str, parity: str, done_by: str = "System") -> bool:
        if self.r is None:
            return False
        spin_id = uuid.uuid4().hex
        ts = self._clock()
        pipe = self.r.pipeline()
        pipe.hset(
            self.rk.spin(spin_id),
            mapping={
                "number": str(number),
                "color": color,
                "parity": parity,
                "done_by": done_by,
                "is_deleted": "0",
                "occurred_at": str(ts),
            },
        )
        pipe.zadd(self.rk.spins(), {spin_id: ts})
        await pipe.execute()
        logger.debug("Stored spin result %s: %s %s %s", spin_id, number, color, parity)
        return True

    async def get_result(self, spin_id: str) -> Optional[SpinResult]:
        if self.r is None:
            return None
        raw = await self.r.hgetall(self.rk.spin(spin_id))
        if not raw:
            return None
        return self._to_result(spin_id, raw)

    async def get_recent_results(self, limit: int = 5, include_deleted: bool = False) -> List[SpinResult]:
        """Newest first. Soft-deleted rows are skipped unless include_deleted."""
        if self.r is None or limit <= 0:
            return []

        out: List[SpinResult] = []
        page = max(limit * 2, 20)
        start = 0
        while len(out) < limit:
            ids = await self.r.zrevrange(self.rk.spins(), start, start + page - 1)
            if not ids:
                break
            ids = [self._dec(x) for x in ids]

            pipe = self.r.pipeline()
            for spin_id in ids:
                pipe.hgetall(self.rk.spin(spin_id))
            rows = await pipe.execute()

            for spin_id, raw in zip(ids, rows):
                if not raw:
                    # index entry whose hash is gone
                    continue
                res = self._to_result(spin_id, raw)
                if res.is_deleted and not include_deleted:
                    continue
                out.append(res)
                if len(out) >= limit:
                    break
            start += page
        return out

    async def soft_delete(self, spin_id: str) -> bool:
        if self.r is None:
            return False
        key = self.rk.spin(spin_id)
        if not await self.r.exists(key):
            return False
        await self.r.hset(key, mapping={"is_deleted": "1", "deleted_at": str(self._clock())})
        return True

    async def restore(self, spin_id: str) -> bool:
        if self.r is None:
            return False
        key = self.rk.spin(spin_id)
        if not await self.r.exists(key):
            return False
        pipe = self.r.pipeline()
        pipe.hset(key, "is_deleted", "0")
        pipe.hdel(key, "deleted_at")
        await pipe.execute()
        return True

    async def hard_delete(self, spin_id: str) -> bool:
        if self.r is None:
            return False
        pipe = self.r.pipeline()
        pipe.delete(self.rk.spin(spin_id))
        pipe.zrem(self.rk.spins(), spin_id)
        deleted, _ = await pipe.execute()
        return bool(deleted)

    # ----------------------------
    # Audit log
    # ----------------------------
    async def append_audit(self, entry: AuditLogEntry) -> None:
        """Best-effort: failures are logged, never raised."""
        if entry.id is None:
            entry.id = uuid.uuid4().hex
        if entry.occurred_at is None:
            entry.occurred_at = self._clock()

        if self.r is None:
            logger.info(
                "Audit (store not configured): %s by %s success=%s %s",
                entry.action, entry.actor_name, entry.success, entry.details,
            )
            return

        try:
            pipe = self.r.pipeline()
            pipe.lpush(self.rk.audit(), entry.model_dump_json())
            pipe.ltrim(self.rk.audit(), 0, self.audit_max_entries - 1)
            await pipe.execute()
        except (RedisError, ValueError) as e:
            logger.error("Failed to write audit entry %s: %s", entry.action, e)

    async def get_recent_audit(self, limit: int = 20) -> List[AuditLogEntry]:
        if self.r is None or limit <= 0:
            return []
        raw = await self.r.lrange(self.rk.audit(), 0, limit - 1)
        return [AuditLogEntry.model_validate_json(self._dec(x)) for x in raw]

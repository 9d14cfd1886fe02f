# app/domain/roulette/coordinator.py
"""
Round / spin state machine for the single shared roulette game.

Phases cycle Idle -> RoundActive -> Spinning -> Idle, or Idle -> RoundActive
-> Idle when the round ends with nothing queued. GameRunState is a separate
axis that only decides whether new rounds may start.

Every phase-changing coroutine takes the `_busy` latch before its first
await and releases it in `finally`. The latch is advisory: a caller that
finds it held gets False back and may simply try again later. On a single
event loop the check-then-set is race free because nothing yields between
the check and the set.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from app.domain.common.errors import QueueFull, StoreError
from app.domain.common.types import GameRunState
from app.domain.roulette.properties import color_of, is_valid_number, parity_of
from app.domain.roulette.queue import PendingQueue
from app.store.models import AuditLogEntry, SpinResult
from app.transport.protocols import OutGameState
from app.util.retry import retry_with_backoff
from app.util.timeutil import now_ms

logger = logging.getLogger(__name__)

SYSTEM_ACTOR_ID = 0
SYSTEM_ACTOR = "System"


class GameCoordinator:
    def __init__(
        self,
        *,
        store,
        queue: PendingQueue,
        round_duration_ms: int = 30000,
        spin_animation_ms: int = 15000,
        spin_buffer_ms: int = 3000,
        activity_timeout_ms: int = 60000,
        activity_check_interval_ms: int = 10000,
        last_spin_cache_ttl_ms: int = 5 * 60 * 1000,
        store_retry_attempts: int = 3,
        store_retry_base_delay_ms: int = 1000,
        auto_restart_delay_ms: Optional[int] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.queue = queue
        self.round_duration_ms = round_duration_ms
        self.spin_animation_ms = spin_animation_ms
        self.spin_buffer_ms = spin_buffer_ms
        self.activity_timeout_ms = activity_timeout_ms
        self.activity_check_interval_ms = activity_check_interval_ms
        self.last_spin_cache_ttl_ms = last_spin_cache_ttl_ms
        self.store_retry_attempts = store_retry_attempts
        self.store_retry_base_delay_ms = store_retry_base_delay_ms
        self.auto_restart_delay_ms = auto_restart_delay_ms
        self._clock = clock

        self.run_state = GameRunState.RUNNING
        self.round_active = False
        self.is_spinning = False
        self.round_start_time: Optional[int] = None
        self.spin_started_at: Optional[int] = None
        self.current_result: Optional[int] = None
        self.last_frontend_activity_at: Optional[int] = None

        self._last_spin: Optional[SpinResult] = None
        self._last_spin_cached_at: Optional[int] = None

        self._busy = False
        # bumped by reset(); an operation suspended across a reset sees a new epoch
        self._epoch = 0

        self._round_task: Optional[asyncio.Task] = None
        self._spin_task: Optional[asyncio.Task] = None
        self._restart_task: Optional[asyncio.Task] = None
        self._monitor_task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(cls, settings, *, store, queue: PendingQueue, clock: Callable[[], int] = now_ms) -> "GameCoordinator":
        return cls(
            store=store,
            queue=queue,
            round_duration_ms=settings.ROUND_DURATION_MS,
            spin_animation_ms=settings.SPIN_ANIMATION_MS,
            spin_buffer_ms=settings.SPIN_BUFFER_MS,
            activity_timeout_ms=settings.FRONTEND_ACTIVITY_TIMEOUT_MS,
            activity_check_interval_ms=settings.ACTIVITY_CHECK_INTERVAL_MS,
            last_spin_cache_ttl_ms=settings.LAST_SPIN_CACHE_TTL_MS,
            store_retry_attempts=settings.STORE_RETRY_ATTEMPTS,
            store_retry_base_delay_ms=settings.STORE_RETRY_BASE_DELAY_MS,
            auto_restart_delay_ms=settings.AUTO_RESTART_DELAY_MS,
            clock=clock,
        )

    # ----------------------------
    # Read-only views
    # ----------------------------
    @property
    def spin_duration_ms(self) -> int:
        return self.spin_animation_ms + self.spin_buffer_ms

    @property
    def is_idle(self) -> bool:
        return not self.round_active and not self.is_spinning

    @property
    def phase(self) -> str:
        if self.round_active:
            return "round_active"
        if self.is_spinning:
            return "spinning"
        return "idle"

    @property
    def busy(self) -> bool:
        return self._busy

    def get_state(self) -> GameRunState:
        return self.run_state

    def is_running(self) -> bool:
        return self.run_state is GameRunState.RUNNING

    def get_status_summary(self) -> str:
        return (
            f"Game Status: {self.run_state.value.upper()}\n"
            f"Phase: {self.phase.replace('_', ' ')}\n"
            f"Queue: {len(self.queue)} spins"
        )

    def get_spin_result(self) -> Optional[Dict[str, Any]]:
        if not self.is_spinning or self.current_result is None:
            return None
        n = self.current_result
        return {
            "number": n,
            "color": color_of(n),
            "parity": parity_of(n),
            "spin_started_at": self.spin_started_at,
            "spin_duration_ms": self.spin_duration_ms,
        }

    # ----------------------------
    # Timers
    # ----------------------------
    def _schedule(self, delay_ms: int, fire: Callable[[], Awaitable[Any]], label: str) -> asyncio.Task:
        async def _run() -> None:
            await asyncio.sleep(max(0, delay_ms) / 1000)
            try:
                await fire()
            except Exception:
                logger.exception("%s callback failed", label)

        return asyncio.get_running_loop().create_task(_run(), name=label)

    @staticmethod
    def _cancel(task: Optional[asyncio.Task]) -> None:
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        # a timer that is itself running end_round/end_spin is only detached
        if task is not current:
            task.cancel()

    def _cancel_round_timer(self) -> None:
        self._cancel(self._round_task)
        self._round_task = None

    def _cancel_spin_timer(self) -> None:
        self._cancel(self._spin_task)
        self._spin_task = None

    def _cancel_restart(self) -> None:
        self._cancel(self._restart_task)
        self._restart_task = None

    async def _round_timer_fired(self) -> None:
        if not await self.end_round():
            logger.debug("Round timer fired but round end was rejected (phase=%s busy=%s)", self.phase, self._busy)

    async def _spin_timer_fired(self) -> None:
        if not await self.end_spin():
            logger.debug("Spin timer fired but spin end was rejected (phase=%s busy=%s)", self.phase, self._busy)

    async def _restart_fired(self) -> None:
        self._restart_task = None
        if self.start_round():
            logger.info("Auto-restarted round after idle wait")

    # ----------------------------
    # Phase transitions
    # ----------------------------
    def _enter_idle(self, *, schedule_restart: bool = True) -> None:
        self.round_active = False
        self.is_spinning = False
        self.current_result = None
        self.round_start_time = None
        self.spin_started_at = None
        if schedule_restart and self.auto_restart_delay_ms is not None and self.is_running():
            self._cancel_restart()
            self._restart_task = self._schedule(self.auto_restart_delay_ms, self._restart_fired, "restart-timer")

    def start_round(self) -> bool:
        if not self.is_running():
            logger.debug("start_round rejected: game is %s", self.run_state.value)
            return False
        if self._busy:
            logger.debug("start_round rejected: operation in progress")
            return False
        if not self.is_idle:
            logger.debug("start_round rejected: phase is %s", self.phase)
            return False

        self._cancel_round_timer()
        self._cancel_restart()
        self.round_active = True
        self.round_start_time = self._clock()
        self.current_result = None
        self._round_task = self._schedule(self.round_duration_ms, self._round_timer_fired, "round-timer")
        logger.info("Round started (%dms, %d queued)", self.round_duration_ms, len(self.queue))
        return True

    async def end_round(self, *, done_by: str = SYSTEM_ACTOR) -> bool:
        """
        Commit the head of the queue as the result and start the spin.

        The whole queue is drained synchronously; everything but the head
        goes back to the front, so numbers enqueued during the store call
        stay behind them. On persistence failure the head is put back too.
        """
        if self._busy:
            logger.debug("end_round rejected: operation in progress")
            return False
        if not self.round_active:
            logger.debug("end_round rejected: no active round (phase=%s)", self.phase)
            return False

        self._busy = True
        epoch = self._epoch
        try:
            return await self._end_round_locked(epoch, done_by)
        finally:
            if self._epoch == epoch:
                self._busy = False

    async def _end_round_locked(self, epoch: int, done_by: str) -> bool:
        self._cancel_round_timer()

        batch = self.queue.drain()
        if not batch:
            self._enter_idle()
            logger.info("Round ended with an empty queue; waiting for numbers")
            return True

        number, rest = batch[0], batch[1:]
        self.queue.restore_front(rest)
        color = color_of(number)
        parity = parity_of(number)

        if self.store.is_configured():
            try:
                await retry_with_backoff(
                    lambda: self._persist_result(number, color, parity, done_by),
                    attempts=self.store_retry_attempts,
                    base_delay=self.store_retry_base_delay_ms / 1000,
                    label=f"store spin result {number}",
                )
            except asyncio.CancelledError:
                if self._epoch == epoch:
                    self._rollback_drain(number)
                raise
            except Exception as e:
                if self._epoch != epoch:
                    return False
                self._rollback_drain(number)
                logger.error("Could not persist result %s; queue rolled back: %s", number, e)
                await self._audit(
                    "round_end_failed",
                    f"Result {number} could not be stored; returned to queue",
                    old_value=batch,
                    new_value=self.queue.snapshot(),
                    success=False,
                )
                return False
        else:
            logger.warning("Result store not configured; spin %s will not be persisted", number)

        if self._epoch != epoch:
            logger.warning("Game reset while committing %s; spin abandoned", number)
            return False

        self.round_active = False
        self.is_spinning = True
        self.current_result = number
        self.spin_started_at = self._clock()
        self._spin_task = self._schedule(self.spin_duration_ms, self._spin_timer_fired, "spin-timer")
        logger.info("Result committed: %s %s %s (%d returned to queue)", number, color, parity, len(rest))

        await self._audit(
            "round_end_spin",
            f"Used number {number} ({color} {parity}) from queue; {len(rest)} returned to queue",
            old_value=batch,
            new_value=self.queue.snapshot(),
            success=True,
        )
        return True

    async def _persist_result(self, number: int, color: str, parity: str, done_by: str) -> None:
        if not await self.store.store_spin_result(number, color, parity, done_by):
            raise StoreError(f"store rejected spin result {number}")

    def _rollback_drain(self, number: int) -> None:
        try:
            self.queue.restore_front([number])
        except Exception:
            logger.critical("Queue rollback failed for %s; game forced idle, reset required", number, exc_info=True)
        self._enter_idle(schedule_restart=False)

    async def end_spin(self) -> bool:
        if self._busy:
            logger.debug("end_spin rejected: operation in progress")
            return False
        if not self.is_spinning:
            logger.debug("end_spin rejected: not spinning (phase=%s)", self.phase)
            return False

        self._busy = True
        epoch = self._epoch
        try:
            self._cancel_spin_timer()
            number = self.current_result
            self.invalidate_last_spin_cache()
            self._enter_idle()
            await self.refresh_last_spin_cache()
            logger.info("Spin of %s finished; idle", number)
            return True
        finally:
            if self._epoch == epoch:
                self._busy = False

    async def trigger_manual_spin(self, number: Any, *, done_by: str = SYSTEM_ACTOR) -> bool:
        """
        Jump the queue with `number`. During a round it is consumed at once;
        while idle it waits at the head for the next round.
        """
        if not is_valid_number(number):
            logger.debug("manual spin rejected: invalid number %r", number)
            return False
        if self.is_spinning:
            logger.debug("manual spin rejected: already spinning")
            return False
        if self._busy:
            logger.debug("manual spin rejected: operation in progress")
            return False

        try:
            self.queue.push_front(number)
        except QueueFull as e:
            logger.warning("manual spin rejected: %s", e)
            return False

        logger.info("Manual spin %s placed at head of queue", number)
        if self.round_active:
            return await self.end_round(done_by=done_by)
        return True

    async def trigger_round_end(self, *, done_by: str = SYSTEM_ACTOR) -> bool:
        if not self.round_active:
            logger.debug("trigger_round_end rejected: no active round")
            return False
        return await self.end_round(done_by=done_by)

    # ----------------------------
    # Run state
    # ----------------------------
    def pause(self) -> bool:
        if self.run_state is not GameRunState.RUNNING:
            return False
        self.run_state = GameRunState.PAUSED
        self._cancel_restart()
        logger.info("Game paused")
        return True

    def stop(self) -> bool:
        if self.run_state is GameRunState.STOPPED:
            return False
        self.run_state = GameRunState.STOPPED
        self._cancel_restart()
        logger.info("Game stopped")
        return True

    def resume(self) -> bool:
        if self.run_state is GameRunState.RUNNING:
            return False
        self.run_state = GameRunState.RUNNING
        logger.info("Game resumed")
        if self.is_idle and not self._busy:
            # numbers queued while paused start a round straight away
            if len(self.queue):
                self.start_round()
            elif self.auto_restart_delay_ms is not None:
                self._cancel_restart()
                self._restart_task = self._schedule(self.auto_restart_delay_ms, self._restart_fired, "restart-timer")
        return True

    def reset(self) -> List[int]:
        """
        Hard reset: always succeeds, even while another operation holds the
        latch. Returns the numbers that were queued.
        """
        self._epoch += 1
        self._busy = False
        self._cancel_round_timer()
        self._cancel_spin_timer()
        self._cancel_restart()
        cleared = self.queue.clear()
        self.run_state = GameRunState.RUNNING
        self._enter_idle(schedule_restart=False)
        self.last_frontend_activity_at = None
        logger.info("Game reset: queue cleared (%d numbers), running, idle", len(cleared))
        return cleared

    # ----------------------------
    # Frontend activity
    # ----------------------------
    def record_frontend_activity(self) -> None:
        self.last_frontend_activity_at = self._clock()

    def check_frontend_activity(self) -> bool:
        """
        One inactivity sweep. Returns True when the machine was collapsed to
        idle. Nothing is persisted here: mid-round no result exists yet, and
        mid-spin the result was stored when the spin started.
        """
        if self.last_frontend_activity_at is None or self.is_idle:
            return False
        silent_ms = self._clock() - self.last_frontend_activity_at
        if silent_ms <= self.activity_timeout_ms:
            return False
        if self._busy:
            logger.debug("inactivity collapse deferred: operation in progress")
            return False

        logger.warning("No frontend activity for %dms; forcing idle from %s", silent_ms, self.phase)
        was_spinning = self.is_spinning
        self._cancel_round_timer()
        self._cancel_spin_timer()
        self._cancel_restart()
        self._enter_idle(schedule_restart=False)
        if was_spinning:
            # the collapsed spin was stored when it started
            self.invalidate_last_spin_cache()
        return True

    def start_activity_monitor(self) -> None:
        if self._monitor_task is not None and not self._monitor_task.done():
            return
        self._monitor_task = asyncio.get_running_loop().create_task(self._activity_loop(), name="activity-monitor")

    async def _activity_loop(self) -> None:
        interval = self.activity_check_interval_ms / 1000
        while True:
            await asyncio.sleep(interval)
            self.check_frontend_activity()

    async def shutdown(self) -> None:
        tasks = [t for t in (self._round_task, self._spin_task, self._restart_task, self._monitor_task) if t is not None]
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._round_task = self._spin_task = self._restart_task = self._monitor_task = None

    # ----------------------------
    # Snapshot / last result cache
    # ----------------------------
    def _round_expired(self) -> bool:
        if not self.round_active or self.round_start_time is None:
            return False
        return self._clock() - self.round_start_time >= self.round_duration_ms

    def _cache_fresh(self) -> bool:
        if self._last_spin_cached_at is None:
            return False
        return self._clock() - self._last_spin_cached_at < self.last_spin_cache_ttl_ms

    def invalidate_last_spin_cache(self) -> None:
        self._last_spin_cached_at = None

    async def refresh_last_spin_cache(self) -> Optional[SpinResult]:
        """Reload the newest result. On store failure the last known value is kept."""
        if not self.store.is_configured():
            return self._last_spin
        try:
            results = await self.store.get_recent_results(1, False)
        except Exception as e:
            logger.warning("Could not refresh last spin result: %s", e)
            return self._last_spin
        self._last_spin = results[0] if results else None
        self._last_spin_cached_at = self._clock()
        return self._last_spin

    async def get_last_spin_results(self, limit: int = 5, include_deleted: bool = False) -> List[SpinResult]:
        if not self.store.is_configured():
            return []
        return await self.store.get_recent_results(limit, include_deleted)

    async def get_state_snapshot(self) -> OutGameState:
        if self._round_expired():
            # timer is late (slow loop / clock drift): never report an expired round
            logger.debug("Round overdue at snapshot time; ending it now")
            await self.end_round()
        closing = self._round_expired()
        if closing:
            logger.debug("Round overdue but its result is still being committed")

        last: Optional[SpinResult] = None
        if self.is_idle:
            last = self._last_spin if self._cache_fresh() else await self.refresh_last_spin_cache()

        now = self._clock()
        time_left = 0
        if self.round_active and self.round_start_time is not None:
            time_left = max(0, self.round_start_time + self.round_duration_ms - now)

        return OutGameState(
            round_active=self.round_active,
            round_closing=closing,
            is_spinning=self.is_spinning,
            result_number=self.current_result,
            round_start_time=self.round_start_time,
            round_duration_ms=self.round_duration_ms,
            time_left_ms=time_left,
            spin_started_at=self.spin_started_at,
            spin_duration_ms=self.spin_duration_ms,
            last_spin_result=last.model_dump() if last is not None else None,
            queue_length=len(self.queue),
            game_state=self.run_state.value,
            server_time=now,
        )

    # ----------------------------
    # Audit
    # ----------------------------
    async def _audit(self, action: str, details: str, *, old_value: Any = None, new_value: Any = None, success: bool = True) -> None:
        try:
            await self.store.append_audit(
                AuditLogEntry(
                    actor_id=SYSTEM_ACTOR_ID,
                    actor_name=SYSTEM_ACTOR,
                    action=action,
                    details=details,
                    old_value=old_value,
                    new_value=new_value,
                    success=success,
                )
            )
        except Exception as e:
            logger.error("Audit write for %s failed: %s", action, e)

# app/domain/admin/handlers.py
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Any, Tuple

from app.domain.admin import formatting as fmt
from app.domain.admin.commands import (
    AdminCommand,
    CmdAddSpin,
    CmdClearQueue,
    CmdDeleteValue,
    CmdEndRound,
    CmdHelp,
    CmdManualSpin,
    CmdPause,
    CmdReset,
    CmdResultAction,
    CmdResults,
    CmdResume,
    CmdStatus,
    CmdUnknown,
    parse_command,
)
from app.domain.common.errors import QueueFull
from app.domain.roulette.properties import color_of, is_valid_number, parity_of
from app.store.models import AuditLogEntry
from app.transport.protocols import OutAdminReply

logger = logging.getLogger(__name__)

MAX_RESULTS = 10
DEFAULT_RESULTS = 5

# Each handler returns the reply and the single audit entry for the command.
Result = Tuple[OutAdminReply, AuditLogEntry]


@dataclass(frozen=True)
class Actor:
    user_id: int
    username: str


def _result(actor: Actor, action: str, ok: bool, text: str, *, details: str = "", old: Any = None, new: Any = None) -> Result:
    reply = OutAdminReply(ok=ok, action=action, text=text)
    entry = AuditLogEntry(
        actor_id=actor.user_id,
        actor_name=actor.username,
        action=action,
        details=details or text.splitlines()[0],
        old_value=old,
        new_value=new,
        success=ok,
    )
    return reply, entry


def is_admin(settings, user_id: int) -> bool:
    return user_id in settings.ADMINS


async def mark_spins_as_deleted(store, number: int, count: int) -> int:
    """
    Best-effort: soft-delete up to `count` of the most recent visible results
    with this number. Results are matched by value only.
    """
    if count <= 0 or not store.is_configured():
        return 0
    marked = 0
    try:
        recent = await store.get_recent_results(50, False)
        for r in [r for r in recent if r.number == number][:count]:
            if await store.soft_delete(r.id):
                marked += 1
    except Exception as e:
        logger.error("Could not mark results for %s as deleted: %s", number, e)
    return marked


# -------------------------
# Handlers
# -------------------------

async def handle_add_spin(*, app, actor: Actor, msg: CmdAddSpin) -> Result:
    coordinator = app.state.coordinator
    queue = coordinator.queue
    tz = app.state.settings.TIMEZONE
    n = msg.number

    if not is_valid_number(n):
        return _result(
            actor, "add_spin_invalid", False,
            f"Invalid Spin Number\n\nInput: {n}\nValid Range: 0-36\nUser: @{actor.username}",
            details=f"Invalid spin number: {n}",
        )

    old = queue.snapshot()
    try:
        position = queue.enqueue(n)
    except QueueFull as e:
        return _result(
            actor, "add_spin_queue_full", False,
            f"Queue Full\n\nCurrent Queue: {e.size}/{e.limit}\nUser: @{actor.username}\n\n"
            "Please wait for queued spins to be processed.",
            details=f"Queue full: {e.size}/{e.limit}",
        )

    started = False
    if coordinator.is_idle and coordinator.is_running():
        started = coordinator.start_round()

    text = (
        "Spin Queued Successfully\n\n"
        f"Number: {n} ({color_of(n)} {parity_of(n)})\n"
        f"Added by: @{actor.username}\n"
        f"Queue Position: {position}\n"
        f"Total in Queue: {len(queue)}\n"
        f"Game State: {fmt.phase_label(coordinator)}"
        + (" (new round started)" if started else "")
        + f"\n\n{fmt.stamp(tz)}"
    )
    return _result(actor, "add_spin", True, text, details=f"Added spin: {n}", old=old, new=queue.snapshot())


async def handle_status(*, app, actor: Actor, msg: CmdStatus) -> Result:
    coordinator = app.state.coordinator
    text = fmt.status_text(coordinator, actor.username, app.state.settings.TIMEZONE)
    return _result(actor, "check_status", True, text, details="Checked game status")


async def handle_clear_queue(*, app, actor: Actor, msg: CmdClearQueue) -> Result:
    coordinator = app.state.coordinator
    settings = app.state.settings
    old = coordinator.queue.clear()

    if not old:
        text = f"Queue Already Empty\n\nCurrent Queue Length: 0\nAttempted by: @{actor.username}"
        return _result(actor, "clear_queue", True, text, details="Queue already empty", old=old, new=[])

    marked = 0
    if settings.SOFT_DELETE_ON_QUEUE_REMOVE:
        for number, count in Counter(old).items():
            marked += await mark_spins_as_deleted(app.state.store, number, count)

    text = (
        "Queue Cleared Successfully\n\n"
        f"Items Removed: {len(old)}\n"
        f"Cleared Numbers: {fmt.queue_text(old)}\n"
        + (f"Stored results marked deleted: {marked}\n" if settings.SOFT_DELETE_ON_QUEUE_REMOVE else "")
        + f"Cleared by: @{actor.username}\n"
        f"{fmt.stamp(settings.TIMEZONE)}"
    )
    return _result(actor, "clear_queue", True, text, details=f"Queue cleared ({len(old)} items)", old=old, new=[])


async def handle_delete_value(*, app, actor: Actor, msg: CmdDeleteValue) -> Result:
    coordinator = app.state.coordinator
    settings = app.state.settings
    queue = coordinator.queue
    n = msg.number

    old = queue.snapshot()
    removed = queue.remove_value(n)
    if removed == 0:
        text = (
            "Value Not Found\n\n"
            f"Number: {n}\n"
            f"Current Queue: {fmt.queue_text(old)}\n"
            f"Attempted by: @{actor.username}"
        )
        return _result(actor, "delete_value_not_found", False, text, details=f"Value not found: {n}", old=old, new=old)

    marked = 0
    if settings.SOFT_DELETE_ON_QUEUE_REMOVE:
        marked = await mark_spins_as_deleted(app.state.store, n, removed)

    text = (
        "Value Deleted Successfully\n\n"
        f"Number: {n}\n"
        f"Instances Removed: {removed}\n"
        f"Queue Length: {len(old)} -> {len(queue)}\n"
        f"Remaining Queue: {fmt.queue_text(queue.snapshot())}\n"
        f"Deleted by: @{actor.username}\n"
        f"{fmt.stamp(settings.TIMEZONE)}"
    )
    return _result(
        actor, "delete_value", True, text,
        details=f"Deleted value: {n} ({removed} instances, {marked} results marked)",
        old=old, new=queue.snapshot(),
    )


async def handle_manual_spin(*, app, actor: Actor, msg: CmdManualSpin) -> Result:
    coordinator = app.state.coordinator
    n = msg.number
    old = coordinator.queue.snapshot()
    was_round = coordinator.round_active
    was_spinning = coordinator.is_spinning

    ok = await coordinator.trigger_manual_spin(n, done_by=actor.username)
    if not ok:
        if not is_valid_number(n):
            reason = "number must be 0-36"
        elif was_spinning:
            reason = "a spin is already in progress"
        else:
            reason = "the game is busy or the result could not be stored"
        text = f"Manual Spin Failed\n\nNumber: {n}\nReason: {reason}\nAttempted by: @{actor.username}"
        return _result(actor, "manual_spin_failed", False, text, details=f"Manual spin {n} rejected: {reason}", old=old, new=coordinator.queue.snapshot())

    if was_round:
        outcome = f"Round ended early; {n} is spinning now"
    else:
        outcome = f"{n} placed at the head of the queue for the next round"
    text = f"Manual Spin Accepted\n\n{outcome}\nTriggered by: @{actor.username}"
    return _result(actor, "manual_spin", True, text, details=f"Manual spin {n}", old=old, new=coordinator.queue.snapshot())


async def handle_end_round(*, app, actor: Actor, msg: CmdEndRound) -> Result:
    coordinator = app.state.coordinator
    old = coordinator.queue.snapshot()
    ok = await coordinator.trigger_round_end(done_by=actor.username)
    if not ok:
        text = f"End Round Failed\n\nPhase: {fmt.phase_label(coordinator)}\nAttempted by: @{actor.username}"
        return _result(actor, "end_round_failed", False, text, details="No active round to end", old=old)

    outcome = f"Spinning {coordinator.current_result}" if coordinator.is_spinning else "Queue was empty; game is idle"
    text = f"Round Ended\n\n{outcome}\nEnded by: @{actor.username}"
    return _result(actor, "end_round", True, text, details=outcome, old=old, new=coordinator.queue.snapshot())


async def handle_pause(*, app, actor: Actor, msg: CmdPause) -> Result:
    coordinator = app.state.coordinator
    old_state = coordinator.get_state().value
    if not coordinator.pause():
        text = (
            "Pause Failed\n\n"
            f"Current State: {old_state.upper()}\n"
            "Reason: Game is not running\n"
            f"Attempted by: @{actor.username}"
        )
        return _result(actor, "pause_game_failed", False, text, details="Game not running", old=old_state, new=old_state)

    text = (
        "Game Paused Successfully\n\n"
        f"Previous State: {old_state.upper()}\n"
        f"Queue Length: {len(coordinator.queue)}\n"
        f"Round Active: {fmt.yes_no(coordinator.round_active)}\n"
        f"Paused by: @{actor.username}\n\n"
        "Use /resume to continue the game."
    )
    return _result(actor, "pause_game", True, text, details="Game paused", old=old_state, new=coordinator.get_state().value)


async def handle_resume(*, app, actor: Actor, msg: CmdResume) -> Result:
    coordinator = app.state.coordinator
    old_state = coordinator.get_state().value
    if not coordinator.resume():
        text = (
            "Resume Failed\n\n"
            f"Current State: {old_state.upper()}\n"
            "Reason: Game is already running\n"
            f"Attempted by: @{actor.username}"
        )
        return _result(actor, "resume_game_failed", False, text, details="Game already running", old=old_state, new=old_state)

    text = (
        "Game Resumed Successfully\n\n"
        f"Previous State: {old_state.upper()}\n"
        f"Queue Length: {len(coordinator.queue)}\n"
        f"Round Active: {fmt.yes_no(coordinator.round_active)}\n"
        f"Resumed by: @{actor.username}"
    )
    return _result(actor, "resume_game", True, text, details="Game resumed", old=old_state, new=coordinator.get_state().value)


async def handle_reset(*, app, actor: Actor, msg: CmdReset) -> Result:
    coordinator = app.state.coordinator
    old_state = coordinator.get_state().value
    cleared = coordinator.reset()
    text = (
        "Game Reset Successfully\n\n"
        "Game State: RUNNING\n"
        f"Queue: CLEARED (was {len(cleared)} items)\n"
        f"Previous Queue: {fmt.queue_text(cleared)}\n"
        f"Reset by: @{actor.username}\n\n"
        "Game is ready for new rounds."
    )
    return _result(
        actor, "reset_game", True, text, details="Full game reset",
        old={"queue": cleared, "state": old_state},
        new={"queue": [], "state": coordinator.get_state().value},
    )


async def handle_results(*, app, actor: Actor, msg: CmdResults) -> Result:
    coordinator = app.state.coordinator
    tz = app.state.settings.TIMEZONE
    limit = min(msg.limit or DEFAULT_RESULTS, MAX_RESULTS)
    try:
        results = await coordinator.get_last_spin_results(limit)
    except Exception as e:
        logger.error("Error fetching spin results: %s", e)
        text = f"Error Fetching Results\n\nThe result store is unavailable.\nRequested by: @{actor.username}"
        return _result(actor, "view_results_error", False, text, details=f"Error fetching results: {e}")

    if not results:
        text = f"No Spin Results Found\n\nRequested by: @{actor.username}\n{fmt.stamp(tz)}"
        return _result(actor, "view_results", True, text, details="Viewed 0 recent spin results")

    text = fmt.results_text(results, actor.username, tz)
    return _result(actor, "view_results", True, text, details=f"Viewed {len(results)} recent spin results")


_RESULT_ACTIONS = {
    "soft_delete_result": ("soft_delete", "Result Hidden"),
    "restore_result": ("restore", "Result Restored"),
    "purge_result": ("hard_delete", "Result Permanently Deleted"),
}


async def handle_result_action(*, app, actor: Actor, msg: CmdResultAction) -> Result:
    store = app.state.store
    method, title = _RESULT_ACTIONS[msg.type]
    try:
        ok = await getattr(store, method)(msg.result_id)
    except Exception as e:
        logger.error("%s failed for %s: %s", method, msg.result_id, e)
        ok = False

    if not ok:
        text = f"Action Failed\n\nResult: {msg.result_id}\nThe result does not exist or the store is unavailable.\nAttempted by: @{actor.username}"
        return _result(actor, f"{msg.type}_failed", False, text, details=f"{method} failed for {msg.result_id}")

    app.state.coordinator.invalidate_last_spin_cache()
    text = f"{title}\n\nResult: {msg.result_id}\nBy: @{actor.username}"
    return _result(actor, msg.type, True, text, details=f"{method} {msg.result_id}")


async def handle_help(*, app, actor: Actor, msg: CmdHelp) -> Result:
    text = fmt.help_text(app.state.coordinator, actor.username, app.state.settings.TIMEZONE)
    return _result(actor, "help_requested", True, text, details="Viewed help message")


async def handle_unknown(*, app, actor: Actor, msg: CmdUnknown) -> Result:
    text = "Unknown Command\n\nSend /help for the list of commands."
    return _result(actor, "unknown_command", False, text, details=f"Unknown command: {msg.text[:80]}")


_HANDLERS = {
    CmdAddSpin: handle_add_spin,
    CmdStatus: handle_status,
    CmdClearQueue: handle_clear_queue,
    CmdDeleteValue: handle_delete_value,
    CmdManualSpin: handle_manual_spin,
    CmdEndRound: handle_end_round,
    CmdPause: handle_pause,
    CmdResume: handle_resume,
    CmdReset: handle_reset,
    CmdResults: handle_results,
    CmdResultAction: handle_result_action,
    CmdHelp: handle_help,
    CmdUnknown: handle_unknown,
}


async def handle_admin_command(*, app, user_id: int, username: str, text: str) -> OutAdminReply:
    """
    Entry point for the chat adapter.
    - Parses the text
    - Enforces the admin allow-list
    - Routes to the command handler
    - Writes exactly one audit entry, whatever the outcome
    """
    actor = Actor(user_id=user_id, username=username or "Unknown")
    msg: AdminCommand = parse_command(text)

    if not is_admin(app.state.settings, user_id):
        logger.warning("Unauthorized %s from %s (%s): %r", msg.type, actor.username, user_id, text)
        reply, entry = _result(
            actor, f"{msg.type}_unauthorized", False,
            fmt.denied(actor.username, text.strip()[:40]),
            details=f"Attempted: {text.strip()[:80]}",
        )
    else:
        handler = _HANDLERS[type(msg)]
        reply, entry = await handler(app=app, actor=actor, msg=msg)

    await app.state.store.append_audit(entry)
    return reply

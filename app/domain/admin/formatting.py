# app/domain/admin/formatting.py
from __future__ import annotations

from typing import Iterable, List

from app.store.models import SpinResult
from app.util.timeutil import format_clock, format_datetime


def queue_text(items: Iterable[int]) -> str:
    items = list(items)
    return "[" + ", ".join(str(n) for n in items) + "]" if items else "[empty]"


def phase_label(coordinator) -> str:
    if coordinator.round_active:
        return "Round Active"
    if coordinator.is_spinning:
        return "Spinning"
    return "Idle"


def yes_no(flag: bool) -> str:
    return "YES" if flag else "NO"


def stamp(tz: str) -> str:
    return format_clock(tz=tz)


def denied(username: str, command: str) -> str:
    return (
        "Access Denied\n\n"
        f"User: @{username}\n"
        f"Command: {command}\n"
        "Status: UNAUTHORIZED\n\n"
        "Only authorized admins can control the roulette."
    )


def status_text(coordinator, username: str, tz: str) -> str:
    return (
        "ROULETTE GAME STATUS\n\n"
        f"Game State: {coordinator.get_state().value.upper()}\n"
        f"Round Active: {yes_no(coordinator.round_active)}\n"
        f"Currently Spinning: {yes_no(coordinator.is_spinning)}\n"
        f"Queue Length: {len(coordinator.queue)} spins\n"
        f"Queued Numbers: {queue_text(coordinator.queue.snapshot())}\n"
        f"Round Duration: {coordinator.round_duration_ms}ms\n"
        f"Last Update: {stamp(tz)}\n"
        f"Requested by: @{username}"
    )


def results_text(results: List[SpinResult], username: str, tz: str) -> str:
    lines = [f"RECENT SPIN RESULTS ({len(results)})", ""]
    for i, r in enumerate(results, start=1):
        lines.append(f"{i}. {r.number} {r.color} {r.parity}  [{r.id}]")
        lines.append(f"   {format_datetime(r.occurred_at, tz)}")
    lines.append("")
    lines.append(f"Requested by: @{username}")
    lines.append(f"Generated at: {stamp(tz)}")
    return "\n".join(lines)


def help_text(coordinator, username: str, tz: str) -> str:
    return f"""ROULETTE ADMIN BOT

QUEUE MANAGEMENT:
- spin: <0-36> - Add number to spin queue
- /status - Show detailed game status
- /delete_queue - Clear entire queue
- /delete <number> - Remove every occurrence of a number
- /trigger <0-36> - Put a number at the head (ends an active round now)
- /endround - End the active round now

GAME CONTROL:
- /resume - Resume paused game
- /stop - Pause game rounds
- /reset - Full reset (queue + state)

DATA & RESULTS:
- /results [limit] - View recent spin results (max 10)
- /remove_result <id> - Hide a stored result
- /restore_result <id> - Un-hide a stored result
- /purge_result <id> - Permanently delete a stored result

CURRENT STATUS:
Game State: {coordinator.get_state().value.upper()}
Phase: {phase_label(coordinator)}
Queue Length: {len(coordinator.queue)}
Round Duration: {coordinator.round_duration_ms}ms

Help requested by: @{username}
Generated at: {stamp(tz)}"""

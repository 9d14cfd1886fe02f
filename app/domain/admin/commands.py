# app/domain/admin/commands.py
from __future__ import annotations

import re
from typing import Callable, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel


# =========================
# Commands (chat text -> model)
# =========================

class CmdBase(BaseModel):
    type: str


class CmdAddSpin(CmdBase):
    type: Literal["add_spin"] = "add_spin"
    number: int


class CmdStatus(CmdBase):
    type: Literal["status"] = "status"


class CmdClearQueue(CmdBase):
    type: Literal["clear_queue"] = "clear_queue"


class CmdDeleteValue(CmdBase):
    type: Literal["delete_value"] = "delete_value"
    number: int


class CmdManualSpin(CmdBase):
    type: Literal["manual_spin"] = "manual_spin"
    number: int


class CmdEndRound(CmdBase):
    type: Literal["end_round"] = "end_round"


class CmdPause(CmdBase):
    type: Literal["pause_game"] = "pause_game"


class CmdResume(CmdBase):
    type: Literal["resume_game"] = "resume_game"


class CmdReset(CmdBase):
    type: Literal["reset_game"] = "reset_game"


class CmdResults(CmdBase):
    type: Literal["view_results"] = "view_results"
    limit: Optional[int] = None


class CmdResultAction(CmdBase):
    """Soft-delete, restore or purge one stored spin result by id."""
    type: Literal["soft_delete_result", "restore_result", "purge_result"]
    result_id: str


class CmdHelp(CmdBase):
    type: Literal["help_requested"] = "help_requested"


class CmdUnknown(CmdBase):
    type: Literal["unknown_command"] = "unknown_command"
    text: str


AdminCommand = Union[
    CmdAddSpin,
    CmdStatus,
    CmdClearQueue,
    CmdDeleteValue,
    CmdManualSpin,
    CmdEndRound,
    CmdPause,
    CmdResume,
    CmdReset,
    CmdResults,
    CmdResultAction,
    CmdHelp,
    CmdUnknown,
]


# =========================
# Parser
# =========================

# Numbers are captured as digits only; range checks happen in the handlers so
# an out-of-range value still gets an explicit "invalid number" reply.
_PATTERNS: List[Tuple[re.Pattern, Callable[[re.Match], AdminCommand]]] = [
    (re.compile(r"^spin\s*:\s*(\d+)$", re.I), lambda m: CmdAddSpin(number=int(m.group(1)))),
    (re.compile(r"^/status$", re.I), lambda m: CmdStatus()),
    (re.compile(r"^/(?:delete_queue|clear)$", re.I), lambda m: CmdClearQueue()),
    (re.compile(r"^/delete\s+(\d+)$", re.I), lambda m: CmdDeleteValue(number=int(m.group(1)))),
    (re.compile(r"^/trigger\s+(\d+)$", re.I), lambda m: CmdManualSpin(number=int(m.group(1)))),
    (re.compile(r"^/endround$", re.I), lambda m: CmdEndRound()),
    (re.compile(r"^/stop$", re.I), lambda m: CmdPause()),
    (re.compile(r"^/resume$", re.I), lambda m: CmdResume()),
    (re.compile(r"^/reset$", re.I), lambda m: CmdReset()),
    (re.compile(r"^/results(?:\s+(\d+))?$", re.I), lambda m: CmdResults(limit=int(m.group(1)) if m.group(1) else None)),
    (re.compile(r"^/remove_result\s+(\S+)$", re.I), lambda m: CmdResultAction(type="soft_delete_result", result_id=m.group(1))),
    (re.compile(r"^/restore_result\s+(\S+)$", re.I), lambda m: CmdResultAction(type="restore_result", result_id=m.group(1))),
    (re.compile(r"^/purge_result\s+(\S+)$", re.I), lambda m: CmdResultAction(type="purge_result", result_id=m.group(1))),
    (re.compile(r"^/help$", re.I), lambda m: CmdHelp()),
]


def parse_command(text: str) -> AdminCommand:
    """
    Convert one chat message into a command model.
    Bot-style suffixes ("/status@my_bot") are ignored. Never raises.
    """
    cleaned = text.strip()
    if cleaned.startswith("/"):
        head, _, tail = cleaned.partition(" ")
        cleaned = (head.split("@", 1)[0] + (" " + tail.strip() if tail.strip() else "")).strip()

    for pattern, build in _PATTERNS:
        m = pattern.match(cleaned)
        if m:
            return build(m)
    return CmdUnknown(text=text.strip())

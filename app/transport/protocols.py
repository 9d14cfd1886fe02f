# app/transport/protocols.py
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional
from pydantic import AliasChoices, BaseModel, Field


# =========================
# Shared enums / literals
# =========================

RunState = Literal["running", "paused", "stopped"]


# =========================
# Incoming (Client -> Server)
# =========================

class InTriggerSpin(BaseModel):
    # older front-ends post {"spinIndex": n}
    number: int = Field(validation_alias=AliasChoices("number", "spinIndex"))


class InAdminCommand(BaseModel):
    """What the chat adapter forwards for every message it receives."""
    user_id: int
    username: str = Field(default="Unknown", max_length=64)
    text: str = Field(min_length=1, max_length=512)


# =========================
# Outgoing (Server -> Client)
# =========================

class OutBase(BaseModel):
    type: str


class OutError(OutBase):
    type: Literal["error"] = "error"
    code: str
    message: str


class OutOk(OutBase):
    type: Literal["ok"] = "ok"
    success: bool = True
    message: str = ""


class OutGameState(OutBase):
    """
    Polling snapshot. last_spin_result is only filled while idle.
    round_closing is set while a round whose time is up is still committing
    its result; round_active stays True until the commit lands.
    Times are ms since the epoch; durations are ms.
    """
    type: Literal["game_state"] = "game_state"
    round_active: bool
    round_closing: bool = False
    is_spinning: bool
    result_number: Optional[int] = None
    round_start_time: Optional[int] = None
    round_duration_ms: int
    time_left_ms: int = 0
    spin_started_at: Optional[int] = None
    spin_duration_ms: int
    last_spin_result: Optional[Dict[str, Any]] = None
    queue_length: int = 0
    game_state: RunState = "running"
    server_time: int


class OutSpinResults(OutBase):
    type: Literal["spin_results"] = "spin_results"
    results: List[Dict[str, Any]]
    count: int
    include_deleted: bool = False


class OutAuditLogs(OutBase):
    type: Literal["audit_logs"] = "audit_logs"
    entries: List[Dict[str, Any]]
    count: int


class OutAdminReply(OutBase):
    type: Literal["admin_reply"] = "admin_reply"
    ok: bool
    action: str
    text: str

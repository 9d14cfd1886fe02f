# app/store/models.py
from __future__ import annotations

from typing import Any, Optional
from pydantic import BaseModel

from app.domain.common.types import Color, Parity


class SpinResult(BaseModel):
    id: str
    number: int
    color: Color
    parity: Parity
    done_by: str = "System"
    is_deleted: bool = False
    deleted_at: Optional[int] = None   # ms epoch
    occurred_at: int                   # ms epoch


class AuditLogEntry(BaseModel):
    """
    One admin-facing action, successful or rejected. Append-only.
    old_value / new_value hold JSON-able before/after state (queue, run state ...).
    """
    id: Optional[str] = None
    actor_id: int
    actor_name: str
    action: str
    details: str = ""
    old_value: Any = None
    new_value: Any = None
    success: bool
    occurred_at: Optional[int] = None

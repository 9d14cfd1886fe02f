from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from app.domain.admin.handlers import handle_admin_command
from app.transport.protocols import InAdminCommand, OutAuditLogs


def _require_token(request: Request) -> None:
    token = request.app.state.settings.ADMIN_API_TOKEN
    if token and request.headers.get("X-Admin-Token", "") != token:
        raise HTTPException(status_code=401, detail="unauthorized")


router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(_require_token)])


@router.post("/command")
async def admin_command(body: InAdminCommand, request: Request):
    """
    Chat webhook: the bot adapter forwards every message here and relays
    `text` back to the chat. Admin allow-listing happens per user_id.
    """
    reply = await handle_admin_command(
        app=request.app,
        user_id=body.user_id,
        username=body.username,
        text=body.text,
    )
    return reply.model_dump()


@router.get("/audit-logs")
async def audit_logs(request: Request, limit: int = Query(20, ge=1, le=200)):
    """Recent audit entries, newest first (debug/admin)."""
    store = request.app.state.store
    entries = await store.get_recent_audit(limit)
    return OutAuditLogs(entries=[e.model_dump() for e in entries], count=len(entries)).model_dump()

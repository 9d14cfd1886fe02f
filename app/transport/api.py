# app/transport/api.py
"""
Polling endpoints for the wheel front-end plus manual triggers.

Reads that a polling client makes (game-state, spin-result, last results,
spin-end) count as frontend activity for the inactivity sweep.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from app.transport.protocols import InTriggerSpin, OutError, OutOk, OutSpinResults

logger = logging.getLogger(__name__)

router = APIRouter(tags=["game"])


def _error(status: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content=OutError(code=code, message=message).model_dump())


@router.get("/status")
async def status(request: Request):
    coordinator = request.app.state.coordinator
    snapshot = await coordinator.get_state_snapshot()
    return {
        **snapshot.model_dump(),
        "queued_spins": len(coordinator.queue),
        "queue": coordinator.queue.snapshot(),
        "is_game_running": coordinator.is_running(),
        "status_message": coordinator.get_status_summary(),
    }


@router.get("/api/game-state")
async def game_state(request: Request):
    coordinator = request.app.state.coordinator
    coordinator.record_frontend_activity()
    snapshot = await coordinator.get_state_snapshot()
    logger.debug("Game state polled: round=%s spinning=%s", snapshot.round_active, snapshot.is_spinning)
    return snapshot.model_dump()


@router.get("/api/spin-result")
async def spin_result(request: Request):
    coordinator = request.app.state.coordinator
    coordinator.record_frontend_activity()
    result = coordinator.get_spin_result()
    if result is None:
        return _error(404, "NO_ACTIVE_SPIN", "No active spin result available")
    return result


@router.get("/api/last-spin-results")
async def last_spin_results(
    request: Request,
    limit: int = Query(5, ge=1, le=100),
    include_deleted: bool = Query(False, alias="includeDeleted"),
):
    coordinator = request.app.state.coordinator
    coordinator.record_frontend_activity()
    try:
        results = await coordinator.get_last_spin_results(limit, include_deleted)
    except Exception:
        logger.exception("Failed to fetch last spin results")
        return _error(500, "STORE_UNAVAILABLE", "Failed to fetch spin results")
    return OutSpinResults(
        results=[r.model_dump() for r in results],
        count=len(results),
        include_deleted=include_deleted,
    ).model_dump()


async def _result_action(request: Request, spin_id: str, method: str, done: str) -> JSONResponse | dict:
    store = request.app.state.store
    try:
        ok = await getattr(store, method)(spin_id)
    except Exception:
        logger.exception("%s failed for spin result %s", method, spin_id)
        return _error(500, "STORE_UNAVAILABLE", "Internal server error")
    if not ok:
        return _error(404, "RESULT_NOT_FOUND", f"Spin result {spin_id} not found")
    request.app.state.coordinator.invalidate_last_spin_cache()
    logger.info("Spin result %s %s", spin_id, done)
    return OutOk(message=f"Spin result {done}").model_dump()


@router.post("/api/spin-results/{spin_id}/delete")
async def soft_delete_result(spin_id: str, request: Request):
    return await _result_action(request, spin_id, "soft_delete", "deleted")


@router.post("/api/spin-results/{spin_id}/restore")
async def restore_result(spin_id: str, request: Request):
    return await _result_action(request, spin_id, "restore", "restored")


@router.delete("/api/spin-results/{spin_id}")
async def hard_delete_result(spin_id: str, request: Request):
    return await _result_action(request, spin_id, "hard_delete", "permanently deleted")


@router.post("/api/spin-end")
async def spin_end(request: Request):
    coordinator = request.app.state.coordinator
    coordinator.record_frontend_activity()
    if not await coordinator.end_spin():
        return _error(400, "NO_ACTIVE_SPIN", "No active spin to end")
    return OutOk(message="Spin ended successfully").model_dump()


@router.post("/api/trigger-round-end")
async def trigger_round_end(request: Request):
    coordinator = request.app.state.coordinator
    if not await coordinator.trigger_round_end():
        return _error(400, "NO_ACTIVE_ROUND", "No active round to end")
    message = "Round ended and spin started" if coordinator.is_spinning else "Round ended with an empty queue"
    return OutOk(message=message).model_dump()


@router.post("/api/trigger-spin")
async def trigger_spin(body: InTriggerSpin, request: Request):
    coordinator = request.app.state.coordinator
    if not await coordinator.trigger_manual_spin(body.number):
        return _error(
            400,
            "SPIN_REJECTED",
            "Failed to trigger spin. Check the number is 0-36 and no spin is already active.",
        )
    return OutOk(message=f"Spin {body.number} triggered successfully").model_dump()

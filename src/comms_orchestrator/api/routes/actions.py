"""Approval, rejection and execution of action records."""

import structlog
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from comms_orchestrator.errors import InvalidTransitionError, NotFoundError

from ..auth import verify_worker_token

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/actions")


async def _run(action_id: str, operation):
    try:
        record = await operation()
    except NotFoundError as e:
        return JSONResponse(status_code=404, content={"error": e.message})
    except InvalidTransitionError as e:
        return JSONResponse(status_code=409, content={"error": e.message})
    logger.info("actions.transitioned", action_id=action_id, status=record.status.value)
    return record.model_dump(mode="json")


@router.post("/{action_id}/approve")
async def approve_action(
    action_id: str,
    request: Request,
    body: dict[str, Any] | None = None,
    _auth: None = Depends(verify_worker_token),
):
    approved_by = (body or {}).get("approved_by")
    service = request.app.state.actions
    return await _run(action_id, lambda: service.approve(action_id, approved_by))


@router.post("/{action_id}/reject")
async def reject_action(
    action_id: str,
    request: Request,
    body: dict[str, Any] | None = None,
    _auth: None = Depends(verify_worker_token),
):
    reason = (body or {}).get("reason")
    service = request.app.state.actions
    return await _run(action_id, lambda: service.reject(action_id, reason))


@router.post("/{action_id}/execute")
async def execute_action(
    action_id: str,
    request: Request,
    _auth: None = Depends(verify_worker_token),
):
    service = request.app.state.actions
    return await _run(action_id, lambda: service.execute(action_id))

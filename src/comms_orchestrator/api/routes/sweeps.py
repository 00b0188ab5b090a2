"""Externally triggered batch and reminder sweeps."""

import structlog

from fastapi import APIRouter, Depends, Request

from comms_orchestrator.errors import CommsOrchestratorError

from ..auth import verify_worker_token

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/sweeps")


@router.post("/batches")
async def sweep_batches(request: Request, _auth: None = Depends(verify_worker_token)):
    """Claim and process every due batch."""
    try:
        result = await request.app.state.scheduler.sweep()
    except CommsOrchestratorError as e:
        logger.error("sweeps.batches_failed", error=str(e))
        return {"success": False, "error": e.message}
    return {"success": True, **result.to_dict()}


@router.post("/reminders")
async def sweep_reminders(request: Request, _auth: None = Depends(verify_worker_token)):
    """Run action detection for projects due a reminder check."""
    try:
        result = await request.app.state.reminders.run()
    except CommsOrchestratorError as e:
        logger.error("sweeps.reminders_failed", error=str(e))
        return {"success": False, "error": e.message}
    return {"success": True, **result.to_dict()}

"""Webhook ingress and normalization endpoints."""

import structlog
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import JSONResponse

from comms_orchestrator.errors import (
    AlreadyProcessedError,
    DatabaseError,
    NotFoundError,
    ParseError,
)

from ..auth import verify_worker_token

logger = structlog.get_logger(__name__)

router = APIRouter()

SIGNATURE_HEADERS = ("x-twilio-signature", "x-justcall-signature", "x-signature")


async def _read_payload(request: Request) -> dict[str, Any]:
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
        form = await request.form()
        return {key: value for key, value in form.items()}
    body = await request.json()
    if not isinstance(body, dict):
        raise ValueError("Webhook body must be a JSON object")
    return body


def _error(status_code: int, error: str, details: Any = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "details": details})


@router.post("/webhooks/{service}")
async def receive_webhook(service: str, request: Request, background_tasks: BackgroundTasks):
    """Store a provider webhook, normalize it and dispatch in the background."""
    log = logger.bind(service=service)
    try:
        payload = await _read_payload(request)
    except ValueError as e:
        return _error(400, "Invalid webhook body", str(e))

    signature = next(
        (request.headers[h] for h in SIGNATURE_HEADERS if h in request.headers),
        None,
    )
    normalizer = request.app.state.normalizer
    try:
        result = await normalizer.ingest(service, payload, signature=signature)
    except DatabaseError as e:
        log.error("webhooks.store_failed", error=str(e))
        return _error(500, "Failed to store webhook", e.message)

    if result.communication_id:
        background_tasks.add_task(normalizer.dispatch_safely, result.communication_id)
    log.info(
        "webhooks.received",
        webhook_id=result.webhook_id,
        communication_id=result.communication_id,
        error=result.error,
    )
    return {"success": True, "webhook_id": result.webhook_id, "communication_id": result.communication_id}


@router.post("/normalize")
async def normalize_webhook(
    body: dict[str, Any],
    request: Request,
    background_tasks: BackgroundTasks,
    _auth: None = Depends(verify_worker_token),
):
    """Normalize a stored webhook by id."""
    webhook_id = body.get("webhookId") or body.get("webhook_id")
    service = body.get("service")
    if not webhook_id or not service:
        return _error(400, "Missing required fields", {"required": ["webhookId", "service"]})

    log = logger.bind(webhook_id=webhook_id, service=service)
    normalizer = request.app.state.normalizer
    try:
        result = await normalizer.normalize(webhook_id, service)
    except NotFoundError as e:
        return _error(404, "Webhook not found", e.message)
    except AlreadyProcessedError as e:
        return _error(409, "Webhook already processed", e.message)
    except ParseError as e:
        log.warning("normalize.parse_failed", error=str(e))
        return _error(422, "Failed to parse webhook", e.message)
    except DatabaseError as e:
        log.error("normalize.store_failed", error=str(e))
        return _error(500, "Failed to store communication", e.message)

    background_tasks.add_task(normalizer.dispatch_safely, result.communication_id)
    log.info("normalize.complete", communication_id=result.communication_id)
    return {"success": True, "communication_id": result.communication_id}

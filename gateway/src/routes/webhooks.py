"""
GitHub webhook endpoints.
"""

from fastapi import APIRouter, Request, HTTPException, Header, Depends
from typing import Optional
import logging
import uuid

from engine.src.models.definition import EventKind, PipelineDefinition
from engine.src.models.event import TriggerEvent
from engine.src.services.provisioner import ProvisionError, check_secrets
from engine.src.services.secrets import SecretStore
from engine.src.services.triggers import should_run
from gateway.src.services.github import (
    verify_signature,
    parse_webhook_payload,
    PULL_REQUEST_ACTIONS,
)
from gateway.src.services.pipeline import get_definition, get_secret_store
from gateway.src.services.queue import enqueue_pipeline_run

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

async def process_trigger_event(
    event: TriggerEvent,
    definition: PipelineDefinition,
    secret_store: SecretStore,
):
    """Evaluate triggers, check secrets and queue a run."""

    if not event.commit_sha:
        logger.warning("No commit SHA in webhook payload")
        return {"status": "skipped", "reason": "No commit SHA"}

    if not should_run(definition, event):
        return {
            "status": "skipped",
            "reason": f"No trigger for {event.kind.value} on '{event.branch}'",
        }

    # Fail before queueing so the caller sees a missing secret immediately
    try:
        check_secrets(definition, secret_store)
    except ProvisionError as e:
        logger.error(f"Cannot start '{definition.name}' for {event.repo_full_name}: {e}")
        raise HTTPException(
            status_code=422,
            detail={"error": e.kind.value, "secrets": list(e.secret_names)},
        )

    run_id = str(uuid.uuid4())
    await enqueue_pipeline_run(run_id=run_id, event=event)

    logger.info(f"Pipeline run {run_id} queued for {event.kind.value} on '{event.branch}'")

    return {
        "status": "queued",
        "run_id": run_id,
        "steps": len(definition.steps),
    }

@router.post("/github")
async def github_webhook(
    request: Request,
    x_hub_signature_256: Optional[str] = Header(None),
    x_github_event: Optional[str] = Header(None),
    definition: PipelineDefinition = Depends(get_definition),
    secret_store: SecretStore = Depends(get_secret_store),
):
    """
    Receive GitHub webhook events.
    """
    # Get raw body for signature verification
    body = await request.body()

    if not verify_signature(body, x_hub_signature_256):
        raise HTTPException(status_code=401, detail="Invalid signature")

    # Parse JSON payload
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    if x_github_event == "ping":
        return {"status": "pong", "message": "Webhook configured successfully"}

    event = parse_webhook_payload(x_github_event, payload) if isinstance(payload, dict) else None

    if event is None:
        return {
            "status": "ignored",
            "event": x_github_event,
            "message": f"Event type '{x_github_event}' not handled"
        }

    if event.kind == EventKind.PULL_REQUEST and event.action not in PULL_REQUEST_ACTIONS:
        return {
            "status": "ignored",
            "event": x_github_event,
            "message": f"Pull request action '{event.action}' not handled"
        }

    if event.kind == EventKind.PUSH and payload.get("deleted"):
        return {"status": "skipped", "reason": "Branch deleted"}

    return await process_trigger_event(event, definition, secret_store)

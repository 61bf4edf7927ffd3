"""
GitHub webhook validation and payload parsing.
"""

import hmac
import hashlib
from typing import Optional, Dict, Any

from engine.src.models.definition import EventKind
from engine.src.models.event import TriggerEvent
from gateway.src.config import get_settings

settings = get_settings()

# Pull request activity that starts a run; everything else is ignored
PULL_REQUEST_ACTIONS = ("opened", "synchronize", "reopened")

def verify_signature(payload: bytes, signature: str) -> bool:
    """Verify GitHub webhook signature."""
    if not settings.github_webhook_secret:
        # Skip verification if no secret configured (development)
        return True

    expected = "sha256=" + hmac.new(
        settings.github_webhook_secret.encode(),
        payload,
        hashlib.sha256
    ).hexdigest()
    return hmac.compare_digest(expected, signature or "")

def branch_from_ref(ref: str) -> str:
    # refs/heads/main -> main
    return ref.replace("refs/heads/", "", 1) if ref.startswith("refs/heads/") else ref

def parse_push_payload(payload: Dict[str, Any]) -> TriggerEvent:
    """Extract the trigger event from a push webhook."""
    repo = payload.get("repository") or {}
    head_commit = payload.get("head_commit") or {}

    return TriggerEvent(
        kind=EventKind.PUSH,
        branch=branch_from_ref(payload.get("ref", "")),
        commit_sha=head_commit.get("id") or payload.get("after", ""),
        clone_url=repo.get("clone_url", ""),
        repo_full_name=repo.get("full_name", ""),
        triggered_by=(payload.get("pusher") or {}).get("name", ""),
    )

def parse_pull_request_payload(payload: Dict[str, Any]) -> TriggerEvent:
    """
    Extract the trigger event from a pull_request webhook.
    The branch is the PR's base branch, the commit is the PR head.
    """
    pr = payload.get("pull_request") or {}
    base = pr.get("base") or {}
    head = pr.get("head") or {}
    head_repo = head.get("repo") or {}
    repo = payload.get("repository") or {}

    return TriggerEvent(
        kind=EventKind.PULL_REQUEST,
        branch=base.get("ref", ""),
        commit_sha=head.get("sha", ""),
        clone_url=head_repo.get("clone_url") or repo.get("clone_url", ""),
        repo_full_name=repo.get("full_name", ""),
        triggered_by=(pr.get("user") or {}).get("login", "")
        or (payload.get("sender") or {}).get("login", ""),
        action=payload.get("action"),
    )

def parse_webhook_payload(event_name: str, payload: Dict[str, Any]) -> Optional[TriggerEvent]:
    """Trigger event for a push/pull_request webhook, None for anything else."""
    if event_name == EventKind.PUSH.value:
        return parse_push_payload(payload)
    if event_name == EventKind.PULL_REQUEST.value:
        return parse_pull_request_payload(payload)
    return None

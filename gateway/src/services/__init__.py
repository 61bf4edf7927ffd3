from gateway.src.services.github import (
    verify_signature,
    parse_webhook_payload,
    parse_push_payload,
    parse_pull_request_payload,
    PULL_REQUEST_ACTIONS,
)
from gateway.src.services.pipeline import get_definition, get_secret_store
from gateway.src.services.queue import (
    enqueue_pipeline_run,
    get_run_status,
    get_queue_length,
)

__all__ = [
    "verify_signature",
    "parse_webhook_payload",
    "parse_push_payload",
    "parse_pull_request_payload",
    "PULL_REQUEST_ACTIONS",
    "get_definition",
    "get_secret_store",
    "enqueue_pipeline_run",
    "get_run_status",
    "get_queue_length",
]

"""
Pipeline executor - runs one queued pipeline job end to end.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from engine.src.config import get_settings
from engine.src.models.definition import PipelineDefinition
from engine.src.models.event import TriggerEvent
from engine.src.models.run import RunResult, RunStatus, StepResult
from engine.src.services.definition_loader import load_definition
from engine.src.services.provisioner import ProvisionError, run_scope
from engine.src.services.reporter import ResultReporter
from engine.src.services.secrets import EnvSecretStore, SecretStore
from engine.src.services.status_reporter import RunStore, get_run_store
from engine.src.services.step_runner import StepRunner
from engine.src.services.triggers import should_run

logger = logging.getLogger(__name__)
settings = get_settings()

async def execute_pipeline(
    job_data: Dict[str, Any],
    definition: Optional[PipelineDefinition] = None,
    secret_store: Optional[SecretStore] = None,
    run_store: Optional[RunStore] = None,
    reporter: Optional[ResultReporter] = None,
    cancel: Optional[asyncio.Event] = None,
) -> Optional[RunResult]:
    """
    Execute a pipeline run.

    Returns None when the event does not trigger the pipeline. Raises
    ProvisionError, with nothing recorded, when a secret is missing.
    """
    run_id = job_data["run_id"]
    event = TriggerEvent(**job_data["event"])
    definition = definition or load_definition(settings.workflow_path)

    if not should_run(definition, event):
        logger.info(f"Run {run_id}: {event.kind.value} on '{event.branch}' does not trigger '{definition.name}'")
        return None

    secret_store = secret_store or EnvSecretStore(settings.secret_prefix)
    run_store = run_store or get_run_store()

    logger.info(f"Starting pipeline run {run_id} with {len(definition.steps)} steps")

    try:
        with run_scope(
            definition,
            secret_store,
            event,
            run_id=run_id,
            workspace_root=settings.workspace_root,
        ) as context:
            run_store.create_run(run_id, event, definition)

            async def record_step(step: StepResult):
                run_store.update_step_status(run_id, step)

            runner = StepRunner(reporter=reporter, progress_callback=record_step)
            try:
                result = await runner.run(definition.steps, context, cancel=cancel)
            except (Exception, asyncio.CancelledError):
                logger.error(f"Run {run_id} aborted, marking it failed")
                run_store.update_run_status(run_id, RunStatus.FAILED, finished_at=datetime.utcnow())
                raise
    except ProvisionError as e:
        logger.error(f"Run {run_id} not provisioned: {e}")
        raise

    for outcome in result.reports:
        run_store.update_report_step(run_id, outcome)

    failed = result.failed_step
    run_store.update_run_status(
        run_id,
        result.status,
        finished_at=result.finished_at,
        failed_step=failed.step_order if failed else None,
        report=result.report,
    )

    logger.info(f"Pipeline run {run_id} finished with status: {result.status.value}")
    return result

"""
Record run and step status in the database.

Rows are only written once a run has been provisioned; outputs stored
here have already been masked by the run context.
"""

import logging
from datetime import datetime
from functools import lru_cache
from typing import Any, Dict, List, Optional

from sqlalchemy import create_engine, update
from sqlalchemy.orm import sessionmaker

from engine.src.config import get_settings
from engine.src.models.db import Base, PipelineRun, PipelineStep
from engine.src.models.definition import PipelineDefinition
from engine.src.models.event import TriggerEvent
from engine.src.models.run import ReportOutcome, ReportStatus, RunStatus, StepResult

logger = logging.getLogger(__name__)

# How a reporting step's outcome shows up in the steps table
REPORT_STEP_STATUS = {
    ReportStatus.ACCEPTED: "succeeded",
    ReportStatus.DEGRADED: "degraded",
    ReportStatus.SKIPPED: "skipped",
}

def describe_definition(definition: PipelineDefinition) -> Dict[str, Any]:
    """JSON-safe summary of a definition. Secret references stay references."""
    return {
        "name": definition.name,
        "job": definition.job_id,
        "runs_on": definition.runs_on,
        "steps": [
            {"name": step.display_name, "action": step.action.value}
            for step in definition.steps
        ],
    }

class RunStore:
    def __init__(self, database_url: Optional[str] = None):
        self.engine = create_engine(database_url or get_settings().database_url)
        self.Session = sessionmaker(bind=self.engine)

    def create_tables(self):
        Base.metadata.create_all(self.engine)

    def create_run(
        self,
        run_id: str,
        event: TriggerEvent,
        definition: PipelineDefinition,
        started_at: Optional[datetime] = None,
    ):
        """Insert the run with every declared step pending."""
        with self.Session() as session:
            session.add(PipelineRun(
                id=run_id,
                repo_full_name=event.repo_full_name,
                event_kind=event.kind.value,
                commit_sha=event.commit_sha,
                branch=event.branch,
                status=RunStatus.RUNNING.value,
                triggered_by=event.triggered_by,
                definition=describe_definition(definition),
                started_at=started_at or datetime.utcnow(),
            ))
            for i, step in enumerate(definition.steps):
                session.add(PipelineStep(
                    run_id=run_id,
                    name=step.display_name,
                    action=step.action.value,
                    status="pending",
                    step_order=i,
                ))
            session.commit()
        logger.info(f"Recorded run {run_id} with {len(definition.steps)} steps")

    def update_run_status(
        self,
        run_id: str,
        status: RunStatus,
        finished_at: Optional[datetime] = None,
        failed_step: Optional[int] = None,
        report: Optional[ReportOutcome] = None,
    ):
        """Update pipeline run status in database."""
        with self.Session() as session:
            values = {"status": status.value, "updated_at": datetime.utcnow()}

            if finished_at:
                values["finished_at"] = finished_at
            if failed_step is not None:
                values["failed_step"] = failed_step
            if report is not None:
                values["report_status"] = report.status.value
                values["report_detail"] = report.detail

            session.execute(
                update(PipelineRun)
                .where(PipelineRun.id == run_id)
                .values(**values)
            )
            session.commit()
            logger.info(f"Updated run {run_id} status to {status.value}")

    def update_step_status(self, run_id: str, step: StepResult):
        """Update pipeline step status in database."""
        values = {
            "status": step.status.value,
            "error_kind": step.error_kind.value if step.error_kind else None,
            "exit_code": step.exit_code,
            "updated_at": datetime.utcnow(),
        }
        if step.logs is not None or step.error is not None:
            values["logs"] = "\n".join(part for part in (step.logs, step.error) if part)
        if step.started_at:
            values["started_at"] = step.started_at
        if step.finished_at:
            values["finished_at"] = step.finished_at

        self._update_step(run_id, step.step_order, values)
        logger.debug(f"Updated step {step.step_order} of run {run_id} to {step.status.value}")

    def update_report_step(self, run_id: str, outcome: ReportOutcome):
        self._update_step(run_id, outcome.step_order, {
            "status": REPORT_STEP_STATUS[outcome.status],
            "logs": outcome.detail,
            "finished_at": datetime.utcnow(),
            "updated_at": datetime.utcnow(),
        })

    def _update_step(self, run_id: str, step_order: int, values: Dict[str, Any]):
        with self.Session() as session:
            session.execute(
                update(PipelineStep)
                .where(PipelineStep.run_id == run_id)
                .where(PipelineStep.step_order == step_order)
                .values(**values)
            )
            session.commit()

    def get_run_steps(self, run_id: str) -> List[Dict[str, Any]]:
        """Get all steps for a run."""
        with self.Session() as session:
            steps = session.query(PipelineStep).filter(
                PipelineStep.run_id == run_id
            ).order_by(PipelineStep.step_order).all()

            return [
                {
                    "order": s.step_order,
                    "name": s.name,
                    "action": s.action,
                    "status": s.status,
                    "error_kind": s.error_kind,
                    "logs": s.logs,
                }
                for s in steps
            ]

    def get_run(self, run_id: str) -> Optional[Dict[str, Any]]:
        with self.Session() as session:
            run = session.get(PipelineRun, run_id)
            if run is None:
                return None
            return {
                "id": run.id,
                "status": run.status,
                "branch": run.branch,
                "event_kind": run.event_kind,
                "failed_step": run.failed_step,
                "report_status": run.report_status,
                "definition": run.definition,
            }

@lru_cache()
def get_run_store() -> RunStore:
    return RunStore()

"""
Run execution models.
"""

from pydantic import BaseModel
from typing import List, Optional, Dict, Any
from datetime import datetime
from enum import Enum

from engine.src.models.definition import StepAction

COVERAGE_ARTIFACT = "coverage"


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class StepErrorKind(str, Enum):
    NON_ZERO_EXIT = "non_zero_exit"
    TIMEOUT = "timeout"
    ACTION_UNAVAILABLE = "action_unavailable"
    ERROR = "error"


class ReportStatus(str, Enum):
    ACCEPTED = "accepted"
    DEGRADED = "degraded"
    SKIPPED = "skipped"


class StepResult(BaseModel):
    step_order: int
    name: str
    action: StepAction
    status: StepStatus = StepStatus.PENDING
    error_kind: Optional[StepErrorKind] = None
    exit_code: Optional[int] = None
    logs: Optional[str] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class ReportOutcome(BaseModel):
    status: ReportStatus
    step_order: Optional[int] = None
    artifact: Optional[str] = None
    detail: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.status == ReportStatus.DEGRADED


class RunResult(BaseModel):
    """
    Terminal record of a run.

    `steps` holds build/test steps only; reporting steps are recorded in
    `reports` so the two verdicts stay independent.
    """

    run_id: str
    status: RunStatus = RunStatus.PENDING
    branch: Optional[str] = None
    commit_sha: Optional[str] = None
    steps: List[StepResult] = []
    reports: List[ReportOutcome] = []
    artifacts: Dict[str, str] = {}
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.SUCCEEDED

    @property
    def failed_step(self) -> Optional[StepResult]:
        for step in self.steps:
            if step.status == StepStatus.FAILED:
                return step
        return None

    @property
    def report(self) -> Optional[ReportOutcome]:
        return self.reports[-1] if self.reports else None


class PipelineJob(BaseModel):
    run_id: str
    event: Dict[str, Any]
    queued_at: Optional[str] = None

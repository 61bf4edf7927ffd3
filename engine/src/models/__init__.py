from engine.src.models.definition import (
    EventKind,
    StepAction,
    SecretReference,
    EnvValue,
    TriggerRule,
    Step,
    PipelineDefinition,
)
from engine.src.models.event import TriggerEvent
from engine.src.models.run import (
    COVERAGE_ARTIFACT,
    StepStatus,
    RunStatus,
    StepErrorKind,
    ReportStatus,
    StepResult,
    ReportOutcome,
    RunResult,
    PipelineJob,
)

__all__ = [
    "EventKind",
    "StepAction",
    "SecretReference",
    "EnvValue",
    "TriggerRule",
    "Step",
    "PipelineDefinition",
    "TriggerEvent",
    "COVERAGE_ARTIFACT",
    "StepStatus",
    "RunStatus",
    "StepErrorKind",
    "ReportStatus",
    "StepResult",
    "ReportOutcome",
    "RunResult",
    "PipelineJob",
]

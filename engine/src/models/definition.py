"""
Pipeline definition models.

A definition is parsed once from the workflow file and never mutated.
Secret values are never stored here, only references to them.
"""

from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from pydantic import BaseModel


class EventKind(str, Enum):
    PUSH = "push"
    PULL_REQUEST = "pull_request"


class StepAction(str, Enum):
    CHECKOUT = "checkout"
    COMMAND = "command"
    REPORT = "report"
    UNKNOWN = "unknown"


class SecretReference(BaseModel):
    name: str

    class Config:
        frozen = True

    def __str__(self) -> str:
        return "${{ secrets.%s }}" % self.name


EnvValue = Union[SecretReference, str]


def _secret_names(values: Dict[str, EnvValue]) -> List[str]:
    return [v.name for v in values.values() if isinstance(v, SecretReference)]


class TriggerRule(BaseModel):
    kind: EventKind
    # Empty means every branch
    branches: Tuple[str, ...] = ()

    class Config:
        frozen = True


class Step(BaseModel):
    action: StepAction
    name: Optional[str] = None
    run: Optional[str] = None
    uses: Optional[str] = None
    env: Dict[str, EnvValue] = {}
    inputs: Dict[str, EnvValue] = {}
    timeout_minutes: Optional[float] = None

    class Config:
        frozen = True

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        if self.uses:
            return f"Run {self.uses}"
        if self.run and self.run.strip():
            return f"Run {self.run.strip().splitlines()[0]}"
        return self.action.value

    @property
    def is_report(self) -> bool:
        return self.action == StepAction.REPORT

    def secret_names(self) -> List[str]:
        return _secret_names(self.env) + _secret_names(self.inputs)


class PipelineDefinition(BaseModel):
    name: str = "Unnamed Pipeline"
    job_id: str = "build"
    runs_on: Optional[str] = None
    triggers: Tuple[TriggerRule, ...] = ()
    env: Dict[str, EnvValue] = {}
    steps: Tuple[Step, ...] = ()

    class Config:
        frozen = True

    def secret_names(self) -> List[str]:
        """Every secret referenced anywhere in the definition, in declaration order."""
        names = _secret_names(self.env)
        for step in self.steps:
            names.extend(step.secret_names())
        return list(dict.fromkeys(names))

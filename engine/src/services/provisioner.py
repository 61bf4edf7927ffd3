"""
Environment provisioning for a single run.

A RunContext owns the run's working directory and resolved secret values.
It is created by `provision` and must be discarded when the run ends;
`run_scope` does both.
"""

import logging
import os
import shutil
import tempfile
import uuid
from contextlib import contextmanager
from enum import Enum
from typing import Dict, Iterator, List, Mapping, Optional, Sequence

from engine.src.models.definition import EnvValue, PipelineDefinition, SecretReference, Step
from engine.src.models.event import TriggerEvent
from engine.src.models.run import StepStatus
from engine.src.services.secrets import SecretStore

logger = logging.getLogger(__name__)

MASK = "***"

# Host variables a build needs to find its toolchain
PASSTHROUGH_VARS = ("PATH", "HOME", "LANG", "LC_ALL", "TMPDIR", "USER", "SHELL")


class ProvisionErrorKind(str, Enum):
    MISSING_SECRET = "missing_secret"


class ProvisionError(Exception):
    """Raised when a run cannot be provisioned. No step has executed."""

    def __init__(self, kind: ProvisionErrorKind, message: str, secret_names: Sequence[str] = ()):
        self.kind = kind
        self.secret_names = tuple(secret_names)
        super().__init__(message)


def find_missing_secrets(definition: PipelineDefinition, secret_store: SecretStore) -> List[str]:
    return [name for name in definition.secret_names() if secret_store.get(name) is None]


def check_secrets(definition: PipelineDefinition, secret_store: SecretStore):
    """Fail with MISSING_SECRET if any referenced secret is absent."""
    missing = find_missing_secrets(definition, secret_store)
    if missing:
        raise ProvisionError(
            ProvisionErrorKind.MISSING_SECRET,
            f"Missing secrets: {', '.join(missing)}",
            secret_names=missing,
        )


def resolve_secrets(definition: PipelineDefinition, secret_store: SecretStore) -> Dict[str, str]:
    check_secrets(definition, secret_store)
    return {name: secret_store.get(name) for name in definition.secret_names()}


class RunContext:
    """Mutable state of one run: environment, secrets, working directory, step statuses."""

    def __init__(
        self,
        run_id: str,
        event: TriggerEvent,
        env: Dict[str, EnvValue],
        secrets: Dict[str, str],
        temp_dir: str,
        workdir: str,
    ):
        self.run_id = run_id
        self.event = event
        self.temp_dir = temp_dir
        self.workdir = workdir
        self.step_statuses: Dict[int, StepStatus] = {}
        self._discarded = False
        self._secrets = dict(secrets)
        self._job_env = self._resolve_all(env)

    @property
    def env(self) -> Dict[str, str]:
        """Job-scoped environment (copy)."""
        return dict(self._job_env)

    @property
    def discarded(self) -> bool:
        return self._discarded

    def resolve(self, value: EnvValue) -> str:
        if isinstance(value, SecretReference):
            if self._discarded:
                raise RuntimeError(f"Run {self.run_id} context already discarded")
            return self._secrets[value.name]
        return value

    def _resolve_all(self, values: Mapping[str, EnvValue]) -> Dict[str, str]:
        return {key: self.resolve(value) for key, value in values.items()}

    def step_env(self, step: Step) -> Dict[str, str]:
        """Job env extended by the step's own env, in a fresh mapping."""
        merged = dict(self._job_env)
        merged.update(self._resolve_all(step.env))
        return merged

    def step_inputs(self, step: Step) -> Dict[str, str]:
        return self._resolve_all(step.inputs)

    def process_env(self, step: Step) -> Dict[str, str]:
        """Full environment for a step's subprocess."""
        env = {key: os.environ[key] for key in PASSTHROUGH_VARS if key in os.environ}
        env.update({
            "CI": "true",
            "SHIPLINE_RUN_ID": self.run_id,
            "SHIPLINE_EVENT_NAME": self.event.kind.value,
            "SHIPLINE_REF_NAME": self.event.branch,
            "SHIPLINE_SHA": self.event.commit_sha,
            "SHIPLINE_WORKSPACE": self.workdir,
        })
        env.update(self.step_env(step))
        return env

    def mask(self, text: Optional[str]) -> Optional[str]:
        """Replace every secret value in text with ***."""
        if not text:
            return text
        for value in sorted(self._secrets.values(), key=len, reverse=True):
            if value:
                text = text.replace(value, MASK)
        return text

    def record(self, step_order: int, status: StepStatus):
        self.step_statuses[step_order] = status

    def discard(self):
        """Drop secret values and remove the working directory."""
        self._secrets.clear()
        self._job_env.clear()
        self._discarded = True
        try:
            if self.temp_dir and os.path.exists(self.temp_dir):
                shutil.rmtree(self.temp_dir)
        except OSError as e:
            logger.warning(f"Failed to remove workspace for run {self.run_id}: {e}")


def provision(
    definition: PipelineDefinition,
    secret_store: SecretStore,
    event: TriggerEvent,
    run_id: Optional[str] = None,
    workspace_root: Optional[str] = None,
) -> RunContext:
    """
    Resolve every secret the definition references and create a fresh
    working directory. Raises ProvisionError before anything is created
    if a secret is missing.
    """
    run_id = run_id or str(uuid.uuid4())
    secrets = resolve_secrets(definition, secret_store)

    temp_dir = tempfile.mkdtemp(prefix="shipline_", dir=workspace_root)
    workdir = os.path.join(temp_dir, "repo")
    os.makedirs(workdir)

    logger.info(f"Provisioned run {run_id} in {workdir} ({len(secrets)} secrets)")
    return RunContext(
        run_id=run_id,
        event=event,
        env=dict(definition.env),
        secrets=secrets,
        temp_dir=temp_dir,
        workdir=workdir,
    )


@contextmanager
def run_scope(
    definition: PipelineDefinition,
    secret_store: SecretStore,
    event: TriggerEvent,
    run_id: Optional[str] = None,
    workspace_root: Optional[str] = None,
) -> Iterator[RunContext]:
    """Provision a RunContext and always discard it on exit."""
    context = provision(definition, secret_store, event, run_id=run_id, workspace_root=workspace_root)
    try:
        yield context
    finally:
        context.discard()

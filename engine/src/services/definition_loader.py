"""
Workflow YAML parser and validator.
"""

import re
import yaml
from typing import Any, Dict, List, Optional, Tuple

from engine.src.models.definition import (
    EnvValue,
    EventKind,
    PipelineDefinition,
    SecretReference,
    Step,
    StepAction,
    TriggerRule,
)

SECRET_EXPRESSION = re.compile(r"^\$\{\{\s*secrets\.([A-Za-z_][A-Za-z0-9_]*)\s*\}\}$")
ANY_EXPRESSION = re.compile(r"\$\{\{.*?\}\}")

CHECKOUT_ACTIONS = ("actions/checkout",)
REPORT_ACTIONS = ("codecov/codecov-action",)

class PipelineConfigError(Exception):
    """Raised when pipeline configuration is invalid."""
    pass

def parse_definition(yaml_content: str) -> PipelineDefinition:
    """Parse a workflow from YAML text."""
    try:
        config = yaml.safe_load(yaml_content)
    except yaml.YAMLError as e:
        raise PipelineConfigError(f"Invalid YAML: {e}")

    return validate_config(config)

def parse_definition_dict(config: Dict[str, Any]) -> PipelineDefinition:
    """Validate a workflow already loaded into a dict."""
    return validate_config(config)

def load_definition(path: str) -> PipelineDefinition:
    """Read and validate a workflow file."""
    try:
        with open(path, "r") as f:
            content = f.read()
    except OSError as e:
        raise PipelineConfigError(f"Cannot read workflow file {path}: {e}")

    return parse_definition(content)

def parse_env_value(value: Any, where: str) -> EnvValue:
    """Convert a scalar env/input value, recognising `${{ secrets.NAME }}`."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    if isinstance(value, (int, float)):
        return str(value)
    if not isinstance(value, str):
        raise PipelineConfigError(f"{where} must be a scalar value")

    match = SECRET_EXPRESSION.match(value.strip())
    if match:
        return SecretReference(name=match.group(1))

    if ANY_EXPRESSION.search(value):
        raise PipelineConfigError(
            f"{where} uses an unsupported expression; only ${{{{ secrets.NAME }}}} is allowed"
        )
    return value

def validate_env(env: Any, where: str) -> Dict[str, EnvValue]:
    if env is None:
        return {}
    if not isinstance(env, dict):
        raise PipelineConfigError(f"{where} must be a mapping")

    return {
        str(key): parse_env_value(value, f"{where} '{key}'")
        for key, value in env.items()
    }

def validate_triggers(on: Any) -> Tuple[TriggerRule, ...]:
    """Validate the `on:` block (string, list, or mapping of events)."""
    if not on:
        raise PipelineConfigError("Pipeline must declare 'on' triggers")

    if isinstance(on, str):
        on = [on]
    if isinstance(on, list):
        on = {kind: None for kind in on}
    if not isinstance(on, dict):
        raise PipelineConfigError("Pipeline 'on' must be a string, list or mapping")

    rules = []
    for kind, filters in on.items():
        try:
            event_kind = EventKind(kind)
        except ValueError:
            raise PipelineConfigError(f"Unsupported trigger event '{kind}'")

        branches: List[str] = []
        if filters is not None:
            if not isinstance(filters, dict):
                raise PipelineConfigError(f"Trigger '{kind}' filters must be a mapping")
            unknown = set(filters) - {"branches"}
            if unknown:
                raise PipelineConfigError(
                    f"Trigger '{kind}' has unsupported filters: {', '.join(sorted(map(str, unknown)))}"
                )
            branches = filters.get("branches") or []
            if isinstance(branches, str):
                branches = [branches]
            if not isinstance(branches, list) or not all(isinstance(b, str) for b in branches):
                raise PipelineConfigError(f"Trigger '{kind}' branches must be a list of strings")

        rules.append(TriggerRule(kind=event_kind, branches=tuple(branches)))

    return tuple(rules)

def classify_action(uses: str) -> StepAction:
    """Map a `uses:` reference (owner/repo@ref) to the action it stands for."""
    target = uses.split("@", 1)[0].strip().lower()
    if target in CHECKOUT_ACTIONS:
        return StepAction.CHECKOUT
    if target in REPORT_ACTIONS:
        return StepAction.REPORT
    return StepAction.UNKNOWN

def validate_config(config: Optional[Dict[str, Any]]) -> PipelineDefinition:
    """Validate workflow configuration structure."""
    if not config:
        raise PipelineConfigError("Empty pipeline configuration")

    if not isinstance(config, dict):
        raise PipelineConfigError("Pipeline configuration must be a dictionary")

    name = config.get("name", "Unnamed Pipeline")
    if not isinstance(name, str):
        raise PipelineConfigError("Pipeline 'name' must be a string")

    # YAML 1.1 reads a bare `on` key as boolean True
    on = config["on"] if "on" in config else config.get(True)
    triggers = validate_triggers(on)

    jobs = config.get("jobs")
    if not isinstance(jobs, dict) or not jobs:
        raise PipelineConfigError("Pipeline must have 'jobs' defined")
    if len(jobs) != 1:
        raise PipelineConfigError("Pipeline must define exactly one job")

    job_id, job = next(iter(jobs.items()))
    if not isinstance(job, dict):
        raise PipelineConfigError(f"Job '{job_id}' must be a dictionary")

    runs_on = job.get("runs-on")
    if runs_on is not None and not isinstance(runs_on, str):
        raise PipelineConfigError(f"Job '{job_id}' 'runs-on' must be a string")

    if "steps" not in job:
        raise PipelineConfigError(f"Job '{job_id}' must have 'steps' defined")

    steps = job["steps"]
    if not isinstance(steps, list):
        raise PipelineConfigError(f"Job '{job_id}' 'steps' must be a list")

    validated_steps = []
    for i, step in enumerate(steps):
        validated_steps.append(validate_step(step, i))

    # Workflow-level env first, job-level env shadows it
    env = validate_env(config.get("env"), "Pipeline 'env'")
    env.update(validate_env(job.get("env"), f"Job '{job_id}' 'env'"))

    return PipelineDefinition(
        name=name,
        job_id=str(job_id),
        runs_on=runs_on,
        triggers=triggers,
        env=env,
        steps=tuple(validated_steps),
    )

def validate_step(step: Dict[str, Any], index: int) -> Step:
    """Validate a single pipeline step."""
    if not isinstance(step, dict):
        raise PipelineConfigError(f"Step {index} must be a dictionary")

    has_run = "run" in step
    has_uses = "uses" in step
    if has_run == has_uses:
        raise PipelineConfigError(f"Step {index} must have exactly one of 'run' or 'uses'")

    name = step.get("name")
    if name is not None and not isinstance(name, str):
        raise PipelineConfigError(f"Step {index} 'name' must be a string")

    timeout = step.get("timeout-minutes")
    if timeout is not None:
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise PipelineConfigError(f"Step {index} 'timeout-minutes' must be a positive number")

    env = validate_env(step.get("env"), f"Step {index} 'env'")

    if has_run:
        run = step["run"]
        if not isinstance(run, str) or not run.strip():
            raise PipelineConfigError(f"Step {index} 'run' must be a non-empty string")
        if ANY_EXPRESSION.search(run):
            raise PipelineConfigError(f"Step {index} 'run' uses an unsupported expression")
        if "with" in step:
            raise PipelineConfigError(f"Step {index} 'with' is only valid for 'uses' steps")
        return Step(
            action=StepAction.COMMAND,
            name=name,
            run=run,
            env=env,
            timeout_minutes=timeout,
        )

    uses = step["uses"]
    if not isinstance(uses, str) or not uses.strip():
        raise PipelineConfigError(f"Step {index} 'uses' must be a non-empty string")

    return Step(
        action=classify_action(uses),
        name=name,
        uses=uses.strip(),
        env=env,
        inputs=validate_env(step.get("with"), f"Step {index} 'with'"),
        timeout_minutes=timeout,
    )

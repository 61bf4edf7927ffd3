"""Tests for the workflow loader."""

import pytest
from engine.src.models.definition import EventKind, SecretReference, StepAction
from engine.src.services.definition_loader import (
    load_definition,
    parse_definition,
    parse_definition_dict,
    PipelineConfigError,
)

def test_original_workflow(workflow_yaml):
    result = parse_definition(workflow_yaml)

    assert result.name == "Rust"
    assert result.job_id == "build"
    assert result.runs_on == "ubuntu-latest"
    assert result.env == {"CARGO_TERM_COLOR": "always"}
    assert [rule.kind for rule in result.triggers] == [EventKind.PUSH, EventKind.PULL_REQUEST]
    assert all(rule.branches == ("main",) for rule in result.triggers)

    actions = [step.action for step in result.steps]
    assert actions == [StepAction.CHECKOUT, StepAction.COMMAND, StepAction.COMMAND, StepAction.REPORT]
    assert result.steps[1].run == "cargo build --verbose"
    assert result.steps[2].env == {"DATABASE_URL": SecretReference(name="DATABASE_URL")}
    assert result.secret_names() == ["DATABASE_URL", "CODECOV_TOKEN"]

def test_step_display_names(definition):
    names = [step.display_name for step in definition.steps]
    assert names == [
        "Run actions/checkout@v3",
        "Build",
        "Run tests",
        "Upload coverage reports to Codecov",
    ]

def test_on_as_list_has_no_branch_filter():
    config = """
on: [push, pull_request]
jobs:
  build:
    steps:
      - run: make
"""
    result = parse_definition(config)
    assert [rule.branches for rule in result.triggers] == [(), ()]

def test_on_as_string():
    config = """
on: push
jobs:
  build:
    steps:
      - run: make
"""
    result = parse_definition(config)
    assert len(result.triggers) == 1
    assert result.triggers[0].kind == EventKind.PUSH

def test_unsupported_trigger_event():
    config = """
on: schedule
jobs:
  build:
    steps:
      - run: make
"""
    with pytest.raises(PipelineConfigError, match="Unsupported trigger event"):
        parse_definition(config)

def test_unsupported_trigger_filter():
    config = """
on:
  push:
    paths: ["src/**"]
jobs:
  build:
    steps:
      - run: make
"""
    with pytest.raises(PipelineConfigError, match="unsupported filters: paths"):
        parse_definition(config)

def test_missing_triggers():
    config = """
jobs:
  build:
    steps:
      - run: make
"""
    with pytest.raises(PipelineConfigError, match="must declare 'on'"):
        parse_definition(config)

def test_missing_steps():
    config = """
on: push
jobs:
  build:
    runs-on: ubuntu-latest
"""
    with pytest.raises(PipelineConfigError, match="must have 'steps'"):
        parse_definition(config)

def test_multiple_jobs_rejected():
    config = """
on: push
jobs:
  build:
    steps:
      - run: make
  lint:
    steps:
      - run: make lint
"""
    with pytest.raises(PipelineConfigError, match="exactly one job"):
        parse_definition(config)

def test_step_needs_run_or_uses():
    config = """
on: push
jobs:
  build:
    steps:
      - name: Nothing
"""
    with pytest.raises(PipelineConfigError, match="exactly one of 'run' or 'uses'"):
        parse_definition(config)

def test_unsupported_expression():
    config = """
on: push
jobs:
  build:
    steps:
      - run: make
        env:
          REF: ${{ github.ref }}
"""
    with pytest.raises(PipelineConfigError, match="unsupported expression"):
        parse_definition(config)

def test_non_string_env_values_are_converted():
    config = """
on: push
env:
  RETRIES: 3
  VERBOSE: true
jobs:
  build:
    steps:
      - run: make
"""
    result = parse_definition(config)
    assert result.env == {"RETRIES": "3", "VERBOSE": "true"}

def test_unknown_action_is_accepted():
    config = """
on: push
jobs:
  build:
    steps:
      - uses: some/other-action@v1
        with:
          token: ${{ secrets.OTHER }}
"""
    result = parse_definition(config)
    assert result.steps[0].action == StepAction.UNKNOWN
    assert result.secret_names() == ["OTHER"]

def test_invalid_timeout():
    config = """
on: push
jobs:
  build:
    steps:
      - run: make
        timeout-minutes: 0
"""
    with pytest.raises(PipelineConfigError, match="timeout-minutes"):
        parse_definition(config)

def test_empty_config():
    with pytest.raises(PipelineConfigError, match="Empty"):
        parse_definition("")

def test_invalid_yaml():
    with pytest.raises(PipelineConfigError, match="Invalid YAML"):
        parse_definition("on: [push\njobs: {")

def test_dict_parsing():
    config = {
        "name": "Dict Pipeline",
        "on": {"push": {"branches": ["main"]}},
        "jobs": {"build": {"steps": [{"run": "echo hello"}]}},
    }
    result = parse_definition_dict(config)
    assert result.name == "Dict Pipeline"
    assert len(result.steps) == 1

def test_definition_is_immutable(definition):
    with pytest.raises(Exception):
        definition.name = "Changed"

def test_load_definition(tmp_path, workflow_yaml):
    path = tmp_path / "workflow.yml"
    path.write_text(workflow_yaml)

    result = load_definition(str(path))
    assert result.name == "Rust"

def test_load_missing_file(tmp_path):
    with pytest.raises(PipelineConfigError, match="Cannot read workflow file"):
        load_definition(str(tmp_path / "missing.yml"))

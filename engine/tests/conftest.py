"""Shared fixtures for engine tests."""

import pytest

from engine.src.models.definition import EventKind
from engine.src.models.event import TriggerEvent
from engine.src.services.definition_loader import parse_definition
from engine.src.services.secrets import MappingSecretStore

WORKFLOW = """
name: Rust

on:
  push:
    branches: [ "main" ]
  pull_request:
    branches: [ "main" ]

env:
  CARGO_TERM_COLOR: always

jobs:
  build:

    runs-on: ubuntu-latest

    steps:
    - uses: actions/checkout@v3
    - name: Build
      run: cargo build --verbose
    - name: Run tests
      run: cargo test --verbose
      env:
        DATABASE_URL: ${{ secrets.DATABASE_URL }}
    - name: Upload coverage reports to Codecov
      uses: codecov/codecov-action@v3
      env:
        CODECOV_TOKEN: ${{ secrets.CODECOV_TOKEN }}
"""

def workflow_with_steps(steps_yaml: str, on: str = "push") -> str:
    """Build a workflow around an indented `steps:` body."""
    return f"""
name: Test
on: {on}
env:
  CARGO_TERM_COLOR: always
jobs:
  build:
    runs-on: ubuntu-latest
    steps:
{steps_yaml}
"""

@pytest.fixture
def workflow_yaml():
    return WORKFLOW

@pytest.fixture
def definition():
    return parse_definition(WORKFLOW)

@pytest.fixture
def secret_store():
    return MappingSecretStore({
        "DATABASE_URL": "postgres://ci:hunter2@db:5432/quotes",
        "CODECOV_TOKEN": "codecov-token-123",
    })

@pytest.fixture
def push_event():
    return TriggerEvent(
        kind=EventKind.PUSH,
        branch="main",
        commit_sha="abc123def456",
        clone_url="https://github.com/user/quotes.git",
        repo_full_name="user/quotes",
        triggered_by="testuser",
    )

@pytest.fixture
def workspace_root(tmp_path):
    root = tmp_path / "workspaces"
    root.mkdir()
    return str(root)

@pytest.fixture
def make_definition():
    def _make(steps_yaml: str, on: str = "push"):
        return parse_definition(workflow_with_steps(steps_yaml, on))
    return _make

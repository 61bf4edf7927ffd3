"""Tests for the checkout action against a local repository."""

import os
import shutil
import subprocess

import pytest
from engine.src.models.definition import EventKind
from engine.src.models.event import TriggerEvent
from engine.src.models.run import RunStatus, StepErrorKind, StepStatus
from engine.src.services.provisioner import run_scope
from engine.src.services.secrets import MappingSecretStore
from engine.src.services.step_runner import StepRunner

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def git(repo, *args):
    completed = subprocess.run(
        ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com", *args],
        cwd=repo,
        check=True,
        capture_output=True,
        text=True,
    )
    return completed.stdout.strip()


@pytest.fixture
def source_repo(tmp_path):
    """Repository with two commits; returns (path, first commit sha)."""
    repo = tmp_path / "quotes"
    repo.mkdir()
    git(repo, "init", "-q")
    git(repo, "config", "uploadpack.allowAnySHA1InWant", "true")

    (repo / "Cargo.toml").write_text('[package]\nname = "quotes"\n')
    git(repo, "add", "Cargo.toml")
    git(repo, "commit", "-q", "-m", "Initial commit")
    first = git(repo, "rev-parse", "HEAD")

    (repo / "Cargo.toml").write_text('[package]\nname = "quotes-v2"\n')
    git(repo, "commit", "-q", "-am", "Rename package")
    return repo, first


def event_for(repo, sha):
    return TriggerEvent(
        kind=EventKind.PUSH,
        branch="main",
        commit_sha=sha,
        clone_url=f"file://{repo}",
        repo_full_name="user/quotes",
    )


@pytest.mark.asyncio
async def test_checkout_materialises_event_commit(source_repo, make_definition, workspace_root):
    repo, first = source_repo
    definition = make_definition("""
    - uses: actions/checkout@v3
    - name: Build
      run: grep -q 'name = "quotes"' Cargo.toml
""")

    with run_scope(definition, MappingSecretStore(), event_for(repo, first), workspace_root=workspace_root) as context:
        result = await StepRunner().run(definition.steps, context)
        head = git(context.workdir, "rev-parse", "HEAD")
        files = os.listdir(context.workdir)

    assert result.status == RunStatus.SUCCEEDED
    assert [step.status for step in result.steps] == [StepStatus.SUCCEEDED, StepStatus.SUCCEEDED]
    assert head == first
    assert "Cargo.toml" in files


@pytest.mark.asyncio
async def test_checkout_of_unknown_commit_fails(source_repo, make_definition, workspace_root):
    repo, _ = source_repo
    definition = make_definition("""
    - uses: actions/checkout@v3
    - run: "true"
""")

    with run_scope(definition, MappingSecretStore(), event_for(repo, "0" * 40), workspace_root=workspace_root) as context:
        result = await StepRunner().run(definition.steps, context)

    assert result.status == RunStatus.FAILED
    assert result.steps[0].error_kind == StepErrorKind.ERROR
    assert result.steps[0].error.startswith("Failed to fetch")
    assert result.steps[1].status == StepStatus.SKIPPED

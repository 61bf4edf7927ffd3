"""Tests for run provisioning."""

import os

import pytest
from engine.src.services.provisioner import (
    MASK,
    ProvisionError,
    ProvisionErrorKind,
    provision,
    run_scope,
)
from engine.src.services.secrets import EnvSecretStore, MappingSecretStore

def test_provision_resolves_secrets(definition, secret_store, push_event, workspace_root):
    context = provision(definition, secret_store, push_event, run_id="run-1", workspace_root=workspace_root)
    try:
        assert context.run_id == "run-1"
        assert context.env == {"CARGO_TERM_COLOR": "always"}
        assert os.path.isdir(context.workdir)
        assert os.listdir(context.workdir) == []

        test_env = context.step_env(definition.steps[2])
        assert test_env["DATABASE_URL"] == "postgres://ci:hunter2@db:5432/quotes"
        assert test_env["CARGO_TERM_COLOR"] == "always"
    finally:
        context.discard()

def test_missing_secret_aborts_before_workspace(definition, push_event, workspace_root):
    store = MappingSecretStore({"CODECOV_TOKEN": "token"})

    with pytest.raises(ProvisionError) as exc_info:
        provision(definition, store, push_event, workspace_root=workspace_root)

    assert exc_info.value.kind == ProvisionErrorKind.MISSING_SECRET
    assert exc_info.value.secret_names == ("DATABASE_URL",)
    assert os.listdir(workspace_root) == []

def test_empty_secret_is_present(definition, push_event, workspace_root):
    store = MappingSecretStore({"DATABASE_URL": "", "CODECOV_TOKEN": ""})

    with run_scope(definition, store, push_event, workspace_root=workspace_root) as context:
        assert context.step_env(definition.steps[2])["DATABASE_URL"] == ""

def test_step_env_does_not_leak(definition, secret_store, push_event, workspace_root):
    with run_scope(definition, secret_store, push_event, workspace_root=workspace_root) as context:
        build, test, report = definition.steps[1], definition.steps[2], definition.steps[3]

        test_env = context.step_env(test)
        test_env["EXTRA"] = "mutated"

        assert "DATABASE_URL" not in context.step_env(build)
        assert "DATABASE_URL" not in context.step_env(report)
        assert "EXTRA" not in context.env
        assert context.env == {"CARGO_TERM_COLOR": "always"}

def test_step_env_shadows_job_env(make_definition, push_event, workspace_root):
    definition = make_definition("""
    - run: make
      env:
        CARGO_TERM_COLOR: never
    - run: make test
""")
    with run_scope(definition, MappingSecretStore(), push_event, workspace_root=workspace_root) as context:
        assert context.step_env(definition.steps[0])["CARGO_TERM_COLOR"] == "never"
        assert context.step_env(definition.steps[1])["CARGO_TERM_COLOR"] == "always"

def test_process_env_carries_run_metadata(definition, secret_store, push_event, workspace_root):
    with run_scope(definition, secret_store, push_event, run_id="run-2", workspace_root=workspace_root) as context:
        env = context.process_env(definition.steps[1])

        assert env["CI"] == "true"
        assert env["SHIPLINE_RUN_ID"] == "run-2"
        assert env["SHIPLINE_EVENT_NAME"] == "push"
        assert env["SHIPLINE_REF_NAME"] == "main"
        assert env["SHIPLINE_WORKSPACE"] == context.workdir
        assert env["CARGO_TERM_COLOR"] == "always"

def test_mask_hides_secret_values(definition, secret_store, push_event, workspace_root):
    with run_scope(definition, secret_store, push_event, workspace_root=workspace_root) as context:
        text = "connecting to postgres://ci:hunter2@db:5432/quotes with codecov-token-123"
        assert context.mask(text) == f"connecting to {MASK} with {MASK}"
        assert context.mask(None) is None

def test_run_scope_discards_context(definition, secret_store, push_event, workspace_root):
    with run_scope(definition, secret_store, push_event, workspace_root=workspace_root) as context:
        temp_dir = context.temp_dir
        assert os.path.isdir(temp_dir)

    assert context.discarded
    assert not os.path.exists(temp_dir)
    with pytest.raises(RuntimeError, match="discarded"):
        context.step_env(definition.steps[2])

def test_run_scope_discards_on_error(definition, secret_store, push_event, workspace_root):
    with pytest.raises(ValueError):
        with run_scope(definition, secret_store, push_event, workspace_root=workspace_root) as context:
            raise ValueError("boom")

    assert context.discarded
    assert os.listdir(workspace_root) == []

def test_each_run_gets_its_own_context(definition, secret_store, push_event, workspace_root):
    with run_scope(definition, secret_store, push_event, workspace_root=workspace_root) as first:
        with run_scope(definition, secret_store, push_event, workspace_root=workspace_root) as second:
            assert first.run_id != second.run_id
            assert first.workdir != second.workdir

def test_env_secret_store():
    store = EnvSecretStore(prefix="TEST_SECRET_", environ={"TEST_SECRET_TOKEN": "abc", "TEST_SECRET_EMPTY": ""})

    assert store.get("TOKEN") == "abc"
    assert store.get("EMPTY") == ""
    assert store.get("MISSING") is None

def test_env_secret_store_reads_process_env(monkeypatch):
    monkeypatch.setenv("SHIPLINE_SECRET_DATABASE_URL", "postgres://x")
    assert EnvSecretStore().get("DATABASE_URL") == "postgres://x"

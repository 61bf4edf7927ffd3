from engine.src.services.definition_loader import (
    load_definition,
    parse_definition,
    parse_definition_dict,
    PipelineConfigError,
)
from engine.src.services.triggers import should_run
from engine.src.services.secrets import SecretStore, MappingSecretStore, EnvSecretStore
from engine.src.services.provisioner import (
    ProvisionError,
    ProvisionErrorKind,
    RunContext,
    check_secrets,
    provision,
    run_scope,
)
from engine.src.services.reporter import ResultReporter, find_coverage_report
from engine.src.services.step_runner import StepRunner
from engine.src.services.status_reporter import RunStore, get_run_store
from engine.src.services.executor import execute_pipeline

__all__ = [
    "load_definition",
    "parse_definition",
    "parse_definition_dict",
    "PipelineConfigError",
    "should_run",
    "SecretStore",
    "MappingSecretStore",
    "EnvSecretStore",
    "ProvisionError",
    "ProvisionErrorKind",
    "RunContext",
    "check_secrets",
    "provision",
    "run_scope",
    "ResultReporter",
    "find_coverage_report",
    "StepRunner",
    "RunStore",
    "get_run_store",
    "execute_pipeline",
]

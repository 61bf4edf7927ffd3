"""
Workflow definition and secret store used by the gateway for trigger
evaluation and the secrets preflight.
"""

from functools import lru_cache

from engine.src.models.definition import PipelineDefinition
from engine.src.services.definition_loader import load_definition
from engine.src.services.secrets import EnvSecretStore, SecretStore
from gateway.src.config import get_settings

settings = get_settings()

@lru_cache()
def get_definition() -> PipelineDefinition:
    return load_definition(settings.workflow_path)

def get_secret_store() -> SecretStore:
    return EnvSecretStore(settings.secret_prefix)

"""
Secret stores queried during provisioning.

`get` returns None when a secret is absent; an empty string is a present
value.
"""

import os
from abc import ABC, abstractmethod
from typing import Mapping, Optional


class SecretStore(ABC):
    @abstractmethod
    def get(self, name: str) -> Optional[str]:
        """Look up a secret by name."""


class MappingSecretStore(SecretStore):
    """In-memory store, for embedding code and tests."""

    def __init__(self, values: Optional[Mapping[str, str]] = None):
        self._values = dict(values or {})

    def get(self, name: str) -> Optional[str]:
        return self._values.get(name)


class EnvSecretStore(SecretStore):
    """Reads `<prefix><NAME>` from the process environment at lookup time."""

    def __init__(self, prefix: str = "SHIPLINE_SECRET_", environ: Optional[Mapping[str, str]] = None):
        self.prefix = prefix
        self._environ = environ

    def get(self, name: str) -> Optional[str]:
        environ = os.environ if self._environ is None else self._environ
        return environ.get(f"{self.prefix}{name}")

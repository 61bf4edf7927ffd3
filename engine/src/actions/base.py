"""
Base class and errors for step actions.
"""

from abc import ABC, abstractmethod
from typing import Dict

from pydantic import BaseModel

from engine.src.models.definition import Step

# Exit status a POSIX shell uses for "command not found"
COMMAND_NOT_FOUND = 127


class ActionOutcome(BaseModel):
    exit_code: int = 0
    logs: str = ""

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


class ActionError(Exception):
    """Raised when an action cannot run to completion."""
    pass


class ActionUnavailableError(ActionError):
    """Raised when a step refers to an action this runner does not provide."""
    pass


class CheckoutError(ActionError):
    """Raised when the source tree cannot be materialised."""
    pass


class Action(ABC):
    @abstractmethod
    async def run(self, step: Step, context, env: Dict[str, str]) -> ActionOutcome:
        """
        Execute the step inside the run's working directory.

        `context` is the run's RunContext; `env` is the merged environment
        for this step. Cancellation must stop any child process.
        """


class UnavailableAction(Action):
    async def run(self, step: Step, context, env: Dict[str, str]) -> ActionOutcome:
        raise ActionUnavailableError(f"Action '{step.uses}' is not available on this runner")

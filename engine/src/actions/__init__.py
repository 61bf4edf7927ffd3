from engine.src.actions.base import (
    COMMAND_NOT_FOUND,
    Action,
    ActionOutcome,
    ActionError,
    ActionUnavailableError,
    CheckoutError,
    UnavailableAction,
)
from engine.src.actions.checkout import CheckoutAction
from engine.src.actions.command import CommandAction, run_process
from engine.src.models.definition import Step, StepAction


def get_action(step: Step) -> Action:
    """Action implementation for a build/test step."""
    if step.action == StepAction.CHECKOUT:
        return CheckoutAction()
    if step.action == StepAction.COMMAND:
        return CommandAction()
    return UnavailableAction()


__all__ = [
    "COMMAND_NOT_FOUND",
    "Action",
    "ActionOutcome",
    "ActionError",
    "ActionUnavailableError",
    "CheckoutError",
    "UnavailableAction",
    "CheckoutAction",
    "CommandAction",
    "run_process",
    "get_action",
]

"""
Checkout action (`uses: actions/checkout@...`).
"""

import logging
from typing import Dict

from engine.src.actions.base import Action, ActionOutcome, CheckoutError
from engine.src.actions.command import run_process
from engine.src.models.definition import Step

logger = logging.getLogger(__name__)

class CheckoutAction(Action):
    """Clone the event's repository into the working directory and check out its commit."""

    async def run(self, step: Step, context, env: Dict[str, str]) -> ActionOutcome:
        event = context.event
        if not event.clone_url:
            raise CheckoutError("No clone URL for this event")

        inputs = context.step_inputs(step)
        ref = inputs.get("ref") or event.commit_sha
        logs = []

        # Clone into the (empty) working directory
        logs.append(await self._git(
            ["clone", "--depth", "1", event.clone_url, "."],
            context,
            env,
            f"Failed to clone {event.repo_full_name or event.clone_url}",
        ))

        if ref:
            await self._git(
                ["fetch", "--depth", "1", "origin", ref],
                context,
                env,
                f"Failed to fetch {ref}",
            )
            logs.append(await self._git(
                ["checkout", "--detach", "FETCH_HEAD"],
                context,
                env,
                f"Failed to check out {ref}",
            ))

        logger.info(f"Run {context.run_id}: checked out {ref or event.branch}")
        return ActionOutcome(exit_code=0, logs="\n".join(line for line in logs if line))

    async def _git(self, args, context, env: Dict[str, str], failure: str) -> str:
        try:
            exit_code, output = await run_process(["git"] + args, cwd=context.workdir, env=env)
        except FileNotFoundError:
            raise CheckoutError("git is not installed on this runner")

        if exit_code != 0:
            raise CheckoutError(f"{failure}: {context.mask(output.strip())}")
        return output.strip()

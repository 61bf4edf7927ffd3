"""
Shell command action (`run:` steps): the build and test commands.
"""

import asyncio
import logging
import os
import signal
from typing import Dict, List, Optional, Sequence, Tuple

from engine.src.actions.base import Action, ActionOutcome
from engine.src.config import get_settings
from engine.src.models.definition import Step

logger = logging.getLogger(__name__)
settings = get_settings()

# -e so a multi-line script stops at the first failing command
SHELL = ["/bin/sh", "-e", "-c"]

def tail(output: str, lines: int) -> str:
    """Keep the last `lines` lines of output."""
    split = output.splitlines()
    if len(split) <= lines:
        return output
    return "\n".join(split[-lines:])

def kill_process_group(pid: int):
    try:
        os.killpg(pid, signal.SIGKILL)
    except ProcessLookupError:
        pass

async def run_process(
    args: Sequence[str],
    cwd: str,
    env: Optional[Dict[str, str]] = None,
) -> Tuple[int, str]:
    """
    Run a process with stdout and stderr merged.

    The process leads its own process group; if the awaiting task is
    cancelled the whole group is killed, including commands the shell
    started.
    """
    process = await asyncio.create_subprocess_exec(
        *args,
        cwd=cwd,
        env=env,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT,
        start_new_session=True,
    )

    try:
        stdout, _ = await process.communicate()
    except asyncio.CancelledError:
        kill_process_group(process.pid)
        await process.wait()
        raise

    return process.returncode, stdout.decode("utf-8", errors="replace")

class CommandAction(Action):
    def __init__(self, output_tail_lines: Optional[int] = None):
        self.output_tail_lines = output_tail_lines or settings.output_tail_lines

    def build_args(self, step: Step) -> List[str]:
        return SHELL + [step.run]

    async def run(self, step: Step, context, env: Dict[str, str]) -> ActionOutcome:
        logger.debug(f"Run {context.run_id}: running '{step.display_name}' in {context.workdir}")
        exit_code, output = await run_process(self.build_args(step), cwd=context.workdir, env=env)
        return ActionOutcome(exit_code=exit_code, logs=tail(output, self.output_tail_lines))

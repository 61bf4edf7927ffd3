"""
Step runner - executes a run's steps in order on a single task.

Once a build/test step fails, the remaining build/test steps are skipped
but every reporting step still runs, exactly once, when reached.
"""

import asyncio
import logging
import os
from datetime import datetime
from typing import Awaitable, Callable, Optional, Sequence

from engine.src.actions import (
    COMMAND_NOT_FOUND,
    ActionError,
    ActionUnavailableError,
    get_action,
)
from engine.src.config import get_settings
from engine.src.models.definition import Step
from engine.src.models.run import (
    COVERAGE_ARTIFACT,
    ReportOutcome,
    ReportStatus,
    RunResult,
    RunStatus,
    StepErrorKind,
    StepResult,
    StepStatus,
)
from engine.src.services.provisioner import RunContext
from engine.src.services.reporter import ResultReporter, find_coverage_report

logger = logging.getLogger(__name__)
settings = get_settings()

# Step env var read as the reporting token when `with.token` is not set
REPORT_TOKEN_ENV = "CODECOV_TOKEN"

ProgressCallback = Callable[[StepResult], Awaitable[None]]


class StepTimeoutError(Exception):
    """Raised when an action exceeds its timeout or the run is cancelled."""
    pass


class StepRunner:
    def __init__(
        self,
        reporter: Optional[ResultReporter] = None,
        step_timeout: Optional[float] = None,
        coverage_files: Optional[Sequence[str]] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self.reporter = reporter or ResultReporter()
        self.step_timeout = step_timeout or settings.step_timeout
        self.coverage_files = list(coverage_files or settings.coverage_files)
        self.progress_callback = progress_callback

    async def run(
        self,
        steps: Sequence[Step],
        context: RunContext,
        cancel: Optional[asyncio.Event] = None,
    ) -> RunResult:
        """
        Run steps in declaration order.

        `cancel` is the caller's cancellation hook: setting it terminates
        the in-flight action, which is recorded as a timeout failure.
        """
        result = RunResult(
            run_id=context.run_id,
            status=RunStatus.RUNNING,
            branch=context.event.branch,
            commit_sha=context.event.commit_sha,
            started_at=datetime.utcnow(),
        )

        for order, step in enumerate(steps):
            if step.is_report:
                await self._report(order, step, context, result)
                continue

            if result.status == RunStatus.FAILED:
                skipped = self._new_result(order, step, StepStatus.SKIPPED)
                context.record(order, StepStatus.SKIPPED)
                result.steps.append(skipped)
                await self._notify(skipped)
                continue

            step_result = await self._run_step(order, step, context, cancel)
            result.steps.append(step_result)

            if step_result.status == StepStatus.FAILED:
                result.status = RunStatus.FAILED
                logger.error(
                    f"Run {context.run_id}: step {order} ({step_result.name}) failed "
                    f"[{step_result.error_kind.value}], skipping remaining build/test steps"
                )
            else:
                await self._collect_artifacts(context, result)

        if result.status == RunStatus.RUNNING:
            result.status = RunStatus.SUCCEEDED
        result.finished_at = datetime.utcnow()

        logger.info(f"Run {context.run_id} finished with status: {result.status.value}")
        return result

    def _new_result(self, order: int, step: Step, status: StepStatus) -> StepResult:
        return StepResult(
            step_order=order,
            name=step.display_name,
            action=step.action,
            status=status,
        )

    async def _notify(self, step_result: StepResult):
        if self.progress_callback:
            await self.progress_callback(step_result.model_copy())

    def _timeout_for(self, step: Step) -> float:
        if step.timeout_minutes:
            return step.timeout_minutes * 60
        return self.step_timeout

    async def _run_step(
        self,
        order: int,
        step: Step,
        context: RunContext,
        cancel: Optional[asyncio.Event],
    ) -> StepResult:
        step_result = self._new_result(order, step, StepStatus.RUNNING)
        step_result.started_at = datetime.utcnow()
        context.record(order, StepStatus.RUNNING)
        await self._notify(step_result)

        logger.info(f"Run {context.run_id}: executing step {order}: {step_result.name}")
        timeout = self._timeout_for(step)

        try:
            env = context.process_env(step)
            outcome = await self._invoke(get_action(step).run(step, context, env), timeout, cancel)
        except StepTimeoutError as e:
            self._fail(step_result, StepErrorKind.TIMEOUT, str(e))
        except ActionUnavailableError as e:
            self._fail(step_result, StepErrorKind.ACTION_UNAVAILABLE, context.mask(str(e)))
        except ActionError as e:
            self._fail(step_result, StepErrorKind.ERROR, context.mask(str(e)))
        except Exception as e:
            error = context.mask(f"{type(e).__name__}: {e}")
            logger.error(f"Run {context.run_id}: step {order} ({step_result.name}) raised {error}")
            self._fail(step_result, StepErrorKind.ERROR, error)
        else:
            step_result.exit_code = outcome.exit_code
            step_result.logs = context.mask(outcome.logs)
            if outcome.succeeded:
                step_result.status = StepStatus.SUCCEEDED
            elif outcome.exit_code == COMMAND_NOT_FOUND:
                self._fail(step_result, StepErrorKind.ACTION_UNAVAILABLE, "Command not found")
            else:
                self._fail(
                    step_result,
                    StepErrorKind.NON_ZERO_EXIT,
                    f"Process exited with code {outcome.exit_code}",
                )

        step_result.finished_at = datetime.utcnow()
        context.record(order, step_result.status)
        await self._notify(step_result)
        return step_result

    def _fail(self, step_result: StepResult, kind: StepErrorKind, error: str):
        step_result.status = StepStatus.FAILED
        step_result.error_kind = kind
        step_result.error = error

    async def _invoke(self, coro: Awaitable, timeout: float, cancel: Optional[asyncio.Event]):
        """Await an action, bounded by timeout and the cancel event."""
        task = asyncio.ensure_future(coro)
        waiters = {task}
        cancel_waiter = None
        if cancel is not None:
            cancel_waiter = asyncio.ensure_future(cancel.wait())
            waiters.add(cancel_waiter)

        try:
            done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

        if cancel is not None and cancel.is_set():
            raise StepTimeoutError("Step cancelled")
        raise StepTimeoutError(f"Step timed out after {timeout:g}s")

    async def _collect_artifacts(self, context: RunContext, result: RunResult):
        # Walking a large build tree blocks; keep it off the event loop
        path = await asyncio.to_thread(find_coverage_report, context.workdir, self.coverage_files)
        if path:
            result.artifacts[COVERAGE_ARTIFACT] = path

    async def _report(self, order: int, step: Step, context: RunContext, result: RunResult):
        """Run a reporting step. Its outcome never alters result.status."""
        name = step.display_name
        logger.info(f"Run {context.run_id}: executing step {order}: {name}")

        try:
            inputs = context.step_inputs(step)
            files = [f.strip() for f in inputs.get("files", "").split(",") if f.strip()]
            for candidate in files:
                path = os.path.join(context.workdir, candidate)
                if os.path.isfile(path):
                    result.artifacts[COVERAGE_ARTIFACT] = path
                    break

            credential = inputs.get("token") or context.step_env(step).get(REPORT_TOKEN_ENV)
            outcome = await self.reporter.report(result, credential)
        except Exception as e:
            detail = context.mask(f"{type(e).__name__}: {e}")
            logger.error(f"Run {context.run_id}: reporter raised {detail}")
            outcome = ReportOutcome(status=ReportStatus.DEGRADED, detail=detail)

        outcome = outcome.model_copy(update={"step_order": order, "detail": context.mask(outcome.detail)})
        result.reports.append(outcome)
        logger.info(f"Run {context.run_id}: report step {order} ({name}) {outcome.status.value}")

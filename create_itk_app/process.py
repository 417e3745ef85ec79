"""Process driver for the external generator and installer steps.

Runs ``PipelineStep`` commands one after another with the child's output
streamed straight to the operator's terminal.  A step succeeds only when
it exits 0.  The driver never retries and never undoes a completed step:
whatever a step wrote stays on disk, and re-running the whole tool is the
recovery path.

Each step runs in its own session (POSIX) so that a timeout or an
interrupt kills the whole tree the step spawned (npx -> node -> npm ...),
not just the direct child.
"""

from __future__ import annotations

import asyncio
import os
import shutil
import signal
import time

from create_itk_app.config import Settings
from create_itk_app.models import PipelineStep, ResolvedConfig, StepResult
from create_itk_app.utils import console

_NEW_SESSION = os.name == "posix"

BOOTSTRAP_STEP = "create-react-app"
INSTALL_STEP = "craco"


def bootstrap_step(config: ResolvedConfig, settings: Settings) -> PipelineStep:
    """Step that creates the base React project in the destination."""
    return PipelineStep(
        name=BOOTSTRAP_STEP,
        argv=(*settings.bootstrapper, str(config.destination)),
    )


def install_step(config: ResolvedConfig, settings: Settings) -> PipelineStep:
    """Step that installs craco and the itk.js / vtk.js plugins."""
    return PipelineStep(
        name=INSTALL_STEP,
        argv=tuple(settings.install_command()),
        cwd=config.destination,
        inherit_stdin=True,
    )


class ProcessDriver:
    """Runs external pipeline steps synchronously, one at a time.

    Args:
        timeout: Seconds a single step may run before it is killed and
            reported as failed.  ``None`` waits indefinitely.
    """

    def __init__(self, timeout: float | None = 1800) -> None:
        self.timeout = timeout

    async def run_step(self, step: PipelineStep) -> StepResult:
        """Run one step and report its exit status.

        Never raises for a failing child; call ``raise_for_status`` on the
        result to turn a failure into ``ExternalProcessFailed``.
        """
        console.print(f"[dim]$ {step.command_line}[/dim]", highlight=False)
        start = time.monotonic()

        executable = shutil.which(step.argv[0]) or step.argv[0]
        try:
            process = await asyncio.create_subprocess_exec(
                executable,
                *step.argv[1:],
                stdin=None if step.inherit_stdin else asyncio.subprocess.DEVNULL,
                cwd=str(step.cwd) if step.cwd else None,
                start_new_session=_NEW_SESSION,
            )
        except FileNotFoundError:
            return StepResult(
                step=step,
                exit_code=127,
                duration_seconds=time.monotonic() - start,
                error=f"command not found: {step.argv[0]}",
            )
        except PermissionError as exc:
            return StepResult(
                step=step,
                exit_code=126,
                duration_seconds=time.monotonic() - start,
                error=f"cannot execute {step.argv[0]}: {exc.strerror or exc}",
            )

        try:
            exit_code = await asyncio.wait_for(process.wait(), timeout=self.timeout)
        except asyncio.TimeoutError:
            _kill_tree(process)
            await process.wait()
            return StepResult(
                step=step,
                exit_code=process.returncode,
                duration_seconds=time.monotonic() - start,
                timed_out=True,
                error=f"timed out after {self.timeout}s",
            )
        except asyncio.CancelledError:
            _kill_tree(process)
            await process.wait()
            raise

        return StepResult(
            step=step,
            exit_code=exit_code,
            duration_seconds=time.monotonic() - start,
        )

    async def run(self, steps: list[PipelineStep]) -> list[StepResult]:
        """Run *steps* in order, stopping after the first failure.

        Returns:
            One result per step that was started; the last one is the
            failure if the list is shorter than *steps* or ends unsuccessfully.
        """
        results: list[StepResult] = []
        for step in steps:
            result = await self.run_step(step)
            results.append(result)
            if not result.success:
                break
        return results


def _kill_tree(process: asyncio.subprocess.Process) -> None:
    """Kill *process* and everything in its session.

    Falls back to killing the direct child where process groups are not
    available.
    """
    if _NEW_SESSION:
        try:
            os.killpg(process.pid, signal.SIGKILL)
            return
        except ProcessLookupError:
            return
        except PermissionError:
            pass
    if process.returncode is None:
        process.kill()

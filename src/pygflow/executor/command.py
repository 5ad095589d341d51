"""Command execution capability.

The scheduler treats "run this job's command" as an opaque capability:
a CommandRunner receives a Job and reports success or failure. Two
runners are provided:

- ShellCommandRunner: spawns the job's ``cmd`` as a subprocess
- CallableCommandRunner: calls a Python function, for embedding and tests

Blocking work must not run on the event loop. ShellCommandRunner uses
asyncio subprocesses; CallableCommandRunner offloads sync callables with
asyncio.to_thread().
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import os
import signal
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from pygflow.models import Job

logger = logging.getLogger(__name__)

# Output kept in the failure detail when a job has no log file
_OUTPUT_TAIL = 4000


@dataclass(frozen=True)
class CommandResult:
    """Outcome of running one job's command."""

    success: bool
    detail: str | None = None
    returncode: int | None = None

    @classmethod
    def ok(cls, returncode: int | None = 0) -> CommandResult:
        return cls(success=True, returncode=returncode)

    @classmethod
    def failed(cls, detail: str, returncode: int | None = None) -> CommandResult:
        return cls(success=False, detail=detail, returncode=returncode)


@runtime_checkable
class CommandRunner(Protocol):
    """Runs a job's command to completion.

    Implementations report command failure through the returned
    CommandResult. An exception escaping run() is also treated as a job
    failure by the scheduler.
    """

    async def run(self, job: Job) -> CommandResult: ...


class ShellCommandRunner:
    """Run ``job.cmd`` as a subprocess.

    A string command runs through the shell; a sequence of strings is
    executed directly. Combined stdout/stderr is appended to the job's
    log file when one is configured.

    Example:
        ```python
        runner = ShellCommandRunner(env={"PYTHONUNBUFFERED": "1"})
        result = await runner.run(job)
        ```
    """

    def __init__(self, env: Mapping[str, str] | None = None):
        self._env = dict(env or {})

    def __repr__(self) -> str:
        return f"ShellCommandRunner(env={sorted(self._env)})"

    async def run(self, job: Job) -> CommandResult:
        cmd = job.cmd
        cwd = job.directories.work_dir
        env = {**os.environ, **self._env}
        if job.directories.tmp_dir:
            env["TMPDIR"] = job.directories.tmp_dir

        log_path = job.directories.log_file
        log_handle = None
        try:
            if log_path:
                log_handle = await asyncio.to_thread(open, log_path, "ab")
            stdout = log_handle if log_handle is not None else asyncio.subprocess.PIPE

            if isinstance(cmd, str):
                process = await asyncio.create_subprocess_shell(
                    cmd,
                    cwd=cwd,
                    env=env,
                    stdout=stdout,
                    stderr=asyncio.subprocess.STDOUT,
                    start_new_session=True,
                )
            elif isinstance(cmd, Sequence) and cmd:
                args = [str(part) for part in cmd]
                process = await asyncio.create_subprocess_exec(
                    *args,
                    cwd=cwd,
                    env=env,
                    stdout=stdout,
                    stderr=asyncio.subprocess.STDOUT,
                    start_new_session=True,
                )
            else:
                return CommandResult.failed(f"Unsupported command for {job.label}: {cmd!r}")

            try:
                output, _ = await process.communicate()
            except asyncio.CancelledError:
                await _kill(process, job)
                raise
        except OSError as e:
            return CommandResult.failed(f"Cannot start command: {e}")
        finally:
            if log_handle is not None:
                log_handle.close()

        if process.returncode == 0:
            return CommandResult.ok()

        detail = f"exit status {process.returncode}"
        if output:
            tail = output[-_OUTPUT_TAIL:].decode(errors="replace").strip()
            if tail:
                detail = f"{detail}: {tail}"
        return CommandResult.failed(detail, returncode=process.returncode)


async def _kill(process: asyncio.subprocess.Process, job: Job) -> None:
    """Kill a cancelled job's process group and reap the process.

    Jobs run in their own session, so the group also holds any children
    a shell command spawned.
    """
    if process.returncode is None:
        logger.info(f"{job.label} cancelled, killing process group {process.pid}")
        try:
            if hasattr(os, "killpg"):
                os.killpg(process.pid, signal.SIGKILL)
            else:
                process.kill()
        except ProcessLookupError:
            pass
    await process.wait()


class CallableCommandRunner:
    """Run a Python callable in place of a subprocess.

    ``fn(job)`` may be sync or async and may return:
    - None or True: success
    - False: failure
    - CommandResult: used as-is

    A raised exception propagates to the scheduler, which records it as
    the job's failure.
    """

    def __init__(self, fn: Callable[[Job], Any]):
        self._fn = fn

    async def run(self, job: Job) -> CommandResult:
        if inspect.iscoroutinefunction(self._fn):
            outcome = await self._fn(job)
        else:
            outcome = await asyncio.to_thread(self._fn, job)
            if inspect.isawaitable(outcome):
                outcome = await outcome
        return _coerce_result(outcome)


def _coerce_result(outcome: Any) -> CommandResult:
    if isinstance(outcome, CommandResult):
        return outcome
    if outcome is None or outcome is True:
        return CommandResult.ok(returncode=None)
    if outcome is False:
        return CommandResult.failed("command reported failure")
    raise TypeError(f"Command returned unsupported value: {outcome!r}")

"""
Scheduler - drives every job of a graph to a terminal state.

Each job gets its own asyncio task. A task waits on the completion
signals of its direct dependencies (one asyncio.Event per job), so a job
starts as soon as its own dependencies are done rather than when a whole
"level" of the graph is done.

Propagation policy:
    When a dependency ends FAILED or SKIPPED, the dependent is SKIPPED
    immediately without being attempted. Skips propagate transitively
    because a skipped job's own completion signal wakes its dependents.
    Failed jobs go into the failure registry; skipped jobs do not.

Ordering:
    A job's STARTED event is appended before its command runs, and its
    terminal event is appended before its completion signal is set. So
    per-job event order is guaranteed, and no dependent observes a
    terminal state that has not been logged yet.

Failures of independent branches do not cancel each other. An
infrastructure error (for example the event log becoming unwritable)
cancels every outstanding job task and propagates out of run().
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

from pygflow.executor.command import CommandResult, CommandRunner
from pygflow.executor.failures import FailureRegistry
from pygflow.executor.graph import DependencyGraph
from pygflow.models import EventKind, Job, JobState
from pygflow.provision import clean_job_tmp
from pygflow.storage.base import EventLog

logger = logging.getLogger(__name__)


class Scheduler:
    """
    Concurrent, dependency-respecting executor for one run.

    Usage:
        scheduler = Scheduler(graph, runner, event_log, failures)
        states = await scheduler.run()

    Args:
        graph: Validated dependency graph
        runner: Command-execution capability
        event_log: Connected event log
        failures: Failure registry for this run
        max_concurrency: Upper bound on simultaneously RUNNING jobs,
            None for no bound
    """

    def __init__(
        self,
        graph: DependencyGraph,
        runner: CommandRunner,
        event_log: EventLog,
        failures: FailureRegistry,
        max_concurrency: int | None = None,
    ):
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError(f"max_concurrency must be positive, got {max_concurrency}")
        self._graph = graph
        self._runner = runner
        self._event_log = event_log
        self._failures = failures
        self._max_concurrency = max_concurrency
        self._completions: dict[int, asyncio.Event] = {}
        self._started = False

    async def run(self) -> dict[int, JobState]:
        """
        Run every job to a terminal state.

        Returns:
            Final state of each job, keyed by job ID

        Raises:
            InfrastructureError: If the event log fails mid-run
            RuntimeError: If called twice
        """
        if self._started:
            raise RuntimeError("Scheduler.run() can only be called once")
        self._started = True

        self._completions = {job.id: asyncio.Event() for job in self._graph}
        semaphore = (
            asyncio.Semaphore(self._max_concurrency) if self._max_concurrency is not None else None
        )

        tasks = [
            asyncio.create_task(self._drive(job, semaphore), name=f"gflow-job-{job.id}")
            for job in self._graph
        ]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        return {job.id: job.state for job in self._graph}

    async def _drive(self, job: Job, semaphore: asyncio.Semaphore | None) -> None:
        blocker = await self._await_dependencies(job)
        if blocker is not None:
            await self._skip(job, blocker)
        else:
            job.transition(JobState.READY)
            logger.debug(f"{job.label} ready")
            async with semaphore if semaphore is not None else contextlib.nullcontext():
                await self._execute(job)
        self._completions[job.id].set()

    async def _await_dependencies(self, job: Job) -> Job | None:
        """
        Wait for the job's direct dependencies.

        Returns:
            The first dependency seen to end FAILED or SKIPPED, or None
            once every dependency has SUCCEEDED
        """
        dep_ids = self._graph.dependencies(job.id)
        if not dep_ids:
            return None

        waiters = {
            asyncio.create_task(self._completions[dep_id].wait()): dep_id for dep_id in dep_ids
        }
        try:
            while waiters:
                done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
                for waiter in done:
                    dep = self._graph.job(waiters.pop(waiter))
                    if dep.state is not JobState.SUCCEEDED:
                        return dep
            return None
        finally:
            for waiter in waiters:
                waiter.cancel()

    async def _skip(self, job: Job, blocker: Job) -> None:
        reason = f"upstream {blocker.label} {blocker.state.value.lower()}"
        job.transition(JobState.SKIPPED, error=reason)
        await self._event_log.append(job.id, EventKind.SKIPPED, reason)
        logger.info(f"{job.label} skipped: {reason}")

    async def _execute(self, job: Job) -> None:
        job.transition(JobState.RUNNING)
        await self._event_log.append(job.id, EventKind.STARTED)
        logger.info(f"{job.label} started")

        try:
            result = await self._runner.run(job)
        except Exception as e:
            result = CommandResult.failed(f"{type(e).__name__}: {e}")

        if result.success:
            job.transition(JobState.SUCCEEDED)
            await self._event_log.append(job.id, EventKind.SUCCEEDED)
            logger.info(f"{job.label} succeeded")
        else:
            detail = result.detail or "command failed"
            job.transition(JobState.FAILED, error=detail)
            self._failures.record(job.id, detail)
            await self._event_log.append(job.id, EventKind.FAILED, detail)
            logger.warning(f"{job.label} failed: {detail}")

        if job.clean_tmp:
            await asyncio.to_thread(clean_job_tmp, job)

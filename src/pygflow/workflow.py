"""
Workflow - owns a set of jobs and runs them.

A Workflow is constructed once per invocation, receives its jobs through
add_job(), and is run once. Every run gets a fresh failure registry and
event log. After run() returns the workflow is read-only.

Example:
    ```python
    wf = Workflow("./pipeline")
    fetch = wf.add_job("curl -sSo data.csv https://example.com/data.csv", name="fetch")
    clean = wf.add_job(["python", "clean.py"], dependencies=[fetch], name="clean")
    report = wf.add_job(["python", "report.py"], dependencies=[fetch], name="report")

    exit_status = await wf.run()
    ```
"""

from __future__ import annotations

import asyncio
import enum
import logging
import threading
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path

from pygflow.config import Settings
from pygflow.errors import UnknownDependencyError, WorkflowStateError
from pygflow.executor.command import CommandRunner, ShellCommandRunner
from pygflow.executor.exit_status import resolve_exit_status
from pygflow.executor.failures import FailureRegistry
from pygflow.executor.graph import DependencyGraph
from pygflow.executor.scheduler import Scheduler
from pygflow.models import Command, Job, JobDirectories
from pygflow.provision import WorkflowPaths, provision_workflow
from pygflow.storage import EventLog, SqliteEventLog
from pygflow.summary import workflow_summary, write_summary

logger = logging.getLogger(__name__)

EventLogFactory = Callable[[], EventLog]


class _Phase(enum.Enum):
    BUILDING = "building"
    RUNNING = "running"
    FINISHED = "finished"


class Workflow:
    """
    Aggregate of jobs plus the run-scoped state needed to execute them.

    Args:
        workflow_dir: Root directory; state lives under ``<root>/.gflow``
        settings: Run configuration (defaults to ``Settings()``)
        runner: Command-execution capability (defaults to ShellCommandRunner)
        event_log_factory: Creates the run's event log; defaults to a
            SqliteEventLog at ``<root>/.gflow/event.db``
    """

    def __init__(
        self,
        workflow_dir: str | Path,
        settings: Settings | None = None,
        runner: CommandRunner | None = None,
        event_log_factory: EventLogFactory | None = None,
    ):
        self.settings = settings or Settings()
        self.paths = WorkflowPaths.from_root(workflow_dir, self.settings.state_dir_name)
        self._runner = runner or ShellCommandRunner()
        self._event_log_factory = event_log_factory or self._default_event_log

        self._jobs: list[Job] = []
        self._registered: dict[int, Job] = {}
        self._current_job_id = 0
        self._job_id_lock = threading.Lock()

        self._phase = _Phase.BUILDING
        self.failures: FailureRegistry | None = None
        self.run_id: str | None = None
        self.exit_status: int | None = None

    def __repr__(self) -> str:
        return f"Workflow({self.paths.root}, jobs={len(self._jobs)}, phase={self._phase.value})"

    @property
    def jobs(self) -> tuple[Job, ...]:
        """Jobs in registration (declaration) order."""
        return tuple(self._jobs)

    def job(self, job_id: int) -> Job:
        return self._registered[job_id]

    def _next_job_id(self) -> int:
        with self._job_id_lock:
            self._current_job_id += 1
            return self._current_job_id

    def add_job(
        self,
        cmd: Command,
        dependencies: Iterable[Job] = (),
        outputs: Sequence[str] = (),
        clean_tmp: bool = False,
        name: str | None = None,
        work_dir: str | Path | None = None,
        directories: JobDirectories | None = None,
    ) -> Job:
        """
        Register a job and assign it the next ID.

        Dependencies must already be registered with this workflow, so
        every job's ID is greater than the IDs of the jobs it depends on.

        Args:
            cmd: Command handed to the runner
            dependencies: Registered jobs that must succeed first
            outputs: Declared artifact paths (informational)
            clean_tmp: Clear the job's tmp directory after it completes
            name: Declared identity, used in logs and the summary
            work_dir: Working directory relative to the workflow root
            directories: Explicit directory configuration (overrides work_dir)

        Returns:
            The registered Job

        Raises:
            UnknownDependencyError: If a dependency is not registered here
            WorkflowStateError: If the workflow has already run
        """
        self._require_phase(_Phase.BUILDING, "add jobs to")

        deps = list(dependencies)
        for dep in deps:
            if self._registered.get(dep.id) is not dep:
                raise UnknownDependencyError(name or cmd, dep.label)

        job_id = self._next_job_id()
        job = Job(
            id=job_id,
            cmd=cmd,
            dependencies=deps,
            outputs=list(outputs),
            clean_tmp=clean_tmp,
            directories=directories or self.paths.job_directories(job_id, work_dir),
            name=name,
        )
        self._jobs.append(job)
        self._registered[job_id] = job
        logger.debug(f"Registered {job.label} (dependencies={job.dependency_ids})")
        return job

    def graph(self) -> DependencyGraph:
        """
        Build and validate the dependency graph.

        Raises:
            ConfigurationError: If the graph is malformed
        """
        return DependencyGraph.build(self._jobs)

    async def run(self) -> int:
        """
        Run every job and return the process exit status.

        Order: validate graph → provision directories → open event log →
        schedule → close event log → resolve exit status → write summary.
        Configuration errors are raised before anything is created on disk.

        Returns:
            0 if every job succeeded, EXIT_JOBS_FAILED otherwise

        Raises:
            ConfigurationError: If the dependency graph is malformed
            InfrastructureError: If provisioning, the event log, or the
                summary write fails
            WorkflowStateError: If the workflow has already run
        """
        self._require_phase(_Phase.BUILDING, "run")
        self._phase = _Phase.RUNNING
        try:
            graph = self.graph()
            provision_workflow(self.paths, self._jobs)

            self.failures = FailureRegistry()
            event_log = self._event_log_factory()
            self.run_id = event_log.run_id
            logger.info(f"Running {len(graph)} jobs in {self.paths.root} (run {self.run_id})")

            async with event_log:
                scheduler = Scheduler(
                    graph,
                    self._runner,
                    event_log,
                    self.failures,
                    max_concurrency=self.settings.max_concurrency,
                )
                await scheduler.run()

            self.exit_status = resolve_exit_status(self.failures)
            write_summary(self.paths.summary_path, workflow_summary(self))
        finally:
            self._phase = _Phase.FINISHED

        if self.exit_status != 0:
            logger.error(f"Error: {self.failures.count()} jobs failed")
            logger.error(f"Workflow failed: exit status: {self.exit_status}")
        else:
            logger.info("Workflow success")
        return self.exit_status

    def run_sync(self) -> int:
        """Blocking wrapper around run() for callers without an event loop."""
        return asyncio.run(self.run())

    def _require_phase(self, phase: _Phase, action: str) -> None:
        if self._phase is not phase:
            raise WorkflowStateError(f"Cannot {action} a workflow that is {self._phase.value}")

    def _default_event_log(self) -> EventLog:
        return SqliteEventLog(self.paths.event_db_path, durable=self.settings.durable_sync)

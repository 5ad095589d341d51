"""
Pytest configuration and fixtures for pygflow tests.

Provides event log fixtures, a scripted command runner that records what
the scheduler did, and Hypothesis strategies for random job graphs.
"""

import asyncio
import shutil
import tempfile
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from hypothesis import strategies as st

from pygflow.executor.command import CommandResult
from pygflow.models import Job, JobState
from pygflow.storage import InMemoryEventLog, SqliteEventLog
from pygflow.workflow import Workflow


@pytest.fixture
def temp_db_path():
    """Temporary database file path with automatic cleanup."""
    tmpdir = Path(tempfile.mkdtemp())
    db_path = tmpdir / "event.db"
    yield db_path
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
async def memory_event_log() -> AsyncGenerator[InMemoryEventLog, None]:
    """Connected in-memory event log."""
    log = InMemoryEventLog()
    await log.connect()
    yield log
    await log.close()


@pytest.fixture
async def sqlite_memory_log() -> AsyncGenerator[SqliteEventLog, None]:
    """Connected SQLite in-memory event log."""
    log = SqliteEventLog(":memory:")
    await log.connect()
    yield log
    await log.close()


class ScriptedRunner:
    """
    Command runner driven by job names.

    Jobs named in ``fail`` report failure, jobs named in ``raise_for``
    raise, everything else succeeds after ``delays.get(name, 0)`` seconds.

    Records the start order, the peak number of concurrently running
    jobs, and any job started while one of its dependencies was not
    terminal.
    """

    def __init__(self, fail=(), raise_for=(), delays=None, default_delay=0.0):
        self.fail = set(fail)
        self.raise_for = set(raise_for)
        self.delays = dict(delays or {})
        self.default_delay = default_delay
        self.started: list[str] = []
        self.finished: list[str] = []
        self.premature: list[str] = []
        self.running = 0
        self.peak = 0

    def key(self, job: Job) -> str:
        return job.name or str(job.id)

    async def run(self, job: Job) -> CommandResult:
        name = self.key(job)
        if any(not dep.state.is_terminal for dep in job.dependencies):
            self.premature.append(name)
        self.started.append(name)
        self.running += 1
        self.peak = max(self.peak, self.running)
        try:
            await asyncio.sleep(self.delays.get(name, self.default_delay))
            if name in self.raise_for:
                raise RuntimeError(f"{name} exploded")
            if name in self.fail:
                return CommandResult.failed(f"{name} failed", returncode=1)
            return CommandResult.ok()
        finally:
            self.running -= 1
            self.finished.append(name)


@pytest.fixture
def scripted_runner():
    """Factory for ScriptedRunner instances."""
    return ScriptedRunner


@pytest.fixture
def make_workflow(tmp_path):
    """Factory for workflows rooted in a temporary directory."""

    def factory(runner=None, event_log=None, settings=None, root=None):
        log = event_log
        return Workflow(
            root or tmp_path / "wf",
            settings=settings,
            runner=runner or ScriptedRunner(),
            event_log_factory=(lambda: log) if log is not None else None,
        )

    return factory


def diamond(workflow: Workflow) -> dict[str, Job]:
    """a → (b, c) → d"""
    a = workflow.add_job("a", name="a")
    b = workflow.add_job("b", dependencies=[a], name="b")
    c = workflow.add_job("c", dependencies=[a], name="c")
    d = workflow.add_job("d", dependencies=[b, c], name="d")
    return {"a": a, "b": b, "c": c, "d": d}


def states(jobs) -> dict[str, JobState]:
    return {job.name: job.state for job in jobs}


# Hypothesis strategies for property-based testing


@st.composite
def dag_strategy(draw, max_jobs: int = 12):
    """
    Random DAG as a list of dependency-index lists.

    Job ``i`` may only depend on jobs ``0..i-1``, so the result is acyclic.
    Also draws the set of job indices whose command fails.
    """
    count = draw(st.integers(min_value=1, max_value=max_jobs))
    edges = []
    for index in range(count):
        if index == 0:
            edges.append([])
            continue
        deps = draw(st.lists(st.integers(min_value=0, max_value=index - 1), max_size=3, unique=True))
        edges.append(sorted(deps))
    failing = draw(st.sets(st.integers(min_value=0, max_value=count - 1), max_size=count))
    return edges, failing

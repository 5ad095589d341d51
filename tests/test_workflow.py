"""Tests for the Workflow orchestrator, end to end."""

import asyncio
import json
import logging
import sys
import threading
from pathlib import Path

import pytest
from conftest import ScriptedRunner, diamond, states

from pygflow.config import Settings
from pygflow.errors import (
    CycleError,
    ProvisioningError,
    StorageError,
    UnknownDependencyError,
    WorkflowStateError,
)
from pygflow.executor.command import ShellCommandRunner
from pygflow.executor.exit_status import EXIT_JOBS_FAILED
from pygflow.models import EventKind, Job, JobDirectories, JobState
from pygflow.provision import clean_job_tmp
from pygflow.storage import InMemoryEventLog, SqliteEventLog
from pygflow.workflow import Workflow


def test_ids_are_monotonic_from_one(make_workflow):
    wf = make_workflow()
    jobs = diamond(wf)
    assert [job.id for job in wf.jobs] == [1, 2, 3, 4]
    assert jobs["d"].dependency_ids == [2, 3]


def test_ids_deterministic_across_fresh_workflows(make_workflow, tmp_path):
    first = make_workflow(root=tmp_path / "one")
    second = make_workflow(root=tmp_path / "two")
    assert {n: j.id for n, j in diamond(first).items()} == {n: j.id for n, j in diamond(second).items()}


@pytest.mark.concurrency
def test_id_counter_is_thread_safe(make_workflow):
    wf = make_workflow()
    barrier = threading.Barrier(8)

    def register():
        barrier.wait()
        for _ in range(100):
            wf.add_job("true")

    threads = [threading.Thread(target=register) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    ids = [job.id for job in wf.jobs]
    assert len(ids) == 800
    assert sorted(ids) == list(range(1, 801))


def test_add_job_rejects_foreign_dependency(make_workflow, tmp_path):
    other = make_workflow(root=tmp_path / "other")
    foreign = other.add_job("true", name="foreign")
    wf = make_workflow()
    with pytest.raises(UnknownDependencyError):
        wf.add_job("true", dependencies=[foreign])
    assert wf.jobs == ()


def test_default_job_directories(make_workflow):
    wf = make_workflow()
    job = wf.add_job("true")
    assert job.directories.work_dir == str(wf.paths.root)
    assert job.directories.log_file == str(wf.paths.log_dir / "job-1.log")
    assert job.directories.tmp_dir == str(wf.paths.tmp_dir / "job-1")


@pytest.mark.asyncio
async def test_successful_run_writes_summary(make_workflow, memory_event_log):
    wf = make_workflow(event_log=memory_event_log)
    diamond(wf)

    exit_status = await wf.run()

    assert exit_status == 0
    assert wf.exit_status == 0
    assert set(states(wf.jobs).values()) == {JobState.SUCCEEDED}

    summary = json.loads(wf.paths.summary_path.read_text())
    assert summary["exit_status"] == 0
    assert summary["run_id"] == memory_event_log.run_id
    assert summary["failed"] == []
    assert [job["dependencies"] for job in summary["jobs"]] == [[], [1], [1], [2, 3]]
    assert {job["state"] for job in summary["jobs"]} == {"SUCCEEDED"}


@pytest.mark.asyncio
async def test_failed_run_exit_status_and_summary(make_workflow, memory_event_log):
    wf = make_workflow(runner=ScriptedRunner(fail={"b"}), event_log=memory_event_log)
    diamond(wf)

    exit_status = await wf.run()

    assert exit_status == EXIT_JOBS_FAILED
    assert states(wf.jobs) == {
        "a": JobState.SUCCEEDED,
        "b": JobState.FAILED,
        "c": JobState.SUCCEEDED,
        "d": JobState.SKIPPED,
    }
    assert list(wf.failures.entries()) == [2]

    summary = json.loads(wf.paths.summary_path.read_text())
    assert summary["failed"] == [2]
    assert summary["jobs"][3]["error"] == "upstream b#2 failed"


@pytest.mark.asyncio
async def test_unknown_dependency_aborts_before_anything_runs(make_workflow):
    """A dependency that is not registered is rejected before any event is logged."""
    runner = ScriptedRunner()
    wf = make_workflow(runner=runner)
    a = wf.add_job("a", name="a")
    wf.add_job("b", dependencies=[a], name="b")
    # Corrupt the registered graph with a job the workflow never saw
    a.dependencies.append(Workflow(wf.paths.root / "elsewhere").add_job("ghost"))

    with pytest.raises(UnknownDependencyError):
        await wf.run()

    assert runner.started == []
    assert not wf.paths.event_db_path.exists()
    assert all(job.state is JobState.PENDING for job in wf.jobs)


@pytest.mark.asyncio
async def test_cycle_rejected_before_execution(make_workflow):
    runner = ScriptedRunner()
    wf = make_workflow(runner=runner)
    a = wf.add_job("a", name="A")
    b = wf.add_job("b", dependencies=[a], name="B")
    a.dependencies.append(b)

    with pytest.raises(CycleError):
        await wf.run()

    assert runner.started == []
    assert not wf.paths.state_dir.exists()


@pytest.mark.asyncio
async def test_workflow_runs_once(make_workflow, memory_event_log):
    wf = make_workflow(event_log=memory_event_log)
    wf.add_job("a")
    await wf.run()

    with pytest.raises(WorkflowStateError):
        await wf.run()
    with pytest.raises(WorkflowStateError):
        wf.add_job("late")


@pytest.mark.asyncio
async def test_fresh_registry_and_log_per_workflow(tmp_path):
    root = tmp_path / "wf"
    runs = []
    for fail in ({"a"}, set()):
        wf = Workflow(root, runner=ScriptedRunner(fail=fail))
        wf.add_job("a", name="a")
        runs.append((await wf.run(), wf.failures.count(), wf.run_id))

    assert [(status, count) for status, count, _ in runs] == [(1, 1), (0, 0)]
    assert runs[0][2] != runs[1][2]

    async with SqliteEventLog(root / ".gflow" / "event.db") as log:
        assert await log.runs() == [runs[0][2], runs[1][2]]
        first = await log.events(run_id=runs[0][2])
        assert [e.kind for e in first] == [EventKind.STARTED, EventKind.FAILED]


@pytest.mark.asyncio
async def test_provisioning_failure_is_fatal(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")
    runner = ScriptedRunner()
    wf = Workflow(blocker / "wf", runner=runner)
    wf.add_job("a")

    with pytest.raises(ProvisioningError):
        await wf.run()
    assert runner.started == []


@pytest.mark.asyncio
async def test_max_concurrency_setting_applies(make_workflow, memory_event_log):
    runner = ScriptedRunner(default_delay=0.02)
    wf = make_workflow(
        runner=runner, event_log=memory_event_log, settings=Settings(max_concurrency=2)
    )
    for i in range(6):
        wf.add_job(f"j{i}", name=f"j{i}")

    assert await wf.run() == 0
    assert runner.peak == 2


def test_run_sync(make_workflow):
    wf = make_workflow(event_log=InMemoryEventLog())
    wf.add_job("a")
    assert wf.run_sync() == 0


@pytest.mark.asyncio
async def test_shell_commands_end_to_end(tmp_path):
    wf = Workflow(tmp_path / "wf", runner=ShellCommandRunner())
    write = wf.add_job("echo hello > greeting.txt", name="write")
    wf.add_job(
        [sys.executable, "-c", "print(open('greeting.txt').read().strip().upper())"],
        dependencies=[write],
        name="shout",
    )
    broken = wf.add_job([sys.executable, "-c", "import sys; sys.exit(3)"], name="broken")

    exit_status = await wf.run()

    assert exit_status == EXIT_JOBS_FAILED
    assert (wf.paths.root / "greeting.txt").read_text().strip() == "hello"
    assert "HELLO" in (wf.paths.log_dir / "job-2.log").read_text()
    assert broken.state is JobState.FAILED
    assert wf.failures.entries()[broken.id].detail == "exit status 3"


@pytest.mark.asyncio
async def test_clean_tmp_clears_scratch_space(tmp_path):
    script = "import os; open(os.path.join(os.environ['TMPDIR'], 'scratch'), 'w').write('x')"
    wf = Workflow(tmp_path / "wf", runner=ShellCommandRunner())
    cleaned = wf.add_job([sys.executable, "-c", script], clean_tmp=True, name="cleaned")
    kept = wf.add_job([sys.executable, "-c", script], name="kept")

    assert await wf.run() == 0

    assert list((wf.paths.tmp_dir / f"job-{cleaned.id}").iterdir()) == []
    assert (wf.paths.tmp_dir / f"job-{kept.id}" / "scratch").exists()


def test_clean_tmp_unlistable_directory_is_logged(tmp_path, monkeypatch, caplog):
    scratch = tmp_path / "job-1"
    scratch.mkdir()
    job = Job(id=1, cmd="a", directories=JobDirectories(tmp_dir=str(scratch)), name="a")

    def refuse(self):
        raise PermissionError(13, "Permission denied", str(self))

    monkeypatch.setattr(Path, "iterdir", refuse)

    with caplog.at_level(logging.WARNING, logger="pygflow"):
        clean_job_tmp(job)

    assert "a#1: cannot list" in caplog.text


@pytest.mark.asyncio
async def test_unopenable_log_file_reported_as_start_failure(tmp_path):
    job = Job(
        id=1,
        cmd="true",
        directories=JobDirectories(
            work_dir=str(tmp_path), log_file=str(tmp_path / "missing" / "job-1.log")
        ),
    )

    result = await ShellCommandRunner().run(job)

    assert not result.success
    assert result.detail.startswith("Cannot start command")


class FailOnSuccessLog(InMemoryEventLog):
    """Event log that becomes unwritable when one job succeeds."""

    def __init__(self, job_id: int):
        super().__init__()
        self.broken_job_id = job_id

    async def append(self, job_id, kind, detail=None):
        if job_id == self.broken_job_id and kind is EventKind.SUCCEEDED:
            raise StorageError("disk full")
        return await super().append(job_id, kind, detail)


@pytest.mark.asyncio
async def test_aborted_run_kills_running_commands(tmp_path):
    """A storage failure mid-run stops commands that are still running."""
    log = FailOnSuccessLog(job_id=2)
    wf = Workflow(tmp_path / "wf", runner=ShellCommandRunner(), event_log_factory=lambda: log)
    slow = wf.add_job("sleep 1 && touch marker", name="slow")
    wf.add_job("true", name="quick")

    with pytest.raises(StorageError):
        await wf.run()

    await asyncio.sleep(1.5)
    assert not (wf.paths.root / "marker").exists()
    assert slow.state is JobState.RUNNING

"""Directory provisioning for a workflow run.

Layout under the workflow root:

    <root>/.gflow/log/job-<id>.log
    <root>/.gflow/exec/
    <root>/.gflow/tmp/job-<id>/
    <root>/.gflow/wf.json
    <root>/.gflow/event.db
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from pygflow.errors import ProvisioningError
from pygflow.models import Job, JobDirectories

logger = logging.getLogger(__name__)

DEFAULT_STATE_DIR = ".gflow"


@dataclass(frozen=True)
class WorkflowPaths:
    """Absolute paths used by one workflow."""

    root: Path
    state_dir: Path
    log_dir: Path
    exec_dir: Path
    tmp_dir: Path
    summary_path: Path
    event_db_path: Path

    @classmethod
    def from_root(cls, root: str | Path, state_dir_name: str = DEFAULT_STATE_DIR) -> WorkflowPaths:
        absolute = Path(root).expanduser().resolve()
        state = absolute / state_dir_name
        return cls(
            root=absolute,
            state_dir=state,
            log_dir=state / "log",
            exec_dir=state / "exec",
            tmp_dir=state / "tmp",
            summary_path=state / "wf.json",
            event_db_path=state / "event.db",
        )

    def job_directories(self, job_id: int, work_dir: str | Path | None = None) -> JobDirectories:
        """Default directories for a job; ``work_dir`` is resolved against the root."""
        if work_dir is None:
            resolved_work_dir = self.root
        else:
            resolved_work_dir = (self.root / Path(work_dir).expanduser()).resolve()
        return JobDirectories(
            work_dir=str(resolved_work_dir),
            log_file=str(self.log_dir / f"job-{job_id}.log"),
            tmp_dir=str(self.tmp_dir / f"job-{job_id}"),
        )


def provision_workflow(paths: WorkflowPaths, jobs: Iterable[Job] = ()) -> None:
    """Create the workflow directories and every job's log and tmp directories.

    Raises:
        ProvisioningError: If any directory cannot be created
    """
    directories = [paths.root, paths.state_dir, paths.exec_dir, paths.log_dir, paths.tmp_dir]
    for job in jobs:
        if job.directories.log_file:
            directories.append(Path(job.directories.log_file).parent)
        if job.directories.tmp_dir:
            directories.append(Path(job.directories.tmp_dir))
        if job.directories.work_dir:
            directories.append(Path(job.directories.work_dir))

    for directory in directories:
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ProvisioningError(f"Cannot create directory {directory}: {e}") from e


def clean_job_tmp(job: Job) -> None:
    """Remove the contents of a job's scratch directory, keeping the directory."""
    tmp_dir = job.directories.tmp_dir
    if not tmp_dir:
        return
    root = Path(tmp_dir)
    if not root.is_dir():
        return
    try:
        entries = list(root.iterdir())
    except OSError as e:
        logger.warning(f"{job.label}: cannot list {root}: {e}")
        return
    for entry in entries:
        try:
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
        except OSError as e:
            logger.warning(f"{job.label}: cannot remove {entry}: {e}")

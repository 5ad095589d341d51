"""Job model and its lifecycle state machine.

A Job is the unit of work the scheduler operates on. Its dependencies
are held by reference, so two jobs that depend on the same upstream job
share one object and observe the same state.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from pygflow.errors import InvalidTransitionError
from pygflow.models.status import JobState

# Allowed state changes. Terminal states have no outgoing edges.
_TRANSITIONS: dict[JobState, frozenset[JobState]] = {
    JobState.PENDING: frozenset({JobState.READY, JobState.SKIPPED}),
    JobState.READY: frozenset({JobState.RUNNING, JobState.SKIPPED}),
    JobState.RUNNING: frozenset({JobState.SUCCEEDED, JobState.FAILED}),
    JobState.SUCCEEDED: frozenset(),
    JobState.FAILED: frozenset(),
    JobState.SKIPPED: frozenset(),
}

Command = str | Sequence[str] | Callable[..., Any]


@dataclass(frozen=True)
class JobDirectories:
    """Directory configuration for one job.

    Paths are provisioned before the run starts; the scheduler only
    reads them.
    """

    work_dir: str | None = None
    """Working directory the command runs in."""

    log_file: str | None = None
    """File the command's combined output is appended to."""

    tmp_dir: str | None = None
    """Scratch directory, removed after completion when clean_tmp is set."""

    def to_dict(self) -> dict[str, str | None]:
        return {"work_dir": self.work_dir, "log_file": self.log_file, "tmp_dir": self.tmp_dir}


@dataclass(eq=False)
class Job:
    """A schedulable unit of work.

    Jobs compare and hash by identity. Create them through
    ``Workflow.add_job`` so they receive a unique ID from the workflow's
    counter.

    Attributes:
        id: Unique positive integer assigned at registration
        cmd: Opaque command handed to the command runner
        dependencies: Jobs that must succeed before this one may start
        outputs: Declared artifact paths (informational)
        clean_tmp: Remove the job's tmp_dir after it completes
        directories: Provisioned directory configuration
        name: Declared identity from the workflow definition, if any
        state: Current lifecycle state
        error: Failure detail once FAILED, upstream reason once SKIPPED
    """

    id: int
    cmd: Command
    dependencies: list[Job] = field(default_factory=list)
    outputs: list[str] = field(default_factory=list)
    clean_tmp: bool = False
    directories: JobDirectories = field(default_factory=JobDirectories)
    name: str | None = None
    state: JobState = JobState.PENDING
    error: str | None = None

    def __post_init__(self):
        if not isinstance(self.id, int) or self.id <= 0:
            raise ValueError(f"Job id must be a positive integer, got {self.id!r}")

    @property
    def label(self) -> str:
        """Human-readable identity for logs."""
        if self.name:
            return f"{self.name}#{self.id}"
        return f"job#{self.id}"

    @property
    def dependency_ids(self) -> list[int]:
        return [dep.id for dep in self.dependencies]

    def can_transition(self, target: JobState) -> bool:
        return target in _TRANSITIONS[self.state]

    def transition(self, target: JobState, error: str | None = None) -> None:
        """Move to ``target``.

        Raises:
            InvalidTransitionError: If the state machine forbids the change
        """
        if not self.can_transition(target):
            raise InvalidTransitionError(self.id, self.state, target)
        self.state = target
        if error is not None:
            self.error = error

    def to_dict(self) -> dict[str, Any]:
        """Serializable view of the job, dependencies as IDs."""
        cmd = self.cmd if isinstance(self.cmd, str) else _command_repr(self.cmd)
        return {
            "id": self.id,
            "name": self.name,
            "state": self.state.value,
            "dependencies": self.dependency_ids,
            "outputs": list(self.outputs),
            "clean_tmp": self.clean_tmp,
            "cmd": cmd,
            "directories": self.directories.to_dict(),
            "error": self.error,
        }

    def __repr__(self) -> str:
        return f"Job(id={self.id}, name={self.name!r}, state={self.state})"


def _command_repr(cmd: Any) -> Any:
    if isinstance(cmd, Sequence):
        return [str(part) for part in cmd]
    return getattr(cmd, "__qualname__", repr(cmd))

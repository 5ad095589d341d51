"""Exception hierarchy for pygflow.

Configuration errors are raised before any job runs. Infrastructure
errors abort a run in progress. Job execution failures are never raised:
the scheduler records them in the failure registry instead.
"""

from __future__ import annotations

from collections.abc import Sequence

__all__ = [
    "GflowError",
    "ConfigurationError",
    "CycleError",
    "UnknownDependencyError",
    "DuplicateJobError",
    "InfrastructureError",
    "StorageError",
    "ProvisioningError",
    "InvalidTransitionError",
    "WorkflowStateError",
]


class GflowError(Exception):
    """Base class for every error raised by pygflow."""


class ConfigurationError(GflowError):
    """The workflow definition or dependency graph is malformed."""


class CycleError(ConfigurationError):
    """The dependency relation contains a cycle.

    Attributes:
        cycle: Job identities along the cycle, first element repeated at the end
    """

    def __init__(self, cycle: Sequence[object]):
        self.cycle = list(cycle)
        path = " -> ".join(str(node) for node in self.cycle)
        super().__init__(f"Dependency cycle detected: {path}")


class UnknownDependencyError(ConfigurationError):
    """A dependency does not resolve to a registered job."""

    def __init__(self, job: object, dependency: object):
        self.job = job
        self.dependency = dependency
        super().__init__(f"Job {job!r} depends on unknown job {dependency!r}")


class DuplicateJobError(ConfigurationError):
    """Two top-level job descriptions share the same name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Duplicate job name: {name!r}")


class InfrastructureError(GflowError):
    """A run-level resource failed; the run cannot continue."""


class StorageError(InfrastructureError):
    """The event log is unavailable or unwritable."""


class ProvisioningError(InfrastructureError):
    """A workflow or job directory could not be created."""


class InvalidTransitionError(GflowError):
    """A job was asked to make a state change its state machine forbids."""

    def __init__(self, job_id: int, current: object, target: object):
        self.job_id = job_id
        self.current = current
        self.target = target
        super().__init__(f"Job {job_id}: invalid transition {current} -> {target}")


class WorkflowStateError(GflowError):
    """A workflow was mutated or re-run after its run started."""

"""Status enumerations for job lifecycle tracking.

Defines the states a job moves through while the scheduler drives it,
and the kinds of records written to the event log.
"""

from enum import Enum


class JobState(Enum):
    """State of a single job within one workflow run.

    Lifecycle:
        PENDING → READY → RUNNING → SUCCEEDED/FAILED
        PENDING/READY → SKIPPED

    A skipped job never enters RUNNING. Transitions are driven by the
    scheduler only.
    """

    PENDING = "PENDING"
    """Job is registered and waiting for its dependencies."""

    READY = "READY"
    """Every dependency is terminal and succeeded; the job may start."""

    RUNNING = "RUNNING"
    """Job's command has been handed to the command runner."""

    SUCCEEDED = "SUCCEEDED"
    """Command completed successfully."""

    FAILED = "FAILED"
    """Command reported failure. The job is recorded in the failure registry."""

    SKIPPED = "SKIPPED"
    """Never attempted because an upstream job failed or was skipped."""

    @property
    def is_terminal(self) -> bool:
        """Check if this state is terminal (no more transitions)."""
        return self in (JobState.SUCCEEDED, JobState.FAILED, JobState.SKIPPED)

    @property
    def is_unsuccessful(self) -> bool:
        """Check if dependents of a job in this state must be skipped."""
        return self in (JobState.FAILED, JobState.SKIPPED)

    def __str__(self) -> str:
        return self.value


class EventKind(Enum):
    """Kind of record stored in the event log."""

    STARTED = "STARTED"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"

    @classmethod
    def for_state(cls, state: JobState) -> "EventKind":
        """Map a terminal job state to its event kind."""
        try:
            return cls(state.value)
        except ValueError:
            raise ValueError(f"No event kind for job state {state}") from None

    @property
    def is_terminal(self) -> bool:
        return self is not EventKind.STARTED

    def __str__(self) -> str:
        return self.value

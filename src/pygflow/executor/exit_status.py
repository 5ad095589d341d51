"""Exit-status resolution for a finished run."""

from pygflow.executor.failures import FailureRegistry

EXIT_SUCCESS = 0
"""Every job succeeded."""

EXIT_JOBS_FAILED = 1
"""One or more jobs failed."""

EXIT_CONFIGURATION_ERROR = 2
"""The workflow definition or graph was rejected before running."""

EXIT_INFRASTRUCTURE_ERROR = 3
"""The event log or a directory was unavailable; the run was aborted."""


def resolve_exit_status(failures: FailureRegistry) -> int:
    """Map the final failure registry to a process exit status.

    Skipped jobs do not count: a job is only skipped because some upstream
    job failed, and that job is in the registry.
    """
    if failures.count() > 0:
        return EXIT_JOBS_FAILED
    return EXIT_SUCCESS

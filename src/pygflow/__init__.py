"""
pygflow: local workflow executor.

Runs a set of jobs with inter-job dependencies: independent jobs run
concurrently, a job starts only after its dependencies succeed, the
dependents of a failed job are skipped, every lifecycle transition is
written to a durable event log, and the run ends with a single exit
status.

Example:
    ```python
    import asyncio
    from pygflow import Workflow

    async def main() -> int:
        wf = Workflow("./pipeline")
        a = wf.add_job("make data", name="a")
        wf.add_job("make report", dependencies=[a], name="b")
        wf.add_job("make plots", dependencies=[a], name="c")
        return await wf.run()

    raise SystemExit(asyncio.run(main()))
    ```
"""

# Version
__version__ = "0.1.0"

from pygflow.config import Settings
from pygflow.definition import (
    JobDescription,
    WorkflowDefinition,
    build_workflow,
    load_definition,
    parse_definition,
    run_from_yaml,
    workflow_from_yaml,
)
from pygflow.errors import (
    ConfigurationError,
    CycleError,
    DuplicateJobError,
    GflowError,
    InfrastructureError,
    InvalidTransitionError,
    ProvisioningError,
    StorageError,
    UnknownDependencyError,
    WorkflowStateError,
)
from pygflow.executor import (
    EXIT_CONFIGURATION_ERROR,
    EXIT_INFRASTRUCTURE_ERROR,
    EXIT_JOBS_FAILED,
    EXIT_SUCCESS,
    CallableCommandRunner,
    CommandResult,
    CommandRunner,
    DependencyGraph,
    FailureRegistry,
    GraphSummary,
    Scheduler,
    ShellCommandRunner,
    resolve_exit_status,
)
from pygflow.models import EventKind, Job, JobDirectories, JobEvent, JobState
from pygflow.provision import WorkflowPaths
from pygflow.storage import EventLog, InMemoryEventLog, SqliteEventLog
from pygflow.workflow import Workflow

__all__ = [
    # Orchestration
    "Workflow",
    "WorkflowPaths",
    "Settings",
    # Definitions
    "JobDescription",
    "WorkflowDefinition",
    "parse_definition",
    "load_definition",
    "build_workflow",
    "workflow_from_yaml",
    "run_from_yaml",
    # Models
    "Job",
    "JobDirectories",
    "JobState",
    "JobEvent",
    "EventKind",
    # Execution
    "DependencyGraph",
    "GraphSummary",
    "Scheduler",
    "FailureRegistry",
    "resolve_exit_status",
    "EXIT_SUCCESS",
    "EXIT_JOBS_FAILED",
    "EXIT_CONFIGURATION_ERROR",
    "EXIT_INFRASTRUCTURE_ERROR",
    "CommandRunner",
    "CommandResult",
    "ShellCommandRunner",
    "CallableCommandRunner",
    # Event log
    "EventLog",
    "SqliteEventLog",
    "InMemoryEventLog",
    # Errors
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
    # Metadata
    "__version__",
]

"""
Executor module - runtime engine for workflow runs.

- graph: dependency graph construction and validation
- scheduler: concurrent, dependency-gated job execution
- failures: failure registry
- exit_status: exit status resolution
- command: command-execution capability
"""

from pygflow.executor.command import (
    CallableCommandRunner,
    CommandResult,
    CommandRunner,
    ShellCommandRunner,
)
from pygflow.executor.exit_status import (
    EXIT_CONFIGURATION_ERROR,
    EXIT_INFRASTRUCTURE_ERROR,
    EXIT_JOBS_FAILED,
    EXIT_SUCCESS,
    resolve_exit_status,
)
from pygflow.executor.failures import FailureRecord, FailureRegistry
from pygflow.executor.graph import DependencyGraph, GraphSummary
from pygflow.executor.scheduler import Scheduler

__all__ = [
    # Graph
    "DependencyGraph",
    "GraphSummary",
    # Scheduling
    "Scheduler",
    # Failures and exit status
    "FailureRecord",
    "FailureRegistry",
    "resolve_exit_status",
    "EXIT_SUCCESS",
    "EXIT_JOBS_FAILED",
    "EXIT_CONFIGURATION_ERROR",
    "EXIT_INFRASTRUCTURE_ERROR",
    # Commands
    "CommandRunner",
    "CommandResult",
    "ShellCommandRunner",
    "CallableCommandRunner",
]

"""Core data models for workflow execution.

These types have no dependencies on the storage or executor modules.
"""

from pygflow.models.event import JobEvent
from pygflow.models.job import Command, Job, JobDirectories
from pygflow.models.status import EventKind, JobState

__all__ = [
    "Command",
    "Job",
    "JobDirectories",
    "JobState",
    "JobEvent",
    "EventKind",
]

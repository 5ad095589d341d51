"""
EventLog interface - abstract contract for event log backends.

The scheduler appends one record per lifecycle transition and depends
only on this interface, so tests can substitute InMemoryEventLog for
the durable SqliteEventLog without changing the scheduler.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pygflow.errors import StorageError
from pygflow.models import EventKind, JobEvent

__all__ = ["EventLog", "StorageError"]


class EventLog(ABC):
    """
    Append-only store of job lifecycle events for one run.

    Appends may come from many concurrent job tasks. Ordering across jobs
    is not guaranteed; a single job's events are stored in the order its
    task appended them.

    Instances are usable as async context managers:

        async with SqliteEventLog(path) as log:
            await log.append(1, EventKind.STARTED)
    """

    run_id: str

    @abstractmethod
    async def connect(self) -> None:
        """
        Open the backing store.

        Raises:
            StorageError: If the store cannot be opened
        """

    @abstractmethod
    async def append(self, job_id: int, kind: EventKind, detail: str | None = None) -> JobEvent:
        """
        Durably record one event.

        Returns only after the record is acknowledged by the store.

        Args:
            job_id: Job the event belongs to
            kind: Lifecycle event kind
            detail: Optional error or skip reason

        Returns:
            The stored JobEvent

        Raises:
            StorageError: If the record cannot be written
        """

    @abstractmethod
    async def events(self, job_id: int | None = None) -> list[JobEvent]:
        """Return this run's events in append order, optionally for one job."""

    @abstractmethod
    async def close(self) -> None:
        """Release the backing store. Safe to call more than once."""

    async def __aenter__(self) -> EventLog:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

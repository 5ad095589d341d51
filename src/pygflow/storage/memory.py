"""In-memory event log for testing.

Can be substituted for SqliteEventLog without changing client code.
Nothing survives the process.
"""

from __future__ import annotations

import asyncio
from datetime import datetime

from uuid_extensions import uuid7

from pygflow.models import EventKind, JobEvent
from pygflow.storage.base import EventLog, StorageError


class InMemoryEventLog(EventLog):
    """List-backed EventLog.

    Usage:
        log = InMemoryEventLog()
        await log.connect()
        await log.append(1, EventKind.STARTED)
    """

    def __init__(self, run_id: str | None = None):
        self.run_id = run_id or str(uuid7())
        self._events: list[JobEvent] = []
        self._lock = asyncio.Lock()
        self._connected = False
        self.fail_appends = False
        """When True, every append raises StorageError (for failure tests)."""

    def __repr__(self) -> str:
        return f"InMemoryEventLog(run_id={self.run_id})"

    async def connect(self) -> None:
        self._connected = True

    async def append(self, job_id: int, kind: EventKind, detail: str | None = None) -> JobEvent:
        if not self._connected:
            raise StorageError("Event log is not connected. Call connect() first.")
        if self.fail_appends:
            raise StorageError(f"Event log unwritable: cannot append {kind} for job {job_id}")
        async with self._lock:
            event = JobEvent(
                job_id=job_id,
                kind=kind,
                timestamp=datetime.now(),
                detail=detail,
                run_id=self.run_id,
                seq=len(self._events) + 1,
            )
            self._events.append(event)
            return event

    async def events(self, job_id: int | None = None) -> list[JobEvent]:
        async with self._lock:
            if job_id is None:
                return list(self._events)
            return [e for e in self._events if e.job_id == job_id]

    async def close(self) -> None:
        self._connected = False

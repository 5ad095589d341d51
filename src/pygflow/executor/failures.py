"""Failure registry: concurrency-safe record of which jobs failed and why."""

from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType


@dataclass(frozen=True)
class FailureRecord:
    """Why one job failed."""

    job_id: int
    detail: str
    recorded_at: datetime = field(default_factory=datetime.now)


class FailureRegistry:
    """Append-only mapping from job ID to failure detail.

    record() may be called from any number of concurrent completions,
    whether they run as asyncio tasks or in worker threads. Entries are
    never removed or overwritten.

    Example:
        ```python
        failures = FailureRegistry()
        failures.record(3, "exit status 2")
        failures.count()      # 1
        failures.entries()    # {3: FailureRecord(job_id=3, ...)}
        ```
    """

    def __init__(self):
        self._entries: dict[int, FailureRecord] = {}
        self._lock = threading.Lock()

    def record(self, job_id: int, detail: str) -> FailureRecord:
        """Record a failure for ``job_id``.

        A job fails at most once per run, so a second record for the same
        job keeps the first entry.
        """
        with self._lock:
            existing = self._entries.get(job_id)
            if existing is not None:
                return existing
            entry = FailureRecord(job_id=job_id, detail=detail)
            self._entries[job_id] = entry
            return entry

    def count(self) -> int:
        with self._lock:
            return len(self._entries)

    def entries(self) -> Mapping[int, FailureRecord]:
        """Frozen snapshot of the current entries."""
        with self._lock:
            return MappingProxyType(dict(self._entries))

    def __contains__(self, job_id: object) -> bool:
        with self._lock:
            return job_id in self._entries

    def __len__(self) -> int:
        return self.count()

    def __bool__(self) -> bool:
        return self.count() > 0

    def __repr__(self) -> str:
        return f"FailureRegistry(failed={sorted(self.entries())})"

"""SQLite-backed durable event log.

Design Pattern: Adapter Pattern
SqliteEventLog adapts an SQLite database to the EventLog interface.

Implementation details:
- aiosqlite for async operations
- WAL mode so out-of-band readers do not block the run
- synchronous=FULL so an acknowledged append survives a crash
- One database holds many runs, keyed by run_id
"""

from __future__ import annotations

import asyncio
import sqlite3
from datetime import datetime
from pathlib import Path

import aiosqlite
from uuid_extensions import uuid7

from pygflow.models import EventKind, JobEvent
from pygflow.storage.base import EventLog, StorageError


class SqliteEventLog(EventLog):
    """SQLite-backed durable event log.

    After __init__, the instance is not yet usable. Call connect() first.

    Usage:
        log = SqliteEventLog(".gflow/event.db")
        await log.connect()
        try:
            await log.append(job.id, EventKind.STARTED)
        finally:
            await log.close()
    """

    def __init__(self, db_path: str | Path, run_id: str | None = None, durable: bool = True):
        """Initialize the event log (connection not opened yet).

        Args:
            db_path: Path to SQLite database file, or ":memory:"
            run_id: Run key for appended events; a fresh uuid7 if omitted
            durable: Use synchronous=FULL (True) or NORMAL (False)
        """
        self.db_path = str(db_path)
        self.run_id = run_id or str(uuid7())
        self.durable = durable
        self._connection: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()  # Serialize access to shared connection

    @classmethod
    async def in_memory(cls, run_id: str | None = None) -> SqliteEventLog:
        """Create and connect an in-memory event log for testing."""
        instance = cls(":memory:", run_id=run_id)
        await instance.connect()
        return instance

    def __repr__(self) -> str:
        if self.db_path == ":memory:":
            return f"SqliteEventLog(in-memory, run_id={self.run_id})"
        return f"SqliteEventLog({self.db_path}, run_id={self.run_id})"

    async def connect(self) -> None:
        """Open database connection and initialize schema.

        Fixed initialization sequence:
        1. Open connection
        2. Enable WAL mode
        3. Set synchronous level
        4. Create table and index
        """
        if self._connection is not None:
            return

        try:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

            self._connection = await aiosqlite.connect(
                self.db_path,
                timeout=5.0,
                isolation_level=None,  # Autocommit; each append commits on its own
            )

            # In-memory databases report "memory" and don't support WAL
            cursor = await self._connection.execute("PRAGMA journal_mode=WAL")
            result = await cursor.fetchone()
            await cursor.close()
            if result:
                mode = result[0].upper()
                if mode not in ("WAL", "MEMORY"):
                    raise StorageError(f"Failed to enable WAL mode, got: {result[0]}")

            sync_level = "FULL" if self.durable else "NORMAL"
            await self._connection.execute(f"PRAGMA synchronous={sync_level}")
            await self._connection.execute("PRAGMA busy_timeout=5000")

            await self._create_schema()
            await self._connection.commit()
        except (sqlite3.Error, OSError) as e:
            await self._discard_connection()
            raise StorageError(f"Cannot open event log {self.db_path}: {e}") from e
        except StorageError:
            await self._discard_connection()
            raise

    async def _create_schema(self) -> None:
        """Create the job_events table.

        Schema design:
        - seq gives a total order of appends within the file
        - UPPERCASE kind values, checked by constraint
        - INTEGER timestamps (milliseconds)
        """
        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS job_events (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                run_id TEXT NOT NULL,
                job_id INTEGER NOT NULL,
                kind TEXT CHECK( kind IN (
                    'STARTED','SUCCEEDED','FAILED','SKIPPED'
                ) ) NOT NULL,
                timestamp INTEGER NOT NULL,
                detail TEXT
            )
        """)

        await self._connection.execute("""
            CREATE INDEX IF NOT EXISTS idx_job_events_run_job
            ON job_events(run_id, job_id)
        """)

    async def _discard_connection(self) -> None:
        if self._connection is not None:
            try:
                await self._connection.close()
            except sqlite3.Error:
                pass
            self._connection = None

    def _check_connected(self) -> None:
        if self._connection is None:
            raise StorageError("Event log is not connected. Call connect() first.")

    async def append(self, job_id: int, kind: EventKind, detail: str | None = None) -> JobEvent:
        """Insert one event and commit before returning."""
        self._check_connected()

        timestamp_ms = int(datetime.now().timestamp() * 1000)

        async with self._lock:
            try:
                cursor = await self._connection.execute(
                    """
                    INSERT INTO job_events (run_id, job_id, kind, timestamp, detail)
                    VALUES (?, ?, ?, ?, ?)
                """,
                    (self.run_id, job_id, kind.value, timestamp_ms, detail),
                )
                seq = cursor.lastrowid
                await cursor.close()
                await self._connection.commit()
            except (sqlite3.Error, ValueError) as e:
                # aiosqlite raises ValueError once its connection is closed
                raise StorageError(f"Cannot append {kind} for job {job_id}: {e}") from e

        return JobEvent(
            job_id=job_id,
            kind=kind,
            timestamp=datetime.fromtimestamp(timestamp_ms / 1000.0),
            detail=detail,
            run_id=self.run_id,
            seq=seq,
        )

    async def events(self, job_id: int | None = None, run_id: str | None = None) -> list[JobEvent]:
        """Return events in append order.

        Args:
            job_id: Restrict to one job
            run_id: Read another run stored in the same file (defaults to this run)
        """
        self._check_connected()

        query = """
            SELECT seq, run_id, job_id, kind, timestamp, detail
            FROM job_events
            WHERE run_id = ?
        """
        params: list[object] = [run_id or self.run_id]
        if job_id is not None:
            query += " AND job_id = ?"
            params.append(job_id)
        query += " ORDER BY seq"

        async with self._lock:
            cursor = await self._connection.execute(query, params)
            rows = await cursor.fetchall()
            await cursor.close()

        return [self._row_to_event(row) for row in rows]

    async def runs(self) -> list[str]:
        """List run IDs stored in this file, oldest first."""
        self._check_connected()

        async with self._lock:
            cursor = await self._connection.execute("""
                SELECT run_id FROM job_events
                GROUP BY run_id
                ORDER BY MIN(seq)
            """)
            rows = await cursor.fetchall()
            await cursor.close()

        return [row[0] for row in rows]

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None

    @staticmethod
    def _row_to_event(row) -> JobEvent:
        seq, run_id, job_id, kind, timestamp_ms, detail = row
        return JobEvent(
            job_id=job_id,
            kind=EventKind(kind),
            timestamp=datetime.fromtimestamp(timestamp_ms / 1000.0),
            detail=detail,
            run_id=run_id,
            seq=seq,
        )

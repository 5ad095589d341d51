"""Event log backends.

    - EventLog: Abstract interface
    - SqliteEventLog: Durable SQLite-backed log
    - InMemoryEventLog: In-memory log for testing
"""

from pygflow.storage.base import EventLog, StorageError
from pygflow.storage.memory import InMemoryEventLog
from pygflow.storage.sqlite import SqliteEventLog

__all__ = [
    "EventLog",
    "StorageError",
    "SqliteEventLog",
    "InMemoryEventLog",
]

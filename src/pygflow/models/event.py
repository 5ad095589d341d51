"""Event log record type."""

from dataclasses import dataclass
from datetime import datetime

from pygflow.models.status import EventKind


@dataclass(frozen=True)
class JobEvent:
    """One append-only lifecycle record.

    Attributes:
        job_id: ID of the job the event belongs to
        kind: Lifecycle event kind
        timestamp: When the event was appended
        detail: Optional free-text detail (error message for failures,
            failing upstream job for skips)
        run_id: Run the event was recorded under
        seq: Position in the store, None until persisted
    """

    job_id: int
    kind: EventKind
    timestamp: datetime
    detail: str | None = None
    run_id: str | None = None
    seq: int | None = None

    def __str__(self) -> str:
        line = f"{self.timestamp.isoformat()} job={self.job_id} {self.kind}"
        if self.detail:
            line += f" {self.detail}"
        return line

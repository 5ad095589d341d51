"""Run summary serialization.

After a run, the workflow's state (every job with its final state) is
written as JSON to ``<root>/.gflow/wf.json`` for inspection.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pygflow.errors import InfrastructureError

if TYPE_CHECKING:
    from pygflow.workflow import Workflow


def workflow_summary(workflow: Workflow) -> dict[str, Any]:
    """Serializable view of a workflow; dependencies are given as job IDs."""
    return {
        "workflow_dir": str(workflow.paths.root),
        "run_id": workflow.run_id,
        "exit_status": workflow.exit_status,
        "failed": sorted(workflow.failures.entries()) if workflow.failures is not None else [],
        "jobs": [job.to_dict() for job in workflow.jobs],
    }


def write_summary(path: str | Path, summary: dict[str, Any]) -> Path:
    """Write ``summary`` as indented JSON, replacing any previous file atomically.

    Raises:
        InfrastructureError: If the file cannot be written
    """
    target = Path(path)
    partial = target.with_name(target.name + ".tmp")
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(partial, "w", encoding="utf-8") as f:
            json.dump(summary, f, indent=2)
            f.write("\n")
        os.replace(partial, target)
    except OSError as e:
        raise InfrastructureError(f"Cannot write run summary {target}: {e}") from e
    return target

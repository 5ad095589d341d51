"""
Simple Workflow: Fan-out with a Failure

```text
          ┌── report (fails) ── publish (skipped)
fetch ────┤
          └── plot
```

fetch runs first, report and plot run concurrently once it succeeds.
report exits non-zero, so publish is skipped while plot still completes.
The process exits with status 1.

Run with:
```bash
PYTHONPATH=src python examples/simple_workflow.py
```
"""

import asyncio
import sys
import tempfile

from pygflow import Workflow
from pygflow.log import configure_logging


async def main() -> int:
    configure_logging("INFO")
    with tempfile.TemporaryDirectory() as root:
        wf = Workflow(root)
        fetch = wf.add_job("echo 'id,value' > data.csv && echo '1,42' >> data.csv", name="fetch")
        report = wf.add_job(["sh", "-c", "grep -q missing data.csv"], dependencies=[fetch], name="report")
        wf.add_job("wc -l data.csv", dependencies=[fetch], name="plot")
        wf.add_job("echo publishing", dependencies=[report], name="publish")

        exit_status = await wf.run()

        print()
        for job in wf.jobs:
            print(f"  {job.label:<12} {job.state.value:<10} {job.error or ''}")
        print(f"\nexit status: {exit_status}")
        return exit_status


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))

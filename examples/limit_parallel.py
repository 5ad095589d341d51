"""
Bounded Parallelism

Eight independent jobs each sleep 100ms. With max_concurrency=2 they run
in four waves, so the workflow takes ~400ms instead of ~100ms.

Run with:
```bash
PYTHONPATH=src python examples/limit_parallel.py
```
"""

import asyncio
import tempfile
import time

from pygflow import CallableCommandRunner, Settings, Workflow


async def work(job) -> None:
    print(f"[{time.perf_counter() - START:.2f}s] {job.label} starting")
    await asyncio.sleep(0.1)


async def main() -> None:
    with tempfile.TemporaryDirectory() as root:
        wf = Workflow(
            root,
            settings=Settings(max_concurrency=2),
            runner=CallableCommandRunner(work),
        )
        for index in range(8):
            wf.add_job(f"work {index}", name=f"w{index}")

        exit_status = await wf.run()
        print(f"exit status {exit_status} after {time.perf_counter() - START:.2f}s")


START = time.perf_counter()

if __name__ == "__main__":
    asyncio.run(main())

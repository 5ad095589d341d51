"""
Dependency graph over a workflow's jobs.

Jobs are stored in an arena keyed by their integer ID, and edges are kept
as ID tuples rather than object references. Building the graph validates
it: every dependency must resolve to a job in the arena and the relation
must be acyclic. A graph that fails validation is never handed to the
scheduler.

Example:
    ```python
    graph = DependencyGraph.build(workflow.jobs)
    graph.levels()          # [[1], [2, 3], [4]]
    print(graph.level_graph())
    ```
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from pygflow.errors import ConfigurationError, CycleError, UnknownDependencyError
from pygflow.models import Job


@dataclass
class GraphSummary:
    """
    Summary information about a dependency graph.

    Attributes:
        total_jobs: Number of jobs in the graph
        root_count: Jobs with no dependencies
        leaf_count: Jobs nothing depends on
        max_depth: Length of the longest dependency chain, roots at 0
        roots: Root job IDs
        leaves: Leaf job IDs
    """

    total_jobs: int
    root_count: int
    leaf_count: int
    max_depth: int
    roots: list[int]
    leaves: list[int]


class DependencyGraph:
    """Validated, immutable DAG of jobs indexed by ID."""

    def __init__(
        self,
        jobs: dict[int, Job],
        dependencies: dict[int, tuple[int, ...]],
        dependents: dict[int, tuple[int, ...]],
    ):
        # Use build(); the constructor does no validation.
        self._jobs = jobs
        self._dependencies = dependencies
        self._dependents = dependents

    @classmethod
    def build(cls, jobs: Iterable[Job]) -> DependencyGraph:
        """
        Build and validate the graph.

        Args:
            jobs: Every job of the workflow, in registration order

        Returns:
            The validated graph

        Raises:
            ConfigurationError: If two jobs share an ID
            UnknownDependencyError: If a dependency is not one of ``jobs``
            CycleError: If the dependency relation has a cycle
        """
        arena: dict[int, Job] = {}
        for job in jobs:
            if job.id in arena:
                raise ConfigurationError(f"Duplicate job id {job.id}: {arena[job.id]!r} and {job!r}")
            arena[job.id] = job

        dependencies: dict[int, tuple[int, ...]] = {}
        dependents: dict[int, list[int]] = {job_id: [] for job_id in arena}
        for job_id, job in arena.items():
            dep_ids: list[int] = []
            for dep in job.dependencies:
                # Same ID but a different object is a copy, not the registered job
                if arena.get(dep.id) is not dep:
                    raise UnknownDependencyError(job.label, dep.label)
                if dep.id not in dep_ids:
                    dep_ids.append(dep.id)
                    dependents[dep.id].append(job_id)
            dependencies[job_id] = tuple(dep_ids)

        _check_acyclic(arena, dependencies)

        return cls(
            arena,
            dependencies,
            {job_id: tuple(ids) for job_id, ids in dependents.items()},
        )

    def __len__(self) -> int:
        return len(self._jobs)

    def __iter__(self) -> Iterator[Job]:
        return iter(self._jobs.values())

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._jobs

    @property
    def jobs(self) -> list[Job]:
        """Jobs in registration order."""
        return list(self._jobs.values())

    def job(self, job_id: int) -> Job:
        return self._jobs[job_id]

    def dependencies(self, job_id: int) -> tuple[int, ...]:
        return self._dependencies[job_id]

    def dependents(self, job_id: int) -> tuple[int, ...]:
        return self._dependents[job_id]

    def descendants(self, job_id: int) -> set[int]:
        """Every job that transitively depends on ``job_id``."""
        seen: set[int] = set()
        queue = deque(self._dependents[job_id])
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            queue.extend(self._dependents[current])
        return seen

    def topological_order(self) -> list[int]:
        """Job IDs in an order where every job follows its dependencies (Kahn's algorithm)."""
        in_degree = {job_id: len(deps) for job_id, deps in self._dependencies.items()}
        queue = deque(job_id for job_id, degree in in_degree.items() if degree == 0)
        order: list[int] = []
        while queue:
            job_id = queue.popleft()
            order.append(job_id)
            for dependent in self._dependents[job_id]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    queue.append(dependent)
        return order

    def depths(self) -> dict[int, int]:
        """Distance of each job from the roots (roots have depth 0)."""
        depths: dict[int, int] = {}
        for job_id in self.topological_order():
            deps = self._dependencies[job_id]
            depths[job_id] = 1 + max(depths[d] for d in deps) if deps else 0
        return depths

    def levels(self) -> list[list[int]]:
        """
        Group job IDs by depth.

        Jobs in one level do not depend on each other. The scheduler does
        not run level by level; this is for planning output only.
        """
        depths = self.depths()
        if not depths:
            return []
        levels: list[list[int]] = [[] for _ in range(max(depths.values()) + 1)]
        for job_id in self._jobs:
            levels[depths[job_id]].append(job_id)
        return levels

    def summary(self) -> GraphSummary:
        roots = [job_id for job_id, deps in self._dependencies.items() if not deps]
        leaves = [job_id for job_id, deps in self._dependents.items() if not deps]
        depths = self.depths()
        return GraphSummary(
            total_jobs=len(self._jobs),
            root_count=len(roots),
            leaf_count=len(leaves),
            max_depth=max(depths.values()) if depths else 0,
            roots=roots,
            leaves=leaves,
        )

    def level_graph(self) -> str:
        """
        Level-based view of the graph.

        **Example output**:
        ```
        Execution levels (4 jobs):

        Level 0: [fetch#1]
                 ↓
        Level 1: [clean#2] [index#3] (2 independent jobs)
                 ↓
        Level 2: [report#4]
        ```
        """
        levels = self.levels()
        output = f"Execution levels ({len(self._jobs)} jobs):\n\n"
        for level, job_ids in enumerate(levels):
            labels = "] [".join(self._jobs[job_id].label for job_id in job_ids)
            note = f" ({len(job_ids)} independent jobs)" if len(job_ids) > 1 else ""
            output += f"Level {level}: [{labels}]{note}\n"
            if level < len(levels) - 1:
                output += "         ↓\n"
        return output


def _check_acyclic(jobs: dict[int, Job], dependencies: dict[int, tuple[int, ...]]) -> None:
    """Raise CycleError naming the first cycle found by depth-first search."""
    visiting, done = 1, 2
    color: dict[int, int] = {}

    for start in jobs:
        if start in color:
            continue
        # Iterative DFS so long dependency chains don't hit the recursion limit
        path: list[int] = [start]
        stack: list[Iterator[int]] = [iter(dependencies[start])]
        color[start] = visiting
        while stack:
            dep = next(stack[-1], None)
            if dep is None:
                color[path.pop()] = done
                stack.pop()
                continue
            state = color.get(dep)
            if state == visiting:
                cycle = path[path.index(dep) :] + [dep]
                raise CycleError([jobs[job_id].label for job_id in cycle])
            if state is None:
                color[dep] = visiting
                path.append(dep)
                stack.append(iter(dependencies[dep]))

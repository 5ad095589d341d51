"""Workflow definitions: parsing and job instantiation.

A definition is YAML (or an equivalent mapping):

    workflow_dir: ./run          # relative to the YAML file, default "."
    jobs:
      - name: fetch
        cmd: curl -sSo data.csv https://example.com/data.csv
        outputs: [data.csv]
      - name: clean
        cmd: [python, clean.py]
        dependencies: [fetch]
        clean_tmp: true
      - name: report
        cmd: [python, report.py]
        dependencies:
          - fetch
          - name: render-template    # inline description
            cmd: [python, render.py]

Dependencies refer to jobs by name. Every reference to a name resolves to
one shared Job, whether the job is declared at top level or inline.
Jobs are registered bottom-up, so a job's ID is always greater than the
IDs of its dependencies.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from pygflow.config import Settings
from pygflow.errors import (
    ConfigurationError,
    CycleError,
    DuplicateJobError,
    UnknownDependencyError,
)
from pygflow.executor.command import CommandRunner
from pygflow.models import Command, Job
from pygflow.workflow import EventLogFactory, Workflow

logger = logging.getLogger(__name__)

_JOB_KEYS = {"name", "cmd", "dependencies", "outputs", "clean_tmp", "work_dir"}
_WORKFLOW_KEYS = {"workflow_dir", "jobs"}


@dataclass
class JobDescription:
    """A parsed, not yet instantiated, job."""

    name: str
    cmd: Command
    dependencies: list[str | JobDescription] = field(default_factory=list)
    outputs: list[str] = field(default_factory=list)
    clean_tmp: bool = False
    work_dir: str | None = None

    def dependency_names(self) -> list[str]:
        return [dep if isinstance(dep, str) else dep.name for dep in self.dependencies]


@dataclass
class WorkflowDefinition:
    """A parsed workflow definition."""

    workflow_dir: Path
    jobs: list[JobDescription]


def parse_definition(data: Any, base_dir: str | Path | None = None) -> WorkflowDefinition:
    """
    Validate and convert a mapping into a WorkflowDefinition.

    Args:
        data: Mapping with ``workflow_dir`` and ``jobs``
        base_dir: Directory a relative ``workflow_dir`` is resolved against
            (defaults to the current directory)

    Raises:
        ConfigurationError: If the mapping is malformed
    """
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Workflow definition must be a mapping, got {type(data).__name__}")
    unknown = set(data) - _WORKFLOW_KEYS
    if unknown:
        raise ConfigurationError(f"Unknown workflow keys: {sorted(unknown)}")

    workflow_dir = data.get("workflow_dir", ".")
    if not isinstance(workflow_dir, str) or not workflow_dir:
        raise ConfigurationError("workflow_dir must be a non-empty string")
    root = Path(workflow_dir).expanduser()
    if not root.is_absolute():
        root = Path(base_dir or ".") / root

    jobs = data.get("jobs")
    if not isinstance(jobs, list) or not jobs:
        raise ConfigurationError("jobs must be a non-empty list")

    return WorkflowDefinition(
        workflow_dir=root,
        jobs=[_parse_job(raw, f"jobs[{index}]") for index, raw in enumerate(jobs)],
    )


def _parse_job(raw: Any, where: str) -> JobDescription:
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"{where}: job must be a mapping")
    unknown = set(raw) - _JOB_KEYS
    if unknown:
        raise ConfigurationError(f"{where}: unknown job keys {sorted(unknown)}")

    name = raw.get("name")
    if not isinstance(name, str) or not name:
        raise ConfigurationError(f"{where}: name must be a non-empty string")
    where = f"{where} ({name})"

    cmd = raw.get("cmd")
    if isinstance(cmd, list):
        if not cmd or not all(isinstance(part, str | int | float) for part in cmd):
            raise ConfigurationError(f"{where}: cmd list must hold strings")
        cmd = [str(part) for part in cmd]
    elif not isinstance(cmd, str) or not cmd.strip():
        raise ConfigurationError(f"{where}: cmd must be a string or a list of strings")

    dependencies: list[str | JobDescription] = []
    for index, dep in enumerate(_string_or_list(raw, "dependencies", where, allow_mappings=True)):
        if isinstance(dep, Mapping):
            dependencies.append(_parse_job(dep, f"{where}.dependencies[{index}]"))
        else:
            dependencies.append(dep)

    clean_tmp = raw.get("clean_tmp", False)
    if not isinstance(clean_tmp, bool):
        raise ConfigurationError(f"{where}: clean_tmp must be a boolean")

    work_dir = raw.get("work_dir")
    if work_dir is not None and not isinstance(work_dir, str):
        raise ConfigurationError(f"{where}: work_dir must be a string")

    return JobDescription(
        name=name,
        cmd=cmd,
        dependencies=dependencies,
        outputs=_string_or_list(raw, "outputs", where),
        clean_tmp=clean_tmp,
        work_dir=work_dir,
    )


def _string_or_list(raw: Mapping, key: str, where: str, allow_mappings: bool = False) -> list:
    value = raw.get(key)
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ConfigurationError(f"{where}: {key} must be a list")
    for item in value:
        if isinstance(item, str) and item:
            continue
        if allow_mappings and isinstance(item, Mapping):
            continue
        raise ConfigurationError(f"{where}: invalid {key} entry {item!r}")
    return list(value)


def load_definition(path: str | Path) -> WorkflowDefinition:
    """
    Read a YAML workflow definition.

    A relative ``workflow_dir`` is resolved against the YAML file's directory.

    Raises:
        ConfigurationError: If the file is missing, not YAML, or malformed
    """
    source = Path(path).expanduser()
    try:
        with open(source, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read workflow definition {source}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {source}: {e}") from e
    return parse_definition(data, base_dir=source.resolve().parent)


def _collect(definition: WorkflowDefinition) -> dict[str, JobDescription]:
    """Name table of every description, top-level ones first."""
    table: dict[str, JobDescription] = {}
    for description in definition.jobs:
        if description.name in table:
            raise DuplicateJobError(description.name)
        table[description.name] = description

    # Pre-order walk of the inline descriptions
    stack = list(reversed(definition.jobs))
    while stack:
        description = stack.pop()
        # An inline description naming a known job is a reference to it
        table.setdefault(description.name, description)
        stack.extend(
            dep for dep in reversed(description.dependencies) if isinstance(dep, JobDescription)
        )
    return table


def instantiation_order(definition: WorkflowDefinition) -> list[JobDescription]:
    """
    Order descriptions so every job follows its dependencies.

    Depth-first with an explicit stack, so long dependency chains declared
    dependents-first don't hit the recursion limit.

    Raises:
        UnknownDependencyError: If a dependency name is never declared
        CycleError: If dependencies form a cycle
        DuplicateJobError: If two top-level jobs share a name
    """
    table = _collect(definition)
    order: list[JobDescription] = []
    done: set[str] = set()

    for description in definition.jobs:
        if description.name in done:
            continue
        chain = [description.name]
        stack = [iter(description.dependency_names())]
        while stack:
            name = chain[-1]
            for dep_name in stack[-1]:
                if dep_name not in table:
                    raise UnknownDependencyError(name, dep_name)
                if dep_name in done:
                    continue
                if dep_name in chain:
                    raise CycleError(chain[chain.index(dep_name) :] + [dep_name])
                chain.append(dep_name)
                stack.append(iter(table[dep_name].dependency_names()))
                break
            else:
                stack.pop()
                chain.pop()
                done.add(name)
                order.append(table[name])
    return order


def build_workflow(
    definition: WorkflowDefinition,
    settings: Settings | None = None,
    runner: CommandRunner | None = None,
    event_log_factory: EventLogFactory | None = None,
) -> Workflow:
    """
    Instantiate a Workflow with one Job per distinct job name.

    The whole definition is validated before the first job is registered.

    Raises:
        ConfigurationError: If the definition cannot form a valid graph
    """
    order = instantiation_order(definition)

    workflow = Workflow(
        definition.workflow_dir,
        settings=settings,
        runner=runner,
        event_log_factory=event_log_factory,
    )
    built: dict[str, Job] = {}
    for description in order:
        built[description.name] = workflow.add_job(
            description.cmd,
            dependencies=[built[name] for name in description.dependency_names()],
            outputs=description.outputs,
            clean_tmp=description.clean_tmp,
            name=description.name,
            work_dir=description.work_dir,
        )
    logger.debug(f"Instantiated {len(built)} jobs from {len(definition.jobs)} top-level descriptions")
    return workflow


def workflow_from_yaml(path: str | Path, settings: Settings | None = None, **kwargs) -> Workflow:
    return build_workflow(load_definition(path), settings=settings, **kwargs)


def run_from_yaml(path: str | Path, settings: Settings | None = None, **kwargs) -> int:
    """Load, build, and run a YAML workflow; returns the exit status."""
    workflow = workflow_from_yaml(path, settings=settings, **kwargs)
    return asyncio.run(workflow.run())

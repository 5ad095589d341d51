"""
gflow command-line interface.

Commands:
    gflow run WORKFLOW_YAML      Run a workflow; exit with its status
    gflow plan WORKFLOW_YAML     Show execution levels without running
    gflow events WORKFLOW_DIR    Print the event log of a run
"""

import asyncio
import sys
from pathlib import Path

import click

from pygflow import __version__
from pygflow.config import Settings
from pygflow.definition import workflow_from_yaml
from pygflow.errors import ConfigurationError, InfrastructureError
from pygflow.executor.exit_status import EXIT_CONFIGURATION_ERROR, EXIT_INFRASTRUCTURE_ERROR
from pygflow.log import configure_logging
from pygflow.provision import WorkflowPaths
from pygflow.storage import SqliteEventLog


def _load_settings(**overrides) -> Settings:
    try:
        return Settings.from_env().with_overrides(**overrides)
    except ConfigurationError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(EXIT_CONFIGURATION_ERROR)


@click.group()
@click.version_option(version=__version__, prog_name="gflow")
def main():
    """gflow - local workflow executor."""


@main.command()
@click.argument("workflow_yaml", type=click.Path(dir_okay=False, path_type=Path))
@click.option(
    "--max-concurrency",
    type=click.IntRange(min=1),
    default=None,
    help="Maximum number of jobs running at once (default: unbounded).",
)
@click.option("--log-level", default=None, help="Logging level (default: INFO or GFLOW_LOG_LEVEL).")
def run(workflow_yaml: Path, max_concurrency: int | None, log_level: str | None):
    """Run the workflow defined in WORKFLOW_YAML."""
    settings = _load_settings(max_concurrency=max_concurrency, log_level=log_level)
    configure_logging(settings.log_level)

    try:
        workflow = workflow_from_yaml(workflow_yaml, settings=settings)
        exit_status = asyncio.run(workflow.run())
    except ConfigurationError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(EXIT_CONFIGURATION_ERROR)
    except InfrastructureError as e:
        click.echo(f"Infrastructure error: {e}", err=True)
        sys.exit(EXIT_INFRASTRUCTURE_ERROR)

    sys.exit(exit_status)


@main.command()
@click.argument("workflow_yaml", type=click.Path(dir_okay=False, path_type=Path))
def plan(workflow_yaml: Path):
    """Validate WORKFLOW_YAML and print its execution levels."""
    settings = _load_settings()
    try:
        graph = workflow_from_yaml(workflow_yaml, settings=settings).graph()
    except ConfigurationError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(EXIT_CONFIGURATION_ERROR)

    click.echo(graph.level_graph(), nl=False)
    summary = graph.summary()
    click.echo(
        f"\n{summary.total_jobs} jobs, {summary.root_count} roots, "
        f"{summary.leaf_count} leaves, max depth {summary.max_depth}"
    )


@main.command()
@click.argument("workflow_dir", type=click.Path(file_okay=False, path_type=Path))
@click.option("--run", "run_id", default=None, help="Run ID to show (default: latest run).")
@click.option("--job", "job_id", type=int, default=None, help="Only show events of this job.")
def events(workflow_dir: Path, run_id: str | None, job_id: int | None):
    """Print the event log stored under WORKFLOW_DIR."""
    settings = _load_settings()
    paths = WorkflowPaths.from_root(workflow_dir, settings.state_dir_name)
    if not paths.event_db_path.exists():
        click.echo(f"No event log at {paths.event_db_path}", err=True)
        sys.exit(EXIT_INFRASTRUCTURE_ERROR)

    try:
        lines = asyncio.run(_read_events(paths.event_db_path, run_id, job_id))
    except InfrastructureError as e:
        click.echo(f"Infrastructure error: {e}", err=True)
        sys.exit(EXIT_INFRASTRUCTURE_ERROR)

    for line in lines:
        click.echo(line)


async def _read_events(db_path: Path, run_id: str | None, job_id: int | None) -> list[str]:
    async with SqliteEventLog(db_path) as log:
        runs = await log.runs()
        if not runs:
            return []
        selected = run_id or runs[-1]
        if selected not in runs:
            raise click.BadParameter(f"unknown run {selected!r}", param_hint="--run")
        found = await log.events(job_id=job_id, run_id=selected)
    return [f"run {selected}"] + [str(event) for event in found]


if __name__ == "__main__":
    main()

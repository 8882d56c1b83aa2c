"""CLI entry point for dsprune."""

from __future__ import annotations

import logging
from pathlib import Path

import click


# Default config template
CONFIG_TEMPLATE = """\
repository:
  url: http://localhost:8080/fedora
  username: fedoraAdmin
  password: fedoraAdmin
  timeout: 30  # seconds, per repository call

datastream: TECHMD  # used when a command is not given one
log_message: ""  # audit message attached to each purge

report:
  precision: 2  # decimal places in the space-freed figure
"""

_PROJECT_ROOT_OPTION = click.option(
    "--project-root",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    default=".",
    help="Directory holding .dsprune/config.yaml (default: cwd).",
)


def _load(project_root: str) -> dict:
    from dsprune.config import ConfigError, load_config

    try:
        return load_config(Path(project_root))
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log every checksum comparison.")
def cli(verbose: bool) -> None:
    """dsprune: collapse duplicate Fedora datastream versions."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


@cli.command()
@_PROJECT_ROOT_OPTION
def init(project_root: str) -> None:
    """Initialize .dsprune/ directory with a default config."""
    root = Path(project_root)
    config_dir = root / ".dsprune"

    if config_dir.exists():
        click.echo(f".dsprune/ already exists at {config_dir}")
        raise SystemExit(1)

    config_dir.mkdir(parents=True)
    config_path = config_dir / "config.yaml"
    config_path.write_text(CONFIG_TEMPLATE)
    click.echo(f"Created {config_path}")

    # Load config through the standard path to validate it
    _load(project_root)
    click.echo("\nEdit .dsprune/config.yaml to point at your repository.")


@cli.command()
@_PROJECT_ROOT_OPTION
@click.argument("collection")
@click.argument("datastream", required=False)
@click.option("--dry-run", is_flag=True, help="Report what would be purged without purging.")
@click.option("--log-message", default=None, help="Audit message attached to each purge.")
def purge(
    project_root: str,
    collection: str,
    datastream: str | None,
    dry_run: bool,
    log_message: str | None,
) -> None:
    """Collapse duplicate DATASTREAM versions on every object in COLLECTION."""
    from dsprune.batch import run_batch
    from dsprune.errors import FetchFailure
    from dsprune.report import render_report
    from dsprune.repository import open_repository

    config = _load(project_root)
    dsid = datastream or config["datastream"]
    message = config["log_message"] if log_message is None else log_message

    def _progress(position: int, total: int, object_id: str) -> None:
        click.echo(f"Processing record {position} of {total}: {object_id}")

    click.echo(f"Querying repository for members of {collection}...")
    with open_repository(config) as repository:
        try:
            report = run_batch(
                repository, collection, dsid,
                log_message=message, dry_run=dry_run, progress=_progress,
            )
        except FetchFailure as exc:
            raise click.ClickException(str(exc)) from exc

    if report.total == 0:
        click.echo(
            f"Error: no objects found in {collection}. Check the collection name."
        )
        raise SystemExit(1)

    click.echo("")
    click.echo(render_report(report, config["report"]["precision"]), nl=False)

    if report.problems:
        raise SystemExit(1)


@cli.command("compact-object")
@_PROJECT_ROOT_OPTION
@click.argument("object_id")
@click.argument("datastream", required=False)
@click.option("--log-message", default=None, help="Audit message attached to each purge.")
def compact_object(
    project_root: str,
    object_id: str,
    datastream: str | None,
    log_message: str | None,
) -> None:
    """Collapse duplicate DATASTREAM versions on a single object."""
    from dsprune.compact import compact_datastream
    from dsprune.errors import FetchFailure
    from dsprune.report import format_bytes
    from dsprune.repository import open_repository

    config = _load(project_root)
    dsid = datastream or config["datastream"]
    message = config["log_message"] if log_message is None else log_message

    with open_repository(config) as repository:
        try:
            result = compact_datastream(repository, object_id, dsid, log_message=message)
        except FetchFailure as exc:
            raise click.ClickException(str(exc)) from exc

    click.echo(f"{object_id} ({dsid}):")
    click.echo(f"  Versions before: {result.versions_before}")
    click.echo(f"  Versions after: {result.versions_after}")
    click.echo(f"  Purges: {result.purges}")
    click.echo(
        f"  Space freed: {format_bytes(result.bytes_freed, config['report']['precision'])}"
    )
    if result.failed:
        click.echo(f"  Problem: {result.problem}")
        raise SystemExit(1)


@cli.command()
@_PROJECT_ROOT_OPTION
@click.argument("object_id")
@click.argument("datastream", required=False)
def history(project_root: str, object_id: str, datastream: str | None) -> None:
    """List the versions of DATASTREAM on OBJECT_ID, oldest first."""
    from dsprune.compact import VersionHistory, plan_runs
    from dsprune.errors import FetchFailure
    from dsprune.repository import open_repository

    config = _load(project_root)
    dsid = datastream or config["datastream"]

    with open_repository(config) as repository:
        try:
            snapshot = VersionHistory.fetch(repository, object_id, dsid)
        except FetchFailure as exc:
            raise click.ClickException(str(exc)) from exc

    click.echo(f"{object_id} ({dsid}): {len(snapshot)} version(s)")
    for v in snapshot:
        checksum = v.checksum if v.checksum is not None else "(none)"
        click.echo(f"  {v.version_id}  {v.created_at}  {v.size_bytes:>10}  {checksum}")

    runs = plan_runs(snapshot.versions)
    redundant = sum(len(r.redundant) for r in runs)
    click.echo(f"Redundant versions: {redundant} in {len(runs)} run(s)")

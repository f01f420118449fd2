"""
Operator commands for the sewadar importer (``flask importer ...``).
"""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Optional

import click
from celery import Celery
from celery.exceptions import TimeoutError as CeleryTimeoutError
from flask.cli import ScriptInfo

from sewa_app.importer.adapters import SewadarSpreadsheetAdapter, SpreadsheetAdapterError
from sewa_app.importer.celery_app import DEFAULT_QUEUE_NAME, get_celery_app
from sewa_app.importer.pipeline import (
    BadgeAllocator,
    EmptyImportError,
    JobNotFound,
    badge_pattern,
    next_badge,
)
from sewa_app.importer.service import get_job_registry
from sewa_app.models import Gender, Sewadar, db
from sewa_app.utils.importer import get_importer_adapters, is_importer_enabled


@click.group(name="importer", invoke_without_command=True)
@click.pass_context
def importer_cli(ctx):
    """
    Sewadar importer management commands.

    Displays the accepted spreadsheet formats when invoked without a subcommand.
    """
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()
    if not is_importer_enabled(app):
        raise click.ClickException(
            "Importer is disabled via IMPORTER_ENABLED=false. Enable it to run importer CLI commands."
        )
    if ctx.invoked_subcommand is None:
        adapters = get_importer_adapters(app)
        if not adapters:
            click.echo("No importer adapters configured.")
        else:
            click.echo("Enabled importer adapters:")
            for adapter in adapters:
                click.echo(f"  - {adapter}")


def get_disabled_importer_group() -> click.Group:
    """
    Return a minimal command group that informs the operator the importer is disabled.
    """

    @click.group(name="importer", invoke_without_command=True)
    def disabled_group():
        raise click.ClickException("Importer commands are unavailable because IMPORTER_ENABLED=false.")

    return disabled_group


def _resolve_celery(app) -> Celery:
    celery_app = get_celery_app(app)
    if celery_app is None:
        raise click.ClickException(
            "Importer Celery app is unavailable. Ensure IMPORTER_ENABLED=true and the "
            "importer package initialises before running worker commands."
        )
    return celery_app


@importer_cli.command("import-sewadars")
@click.option(
    "--file",
    "file_path",
    required=True,
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    help="Spreadsheet to import (.xlsx or .csv).",
)
@click.option("--area-code", help="Restrict rows to centers of this area.")
@click.option("--actor-id", help="Recorded as created_by/updated_by on written sewadars.")
@click.option("--wait/--no-wait", default=False, help="Poll until the job reaches a terminal state.")
@click.option("--timeout", default=600.0, show_default=True, help="Seconds to wait with --wait.")
@click.pass_context
def import_sewadars(
    ctx,
    file_path: Path,
    area_code: Optional[str],
    actor_id: Optional[str],
    wait: bool,
    timeout: float,
):
    """Queue a sewadar import job for a spreadsheet."""
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()

    try:
        with file_path.open("rb") as handle:
            adapter = SewadarSpreadsheetAdapter(handle, filename=file_path.name)
            rows = adapter.read_rows()
    except SpreadsheetAdapterError as exc:
        raise click.ClickException(str(exc)) from exc

    registry = get_job_registry(app)
    try:
        submission = registry.submit(
            rows,
            area_code=area_code.upper() if area_code else None,
            actor_id=actor_id,
        )
    except EmptyImportError as exc:
        raise click.ClickException(str(exc)) from exc
    except Exception as exc:
        raise click.ClickException(f"Failed to enqueue sewadar import: {exc}") from exc

    app.logger.info(
        "Sewadar import queued via CLI",
        extra={"importer_job_id": submission.job_id, "importer_rows_total": submission.total},
    )
    click.echo(json.dumps(submission.to_dict()))
    if not wait:
        return

    interval = float(app.config.get("IMPORTER_PROGRESS_POLL_INTERVAL_SECONDS", 1.0))
    deadline = time.monotonic() + timeout
    while True:
        try:
            snapshot = registry.poll(submission.job_id)
        except JobNotFound as exc:
            raise click.ClickException(f"Job {submission.job_id} disappeared before completion.") from exc
        if snapshot["status"] != "processing":
            break
        if time.monotonic() >= deadline:
            raise click.ClickException(f"Job {submission.job_id} still processing after {timeout}s.")
        time.sleep(interval)

    click.echo(json.dumps(snapshot, indent=2))
    if snapshot["status"] == "failed":
        raise click.ClickException(f"Import job {submission.job_id} failed: {snapshot['message']}")


@importer_cli.command("status")
@click.argument("job_id")
@click.pass_context
def import_status(ctx, job_id: str):
    """Print the current snapshot of an import job."""
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()
    try:
        snapshot = get_job_registry(app).poll(job_id)
    except JobNotFound as exc:
        raise click.ClickException("Job not found") from exc
    click.echo(json.dumps(snapshot, indent=2))


@importer_cli.command("purge-jobs")
@click.pass_context
def purge_jobs(ctx):
    """Delete import jobs whose retention period has elapsed."""
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()
    removed = get_job_registry(app).purge_expired()
    click.echo(f"Purged {removed} expired import job(s).")


@importer_cli.command("next-badge")
@click.option("--center", "center_id", required=True, help="4-digit center code.")
@click.option("--gender", type=click.Choice([gender.value for gender in Gender], case_sensitive=False), required=True)
@click.option("--area-code", help="Area code prefix (required for permanent badges).")
@click.option("--temporary", is_flag=True, help="Use the temporary badge pattern (T<center><code>).")
@click.option("--reserve", is_flag=True, help="Consume the number from the badge sequence.")
@click.pass_context
def next_badge_command(
    ctx,
    center_id: str,
    gender: str,
    area_code: Optional[str],
    temporary: bool,
    reserve: bool,
):
    """Show (or reserve) the next badge number for a center and gender."""
    info = ctx.ensure_object(ScriptInfo)
    info.load_app()
    try:
        pattern = badge_pattern(center_id, gender.upper(), temporary=temporary, area_code=area_code)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc

    if reserve:
        try:
            badge = BadgeAllocator(db.session).allocate(pattern)
        except ValueError as exc:
            db.session.rollback()
            raise click.ClickException(str(exc)) from exc
        db.session.commit()
    else:
        existing = db.session.query(Sewadar.badge_number).filter(Sewadar.badge_number.like(f"{pattern}%")).all()
        badge = next_badge((value for (value,) in existing), pattern)
    click.echo(badge)


@importer_cli.group(name="worker")
@click.pass_context
def worker_group(ctx):
    """Manage the importer background worker."""
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()
    state = app.extensions.get("importer", {})
    if not state.get("worker_enabled") and not app.config.get("IMPORTER_WORKER_ENABLED"):
        click.echo(
            "Warning: IMPORTER_WORKER_ENABLED is false. Commands will still run, "
            "but enable the flag to surface accurate health status.",
            err=True,
        )


@worker_group.command("run")
@click.option("--loglevel", default="info", show_default=True)
@click.option("--concurrency", type=int, help="Number of worker processes/threads.")
@click.option("--pool", type=str, help="Celery pool implementation (e.g., 'prefork', 'solo', 'threads').")
@click.option(
    "--queues",
    default=DEFAULT_QUEUE_NAME,
    show_default=True,
    help="Comma-separated queue list to consume.",
)
@click.pass_context
def worker_run(ctx, loglevel: str, concurrency: Optional[int], pool: Optional[str], queues: str):
    """
    Start the Celery worker in the current process.
    """
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()
    celery_app = _resolve_celery(app)
    app.extensions.setdefault("importer", {})["worker_enabled"] = True

    argv = ["worker", "--loglevel", loglevel, "-Q", queues]
    if concurrency:
        argv.extend(["--concurrency", str(concurrency)])
    if pool:
        argv.extend(["--pool", pool])

    pool_msg = f", pool: {pool}" if pool else ""
    click.echo(f"Starting importer worker (queues: {queues}, loglevel: {loglevel}{pool_msg})")
    try:
        celery_app.worker_main(argv=argv)
    except KeyboardInterrupt:
        click.echo("Worker shutdown requested. Exiting...")


@worker_group.command("ping")
@click.option("--timeout", default=10.0, show_default=True, help="Seconds to wait for a response.")
@click.pass_context
def worker_ping(ctx, timeout: float):
    """
    Validate worker connectivity by executing the heartbeat task.
    """
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()
    celery_app = _resolve_celery(app)
    task = celery_app.tasks.get("importer.healthcheck")
    if task is None:
        raise click.ClickException("Heartbeat task 'importer.healthcheck' is not registered.")

    result = task.apply_async()
    try:
        payload = result.get(timeout=timeout)
    except CeleryTimeoutError as exc:
        raise click.ClickException(f"Worker did not respond within {timeout}s") from exc
    except Exception as exc:
        raise click.ClickException(f"Worker ping failed: {exc}") from exc

    click.echo(json.dumps(payload, indent=2))

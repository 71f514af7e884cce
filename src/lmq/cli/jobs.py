"""CLI commands for job queue management."""

import asyncio
import json
import logging
import sqlite3

import click

from lmq.cli.formatting import format_timestamp, get_status_color, truncate
from lmq.config import LMQConfig
from lmq.db import (
    DatabaseLockedError,
    Job,
    JobStatus,
    get_active_jobs,
    get_job,
    get_jobs_filtered,
    lesson_exists,
)
from lmq.jobs.queue import (
    cancel_job,
    enqueue_job,
    get_queue_stats,
    reset_job,
)
from lmq.jobs.runtime import build_runtime
from lmq.jobs.service import RetryResult, classify_retry

logger = logging.getLogger(__name__)

STATUS_CHOICES = [s.value for s in JobStatus] + ["active", "all"]


def _require_conn(ctx: click.Context) -> sqlite3.Connection:
    conn = ctx.obj.get("db_conn")
    if conn is None:
        raise click.ClickException("Failed to connect to database.")
    return conn


def _job_to_dict(job: Job) -> dict:
    return {
        "entity_id": job.entity_id,
        "status": job.status.value,
        "attempt_count": job.attempt_count,
        "last_error": job.last_error,
        "result_ref": job.result_ref,
        "created_at": job.created_at,
        "updated_at": job.updated_at,
        "claimed_at": job.claimed_at,
        "worker_id": job.worker_id,
    }


@click.group("jobs")
def jobs_group() -> None:
    """Inspect and control lesson transcription jobs.

    Examples:

        # Jobs needing attention (pending, processing, failed)
        lmq jobs list

        # Queue a lesson for transcription
        lmq jobs enqueue <lesson-id>

        # Retry a failed job
        lmq jobs retry <lesson-id>

        # Run one dispatcher sweep without a server
        lmq jobs sweep
    """
    pass


@jobs_group.command("list")
@click.option(
    "--status",
    "-s",
    type=click.Choice(STATUS_CHOICES),
    default="active",
    help="Filter by job status ('active' = pending, processing and failed).",
)
@click.option(
    "--limit",
    "-n",
    type=int,
    default=50,
    help="Maximum number of jobs to show (ignored for 'active').",
)
@click.option(
    "--json",
    "json_output",
    is_flag=True,
    help="Output in JSON format.",
)
@click.pass_context
def list_jobs(ctx: click.Context, status: str, limit: int, json_output: bool) -> None:
    """List jobs, most recently updated first."""
    conn = _require_conn(ctx)

    if status == "active":
        summaries = get_active_jobs(conn)
        rows = [
            (s.entity_id, s.status, s.attempt_count, s.title, s.last_error, s.updated_at)
            for s in summaries
        ]
        data = [s.to_dict() for s in summaries]
    else:
        status_filter = None if status == "all" else JobStatus(status)
        jobs = get_jobs_filtered(conn, status=status_filter, limit=limit)
        rows = [
            (j.entity_id, j.status, j.attempt_count, None, j.last_error, j.updated_at)
            for j in jobs
        ]
        data = [_job_to_dict(j) for j in jobs]

    if json_output:
        click.echo(json.dumps(data, indent=2))
        return

    if not rows:
        click.echo("No jobs found.")
        return

    click.echo(
        f"{'LESSON':<38} {'STATUS':<11} {'TRY':>3}  {'TITLE':<30} "
        f"{'UPDATED':<20} ERROR"
    )
    click.echo("-" * 120)
    for entity_id, job_status, attempts, title, error, updated in rows:
        # Pad before styling so ANSI codes don't break alignment
        status_colored = click.style(
            f"{job_status.value:<11}", fg=get_status_color(job_status)
        )
        click.echo(
            f"{truncate(entity_id, 38):<38} {status_colored} {attempts:>3}  "
            f"{truncate(title, 30):<30} {format_timestamp(updated):<20} "
            f"{truncate(error, 40)}"
        )


@jobs_group.command("show")
@click.argument("entity_id")
@click.option(
    "--json",
    "json_output",
    is_flag=True,
    help="Output in JSON format.",
)
@click.pass_context
def show_job(ctx: click.Context, entity_id: str, json_output: bool) -> None:
    """Show the job for a lesson."""
    conn = _require_conn(ctx)

    job = get_job(conn, entity_id)
    if job is None:
        raise click.ClickException(f"Job not found: {entity_id}")

    if json_output:
        click.echo(json.dumps(_job_to_dict(job), indent=2))
        return

    status_colored = click.style(
        job.status.value.upper(), fg=get_status_color(job.status)
    )
    click.echo(f"\nJob: {job.entity_id}")
    click.echo("-" * 50)
    click.echo(f"  Status:      {status_colored}")
    click.echo(f"  Attempts:    {job.attempt_count}")
    click.echo(f"  Created:     {job.created_at}")
    click.echo(f"  Updated:     {job.updated_at}")
    if job.status is JobStatus.PROCESSING:
        click.echo(f"  Claimed:     {job.claimed_at}")
        click.echo(f"  Worker:      {job.worker_id}")
    if job.result_ref:
        click.echo(f"  Result:      {job.result_ref}")
    if job.last_error:
        click.echo("")
        click.echo(f"  Error:       {click.style(job.last_error, fg='red')}")
    click.echo("")


@jobs_group.command("enqueue")
@click.argument("entity_id")
@click.pass_context
def enqueue_cmd(ctx: click.Context, entity_id: str) -> None:
    """Queue a lesson for transcription.

    The job is picked up by the next sweep of a running `lmq serve`, or by
    `lmq jobs sweep`.
    """
    conn = _require_conn(ctx)

    if not lesson_exists(conn, entity_id):
        raise click.ClickException(f"Lesson not found: {entity_id}")

    try:
        created = enqueue_job(conn, entity_id)
    except DatabaseLockedError as e:
        raise click.ClickException(str(e)) from e

    if created:
        click.echo(f"Queued {entity_id}")
    else:
        click.echo(f"Job {entity_id} is already pending or processing")


@jobs_group.command("retry")
@click.argument("entity_id")
@click.pass_context
def retry_job_cmd(ctx: click.Context, entity_id: str) -> None:
    """Retry a failed or stuck job.

    Pending and processing jobs are reset too, which frees a job held by
    a worker that died. Completed jobs are not retried; enqueue them again.
    """
    conn = _require_conn(ctx)

    job = get_job(conn, entity_id)
    verdict = classify_retry(job)
    if verdict is RetryResult.NOT_FOUND:
        raise click.ClickException(f"Job not found: {entity_id}")
    if verdict is RetryResult.REJECTED:
        raise click.ClickException(
            f"Job {entity_id} already completed; use 'lmq jobs enqueue' to run it again."
        )

    if reset_job(conn, entity_id, force=True):
        click.echo(f"Requeued {entity_id} (was {job.status.value})")
    else:
        raise click.ClickException("Failed to requeue job.")


@jobs_group.command("cancel")
@click.argument("entity_id")
@click.pass_context
def cancel_job_cmd(ctx: click.Context, entity_id: str) -> None:
    """Dismiss a lesson's job (set it idle).

    A worker already running for it stops at its next step.
    """
    conn = _require_conn(ctx)

    if cancel_job(conn, entity_id):
        click.echo(f"Cancelled {entity_id}")
    else:
        raise click.ClickException(f"Job not found: {entity_id}")


@jobs_group.command("status")
@click.pass_context
def show_status(ctx: click.Context) -> None:
    """Show queue statistics."""
    conn = _require_conn(ctx)
    stats = get_queue_stats(conn)

    click.echo("Job Queue Status")
    click.echo("-" * 30)
    for status in JobStatus:
        click.echo(f"  {status.value.capitalize() + ':':<12}{stats[status.value]:>5}")
    click.echo("-" * 30)
    click.echo(f"  {'Total:':<12}{stats['total']:>5}")


async def _sweep_once(config: LMQConfig) -> tuple[list[str], int]:
    runtime = build_runtime(config)
    try:
        started = await runtime.dispatcher.tick()
    finally:
        # Workers are bounded by the job timeout, so wait for them all
        cancelled = await runtime.shutdown(timeout=None)
    return started, cancelled


@jobs_group.command("sweep")
@click.pass_context
def sweep_cmd(ctx: click.Context) -> None:
    """Run one dispatcher sweep and wait for the jobs it started.

    Recovers stale jobs, claims pending ones up to the worker limit and
    processes them in this process. Useful when no server is running.
    """
    config: LMQConfig = ctx.obj["config"]

    started, _ = asyncio.run(_sweep_once(config))
    if not started:
        click.echo("No pending jobs.")
        return

    conn = _require_conn(ctx)
    click.echo(f"Processed {len(started)} job(s):")
    for entity_id in started:
        job = get_job(conn, entity_id)
        status = job.status.value if job else "missing"
        click.echo(f"  {entity_id}: {status}")

"""API handlers for job endpoints.

Endpoints:
    POST /jobs/{entity_id} - Request processing for a lesson
    GET /jobs - List jobs needing attention
    GET /jobs/{entity_id} - Get job detail
    POST /jobs/{entity_id}/retry - Retry a failed or stuck job
    DELETE /jobs/{entity_id} - Dismiss a job
"""

from __future__ import annotations

import logging

from aiohttp import web

from lmq.db.types import Job
from lmq.jobs.exceptions import LessonNotFoundError
from lmq.jobs.service import EnqueueResult, JobService, RetryResult
from lmq.server.api.errors import NOT_FOUND, RESOURCE_CONFLICT, api_error
from lmq.server.middleware import entity_id_required, shutdown_check_middleware

logger = logging.getLogger(__name__)


def job_to_dict(job: Job) -> dict:
    """Serialize a job record for the detail endpoint."""
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


def _service(request: web.Request) -> JobService:
    return request.app["job_service"]


@shutdown_check_middleware
@entity_id_required
async def api_enqueue_handler(request: web.Request) -> web.Response:
    """Handle POST /jobs/{entity_id}.

    Returns as soon as the job is recorded; processing happens in the
    background.

    Returns:
        202 with status "started", 200 with status "already_active" if a
        job for the lesson is pending or processing, 404 if the lesson
        doesn't exist.
    """
    entity_id = request["entity_id"]
    try:
        result = await _service(request).request_processing(entity_id)
    except LessonNotFoundError:
        return api_error("Lesson not found", code=NOT_FOUND, status=404)

    if result is EnqueueResult.ALREADY_ACTIVE:
        return web.json_response(
            {"entity_id": entity_id, "status": result.value}, status=200
        )
    return web.json_response({"entity_id": entity_id, "status": result.value}, status=202)


async def api_jobs_handler(request: web.Request) -> web.Response:
    """Handle GET /jobs - pending, processing and failed jobs, newest first."""
    summaries = await _service(request).list_active()
    return web.json_response(
        {"jobs": [s.to_dict() for s in summaries], "total": len(summaries)}
    )


@entity_id_required
async def api_job_detail_handler(request: web.Request) -> web.Response:
    """Handle GET /jobs/{entity_id}."""
    job = await _service(request).get(request["entity_id"])
    if job is None:
        return api_error("Job not found", code=NOT_FOUND, status=404)
    return web.json_response(job_to_dict(job))


@shutdown_check_middleware
@entity_id_required
async def api_job_retry_handler(request: web.Request) -> web.Response:
    """Handle POST /jobs/{entity_id}/retry.

    Returns:
        202 when the job is pending again, 404 if there is no job (or it
        was dismissed), 409 if the job already completed.
    """
    entity_id = request["entity_id"]
    result = await _service(request).retry(entity_id)

    if result is RetryResult.NOT_FOUND:
        return api_error("Job not found", code=NOT_FOUND, status=404)
    if result is RetryResult.REJECTED:
        return api_error(
            "Job already completed; request processing again instead",
            code=RESOURCE_CONFLICT,
            status=409,
        )
    return web.json_response({"entity_id": entity_id, "status": "pending"}, status=202)


@entity_id_required
async def api_job_cancel_handler(request: web.Request) -> web.Response:
    """Handle DELETE /jobs/{entity_id}.

    Sets the job idle. A worker already running for it stops at its next
    step and its result is discarded.
    """
    if not await _service(request).cancel(request["entity_id"]):
        return api_error("Job not found", code=NOT_FOUND, status=404)
    return web.Response(status=204)


def setup_job_routes(app: web.Application) -> None:
    """Register job API routes with the application.

    Args:
        app: aiohttp Application to configure.
    """
    app.router.add_get("/jobs", api_jobs_handler)
    app.router.add_post("/jobs/{entity_id}", api_enqueue_handler)
    app.router.add_get("/jobs/{entity_id}", api_job_detail_handler)
    app.router.add_post("/jobs/{entity_id}/retry", api_job_retry_handler)
    app.router.add_delete("/jobs/{entity_id}", api_job_cancel_handler)

"""JSON API for the job queue."""

from lmq.server.api.jobs import setup_job_routes

__all__ = ["setup_job_routes"]

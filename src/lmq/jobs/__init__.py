"""Job queue: durable per-lesson jobs, workers and the sweep loop.

Module organization:
- queue.py: SQLite queue operations (enqueue, claim, finalize, recovery)
- store.py: Async facade over the queue for the server process
- pool.py: Bounded supervisor for worker tasks
- source.py: Lesson media resolution
- worker.py: Transcription/summary pipeline for one claimed job
- dispatcher.py: Periodic sweep that claims pending jobs
- service.py: Enqueue fast path and operator controls
- runtime.py: Wiring of the components for one process
- exceptions.py: Job error hierarchy
"""

from lmq.jobs.dispatcher import DEFAULT_INTERVAL_SECONDS, Dispatcher
from lmq.jobs.exceptions import (
    ClaimLostError,
    JobError,
    LessonNotFoundError,
    SourceUnavailableError,
)
from lmq.jobs.pool import PoolClosedError, WorkerPool
from lmq.jobs.queue import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_STALE_TIMEOUT,
    cancel_job,
    claim_batch,
    claim_job,
    default_worker_id,
    enqueue_job,
    finalize_job,
    get_job_health_metrics,
    get_queue_stats,
    holds_claim,
    recover_stale_jobs,
    release_claim,
    reset_job,
)
from lmq.jobs.runtime import QueueRuntime, build_runtime, open_connection_pool
from lmq.jobs.service import EnqueueResult, JobService, RetryResult, classify_retry
from lmq.jobs.source import MediaSourceResolver
from lmq.jobs.store import JobStore
from lmq.jobs.worker import DEFAULT_JOB_TIMEOUT, TranscriptionWorker, result_ref_for

__all__ = [
    "ClaimLostError",
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_INTERVAL_SECONDS",
    "DEFAULT_JOB_TIMEOUT",
    "DEFAULT_STALE_TIMEOUT",
    "Dispatcher",
    "EnqueueResult",
    "JobError",
    "JobService",
    "JobStore",
    "LessonNotFoundError",
    "MediaSourceResolver",
    "PoolClosedError",
    "QueueRuntime",
    "RetryResult",
    "SourceUnavailableError",
    "TranscriptionWorker",
    "WorkerPool",
    "cancel_job",
    "claim_batch",
    "claim_job",
    "classify_retry",
    "build_runtime",
    "default_worker_id",
    "enqueue_job",
    "finalize_job",
    "get_job_health_metrics",
    "get_queue_stats",
    "holds_claim",
    "open_connection_pool",
    "recover_stale_jobs",
    "release_claim",
    "reset_job",
    "result_ref_for",
]

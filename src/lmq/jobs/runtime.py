"""Assembly of the queue components for one process.

Both `lmq serve` and the one-shot `lmq jobs sweep` need the same set of
objects wired together; QueueRuntime builds them from an LMQConfig and
tears them down in the right order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from lmq.config.models import LMQConfig
from lmq.db.connection import DaemonConnectionPool, ensure_db_directory
from lmq.db.schema import initialize_database
from lmq.jobs.dispatcher import Dispatcher
from lmq.jobs.pool import WorkerPool
from lmq.jobs.service import JobService
from lmq.jobs.source import MediaSourceResolver
from lmq.jobs.store import JobStore
from lmq.jobs.worker import TranscriptionWorker
from lmq.provider import ProviderClient, create_provider_client

logger = logging.getLogger(__name__)


@dataclass
class QueueRuntime:
    """Wired-up queue components sharing one database and worker pool."""

    connection_pool: DaemonConnectionPool
    store: JobStore
    worker_pool: WorkerPool
    worker: TranscriptionWorker
    dispatcher: Dispatcher
    service: JobService
    provider: ProviderClient

    async def shutdown(self, timeout: float | None = None) -> int:
        """Stop the sweep loop, drain workers, release resources.

        Workers still running after ``timeout`` seconds are cancelled and
        return their jobs to pending.

        Returns:
            Number of workers that had to be cancelled.
        """
        self.dispatcher.stop()
        cancelled = await self.worker_pool.join(timeout)
        await self.provider.aclose()
        logger.debug("Closing database connection pool")
        self.connection_pool.close()
        return cancelled


def open_connection_pool(db_path: Path) -> DaemonConnectionPool:
    """Create the pool for db_path and bring its schema up to date."""
    ensure_db_directory(db_path)
    pool = DaemonConnectionPool(db_path)
    try:
        # create_schema commits on its own, so no transaction() here
        initialize_database(pool.get_connection())
    except Exception:
        pool.close()
        raise
    return pool


def build_runtime(
    config: LMQConfig,
    provider: ProviderClient | None = None,
) -> QueueRuntime:
    """Build the queue components from configuration.

    Args:
        config: Merged configuration; storage.database_path must be set.
        provider: Provider client to use instead of the configured one.

    Returns:
        QueueRuntime ready to run; the dispatcher loop is not started.
    """
    db_path = config.storage.database_path
    if db_path is None:
        raise ValueError("storage.database_path is not set")

    connection_pool = open_connection_pool(db_path)
    store = JobStore(connection_pool)
    if provider is None:
        provider = create_provider_client(config.provider)

    dispatch = config.dispatcher
    worker_pool = WorkerPool(dispatch.max_workers)
    worker = TranscriptionWorker(
        store,
        provider,
        MediaSourceResolver(config.storage.media_root),
        job_timeout=dispatch.job_timeout_seconds,
        summary_timeout=config.provider.timeout_seconds,
        summarize=config.provider.summarize,
    )
    dispatcher = Dispatcher(
        store,
        worker_pool,
        worker,
        interval_seconds=dispatch.interval_seconds,
        batch_size=dispatch.batch_size,
        stale_after_seconds=dispatch.stale_after_seconds,
    )
    service = JobService(store, dispatcher, fast_path=dispatch.fast_path)

    logger.debug(
        "Queue runtime ready (db %s, worker id %s, %d worker slot(s))",
        db_path,
        store.worker_id,
        dispatch.max_workers,
    )
    return QueueRuntime(
        connection_pool=connection_pool,
        store=store,
        worker_pool=worker_pool,
        worker=worker,
        dispatcher=dispatcher,
        service=service,
        provider=provider,
    )

"""
Embedding Worker

Consumes embedding jobs from the Redis queue when
``EMBEDDING_DISPATCH=redis``.

Usage:
    python -m noteweave.worker
"""

import asyncio
import logging

from noteweave.core.database import dispose_engine
from noteweave.core.logging import setup_logging
from noteweave.services.ai import check_embedding_dimension, get_embedding_provider
from noteweave.services.embeddings import get_embedding_manager
from noteweave.services.jobs import RedisJobQueue, get_job_queue, handle_job

logger = logging.getLogger(__name__)


async def run_worker(queue: RedisJobQueue | None = None, max_jobs: int | None = None) -> int:
    """
    Process jobs until cancelled (or until ``max_jobs`` have run).

    Returns:
        Number of jobs processed.
    """
    queue = queue or get_job_queue()
    manager = get_embedding_manager()
    processed = 0

    logger.info("Embedding worker listening on '%s'", queue.key)
    while max_jobs is None or processed < max_jobs:
        try:
            job = await queue.pop()
        except Exception as e:
            logger.error("Queue read failed: %s", e)
            await asyncio.sleep(1)
            continue
        if job is None:
            continue
        await handle_job(job, manager)
        processed += 1

    return processed


async def main() -> None:
    setup_logging("worker")
    check_embedding_dimension(get_embedding_provider())
    queue = get_job_queue()
    try:
        await run_worker(queue)
    finally:
        await queue.close()
        await dispose_engine()
        logger.info("Embedding worker stopped")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass

"""
Embedding Job Dispatch

Fire-and-forget hand-off of embedding work. Note writes enqueue an
``EmbeddingJob`` and return immediately; a dispatcher decides where the
job runs:

    - BackgroundTaskDispatcher: FastAPI BackgroundTasks, after the response
      is sent (default, no extra infrastructure).
    - RedisJobDispatcher: LPUSH onto a Redis list, consumed by
      ``python -m noteweave.worker``.

Handlers are idempotent, so duplicate delivery is harmless.
"""

from __future__ import annotations

import logging
from typing import Protocol

import redis.asyncio as redis
from fastapi import BackgroundTasks
from redis.exceptions import RedisError

from noteweave.core.config import settings
from noteweave.schemas.embeddings import EmbeddingJob
from noteweave.services.embeddings import EmbeddingManager, get_embedding_manager

logger = logging.getLogger(__name__)


async def handle_job(job: EmbeddingJob, manager: EmbeddingManager | None = None) -> None:
    """Run one embedding job. Errors are logged, never raised."""
    manager = manager or get_embedding_manager()
    try:
        if job.action == "embed":
            await manager.process_note_embedding(job.note_id, job.owner_id)
        elif job.action == "reembed":
            await manager.reembed_note(job.note_id, job.owner_id)
        else:
            await manager.delete_note_vector(job.note_id)
    except Exception:
        logger.exception("Embedding job %s for note %s failed", job.action, job.note_id)


class JobDispatcher(Protocol):
    async def dispatch(self, job: EmbeddingJob) -> None: ...


class BackgroundTaskDispatcher:
    """Runs jobs in-process once the HTTP response has been sent."""

    def __init__(self, background_tasks: BackgroundTasks) -> None:
        self.background_tasks = background_tasks

    async def dispatch(self, job: EmbeddingJob) -> None:
        self.background_tasks.add_task(handle_job, job)
        logger.debug("Scheduled %s job for note %s", job.action, job.note_id)


class RedisJobQueue:
    """JSON job messages on a Redis list (LPUSH producer / BRPOP consumer)."""

    def __init__(self, client: redis.Redis | None = None, key: str | None = None) -> None:
        self._client = client
        self.key = key or settings.EMBEDDING_QUEUE_KEY

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(settings.REDIS_URL, decode_responses=True)
        return self._client

    async def push(self, job: EmbeddingJob) -> None:
        await self.client.lpush(self.key, job.model_dump_json())

    async def pop(self, timeout: int = 5) -> EmbeddingJob | None:
        """Next job, or None when the queue stayed empty for ``timeout`` seconds."""
        item = await self.client.brpop([self.key], timeout=timeout)
        if item is None:
            return None
        _, payload = item
        return EmbeddingJob.model_validate_json(payload)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class RedisJobDispatcher:
    """Publishes jobs to the Redis queue for the worker process."""

    def __init__(self, queue: RedisJobQueue) -> None:
        self.queue = queue

    async def dispatch(self, job: EmbeddingJob) -> None:
        """
        Queue ``job``. A Redis outage never fails the note write that
        triggered it: the note stays pending and the backfill script picks
        it up later.
        """
        try:
            await self.queue.push(job)
        except (RedisError, OSError):
            logger.exception(
                "Could not queue %s job for note %s, leaving it pending", job.action, job.note_id
            )
            return
        logger.debug("Queued %s job for note %s", job.action, job.note_id)


_queue: RedisJobQueue | None = None


def get_job_queue() -> RedisJobQueue:
    """Process-wide Redis queue (lazy singleton)."""
    global _queue  # noqa: PLW0603
    if _queue is None:
        _queue = RedisJobQueue()
    return _queue


def build_dispatcher(background_tasks: BackgroundTasks) -> JobDispatcher:
    """Dispatcher selected by ``EMBEDDING_DISPATCH``."""
    if settings.EMBEDDING_DISPATCH == "redis":
        return RedisJobDispatcher(get_job_queue())
    return BackgroundTaskDispatcher(background_tasks)

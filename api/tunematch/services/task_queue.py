"""RQ task queue wrapper with a detached in-process fallback."""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterable

from redis import Redis
from redis.exceptions import RedisError
from rq import Queue
from rq.registry import FailedJobRegistry, StartedJobRegistry
from rq.worker import Worker

from tunematch.core.config import settings

logger = logging.getLogger("tunematch.services.task_queue")

ENRICHMENT_QUEUE = "enrichment"


class TaskQueue:
    """Dispatch background work to RQ, or to detached asyncio tasks when Redis is absent.

    Dispatch never waits for the work itself: the caller gets a job id (RQ) or
    ``None`` (inline) back as soon as the work is handed off.
    """

    def __init__(self) -> None:
        self.queue_names: list[str] = settings.worker_queue_names or ["default"]
        self._connection: Redis | None = None
        self._enabled = False
        self._inline_tasks: set[asyncio.Task[Any]] = set()
        self._bootstrap()

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def pending_inline(self) -> int:
        return len(self._inline_tasks)

    def _bootstrap(self) -> None:
        """Initialize Redis connectivity unless disabled for tests."""
        if settings.environment.lower() == "test":
            logger.info("Task queue disabled in test environment")
            return
        try:
            connection = Redis.from_url(settings.redis_url)
            connection.ping()
        except (RedisError, OSError, ValueError) as exc:  # pragma: no cover - network/redis specific
            logger.warning("Redis unavailable; background work will run in-process: %s", exc)
            return
        self._connection = connection
        self._enabled = True
        logger.info("Task queue ready (queues: %s)", ", ".join(self.queue_names))

    def get_queue(self, queue_name: str | None = None) -> Queue:
        if not self._connection:
            raise RuntimeError("Queue connection not initialized")
        target = queue_name or (self.queue_names[0] if self.queue_names else "default")
        return Queue(target, connection=self._connection)

    def _spawn(self, factory: Callable[[], Awaitable[Any]], description: str | None) -> None:
        """Run ``factory()`` as a task that outlives the calling request."""
        task = asyncio.get_running_loop().create_task(factory(), name=description)
        self._inline_tasks.add(task)

        def _finished(done: asyncio.Task[Any]) -> None:
            self._inline_tasks.discard(done)
            if done.cancelled():
                logger.warning("Background task %s was cancelled", description)
            elif done.exception() is not None:
                logger.error("Background task %s failed", description, exc_info=done.exception())

        task.add_done_callback(_finished)

    async def dispatch(
        self,
        func: Callable[..., Any],
        *,
        inline: Callable[[], Awaitable[Any]],
        queue_name: str | None = None,
        timeout_seconds: int = 60,
        description: str | None = None,
        **kwargs: Any,
    ) -> str | None:
        """Hand work off without waiting for it; returns the RQ job id when queued."""
        if self._enabled and self._connection:
            try:
                job = await asyncio.to_thread(
                    self.get_queue(queue_name).enqueue,
                    func,
                    kwargs=kwargs,
                    job_timeout=timeout_seconds,
                    description=description,
                )
                return job.id
            except RedisError as exc:  # pragma: no cover - network/redis specific
                logger.warning("Enqueue failed; running %s in-process: %s", description, exc)
        self._spawn(inline, description)
        return None

    async def enqueue_enrichment(self, *, owner_user_id: uuid.UUID, candidate_ids: Iterable[uuid.UUID]) -> str | None:
        """Schedule external re-scoring of freshly queued suggestions."""
        from tunematch.jobs.enrichment import enrich_suggestions_job, run_enrichment

        ids = [str(candidate_id) for candidate_id in candidate_ids]
        if not ids:
            return None
        return await self.dispatch(
            enrich_suggestions_job,
            inline=lambda: run_enrichment(owner_user_id=str(owner_user_id), candidate_ids=ids),
            queue_name=ENRICHMENT_QUEUE,
            timeout_seconds=settings.enrichment_job_timeout_seconds,
            description=f"enrich:{owner_user_id}:{len(ids)}",
            owner_user_id=str(owner_user_id),
            candidate_ids=ids,
        )

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-process background tasks, e.g. during shutdown."""
        if not self._inline_tasks:
            return
        pending = list(self._inline_tasks)
        done, still_running = await asyncio.wait(pending, timeout=timeout)
        if still_running:
            logger.warning("%d background tasks still running at drain timeout", len(still_running))

    def snapshot(self) -> dict[str, Any]:
        """Return a diagnostic snapshot of queue and worker state."""
        if not self._connection:
            return {
                "status": "inline",
                "queues": [],
                "workers": [],
                "pending_inline": self.pending_inline,
            }
        queues: list[dict[str, Any]] = []
        workers: list[dict[str, Any]] = []
        try:
            for name in self.queue_names:
                queue = Queue(name, connection=self._connection)
                queues.append(
                    {
                        "name": name,
                        "size": queue.count,
                        "started": len(StartedJobRegistry(queue=queue)),
                        "failed": len(FailedJobRegistry(queue=queue)),
                    }
                )
            for worker in Worker.all(connection=self._connection):
                workers.append({"name": worker.name, "state": worker.get_state(), "queues": worker.queue_names()})
        except RedisError as exc:  # pragma: no cover - network/redis specific
            logger.warning("Unable to read queue state: %s", exc)
            return {"status": "degraded", "queues": queues, "workers": workers, "error": str(exc)}
        return {
            "status": "online" if workers else "degraded",
            "queues": queues,
            "workers": workers,
            "pending_inline": self.pending_inline,
            "checked_at": datetime.now(timezone.utc).isoformat(),
        }


task_queue = TaskQueue()

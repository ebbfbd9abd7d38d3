from __future__ import annotations

import logging

from redis import Redis
from rq import Queue, Worker

from tunematch.core.config import settings
from tunematch.core.logging import configure_logging


def _queue_objects(connection: Redis) -> list[Queue]:
    return [Queue(name, connection=connection) for name in settings.worker_queue_names]


def main() -> None:
    configure_logging()
    logger = logging.getLogger("tunematch.worker")
    redis_connection = Redis.from_url(settings.redis_url)
    queues = _queue_objects(redis_connection)
    if not queues:
        logger.error("No worker queues configured; set WORKER_QUEUE_NAMES or rely on the default.")
        return
    logger.info("Starting worker for queues: %s", ", ".join(settings.worker_queue_names))
    worker = Worker(queues, connection=redis_connection, name="tunematch-worker")
    # rq installs its own SIGINT/SIGTERM handlers for a warm shutdown.
    worker.work()
    logger.info("Worker stopped")


if __name__ == "__main__":
    main()

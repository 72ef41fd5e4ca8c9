"""Thumbnail worker: the derived-asset producer.

Consumes photo ids from the job queue and runs ProduceThumbnailUseCase for
each. Any number of workers may run in the same consumer group.

Acknowledgement policy per outcome:
- produced, or already produced      → ack
- photo unknown / id malformed        → ack (nothing will ever succeed)
- image cannot be decoded             → ack (poison message)
- blob store failure                  → requeue (redelivered, retried)
- unexpected exception                → ack (poison message, logged)
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING

import structlog
from returns.result import Success

from application.ports.job_queue import JobConsumer, decode_job
from application.use_cases.thumbnail_use_cases import ProduceThumbnailUseCase
from infrastructure.config import settings
from infrastructure.di.container import create_container
from infrastructure.logging import setup_logging

if TYPE_CHECKING:
    from application.ports.job_queue import JobDelivery

logger = structlog.get_logger()


async def handle_delivery(delivery: JobDelivery, use_case: ProduceThumbnailUseCase) -> bool:
    """Process one job and settle it. Return True if the job was acknowledged.

    Every outcome settles the delivery. A job that crashes the use case is
    acked as poison so that later acks cannot commit past it unnoticed.
    """
    photo_id = decode_job(delivery.body)
    try:
        result = await use_case.execute(photo_id)
    except Exception:
        logger.exception("thumbnail_job_failed", photo_id=photo_id)
        await delivery.ack()
        return True

    if isinstance(result, Success):
        await delivery.ack()
        return True

    error = result.failure()
    if error.retryable:
        logger.warning(
            "thumbnail_job_requeued",
            photo_id=photo_id,
            category=error.category,
            error=error.message,
        )
        await delivery.requeue()
        return False

    logger.warning(
        "thumbnail_job_dropped",
        photo_id=photo_id,
        category=error.category,
        error=error.message,
    )
    await delivery.ack()
    return True


async def run() -> None:
    """Run the thumbnail worker until SIGINT/SIGTERM."""
    container = create_container()
    consumer = container[JobConsumer]
    use_case = container[ProduceThumbnailUseCase]

    def handle_signal(signum: int) -> None:
        logger.info("thumbnail_worker_signal_received", signum=signum)
        consumer.stop()

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, handle_signal, signum)

    logger.info("thumbnail_worker_started", topic=settings.kafka_topic)

    job_count = 0
    try:
        async for delivery in consumer.consume(settings.kafka_topic):
            job_count += 1
            # A delivery that cannot be settled stops the worker; its offset stays
            # uncommitted, so the group redelivers it.
            await handle_delivery(delivery, use_case)
    except Exception:
        logger.exception("thumbnail_worker_error")
        raise
    finally:
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(signum)
        await consumer.close()
        logger.info("thumbnail_worker_stopped", jobs_processed=job_count)


def run_sync() -> None:
    """Run the thumbnail worker in synchronous mode."""
    setup_logging(component="thumbnail_worker")
    asyncio.run(run())


if __name__ == "__main__":
    run_sync()

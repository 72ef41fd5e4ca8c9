"""Kafka adapter for publishing thumbnail jobs."""

from __future__ import annotations

import asyncio
import threading
from typing import Any

import structlog
from confluent_kafka import KafkaException, Producer

from application.ports.job_queue import JobQueue
from domain.exceptions import QueueError

logger = structlog.get_logger()


class KafkaJobQueue(JobQueue):
    """Publish raw job payloads to Kafka topics.

    ``publish`` only returns once the broker has acknowledged the message
    (``acks=all``), so a returned publish is durable.
    """

    def __init__(self, bootstrap_servers: str, *, message_timeout_ms: int = 10_000) -> None:
        self._producer = Producer(
            {
                "bootstrap.servers": bootstrap_servers,
                "acks": "all",
                "enable.idempotence": True,
                "message.timeout.ms": message_timeout_ms,
            },
        )
        self._poll_thread: threading.Thread | None = None
        self._stop_event = threading.Event()

    async def connect(self) -> None:
        """Start background polling for delivery callbacks."""
        if self._poll_thread and self._poll_thread.is_alive():
            return
        self._stop_event.clear()
        self._poll_thread = threading.Thread(
            target=self._poll_loop,
            name="kafka-job-producer-poll",
            daemon=True,
        )
        self._poll_thread.start()
        logger.info("kafka_job_producer_started")

    async def disconnect(self) -> None:
        """Stop background polling and flush pending messages."""
        self._stop_event.set()
        if self._poll_thread:
            self._poll_thread.join(timeout=5)
        await asyncio.to_thread(self._producer.flush, 5)
        logger.info("kafka_job_producer_stopped")

    async def publish(self, queue_name: str, payload: bytes) -> None:
        """Publish a job payload and wait for the broker acknowledgement."""
        await self.connect()

        loop = asyncio.get_running_loop()
        future: asyncio.Future[None] = loop.create_future()

        def _resolve(err: Any) -> None:  # noqa: ANN401
            if future.done():
                return
            if err:
                future.set_exception(QueueError(f"Kafka delivery to {queue_name} failed: {err}"))
            else:
                future.set_result(None)

        def delivery(err: Any, msg: Any) -> None:  # noqa: ANN401
            if err:
                logger.error("kafka_job_delivery_failed", topic=queue_name, error=str(err))
            else:
                logger.debug(
                    "kafka_job_delivered",
                    topic=msg.topic(),
                    partition=msg.partition(),
                    offset=msg.offset(),
                )
            loop.call_soon_threadsafe(_resolve, err)

        try:
            self._producer.produce(queue_name, value=payload, on_delivery=delivery)
        except (BufferError, KafkaException) as exc:
            logger.error("kafka_job_produce_rejected", topic=queue_name, error=str(exc))
            msg = f"Kafka rejected job for {queue_name}: {exc!s}"
            raise QueueError(msg) from exc

        await future

    def _poll_loop(self) -> None:
        while not self._stop_event.is_set():
            self._producer.poll(0.1)

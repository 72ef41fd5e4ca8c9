"""Kafka adapter for consuming thumbnail jobs.

Offsets are committed only when a delivery is acknowledged, so a worker that
dies mid-job has the message redelivered to the next member of its group.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import structlog
from confluent_kafka import Consumer, KafkaError, KafkaException, TopicPartition

from application.ports.job_queue import JobConsumer, JobDelivery
from domain.exceptions import QueueError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = structlog.get_logger()


class KafkaJobDelivery(JobDelivery):
    def __init__(
        self,
        consumer: Consumer,
        message: Any,  # noqa: ANN401
        *,
        requeue_delay: float = 0.0,
    ) -> None:
        self._consumer = consumer
        self._message = message
        self._requeue_delay = requeue_delay
        self.body: bytes = message.value() or b""

    @property
    def position(self) -> dict[str, Any]:
        return {
            "topic": self._message.topic(),
            "partition": self._message.partition(),
            "offset": self._message.offset(),
        }

    async def ack(self) -> None:
        await asyncio.to_thread(self._consumer.commit, message=self._message, asynchronous=False)

    async def requeue(self) -> None:
        # Back off, then rewind the partition so the same offset is fetched again.
        if self._requeue_delay:
            await asyncio.sleep(self._requeue_delay)
        partition = TopicPartition(
            self._message.topic(),
            self._message.partition(),
            self._message.offset(),
        )
        await asyncio.to_thread(self._consumer.seek, partition)


class KafkaJobConsumer(JobConsumer):
    def __init__(
        self,
        bootstrap_servers: str,
        group_id: str,
        *,
        poll_timeout: float = 1.0,
        requeue_delay: float = 1.0,
    ) -> None:
        self._consumer = Consumer(
            {
                "bootstrap.servers": bootstrap_servers,
                "group.id": group_id,
                "enable.auto.commit": False,
                "auto.offset.reset": "earliest",
            },
        )
        self._poll_timeout = poll_timeout
        self._requeue_delay = requeue_delay
        self._stopping = False
        self._closed = False

    async def consume(self, queue_name: str) -> AsyncIterator[KafkaJobDelivery]:
        await asyncio.to_thread(self._consumer.subscribe, [queue_name])
        logger.info("kafka_job_consumer_subscribed", topic=queue_name)

        while not self._stopping:
            message = await asyncio.to_thread(self._consumer.poll, self._poll_timeout)
            if message is None:
                continue
            error = message.error()
            if error is not None:
                if error.code() == KafkaError._PARTITION_EOF:  # noqa: SLF001
                    continue
                if error.fatal():
                    msg = f"Kafka consumer failed: {error.str()}"
                    raise QueueError(msg) from KafkaException(error)
                logger.warning("kafka_job_consumer_error", error=error.str())
                continue
            yield KafkaJobDelivery(self._consumer, message, requeue_delay=self._requeue_delay)

    def stop(self) -> None:
        self._stopping = True

    async def close(self) -> None:
        if self._closed:
            return
        self._stopping = True
        self._closed = True
        await asyncio.to_thread(self._consumer.close)
        logger.info("kafka_job_consumer_closed")

"""Port for handing thumbnail jobs to the derived-asset producer.

The message body is the UTF-8 text of the original photo's id, with no
envelope. Both the API and the thumbnail worker depend on that format.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


def encode_job(photo_id: str) -> bytes:
    return photo_id.encode("utf-8")


def decode_job(payload: bytes) -> str:
    return payload.decode("utf-8", errors="replace").strip()


class JobQueue(Protocol):
    async def publish(self, queue_name: str, payload: bytes) -> None:
        """Durably hand a message to the queue.

        Raises:
            QueueError: If the queue did not acknowledge the message.

        """
        ...


class JobDelivery(Protocol):
    body: bytes

    async def ack(self) -> None:
        """Mark the message as processed."""
        ...

    async def requeue(self) -> None:
        """Have the message delivered again."""
        ...


class JobConsumer(Protocol):
    def consume(self, queue_name: str) -> AsyncIterator[JobDelivery]:
        """Yield deliveries until stop() is called."""
        ...

    def stop(self) -> None:
        """Make consume() return after the delivery or poll in progress."""
        ...

    async def close(self) -> None: ...
